"""orjson encoding shared by HTTP responses, cache values and websocket frames."""

from collections.abc import Callable
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

import orjson
from fastapi.responses import JSONResponse
from pydantic import BaseModel

_OPTIONS = orjson.OPT_UTC_Z | orjson.OPT_NON_STR_KEYS

# First match wins; orjson handles dataclasses and plain containers itself
_FALLBACKS: tuple[tuple[type | tuple[type, ...], Callable[[Any], Any]], ...] = (
    (BaseModel, lambda model: model.model_dump(mode="json", by_alias=True)),
    (Enum, lambda member: member.value),
    ((Decimal, UUID), str),
    ((datetime, date), lambda value: value.isoformat()),
    ((set, frozenset), list),
    (bytes, lambda raw: raw.decode("utf-8")),
)


def _fallback(obj: Any) -> Any:
    for types, encode in _FALLBACKS:
        if isinstance(obj, types):
            return encode(obj)
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def json_dumps_bytes(data: Any) -> bytes:
    return orjson.dumps(data, default=_fallback, option=_OPTIONS)


def json_dumps(data: Any) -> str:
    return json_dumps_bytes(data).decode("utf-8")


def json_loads(data: str | bytes) -> Any:
    return orjson.loads(data)


class ORJSONResponse(JSONResponse):
    media_type = "application/json"

    def render(self, content: Any) -> bytes:
        return json_dumps_bytes(content)
