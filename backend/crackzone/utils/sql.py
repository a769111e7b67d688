"""Helpers for building search filters from user input."""

from sqlalchemy import ColumnElement, func
from sqlalchemy.orm import InstrumentedAttribute

LIKE_ESCAPE = "\\"


def escape_like_pattern(term: str) -> str:
    """Make ``%``, ``_`` and the escape character match literally in LIKE."""
    return (
        term.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", f"{LIKE_ESCAPE}%")
        .replace("_", f"{LIKE_ESCAPE}_")
    )


def icontains(column: InstrumentedAttribute, term: str) -> ColumnElement[bool]:
    """Case-insensitive substring match on ``column``."""
    pattern = f"%{escape_like_pattern(term.lower())}%"
    return func.lower(column).like(pattern, escape=LIKE_ESCAPE)
