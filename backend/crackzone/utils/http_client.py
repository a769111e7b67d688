"""Outbound HTTP for the image CDN.

Timeouts and connection failures are retried with exponential backoff;
an HTTP error status is raised straight away.
"""

import logging
from typing import Any

import httpx
from tenacity import before_sleep_log, retry, retry_if_exception_type, stop_after_attempt, wait_exponential

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 3

_transient = retry(
    stop=stop_after_attempt(MAX_ATTEMPTS),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type((httpx.TimeoutException, httpx.NetworkError)),
    before_sleep=before_sleep_log(logger, logging.WARNING),
    reraise=True,
)


class AsyncHttpClient:
    """One pooled httpx client per ``async with`` block."""

    def __init__(self, timeout: float = 30.0, transport: httpx.AsyncBaseTransport | None = None):
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout, connect=5.0),
            limits=httpx.Limits(max_connections=20),
            transport=transport,
        )

    async def __aenter__(self) -> "AsyncHttpClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self._client.aclose()

    @_transient
    async def post_form(self, url: str, data: dict[str, Any], files: dict[str, Any] | None = None) -> dict[str, Any]:
        """POST a (multipart) form and decode the JSON reply."""
        response = await self._client.post(url, data=data, files=files)
        response.raise_for_status()
        return response.json()
