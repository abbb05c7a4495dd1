"""HTTP fetch adapter built on httpx.

One adapter per domain endpoint.  Transport failures and non-2xx responses
become network errors, unparseable bodies become decode errors; the adapter
resolves with a ``FetchResult`` and never raises.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

import httpx
import structlog

from assocsync.realtime.adapters import FetchParams, FetchResult
from assocsync.realtime.errors import DecodeError, FetchTimeoutError, NetworkError

logger = structlog.get_logger(__name__)

RETRY_HINT_STATUSES = {429, 500, 502, 503, 504}


def _default_decode(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError as exc:
        msg = f"Response body is not valid JSON: {exc}"
        raise DecodeError(msg, url=str(response.url)) from exc


class HttpFetchAdapter:
    """Fetch a domain payload with ``GET url``.

    Parameters:
        client: Shared ``httpx.AsyncClient``; the caller owns its lifecycle.
        url: Absolute URL, or a path relative to the client's base URL.
        data_key: Optional top-level key to unwrap (e.g. ``"data"``).
        decode: Custom response decoder; must raise ``DecodeError`` on bad input.
        since_param: Query parameter carrying ``FetchParams.since``, if the
            endpoint supports incremental fetches.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        url: str,
        *,
        data_key: str | None = None,
        decode: Callable[[httpx.Response], Any] | None = None,
        since_param: str | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> None:
        self._client = client
        self._url = url
        self._data_key = data_key
        self._decode = decode or _default_decode
        self._since_param = since_param
        self._headers = dict(headers or {})

    @property
    def url(self) -> str:
        return self._url

    async def __call__(self, params: FetchParams) -> FetchResult:
        query: dict[str, Any] = {}
        if self._since_param and params.since is not None:
            query[self._since_param] = params.since
        try:
            response = await self._client.get(
                self._url,
                params=query or None,
                headers=self._headers or None,
                timeout=params.timeout,
            )
        except httpx.TimeoutException as exc:
            error = FetchTimeoutError(
                f"GET {self._url} timed out after {params.timeout}s", url=self._url
            )
            logger.debug("http.timeout", domain=params.domain, url=self._url, error=str(exc))
            return FetchResult.failure(error)
        except httpx.HTTPError as exc:
            logger.debug("http.transport_error", domain=params.domain, url=self._url)
            error = NetworkError(f"GET {self._url} failed: {exc}", url=self._url)
            return FetchResult.failure(error)

        if response.status_code >= 400:
            error = NetworkError(
                f"GET {self._url} returned HTTP {response.status_code}",
                url=self._url,
                status_code=response.status_code,
                retryable=response.status_code in RETRY_HINT_STATUSES,
            )
            return FetchResult.failure(error)

        try:
            payload = self._decode(response)
            if self._data_key is not None:
                if not isinstance(payload, Mapping) or self._data_key not in payload:
                    msg = f"Response has no {self._data_key!r} field"
                    raise DecodeError(msg, url=self._url)
                payload = payload[self._data_key]
        except DecodeError as exc:
            return FetchResult.failure(exc)
        return FetchResult.success(payload)
