"""Fetch Adapter contract.

An adapter is any callable taking :class:`FetchParams` and returning either a
:class:`FetchResult`, a bare payload, or an awaitable of either.  Adapters
report failures as ``FetchResult.failure`` or by raising one of the
:mod:`assocsync.realtime.errors` types from the awaitable; anything else they
raise is recorded as a network error.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any

from pydantic import BaseModel

from assocsync.domain.cache import ErrorInfo
from assocsync.domain.types import ErrorKind, FetchMode
from assocsync.realtime.errors import AssocSyncError


class FetchParams(BaseModel):
    """Arguments handed to an adapter for one fetch.

    Attributes:
        domain: Domain being fetched.
        timeout: Seconds the adapter may take before it must fail.
        since: Time of the last successful fetch, for incremental endpoints.
    """

    model_config = {"frozen": True}

    domain: str
    timeout: float
    since: float | None = None


class FetchResult(BaseModel):
    """Outcome of one fetch: a payload or an error, never both."""

    model_config = {"frozen": True, "arbitrary_types_allowed": True}

    ok: bool
    payload: Any = None
    mode: FetchMode | None = None
    error: ErrorInfo | None = None

    @classmethod
    def success(cls, payload: Any, *, mode: FetchMode | None = None) -> FetchResult:
        return cls(ok=True, payload=payload, mode=mode)

    @classmethod
    def failure(cls, error: ErrorInfo | AssocSyncError) -> FetchResult:
        if isinstance(error, AssocSyncError):
            error = error.to_info()
        return cls(ok=False, error=error)


FetchAdapter = Callable[[FetchParams], "FetchResult | Awaitable[Any] | Any"]


def to_result(value: Any) -> FetchResult:
    """Normalize an adapter's return value into a FetchResult."""
    if isinstance(value, FetchResult):
        return value
    return FetchResult.success(value)


def error_from_exception(exc: BaseException) -> ErrorInfo:
    """Map an exception raised by an adapter onto the error taxonomy."""
    if isinstance(exc, AssocSyncError):
        return exc.to_info()
    if isinstance(exc, TimeoutError):
        return ErrorInfo(kind=ErrorKind.TIMEOUT, message=str(exc) or "Fetch timed out")
    return ErrorInfo(
        kind=ErrorKind.NETWORK,
        message=f"{type(exc).__name__}: {exc}",
    )
