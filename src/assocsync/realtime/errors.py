"""Error taxonomy for the sync core.

None of these cross the store boundary: fetch errors are recorded on the
domain cache as ``ErrorInfo`` and subscriber errors are logged.
"""

from __future__ import annotations

from typing import Any

from assocsync.domain.cache import ErrorInfo
from assocsync.domain.types import ErrorKind


class AssocSyncError(Exception):
    """Base class for sync-core failures."""

    kind: ErrorKind = ErrorKind.NETWORK

    def __init__(self, message: str, **detail: Any) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail

    def to_info(self, occurred_at: float | None = None) -> ErrorInfo:
        return ErrorInfo(
            kind=self.kind,
            message=self.message,
            occurred_at=occurred_at,
            detail=dict(self.detail),
        )


class NetworkError(AssocSyncError):
    """Adapter-level transport failure."""

    kind = ErrorKind.NETWORK


class FetchTimeoutError(NetworkError):
    """The adapter did not resolve within its timeout."""

    kind = ErrorKind.TIMEOUT


class DecodeError(AssocSyncError):
    """Malformed payload; terminal for the fetch that produced it."""

    kind = ErrorKind.DECODE


class SubscriberError(AssocSyncError):
    """A consumer callback raised during fan-out."""

    def __init__(self, subscription_id: int, cause: BaseException) -> None:
        super().__init__(
            f"Subscriber {subscription_id} raised {type(cause).__name__}: {cause}",
            subscription_id=subscription_id,
        )
        self.subscription_id = subscription_id
        self.__cause__ = cause
