"""Domain cache and store state models.

A ``DomainCache`` is the per-domain record the dashboard widgets read:
last-known-good data, freshness timestamp, status, and error.  Instances are
frozen and their ``data`` is deep-frozen, so a snapshot handed to a consumer
can never be used to mutate store state.

INVARIANT: status ``loading`` implies ``in_flight``.
INVARIANT: status ``error`` implies ``error`` is set; ``data`` keeps the last good value.
INVARIANT: ``stale`` is cleared only by a successful fetch.
"""

from __future__ import annotations

from collections.abc import Mapping, Set
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

from assocsync.domain.types import CacheStatus, ConnectionStatus, ErrorKind


def freeze(value: Any) -> Any:
    """Return a deep read-only copy of *value*.

    Mappings become ``MappingProxyType`` views over private dicts, lists and
    tuples become tuples, sets become frozensets.  Scalars pass through.
    """
    if isinstance(value, Mapping):
        return MappingProxyType({k: freeze(v) for k, v in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(freeze(v) for v in value)
    if isinstance(value, Set):
        return frozenset(freeze(v) for v in value)
    return value


def thaw(value: Any) -> Any:
    """Return a mutable deep copy of a frozen payload (dicts and lists)."""
    if isinstance(value, Mapping):
        return {k: thaw(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [thaw(v) for v in value]
    if isinstance(value, frozenset):
        return set(value)
    return value


class ErrorInfo(BaseModel):
    """Structured fetch failure stored on a cache."""

    model_config = {"frozen": True}

    kind: ErrorKind
    message: str
    occurred_at: float | None = None
    detail: Mapping[str, Any] = Field(default_factory=dict, validate_default=True)

    @field_validator("detail", mode="after")
    @classmethod
    def _freeze_detail(cls, value: Mapping[str, Any]) -> Mapping[str, Any]:
        return freeze(value)


class DomainCache(BaseModel):
    """Snapshot of one domain.

    Attributes:
        data: Last-known-good payload (deep-frozen), or None before the first success.
        status: Current lifecycle status.
        last_fetched_at: Clock time of the last successful fetch; never decreases.
        error: Most recent failure, cleared on success.
        in_flight: Whether a fetch for this domain is outstanding.
        failure_count: Consecutive failures since the last success.
        version: Incremented on every change to ``data``.
        stale: Data outlived its freshness window.  Set while a slow fetch is
            still loading as well as on ``stale`` status; a successful fetch clears it.
    """

    model_config = {"frozen": True, "arbitrary_types_allowed": True}

    data: Any = None
    status: CacheStatus = CacheStatus.IDLE
    last_fetched_at: float | None = None
    error: ErrorInfo | None = None
    in_flight: bool = False
    failure_count: int = 0
    version: int = 0
    stale: bool = False

    @model_validator(mode="after")
    def _check_invariants(self) -> DomainCache:
        if self.status == CacheStatus.LOADING and not self.in_flight:
            msg = "A loading cache must have a fetch in flight"
            raise ValueError(msg)
        if self.status == CacheStatus.ERROR and self.error is None:
            msg = "An error cache must carry error info"
            raise ValueError(msg)
        return self


UNINITIALIZED = DomainCache()
"""Sentinel returned for domains that were never touched."""


HEALTH_WINDOW = 10
"""Number of recent fetch outcomes kept per domain."""

FAILURE_RATE_THRESHOLD = 0.5
"""Recent failure ratio at which a domain counts as unhealthy."""


@dataclass(frozen=True)
class StoreState:
    """Immutable mapping of domain key to cache, plus global connection health.

    ``outcomes`` keeps the last ``HEALTH_WINDOW`` fetch results per domain
    (True for success) so connection health reflects recent error rates, not
    just the latest fetch.
    """

    domains: Mapping[str, DomainCache] = field(
        default_factory=lambda: MappingProxyType({})
    )
    connection_status: ConnectionStatus = ConnectionStatus.ONLINE
    outcomes: Mapping[str, tuple[bool, ...]] = field(
        default_factory=lambda: MappingProxyType({})
    )

    def get(self, domain: str) -> DomainCache:
        return self.domains.get(domain, UNINITIALIZED)

    def failure_rate(self, domain: str) -> float | None:
        """Share of failed fetches in the recent window, None before any fetch."""
        return recent_failure_rate(self.outcomes.get(domain, ()))


def record_outcome(history: tuple[bool, ...], ok: bool) -> tuple[bool, ...]:
    """Append one fetch result, keeping only the last ``HEALTH_WINDOW``."""
    return (*history, ok)[-HEALTH_WINDOW:]


def recent_failure_rate(history: tuple[bool, ...]) -> float | None:
    if not history:
        return None
    return history.count(False) / len(history)


def derive_connection_status(
    domains: Mapping[str, DomainCache],
    outcomes: Mapping[str, tuple[bool, ...]] | None = None,
) -> ConnectionStatus:
    """Compute connection health across initialized domains.

    Every initialized domain in error -> offline.  Any domain in error, or
    with a recent failure rate at or above ``FAILURE_RATE_THRESHOLD`` ->
    degraded.  Otherwise online.
    """
    initialized = {name: c for name, c in domains.items() if c.status != CacheStatus.IDLE}
    failing = sum(1 for c in initialized.values() if c.status == CacheStatus.ERROR)
    if failing and failing == len(initialized):
        return ConnectionStatus.OFFLINE
    if failing:
        return ConnectionStatus.DEGRADED
    for name in initialized:
        rate = recent_failure_rate((outcomes or {}).get(name, ()))
        if rate is not None and rate >= FAILURE_RATE_THRESHOLD:
            return ConnectionStatus.DEGRADED
    return ConnectionStatus.ONLINE


# --- Selectors ---


def has_data(cache: DomainCache) -> bool:
    """Whether the cache holds a payload (possibly stale)."""
    return cache.data is not None


def age_of(cache: DomainCache, now: float) -> float | None:
    """Seconds since the last successful fetch, or None if never fetched."""
    if cache.last_fetched_at is None:
        return None
    return max(0.0, now - cache.last_fetched_at)


def is_stale(cache: DomainCache, now: float, max_age: float) -> bool:
    """Whether the cached data should be treated as outdated."""
    if cache.stale or cache.status == CacheStatus.STALE:
        return True
    age = age_of(cache, now)
    return age is None or age > max_age


def is_outdated(cache: DomainCache, now: float, max_age: float) -> bool:
    """Whether *cache* holds data older than *max_age* not yet marked stale."""
    if cache.stale or cache.data is None:
        return False
    age = age_of(cache, now)
    return age is not None and age > max_age


def item_count(cache: DomainCache) -> int | None:
    """Number of items for collection domains, None for scalar payloads."""
    if isinstance(cache.data, tuple):
        return len(cache.data)
    return None


def summarize(cache: DomainCache, *, now: float | None = None) -> dict[str, Any]:
    """Plain-dict view of a cache for rendering (no payload)."""
    summary: dict[str, Any] = {
        "status": str(cache.status),
        "has_data": has_data(cache),
        "items": item_count(cache),
        "last_fetched_at": cache.last_fetched_at,
        "in_flight": cache.in_flight,
        "failure_count": cache.failure_count,
        "version": cache.version,
        "stale": cache.stale or cache.status == CacheStatus.STALE,
        "error": None,
    }
    if cache.error is not None:
        summary["error"] = {"kind": str(cache.error.kind), "message": cache.error.message}
    if now is not None:
        age = age_of(cache, now)
        summary["age_seconds"] = round(age, 3) if age is not None else None
    return summary
