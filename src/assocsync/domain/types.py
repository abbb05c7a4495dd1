"""Classification enums for domains, cache status, and connection health.

Domain keys form an open set: the well-known keys below are the dashboard
widgets, but any non-empty string is a valid domain.
"""

from __future__ import annotations

from enum import StrEnum


class DomainKey(StrEnum):
    """Well-known data domains fed to the admin dashboard."""

    STATS = "stats"
    MEMBERS = "members"
    EVENTS = "events"
    CONTENT = "content"


class CacheStatus(StrEnum):
    """Lifecycle status of a single domain cache."""

    IDLE = "idle"
    LOADING = "loading"
    FRESH = "fresh"
    STALE = "stale"
    ERROR = "error"


class ConnectionStatus(StrEnum):
    """Global health derived from the status of every initialized domain."""

    ONLINE = "online"
    DEGRADED = "degraded"
    OFFLINE = "offline"


class FetchMode(StrEnum):
    """How a successful fetch payload is applied to the cache."""

    REPLACE = "replace"
    PATCH = "patch"


class ErrorKind(StrEnum):
    """Fetch failure taxonomy recorded on a cache."""

    NETWORK = "network"
    TIMEOUT = "timeout"
    DECODE = "decode"


def normalize_domain(domain: str) -> str:
    """Return the plain-string form of *domain*, rejecting empty keys."""
    key = str(domain).strip()
    if not key:
        msg = "Domain key must be a non-empty string"
        raise ValueError(msg)
    return key
