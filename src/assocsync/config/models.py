"""Pydantic configuration models with code-baked defaults.

Sparse TOML contract: defaults baked here, assocsync.toml only contains
overrides.  A fresh install needs only ``[api] base_url``.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from assocsync.domain.types import DomainKey, FetchMode

# --- assocsync.toml sections ---


class SchedulerConfig(BaseModel):
    """[scheduler] section."""

    model_config = {"frozen": True}

    default_interval: float = Field(default=30.0, gt=0)
    backoff_ceiling: int = Field(default=8, ge=1)
    fetch_timeout: float = Field(default=10.0, gt=0)
    immediate_first_fetch: bool = True


class ApiConfig(BaseModel):
    """[api] section."""

    model_config = {"frozen": True}

    base_url: str = "http://localhost:8000/api"
    headers: dict[str, str] = Field(default_factory=dict)


class DomainConfig(BaseModel):
    """[domains.<name>] table."""

    model_config = {"frozen": True}

    enabled: bool = True
    interval: float | None = Field(default=None, gt=0)
    path: str | None = None
    url: str | None = None
    key_field: str = "id"
    data_key: str | None = None
    mode: FetchMode = FetchMode.REPLACE
    stale_after: float | None = Field(default=None, gt=0)

    def resolve_url(self, name: str, base_url: str) -> str:
        """Absolute URL for the domain: explicit ``url``, else base URL + path."""
        if self.url:
            return self.url
        path = self.path or f"/{name}"
        return f"{base_url.rstrip('/')}/{path.lstrip('/')}"


class PluginsConfig(BaseModel):
    """[plugins] section."""

    model_config = {"frozen": True}

    enabled: bool = True


DEFAULT_DOMAINS: dict[str, dict[str, Any]] = {
    str(DomainKey.STATS): {"interval": 30.0, "path": "/stats"},
    str(DomainKey.MEMBERS): {"interval": 60.0, "path": "/members"},
    str(DomainKey.EVENTS): {"interval": 60.0, "path": "/events"},
    str(DomainKey.CONTENT): {"interval": 60.0, "path": "/content"},
}


def merge_domains(value: Any) -> dict[str, Any]:
    """Overlay user domain tables on the built-in defaults, field by field."""
    merged: dict[str, Any] = {name: dict(cfg) for name, cfg in DEFAULT_DOMAINS.items()}
    for name, cfg in (value or {}).items():
        if isinstance(cfg, DomainConfig):
            cfg = cfg.model_dump(exclude_unset=True)
        merged[name] = {**merged.get(name, {}), **dict(cfg)}
    return merged

