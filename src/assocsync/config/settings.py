"""Unified settings — CLI flags, env vars, and TOML config in one object.

Priority chain (highest to lowest):
  1. Init kwargs  — CLI flags passed by Click
  2. Env vars     — ``ASSOCSYNC_*`` prefix, ``__`` for nested sections
  3. TOML file    — ``assocsync.toml`` discovered via walk-up
  4. Code defaults — baked into the section models

Uses Pydantic Settings v2 with a custom :class:`TomlSettingsSource` that
uses the walk-up lookup from :mod:`assocsync.config.discovery`.
"""

from __future__ import annotations

import threading
import tomllib
from pathlib import Path
from typing import Any, ClassVar

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource

from assocsync.config.discovery import find_config
from assocsync.config.models import (
    ApiConfig,
    DomainConfig,
    PluginsConfig,
    SchedulerConfig,
    merge_domains,
)


class TomlSettingsSource(PydanticBaseSettingsSource):
    """Read settings from an ``assocsync.toml`` file discovered via walk-up."""

    def __init__(self, settings_cls: type[BaseSettings], toml_path: Path | None) -> None:
        super().__init__(settings_cls)
        self._data: dict[str, Any] = {}
        if toml_path and toml_path.is_file():
            raw = toml_path.read_text(encoding="utf-8")
            try:
                self._data = tomllib.loads(raw)
            except tomllib.TOMLDecodeError as exc:
                import click

                msg = f"Invalid TOML in {toml_path}: {exc}"
                raise click.ClickException(msg) from exc

    def get_field_value(self, field: Any, field_name: str) -> tuple[Any, str, bool]:
        """Return ``(value, field_name, value_is_complex)``."""
        val = self._data.get(field_name)
        return val, field_name, field_name in self._data

    def __call__(self) -> dict[str, Any]:
        """Return the full TOML data dict for Pydantic to merge."""
        return self._data


# Thread-local storage for TOML path during construction.
_tls = threading.local()


class SyncSettings(BaseSettings):
    """Unified settings for the assocsync CLI and services.

    Attributes:
        project_root: Directory holding ``assocsync.toml`` (or CWD if none).
        config_path: Resolved config file, or None when running on defaults.
    """

    model_config = {
        "frozen": True,
        "env_prefix": "ASSOCSYNC_",
        "env_nested_delimiter": "__",
    }

    # --- Resolved path (derived from config location, not read from TOML) ---
    project_root: Path = Field(default_factory=Path.cwd)
    config_path: Path | None = None

    # --- CLI flags ---
    json_output: bool = False
    quiet: bool = False
    verbose: bool = False
    log_json: bool = False

    # --- TOML sections ---
    api: ApiConfig = Field(default_factory=ApiConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    plugins: PluginsConfig = Field(default_factory=PluginsConfig)
    domains: dict[str, DomainConfig] = Field(default_factory=dict, validate_default=True)

    # Retained for type-checker visibility; not used at runtime.
    _toml_path: ClassVar[Path | None] = None

    @field_validator("domains", mode="before")
    @classmethod
    def _merge_defaults(cls, value: Any) -> dict[str, Any]:
        return merge_domains(value)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Insert TOML source between env vars and defaults."""
        toml_path = getattr(_tls, "toml_path", None)
        return (
            init_settings,
            env_settings,
            TomlSettingsSource(settings_cls, toml_path),
        )

    @classmethod
    def from_cli(
        cls,
        *,
        config_path: str | None = None,
        project_root: Path | None = None,
        **cli_flags: Any,
    ) -> SyncSettings:
        """Construct settings from CLI invocation.

        Discovers ``assocsync.toml`` via walk-up (or explicit *config_path*),
        resolves *project_root* from the config file's parent directory,
        and merges CLI flags as highest-priority overrides.
        """
        toml_path: Path | None = None
        if config_path:
            p = Path(config_path)
            if p.is_file():
                toml_path = p
        else:
            toml_path = find_config(project_root)

        resolved_root = project_root
        if resolved_root is None:
            resolved_root = toml_path.parent if toml_path else Path.cwd()

        _tls.toml_path = toml_path
        try:
            return cls(
                project_root=resolved_root,
                config_path=toml_path,
                **cli_flags,
            )
        finally:
            _tls.toml_path = None

    def enabled_domains(self) -> dict[str, DomainConfig]:
        """Domain tables with ``enabled = true``, in configuration order."""
        return {name: cfg for name, cfg in self.domains.items() if cfg.enabled}

    def interval_for(self, name: str) -> float:
        """Polling interval for *name*, falling back to the scheduler default."""
        cfg = self.domains.get(name)
        if cfg is not None and cfg.interval is not None:
            return cfg.interval
        return self.scheduler.default_interval
