"""SyncService — wire settings, store, scheduler, adapters, and plugins.

The store is created once per service and handed to every consumer; the
scheduler and HTTP client are created per ``watch`` run.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING, Any

import httpx

from assocsync.domain.cache import summarize
from assocsync.domain.types import CacheStatus
from assocsync.infrastructure.http import HttpFetchAdapter
from assocsync.realtime.scheduler import PollScheduler
from assocsync.realtime.store import RealtimeStore
from assocsync.realtime.timers import LoopTimer
from assocsync.services.result import ServiceError, ServiceResult

if TYPE_CHECKING:
    from collections.abc import Iterable

    from assocsync.config.settings import SyncSettings
    from assocsync.plugins.manager import PluginManager
    from assocsync.realtime.adapters import FetchAdapter
    from assocsync.realtime.timers import Timer

logger = logging.getLogger(__name__)


class SyncService:
    """Runs the polling pipeline described by :class:`SyncSettings`.

    Parameters:
        settings: Resolved settings.
        store: Store to feed; a new one keyed per the domain config by default.
        timer: Time source for the scheduler (``LoopTimer`` by default).
        plugin_manager: Loaded plugin manager, or None to run without plugins.
        transport: Optional httpx transport (tests use ``httpx.MockTransport``).
    """

    def __init__(
        self,
        settings: SyncSettings,
        *,
        store: RealtimeStore | None = None,
        timer: Timer | None = None,
        plugin_manager: PluginManager | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings
        self._store = store or RealtimeStore(
            key_fields={name: cfg.key_field for name, cfg in settings.domains.items()}
        )
        self._timer = timer
        self._plugins = plugin_manager
        self._transport = transport
        self._scheduler: PollScheduler | None = None

    @property
    def store(self) -> RealtimeStore:
        return self._store

    @property
    def scheduler(self) -> PollScheduler | None:
        """Scheduler of the most recent ``watch`` run."""
        return self._scheduler

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def list_domains(self) -> ServiceResult:
        """Describe every configured domain."""
        base_url = self._settings.api.base_url
        items = [
            {
                "domain": name,
                "enabled": cfg.enabled,
                "interval": self._settings.interval_for(name),
                "key_field": cfg.key_field,
                "mode": str(cfg.mode),
                "stale_after": cfg.stale_after,
                "url": cfg.resolve_url(name, base_url),
            }
            for name, cfg in self._settings.domains.items()
        ]
        return ServiceResult(
            ok=True,
            op="list_domains",
            data={"count": len(items), "items": items},
        )

    async def watch(
        self,
        domains: Iterable[str] | None = None,
        *,
        duration: float = 0.0,
        once: bool = False,
    ) -> ServiceResult:
        """Poll *domains* (default: all enabled) and report their final state.

        With *once*, each domain is fetched exactly one time.  Otherwise the
        scheduler runs for *duration* seconds.
        """
        names, unknown = self._select(domains)
        if unknown:
            return ServiceResult(
                ok=False,
                op="watch",
                error=ServiceError(
                    code="UNKNOWN_DOMAIN",
                    message=f"Unknown or disabled domain(s): {', '.join(unknown)}",
                    detail={"unknown": unknown},
                ),
            )
        if not names:
            return ServiceResult(
                ok=False,
                op="watch",
                error=ServiceError(code="NO_DOMAINS", message="No enabled domains to watch"),
            )

        warnings: list[str] = []
        started = time.perf_counter()
        sched_cfg = self._settings.scheduler
        scheduler = PollScheduler(
            self._store,
            timer=self._timer or LoopTimer(),
            default_interval=sched_cfg.default_interval,
            backoff_ceiling=sched_cfg.backoff_ceiling,
            fetch_timeout=sched_cfg.fetch_timeout,
            immediate_first_fetch=sched_cfg.immediate_first_fetch,
        )
        self._scheduler = scheduler
        detach = self._plugins.attach(self._store) if self._plugins is not None else None

        try:
            async with httpx.AsyncClient(
                headers=self._settings.api.headers,
                transport=self._transport,
            ) as client:
                adapters = self._adapters(client, names, warnings)
                for name in names:
                    cfg = self._settings.domains[name]
                    scheduler.start(
                        name,
                        self._settings.interval_for(name),
                        adapters[name],
                        mode=cfg.mode,
                        stale_after=cfg.stale_after,
                        immediate=True if once else None,
                    )
                if once:
                    scheduler.stop_all()
                elif duration > 0:
                    await asyncio.sleep(duration)
                await scheduler.shutdown()
        finally:
            if detach is not None:
                detach()

        result = self._summary("watch", names, scheduler, warnings)
        meta = {"duration_ms": round((time.perf_counter() - started) * 1000, 2)}
        return result.model_copy(update={"meta": meta})

    def status(self, domains: Iterable[str] | None = None) -> ServiceResult:
        """Summarize the store's current view of *domains* (default: all seen)."""
        names = list(domains) if domains is not None else self._store.domains()
        return self._summary("status", names, self._scheduler, [])

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _select(self, domains: Iterable[str] | None) -> tuple[list[str], list[str]]:
        enabled = self._settings.enabled_domains()
        if domains is None:
            return list(enabled), []
        requested = [str(d) for d in domains]
        unknown = [d for d in requested if d not in enabled]
        return [d for d in requested if d in enabled], unknown

    def _adapters(
        self,
        client: httpx.AsyncClient,
        names: list[str],
        warnings: list[str],
    ) -> dict[str, FetchAdapter]:
        base_url = self._settings.api.base_url
        adapters: dict[str, FetchAdapter] = {}
        for name in names:
            cfg = self._settings.domains[name]
            adapters[name] = HttpFetchAdapter(
                client,
                cfg.resolve_url(name, base_url),
                data_key=cfg.data_key,
            )
        if self._plugins is not None:
            overrides = self._plugins.collect_fetch_adapters()
            for name, adapter in overrides.items():
                if name in adapters:
                    adapters[name] = adapter
                    logger.debug("Plugin adapter overrides HTTP for %s", name)
                else:
                    warnings.append(f"Plugin adapter for unwatched domain {name!r} ignored")
        return adapters

    def _summary(
        self,
        op: str,
        names: list[str],
        scheduler: PollScheduler | None,
        warnings: list[str],
    ) -> ServiceResult:
        now = (self._timer or LoopTimer()).now()
        report: dict[str, Any] = {}
        for name in names:
            entry = summarize(self._store.get_snapshot(name), now=now)
            entry["failure_rate"] = self._store.state.failure_rate(name)
            if scheduler is not None:
                entry["poll"] = scheduler.stats(name).to_dict()
            report[name] = entry

        data = {
            "connection_status": str(self._store.connection_status),
            "count": len(report),
            "domains": report,
        }
        failing = [n for n in names if self._store.get_snapshot(n).status == CacheStatus.ERROR]
        if names and len(failing) == len(names):
            return ServiceResult(
                ok=False,
                op=op,
                data=data,
                warnings=warnings,
                error=ServiceError(
                    code="ALL_DOMAINS_FAILED",
                    message="Every watched domain ended in error",
                    detail={"domains": failing},
                ),
            )
        for name in failing:
            warnings.append(f"{name}: {report[name]['error']['message']}")
        return ServiceResult(ok=True, op=op, data=data, warnings=warnings)
