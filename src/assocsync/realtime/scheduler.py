"""PollScheduler — periodic per-domain refresh with dedup and backoff.

Each domain runs its own timer:

    idle -> scheduled -> fetching -> (fresh | failed) -> scheduled -> ...

INVARIANT: At most one fetch is in flight per domain.  A tick that finds the
previous fetch unresolved is skipped.
INVARIANT: ``stop`` cancels future ticks only; an in-flight fetch still
completes and its result is still dispatched.

Domains never wait on each other.  Awaitable adapters run as tasks on the
running event loop, bounded by ``asyncio.wait_for``.
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Awaitable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

import structlog

from assocsync.domain.actions import FetchError, FetchStart, FetchSuccess, Invalidate
from assocsync.domain.cache import ErrorInfo, is_outdated
from assocsync.domain.types import CacheStatus, ErrorKind, FetchMode, normalize_domain
from assocsync.realtime.adapters import (
    FetchAdapter,
    FetchParams,
    FetchResult,
    error_from_exception,
    to_result,
)
from assocsync.realtime.errors import FetchTimeoutError, NetworkError
from assocsync.realtime.store import RealtimeStore
from assocsync.realtime.timers import Cancellable, LoopTimer, Timer

logger = structlog.get_logger(__name__)


class PollState(StrEnum):
    """Scheduler-side state of one domain's poll job."""

    IDLE = "idle"
    SCHEDULED = "scheduled"
    FETCHING = "fetching"
    FAILED = "failed"


@dataclass
class PollStats:
    """Running counters for one domain."""

    attempts: int = 0
    successes: int = 0
    failures: int = 0
    skipped: int = 0
    last_latency: float | None = None
    last_error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "attempts": self.attempts,
            "successes": self.successes,
            "failures": self.failures,
            "skipped": self.skipped,
            "last_latency": self.last_latency,
            "last_error": self.last_error,
        }


@dataclass
class _PollJob:
    domain: str
    adapter: FetchAdapter
    interval: float
    mode: FetchMode = FetchMode.REPLACE
    stale_after: float | None = None
    running: bool = False
    in_flight: bool = False
    failures: int = 0
    handle: Cancellable | None = None
    next_delay: float | None = None
    stats: PollStats = field(default_factory=PollStats)


class PollScheduler:
    """Drives fetch adapters and feeds their results into a RealtimeStore.

    Parameters:
        store: Store receiving FETCH_* actions.
        timer: Clock and callback scheduler (``LoopTimer`` by default).
        default_interval: Polling interval in seconds when ``start`` gets none.
        backoff_ceiling: Maximum backoff multiplier applied to the interval.
        fetch_timeout: Seconds an adapter may take before the fetch fails.
        immediate_first_fetch: Fetch on ``start`` instead of after one interval.
    """

    def __init__(
        self,
        store: RealtimeStore,
        *,
        timer: Timer | None = None,
        default_interval: float = 30.0,
        backoff_ceiling: int = 8,
        fetch_timeout: float = 10.0,
        immediate_first_fetch: bool = True,
    ) -> None:
        if default_interval <= 0:
            msg = "default_interval must be positive"
            raise ValueError(msg)
        if backoff_ceiling < 1:
            msg = "backoff_ceiling must be at least 1"
            raise ValueError(msg)
        self._store = store
        self._timer: Timer = timer or LoopTimer()
        self._default_interval = default_interval
        self._backoff_ceiling = backoff_ceiling
        self._fetch_timeout = fetch_timeout
        self._immediate = immediate_first_fetch
        self._jobs: dict[str, _PollJob] = {}
        self._tasks: set[asyncio.Task[None]] = set()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(
        self,
        domain: str,
        interval: float | None = None,
        adapter: FetchAdapter | None = None,
        *,
        mode: FetchMode = FetchMode.REPLACE,
        stale_after: float | None = None,
        immediate: bool | None = None,
    ) -> None:
        """Begin polling *domain*.

        Restarting a running domain replaces its settings and timer; a fetch
        already in flight is kept and still counts toward deduplication.
        """
        key = normalize_domain(domain)
        period = interval if interval is not None else self._default_interval
        if period <= 0:
            msg = f"Polling interval for {key!r} must be positive"
            raise ValueError(msg)

        job = self._jobs.get(key)
        if job is None:
            if adapter is None:
                msg = f"No fetch adapter registered for {key!r}"
                raise ValueError(msg)
            job = _PollJob(domain=key, adapter=adapter, interval=period)
            self._jobs[key] = job
        else:
            self._cancel(job)
            if adapter is not None:
                job.adapter = adapter
            job.interval = period
            job.failures = 0
        job.mode = mode
        job.stale_after = stale_after
        job.running = True

        logger.debug("poll.started", domain=key, interval=period)
        fire_now = self._immediate if immediate is None else immediate
        if fire_now and not job.in_flight:
            self._fetch(job, from_tick=True)
        else:
            self._schedule(job, period)

    def stop(self, domain: str) -> None:
        """Cancel future ticks for *domain*; an in-flight fetch still lands."""
        job = self._jobs.get(str(domain))
        if job is None or not job.running:
            return
        job.running = False
        self._cancel(job)
        logger.debug("poll.stopped", domain=job.domain, in_flight=job.in_flight)

    def stop_all(self) -> None:
        for domain in list(self._jobs):
            self.stop(domain)

    async def drain(self) -> None:
        """Wait for every in-flight awaitable fetch to complete."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self) -> None:
        """Stop every domain, then wait for trailing fetches."""
        self.stop_all()
        await self.drain()

    def refresh(self, domain: str) -> bool:
        """Fetch *domain* now, outside the regular cadence.

        Returns False if the domain has no adapter or a fetch is in flight.
        """
        job = self._jobs.get(str(domain))
        if job is None:
            logger.debug("poll.refresh_unknown", domain=str(domain))
            return False
        if job.in_flight:
            job.stats.skipped += 1
            return False
        self._fetch(job, from_tick=False)
        return True

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def domains(self) -> list[str]:
        return list(self._jobs)

    def is_running(self, domain: str) -> bool:
        job = self._jobs.get(str(domain))
        return job is not None and job.running

    def is_in_flight(self, domain: str) -> bool:
        job = self._jobs.get(str(domain))
        return job is not None and job.in_flight

    def poll_state(self, domain: str) -> PollState:
        job = self._jobs.get(str(domain))
        if job is None:
            return PollState.IDLE
        if job.in_flight:
            return PollState.FETCHING
        if not job.running:
            return PollState.IDLE
        if job.failures:
            return PollState.FAILED
        return PollState.SCHEDULED

    def next_delay(self, domain: str) -> float | None:
        """Delay used for the most recently scheduled tick of *domain*."""
        job = self._jobs.get(str(domain))
        return job.next_delay if job is not None else None

    def stats(self, domain: str) -> PollStats:
        job = self._jobs.get(str(domain))
        return job.stats if job is not None else PollStats()

    def backoff_delay(self, interval: float, failures: int) -> float:
        """Delay after *failures* consecutive failures: interval x 1, 2, 4 ... capped."""
        if failures <= 0:
            return interval
        multiplier = min(2 ** (failures - 1), self._backoff_ceiling)
        return interval * multiplier

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _schedule(self, job: _PollJob, delay: float) -> None:
        self._cancel(job)
        job.next_delay = delay
        job.handle = self._timer.call_later(delay, lambda: self._tick(job))

    def _cancel(self, job: _PollJob) -> None:
        if job.handle is not None:
            job.handle.cancel()
            job.handle = None

    def _tick(self, job: _PollJob) -> None:
        job.handle = None
        if not job.running:
            return
        if job.in_flight:
            job.stats.skipped += 1
            logger.debug("poll.skipped", domain=job.domain)
            self._sweep(job)
            self._schedule(job, self.backoff_delay(job.interval, job.failures))
            return
        self._fetch(job, from_tick=True)

    def _sweep(self, job: _PollJob) -> None:
        if job.stale_after is None:
            return
        cache = self._store.get_snapshot(job.domain)
        if is_outdated(cache, self._timer.now(), job.stale_after):
            self._store.dispatch(Invalidate(domain=job.domain))

    def _fetch(self, job: _PollJob, *, from_tick: bool) -> None:
        job.in_flight = True
        job.stats.attempts += 1
        if from_tick and job.running:
            self._schedule(job, self.backoff_delay(job.interval, job.failures))

        self._store.dispatch(FetchStart(domain=job.domain))
        started = self._timer.now()
        params = FetchParams(
            domain=job.domain,
            timeout=self._fetch_timeout,
            since=self._store.get_snapshot(job.domain).last_fetched_at,
        )
        try:
            outcome = job.adapter(params)
        except Exception as exc:
            logger.warning("poll.adapter_raised", domain=job.domain, error=str(exc))
            self._complete(job, started, FetchResult.failure(error_from_exception(exc)))
            return

        if inspect.isawaitable(outcome):
            self._spawn(job, outcome, started)
        else:
            self._complete(job, started, to_result(outcome))

    def _spawn(self, job: _PollJob, awaitable: Awaitable[Any], started: float) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            error = NetworkError("Awaitable adapter requires a running event loop")
            self._complete(job, started, FetchResult.failure(error))
            return
        task = loop.create_task(self._await(job, awaitable, started))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _await(self, job: _PollJob, awaitable: Awaitable[Any], started: float) -> None:
        try:
            value = await asyncio.wait_for(awaitable, timeout=self._fetch_timeout)
        except TimeoutError:
            error = FetchTimeoutError(
                f"Fetch for {job.domain!r} exceeded {self._fetch_timeout}s",
                timeout=self._fetch_timeout,
            )
            result = FetchResult.failure(error)
        except Exception as exc:
            result = FetchResult.failure(error_from_exception(exc))
        else:
            result = to_result(value)
        self._complete(job, started, result)

    def _complete(self, job: _PollJob, started: float, result: FetchResult) -> None:
        job.in_flight = False
        now = self._timer.now()
        job.stats.last_latency = max(0.0, now - started)

        error: ErrorInfo | None = None
        if result.ok:
            self._store.dispatch(
                FetchSuccess(
                    domain=job.domain,
                    payload=result.payload,
                    mode=result.mode or job.mode,
                    at=now,
                )
            )
            cache = self._store.get_snapshot(job.domain)
            if cache.status == CacheStatus.ERROR:
                error = cache.error
        else:
            error = result.error or ErrorInfo(
                kind=ErrorKind.NETWORK, message="Unknown fetch failure"
            )
            self._store.dispatch(FetchError(domain=job.domain, error=error, at=now))

        if error is None:
            self._succeeded(job)
        else:
            self._failed(job, error)

    def _succeeded(self, job: _PollJob) -> None:
        recovering = job.failures > 0
        job.failures = 0
        job.stats.successes += 1
        job.stats.last_error = None
        logger.debug("poll.succeeded", domain=job.domain, latency=job.stats.last_latency)
        if job.running and (job.handle is None or recovering):
            self._schedule(job, job.interval)

    def _failed(self, job: _PollJob, error: ErrorInfo) -> None:
        job.failures += 1
        job.stats.failures += 1
        job.stats.last_error = error.message
        delay = self.backoff_delay(job.interval, job.failures)
        logger.warning(
            "poll.failed",
            domain=job.domain,
            kind=str(error.kind),
            error=error.message,
            failures=job.failures,
            retry_in=delay,
        )
        if job.running:
            self._schedule(job, delay)
