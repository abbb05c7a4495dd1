"""Shared pytest fixtures and test helpers for assocsync tests."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any

import pytest
from click.testing import CliRunner

from assocsync.domain.cache import ErrorInfo
from assocsync.domain.types import ErrorKind
from assocsync.realtime.adapters import FetchParams, FetchResult
from assocsync.realtime.scheduler import PollScheduler
from assocsync.realtime.store import RealtimeStore
from assocsync.realtime.timers import ManualTimer


@pytest.fixture
def cli_runner() -> CliRunner:
    """Provide a Click CLI test runner."""
    return CliRunner()


@pytest.fixture
def timer() -> ManualTimer:
    """Deterministic timer starting at t=1000."""
    return ManualTimer(start=1000.0)


@pytest.fixture
def store() -> RealtimeStore:
    return RealtimeStore(key_fields={"members": "id", "events": "id"})


@pytest.fixture
def scheduler(store: RealtimeStore, timer: ManualTimer) -> PollScheduler:
    return PollScheduler(store, timer=timer, default_interval=30.0, backoff_ceiling=8)


@pytest.fixture
def _isolated_project(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Run the CLI from an empty temp directory with no config overrides.

    Use via ``@pytest.mark.usefixtures("_isolated_project")``.
    """
    monkeypatch.delenv("ASSOCSYNC_CONFIG", raising=False)
    monkeypatch.chdir(tmp_path)


# ---------------------------------------------------------------------------
# Fake fetch adapters
# ---------------------------------------------------------------------------


def network_failure(message: str = "connection refused") -> FetchResult:
    return FetchResult.failure(ErrorInfo(kind=ErrorKind.NETWORK, message=message))


class ScriptedAdapter:
    """Synchronous adapter replaying *outcomes*; the last one repeats."""

    def __init__(self, *outcomes: Any) -> None:
        assert outcomes, "at least one outcome required"
        self._outcomes = list(outcomes)
        self.calls: list[FetchParams] = []

    def __call__(self, params: FetchParams) -> Any:
        self.calls.append(params)
        if len(self._outcomes) > 1:
            return self._outcomes.pop(0)
        return self._outcomes[0]


class GatedAdapter:
    """Async adapter whose fetches stay pending until ``release`` is called."""

    def __init__(self, payload: Any) -> None:
        self.payload = payload
        self.calls: list[FetchParams] = []
        self._gate = asyncio.Event()

    def release(self) -> None:
        self._gate.set()

    def __call__(self, params: FetchParams) -> Any:
        self.calls.append(params)
        return self._fetch()

    async def _fetch(self) -> Any:
        await self._gate.wait()
        return self.payload
