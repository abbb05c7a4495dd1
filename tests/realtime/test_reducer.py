"""Tests for the pure reducer."""

from __future__ import annotations

from assocsync.domain.actions import (
    FetchError,
    FetchStart,
    FetchSuccess,
    Invalidate,
    ItemRemove,
    ItemUpsert,
    Reset,
)
from assocsync.domain.cache import UNINITIALIZED, ErrorInfo, StoreState
from assocsync.domain.types import CacheStatus, ConnectionStatus, ErrorKind, FetchMode
from assocsync.realtime.reducer import fold, reduce, reduce_cache


def _error(message: str = "down") -> ErrorInfo:
    return ErrorInfo(kind=ErrorKind.NETWORK, message=message)


SEQUENCE = [
    FetchStart(domain="stats"),
    FetchSuccess(domain="stats", payload={"totalMembers": 1250}, at=10.0),
    FetchStart(domain="members"),
    FetchSuccess(domain="members", payload=[{"id": 1, "name": "A"}], at=11.0),
    ItemUpsert(domain="members", item={"id": 2, "name": "B"}),
    FetchStart(domain="stats"),
    FetchError(domain="stats", error=_error(), at=40.0),
    ItemRemove(domain="members", id=1),
    Invalidate(domain="members"),
]


class TestDeterminism:
    def test_fold_is_deterministic(self) -> None:
        assert fold(SEQUENCE) == fold(SEQUENCE)

    def test_fold_matches_step_by_step_reduce(self) -> None:
        state = StoreState()
        for action in SEQUENCE:
            state = reduce(state, action)
        folded = fold(SEQUENCE)
        assert state.domains.keys() == folded.domains.keys()
        for domain in state.domains:
            assert state.get(domain) == folded.get(domain)

    def test_input_state_is_not_mutated(self) -> None:
        start = fold(SEQUENCE[:2])
        before = dict(start.domains)
        reduce(start, FetchStart(domain="stats"))
        assert dict(start.domains) == before


class TestFetchLifecycle:
    def test_stats_scenario(self) -> None:
        state = reduce(StoreState(), FetchStart(domain="stats"))
        loading = state.get("stats")
        assert loading.status == CacheStatus.LOADING
        assert loading.in_flight is True

        state = reduce(state, FetchSuccess(domain="stats", payload={"totalMembers": 1250}))
        snapshot = state.get("stats")
        assert snapshot.data == {"totalMembers": 1250}
        assert snapshot.status == CacheStatus.FRESH
        assert snapshot.error is None
        assert snapshot.in_flight is False

    def test_replace_is_idempotent_in_content(self) -> None:
        once = fold([FetchSuccess(domain="stats", payload={"a": 1}, at=10.0)])
        twice = fold(
            [
                FetchSuccess(domain="stats", payload={"a": 1}, at=10.0),
                FetchSuccess(domain="stats", payload={"a": 1}, at=20.0),
            ]
        )
        a, b = once.get("stats"), twice.get("stats")
        assert a.data == b.data
        assert (a.status, a.error, a.version) == (b.status, b.error, b.version)
        assert b.last_fetched_at == 20.0

    def test_error_keeps_last_good_data(self) -> None:
        state = fold(
            [
                FetchSuccess(domain="stats", payload={"totalMembers": 1250}, at=10.0),
                FetchStart(domain="stats"),
                FetchError(domain="stats", error=_error(), at=20.0),
            ]
        )
        snapshot = state.get("stats")
        assert snapshot.status == CacheStatus.ERROR
        assert snapshot.data == {"totalMembers": 1250}
        assert snapshot.error is not None
        assert snapshot.error.occurred_at == 20.0
        assert snapshot.in_flight is False
        assert snapshot.failure_count == 1
        assert snapshot.last_fetched_at == 10.0

    def test_repeated_fetch_start_is_noop(self) -> None:
        state = reduce(StoreState(), FetchStart(domain="stats"))
        assert reduce(state, FetchStart(domain="stats")) is state

    def test_bad_patch_payload_becomes_decode_error(self) -> None:
        state = fold(
            [
                FetchSuccess(domain="members", payload=[{"id": 1}], at=1.0),
                FetchSuccess(domain="members", payload="garbage", mode=FetchMode.PATCH, at=2.0),
            ]
        )
        snapshot = state.get("members")
        assert snapshot.status == CacheStatus.ERROR
        assert snapshot.error is not None
        assert snapshot.error.kind == ErrorKind.DECODE
        assert snapshot.data == ({"id": 1},)


class TestItemUpdates:
    def test_upsert_replaces_existing_member(self) -> None:
        state = fold(
            [
                FetchSuccess(domain="members", payload=[{"id": 1, "name": "A"}]),
                ItemUpsert(domain="members", item={"id": 1, "name": "B"}),
            ]
        )
        data = state.get("members").data
        assert len(data) == 1
        assert data[0]["name"] == "B"

    def test_fold_skips_rejected_updates(self) -> None:
        state = fold(
            [
                FetchSuccess(domain="stats", payload={"totalMembers": 1}),
                ItemUpsert(domain="stats", item={"id": 1}),
            ]
        )
        assert state.get("stats").data == {"totalMembers": 1}


class TestResetAndInvalidate:
    def test_reset_returns_sentinel(self) -> None:
        state = fold([FetchSuccess(domain="stats", payload={"a": 1}), Reset(domain="stats")])
        assert state.get("stats") is UNINITIALIZED
        assert "stats" in state.domains

    def test_invalidate_only_affects_fresh(self) -> None:
        fresh = fold([FetchSuccess(domain="stats", payload={"a": 1})])
        stale = reduce(fresh, Invalidate(domain="stats"))
        assert stale.get("stats").status == CacheStatus.STALE
        assert stale.get("stats").data == {"a": 1}

        cache = UNINITIALIZED
        assert reduce_cache(cache, Invalidate(domain="stats")) is cache

    def test_invalidate_marks_data_behind_a_pending_fetch(self) -> None:
        state = fold(
            [
                FetchSuccess(domain="stats", payload={"a": 1}, at=10.0),
                FetchStart(domain="stats"),
                Invalidate(domain="stats"),
            ]
        )
        cache = state.get("stats")
        assert cache.status == CacheStatus.LOADING
        assert cache.stale is True
        assert cache.data == {"a": 1}
        assert reduce(state, Invalidate(domain="stats")) is state

        refreshed = reduce(state, FetchSuccess(domain="stats", payload={"a": 2}, at=20.0))
        assert refreshed.get("stats").stale is False
        assert refreshed.get("stats").status == CacheStatus.FRESH


class TestStructuralSharing:
    def test_untouched_domains_are_shared(self) -> None:
        state = fold(
            [
                FetchSuccess(domain="stats", payload={"a": 1}),
                FetchSuccess(domain="members", payload=[{"id": 1}]),
            ]
        )
        nxt = reduce(state, FetchStart(domain="members"))
        assert nxt.get("stats") is state.get("stats")
        assert nxt.get("members") is not state.get("members")

    def test_unknown_domain_is_registered(self) -> None:
        state = reduce(StoreState(), Invalidate(domain="publications"))
        assert "publications" in state.domains
        assert state.get("publications") is UNINITIALIZED

    def test_connection_status_follows_errors(self) -> None:
        state = fold(
            [
                FetchSuccess(domain="stats", payload={"a": 1}),
                FetchError(domain="members", error=_error()),
            ]
        )
        assert state.connection_status == ConnectionStatus.DEGRADED
        state = reduce(state, FetchError(domain="stats", error=_error()))
        assert state.connection_status == ConnectionStatus.OFFLINE

    def test_recent_failures_outweigh_a_single_recovery(self) -> None:
        failures = [FetchError(domain="stats", error=_error()) for _ in range(3)]
        state = fold([*failures, FetchSuccess(domain="stats", payload={"a": 1})])
        assert state.get("stats").status == CacheStatus.FRESH
        assert state.failure_rate("stats") == 0.75
        assert state.connection_status == ConnectionStatus.DEGRADED

        recovered = fold([FetchSuccess(domain="stats", payload={"a": 1})] * 3, state)
        assert recovered.failure_rate("stats") == 3 / 7
        assert recovered.connection_status == ConnectionStatus.ONLINE

    def test_reset_forgets_fetch_history(self) -> None:
        state = fold(
            [
                FetchError(domain="stats", error=_error()),
                FetchSuccess(domain="stats", payload={"a": 1}),
                Reset(domain="stats"),
            ]
        )
        assert state.failure_rate("stats") is None
        assert state.connection_status == ConnectionStatus.ONLINE
