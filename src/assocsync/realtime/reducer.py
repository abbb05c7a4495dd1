"""Pure reducer: ``(StoreState, Action) -> StoreState``.

No I/O and no logging happen here.  A malformed fetch payload is recorded on
the cache as a decode error; a malformed push update raises ``DecodeError``
for the store to log, leaving state unchanged.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from types import MappingProxyType
from typing import assert_never

from assocsync.domain.actions import (
    Action,
    FetchError,
    FetchStart,
    FetchSuccess,
    Invalidate,
    ItemRemove,
    ItemUpsert,
    Reset,
)
from assocsync.domain.cache import (
    UNINITIALIZED,
    DomainCache,
    StoreState,
    derive_connection_status,
    record_outcome,
)
from assocsync.domain.types import CacheStatus, FetchMode
from assocsync.realtime import reconciler
from assocsync.realtime.errors import DecodeError
from assocsync.realtime.reconciler import DEFAULT_KEY, KeyFn


def _failed(cache: DomainCache, action: FetchError) -> DomainCache:
    error = action.error
    if error.occurred_at is None:
        error = error.model_copy(update={"occurred_at": action.at})
    return cache.model_copy(
        update={
            "status": CacheStatus.ERROR,
            "error": error,
            "in_flight": False,
            "failure_count": cache.failure_count + 1,
        }
    )


def _succeeded(cache: DomainCache, action: FetchSuccess, key_fn: KeyFn) -> DomainCache:
    try:
        if action.mode == FetchMode.PATCH:
            return reconciler.patch(cache, action.payload, key_fn, at=action.at)
        return reconciler.replace(cache, action.payload, at=action.at)
    except DecodeError as exc:
        failure = FetchError(domain=action.domain, error=exc.to_info(action.at), at=action.at)
        return _failed(cache, failure)


def _invalidated(cache: DomainCache) -> DomainCache:
    """Fresh data turns ``stale``; data behind a slow or failed fetch gets the marker."""
    if cache.status == CacheStatus.FRESH:
        return cache.model_copy(update={"status": CacheStatus.STALE, "stale": True})
    if cache.data is None or cache.stale:
        return cache
    return cache.model_copy(update={"stale": True})


def reduce_cache(cache: DomainCache, action: Action, key_fn: KeyFn = DEFAULT_KEY) -> DomainCache:
    """Apply *action* to a single domain cache."""
    match action:
        case FetchStart():
            if cache.status == CacheStatus.LOADING and cache.in_flight:
                return cache
            return cache.model_copy(update={"status": CacheStatus.LOADING, "in_flight": True})
        case FetchSuccess():
            return _succeeded(cache, action, key_fn)
        case FetchError():
            return _failed(cache, action)
        case ItemUpsert():
            return reconciler.upsert(cache, action.item, key_fn)
        case ItemRemove():
            return reconciler.remove(cache, action.id, key_fn)
        case Reset():
            return UNINITIALIZED
        case Invalidate():
            return _invalidated(cache)
        case _:
            assert_never(action)


def reduce(
    state: StoreState,
    action: Action,
    *,
    key_fns: Mapping[str, KeyFn] | None = None,
) -> StoreState:
    """Return the next state.  Unknown domains start from the idle sentinel.

    Only the touched domain's cache is replaced; every other cache is shared
    with *state*.  *state* itself is returned when nothing changed.

    Raises:
        DecodeError: an item update could not be applied.
    """
    key_fn = (key_fns or {}).get(action.domain, DEFAULT_KEY)
    current = state.domains.get(action.domain)
    cache = current if current is not None else UNINITIALIZED
    updated = reduce_cache(cache, action, key_fn)
    outcomes = _track_outcome(state.outcomes, action, updated)
    if updated is cache and current is not None and outcomes is state.outcomes:
        return state
    domains = dict(state.domains)
    domains[action.domain] = updated
    return StoreState(
        domains=MappingProxyType(domains),
        connection_status=derive_connection_status(domains, outcomes),
        outcomes=outcomes,
    )


def _track_outcome(
    outcomes: Mapping[str, tuple[bool, ...]],
    action: Action,
    updated: DomainCache,
) -> Mapping[str, tuple[bool, ...]]:
    """Record fetch results; a reset forgets the domain's history."""
    if isinstance(action, Reset):
        if action.domain not in outcomes:
            return outcomes
        return MappingProxyType({k: v for k, v in outcomes.items() if k != action.domain})
    if not isinstance(action, (FetchSuccess, FetchError)):
        return outcomes
    ok = isinstance(action, FetchSuccess) and updated.status != CacheStatus.ERROR
    history = record_outcome(outcomes.get(action.domain, ()), ok)
    return MappingProxyType({**outcomes, action.domain: history})


def fold(
    actions: Iterable[Action],
    state: StoreState | None = None,
    *,
    key_fns: Mapping[str, KeyFn] | None = None,
) -> StoreState:
    """Reduce a sequence of actions, skipping those that raise ``DecodeError``."""
    result = state if state is not None else StoreState()
    for action in actions:
        try:
            result = reduce(result, action, key_fns=key_fns)
        except DecodeError:
            continue
    return result
