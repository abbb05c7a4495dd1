"""Reconciler — merge payloads into a DomainCache, copy-on-write.

Every function returns the *same* object when nothing changed and a new one
otherwise, so downstream change detection is a reference comparison.
Collection domains hold their items as a tuple of frozen mappings; items are
matched by a key function (``key_by("id")`` by default).
"""

from __future__ import annotations

from collections.abc import Callable, Hashable, Mapping, Sequence
from typing import Any

from assocsync.domain.cache import DomainCache, freeze
from assocsync.domain.types import CacheStatus
from assocsync.realtime.errors import DecodeError

KeyFn = Callable[[Any], Hashable]


def key_by(field: str) -> KeyFn:
    """Build a key function reading *field* from a mapping item."""

    def _key(item: Any) -> Hashable:
        if not isinstance(item, Mapping):
            msg = f"Item is not a mapping: {type(item).__name__}"
            raise DecodeError(msg, field=field)
        try:
            return item[field]
        except KeyError:
            msg = f"Item is missing key field {field!r}"
            raise DecodeError(msg, field=field) from None

    return _key


DEFAULT_KEY = key_by("id")


def _settled(old: DomainCache, at: float) -> dict[str, Any]:
    """Fields common to every successful fetch."""
    last = old.last_fetched_at
    return {
        "status": CacheStatus.FRESH,
        "error": None,
        "in_flight": False,
        "failure_count": 0,
        "stale": False,
        "last_fetched_at": at if last is None else max(last, at),
    }


def _apply(old: DomainCache, update: dict[str, Any]) -> DomainCache:
    if all(getattr(old, name) == value for name, value in update.items()):
        return old
    return old.model_copy(update=update)


def replace(old: DomainCache, payload: Any, *, at: float) -> DomainCache:
    """Full snapshot replace; clears the error and marks the cache fresh."""
    update = _settled(old, at)
    frozen = freeze(payload)
    if frozen != old.data:
        update["data"] = frozen
        update["version"] = old.version + 1
    return _apply(old, update)


def _collection(old: DomainCache) -> tuple[Any, ...]:
    if old.data is None:
        return ()
    if not isinstance(old.data, tuple):
        msg = "Cached data is not a collection"
        raise DecodeError(msg, data_type=type(old.data).__name__)
    return old.data


def _merge(current: tuple[Any, ...], items: Sequence[Any], key_fn: KeyFn) -> tuple[Any, ...]:
    merged = list(current)
    index = {key_fn(item): pos for pos, item in enumerate(merged)}
    for item in items:
        key = key_fn(item)
        frozen = freeze(item)
        pos = index.get(key)
        if pos is None:
            index[key] = len(merged)
            merged.append(frozen)
        elif merged[pos] != frozen:
            merged[pos] = frozen
    return tuple(merged)


def patch(
    old: DomainCache,
    items: Any,
    key_fn: KeyFn = DEFAULT_KEY,
    *,
    at: float | None = None,
) -> DomainCache:
    """Upsert *items* into the collection, keeping items absent from the patch.

    With *at* the patch counts as a completed fetch (status fresh, timestamp
    advanced).  Without it, the status is left alone except that an idle
    domain becomes fresh once it holds data.

    Raises:
        DecodeError: *items* is not a sequence of keyed mappings, or the
            cached data is not a collection.
    """
    if isinstance(items, (str, bytes, Mapping)) or not isinstance(items, Sequence):
        msg = "Patch payload must be a sequence of items"
        raise DecodeError(msg, payload_type=type(items).__name__)

    current = _collection(old)
    merged = _merge(current, items, key_fn)

    update: dict[str, Any] = {}
    if at is not None:
        update.update(_settled(old, at))
    elif old.status == CacheStatus.IDLE and merged:
        update["status"] = CacheStatus.FRESH
    if merged != current or (old.data is None and at is not None):
        update["data"] = merged
        update["version"] = old.version + 1
    return _apply(old, update)


def upsert(old: DomainCache, item: Any, key_fn: KeyFn = DEFAULT_KEY) -> DomainCache:
    """Insert or replace a single item (push-style update)."""
    return patch(old, [item], key_fn)


def remove(old: DomainCache, item_id: Hashable, key_fn: KeyFn = DEFAULT_KEY) -> DomainCache:
    """Remove the item keyed *item_id*; a missing item is a no-op."""
    if old.data is None:
        return old
    current = _collection(old)
    kept = tuple(item for item in current if key_fn(item) != item_id)
    if len(kept) == len(current):
        return old
    return old.model_copy(update={"data": kept, "version": old.version + 1})
