"""RealtimeStore — the single mutation surface for cached dashboard data.

Constructed once at application start and passed to every consumer.
Consumers read with ``get_snapshot`` and observe with ``subscribe``; every
write is an action passed to ``dispatch``.

INVARIANT: Dispatches commit strictly in the order they are issued.  An action
dispatched from inside a subscriber callback is queued and committed after
the current fan-out completes.
INVARIANT: A subscriber that raises never prevents delivery to the others.
"""

from __future__ import annotations

import itertools
from collections import deque
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import Any

import structlog
from pydantic import ValidationError

from assocsync.domain.actions import Action, Invalidate, parse_action
from assocsync.domain.cache import UNINITIALIZED, DomainCache, StoreState, is_outdated
from assocsync.domain.types import ConnectionStatus, normalize_domain
from assocsync.realtime.errors import DecodeError, SubscriberError
from assocsync.realtime.reconciler import KeyFn, key_by
from assocsync.realtime.reducer import reduce

logger = structlog.get_logger(__name__)

Listener = Callable[[frozenset[str]], None]


@dataclass
class Subscription:
    """A registered consumer.  ``domains`` of None watches every domain."""

    id: int
    domains: frozenset[str] | None
    callback: Listener
    active: bool = True

    def watches(self, changed: frozenset[str]) -> bool:
        return self.domains is None or not self.domains.isdisjoint(changed)


class RealtimeStore:
    """Aggregates every domain cache behind a dispatch/subscribe contract.

    Parameters:
        key_fields: Per-domain item key field for collection domains
            (defaults to ``"id"``).
        initial_state: Starting state, mainly for tests and replays.
    """

    def __init__(
        self,
        *,
        key_fields: Mapping[str, str] | None = None,
        initial_state: StoreState | None = None,
    ) -> None:
        self._state = initial_state if initial_state is not None else StoreState()
        self._key_fns: dict[str, KeyFn] = {
            normalize_domain(d): key_by(f) for d, f in (key_fields or {}).items()
        }
        self._subscriptions: dict[int, Subscription] = {}
        self._ids = itertools.count(1)
        self._queue: deque[Action] = deque()
        self._dispatching = False

    # ------------------------------------------------------------------
    # Read contract
    # ------------------------------------------------------------------

    @property
    def state(self) -> StoreState:
        """The current immutable state."""
        return self._state

    @property
    def connection_status(self) -> ConnectionStatus:
        return self._state.connection_status

    def get_snapshot(self, domain: str) -> DomainCache:
        """Current cache for *domain*; the idle sentinel if never touched."""
        return self._state.domains.get(str(domain), UNINITIALIZED)

    def domains(self) -> list[str]:
        """Domains initialized so far, in first-use order."""
        return list(self._state.domains)

    def key_fn(self, domain: str) -> KeyFn | None:
        return self._key_fns.get(str(domain))

    def register_key(self, domain: str, field: str) -> None:
        """Set the item key field used for *domain* collections."""
        self._key_fns[normalize_domain(domain)] = key_by(field)

    # ------------------------------------------------------------------
    # Write contract
    # ------------------------------------------------------------------

    def dispatch(self, action: Action | dict[str, Any]) -> None:
        """Apply *action* through the reducer and notify subscribers.

        Never raises for bad input: malformed actions and updates that cannot
        be applied are logged and dropped.
        """
        if isinstance(action, dict):
            try:
                action = parse_action(action)
            except ValidationError as exc:
                logger.warning("store.action_invalid", errors=exc.error_count())
                return

        self._queue.append(action)
        if self._dispatching:
            return
        self._dispatching = True
        try:
            while self._queue:
                self._commit(self._queue.popleft())
        finally:
            self._dispatching = False

    def subscribe(
        self,
        domains: Iterable[str] | str | None,
        callback: Listener,
    ) -> Callable[[], None]:
        """Register *callback* for changes to *domains* (None for all).

        The callback receives the set of changed domains.  Returns an
        idempotent disposer; once called, the callback never fires again.
        """
        watched: frozenset[str] | None
        if domains is None:
            watched = None
        elif isinstance(domains, str):
            watched = frozenset({normalize_domain(domains)})
        else:
            watched = frozenset(normalize_domain(d) for d in domains)

        sub = Subscription(id=next(self._ids), domains=watched, callback=callback)
        self._subscriptions[sub.id] = sub

        def unsubscribe() -> None:
            sub.active = False
            self._subscriptions.pop(sub.id, None)

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def invalidate_older_than(
        self,
        max_age: float,
        now: float,
        *,
        domains: Iterable[str] | None = None,
    ) -> list[str]:
        """Mark caches whose data is older than *max_age* seconds as stale.

        Returns the domains that were invalidated.
        """
        targets = list(domains) if domains is not None else self.domains()
        invalidated: list[str] = []
        for domain in targets:
            cache = self.get_snapshot(domain)
            if is_outdated(cache, now, max_age):
                self.dispatch(Invalidate(domain=domain))
                invalidated.append(str(domain))
        return invalidated

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _commit(self, action: Action) -> None:
        previous = self._state
        if action.domain not in previous.domains:
            logger.debug("store.domain_registered", domain=action.domain)
        try:
            nxt = reduce(previous, action, key_fns=self._key_fns)
        except DecodeError as exc:
            logger.warning(
                "store.update_rejected",
                domain=action.domain,
                action=action.type,
                error=exc.message,
            )
            return

        if nxt is previous:
            return
        self._state = nxt
        changed = frozenset(
            domain
            for domain, cache in nxt.domains.items()
            if previous.domains.get(domain, UNINITIALIZED) is not cache
        )
        if changed:
            self._fan_out(changed)

    def _fan_out(self, changed: frozenset[str]) -> None:
        """Notify matching subscribers in registration order."""
        for sub in list(self._subscriptions.values()):
            if not sub.active or not sub.watches(changed):
                continue
            try:
                sub.callback(changed)
            except Exception as exc:
                error = SubscriberError(sub.id, exc)
                logger.warning(
                    "store.subscriber_failed",
                    subscription_id=sub.id,
                    error=error.message,
                    exc_info=True,
                )
