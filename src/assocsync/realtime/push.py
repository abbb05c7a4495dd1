"""PushBridge — feed push-style updates (e.g. from a socket) into the store.

Polling is the default transport; a push source only needs to hand plain
messages to :meth:`PushBridge.handle`:

    {"op": "upsert", "domain": "members", "item": {...}}
    {"op": "remove", "domain": "members", "id": 42}
    {"op": "replace", "domain": "stats", "payload": {...}}
    {"op": "invalidate", "domain": "events"}

Malformed messages are logged and dropped.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import ValidationError

from assocsync.domain.actions import (
    Action,
    FetchSuccess,
    Invalidate,
    ItemRemove,
    ItemUpsert,
)
from assocsync.domain.types import FetchMode
from assocsync.realtime.store import RealtimeStore
from assocsync.realtime.timers import Timer

logger = logging.getLogger(__name__)


class PushBridge:
    """Translate push messages into store actions."""

    def __init__(self, store: RealtimeStore, *, timer: Timer | None = None) -> None:
        self._store = store
        self._timer = timer
        self.accepted = 0
        self.rejected = 0

    def to_action(self, message: Mapping[str, Any]) -> Action | None:
        """Build the action for *message*, or None if it is not understood."""
        op = message.get("op")
        domain = message.get("domain")
        try:
            if op == "upsert" and "item" in message:
                return ItemUpsert(domain=domain, item=message["item"])
            if op == "remove" and "id" in message:
                return ItemRemove(domain=domain, id=message["id"])
            if op == "replace" and "payload" in message:
                extra = {"at": self._timer.now()} if self._timer is not None else {}
                return FetchSuccess(
                    domain=domain,
                    payload=message["payload"],
                    mode=FetchMode.REPLACE,
                    **extra,
                )
            if op == "invalidate":
                return Invalidate(domain=domain)
        except (ValidationError, ValueError) as exc:
            logger.warning("Rejected push message for %r: %s", domain, exc)
            return None
        logger.warning("Unknown push message op=%r domain=%r", op, domain)
        return None

    def handle(self, message: Mapping[str, Any]) -> bool:
        """Dispatch one message.  Returns whether it was accepted."""
        action = self.to_action(message)
        if action is None:
            self.rejected += 1
            return False
        self._store.dispatch(action)
        self.accepted += 1
        return True

    def handle_many(self, messages: Iterable[Mapping[str, Any]]) -> int:
        """Dispatch messages in order.  Returns how many were accepted."""
        return sum(1 for message in messages if self.handle(message))
