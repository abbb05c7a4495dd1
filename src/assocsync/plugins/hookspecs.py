"""Pluggy hook specifications for assocsync.

One setup-time hook lets plugins contribute fetch adapters (e.g. a local
fixture source or a non-HTTP transport).  One commit hook observes every
store transition.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import pluggy

if TYPE_CHECKING:
    from assocsync.realtime.adapters import FetchAdapter

hookspec = pluggy.HookspecMarker("assocsync")


class AssocSyncHookSpec:
    """Hook specifications for the assocsync plugin system."""

    @hookspec
    def register_fetch_adapters(self) -> dict[str, FetchAdapter] | None:
        """Return domain -> adapter mappings that override HTTP adapters."""

    @hookspec
    def post_commit(self, changed_domains: list[str], connection_status: str) -> None:
        """Called after a store transition changed *changed_domains*."""
