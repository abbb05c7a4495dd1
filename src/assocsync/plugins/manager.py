"""Plugin discovery, loading, and hook dispatch.

Discovery: entry_points (pip-installed) via pluggy setuptools entrypoints
in the ``assocsync.plugins`` group, plus direct registration.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

import pluggy

from assocsync.plugins.hookspecs import AssocSyncHookSpec

if TYPE_CHECKING:
    from assocsync.realtime.adapters import FetchAdapter
    from assocsync.realtime.store import RealtimeStore

PROJECT_NAME = "assocsync"

hookimpl = pluggy.HookimplMarker(PROJECT_NAME)

logger = logging.getLogger(__name__)


class PluginManager:
    """Manages plugin discovery, loading, and hook dispatch."""

    def __init__(self) -> None:
        self._pm = pluggy.PluginManager(PROJECT_NAME)
        self._pm.add_hookspecs(AssocSyncHookSpec)

    def discover_and_load(self) -> list[str]:
        """Discover plugins from the ``assocsync.plugins`` entry point group.

        Returns a list of loaded plugin names.
        """
        self._pm.load_setuptools_entrypoints("assocsync.plugins")
        self._normalize_plugin_instances()
        return self.list_plugin_names()

    def register_plugin(self, plugin: object, name: str | None = None) -> None:
        """Register a plugin instance directly."""
        resolved_name = name or plugin.__class__.__name__
        self._pm.register(plugin, name=resolved_name)
        logger.debug("Registered plugin: %s", resolved_name)

    @property
    def hook(self) -> pluggy.HookRelay:
        """Access the hook relay for dispatching events."""
        return self._pm.hook

    def list_plugin_names(self) -> list[str]:
        """Return names of all registered plugins."""
        return [self._pm.get_name(p) or p.__class__.__name__ for p in self._pm.get_plugins()]

    # ------------------------------------------------------------------
    # Hook dispatch
    # ------------------------------------------------------------------

    def collect_fetch_adapters(self) -> dict[str, FetchAdapter]:
        """Merge adapters from every plugin; later registrations win."""
        adapters: dict[str, FetchAdapter] = {}
        try:
            results = self.hook.register_fetch_adapters()
        except Exception:
            logger.warning("Failed to collect fetch adapters from plugins", exc_info=True)
            return adapters

        # pluggy returns results in LIFO registration order.
        for mapping in reversed(results):
            if mapping is None:
                continue
            if not isinstance(mapping, dict):
                logger.warning("Plugin returned non-dict fetch adapter registrations")
                continue
            for domain, adapter in mapping.items():
                if not callable(adapter):
                    logger.warning("Skipping non-callable fetch adapter for %r", domain)
                    continue
                adapters[str(domain)] = adapter
        return adapters

    def attach(self, store: RealtimeStore) -> Callable[[], None]:
        """Subscribe ``post_commit`` to every store transition.

        Returns the store disposer.
        """

        def _notify(changed: frozenset[str]) -> None:
            try:
                self.hook.post_commit(
                    changed_domains=sorted(changed),
                    connection_status=str(store.connection_status),
                )
            except Exception:
                logger.warning("post_commit hook failed", exc_info=True)

        return store.subscribe(None, _notify)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _normalize_plugin_instances(self) -> None:
        """Replace registered plugin classes with instantiated objects.

        Entry-point loading may register a plugin class directly. Hook dispatch
        against class objects leaves ``self`` unbound and fails at runtime.
        """
        for plugin in list(self._pm.get_plugins()):
            if not inspect.isclass(plugin):
                continue
            if not self._has_hook_impls(plugin):
                continue

            plugin_name = self._pm.get_name(plugin) or plugin.__name__
            self._pm.unregister(plugin)

            try:
                instance = plugin()
            except Exception:
                logger.warning(
                    "Failed to instantiate entry-point plugin %s",
                    plugin_name,
                    exc_info=True,
                )
                continue

            self._pm.register(instance, name=plugin_name)
            logger.debug("Instantiated entry-point plugin: %s", plugin_name)

    @staticmethod
    def _has_hook_impls(cls: type) -> bool:
        """Check whether *cls* has any methods decorated with ``@hookimpl``.

        Pluggy's ``HookimplMarker("assocsync")`` sets an ``assocsync_impl``
        attribute on decorated methods.
        """
        for name in dir(cls):
            if name.startswith("_"):
                continue
            method = getattr(cls, name, None)
            if callable(method) and getattr(method, "assocsync_impl", None):
                return True
        return False
