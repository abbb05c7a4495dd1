"""Locate ``assocsync.toml`` for :class:`~assocsync.config.settings.SyncSettings`.

``ASSOCSYNC_CONFIG`` names the file directly; otherwise the nearest
``assocsync.toml`` in the start directory or one of its parents is used.
"""

from __future__ import annotations

import os
from pathlib import Path

CONFIG_FILENAME = "assocsync.toml"
CONFIG_ENV_VAR = "ASSOCSYNC_CONFIG"


def find_config(start: Path | None = None) -> Path | None:
    """Return the config file for *start* (default: cwd), or None.

    A set ``ASSOCSYNC_CONFIG`` pointing at a missing file disables the
    walk-up rather than falling back to it.
    """
    override = os.environ.get(CONFIG_ENV_VAR)
    if override:
        path = Path(override)
        return path if path.is_file() else None

    here = (start or Path.cwd()).resolve()
    for directory in (here, *here.parents):
        candidate = directory / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
    return None
