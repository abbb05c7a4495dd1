"""Rich Console factory and theme for assocsync output.

Creates Console instances that render to a StringIO buffer, preserving
the ``format_result() -> str`` contract.  In non-TTY environments
(tests, pipes) Rich automatically disables color codes.
"""

from __future__ import annotations

from io import StringIO

from rich.console import Console
from rich.theme import Theme

SYNC_THEME = Theme(
    {
        "sync.ok": "bold green",
        "sync.error": "bold red",
        "sync.warning": "bold yellow",
        "sync.op": "bold cyan",
        "sync.key": "dim",
        "sync.domain": "bold blue",
        "sync.status.fresh": "green",
        "sync.status.stale": "yellow",
        "sync.status.loading": "cyan",
        "sync.status.error": "red",
        "sync.status.idle": "dim",
        "sync.conn.online": "bold green",
        "sync.conn.degraded": "bold yellow",
        "sync.conn.offline": "bold red",
    }
)


def create_console(*, no_color: bool = False, width: int | None = None) -> Console:
    """Create a Console that renders to a StringIO buffer.

    Args:
        no_color: Disable ANSI escape codes (used in tests).
        width: Override terminal width (useful for consistent test output).
    """
    return Console(
        file=StringIO(),
        theme=SYNC_THEME,
        no_color=no_color,
        highlight=False,
        width=width or 120,
    )


def get_output(console: Console) -> str:
    """Extract rendered text from a StringIO-backed Console."""
    assert isinstance(console.file, StringIO)
    return console.file.getvalue()


def style_for_status(status: str) -> str:
    """Return the Rich style name for a cache status."""
    return f"sync.status.{status}" if status else ""
