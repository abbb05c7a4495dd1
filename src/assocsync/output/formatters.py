"""Rich/JSON output helpers.

The CLI renders ServiceResult for humans (Rich tables) or machines
(``--json``).  Operations with a dedicated renderer get a table; the rest
fall back to indented key-value pairs.
"""

from __future__ import annotations

import json as _json
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from rich.table import Table
from rich.text import Text

from assocsync.output.console import create_console, get_output, style_for_status

if TYPE_CHECKING:
    from rich.console import Console

    from assocsync.services.result import ServiceResult


@dataclass(frozen=True)
class OutputSettings:
    """Rendering switches derived from the global CLI flags."""

    json_output: bool = False
    quiet: bool = False
    verbose: bool = False


def _format_data_human(data: dict[str, Any]) -> str:
    """Format result data as indented key-value pairs."""
    lines: list[str] = []
    for key, value in data.items():
        if isinstance(value, (dict, list)):
            lines.append(f"  {key}: {_json.dumps(value, separators=(',', ':'))}")
        else:
            lines.append(f"  {key}: {value}")
    return "\n".join(lines)


def _fmt_seconds(value: float | None) -> str:
    if value is None:
        return "-"
    return f"{value:.1f}s"


def _render_domain_report(console: Console, data: dict[str, Any], *, verbose: bool) -> None:
    conn = str(data.get("connection_status", ""))
    console.print(Text.assemble(("connection: ", "sync.key"), (conn, f"sync.conn.{conn}")))

    table = Table(show_header=True, header_style="bold")
    table.add_column("Domain", style="sync.domain")
    table.add_column("Status")
    table.add_column("Items", justify="right")
    table.add_column("Age", justify="right")
    table.add_column("Fetches", justify="right")
    table.add_column("Error")
    if verbose:
        table.add_column("Latency", justify="right")
        table.add_column("Skipped", justify="right")

    for name, entry in data.get("domains", {}).items():
        status = str(entry.get("status", ""))
        poll = entry.get("poll") or {}
        items = entry.get("items")
        error = entry.get("error") or {}
        label = f"{status} (stale)" if entry.get("stale") and status != "stale" else status
        row = [
            name,
            Text(label, style=style_for_status(status)),
            "-" if items is None else str(items),
            _fmt_seconds(entry.get("age_seconds")),
            f"{poll.get('successes', 0)}/{poll.get('attempts', 0)}" if poll else "-",
            Text(error.get("message", ""), style="sync.error") if error else "",
        ]
        if verbose:
            latency = poll.get("last_latency") if poll else None
            row.append(_fmt_seconds(latency))
            row.append(str(poll.get("skipped", 0)) if poll else "-")
        table.add_row(*row)
    console.print(table)


def _render_domain_list(console: Console, data: dict[str, Any]) -> None:
    table = Table(show_header=True, header_style="bold")
    table.add_column("Domain", style="sync.domain")
    table.add_column("Enabled")
    table.add_column("Interval", justify="right")
    table.add_column("Key")
    table.add_column("Mode")
    table.add_column("URL", style="sync.key")
    for item in data.get("items", []):
        table.add_row(
            item["domain"],
            "yes" if item["enabled"] else "no",
            _fmt_seconds(item["interval"]),
            item["key_field"],
            item["mode"],
            item["url"],
        )
    console.print(table)


_RENDERERS = {
    "watch": "report",
    "status": "report",
    "list_domains": "list",
}


def format_result(result: ServiceResult, *, settings: OutputSettings | None = None) -> str:
    """Format a ServiceResult for display.

    Args:
        result: The service result to format.
        settings: Output switches; defaults to human-readable output.
    """
    settings = settings or OutputSettings()
    if settings.json_output:
        return result.model_dump_json(indent=2)

    if not result.ok:
        error_msg = result.error.message if result.error else "Unknown error"
        return f"ERROR: {result.op} - {error_msg}"

    if settings.quiet:
        return f"OK: {result.op}"

    console = create_console(width=120)
    console.print(Text.assemble(("OK: ", "sync.ok"), (result.op, "sync.op")))
    kind = _RENDERERS.get(result.op)
    if kind == "report":
        _render_domain_report(console, result.data, verbose=settings.verbose)
    elif kind == "list":
        _render_domain_list(console, result.data)
    elif result.data:
        console.print(_format_data_human(result.data), markup=False)
    return get_output(console).rstrip("\n")
