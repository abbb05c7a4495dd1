"""Command: poll domains and report their synchronized state."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import click

from assocsync.commands._base import SyncCommand

if TYPE_CHECKING:
    from assocsync.commands._context import AppContext


@click.command(
    cls=SyncCommand,
    examples="""\
  assocsync watch --once
  assocsync watch --domain stats --domain members --once
  assocsync watch --duration 120
  assocsync --json watch --once""",
)
@click.option(
    "-d",
    "--domain",
    "domain_names",
    multiple=True,
    help="Domain to watch (repeatable). Defaults to every enabled domain.",
)
@click.option(
    "--duration",
    type=click.FloatRange(min=0),
    default=60.0,
    show_default=True,
    help="Seconds to keep polling.",
)
@click.option("--once", is_flag=True, help="Fetch each domain once, then report.")
@click.pass_obj
def watch(app: AppContext, domain_names: tuple[str, ...], duration: float, once: bool) -> None:
    """Poll domains on their configured cadence and report the result."""
    result = asyncio.run(
        app.service.watch(domain_names or None, duration=duration, once=once)
    )
    app.emit(result)
