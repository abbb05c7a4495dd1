"""Command: list configured data domains."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from assocsync.commands._base import SyncCommand

if TYPE_CHECKING:
    from assocsync.commands._context import AppContext


@click.command(
    cls=SyncCommand,
    examples="""\
  assocsync domains
  assocsync --json domains
  assocsync -c ./assocsync.toml domains""",
)
@click.pass_obj
def domains(app: AppContext) -> None:
    """List configured domains with their polling settings."""
    app.emit(app.service.list_domains())
