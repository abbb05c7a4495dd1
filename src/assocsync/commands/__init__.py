"""Subcommand modules for assocsync.

Provides register_commands() which uses deferred imports to keep
``assocsync --help`` fast.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import click


def register_commands(cli: click.Group) -> None:
    """Register all standalone commands on the root CLI group."""
    from assocsync.commands.domains import domains
    from assocsync.commands.watch import watch

    cli.add_command(domains)
    cli.add_command(watch)
