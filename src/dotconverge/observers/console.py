# src/dotconverge/observers/console.py
from __future__ import annotations

import typer

from .events import (
    BaseEvent,
    FactsCollected,
    RolesSelected,
    RoleStarted,
    RunSummary,
    TaskFailed,
    TaskSkipped,
    TaskSucceeded,
)


class ConsoleObserver:
    """
    Human readable progress, one line per task, ansible-ish colours:
    green ok, yellow changed, cyan skipped, red failed.
    """

    def __init__(self, show_skipped: bool = True):
        self.show_skipped = show_skipped

    def notify(self, event: BaseEvent) -> None:
        if isinstance(event, FactsCollected):
            typer.secho(f"facts: {len(event.facts)} collected", dim=True)
        elif isinstance(event, RolesSelected):
            roles = ", ".join(event.order) or "(none)"
            typer.secho(f"roles: {roles}", bold=True)
        elif isinstance(event, RoleStarted):
            typer.secho(f"\nROLE [{event.role}] " + "*" * 40, bold=True)
        elif isinstance(event, TaskSucceeded):
            if event.changed:
                typer.secho(f"changed: {event.task}", fg=typer.colors.YELLOW)
            else:
                typer.secho(f"ok: {event.task}", fg=typer.colors.GREEN)
        elif isinstance(event, TaskSkipped):
            if self.show_skipped:
                typer.secho(f"skipping: {event.task} ({event.reason})", fg=typer.colors.CYAN)
        elif isinstance(event, TaskFailed):
            typer.secho(f"failed: {event.task}\n{event.error}", fg=typer.colors.RED, err=True)
        elif isinstance(event, RunSummary):
            typer.echo("")
            typer.secho(
                f"RECAP ok={event.ok} changed={event.changed} "
                f"skipped={event.skipped} failed={event.failed}",
                bold=True,
                fg=typer.colors.RED if event.failed else typer.colors.GREEN,
            )
