# src/dotconverge/cli/converge_app.py
from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import List, Optional

import click
import typer

from dotconverge.cli.helper import (
    default_playbook,
    invoking_user,
    parse_extra_vars,
    split_tags,
)
from dotconverge.config.loader import available_roles, load_playbook
from dotconverge.deploy.executor import ConvergeOptions, converge
from dotconverge.deploy.selector import select_roles
from dotconverge.errors import DotconvergeError, TaskFailedError
from dotconverge.facts.collector import gather_facts
from dotconverge.logging.log import init_logging
from dotconverge.observers.console import ConsoleObserver
from dotconverge.observers.dispatcher import EventBus
from dotconverge.observers.events import new_ctx
from dotconverge.observers.jsonfile import JsonFileObserver
from dotconverge.observers.logger import LoggerObserver


# ------------------------------------------------------------------------------
# CLI setup
# ------------------------------------------------------------------------------

app = typer.Typer(help="dotconverge: converge this machine from a role playbook")

PlaybookOpt = typer.Option(None, "--playbook", "-p", help="Path to site.yml (default: $DOTFILES_DIR/site.yml or ./site.yml)")
UserOpt = typer.Option(None, "--user", "-u", help="Host user to configure (default: the invoking user)")
TagsOpt = typer.Option(None, "--tags", "-t", help="Run only these roles (repeatable or comma separated)")


def _fail(exc: Exception) -> None:
    typer.secho(f"ERROR: {exc}", fg=typer.colors.RED, err=True)
    raise typer.Exit(code=1)


@app.command()
def run(
    playbook: Optional[Path] = PlaybookOpt,
    user: Optional[str] = UserOpt,
    tags: Optional[List[str]] = TagsOpt,
    skip_tags: Optional[List[str]] = typer.Option(None, "--skip-tags", help="Skip tasks carrying these tags"),
    extra_vars: Optional[List[str]] = typer.Option(None, "--extra-vars", "-e", help="KEY=VALUE variables"),
    check: bool = typer.Option(False, "--check", help="Report changes without making them"),
    debug: bool = typer.Option(False, "--debug", "-v"),
):
    """Collect facts, select roles and run their tasks."""
    logger, run_id, log_path = init_logging(verbose=debug)
    host_user = user or invoking_user()

    typer.secho("dotconverge run", bold=True)
    typer.echo(f"  Run ID   : {run_id}")
    typer.echo(f"  Logs     : {log_path}")
    typer.echo(f"  User     : {host_user}")
    if check:
        typer.secho("  Mode     : check (no changes)", fg=typer.colors.YELLOW)

    observers = [
        ConsoleObserver(),
        LoggerObserver(logger),
        JsonFileObserver(log_path.parent / f"{run_id}.jsonl"),
    ]

    try:
        options = ConvergeOptions(
            tags=split_tags(tags),
            skip_tags=split_tags(skip_tags),
            extra_vars=parse_extra_vars(extra_vars),
            check=check,
        )
        cfg = load_playbook(playbook or default_playbook())
        facts = gather_facts(
            host_user,
            cfg.managed_users,
            bus=EventBus(observers),
            run_ctx=new_ctx(user=host_user, run_id=run_id),
        )
        report = converge(cfg, facts, options=options, observers=observers, run_id=run_id)
    except typer.BadParameter as exc:
        _fail(exc)
    except TaskFailedError as exc:
        logger.error("run failed: %s", exc)
        _fail(exc)
    except DotconvergeError as exc:
        logger.error("run aborted: %s", exc)
        _fail(exc)

    logger.info("run finished: %s", report.summary())


@app.command()
def facts(
    user: Optional[str] = UserOpt,
    playbook: Optional[Path] = PlaybookOpt,
    as_json: bool = typer.Option(False, "--json", help="Print facts as JSON"),
):
    """Print the facts a run would see."""
    host_user = user or invoking_user()
    managed: List[str] = []
    path = playbook or default_playbook()
    if path.is_file():
        try:
            managed = load_playbook(path).managed_users
        except DotconvergeError as exc:
            _fail(exc)

    result = gather_facts(host_user, managed)
    if as_json:
        typer.echo(json.dumps(result.as_dict(), indent=2, sort_keys=True))
        return
    width = max((len(k) for k in result), default=0)
    for key in sorted(result):
        value = result[key]
        colour = None
        if value is True:
            colour = typer.colors.GREEN
        elif value is False:
            colour = typer.colors.RED
        typer.secho(f"{key.ljust(width)}  {value}", fg=colour)


@app.command()
def roles(
    playbook: Optional[Path] = PlaybookOpt,
    tags: Optional[List[str]] = TagsOpt,
):
    """Show the resolved run order without running anything."""
    try:
        cfg = load_playbook(playbook or default_playbook())
    except DotconvergeError as exc:
        _fail(exc)

    order = select_roles(cfg.default_roles, tags=split_tags(tags), exclude_roles=cfg.exclude_roles)
    known = set(available_roles(cfg))
    if not order:
        typer.echo("(no roles selected)")
    for name in order:
        if name in known:
            typer.echo(name)
        else:
            typer.secho(f"{name} (missing)", fg=typer.colors.RED)
    if any(name not in known for name in order):
        raise typer.Exit(code=1)


def main() -> None:
    try:
        rc = app(standalone_mode=False)
    except click.UsageError as exc:
        exc.show()
        sys.exit(1)
    except click.exceptions.Exit as exc:
        sys.exit(exc.exit_code)
    except click.Abort:
        typer.echo("Aborted!", err=True)
        sys.exit(1)
    sys.exit(rc or 0)


if __name__ == "__main__":
    main()
