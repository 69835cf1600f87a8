# src/dotconverge/cli/app.py
from __future__ import annotations

import sys
from typing import List, Optional

import click
import typer

from dotconverge.bootstrap.script import Bootstrapper
from dotconverge.cli.helper import invoking_user
from dotconverge.config.settings import load_bootstrap_settings
from dotconverge.errors import DotconvergeError
from dotconverge.logging.log import init_logging
from dotconverge.observers.logger import LoggerObserver


app = typer.Typer(help="dotfiles: bootstrap or update this machine", add_completion=False)


@app.command(
    context_settings={"allow_extra_args": True, "ignore_unknown_options": True},
)
def bootstrap(
    ctx: typer.Context,
    user: Optional[str] = typer.Option(None, "--user", "-u", help="Host user to configure"),
    tags: Optional[str] = typer.Option(None, "--tags", "-t", help="Only run this role (several may be given comma separated)"),
):
    """
    Install baseline packages, sync the dotfiles repository, check the
    1Password CLI and converge. Unrecognised arguments are passed through
    to ``dotconverge run`` verbatim.
    """
    logger, run_id, log_path = init_logging(prefix="dotfiles")
    host_user = user or invoking_user()
    extra: List[str] = list(ctx.args)

    settings = load_bootstrap_settings()
    boot = Bootstrapper(
        settings,
        user=host_user,
        tags=tags,
        extra_args=extra,
        observers=[LoggerObserver(logger)],
    )

    try:
        result = boot.run()
    except DotconvergeError as exc:
        logger.error("bootstrap aborted in state %s: %s", boot.state.value, exc)
        typer.secho(f"ERROR: {exc}", fg=typer.colors.RED, err=True)
        typer.echo(f"Details: {log_path}", err=True)
        raise typer.Exit(code=1)

    if not result.applied:
        logger.warning("bootstrap ended without converging: %s", result.message)
    else:
        logger.info("bootstrap finished (first_run=%s)", result.first_run)


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
