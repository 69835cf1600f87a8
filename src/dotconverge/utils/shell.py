# src/dotconverge/utils/shell.py

from __future__ import annotations

import logging
import os
import subprocess
import time
from pathlib import Path
from typing import Mapping, Optional, Sequence

import typer

from dotconverge.errors import CommandError
from dotconverge.execution.runner import become_prefix

log = logging.getLogger("dotconverge")

CHECK = "✔"
CROSS = "✖"
ARROW = "➔"


class StepRunner:
    """
    Status lines plus a transient command log, the way the old shell script
    did it:

    - ``task(label)`` prints a pending status line
    - ``run(argv)`` sends the command's output to ``log_file`` (truncated
      per command); on failure the log is echoed in red and CommandError
      raised, on success the log is deleted
    """

    def __init__(self, log_file: Path):
        self.log_file = Path(log_file)
        self.current: Optional[str] = None

    # ------------------ status lines ------------------

    def task(self, label: str) -> None:
        self.current = label
        typer.secho(f"[ ] {label}", fg=typer.colors.WHITE, bold=True)

    def ok(self, message: Optional[str] = None) -> None:
        typer.secho(f"[{CHECK}] {message or self.current or ''}", fg=typer.colors.GREEN, bold=True)
        self.current = None

    def warn(self, message: str) -> None:
        typer.secho(f"[!] {message}", fg=typer.colors.YELLOW, bold=True)

    def fail(self, message: str) -> None:
        typer.secho(f"[{CROSS}] {message}", fg=typer.colors.RED, bold=True, err=True)

    def info(self, message: str) -> None:
        typer.secho(f" {ARROW} {message}", fg=typer.colors.CYAN)

    # ------------------ commands ------------------

    def run(
        self,
        cmd: Sequence[str],
        *,
        check: bool = True,
        cwd: Optional[str] = None,
        env: Optional[Mapping[str, str]] = None,
        become_user: Optional[str] = None,
        no_log: bool = False,
    ) -> subprocess.CompletedProcess:
        argv = become_prefix(become_user) + [str(c) for c in cmd]
        full_env = None
        if env:
            full_env = dict(os.environ)
            full_env.update(env)

        start_ts = time.strftime("%Y-%m-%dT%H:%M:%S")
        log.debug("[bootstrap] $ %s", " ".join(argv))
        try:
            cp = subprocess.run(
                argv, capture_output=True, text=True, check=False, cwd=cwd, env=full_env,
            )
        except FileNotFoundError as exc:
            cp = subprocess.CompletedProcess(args=argv, returncode=127, stdout="", stderr=str(exc))

        with open(self.log_file, "w", encoding="utf-8") as f:
            f.write(f"[{start_ts}] $ {' '.join(argv)}\n")
            if not no_log:
                f.write(cp.stdout or "")
                f.write(cp.stderr or "")
            f.write(f"[exit {cp.returncode}]\n")

        if cp.returncode != 0 and check:
            self.fail(self.current or " ".join(argv))
            typer.secho(self.log_file.read_text(encoding="utf-8"), fg=typer.colors.RED, err=True)
            raise CommandError(argv, cp.returncode, cp.stdout, cp.stderr)

        self.clear_log()
        return cp

    def clear_log(self) -> None:
        try:
            self.log_file.unlink()
        except FileNotFoundError:
            pass
