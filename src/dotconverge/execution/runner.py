# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/dotconverge/execution/runner.py
from __future__ import annotations

import getpass
import logging
import os
import subprocess
import time
from dataclasses import dataclass
from typing import Mapping, Optional, Sequence, Union

from dotconverge.errors import CommandError

Cmd = Sequence[Union[str, "os.PathLike[str]"]]

log = logging.getLogger("dotconverge")


def current_user() -> str:
    return os.environ.get("USER") or getpass.getuser()


def become_prefix(user: Optional[str]) -> list[str]:
    """
    argv prefix that runs a command as *user*.
    Empty when no user is given or we already are that user.
    """
    if not user or user == current_user():
        return []
    return ["sudo", "-u", user, "-H", "--"]


@dataclass
class CommandRunner:
    """
    Thin wrapper around subprocess.run that logs the command, its output and
    exit code. Output is always captured.
    """

    logger: Optional[logging.Logger] = None
    dry_run: bool = False
    label: Optional[str] = None

    def _log(self, msg: str, *args) -> None:
        (self.logger or log).debug(msg, *args)

    def run(
        self,
        cmd: Cmd,
        *,
        check: bool = False,
        cwd: Optional[str] = None,
        env: Optional[Mapping[str, str]] = None,
        become_user: Optional[str] = None,
        no_log: bool = False,
    ) -> subprocess.CompletedProcess:
        label = self.label or "cmd"
        prefix = become_prefix(become_user)
        if prefix and env:
            # sudo resets the environment
            prefix += ["env"] + [f"{k}={v}" for k, v in env.items()]
        argv = prefix + [str(c) for c in cmd]
        cmd_str = " ".join(argv)
        if no_log:
            # the command line itself may carry a rendered secret
            cmd_str = f"{argv[0]} (arguments hidden)"

        self._log("[%s] $ %s", label, cmd_str)

        if self.dry_run:
            self._log("[%s] dry-run: skipped execution", label)
            return subprocess.CompletedProcess(args=argv, returncode=0, stdout="", stderr="")

        full_env = None
        if env:
            full_env = dict(os.environ)
            full_env.update({k: str(v) for k, v in env.items()})

        start = time.time()
        try:
            result = subprocess.run(
                argv,
                capture_output=True,
                text=True,
                check=False,
                cwd=cwd,
                env=full_env,
            )
        except FileNotFoundError as exc:
            # missing binary behaves like the shell's "command not found"
            result = subprocess.CompletedProcess(args=argv, returncode=127, stdout="", stderr=str(exc))

        duration = time.time() - start

        if not no_log:
            if result.stdout:
                self._log("[%s][stdout]\n%s", label, result.stdout.rstrip())
            if result.stderr:
                self._log("[%s][stderr]\n%s", label, result.stderr.rstrip())
        self._log("[%s][exit %s] (%.2fs)", label, result.returncode, duration)

        if check and result.returncode != 0:
            if no_log:
                raise CommandError(argv[:1], result.returncode, "", "(output hidden)")
            raise CommandError(argv, result.returncode, result.stdout, result.stderr)

        return result

    def shell(self, script: str, **kwargs) -> subprocess.CompletedProcess:
        return self.run(["bash", "-c", script], **kwargs)
