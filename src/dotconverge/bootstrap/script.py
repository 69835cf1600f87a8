# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/dotconverge/bootstrap/script.py

from __future__ import annotations

import enum
import logging
import os
import subprocess
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from dotconverge.config.settings import BootstrapSettings
from dotconverge.errors import (
    AuthenticationError,
    CommandError,
    DependencyError,
    NetworkError,
)
from dotconverge.observers.dispatcher import EventBus
from dotconverge.observers.events import BootstrapStateChanged, new_ctx
from dotconverge.secrets.onepassword import OnePasswordCLI
from dotconverge.utils.shell import StepRunner
from .distro import Distribution, detect_distribution, package_manager_for, OS_RELEASE

log = logging.getLogger("dotconverge")

REBOOT_NOTICE = "First run complete! Please reboot your computer to finish the setup."


class BootstrapState(str, enum.Enum):
    UNINITIALIZED = "UNINITIALIZED"
    DEPENDENCIES_INSTALLED = "DEPENDENCIES_INSTALLED"
    REPOSITORY_CLONED = "REPOSITORY_CLONED"
    AUTHENTICATED = "AUTHENTICATED"
    CONVERGED = "CONVERGED"
    DONE = "DONE"


@dataclass
class BootstrapResult:
    state: BootstrapState
    applied: bool                  # False when the executor was not invoked
    first_run: bool = False
    installed: List[str] = field(default_factory=list)
    message: Optional[str] = None


def _converge_subprocess(argv: Sequence[str], cwd: Path) -> int:
    # output streams straight to the terminal
    return subprocess.run(list(argv), cwd=str(cwd), check=False).returncode


class Bootstrapper:
    """
    The bootstrap/update procedure:

      UNINITIALIZED -> DEPENDENCIES_INSTALLED -> REPOSITORY_CLONED
        -> AUTHENTICATED -> CONVERGED -> DONE

    Dependency and repository failures abort (exceptions propagate).
    A failed secrets check is reported and ends the run without converging.
    """

    def __init__(
        self,
        settings: BootstrapSettings,
        *,
        user: str,
        tags: Optional[str] = None,
        extra_args: Sequence[str] = (),
        steps: Optional[StepRunner] = None,
        secrets: Optional[OnePasswordCLI] = None,
        observers: Optional[List] = None,
        os_release: Path = OS_RELEASE,
        converge_fn: Callable[[Sequence[str], Path], int] = _converge_subprocess,
    ):
        self.settings = settings
        self.user = user
        self.tags = tags
        self.extra_args = list(extra_args)
        self.steps = steps or StepRunner(settings.log_file)
        self.secrets = secrets or OnePasswordCLI(self.steps)
        self.bus = EventBus(observers or [])
        self.os_release = os_release
        self.converge_fn = converge_fn
        self.state = BootstrapState.UNINITIALIZED
        self._event_ctx = new_ctx(user=user)

    def _transition(self, state: BootstrapState, message: Optional[str] = None) -> None:
        log.debug("bootstrap state %s -> %s", self.state.value, state.value)
        self.state = state
        self.bus.emit(BootstrapStateChanged(state=state.value, message=message, **self._event_ctx))

    # ------------------ steps ------------------

    def install_dependencies(self) -> tuple[Distribution, List[str]]:
        self.steps.task("Detecting distribution")
        distro = detect_distribution(self.os_release)
        self.steps.ok(f"Detected {distro.pretty_name}")

        packages = self.settings.baseline_packages.get(distro.family, ())
        pm = package_manager_for(distro.family, self.steps)
        installed: List[str] = []
        for pkg in packages:
            self.steps.task(f"Checking {pkg}")
            try:
                installed += pm.ensure([pkg])
            except CommandError as exc:
                raise DependencyError(f"could not install {pkg}: {exc}") from exc
            self.steps.ok(f"{pkg} {'installed' if pkg in installed else 'present'}")

        self._transition(BootstrapState.DEPENDENCIES_INSTALLED)
        return distro, installed

    def sync_repository(self) -> None:
        repo_dir = self.settings.repo_dir
        if (repo_dir / ".git").is_dir():
            self.steps.task(f"Updating {repo_dir}")
            argv = ["git", "-C", str(repo_dir), "pull", "--quiet"]
        else:
            if not self.settings.repo_url:
                raise NetworkError("no working copy and DOTFILES_REPO is not set")
            self.steps.task(f"Cloning {self.settings.repo_url}")
            argv = ["git", "clone", "--quiet", self.settings.repo_url, str(repo_dir)]
        try:
            self.steps.run(argv)
        except CommandError as exc:
            raise NetworkError(str(exc)) from exc
        self.steps.ok()
        self._transition(BootstrapState.REPOSITORY_CLONED)

    def authenticate(self) -> bool:
        self.steps.task("Checking 1Password CLI")
        if self.secrets.has_token():
            self.steps.info("using OP_SERVICE_ACCOUNT_TOKEN")
        try:
            count = self.secrets.ensure_authenticated()
        except AuthenticationError as exc:
            self.steps.fail(str(exc))
            return False
        self.steps.ok(f"1Password CLI authenticated ({count} vaults)")
        self._transition(BootstrapState.AUTHENTICATED)
        return True

    def converge_argv(self) -> List[str]:
        sudo = [] if os.geteuid() == 0 else ["sudo", "-E"]
        argv = sudo + [
            sys.executable, "-m", "dotconverge.cli.converge_app", "run",
            "--playbook", str(self.settings.playbook_path),
            "--user", self.user,
        ]
        if self.tags:
            argv += ["--tags", self.tags]
        return argv + self.extra_args

    def converge(self) -> None:
        argv = self.converge_argv()
        self.steps.info("Running roles" + (f" [{self.tags}]" if self.tags else ""))
        log.debug("converge: %s", " ".join(argv))
        rc = self.converge_fn(argv, self.settings.repo_dir)
        if rc != 0:
            raise CommandError(argv, rc, "", "converge failed, see the task output above")
        self._transition(BootstrapState.CONVERGED)

    def finish(self) -> bool:
        """Print the reboot notice once; returns True on the first run."""
        marker = self.settings.marker_file
        first_run = not marker.exists()
        if first_run:
            self.steps.ok(REBOOT_NOTICE)
            marker.parent.mkdir(parents=True, exist_ok=True)
            marker.touch()
        self._transition(BootstrapState.DONE)
        return first_run

    # ------------------ driver ------------------

    def run(self) -> BootstrapResult:
        self._transition(BootstrapState.UNINITIALIZED)
        _, installed = self.install_dependencies()
        self.sync_repository()

        if not self.authenticate():
            self.steps.warn("1Password CLI not authenticated, no changes applied")
            return BootstrapResult(
                state=self.state,
                applied=False,
                installed=installed,
                message="secrets CLI not authenticated",
            )

        self.converge()
        first_run = self.finish()
        return BootstrapResult(
            state=self.state, applied=True, first_run=first_run, installed=installed,
        )
