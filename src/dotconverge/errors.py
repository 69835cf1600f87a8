# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/dotconverge/errors.py
from __future__ import annotations

from typing import Optional


class DotconvergeError(RuntimeError):
    """Base class for every failure the CLIs know how to report."""


class ConfigError(DotconvergeError):
    """Raised when a playbook, vars file or task file cannot be loaded."""


class DependencyError(DotconvergeError):
    """A required package or tool is missing and could not be installed."""


class NetworkError(DotconvergeError):
    """Cloning or pulling the configuration repository failed."""


class AuthenticationError(DotconvergeError):
    """The secrets CLI is missing or cannot list any vault."""


class UnknownRoleError(DotconvergeError):
    """A selected role has no task file in the roles path."""


class ProbeOrderError(DotconvergeError):
    """A fact probe depends on a probe that does not run before it."""


class CommandError(DotconvergeError):
    """A subprocess exited non-zero; keeps the captured output."""

    def __init__(self, argv, returncode: int, stdout: str = "", stderr: str = ""):
        self.argv = list(argv)
        self.returncode = returncode
        self.stdout = stdout or ""
        self.stderr = stderr or ""
        detail = self.stderr.strip() or self.stdout.strip()
        msg = f"command failed (rc={returncode}): {' '.join(map(str, self.argv))}"
        if detail:
            msg = f"{msg}\n{detail}"
        super().__init__(msg)


class TaskFailedError(DotconvergeError):
    """Raised by the executor on the first failing task (fail-fast)."""

    def __init__(self, role: str, task: str, error: str, report: Optional[object] = None):
        self.role = role
        self.task = task
        self.error = error
        self.report = report
        super().__init__(f"[{role}] {task}: {error}")
