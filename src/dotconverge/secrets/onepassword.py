# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/dotconverge/secrets/onepassword.py

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Optional

from dotconverge.errors import AuthenticationError
from dotconverge.execution.runner import CommandRunner

log = logging.getLogger("dotconverge")

# A service-account token in the environment authenticates `op` without
# an interactive sign-in, which is what unattended first runs rely on.
TOKEN_ENV = "OP_SERVICE_ACCOUNT_TOKEN"


class OnePasswordCLI:
    """
    Wrapper around the 1Password `op` binary:
      - presence / authentication checks used by the bootstrap
      - `op inject` for templates with op:// references
      - `op read` for single values
    Secret values never reach the log.
    """

    def __init__(self, runner: Optional[CommandRunner] = None, binary: str = "op"):
        self.runner = runner or CommandRunner(label="op")
        self.binary = binary

    def is_installed(self) -> bool:
        return self.runner.run(["which", self.binary], check=False).returncode == 0

    def has_token(self) -> bool:
        return bool(os.environ.get(TOKEN_ENV))

    def list_vaults(self, become_user: Optional[str] = None) -> list:
        cp = self.runner.run(
            [self.binary, "vault", "list", "--format", "json"],
            check=False,
            become_user=become_user,
        )
        if cp.returncode != 0:
            detail = (cp.stderr or cp.stdout or "").strip()
            raise AuthenticationError(f"1Password CLI is not signed in: {detail or 'op vault list failed'}")
        try:
            vaults = json.loads(cp.stdout or "[]")
        except ValueError as exc:
            raise AuthenticationError(f"unexpected output from op vault list: {exc}") from exc
        if not isinstance(vaults, list):
            raise AuthenticationError("unexpected output from op vault list")
        return vaults

    def ensure_authenticated(self, become_user: Optional[str] = None) -> int:
        """
        Raise AuthenticationError unless `op` is installed and can list vaults.
        Returns the number of vaults visible.
        """
        if not self.is_installed():
            raise AuthenticationError("1Password CLI (op) is not installed")
        vaults = self.list_vaults(become_user=become_user)
        log.debug("op can see %d vault(s)", len(vaults))
        return len(vaults)

    def inject(self, src: Path, dest: Path, become_user: Optional[str] = None) -> None:
        self.runner.run(
            [self.binary, "inject", "-i", str(src), "-o", str(dest), "-f"],
            check=True,
            become_user=become_user,
            no_log=True,
        )

    def read(self, reference: str, become_user: Optional[str] = None) -> str:
        cp = self.runner.run(
            [self.binary, "read", reference],
            check=True,
            become_user=become_user,
            no_log=True,
        )
        return cp.stdout.rstrip("\n")
