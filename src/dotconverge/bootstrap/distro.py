# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/dotconverge/bootstrap/distro.py
from __future__ import annotations

import logging
import os
import shlex
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List

from dotconverge.errors import DependencyError

log = logging.getLogger("dotconverge")

OS_RELEASE = Path("/etc/os-release")

# os-release ID / ID_LIKE value -> package family we know how to drive
_FAMILIES = {
    "arch": "arch",
    "archarm": "arch",
    "endeavouros": "arch",
    "manjaro": "arch",
    "ubuntu": "debian",
    "debian": "debian",
}


@dataclass(frozen=True)
class Distribution:
    id: str            # os-release ID, e.g. "arch", "ubuntu"
    family: str        # "arch" | "debian"
    pretty_name: str


def parse_os_release(text: str) -> Dict[str, str]:
    out: Dict[str, str] = {}
    for raw in text.splitlines():
        line = raw.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        parts = shlex.split(value) if value else [""]
        out[key.strip()] = " ".join(parts)
    return out


def detect_distribution(os_release: Path = OS_RELEASE) -> Distribution:
    """
    Identify the host from /etc/os-release. ID wins over ID_LIKE.
    Raises DependencyError for anything that is not Arch or Debian-like.
    """
    try:
        info = parse_os_release(os_release.read_text())
    except OSError as exc:
        raise DependencyError(f"cannot read {os_release}: {exc}") from exc

    dist_id = info.get("ID", "").lower()
    candidates = [dist_id] + info.get("ID_LIKE", "").lower().split()
    for c in candidates:
        if c in _FAMILIES:
            return Distribution(
                id=dist_id,
                family=_FAMILIES[c],
                pretty_name=info.get("PRETTY_NAME", dist_id),
            )
    raise DependencyError(f"unsupported distribution: {dist_id or 'unknown'}")


def _sudo() -> List[str]:
    return [] if os.geteuid() == 0 else ["sudo"]


class PackageManager:
    """
    Checks packages one at a time and installs only the missing ones.
    *runner* is anything with ``run(argv, check=...)`` returning a
    CompletedProcess (CommandRunner or the bootstrap's transient-log runner).
    """

    def __init__(self, runner):
        self.runner = runner

    def is_installed(self, package: str) -> bool:
        raise NotImplementedError

    def install(self, package: str) -> None:
        raise NotImplementedError

    def ensure(self, packages: Iterable[str]) -> List[str]:
        """Install whatever is missing; return the names that were installed."""
        installed: List[str] = []
        for pkg in packages:
            if self.is_installed(pkg):
                log.debug("package %s already present", pkg)
                continue
            log.info("installing package %s", pkg)
            self.install(pkg)
            installed.append(pkg)
        return installed


class Pacman(PackageManager):
    def is_installed(self, package: str) -> bool:
        return self.runner.run(["pacman", "-Q", package], check=False).returncode == 0

    def install(self, package: str) -> None:
        self.runner.run(
            _sudo() + ["pacman", "-S", "--noconfirm", "--needed", package],
            check=True,
        )


class Apt(PackageManager):
    def __init__(self, runner):
        super().__init__(runner)
        self._updated = False

    def is_installed(self, package: str) -> bool:
        cp = self.runner.run(
            ["dpkg-query", "-W", "-f=${Status}", package], check=False
        )
        return cp.returncode == 0 and "install ok installed" in (cp.stdout or "")

    def install(self, package: str) -> None:
        if not self._updated:
            self.runner.run(_sudo() + ["apt-get", "update", "-q"], check=True)
            self._updated = True
        self.runner.run(
            _sudo() + ["env", "DEBIAN_FRONTEND=noninteractive",
                       "apt-get", "install", "-y", "-q", package],
            check=True,
        )


def package_manager_for(family: str, runner) -> PackageManager:
    if family == "arch":
        return Pacman(runner)
    if family == "debian":
        return Apt(runner)
    raise DependencyError(f"no package manager for distribution family '{family}'")
