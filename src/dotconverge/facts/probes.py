# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/dotconverge/facts/probes.py
from __future__ import annotations

import json
import subprocess
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence, Tuple

from .models import FactValue

Parser = Callable[[subprocess.CompletedProcess], FactValue]


def exit_ok(cp: subprocess.CompletedProcess) -> bool:
    return cp.returncode == 0


def json_path(*keys: str) -> Parser:
    """Truthiness of a nested key in JSON stdout, False on any error."""

    def _parse(cp: subprocess.CompletedProcess) -> bool:
        if cp.returncode != 0:
            return False
        try:
            node = json.loads(cp.stdout or "")
            for k in keys:
                node = node[k]
        except (ValueError, KeyError, TypeError):
            return False
        return bool(node)

    return _parse


def output_contains(needle: str) -> Parser:
    # gh prints its status on stderr, so look at both streams
    def _parse(cp: subprocess.CompletedProcess) -> bool:
        return needle in (cp.stdout or "") or needle in (cp.stderr or "")

    return _parse


@dataclass(frozen=True)
class Probe:
    """
    One host check. Exactly one of ``argv``, ``shell`` or ``paths``.
    When any fact in ``depends_on`` is false the probe is not run and its
    fact is False.
    """
    name: str
    argv: Optional[Sequence[str]] = None
    shell: Optional[str] = None
    paths: Tuple[str, ...] = ()
    parse: Parser = exit_ok
    depends_on: Tuple[str, ...] = ()
    become_user: Optional[str] = None
    description: str = ""

    def __post_init__(self):
        given = sum(1 for x in (self.argv, self.shell, self.paths or None) if x)
        if given != 1:
            raise ValueError(f"probe '{self.name}' needs exactly one of argv, shell, paths")


def _which(name: str, tool: str, **kw) -> Probe:
    return Probe(name=name, argv=("which", tool), description=f"{tool} on PATH", **kw)


def default_probes(
    host_user: str,
    host_home: str,
    managed_users: Sequence[str] = (),
) -> List[Probe]:
    """
    The standard probe list, in dependency order.
    """
    host_exists = f"{host_user}_exists"
    user_names = list(dict.fromkeys([*managed_users, host_user]))
    zsh_dir = f"{host_home}/.config/zsh"

    probes: List[Probe] = [
        _which("op_installed", "op"),
        Probe(
            name="nix_installed",
            shell="[ -r /etc/profile.d/nix.sh ] && . /etc/profile.d/nix.sh; which nix",
            description="nix on PATH after sourcing the profile",
        ),
        _which("zsh_installed", "zsh"),
        Probe(
            name="zsh_config_installed",
            paths=(zsh_dir, f"{zsh_dir}/vars.secret"),
            description="zsh config dir and injected secrets present",
        ),
    ]
    probes += [
        Probe(name=f"{u}_exists", argv=("id", "-u", u), description=f"user {u} exists")
        for u in user_names
    ]
    probes += [
        _which(
            "tailscale_installed", "tailscale",
            depends_on=(host_exists,), become_user=host_user,
        ),
        Probe(
            name="tailscale_authed",
            argv=("tailscale", "status", "--json"),
            parse=json_path("Self", "Online"),
            depends_on=("tailscale_installed",),
            description="tailscale node online",
        ),
        _which(
            "gh_installed", "gh",
            depends_on=(host_exists, "nix_installed"), become_user=host_user,
        ),
        Probe(
            name="gh_authed",
            argv=("gh", "auth", "status"),
            parse=output_contains("Logged in to github.com"),
            depends_on=("gh_installed", "zsh_config_installed"),
            become_user=host_user,
            description="gh logged in to github.com",
        ),
        Probe(
            name="home_manager_installed",
            shell="[ -r /etc/profile.d/nix.sh ] && . /etc/profile.d/nix.sh; which home-manager",
            depends_on=("nix_installed", host_exists),
            become_user=host_user,
        ),
    ]
    return probes
