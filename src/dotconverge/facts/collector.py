# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/dotconverge/facts/collector.py
from __future__ import annotations

import logging
import os
import pwd
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence

from dotconverge.bootstrap.distro import OS_RELEASE, detect_distribution
from dotconverge.errors import DependencyError, ProbeOrderError
from dotconverge.execution.runner import CommandRunner
from dotconverge.observers.dispatcher import EventBus
from dotconverge.observers.events import FactsCollected
from .models import FactSet, FactValue
from .probes import Probe, default_probes

log = logging.getLogger("dotconverge")


def validate_order(probes: Sequence[Probe], seeded: Sequence[str] = ()) -> None:
    """
    Every dependency must be a seed fact or a probe listed earlier.
    """
    known = set(seeded)
    for p in probes:
        missing = [d for d in p.depends_on if d not in known]
        if missing:
            raise ProbeOrderError(
                f"probe '{p.name}' depends on {', '.join(missing)} "
                f"which is not computed before it"
            )
        known.add(p.name)


def home_of(user: str) -> str:
    try:
        return pwd.getpwnam(user).pw_dir
    except KeyError:
        return f"/home/{user}"


class FactCollector:
    """
    Runs probes in order and returns an immutable FactSet.
    Probing is best-effort: errors become False, never exceptions.
    """

    def __init__(
        self,
        probes: Sequence[Probe],
        *,
        runner: Optional[CommandRunner] = None,
        seed: Optional[Mapping[str, FactValue]] = None,
    ):
        self.seed: Dict[str, FactValue] = dict(seed or {})
        validate_order(probes, seeded=list(self.seed))
        self.probes = list(probes)
        self.runner = runner or CommandRunner(label="facts")
        self.skipped: List[str] = []

    def _run_probe(self, probe: Probe) -> FactValue:
        if probe.paths:
            return all(Path(p).exists() for p in probe.paths)
        try:
            if probe.shell:
                cp = self.runner.shell(probe.shell, become_user=probe.become_user)
            else:
                cp = self.runner.run(list(probe.argv), become_user=probe.become_user)
            return probe.parse(cp)
        except Exception as exc:
            log.debug("probe %s errored: %s", probe.name, exc)
            return False

    def collect(self, bus: Optional[EventBus] = None, run_ctx: Optional[dict] = None) -> FactSet:
        facts: Dict[str, FactValue] = dict(self.seed)
        self.skipped = []
        for probe in self.probes:
            if not all(facts.get(d) for d in probe.depends_on):
                facts[probe.name] = False
                self.skipped.append(probe.name)
                log.debug("fact %s=False (dependency not met)", probe.name)
                continue
            facts[probe.name] = self._run_probe(probe)
            log.debug("fact %s=%s", probe.name, facts[probe.name])

        result = FactSet(facts)
        if bus and run_ctx is not None:
            bus.emit(FactsCollected(facts=result.as_dict(), skipped=list(self.skipped), **run_ctx))
        return result


def seed_facts(host_user: str, os_family: str = "", distribution: str = "") -> Dict[str, FactValue]:
    return {
        "host_user": host_user,
        "host_user_home": home_of(host_user),
        "os_family": os_family,
        "distribution": distribution,
        "is_root": os.geteuid() == 0,
    }


def gather_facts(
    host_user: str,
    managed_users: Sequence[str] = (),
    *,
    runner: Optional[CommandRunner] = None,
    bus: Optional[EventBus] = None,
    run_ctx: Optional[dict] = None,
    os_release: Optional[Path] = None,
) -> FactSet:
    """
    Seed facts plus the default probe list for *host_user*.
    An unrecognised distribution leaves os_family empty instead of failing.
    """
    try:
        distro = detect_distribution(os_release or OS_RELEASE)
        family, dist_id = distro.family, distro.id
    except DependencyError as exc:
        log.warning("%s", exc)
        family, dist_id = "", ""

    seed = seed_facts(host_user, os_family=family, distribution=dist_id)
    probes = default_probes(host_user, str(seed["host_user_home"]), managed_users)
    return FactCollector(probes, runner=runner, seed=seed).collect(bus=bus, run_ctx=run_ctx)
