# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/dotconverge/observers/events.py

from __future__ import annotations
from dataclasses import dataclass, asdict
from typing import List, Dict, Any, Optional
from datetime import datetime, timezone
import socket
import uuid


# ---------------------------------------------------------------------
# Base context and helper
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class BaseEvent:
    ts: str           # ISO timestamp
    run_id: str       # correlates all events in a single invocation
    host: str         # hostname being converged
    user: Optional[str]  # host user the run acts for

    def dict(self) -> Dict[str, Any]:
        return asdict(self)


def new_ctx(user: Optional[str], run_id: Optional[str] = None) -> Dict[str, Any]:
    return {
        "ts": datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z"),
        "run_id": run_id or str(uuid.uuid4()),
        "host": socket.gethostname(),
        "user": user,
    }


# ---------------------------------------------------------------------
# Run lifecycle
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class RunStarted(BaseEvent):
    playbook: str
    check: bool

@dataclass(frozen=True)
class FactsCollected(BaseEvent):
    facts: Dict[str, Any]
    skipped: List[str]

@dataclass(frozen=True)
class RolesSelected(BaseEvent):
    order: List[str]
    explicit: bool


# ---------------------------------------------------------------------
# Role / task lifecycle
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class RoleStarted(BaseEvent):
    role: str
    tasks: int

@dataclass(frozen=True)
class TaskSkipped(BaseEvent):
    role: str
    task: str
    reason: str

@dataclass(frozen=True)
class TaskSucceeded(BaseEvent):
    role: str
    task: str
    changed: bool
    duration_ms: int

@dataclass(frozen=True)
class TaskFailed(BaseEvent):
    role: str
    task: str
    error: str

@dataclass(frozen=True)
class RunSummary(BaseEvent):
    ok: int
    changed: int
    skipped: int
    failed: int


# ---------------------------------------------------------------------
# Bootstrap script
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class BootstrapStateChanged(BaseEvent):
    state: str
    message: Optional[str] = None
