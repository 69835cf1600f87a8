# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

from typing import Iterable, List, Optional

from ..observers.dispatcher import EventBus
from ..observers.events import RolesSelected


def _is_explicit(tags: Optional[Iterable[str]]) -> bool:
    tags = list(tags or [])
    return bool(tags) and tags != ["all"]


def select_roles(
    default_roles: Iterable[str],
    tags: Optional[Iterable[str]] = None,
    exclude_roles: Optional[Iterable[str]] = None,
    bus: Optional[EventBus] = None,
    run_ctx: Optional[dict] = None,
) -> List[str]:
    """
    Resolve which roles run, in what order.

    Explicit tags select exactly those roles, as given (duplicates dropped),
    ignoring defaults and exclusions. Without tags (or with just "all") the
    defaults minus the exclusions run in sorted order. An empty result is a
    valid no-op run.
    """
    explicit = _is_explicit(tags)
    if explicit:
        order = list(dict.fromkeys(t for t in tags if t))
    else:
        excluded = set(exclude_roles or [])
        order = sorted({r for r in default_roles if r not in excluded})

    if bus and run_ctx is not None:
        bus.emit(RolesSelected(order=list(order), explicit=explicit, **run_ctx))
    return order
