# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations
from typing import Protocol, runtime_checkable
from .events import BaseEvent


@runtime_checkable
class Observer(Protocol):
    """Anything that wants run/bootstrap events: console, log file, JSONL."""

    def notify(self, event: BaseEvent) -> None: ...
