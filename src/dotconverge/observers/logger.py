# src/dotconverge/observers/logger.py
from __future__ import annotations

import logging

from .events import BaseEvent, FactsCollected, TaskFailed, TaskSkipped

# context fields every event carries; the log line already has a timestamp
_CTX = ("ts", "host")


class LoggerObserver:
    """
    Mirrors events into the run log. Failures log at ERROR, skips at DEBUG.
    Fact values are left out, only the fact names are logged.
    """

    def __init__(self, logger: logging.Logger):
        self.logger = logger

    def notify(self, event: BaseEvent) -> None:
        d = event.dict()
        if isinstance(event, FactsCollected):
            d["facts"] = sorted(d["facts"])
        msg = ", ".join(f"{k}={v}" for k, v in d.items() if k not in _CTX)

        level = logging.INFO
        if isinstance(event, TaskFailed):
            level = logging.ERROR
        elif isinstance(event, TaskSkipped):
            level = logging.DEBUG
        self.logger.log(level, "[EVENT] %s: %s", type(event).__name__, msg)
