# src/dotconverge/observers/jsonfile.py
from __future__ import annotations

import json
import os
from pathlib import Path

from .events import BaseEvent


class JsonFileObserver:
    """
    Appends one JSON object per event to a ``.jsonl`` file, readable only by
    the owner (events carry user names and home paths).
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        if not self.path.exists():
            self.path.touch(mode=0o600)

    def notify(self, event: BaseEvent) -> None:
        record = {"event": type(event).__name__, **event.dict()}
        with self.path.open("a", encoding="utf-8") as f:
            f.write(json.dumps(record, default=str, sort_keys=True) + os.linesep)
