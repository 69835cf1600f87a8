# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

#src/dotconverge/logging/log.py

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path

LOG_DIR = Path(".dotconverge") / "logs"
KEEP_RUNS = 20

_FORMAT = "%(asctime)s | %(levelname)-7s | %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"


def prune_logs(base_dir: Path, name: str, keep: int = KEEP_RUNS) -> list[Path]:
    """Delete all but the newest *keep* ``{name}-*.log`` files; returns what was removed."""
    logs = sorted(base_dir.glob(f"{name}-*.log"), key=lambda p: p.stat().st_mtime, reverse=True)
    removed = []
    for old in logs[keep:]:
        old.unlink(missing_ok=True)
        removed.append(old)
    return removed


def init_logging(
    *,
    base_dir: Path | None = None,
    name: str = "dotconverge",
    prefix: str | None = None,
    verbose: bool = False,
) -> tuple[logging.Logger, str, Path]:
    """
    One log file per run under ~/.dotconverge/logs, holding every command
    and its output at DEBUG. The console only shows warnings unless
    *verbose*; progress goes through the observers instead.

    *prefix* names the log files (defaults to *name*), so the bootstrap can
    keep its own files while logging through the same logger.

    Returns (logger, run_id, log_path) so observers can share the run id.
    """
    run_id = str(uuid.uuid4())
    base_dir = base_dir or Path.home() / LOG_DIR
    base_dir.mkdir(parents=True, exist_ok=True)
    prefix = prefix or name
    prune_logs(base_dir, prefix, keep=KEEP_RUNS - 1)

    stamp = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
    log_path = base_dir / f"{prefix}-{stamp}-{run_id}.log"

    logger = logging.getLogger(name)
    for h in list(logger.handlers):
        h.close()
        logger.removeHandler(h)
    logger.setLevel(logging.DEBUG)
    logger.propagate = False

    formatter = logging.Formatter(_FORMAT, datefmt=_DATEFMT)

    trace = logging.FileHandler(log_path, encoding="utf-8")
    trace.setLevel(logging.DEBUG)
    trace.setFormatter(formatter)
    logger.addHandler(trace)

    console = logging.StreamHandler()
    console.setLevel(logging.DEBUG if verbose else logging.WARNING)
    console.setFormatter(formatter)
    logger.addHandler(console)

    logger.info("%s run %s started, trace in %s", prefix, run_id, log_path)
    return logger, run_id, log_path
