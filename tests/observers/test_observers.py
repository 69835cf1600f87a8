from pathlib import Path
import json
import logging

from dotconverge.observers.console import ConsoleObserver
from dotconverge.observers.dispatcher import EventBus
from dotconverge.observers.events import (
    RunSummary,
    TaskFailed,
    TaskSkipped,
    TaskSucceeded,
    new_ctx,
)
from dotconverge.observers.jsonfile import JsonFileObserver
from dotconverge.observers.logger import LoggerObserver


class Broken:
    def notify(self, ev): raise RuntimeError("observer bug")


class Capture:
    def __init__(self): self.events = []
    def notify(self, ev): self.events.append(ev)


def _ctx():
    return new_ctx(user="me", run_id="run-1")


def test_bus_keeps_going_when_an_observer_raises():
    cap = Capture()
    EventBus([Broken(), cap]).emit(RunSummary(ok=1, changed=0, skipped=0, failed=0, **_ctx()))
    assert len(cap.events) == 1


def test_json_file_observer_writes_one_line_per_event(tmp_path: Path):
    path = tmp_path / "logs" / "run-1.jsonl"
    ob = JsonFileObserver(path)
    ob.notify(TaskSucceeded(role="bash", task="copy", changed=True, duration_ms=3, **_ctx()))
    ob.notify(RunSummary(ok=0, changed=1, skipped=0, failed=0, **_ctx()))
    lines = [json.loads(l) for l in path.read_text().splitlines()]
    assert [l["event"] for l in lines] == ["TaskSucceeded", "RunSummary"]
    assert lines[0]["role"] == "bash"
    assert lines[0]["run_id"] == "run-1"


def test_logger_observer(caplog):
    logger = logging.getLogger("dc-test-observer")
    with caplog.at_level(logging.INFO, logger="dc-test-observer"):
        LoggerObserver(logger).notify(TaskFailed(role="zsh", task="inject", error="boom", **_ctx()))
    assert "[EVENT] TaskFailed" in caplog.text
    assert "error=boom" in caplog.text


def test_console_observer_lines(capsys):
    ob = ConsoleObserver()
    ob.notify(TaskSucceeded(role="bash", task="copy bashrc", changed=False, duration_ms=1, **_ctx()))
    ob.notify(TaskSucceeded(role="bash", task="copy dir", changed=True, duration_ms=1, **_ctx()))
    ob.notify(TaskSkipped(role="bash", task="gh", reason="condition false: gh_installed", **_ctx()))
    ob.notify(TaskFailed(role="bash", task="inject", error="boom", **_ctx()))
    ob.notify(RunSummary(ok=1, changed=1, skipped=1, failed=1, **_ctx()))
    out, err = capsys.readouterr()
    assert "ok: copy bashrc" in out
    assert "changed: copy dir" in out
    assert "skipping: gh (condition false: gh_installed)" in out
    assert "failed: inject" in err
    assert "RECAP ok=1 changed=1 skipped=1 failed=1" in out


def test_console_observer_can_hide_skips(capsys):
    ConsoleObserver(show_skipped=False).notify(TaskSkipped(role="r", task="t", reason="x", **_ctx()))
    assert capsys.readouterr().out == ""


def test_json_file_is_private(tmp_path: Path):
    path = tmp_path / "run.jsonl"
    JsonFileObserver(path)
    assert path.stat().st_mode & 0o777 == 0o600


def test_logger_observer_levels(caplog):
    logger = logging.getLogger("dc-test-levels")
    with caplog.at_level(logging.DEBUG, logger="dc-test-levels"):
        ob = LoggerObserver(logger)
        ob.notify(TaskSkipped(role="r", task="t", reason="x", **_ctx()))
        ob.notify(TaskFailed(role="r", task="t", error="e", **_ctx()))
    assert [r.levelno for r in caplog.records] == [logging.DEBUG, logging.ERROR]
