from pathlib import Path
import subprocess

import pytest

from dotconverge.errors import CommandError
from dotconverge.execution import runner as runner_mod
from dotconverge.execution.runner import CommandRunner, become_prefix
from dotconverge.utils.shell import StepRunner


class DummyCP:
    def __init__(self, rc=0, out="", err=""):
        self.returncode = rc
        self.stdout = out
        self.stderr = err


def test_become_prefix(monkeypatch):
    monkeypatch.setattr(runner_mod, "current_user", lambda: "root")
    assert become_prefix(None) == []
    assert become_prefix("root") == []
    assert become_prefix("me") == ["sudo", "-u", "me", "-H", "--"]


def test_command_runner_check_raises_with_output(monkeypatch):
    def fake_run(argv, **kwargs):
        return DummyCP(3, "", "nope")
    monkeypatch.setattr(subprocess, "run", fake_run)

    r = CommandRunner()
    assert r.run(["false"]).returncode == 3
    with pytest.raises(CommandError) as ei:
        r.run(["false"], check=True)
    assert ei.value.returncode == 3
    assert "nope" in str(ei.value)


def test_command_runner_missing_binary_is_127(monkeypatch):
    def fake_run(argv, **kwargs):
        raise FileNotFoundError(argv[0])
    monkeypatch.setattr(subprocess, "run", fake_run)
    assert CommandRunner().run(["no-such-tool"]).returncode == 127


def test_command_runner_merges_env_and_shell(monkeypatch):
    seen = {}

    def fake_run(argv, **kwargs):
        seen["argv"] = argv
        seen["env"] = kwargs.get("env")
        return DummyCP(0)
    monkeypatch.setattr(subprocess, "run", fake_run)

    CommandRunner().shell("echo $X", env={"X": "1"})
    assert seen["argv"] == ["bash", "-c", "echo $X"]
    assert seen["env"]["X"] == "1"
    assert "PATH" in seen["env"]


def test_command_runner_dry_run_executes_nothing(monkeypatch):
    def fake_run(argv, **kwargs):
        raise AssertionError("should not run")
    monkeypatch.setattr(subprocess, "run", fake_run)
    assert CommandRunner(dry_run=True).run(["rm", "-rf", "/tmp/x"]).returncode == 0


def test_no_log_hides_arguments(monkeypatch):
    monkeypatch.setattr(subprocess, "run", lambda argv, **kw: DummyCP(1, "s3cret", "s3cret"))
    with pytest.raises(CommandError) as ei:
        CommandRunner().shell("tailscale up --authkey s3cret", check=True, no_log=True)
    assert "s3cret" not in str(ei.value)


def test_step_runner_deletes_log_on_success(monkeypatch, tmp_path: Path):
    monkeypatch.setattr(subprocess, "run", lambda argv, **kw: DummyCP(0, "fine\n"))
    log = tmp_path / "dotfiles.log"
    StepRunner(log).run(["git", "pull"])
    assert not log.exists()


def test_step_runner_keeps_and_prints_log_on_failure(monkeypatch, tmp_path: Path, capsys):
    outputs = iter([DummyCP(1, "", "first failure\n"), DummyCP(1, "", "second failure\n")])
    monkeypatch.setattr(subprocess, "run", lambda argv, **kw: next(outputs))
    log = tmp_path / "dotfiles.log"
    steps = StepRunner(log)
    steps.task("Cloning")

    with pytest.raises(CommandError):
        steps.run(["git", "clone", "x"])
    assert "first failure" in log.read_text()

    with pytest.raises(CommandError):
        steps.run(["git", "clone", "x"])
    # truncated per command
    text = log.read_text()
    assert "second failure" in text
    assert "first failure" not in text
    err = capsys.readouterr().err
    assert "Cloning" in err
    assert "second failure" in err


def test_command_runner_passes_env_through_sudo(monkeypatch):
    seen = {}

    def fake_run(argv, **kwargs):
        seen["argv"] = argv
        return DummyCP(0)
    monkeypatch.setattr(subprocess, "run", fake_run)
    monkeypatch.setattr(runner_mod, "current_user", lambda: "root")

    CommandRunner().shell('echo "$X"', env={"X": "1"}, become_user="me")
    assert seen["argv"] == ["sudo", "-u", "me", "-H", "--", "env", "X=1", "bash", "-c", 'echo "$X"']
