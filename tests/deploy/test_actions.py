from pathlib import Path
import subprocess

import pytest

from dotconverge.config.models import (
    CommandAction,
    FileAction,
    InjectAction,
    PackageAction,
    RoleSpec,
)
from dotconverge.deploy import actions
from dotconverge.deploy.templating import TemplateRenderer
from dotconverge.errors import CommandError, ConfigError


class FakeSecrets:
    def __init__(self, fail=False):
        self.fail = fail
        self.injected = []

    def inject(self, src, dest, become_user=None):
        self.injected.append((src, dest, become_user))
        if self.fail:
            raise CommandError(["op", "inject"], 1, "password=hunter2", "hunter2")
        dest.write_text("resolved\n")


class FakeRunner:
    def __init__(self, installed=()):
        self.installed = set(installed)
        self.calls = []

    def run(self, argv, check=False, **kw):
        argv = [str(a) for a in argv]
        self.calls.append(argv)
        if argv[:2] == ["pacman", "-Q"]:
            return subprocess.CompletedProcess(argv, 0 if argv[2] in self.installed else 1, "", "")
        return subprocess.CompletedProcess(argv, 0, "", "")

    def shell(self, script, **kw):
        return self.run(["bash", "-c", script], **kw)


def _ctx(tmp_path: Path, dry_run=False, secrets=None, runner=None, **variables):
    return actions.ActionContext(
        role=RoleSpec(name="r", path=tmp_path / "roles" / "r"),
        variables=variables,
        renderer=TemplateRenderer(),
        runner=runner or FakeRunner(),
        secrets=secrets or FakeSecrets(),
        dry_run=dry_run,
    )


def test_registry_knows_every_action_key():
    for key in ("copy", "template", "command", "file", "inject", "package", "set_fact"):
        assert actions.has(key)
    with pytest.raises(KeyError):
        actions.get("debug")


def test_command_creates_marker_skips(tmp_path: Path):
    marker = tmp_path / "done"
    marker.touch()
    runner = FakeRunner()
    res = actions.get("command")(CommandAction(cmd="make install", creates=str(marker)), _ctx(tmp_path, runner=runner))
    assert res.changed is False
    assert res.skipped_reason
    assert runner.calls == []


def test_read_only_command_never_changes(tmp_path: Path):
    res = actions.get("command")(CommandAction(cmd="true", changed=False), _ctx(tmp_path))
    assert res.changed is False


def test_file_states(tmp_path: Path):
    handler = actions.get("file")
    d = tmp_path / "a" / "b"
    assert handler(FileAction(path=str(d), state="directory", mode="0700"), _ctx(tmp_path)).changed
    assert d.stat().st_mode & 0o777 == 0o700
    assert not handler(FileAction(path=str(d), state="directory", mode="0700"), _ctx(tmp_path)).changed

    link = tmp_path / "link"
    assert handler(FileAction(path=str(link), state="link", src=str(d)), _ctx(tmp_path)).changed
    assert link.is_symlink()
    assert not handler(FileAction(path=str(link), state="link", src=str(d)), _ctx(tmp_path)).changed

    assert handler(FileAction(path=str(d), state="absent"), _ctx(tmp_path)).changed
    assert not d.exists()
    assert not handler(FileAction(path=str(d), state="absent"), _ctx(tmp_path)).changed

    with pytest.raises(ConfigError):
        handler(FileAction(path=str(tmp_path / "missing")), _ctx(tmp_path))


def test_inject_reports_first_write_then_ok(tmp_path: Path):
    src = tmp_path / "vars.secret.tpl"
    src.write_text("X={{ op://v/i/f }}\n")
    dest = tmp_path / "vars.secret"
    secrets = FakeSecrets()
    handler = actions.get("inject")
    assert handler(InjectAction(src=str(src), dest=str(dest)), _ctx(tmp_path, secrets=secrets)).changed is True
    assert dest.stat().st_mode & 0o777 == 0o600
    assert secrets.injected[0][1] == dest
    assert handler(InjectAction(src=str(src), dest=str(dest)), _ctx(tmp_path, secrets=secrets)).changed is False


def test_inject_reads_bare_names_from_role_files(tmp_path: Path):
    tpl = tmp_path / "roles" / "r" / "files" / "key.tpl"
    tpl.parent.mkdir(parents=True)
    tpl.write_text("{{ op://v/key/private }}\n")
    secrets = FakeSecrets()
    actions.get("inject")(InjectAction(src="key.tpl", dest=str(tmp_path / "key")), _ctx(tmp_path, secrets=secrets))
    assert secrets.injected[0][0] == tpl.resolve()


def test_inject_in_check_mode_needs_no_template(tmp_path: Path):
    secrets = FakeSecrets()
    res = actions.get("inject")(
        InjectAction(src=str(tmp_path / "not-copied-yet.tpl"), dest=str(tmp_path / "x")),
        _ctx(tmp_path, dry_run=True, secrets=secrets),
    )
    assert res.changed is True
    assert secrets.injected == []


def test_inject_failure_scrubs_output(tmp_path: Path):
    src = tmp_path / "t.tpl"
    src.write_text("x")
    with pytest.raises(CommandError) as ei:
        actions.get("inject")(
            InjectAction(src=str(src), dest=str(tmp_path / "t")),
            _ctx(tmp_path, secrets=FakeSecrets(fail=True)),
        )
    assert "hunter2" not in str(ei.value)


def test_inject_missing_template(tmp_path: Path):
    with pytest.raises(ConfigError):
        actions.get("inject")(InjectAction(src=str(tmp_path / "nope"), dest=str(tmp_path / "x")), _ctx(tmp_path))


def test_package_installs_missing_only(tmp_path: Path):
    runner = FakeRunner(installed={"zsh"})
    res = actions.get("package")(PackageAction(name=["zsh", "tmux"]), _ctx(tmp_path, runner=runner, os_family="arch"))
    assert res.changed is True
    installs = [c for c in runner.calls if "-S" in c]
    assert [c[-1] for c in installs] == ["tmux"]

    runner = FakeRunner(installed={"zsh"})
    res = actions.get("package")(PackageAction(name="zsh"), _ctx(tmp_path, runner=runner, os_family="arch"))
    assert res.changed is False


def test_package_check_mode_only_queries(tmp_path: Path):
    runner = FakeRunner()
    res = actions.get("package")(PackageAction(name="tmux"), _ctx(tmp_path, dry_run=True, runner=runner, os_family="arch"))
    assert res.changed is True
    assert all(c[:2] == ["pacman", "-Q"] for c in runner.calls)


def test_set_fact_returns_facts(tmp_path: Path):
    res = actions.get("set_fact")({"bash_config_installed": True}, _ctx(tmp_path))
    assert res.facts == {"bash_config_installed": True}
    assert res.changed is False
