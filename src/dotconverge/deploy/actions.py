# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/dotconverge/deploy/actions.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional

from ..bootstrap.distro import package_manager_for
from ..config.models import (
    CommandAction,
    CopyAction,
    FileAction,
    InjectAction,
    PackageAction,
    RoleSpec,
    TemplateAction,
)
from ..errors import CommandError, ConfigError
from ..execution.runner import CommandRunner
from ..secrets.onepassword import OnePasswordCLI
from ..utils import fs
from .templating import TemplateRenderer

log = logging.getLogger("dotconverge")


@dataclass
class ActionContext:
    """Everything a handler may touch for one task invocation."""
    role: RoleSpec
    variables: Mapping[str, Any]
    renderer: TemplateRenderer
    runner: CommandRunner
    secrets: OnePasswordCLI
    dry_run: bool = False
    become_user: Optional[str] = None
    no_log: bool = False


@dataclass
class ActionResult:
    changed: bool = False
    facts: Dict[str, Any] = field(default_factory=dict)
    skipped_reason: Optional[str] = None


Handler = Callable[[Any, ActionContext], ActionResult]

# Action registry keyed by the task's action key.
_ACTIONS: Dict[str, Handler] = {}


def register(name: str):
    """Decorator to register an action handler by name."""
    def _wrap(fn: Handler):
        _ACTIONS[name] = fn
        return fn
    return _wrap


def get(name: str) -> Handler:
    """Fetch a handler by name. Raises KeyError if not found."""
    return _ACTIONS[name]


def has(name: str) -> bool:
    return name in _ACTIONS


# ------------------ helpers ------------------

def _role_source(base: Path, src: str) -> Path:
    p = (base / src).resolve()
    if not p.exists():
        raise ConfigError(f"source not found: {p}")
    return p


def _copy_tree(src: Path, dest: Path, a: CopyAction, dry_run: bool) -> bool:
    changed = fs.ensure_directory(
        dest, mode=a.directory_mode, owner=a.owner, group=a.group, dry_run=dry_run
    )
    for child in sorted(src.rglob("*")):
        target = dest / child.relative_to(src)
        if child.is_dir():
            changed |= fs.ensure_directory(
                target, mode=a.directory_mode, owner=a.owner, group=a.group, dry_run=dry_run
            )
        else:
            changed |= fs.write_file(
                target, child.read_bytes(),
                mode=a.mode, owner=a.owner, group=a.group, force=a.force, dry_run=dry_run,
            )
    return changed


# ------------------ handlers ------------------

@register("copy")
def copy_action(a: CopyAction, ctx: ActionContext) -> ActionResult:
    src = _role_source(ctx.role.files_dir, a.src)
    dest = Path(a.dest).expanduser()

    if src.is_dir():
        # "dir/" means "into dir", like cp -r src dir/
        if a.dest.endswith("/"):
            dest = dest / src.name
        return ActionResult(changed=_copy_tree(src, dest, a, ctx.dry_run))

    if a.dest.endswith("/") or dest.is_dir():
        dest = dest / src.name
    changed = fs.write_file(
        dest, src.read_bytes(),
        mode=a.mode, owner=a.owner, group=a.group, force=a.force, dry_run=ctx.dry_run,
    )
    return ActionResult(changed=changed)


@register("template")
def template_action(a: TemplateAction, ctx: ActionContext) -> ActionResult:
    _role_source(ctx.role.templates_dir, a.src)
    text = ctx.renderer.render_file(ctx.role.templates_dir, a.src, ctx.variables)
    changed = fs.write_file(
        Path(a.dest).expanduser(), text.encode("utf-8"),
        mode=a.mode, owner=a.owner, group=a.group, dry_run=ctx.dry_run,
    )
    return ActionResult(changed=changed)


@register("command")
def command_action(a: CommandAction, ctx: ActionContext) -> ActionResult:
    if a.creates and Path(a.creates).expanduser().exists():
        return ActionResult(changed=False, skipped_reason=f"{a.creates} exists")
    if ctx.dry_run:
        return ActionResult(changed=a.changed)

    ctx.runner.shell(
        a.cmd,
        check=True,
        cwd=a.chdir,
        env=a.environment or None,
        become_user=ctx.become_user,
        no_log=ctx.no_log,
    )
    return ActionResult(changed=a.changed)


@register("file")
def file_action(a: FileAction, ctx: ActionContext) -> ActionResult:
    path = Path(a.path).expanduser()
    dry = ctx.dry_run

    if a.state == "directory":
        changed = fs.ensure_directory(path, mode=a.mode, owner=a.owner, group=a.group, dry_run=dry)
    elif a.state == "absent":
        changed = fs.ensure_absent(path, dry_run=dry)
    elif a.state == "link":
        if not a.src:
            raise ConfigError(f"file {path}: state=link needs src")
        changed = fs.ensure_symlink(path, a.src, dry_run=dry)
    elif a.state == "touch":
        changed = False
        if not path.exists():
            changed = True
            if not dry:
                path.parent.mkdir(parents=True, exist_ok=True)
                path.touch()
        if path.exists():
            changed |= fs.ensure_attrs(path, mode=a.mode, owner=a.owner, group=a.group, dry_run=dry)
    else:
        if not path.exists():
            raise ConfigError(f"file {path} does not exist")
        changed = fs.ensure_attrs(path, mode=a.mode, owner=a.owner, group=a.group, dry_run=dry)
    return ActionResult(changed=changed)


def _inject_source(role: RoleSpec, src: str) -> Path:
    # bare names are looked up in the role's files/, like copy
    p = Path(src).expanduser()
    return p if p.is_absolute() else (role.files_dir / p).resolve()


@register("inject")
def inject_action(a: InjectAction, ctx: ActionContext) -> ActionResult:
    src = _inject_source(ctx.role, a.src)
    dest = Path(a.dest).expanduser()
    if ctx.dry_run:
        # the template may come from an earlier copy that was only simulated
        return ActionResult(changed=not dest.is_file())
    if not src.is_file():
        raise ConfigError(f"secret template not found: {src}")

    before = dest.read_bytes() if dest.is_file() else None
    try:
        ctx.secrets.inject(src, dest, become_user=ctx.become_user)
    except CommandError as exc:
        # the captured output may contain resolved secrets
        raise CommandError(exc.argv, exc.returncode, "", "secret injection failed") from None
    changed = dest.read_bytes() != before
    changed |= fs.ensure_attrs(dest, mode=a.mode, owner=a.owner, group=a.group)
    return ActionResult(changed=changed)


@register("package")
def package_action(a: PackageAction, ctx: ActionContext) -> ActionResult:
    family = str(ctx.variables.get("os_family") or "")
    pm = package_manager_for(family, ctx.runner)
    if ctx.dry_run:
        missing = [p for p in a.names if not pm.is_installed(p)]
        return ActionResult(changed=bool(missing))
    return ActionResult(changed=bool(pm.ensure(a.names)))


@register("set_fact")
def set_fact_action(a: Dict[str, Any], ctx: ActionContext) -> ActionResult:
    return ActionResult(changed=False, facts=dict(a))
