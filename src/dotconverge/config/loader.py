# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/dotconverge/config/loader.py

import logging
import os
from pathlib import Path
from typing import Dict, List

import yaml
from pydantic import ValidationError

from dotconverge.errors import ConfigError, UnknownRoleError
from .models import PlaybookConfig, RoleSpec, TaskSpec

log = logging.getLogger("dotconverge")


def _deep_merge(base: dict, override: dict) -> dict:
    """
    Recursively merge *override* into *base* (mutates base).
    Only overwrites when the override value is non-empty.
    """
    for key, value in override.items():
        if (
            key in base
            and isinstance(base[key], dict)
            and isinstance(value, dict)
        ):
            _deep_merge(base[key], value)
        else:
            if value not in (None, ""):
                base[key] = value
    return base


def _find_vars_file(playbook_path: Path) -> Path | None:
    """
    Locate the host vars override file using this priority:

    1. DOTCONVERGE_VARS_FILE environment variable (explicit override)
    2. vars.yml in the same directory as the playbook
    """
    env = os.environ.get("DOTCONVERGE_VARS_FILE")
    if env:
        p = Path(env).expanduser()
        if p.is_file():
            return p
        log.warning("DOTCONVERGE_VARS_FILE=%s does not exist, skipping", env)
        return None

    p = playbook_path.parent / "vars.yml"
    if p.is_file():
        return p

    return None


def _load_yaml(path: Path, expand_env: bool = True):
    """
    Load a YAML file. ``${ENV_VAR}`` references are expanded for the
    playbook and vars files; task files keep ``$VAR`` for the shell.
    """
    raw = path.read_text()
    if expand_env:
        raw = os.path.expandvars(raw)
    try:
        return yaml.safe_load(raw)
    except yaml.YAMLError as exc:
        raise ConfigError(f"{path}: invalid YAML: {exc}") from exc


def load_playbook(path: str | Path) -> PlaybookConfig:
    """
    Load and validate site.yml.

    A vars override file (see _find_vars_file) is deep-merged into ``vars``
    before validation, so a host can change user names or paths without
    editing the playbook itself.
    """
    path = Path(path).expanduser().resolve()
    if not path.is_file():
        raise ConfigError(f"playbook not found: {path}")

    data = _load_yaml(path) or {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path}: expected a mapping, got {type(data).__name__}")

    vars_path = _find_vars_file(path)
    if vars_path:
        log.debug("Merging vars from %s", vars_path)
        overrides = _load_yaml(vars_path) or {}
        data.setdefault("vars", {})
        _deep_merge(data["vars"], overrides)
    else:
        log.debug("No vars file found, using playbook vars only")

    try:
        cfg = PlaybookConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"{path}: {exc}") from exc
    cfg.path = path
    return cfg


def load_tasks(path: Path) -> List[TaskSpec]:
    data = _load_yaml(path, expand_env=False) or []
    if not isinstance(data, list):
        raise ConfigError(f"{path}: expected a list of tasks")
    tasks: List[TaskSpec] = []
    for i, raw in enumerate(data):
        try:
            tasks.append(TaskSpec.model_validate(raw))
        except ValidationError as exc:
            raise ConfigError(f"{path}: task #{i + 1}: {exc}") from exc
    return tasks


def load_role(cfg: PlaybookConfig, name: str) -> RoleSpec:
    role_dir = cfg.role_dir(name)
    tasks_file = role_dir / "tasks" / "main.yml"
    if not tasks_file.is_file():
        raise UnknownRoleError(f"role '{name}' not found (expected {tasks_file})")
    return RoleSpec(name=name, path=role_dir, tasks=load_tasks(tasks_file))


def load_roles(cfg: PlaybookConfig, names: List[str]) -> Dict[str, RoleSpec]:
    """Load every role up front so an unknown name fails before any change."""
    return {name: load_role(cfg, name) for name in names}


def available_roles(cfg: PlaybookConfig) -> List[str]:
    if not cfg.roles_dir.is_dir():
        return []
    return sorted(
        p.name for p in cfg.roles_dir.iterdir()
        if (p / "tasks" / "main.yml").is_file()
    )
