# src/dotconverge/cli/helper.py
from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import typer
import yaml

from dotconverge.execution.runner import current_user


def split_tags(values: Optional[Iterable[str]]) -> List[str]:
    """
    ``-t bash -t zsh`` and ``-t bash,zsh`` both mean [bash, zsh].
    """
    out: List[str] = []
    for v in values or []:
        out += [t.strip() for t in v.split(",") if t.strip()]
    return out


def parse_extra_vars(values: Optional[Iterable[str]]) -> Dict[str, Any]:
    """
    ``-e key=value`` pairs; values go through YAML so ``-e debug=true``
    becomes a bool and ``-e ports=[22,80]`` a list.
    """
    out: Dict[str, Any] = {}
    for raw in values or []:
        if "=" not in raw:
            raise typer.BadParameter(f"expected KEY=VALUE, got {raw!r}", param_hint="--extra-vars")
        key, value = raw.split("=", 1)
        key = key.strip()
        if not key:
            raise typer.BadParameter(f"empty key in {raw!r}", param_hint="--extra-vars")
        try:
            out[key] = yaml.safe_load(value) if value else ""
        except yaml.YAMLError:
            out[key] = value
    return out


def invoking_user() -> str:
    """The human behind sudo, if any, else whoever runs us."""
    return os.environ.get("SUDO_USER") or current_user()


def default_playbook() -> Path:
    env = os.environ.get("DOTFILES_DIR")
    base = Path(env).expanduser() if env else Path.cwd()
    return base / "site.yml"
