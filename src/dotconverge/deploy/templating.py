# src/dotconverge/deploy/templating.py
from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any, List, Mapping, Union

from jinja2 import Environment, FileSystemLoader, StrictUndefined, TemplateError
from jinja2.nativetypes import NativeEnvironment

from dotconverge.errors import ConfigError


def expand_env_vars(value: str) -> str:
    return re.sub(r"\$\{([^}^{]+)\}", lambda m: os.getenv(m.group(1), m.group(0)), value)


class TemplateRenderer:
    """
    All Jinja2 work for a run: template files, inline ``{{ }}`` in task
    fields, ``when`` guards and ``loop`` expressions. Undefined names are
    errors, never empty strings.
    """

    def __init__(self):
        self.env = Environment(undefined=StrictUndefined, autoescape=False, keep_trailing_newline=True)
        self.native = NativeEnvironment(undefined=StrictUndefined)

    def render_file(self, templates_dir: Path, template_name: str, context: Mapping[str, Any]) -> str:
        env = self.env.overlay(loader=FileSystemLoader(str(templates_dir)))
        expanded = {k: expand_env_vars(v) if isinstance(v, str) else v for k, v in context.items()}
        try:
            return env.get_template(template_name).render(**expanded)
        except TemplateError as exc:
            raise ConfigError(f"template {template_name}: {exc}") from exc

    def render_value(self, value: Any, context: Mapping[str, Any]) -> Any:
        """Render every string inside dicts/lists; other values pass through."""
        if isinstance(value, str):
            if "{{" not in value and "{%" not in value:
                return value
            try:
                return self.env.from_string(value).render(**context)
            except TemplateError as exc:
                raise ConfigError(f"cannot render {value!r}: {exc}") from exc
        if isinstance(value, dict):
            return {k: self.render_value(v, context) for k, v in value.items()}
        if isinstance(value, list):
            return [self.render_value(v, context) for v in value]
        return value

    def evaluate(self, expr: Union[str, bool], context: Mapping[str, Any]) -> bool:
        """Evaluate a guard such as ``zsh_config_installed and not tailscale_authed``."""
        if isinstance(expr, bool):
            return expr
        src = expr.strip()
        if src.startswith("{{") and src.endswith("}}"):
            src = src[2:-2].strip()
        try:
            return bool(self.env.compile_expression(src, undefined_to_none=False)(**context))
        except TemplateError as exc:
            raise ConfigError(f"cannot evaluate condition {expr!r}: {exc}") from exc

    def resolve_loop(self, loop: Union[str, List[Any], None], context: Mapping[str, Any]) -> List[Any]:
        if loop is None:
            return []
        if isinstance(loop, list):
            return [self.render_value(item, context) for item in loop]
        try:
            items = self.native.from_string(loop).render(**context)
        except TemplateError as exc:
            raise ConfigError(f"cannot resolve loop {loop!r}: {exc}") from exc
        if not isinstance(items, list):
            raise ConfigError(f"loop {loop!r} did not produce a list")
        return items
