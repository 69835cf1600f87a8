# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/dotconverge/config/models.py

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def _parse_mode(v: Any) -> Optional[int]:
    """
    Accept "0644", "644", 0o644 or YAML's octal int. Strings are always octal.
    """
    if v is None or isinstance(v, int):
        return v
    s = str(v).strip()
    if s.startswith("0o"):
        s = s[2:]
    try:
        return int(s, 8)
    except ValueError:
        raise ValueError(f"invalid file mode: {v!r}")


class _Action(BaseModel):
    model_config = ConfigDict(extra="forbid")


class _Ownership(_Action):
    mode: Optional[Union[int, str]] = None
    owner: Optional[str] = None
    group: Optional[str] = None

    @field_validator("mode", mode="before")
    @classmethod
    def _mode(cls, v):
        return _parse_mode(v)


class CopyAction(_Ownership):
    src: str                              # relative to roles/<role>/files
    dest: str
    directory_mode: Optional[Union[int, str]] = None
    force: bool = True                    # false: never overwrite an existing dest

    @field_validator("directory_mode", mode="before")
    @classmethod
    def _dir_mode(cls, v):
        return _parse_mode(v)


class TemplateAction(_Ownership):
    src: str                              # relative to roles/<role>/templates
    dest: str


class CommandAction(_Action):
    cmd: str
    creates: Optional[str] = None         # marker path; command is skipped when it exists
    chdir: Optional[str] = None
    environment: Dict[str, str] = Field(default_factory=dict)
    changed: bool = True                  # false: read-only command, never reports changed


class FileAction(_Ownership):
    path: str
    state: Literal["directory", "file", "absent", "link", "touch"] = "file"
    src: Optional[str] = None             # link target for state=link


class InjectAction(_Ownership):
    src: str                              # op:// template; relative to roles/<role>/files
    dest: str
    mode: Optional[Union[int, str]] = 0o600


class PackageAction(_Action):
    name: Union[str, List[str]]
    state: Literal["present"] = "present"

    @property
    def names(self) -> List[str]:
        return [self.name] if isinstance(self.name, str) else list(self.name)


ACTION_KEYS = ("copy", "template", "command", "file", "inject", "package", "set_fact")


class TaskSpec(BaseModel):
    """
    One task. Exactly one action key must be set; `action` returns it.
    """
    model_config = ConfigDict(extra="forbid")

    name: str
    tags: List[str] = Field(default_factory=list)
    when: Optional[Union[str, bool, List[Union[str, bool]]]] = None
    loop: Optional[Union[str, List[Any]]] = None
    become_user: Optional[str] = None
    no_log: bool = False

    copy_: Optional[CopyAction] = Field(default=None, alias="copy")
    template: Optional[TemplateAction] = None
    command: Optional[CommandAction] = None
    file: Optional[FileAction] = None
    inject: Optional[InjectAction] = None
    package: Optional[PackageAction] = None
    set_fact: Optional[Dict[str, Any]] = None

    @field_validator("tags", mode="before")
    @classmethod
    def _tags(cls, v):
        if isinstance(v, str):
            return [v]
        return v or []

    @field_validator("command", mode="before")
    @classmethod
    def _command_shorthand(cls, v):
        # `command: "echo hi"` is short for `command: {cmd: "echo hi"}`
        if isinstance(v, str):
            return {"cmd": v}
        return v

    @model_validator(mode="after")
    def _exactly_one_action(self):
        present = [k for k in ACTION_KEYS if self._raw_action(k) is not None]
        if len(present) != 1:
            raise ValueError(
                f"task '{self.name}' must define exactly one of {', '.join(ACTION_KEYS)} "
                f"(found: {', '.join(present) or 'none'})"
            )
        return self

    def _raw_action(self, key: str):
        return self.copy_ if key == "copy" else getattr(self, key)

    @property
    def action_name(self) -> str:
        return next(k for k in ACTION_KEYS if self._raw_action(k) is not None)

    @property
    def action(self) -> Any:
        return self._raw_action(self.action_name)

    @property
    def guards(self) -> List[Union[str, bool]]:
        if self.when is None:
            return []
        if isinstance(self.when, list):
            return list(self.when)
        return [self.when]


class RoleSpec(BaseModel):
    name: str
    path: Path                            # roles/<name>
    tasks: List[TaskSpec] = Field(default_factory=list)

    @property
    def files_dir(self) -> Path:
        return self.path / "files"

    @property
    def templates_dir(self) -> Path:
        return self.path / "templates"


class PlaybookConfig(BaseModel):
    """
    site.yml: which roles run by default and the variables they see.
    """
    model_config = ConfigDict(extra="forbid")

    path: Optional[Path] = None           # set by the loader
    roles_path: str = "roles"
    default_roles: List[str] = Field(default_factory=list)
    exclude_roles: List[str] = Field(default_factory=list)
    managed_users: List[str] = Field(default_factory=list)
    vars: Dict[str, Any] = Field(default_factory=dict)

    @property
    def roles_dir(self) -> Path:
        base = self.path.parent if self.path else Path.cwd()
        return (base / self.roles_path).resolve()

    def role_dir(self, name: str) -> Path:
        return self.roles_dir / name
