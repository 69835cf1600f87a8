# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/dotconverge/facts/models.py
from __future__ import annotations

from types import MappingProxyType
from typing import Any, Iterator, Mapping, Union

FactValue = Union[bool, str]


class FactSet(Mapping[str, FactValue]):
    """
    Read-only fact mapping. ``with_facts`` returns a new set instead of
    mutating, so a fact seen by one task never changes under it.
    """

    __slots__ = ("_data",)

    def __init__(self, data: Mapping[str, Any] | None = None):
        self._data = MappingProxyType(dict(data or {}))

    def __getitem__(self, key: str) -> FactValue:
        return self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"FactSet({dict(self._data)!r})"

    def with_facts(self, **updates: Any) -> "FactSet":
        merged = dict(self._data)
        merged.update(updates)
        return FactSet(merged)

    def as_dict(self) -> dict:
        return dict(self._data)
