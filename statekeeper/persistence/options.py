# statekeeper/persistence/options.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import datetime
from pathlib import Path
from typing import Any, Dict


@dataclass
class PersistenceOptions:
    """
    Settings of a persistence service. Unknown keys passed to update() are
    kept in extra so callers can carry their own settings alongside.
    """

    spaces: int = 2
    file_type: str = "json"
    version: int = 1
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, values: Dict[str, Any]) -> "PersistenceOptions":
        options = cls()
        options.update(values)
        return options

    def update(self, values: Dict[str, Any]) -> None:
        known = {f.name for f in fields(self)} - {"extra"}
        for key, value in values.items():
            if key in known:
                setattr(self, key, value)
            else:
                self.extra[key] = value

    def to_dict(self) -> Dict[str, Any]:
        """Flat copy of the options, extra keys included."""
        result: Dict[str, Any] = dict(self.extra)
        result.update(spaces=self.spaces, file_type=self.file_type, version=self.version)
        return result


@dataclass(frozen=True)
class FileInfo:
    """Metadata of the persisted state file."""

    size: int
    created: datetime
    modified: datetime
    path: Path
    options: Dict[str, Any]
