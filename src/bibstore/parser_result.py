"""Outcome of loading a bibliography source."""

from __future__ import annotations

import re
from pathlib import Path

from bibstore.database import BibtexDatabase
from bibstore.entry_types import EntryType

_VERSION_RE = re.compile(r"^\s*(\d+)(?:\.(\d+))?(?:\.(\d+))?")


class ParserResult:
    """Database, file-level metadata and the problems found while parsing.

    ``database``, ``meta_data`` and ``entry_types`` are fixed at construction.
    Warnings and duplicate keys accumulate during parsing; both lists keep
    insertion order and ignore exact repeats.
    """

    def __init__(
        self,
        database: BibtexDatabase,
        meta_data: dict[str, str] | None = None,
        entry_types: dict[str, EntryType] | None = None,
    ):
        self._database = database
        self._meta_data = meta_data if meta_data is not None else {}
        self._entry_types = entry_types if entry_types is not None else {}

        self._warnings: list[str] = []
        self._warning_set: set[str] = set()
        self._duplicate_keys: list[str] = []
        self._duplicate_key_set: set[str] = set()

        self.file: Path | None = None
        self.encoding: str | None = None
        self.error_message: str | None = None
        self.invalid = False
        # Add to the currently open database instead of opening a new one
        self.merge_into_open = False

        self.application_name: str | None = None
        self.application_version: str | None = None
        self.version_major = 0
        self.version_minor = 0
        self.version_patch = 0

    @classmethod
    def failed(cls, message: str, file: Path | None = None) -> ParserResult:
        """Result for a parse that produced nothing usable."""
        result = cls(BibtexDatabase())
        result.invalid = True
        result.error_message = message
        result.file = file
        return result

    @property
    def database(self) -> BibtexDatabase:
        return self._database

    @property
    def meta_data(self) -> dict[str, str]:
        return self._meta_data

    @property
    def entry_types(self) -> dict[str, EntryType]:
        return self._entry_types

    # ------------- Warnings -------------

    def add_warning(self, text: str) -> None:
        """Record an already localised warning unless it is present."""
        if text not in self._warning_set:
            self._warning_set.add(text)
            self._warnings.append(text)

    def has_warnings(self) -> bool:
        return bool(self._warnings)

    @property
    def warnings(self) -> tuple[str, ...]:
        return tuple(self._warnings)

    def add_duplicate_key(self, key: str) -> None:
        if key not in self._duplicate_key_set:
            self._duplicate_key_set.add(key)
            self._duplicate_keys.append(key)

    def has_duplicate_keys(self) -> bool:
        return bool(self._duplicate_keys)

    @property
    def duplicate_keys(self) -> tuple[str, ...]:
        return tuple(self._duplicate_keys)

    # ------------- Provenance -------------

    def set_application_version(self, raw: str | None) -> None:
        """Store the version string of the application that wrote the file.

        Numeric parts are taken from a leading ``major[.minor[.patch]]``;
        anything else leaves them at 0.
        """
        self.application_version = raw
        self.version_major = self.version_minor = self.version_patch = 0
        if not raw:
            return
        m = _VERSION_RE.match(raw)
        if not m:
            return
        self.version_major = int(m.group(1))
        self.version_minor = int(m.group(2) or 0)
        self.version_patch = int(m.group(3) or 0)

    @property
    def version_tuple(self) -> tuple[int, int, int]:
        return (self.version_major, self.version_minor, self.version_patch)

    def __repr__(self) -> str:
        return (
            f"ParserResult(entries={len(self._database)}, warnings={len(self._warnings)}, "
            f"duplicate_keys={len(self._duplicate_keys)}, invalid={self.invalid})"
        )
