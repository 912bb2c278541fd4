"""Entry type descriptors and the process-wide type registry.

An ``EntryType`` lists the required and optional fields of a class of records
(article, book, ...). A required slot may hold alternatives: the slot
``("author", "editor")`` is satisfied by either field. In YAML files and in
type definitions embedded in ``.bib`` comments a slot is written as
``author/editor``.

Customisation YAML format::

    entry_types:
      dataset:
        required: ["author/editor", title, year]
        optional: [publisher, url, doi]
"""

from __future__ import annotations

import logging
import re
import threading
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from bibstore.database import BibtexDatabase
    from bibstore.entry import BibtexEntry

logger = logging.getLogger(__name__)

ENTRYTYPE_COMMENT_PREFIX = "jabref-entrytype:"

_COMMENT_RE = re.compile(
    r"^\s*jabref-entrytype:\s*(?P<name>[^:\s]+)\s*:\s*req\[(?P<req>[^\]]*)\]\s*opt\[(?P<opt>[^\]]*)\]\s*$",
    re.IGNORECASE,
)


def _parse_slot(slot: str | Iterable[str]) -> tuple[str, ...]:
    if isinstance(slot, str):
        names = slot.split("/")
    else:
        names = list(slot)
    alternatives = tuple(n.strip().lower() for n in names if n and n.strip())
    if not alternatives:
        raise ValueError(f"Empty required-field slot: {slot!r}")
    return alternatives


@dataclass(frozen=True)
class EntryType:
    """Schema for one class of bibliographic record.

    Attributes:
        name: Type name as displayed (lookups are case-insensitive)
        required: Ordered required slots, each an ordered tuple of alternatives
        optional: Ordered optional field names
    """

    name: str
    required: tuple[tuple[str, ...], ...] = ()
    optional: tuple[str, ...] = ()

    @classmethod
    def create(
        cls,
        name: str,
        required: Iterable[str | Iterable[str]] = (),
        optional: Iterable[str] = (),
    ) -> EntryType:
        """Build a type from loose input (``"author/editor"`` or ``["author", "editor"]`` slots)."""
        if not name or not name.strip():
            raise ValueError("Entry type name must not be empty")
        slots = tuple(_parse_slot(s) for s in required)
        opt = tuple(dict.fromkeys(o.strip().lower() for o in optional if o and o.strip()))
        return cls(name=name.strip(), required=slots, optional=opt)

    @property
    def key(self) -> str:
        return self.name.lower()

    def get_required_fields(self) -> list[str]:
        """All field names mentioned by required slots, alternatives included."""
        seen: dict[str, None] = {}
        for slot in self.required:
            for name in slot:
                seen.setdefault(name, None)
        return list(seen)

    def get_optional_fields(self) -> list[str]:
        return list(self.optional)

    def describe_required_fields(self) -> str:
        """Human readable summary, e.g. ``author/editor, title, year``."""
        return ", ".join("/".join(slot) for slot in self.required)

    def is_required(self, field_name: str) -> bool:
        return field_name.lower() in self.get_required_fields()

    def has_all_required_fields(self, entry: BibtexEntry, database: BibtexDatabase | None = None) -> bool:
        """True if every required slot is satisfied by one of its alternatives.

        A value counts when it is set on the entry itself or, with a database,
        when it can be inherited through the crossref chain.
        """
        return not self.missing_required_slots(entry, database)

    def missing_required_slots(
        self, entry: BibtexEntry, database: BibtexDatabase | None = None
    ) -> list[tuple[str, ...]]:
        from bibstore.database import get_resolved_field
        from bibstore.errors import UnresolvedFieldError

        missing = []
        for slot in self.required:
            satisfied = False
            for name in slot:
                try:
                    value = get_resolved_field(name, entry, database)
                except UnresolvedFieldError:
                    value = None
                if value is not None:
                    satisfied = True
                    break
            if not satisfied:
                missing.append(slot)
        return missing

    def to_comment(self) -> str:
        """Serialise for embedding in a ``@comment`` block."""
        req = ";".join("/".join(slot) for slot in self.required)
        opt = ";".join(self.optional)
        return f"{ENTRYTYPE_COMMENT_PREFIX} {self.name}: req[{req}] opt[{opt}]"

    def to_dict(self) -> dict[str, Any]:
        return {
            "required": ["/".join(slot) for slot in self.required],
            "optional": list(self.optional),
        }


# Default type of entries created without one
OTHER = EntryType(name="other")

# Fallback when a type name can no longer be resolved
TYPELESS = EntryType(name="typeless")


# ------------- Built-in Types -------------

BUILTIN_TYPES: tuple[EntryType, ...] = (
    EntryType.create(
        "article",
        required=["author", "title", "journal", "year"],
        optional=["volume", "number", "pages", "month", "note", "doi", "url", "abstract", "keywords", "publisher"],
    ),
    EntryType.create(
        "book",
        required=["author/editor", "title", "publisher", "year"],
        optional=["volume", "number", "series", "address", "edition", "month", "note", "isbn", "doi", "url"],
    ),
    EntryType.create(
        "booklet",
        required=["title"],
        optional=["author", "howpublished", "address", "month", "year", "note", "url"],
    ),
    EntryType.create(
        "inbook",
        required=["author/editor", "title", "chapter/pages", "publisher", "year"],
        optional=["volume", "number", "series", "type", "address", "edition", "month", "note", "doi", "url"],
    ),
    EntryType.create(
        "incollection",
        required=["author", "title", "booktitle", "publisher", "year"],
        optional=[
            "editor",
            "volume",
            "number",
            "series",
            "type",
            "chapter",
            "pages",
            "address",
            "edition",
            "month",
            "note",
            "doi",
            "url",
        ],
    ),
    EntryType.create(
        "inproceedings",
        required=["author", "title", "booktitle", "year"],
        optional=[
            "editor",
            "volume",
            "number",
            "series",
            "pages",
            "address",
            "month",
            "organization",
            "publisher",
            "note",
            "doi",
            "url",
        ],
    ),
    EntryType.create(
        "conference",
        required=["author", "title", "booktitle", "year"],
        optional=["editor", "volume", "number", "series", "pages", "address", "month", "organization", "publisher"],
    ),
    EntryType.create(
        "manual",
        required=["title"],
        optional=["author", "organization", "address", "edition", "month", "year", "note", "url"],
    ),
    EntryType.create(
        "mastersthesis",
        required=["author", "title", "school", "year"],
        optional=["type", "address", "month", "note", "url"],
    ),
    EntryType.create(
        "phdthesis",
        required=["author", "title", "school", "year"],
        optional=["type", "address", "month", "note", "url", "doi"],
    ),
    EntryType.create(
        "proceedings",
        required=["title", "year"],
        optional=["editor", "volume", "number", "series", "address", "month", "organization", "publisher", "note"],
    ),
    EntryType.create(
        "techreport",
        required=["author", "title", "institution", "year"],
        optional=["type", "number", "address", "month", "note", "url"],
    ),
    EntryType.create(
        "unpublished",
        required=["author", "title", "note"],
        optional=["month", "year", "url"],
    ),
    EntryType.create(
        "misc",
        required=[],
        optional=["author", "title", "howpublished", "month", "year", "note", "url"],
    ),
)


# ------------- Customisation Loading -------------


def entry_types_from_dict(data: Mapping[str, Any]) -> dict[str, EntryType]:
    """Build entry types from a mapping (e.g. loaded from YAML).

    Accepts either ``{"entry_types": {...}}`` or the inner mapping directly.

    Raises:
        ValueError: If a type definition is malformed
    """
    types_data = data.get("entry_types", data)
    if not isinstance(types_data, Mapping):
        raise ValueError("Invalid entry type format: expected a mapping of type names")

    result: dict[str, EntryType] = {}
    for name, definition in types_data.items():
        definition = definition or {}
        if not isinstance(definition, Mapping):
            raise ValueError(f"Invalid definition for entry type '{name}': expected a mapping")
        etype = EntryType.create(
            str(name), definition.get("required", []) or [], definition.get("optional", []) or []
        )
        result[etype.key] = etype
    return result


def load_entry_types(path: str | Path) -> dict[str, EntryType]:
    """Load user entry type customisations from a YAML file.

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If the YAML content is not a valid type mapping
    """
    import yaml

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Entry type file not found: {path}")

    with open(path, encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError("Invalid entry type file: expected a mapping")
    types = entry_types_from_dict(data)
    logger.debug("Loaded %d entry type(s) from %s", len(types), path)
    return types


def parse_entry_type_comment(text: str) -> EntryType | None:
    """Parse a ``jabref-entrytype: Name: req[...] opt[...]`` comment.

    Returns None if the text is not a type definition.
    """
    m = _COMMENT_RE.match(text)
    if not m:
        return None
    req = [s for s in m.group("req").split(";") if s.strip()]
    opt = [s for s in m.group("opt").split(";") if s.strip()]
    try:
        return EntryType.create(m.group("name"), req, opt)
    except ValueError as e:
        logger.debug("Ignoring malformed entry type comment %r: %s", text, e)
        return None


# ------------- Registry -------------


class EntryTypeRegistry:
    """Registry of entry types with a built-in layer and a user layer.

    User overrides shadow built-ins of the same name. ``reload`` swaps the
    user layer only, which is what happens when type customisations are edited.
    Entries re-synchronise through ``BibtexEntry.update_type``.
    """

    def __init__(self) -> None:
        self._builtins: dict[str, EntryType] = {}
        self._overrides: dict[str, EntryType] = {}
        self._types: dict[str, EntryType] = {}
        self._lock = threading.Lock()

    @classmethod
    def with_builtins(cls, user_overrides: Iterable[EntryType] | Mapping[str, EntryType] | None = None):
        registry = cls()
        registry.init(BUILTIN_TYPES, user_overrides)
        return registry

    @staticmethod
    def _index(types: Iterable[EntryType] | Mapping[str, EntryType] | None) -> dict[str, EntryType]:
        if types is None:
            return {}
        if isinstance(types, Mapping):
            types = types.values()
        return {t.key: t for t in types}

    def _rebuild(self) -> None:
        merged = dict(self._builtins)
        merged.update(self._overrides)
        self._types = merged

    def init(
        self,
        builtins: Iterable[EntryType] | Mapping[str, EntryType],
        user_overrides: Iterable[EntryType] | Mapping[str, EntryType] | None = None,
    ) -> None:
        """Populate the registry from scratch."""
        with self._lock:
            self._builtins = self._index(builtins)
            self._overrides = self._index(user_overrides)
            self._rebuild()
        logger.debug(
            "Entry type registry initialised: %d built-in, %d custom", len(self._builtins), len(self._overrides)
        )

    def reload(self, user_overrides: Iterable[EntryType] | Mapping[str, EntryType] | None) -> None:
        """Replace the user layer, keeping built-ins."""
        with self._lock:
            self._overrides = self._index(user_overrides)
            self._rebuild()
        logger.debug("Entry type registry reloaded with %d custom type(s)", len(self._overrides))

    def register(self, entry_type: EntryType) -> None:
        """Add or replace a user-level type."""
        with self._lock:
            self._overrides[entry_type.key] = entry_type
            self._rebuild()

    def remove_type(self, name: str) -> EntryType | None:
        """Remove a user-level type; built-ins become visible again."""
        with self._lock:
            removed = self._overrides.pop(name.lower(), None)
            self._rebuild()
        return removed

    def get_type(self, name: str) -> EntryType | None:
        if not name:
            return None
        return self._types.get(name.lower())

    def is_custom(self, name: str) -> bool:
        return name.lower() in self._overrides

    def custom_types(self) -> list[EntryType]:
        return list(self._overrides.values())

    def names(self) -> list[str]:
        return sorted(self._types)

    def all_types(self) -> list[EntryType]:
        return [self._types[k] for k in sorted(self._types)]

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.lower() in self._types

    def __len__(self) -> int:
        return len(self._types)


_DEFAULT_REGISTRY: EntryTypeRegistry | None = None
_DEFAULT_LOCK = threading.Lock()


def get_default_registry() -> EntryTypeRegistry:
    """Process-wide registry, initialised from the built-in types on first use."""
    global _DEFAULT_REGISTRY
    with _DEFAULT_LOCK:
        if _DEFAULT_REGISTRY is None:
            _DEFAULT_REGISTRY = EntryTypeRegistry.with_builtins()
        return _DEFAULT_REGISTRY
