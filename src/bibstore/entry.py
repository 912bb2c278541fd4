"""Bibliographic record type."""

from __future__ import annotations

import itertools
import logging
import threading
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING

from bibstore.entry_types import OTHER, TYPELESS, EntryType, EntryTypeRegistry, get_default_registry
from bibstore.errors import NullIdentityError, NullTypeError, ReservedFieldError
from bibstore.fields import ID_FIELD, KEY_FIELD, normalize_field_name

if TYPE_CHECKING:
    from bibstore.database import BibtexDatabase

logger = logging.getLogger(__name__)

_id_counter = itertools.count()
_id_lock = threading.Lock()


def create_neutral_id(prefix: str = "entry") -> str:
    """Return a process-unique id that carries no bibliographic meaning."""
    with _id_lock:
        n = next(_id_counter)
    return f"{prefix}{n}"


@dataclass(frozen=True)
class FieldChangeEvent:
    """A single field mutation. ``new_value`` is None when the field was cleared."""

    entry_id: str
    field: str
    old_value: str | None
    new_value: str | None


FieldListener = Callable[[FieldChangeEvent], None]

# Called with (entry, new_key) by the database holding the entry; it updates
# its key index, stores the key on the entry and returns the previous key.
KeyGuard = Callable[["BibtexEntry", "str | None"], "str | None"]


class BibtexEntry:
    """One bibliographic record: id, type and a map of field values.

    Field names are case-insensitive and stored lower-cased. The identity
    lives in ``id`` and can never be read or written as a field.
    """

    def __init__(self, entry_id: str, entry_type: EntryType = OTHER):
        if entry_id is None:
            raise NullIdentityError()
        self._id = entry_id
        self._type: EntryType = OTHER
        self._fields: dict[str, str] = {}
        self._listeners: list[FieldListener] = []
        self._key_guard: KeyGuard | None = None
        self.set_type(entry_type)

    @classmethod
    def new(cls, entry_type: EntryType = OTHER, prefix: str = "entry") -> BibtexEntry:
        """Create an entry with a freshly generated neutral id."""
        return cls(create_neutral_id(prefix), entry_type)

    @classmethod
    def from_fields(cls, entry_id: str, entry_type: EntryType, fields: Mapping[str, str]) -> BibtexEntry:
        """Silent construction: fields are set without notifying anybody."""
        entry = cls(entry_id, entry_type)
        entry.set_fields(fields)
        return entry

    # ------------- Identity & Type -------------

    @property
    def id(self) -> str:
        return self._id

    def set_id(self, entry_id: str) -> None:
        """Rename the entry. Use ``BibtexDatabase.change_entry_id`` for stored entries."""
        if entry_id is None:
            raise NullIdentityError()
        self._id = entry_id

    @property
    def type(self) -> EntryType:
        return self._type

    def set_type(self, entry_type: EntryType) -> None:
        """Replace the type. Existing fields are not validated against it."""
        if entry_type is None:
            raise NullTypeError()
        self._type = entry_type

    def update_type(self, registry: EntryTypeRegistry | None = None) -> bool:
        """Re-resolve the type by name after type customisations changed.

        Returns:
            True if the registry knows the type name, False otherwise (the entry
            is then set to ``TYPELESS``).
        """
        if registry is None:
            registry = get_default_registry()
        new_type = registry.get_type(self._type.name)
        if new_type is not None:
            self._type = new_type
            return True
        logger.debug("Entry %s: type '%s' no longer defined, falling back to typeless", self._id, self._type.name)
        self._type = TYPELESS
        return False

    def get_required_fields(self) -> list[str]:
        return self._type.get_required_fields()

    def get_optional_fields(self) -> list[str]:
        return self._type.get_optional_fields()

    def describe_required_fields(self) -> str:
        return self._type.describe_required_fields()

    def has_all_required_fields(self, database: BibtexDatabase | None = None) -> bool:
        return self._type.has_all_required_fields(self, database)

    def all_fields_present(self, names: Iterable[str], database: BibtexDatabase | None = None) -> bool:
        """True if every named field is set or inherited via crossref."""
        from bibstore.database import get_resolved_field
        from bibstore.errors import UnresolvedFieldError

        for name in names:
            try:
                if get_resolved_field(name, self, database) is None:
                    return False
            except UnresolvedFieldError:
                return False
        return True

    # ------------- Fields -------------

    @staticmethod
    def _checked_name(name: str) -> str:
        norm = normalize_field_name(name)
        if norm == ID_FIELD:
            raise ReservedFieldError(name)
        return norm

    def get_field(self, name: str) -> str | None:
        return self._fields.get(self._checked_name(name))

    def has_field(self, name: str) -> bool:
        return self._checked_name(name) in self._fields

    def set_field(self, name: str, value: str | None) -> None:
        """Set a field and notify listeners. A None value clears the field.

        Raises:
            KeyCollisionError: If the entry is stored in a database and the new
                citation key belongs to another entry there
        """
        norm = self._checked_name(name)
        if norm == KEY_FIELD and self._key_guard is not None:
            old = self._key_guard(self, value)
        else:
            old = self._store_field(norm, value)
        if old != value:
            self._notify(FieldChangeEvent(self._id, norm, old, value))

    def _store_field(self, norm: str, value: str | None) -> str | None:
        if value is None:
            return self._fields.pop(norm, None)
        old = self._fields.get(norm)
        self._fields[norm] = value
        return old

    def set_fields(self, fields: Mapping[str, str]) -> None:
        """Set several fields at once without notifying listeners.

        Only meant for entries nobody observes yet (bulk loading). The mapping
        is validated as a whole before anything is written.

        Raises:
            ReservedFieldError: If the mapping contains ``id``
            ValueError: For empty names, None values or names that collide
                case-insensitively
            KeyCollisionError: If the new citation key is taken in the
                database holding this entry
        """
        staged: dict[str, str] = {}
        for name, value in fields.items():
            norm = self._checked_name(name)
            if value is None:
                raise ValueError(f"Field '{name}' has no value")
            if norm in staged:
                raise ValueError(f"Field '{name}' given more than once")
            staged[norm] = value
        if KEY_FIELD in staged and self._key_guard is not None:
            self._key_guard(self, staged.pop(KEY_FIELD))
        self._fields.update(staged)

    def clear_field(self, name: str) -> None:
        """Remove a field and notify listeners; missing fields are ignored."""
        self.set_field(name, None)

    # ------------- Database Binding -------------

    def _attach_key_guard(self, guard: KeyGuard) -> None:
        if self._key_guard is not None and self._key_guard != guard:
            raise ValueError(f"Entry '{self._id}' is already stored in another database")
        self._key_guard = guard

    def _detach_key_guard(self, guard: KeyGuard) -> None:
        if self._key_guard == guard:
            self._key_guard = None

    def get_all_fields(self) -> set[str]:
        return set(self._fields)

    @property
    def fields(self) -> dict[str, str]:
        """Copy of the field map."""
        return dict(self._fields)

    @property
    def cite_key(self) -> str | None:
        return self._fields.get(KEY_FIELD)

    # ------------- Change Notification -------------

    def subscribe(self, listener: FieldListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener: FieldListener) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    def _notify(self, event: FieldChangeEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                logger.warning("Field listener failed for %s.%s: %s", event.entry_id, event.field, e)

    # ------------- Misc -------------

    def clone(self) -> BibtexEntry:
        """Copy with the same id and type; fields are copied, listeners and database binding are not."""
        twin = BibtexEntry(self._id, self._type)
        twin._fields = dict(self._fields)
        return twin

    def author_title_year(self, max_characters: int = 0) -> str:
        """Short description ``Author: "Title" (Year)``, truncated with ``...`` if needed."""
        parts = [self._fields.get(f) or "N/A" for f in ("author", "title", "year")]
        text = f'{parts[0]}: "{parts[1]}" ({parts[2]})'
        if max_characters <= 0 or len(text) <= max_characters:
            return text
        return text[:max_characters] + "..."

    def __str__(self) -> str:
        return f"{self._type.name}:{self.cite_key}"

    def __repr__(self) -> str:
        return f"BibtexEntry(id={self._id!r}, type={self._type.name!r}, key={self.cite_key!r})"
