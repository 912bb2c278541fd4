"""Entry storage with a unique citation-key index and crossref resolution."""

from __future__ import annotations

import io
import logging
import threading
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass
from typing import IO, TYPE_CHECKING

from bibstore.entry import BibtexEntry, FieldChangeEvent
from bibstore.errors import DuplicateIdError, KeyCollisionError, UnknownEntryError, UnresolvedFieldError
from bibstore.fields import CROSSREF_FIELD, KEY_FIELD, TYPE_FIELD, normalize_field_name

if TYPE_CHECKING:
    from bibstore.bibio import BibWriter
    from bibstore.entry_types import EntryType

logger = logging.getLogger(__name__)


# ------------- Crossref Resolution -------------


def iter_crossref_chain(entry: BibtexEntry, database: BibtexDatabase | None) -> Iterator[BibtexEntry]:
    """Yield ``entry`` and then each entry its crossref chain leads to.

    Without a database only ``entry`` itself is yielded. The walk is lazy, so
    callers that stop early never see problems further down the chain.

    Raises:
        UnresolvedFieldError: If a crossref points at a missing entry or the
            chain loops back on itself.
    """
    visited = {entry.id}
    current = entry
    yield current
    if database is None:
        return
    while True:
        ref = current.get_field(CROSSREF_FIELD)
        if not ref:
            return
        target = database.get_crossref_target(current)
        if target is None:
            raise UnresolvedFieldError(CROSSREF_FIELD, entry.id, f"crossref target '{ref}' not found")
        if target.id in visited:
            raise UnresolvedFieldError(CROSSREF_FIELD, entry.id, f"crossref cycle through '{ref}'")
        visited.add(target.id)
        current = target
        yield current


def get_resolved_field(field_name: str, entry: BibtexEntry, database: BibtexDatabase | None) -> str | None:
    """Return a field value, inheriting it through crossref links if needed.

    The entry's own value wins. Otherwise, if ``database`` is given and the
    entry has a ``crossref`` field, the referenced entry (looked up by citation
    key, then by id) is consulted, and so on down the chain.

    Returns:
        The value, or None if no entry along the chain has the field.

    Raises:
        UnresolvedFieldError: If a crossref points at a missing entry or the
            chain loops back on itself.
    """
    norm = normalize_field_name(field_name)
    if norm == TYPE_FIELD:
        return entry.type.name

    try:
        for current in iter_crossref_chain(entry, database):
            value = current.get_field(norm)
            if value is not None:
                return value
    except UnresolvedFieldError as e:
        raise UnresolvedFieldError(norm, entry.id, e.reason) from None
    return None


# ------------- Database -------------


@dataclass(frozen=True)
class DatabaseChangeEvent:
    """An entry was added to or removed from a database."""

    kind: str  # "added", "removed"
    entry: BibtexEntry


DatabaseListener = Callable[[DatabaseChangeEvent], None]


class BibtexDatabase:
    """Entries keyed by id, plus a citation key -> id index.

    Both maps are only changed under a single lock so they stay consistent.
    Citation keys are case-sensitive.
    """

    def __init__(self) -> None:
        self._entries: dict[str, BibtexEntry] = {}
        self._keys: dict[str, str] = {}
        self._lock = threading.RLock()
        self._listeners: list[DatabaseListener] = []
        self.preamble: str | None = None
        self.strings: dict[str, str] = {}

    get_resolved_field = staticmethod(get_resolved_field)

    def resolve_field(self, field_name: str, entry: BibtexEntry) -> str | None:
        return get_resolved_field(field_name, entry, self)

    # ------------- Queries -------------

    def get_entry_by_id(self, entry_id: str) -> BibtexEntry | None:
        return self._entries.get(entry_id)

    def get_entry_by_key(self, key: str) -> BibtexEntry | None:
        entry_id = self._keys.get(key)
        return self._entries.get(entry_id) if entry_id is not None else None

    def get_crossref_target(self, entry: BibtexEntry) -> BibtexEntry | None:
        """Entry named by ``entry``'s crossref field (by citation key, then id)."""
        ref = entry.get_field(CROSSREF_FIELD)
        if not ref:
            return None
        return self.get_entry_by_key(ref) or self.get_entry_by_id(ref)

    def crossref_chain(self, entry: BibtexEntry) -> Iterator[BibtexEntry]:
        """``entry`` followed by its crossref ancestors; see ``iter_crossref_chain``."""
        return iter_crossref_chain(entry, self)

    def get_key_set(self) -> set[str]:
        return set(self._keys)

    def get_entry_count(self) -> int:
        return len(self._entries)

    @property
    def entries(self) -> list[BibtexEntry]:
        """Entries in insertion order."""
        return list(self._entries.values())

    def entries_of_type(self, entry_type: EntryType | str) -> list[BibtexEntry]:
        name = entry_type if isinstance(entry_type, str) else entry_type.name
        return [e for e in self._entries.values() if e.type.name.lower() == name.lower()]

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[BibtexEntry]:
        return iter(self.entries)

    def __contains__(self, entry_id: object) -> bool:
        return entry_id in self._entries

    # ------------- Mutation -------------

    def insert_entry(self, entry: BibtexEntry) -> None:
        """Add an entry, binding its citation key if it has one.

        From then on, key changes made on the entry itself go through this
        database's key index.

        Raises:
            DuplicateIdError: If an entry with the same id is stored
            KeyCollisionError: If the entry's key belongs to another entry
            ValueError: If the entry is stored in another database
        """
        with self._lock:
            if entry.id in self._entries:
                raise DuplicateIdError(entry.id)
            key = entry.cite_key
            if key is not None:
                owner = self._keys.get(key)
                if owner is not None:
                    raise KeyCollisionError(key, owner)
            entry._attach_key_guard(self._bind_key)
            if key is not None:
                self._keys[key] = entry.id
            self._entries[entry.id] = entry
        logger.debug("Inserted entry %s (key=%s)", entry.id, key)
        self._notify(DatabaseChangeEvent("added", entry))

    def remove_entry(self, entry_id: str) -> BibtexEntry:
        """Remove an entry and free its citation key.

        Raises:
            UnknownEntryError: If the id is not stored
        """
        with self._lock:
            entry = self._entries.pop(entry_id, None)
            if entry is None:
                raise UnknownEntryError(entry_id)
            key = entry.cite_key
            if key is not None and self._keys.get(key) == entry_id:
                del self._keys[key]
            entry._detach_key_guard(self._bind_key)
        logger.debug("Removed entry %s", entry_id)
        self._notify(DatabaseChangeEvent("removed", entry))
        return entry

    def set_cite_key_for_entry(self, entry_id: str, key: str | None) -> str | None:
        """Bind ``key`` to an entry, replacing its previous key.

        Passing None removes the entry's key. Same as setting the entry's
        ``bibtexkey`` field directly.

        Returns:
            The previous key, if any.

        Raises:
            UnknownEntryError: If the id is not stored
            KeyCollisionError: If the key belongs to a different entry
        """
        with self._lock:
            entry = self._entries.get(entry_id)
            if entry is None:
                raise UnknownEntryError(entry_id)
            old = self._bind_key(entry, key)
        if old != key:
            entry._notify(FieldChangeEvent(entry.id, KEY_FIELD, old, key))
        return old

    def _bind_key(self, entry: BibtexEntry, key: str | None) -> str | None:
        # Key guard installed on stored entries; listeners run after it returns
        with self._lock:
            if self._entries.get(entry.id) is not entry:
                raise UnknownEntryError(entry.id)
            if key is not None:
                owner = self._keys.get(key)
                if owner is not None and owner != entry.id:
                    raise KeyCollisionError(key, owner)
            old = entry.cite_key
            if old is not None and self._keys.get(old) == entry.id:
                del self._keys[old]
            if key is not None:
                self._keys[key] = entry.id
            entry._store_field(KEY_FIELD, key)
        return old

    def change_entry_id(self, old_id: str, new_id: str) -> None:
        """Give a stored entry a new id.

        Raises:
            UnknownEntryError: If ``old_id`` is not stored
            DuplicateIdError: If ``new_id`` is taken
        """
        with self._lock:
            entry = self._entries.get(old_id)
            if entry is None:
                raise UnknownEntryError(old_id)
            if new_id == old_id:
                return
            if new_id in self._entries:
                raise DuplicateIdError(new_id)
            entry.set_id(new_id)
            # Rebuild to keep insertion order
            self._entries = {(new_id if k == old_id else k): v for k, v in self._entries.items()}
            key = entry.cite_key
            if key is not None and self._keys.get(key) == old_id:
                self._keys[key] = new_id

    # ------------- Change Notification -------------

    def subscribe(self, listener: DatabaseListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener: DatabaseListener) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    def _notify(self, event: DatabaseChangeEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                logger.warning("Database listener failed on %s of %s: %s", event.kind, event.entry.id, e)

    # ------------- Serialisation -------------

    def save_database(
        self,
        stream: IO[str] | IO[bytes],
        *,
        encoding: str = "utf-8",
        meta_data: Mapping[str, str] | None = None,
        entry_types: Mapping[str, EntryType] | None = None,
        writer: BibWriter | None = None,
    ) -> None:
        """Write all entries and their citation keys as BibTeX to ``stream``.

        Text streams receive str, anything else receives bytes in ``encoding``.
        """
        from bibstore.bibio import BibWriter

        writer = writer or BibWriter()
        with self._lock:
            text = writer.dumps(self, encoding=encoding, meta_data=meta_data, entry_types=entry_types)
        if isinstance(stream, io.TextIOBase):
            stream.write(text)
        else:
            stream.write(text.encode(encoding))
        stream.flush()
        logger.debug("Saved %d entries", len(self._entries))
