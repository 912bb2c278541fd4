"""Exception hierarchy for bibstore.

Structural violations (reserved field, missing identity or type, duplicate id,
citation-key collision) are programmer errors and are raised straight to the
caller. Data problems found while loading a file are reported on the
``ParserResult`` instead.
"""

from __future__ import annotations


class BibstoreError(Exception):
    """Base class for all bibstore errors."""


class ReservedFieldError(BibstoreError, ValueError):
    """The identity field was accessed through the generic field API."""

    def __init__(self, name: str):
        super().__init__(f"The field name '{name}' is reserved")
        self.name = name


class NullIdentityError(BibstoreError, TypeError):
    """An entry was created or renamed without an id."""

    def __init__(self, message: str = "Every BibtexEntry must have an ID"):
        super().__init__(message)


class NullTypeError(BibstoreError, TypeError):
    """An entry was given no type."""

    def __init__(self, message: str = "Every BibtexEntry must have a type. Instead of None, use OTHER"):
        super().__init__(message)


class DuplicateIdError(BibstoreError):
    """An entry with the same id is already stored in the database."""

    def __init__(self, entry_id: str):
        super().__init__(f"An entry with id '{entry_id}' already exists")
        self.entry_id = entry_id


class KeyCollisionError(BibstoreError):
    """A citation key is already bound to a different entry."""

    def __init__(self, key: str, owner_id: str):
        super().__init__(f"Citation key '{key}' is already used by entry '{owner_id}'")
        self.key = key
        self.owner_id = owner_id


class UnknownEntryError(BibstoreError, KeyError):
    """An operation referenced an id that is not in the database."""

    def __init__(self, entry_id: str):
        super().__init__(entry_id)
        self.entry_id = entry_id

    def __str__(self) -> str:
        return f"No entry with id '{self.entry_id}'"


class UnresolvedFieldError(BibstoreError):
    """Crossref resolution hit a missing target or a cycle."""

    def __init__(self, field_name: str, entry_id: str, reason: str):
        super().__init__(f"Cannot resolve field '{field_name}' for entry '{entry_id}': {reason}")
        self.field_name = field_name
        self.entry_id = entry_id
        self.reason = reason
