"""bibstore - Data model for BibTeX bibliographies.

This package provides:
- Bibliographic records with typed schemas and change notification
- A database enforcing unique citation keys and resolving crossref inheritance
- Loading BibTeX sources into a ParserResult (warnings, duplicate keys, provenance)
- Writing databases back out as BibTeX

Example usage:
    from bibstore import BibLoader, BibtexDatabase, BibtexEntry, get_default_registry

    article = get_default_registry().get_type("article")
    entry = BibtexEntry.new(article)
    entry.set_field("title", "An Example Result")

    db = BibtexDatabase()
    db.insert_entry(entry)
    db.set_cite_key_for_entry(entry.id, "smith2020")

    result = BibLoader().load_file("refs.bib")
    for warning in result.warnings:
        print(warning)
"""

from bibstore._version import __version__
from bibstore.bibio import BibLoader, BibWriter
from bibstore.config import StoreConfig
from bibstore.database import BibtexDatabase, DatabaseChangeEvent, get_resolved_field, iter_crossref_chain
from bibstore.entry import BibtexEntry, FieldChangeEvent, create_neutral_id
from bibstore.entry_types import (
    BUILTIN_TYPES,
    OTHER,
    TYPELESS,
    EntryType,
    EntryTypeRegistry,
    entry_types_from_dict,
    get_default_registry,
    load_entry_types,
    parse_entry_type_comment,
)
from bibstore.errors import (
    BibstoreError,
    DuplicateIdError,
    KeyCollisionError,
    NullIdentityError,
    NullTypeError,
    ReservedFieldError,
    UnknownEntryError,
    UnresolvedFieldError,
)
from bibstore.fields import CROSSREF_FIELD, ID_FIELD, KEY_FIELD, is_numeric
from bibstore.parser_result import ParserResult

__all__ = [
    "__version__",
    # Records
    "BibtexEntry",
    "FieldChangeEvent",
    "create_neutral_id",
    # Types
    "BUILTIN_TYPES",
    "OTHER",
    "TYPELESS",
    "EntryType",
    "EntryTypeRegistry",
    "entry_types_from_dict",
    "get_default_registry",
    "load_entry_types",
    "parse_entry_type_comment",
    # Database
    "BibtexDatabase",
    "DatabaseChangeEvent",
    "get_resolved_field",
    "iter_crossref_chain",
    # Parsing
    "BibLoader",
    "BibWriter",
    "ParserResult",
    "StoreConfig",
    # Fields
    "CROSSREF_FIELD",
    "ID_FIELD",
    "KEY_FIELD",
    "is_numeric",
    # Errors
    "BibstoreError",
    "DuplicateIdError",
    "KeyCollisionError",
    "NullIdentityError",
    "NullTypeError",
    "ReservedFieldError",
    "UnknownEntryError",
    "UnresolvedFieldError",
]
