"""Field-name constants and helpers shared by entries, types and I/O."""

from __future__ import annotations

from collections.abc import Iterable

# ------------- Special Fields -------------

# Identity lives on the entry object, never in the field map
ID_FIELD = "id"

# Citation key, stored as an ordinary field and indexed by the database
KEY_FIELD = "bibtexkey"

CROSSREF_FIELD = "crossref"

# Pseudo-field resolving to the entry type name
TYPE_FIELD = "entrytype"

DEFAULT_NUMERIC_FIELDS = frozenset({"year", "volume", "number", "chapter", "edition", "month"})


def normalize_field_name(name: str) -> str:
    """Return the logical (lower-case, stripped) form of a field name.

    Raises:
        ValueError: If the name is empty after stripping.
    """
    if name is None:
        raise ValueError("Field name must not be None")
    norm = name.strip().lower()
    if not norm:
        raise ValueError("Field name must not be empty")
    return norm


def is_reserved(name: str) -> bool:
    return name.strip().lower() == ID_FIELD


def is_numeric(name: str, numeric_fields: Iterable[str] | None = None) -> bool:
    """Whether a field is expected to hold a number (year, volume, ...).

    Args:
        name: Field name, any case
        numeric_fields: Overrides the default set when given
    """
    pool = DEFAULT_NUMERIC_FIELDS if numeric_fields is None else {f.lower() for f in numeric_fields}
    return name.strip().lower() in pool


def looks_numeric(value: str) -> bool:
    """Loose check for numeric field content.

    Accepts plain integers and ranges such as ``12--34`` or ``12-34``.
    Three-letter month macros are accepted as well.
    """
    v = value.strip().strip("{}").strip()
    if not v:
        return False
    if v.lower() in _MONTHS:
        return True
    parts = v.replace("--", "-").split("-")
    return all(p.strip().isdigit() for p in parts)


_MONTHS = frozenset(
    {
        "jan",
        "feb",
        "mar",
        "apr",
        "may",
        "jun",
        "jul",
        "aug",
        "sep",
        "oct",
        "nov",
        "dec",
        "january",
        "february",
        "march",
        "april",
        "june",
        "july",
        "august",
        "september",
        "october",
        "november",
        "december",
    }
)
