"""Reading BibTeX into a ``ParserResult`` and writing a database back out.

Files written here start with a signature and an encoding line::

    % This file was created with bibstore 0.1.0.
    % Encoding: utf-8

Database metadata and custom entry types travel in ``@comment`` blocks
(``jabref-meta: name:value;`` and ``jabref-entrytype: ...``), so files stay
readable by other BibTeX tools.
"""

from __future__ import annotations

import logging
import os
import re
import sys
import tempfile
from collections import OrderedDict
from collections.abc import Mapping
from pathlib import Path

from bibstore.config import StoreConfig
from bibstore.database import BibtexDatabase
from bibstore.entry import BibtexEntry, create_neutral_id
from bibstore.entry_types import ENTRYTYPE_COMMENT_PREFIX, EntryType, EntryTypeRegistry, parse_entry_type_comment
from bibstore.errors import KeyCollisionError, UnresolvedFieldError
from bibstore.fields import CROSSREF_FIELD, ID_FIELD, KEY_FIELD, is_numeric, looks_numeric
from bibstore.parser_result import ParserResult

# External library: bibtexparser
try:
    import bibtexparser
    from bibtexparser.bibdatabase import COMMON_STRINGS, BibDatabase
    from bibtexparser.bparser import BibTexParser
    from bibtexparser.bwriter import BibTexWriter
except Exception:  # pragma: no cover
    print(
        "Error: This tool requires the 'bibtexparser' package. Install via 'pip install bibtexparser'.", file=sys.stderr
    )
    raise

logger = logging.getLogger(__name__)

META_COMMENT_PREFIX = "jabref-meta:"

SIGNATURE_RE = re.compile(r"^%\s*This file was created with\s+(?P<app>\S+)\s+(?P<version>\S+?)\.?\s*$", re.MULTILINE)
ENCODING_RE = re.compile(r"^%\s*Encoding:\s*(?P<enc>\S+)\s*$", re.MULTILINE)

# Characters BibTeX does not accept in a citation key
_KEY_UNSAFE_RE = re.compile(r"[\s,{}()\"#%'=\\~]")

# Only the comment block before the first entry is searched for the header
_HEADER_LIMIT = 2048


def _header(text: str) -> str:
    at = text.find("@")
    head = text if at < 0 else text[:at]
    return head[:_HEADER_LIMIT]


def parse_meta_comment(text: str) -> tuple[str, str] | None:
    """Split ``jabref-meta: name:value;`` into ``(name, value)``."""
    body = text.strip()
    if not body.lower().startswith(META_COMMENT_PREFIX):
        return None
    body = body[len(META_COMMENT_PREFIX) :].strip()
    name, sep, value = body.partition(":")
    if not sep or not name.strip():
        return None
    value = value.strip()
    if value.endswith(";"):
        value = value[:-1]
    return name.strip(), value


# ------------- Loading -------------


class BibLoader:
    """Turns BibTeX text into a ``ParserResult``.

    Malformed input never raises: problems end up as warnings, and a source
    that cannot be read or parsed at all gives an invalid result.
    """

    def __init__(self, config: StoreConfig | None = None, registry: EntryTypeRegistry | None = None) -> None:
        self.config = config or StoreConfig()
        self.registry = registry if registry is not None else self.config.build_registry()

    def _new_parser(self) -> BibTexParser:
        # bibtexparser parsers accumulate state, so each load gets its own
        parser = BibTexParser(common_strings=True, ignore_nonstandard_types=False)
        parser.customization = None
        return parser

    def load_file(self, path: str | Path) -> ParserResult:
        path = Path(path)
        try:
            raw = path.read_bytes()
        except OSError as e:
            logger.error("Failed to read %s: %s", path, e)
            return ParserResult.failed(f"Could not read '{path}': {e}", file=path)

        declared = ENCODING_RE.search(_header(raw[:_HEADER_LIMIT].decode("latin-1")))
        encoding = declared.group("enc") if declared else self.config.default_encoding
        replaced = False
        try:
            text = raw.decode(encoding)
        except LookupError:
            logger.warning("Unknown encoding '%s' in %s, using %s", encoding, path, self.config.default_encoding)
            encoding = self.config.default_encoding
            text = raw.decode(encoding, errors="replace")
            replaced = True
        except UnicodeDecodeError:
            text = raw.decode(encoding, errors="replace")
            replaced = True

        result = self.loads(text)
        result.file = path
        result.encoding = encoding
        if replaced:
            result.add_warning(f"Some characters could not be decoded as {encoding} and were replaced.")
        return result

    def loads(self, text: str) -> ParserResult:
        try:
            bib_db = bibtexparser.loads(text, parser=self._new_parser())
        except Exception as e:
            logger.error("BibTeX parsing failed: %s", e)
            return ParserResult.failed(f"Failed to parse BibTeX: {e}")

        meta_data: dict[str, str] = {}
        entry_types: dict[str, EntryType] = {}
        database = BibtexDatabase()
        result = ParserResult(database, meta_data, entry_types)

        head = _header(text)
        signature = SIGNATURE_RE.search(head)
        if signature:
            result.application_name = signature.group("app")
            result.set_application_version(signature.group("version"))
        declared = ENCODING_RE.search(head)
        if declared:
            result.encoding = declared.group("enc")

        self._read_comments(bib_db.comments, result)

        if bib_db.preambles:
            database.preamble = "\n".join(bib_db.preambles)
        database.strings = {k: str(v) for k, v in bib_db.strings.items() if k not in COMMON_STRINGS}

        for raw in bib_db.entries:
            self._add_entry(raw, result)

        self._check_entries(result)
        logger.debug(
            "Parsed %d entries (%d warnings, %d duplicate keys)",
            len(database),
            len(result.warnings),
            len(result.duplicate_keys),
        )
        return result

    def _read_comments(self, comments: list[str], result: ParserResult) -> None:
        for comment in comments:
            body = comment.strip()
            lowered = body.lower()
            if lowered.startswith(META_COMMENT_PREFIX):
                parsed = parse_meta_comment(body)
                if parsed is None:
                    result.add_warning(f"Ignored malformed metadata comment: {body}")
                    continue
                result.meta_data[parsed[0]] = parsed[1]
            elif lowered.startswith(ENTRYTYPE_COMMENT_PREFIX):
                etype = parse_entry_type_comment(body)
                if etype is None:
                    result.add_warning(f"Ill-formed entrytype comment in bib file: {body}")
                    continue
                result.entry_types[etype.key] = etype

    def _resolve_type(self, name: str, key: str, result: ParserResult) -> EntryType:
        etype = result.entry_types.get(name.lower()) or self.registry.get_type(name)
        if etype is not None:
            return etype
        result.add_warning(f"Unknown entry type '{name}' (entry '{key}').")
        etype = EntryType.create(name)
        result.entry_types[etype.key] = etype
        return etype

    def _add_entry(self, raw: dict[str, str], result: ParserResult) -> None:
        key = (raw.get("ID") or "").strip()
        etype = self._resolve_type(raw.get("ENTRYTYPE", "misc"), key, result)

        fields: dict[str, str] = {}
        for name, value in raw.items():
            if name in ("ID", "ENTRYTYPE"):
                continue
            lowered = name.lower()
            if lowered == ID_FIELD:
                result.add_warning(f"Entry '{key}': field 'id' is reserved and was dropped.")
                continue
            if lowered == KEY_FIELD:
                continue
            fields[lowered] = value if isinstance(value, str) else str(value)
        if key:
            fields[KEY_FIELD] = key

        entry = BibtexEntry.from_fields(create_neutral_id(self.config.id_prefix), etype, fields)
        try:
            result.database.insert_entry(entry)
        except KeyCollisionError:
            entry.clear_field(KEY_FIELD)
            result.database.insert_entry(entry)
            result.add_duplicate_key(key)
            result.add_warning(f"Duplicate BibTeX key '{key}'; later entry kept without a key.")
            logger.debug("Duplicate key %s, entry %s stored without key", key, entry.id)

    def _check_entries(self, result: ParserResult) -> None:
        database = result.database
        for entry in database:
            label = entry.cite_key or entry.id
            if entry.get_field(CROSSREF_FIELD):
                problem = self._crossref_problem(entry, database)
                if problem:
                    result.add_warning(f"Entry '{label}': {problem}.")
            if self.config.warn_missing_required:
                missing = entry.type.missing_required_slots(entry, database)
                if missing:
                    names = ", ".join("/".join(slot) for slot in missing)
                    result.add_warning(f"Entry '{label}' ({entry.type.name}) is missing required field(s): {names}.")
            if self.config.warn_non_numeric:
                for name, value in entry.fields.items():
                    if is_numeric(name, self.config.numeric_fields) and not looks_numeric(value):
                        result.add_warning(f"Entry '{label}': field '{name}' should be numeric, found '{value}'.")

    @staticmethod
    def _crossref_problem(entry: BibtexEntry, database: BibtexDatabase) -> str | None:
        try:
            for _ in database.crossref_chain(entry):
                pass
        except UnresolvedFieldError as e:
            return e.reason
        return None


# ------------- Writing -------------


class BibWriter:
    """Serialises a ``BibtexDatabase`` as BibTeX text."""

    def __init__(self, config: StoreConfig | None = None) -> None:
        self.config = config or StoreConfig()
        self.writer = BibTexWriter()
        self.writer.indent = "  "
        self.writer.order_entries_by = None
        self.writer.comma_first = False

    def signature(self, encoding: str) -> str:
        return (
            f"% This file was created with {self.config.application_name} {self.config.application_version}.\n"
            f"% Encoding: {encoding}\n\n"
        )

    @staticmethod
    def _placeholder_key(entry: BibtexEntry, taken: set[str]) -> str:
        # bibtexparser drops entries written without a key
        base = _KEY_UNSAFE_RE.sub("_", entry.id) or "entry"
        key = base
        n = 1
        while key in taken:
            n += 1
            key = f"{base}-{n}"
        taken.add(key)
        logger.warning("Entry %s has no citation key, written as '%s'", entry.id, key)
        return key

    def to_bib_database(
        self,
        database: BibtexDatabase,
        meta_data: Mapping[str, str] | None = None,
        entry_types: Mapping[str, EntryType] | None = None,
    ) -> BibDatabase:
        db = BibDatabase()
        entries = []
        taken = database.get_key_set()
        for entry in database:
            key = entry.cite_key or self._placeholder_key(entry, taken)
            record = {"ENTRYTYPE": entry.type.name.lower(), "ID": key}
            for name, value in entry.fields.items():
                if name != KEY_FIELD:
                    record[name] = value
            entries.append(record)
        db.entries = entries

        comments = [f"{META_COMMENT_PREFIX} {k}:{v};" for k, v in (meta_data or {}).items()]
        comments.extend(t.to_comment() for t in (entry_types or {}).values() if t.required or t.optional)
        db.comments = comments

        db.strings = OrderedDict(database.strings)
        if database.preamble:
            db.preambles = [database.preamble]
        return db

    def dumps(
        self,
        database: BibtexDatabase,
        *,
        encoding: str | None = None,
        meta_data: Mapping[str, str] | None = None,
        entry_types: Mapping[str, EntryType] | None = None,
    ) -> str:
        encoding = encoding or self.config.default_encoding
        body = bibtexparser.dumps(self.to_bib_database(database, meta_data, entry_types), writer=self.writer)
        return self.signature(encoding) + body

    def dump_result(self, result: ParserResult) -> str:
        """Write a parsed file back out, keeping its metadata and custom types."""
        return self.dumps(
            result.database,
            encoding=result.encoding,
            meta_data=result.meta_data,
            entry_types=result.entry_types,
        )

    def dump_to_file(self, text: str, path: str | Path, encoding: str | None = None) -> None:
        """Atomically replace ``path`` with ``text``."""
        encoding = encoding or self.config.default_encoding
        target = Path(path)
        tmp = tempfile.NamedTemporaryFile(
            "w", delete=False, encoding=encoding, suffix=".bib", prefix=".tmp_bib_", dir=target.parent or None
        )
        try:
            tmp.write(text)
            tmp.flush()
            os.fsync(tmp.fileno())
        finally:
            tmp.close()
        os.replace(tmp.name, target)
