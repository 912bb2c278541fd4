"""Tests for ParserResult."""

from __future__ import annotations

from pathlib import Path

import pytest

from bibstore import BibtexDatabase, EntryType, ParserResult


@pytest.fixture
def result():
    return ParserResult(BibtexDatabase(), {"databaseType": "bibtex"}, {"dataset": EntryType.create("dataset")})


class TestConstruction:
    def test_holds_given_objects(self):
        db = BibtexDatabase()
        meta = {"k": "v"}
        types = {}
        result = ParserResult(db, meta, types)
        assert result.database is db
        assert result.meta_data is meta
        assert result.entry_types is types

    def test_defaults(self):
        result = ParserResult(BibtexDatabase())
        assert result.meta_data == {}
        assert result.entry_types == {}
        assert not result.invalid
        assert result.error_message is None
        assert result.encoding is None
        assert not result.merge_into_open
        assert result.version_tuple == (0, 0, 0)

    def test_identity_is_read_only(self, result):
        with pytest.raises(AttributeError):
            result.database = BibtexDatabase()

    def test_failed(self):
        result = ParserResult.failed("boom", file=Path("x.bib"))
        assert result.invalid
        assert result.error_message == "boom"
        assert result.file == Path("x.bib")
        assert len(result.database) == 0


class TestWarnings:
    def test_warning_deduplicated(self, result):
        result.add_warning("x")
        result.add_warning("x")
        assert result.warnings == ("x",)

    def test_warnings_keep_order(self, result):
        for w in ("b", "a", "b", "c"):
            result.add_warning(w)
        assert result.warnings == ("b", "a", "c")

    def test_dedup_is_case_sensitive(self, result):
        result.add_warning("x")
        result.add_warning("X")
        assert result.warnings == ("x", "X")

    def test_has_warnings(self, result):
        assert not result.has_warnings()
        result.add_warning("x")
        assert result.has_warnings()

    def test_duplicate_keys_separate_from_warnings(self, result):
        result.add_duplicate_key("smith2020")
        result.add_duplicate_key("smith2020")
        assert result.duplicate_keys == ("smith2020",)
        assert result.has_duplicate_keys()
        assert not result.has_warnings()


class TestVersion:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("2.7.1", (2, 7, 1)),
            ("2.7", (2, 7, 0)),
            ("3", (3, 0, 0)),
            ("2.7b", (2, 7, 0)),
            ("unknown", (0, 0, 0)),
        ],
    )
    def test_numeric_parts(self, result, raw, expected):
        result.set_application_version(raw)
        assert result.application_version == raw
        assert result.version_tuple == expected

    def test_reset_to_none(self, result):
        result.set_application_version("2.7")
        result.set_application_version(None)
        assert result.application_version is None
        assert result.version_tuple == (0, 0, 0)
