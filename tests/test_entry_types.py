"""Tests for entry types and the type registry."""

from __future__ import annotations

import pytest

from bibstore import (
    BUILTIN_TYPES,
    EntryType,
    EntryTypeRegistry,
    entry_types_from_dict,
    get_default_registry,
    load_entry_types,
    parse_entry_type_comment,
)


class TestEntryType:
    def test_create_parses_alternative_slots(self):
        etype = EntryType.create("Book", ["author/editor", "title"], ["Year", "year", "note"])
        assert etype.required == (("author", "editor"), ("title",))
        assert etype.optional == ("year", "note")
        assert etype.name == "Book"
        assert etype.key == "book"

    def test_create_accepts_sequence_slots(self):
        etype = EntryType.create("x", [("author", "editor")])
        assert etype.required == (("author", "editor"),)

    def test_empty_name_rejected(self):
        with pytest.raises(ValueError):
            EntryType.create("  ")

    def test_empty_slot_rejected(self):
        with pytest.raises(ValueError):
            EntryType.create("x", ["/"])

    def test_required_fields_flattened_in_order(self):
        etype = EntryType.create("x", ["author/editor", "title", "editor"])
        assert etype.get_required_fields() == ["author", "editor", "title"]

    def test_describe(self):
        assert EntryType.create("x", ["author/editor", "title"]).describe_required_fields() == "author/editor, title"

    def test_is_frozen(self):
        etype = EntryType.create("x")
        with pytest.raises(AttributeError):
            etype.name = "y"

    def test_comment_round_trip(self):
        etype = EntryType.create("Dataset", ["author/editor", "title", "year"], ["url", "doi"])
        assert etype.to_comment() == "jabref-entrytype: Dataset: req[author/editor;title;year] opt[url;doi]"
        assert parse_entry_type_comment(etype.to_comment()) == etype

    def test_parse_comment_rejects_other_text(self):
        assert parse_entry_type_comment("jabref-meta: foo:bar;") is None
        assert parse_entry_type_comment("jabref-entrytype: broken") is None

    def test_parse_comment_with_empty_lists(self):
        etype = parse_entry_type_comment("jabref-entrytype: Note: req[] opt[]")
        assert etype == EntryType.create("Note")


class TestBuiltins:
    def test_standard_types_present(self, registry):
        for name in ("article", "book", "inproceedings", "phdthesis", "misc", "techreport"):
            assert name in registry

    def test_builtins_are_unique(self):
        keys = [t.key for t in BUILTIN_TYPES]
        assert len(keys) == len(set(keys))

    def test_article_requirements(self, article):
        assert article.describe_required_fields() == "author, title, journal, year"


class TestRegistry:
    def test_lookup_is_case_insensitive(self, registry):
        assert registry.get_type("ARTICLE") is registry.get_type("article")

    def test_absent_type_returns_none(self, registry):
        assert registry.get_type("nonexistent") is None
        assert registry.get_type("") is None

    def test_overrides_shadow_builtins(self):
        custom = EntryType.create("article", ["title"])
        registry = EntryTypeRegistry.with_builtins([custom])
        assert registry.get_type("article") is custom
        assert registry.is_custom("Article")

    def test_reload_replaces_only_overrides(self):
        registry = EntryTypeRegistry.with_builtins([EntryType.create("dataset", ["title"])])
        registry.reload([EntryType.create("software", ["title"])])
        assert registry.get_type("dataset") is None
        assert registry.get_type("software") is not None
        assert registry.get_type("article") is not None

    def test_remove_restores_builtin(self):
        custom = EntryType.create("article", ["title"])
        registry = EntryTypeRegistry.with_builtins([custom])
        assert registry.remove_type("article") is custom
        assert registry.get_type("article").describe_required_fields() == "author, title, journal, year"

    def test_init_from_scratch(self):
        registry = EntryTypeRegistry()
        assert len(registry) == 0
        registry.init([EntryType.create("a")], {"b": EntryType.create("b")})
        assert registry.names() == ["a", "b"]
        assert [t.name for t in registry.custom_types()] == ["b"]

    def test_default_registry_is_shared(self):
        assert get_default_registry() is get_default_registry()
        assert "article" in get_default_registry()


class TestCustomisationLoading:
    def test_from_dict(self):
        types = entry_types_from_dict(
            {"entry_types": {"Dataset": {"required": ["author/editor", "title"], "optional": ["url"]}}}
        )
        assert types["dataset"].required == (("author", "editor"), ("title",))

    def test_from_dict_accepts_bare_mapping(self):
        types = entry_types_from_dict({"software": None})
        assert types["software"].required == ()

    def test_from_dict_rejects_bad_definition(self):
        with pytest.raises(ValueError):
            entry_types_from_dict({"software": ["title"]})

    def test_from_yaml(self, tmp_path):
        path = tmp_path / "types.yaml"
        path.write_text(
            "entry_types:\n  software:\n    required: [title, version]\n    optional: [url]\n",
            encoding="utf-8",
        )
        types = load_entry_types(path)
        assert types["software"].describe_required_fields() == "title, version"

    def test_from_yaml_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_entry_types(tmp_path / "missing.yaml")

    def test_from_yaml_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")
        assert load_entry_types(path) == {}
