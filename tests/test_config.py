"""Tests for StoreConfig."""

from __future__ import annotations

import pytest

from bibstore import StoreConfig, __version__, get_default_registry


class TestStoreConfig:
    def test_defaults(self):
        cfg = StoreConfig()
        assert cfg.default_encoding == "utf-8"
        assert cfg.application_name == "bibstore"
        assert cfg.application_version == __version__
        assert "year" in cfg.numeric_fields
        assert cfg.entry_types_file is None

    def test_from_dict(self):
        cfg = StoreConfig.from_dict({"default_encoding": "latin-1", "warn_non_numeric": False})
        assert cfg.default_encoding == "latin-1"
        assert cfg.warn_non_numeric is False

    def test_unknown_option_rejected(self):
        with pytest.raises(ValueError):
            StoreConfig.from_dict({"colour": "blue"})

    def test_to_dict_round_trip(self):
        cfg = StoreConfig(id_prefix="rec", numeric_fields=["year"])
        assert StoreConfig.from_dict(cfg.to_dict()) == cfg

    def test_from_yaml_section(self, tmp_path):
        path = tmp_path / "cfg.yaml"
        path.write_text("bibstore:\n  application_name: MyApp\n  id_prefix: rec\n", encoding="utf-8")
        cfg = StoreConfig.from_yaml(path)
        assert cfg.application_name == "MyApp"
        assert cfg.id_prefix == "rec"

    def test_from_yaml_flat(self, tmp_path):
        path = tmp_path / "cfg.yaml"
        path.write_text("default_encoding: latin-1\n", encoding="utf-8")
        assert StoreConfig.from_yaml(path).default_encoding == "latin-1"

    def test_from_yaml_missing(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            StoreConfig.from_yaml(tmp_path / "nope.yaml")

    def test_from_yaml_not_a_mapping(self, tmp_path):
        path = tmp_path / "cfg.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ValueError):
            StoreConfig.from_yaml(path)


class TestBuildRegistry:
    def test_without_file_uses_default_registry(self):
        assert StoreConfig().build_registry() is get_default_registry()

    def test_with_types_file(self, tmp_path):
        path = tmp_path / "types.yaml"
        path.write_text("entry_types:\n  software:\n    required: [title]\n", encoding="utf-8")
        registry = StoreConfig(entry_types_file=str(path)).build_registry()
        assert registry.get_type("software") is not None
        assert registry.get_type("article") is not None
        assert registry is not get_default_registry()
