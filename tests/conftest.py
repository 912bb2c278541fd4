"""Shared fixtures for bibstore tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from bibstore import BibtexDatabase, BibtexEntry, EntryType, EntryTypeRegistry, StoreConfig

SAMPLE_BIB = """\
% This file was created with JabRef 2.7.1.
% Encoding: UTF-8

@comment{jabref-meta: databaseType:bibtex;}

@comment{jabref-entrytype: Dataset: req[author/editor;title;year] opt[url;doi]}

@article{smith2020,
  author = {Smith, John},
  title = {An Example Result},
  journal = {Journal of Examples},
  year = {2020}
}

@inproceedings{doe2021,
  author = {Doe, Jane},
  title = {A Paper in Proceedings},
  crossref = {conf2021}
}

@proceedings{conf2021,
  title = {Proceedings of the Example Conference},
  booktitle = {Proceedings of the Example Conference},
  year = {2021}
}

@dataset{data2022,
  editor = {Roe, Richard},
  title = {Example Data},
  year = {2022}
}
"""


@pytest.fixture
def registry():
    """A fresh registry holding only the built-in types."""
    return EntryTypeRegistry.with_builtins()


@pytest.fixture
def article(registry):
    return registry.get_type("article")


@pytest.fixture
def book(registry):
    return registry.get_type("book")


@pytest.fixture
def make_entry(article):
    """Factory fixture for creating entries."""

    def _make_entry(entry_id: str = "e1", entry_type: EntryType | None = None, **fields) -> BibtexEntry:
        return BibtexEntry.from_fields(entry_id, entry_type or article, fields)

    return _make_entry


@pytest.fixture
def database():
    return BibtexDatabase()


@pytest.fixture
def config():
    # Keep loader output focused on the scenario under test
    return StoreConfig(warn_missing_required=False, warn_non_numeric=False)


@pytest.fixture
def sample_bib_text():
    return SAMPLE_BIB


@pytest.fixture
def sample_bib_path(tmp_path) -> Path:
    path = tmp_path / "sample.bib"
    path.write_text(SAMPLE_BIB, encoding="utf-8")
    return path
