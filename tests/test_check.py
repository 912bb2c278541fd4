"""Tests for the bibstore-check command."""

from __future__ import annotations

import json

from bibstore import BibLoader, StoreConfig
from bibstore.check import build_arg_parser, main, summarize

INCOMPLETE_BIB = "@article{k, title = {Only a title}}\n"


class TestArgParser:
    def test_defaults(self):
        args = build_arg_parser().parse_args(["a.bib"])
        assert args.inputs == ["a.bib"]
        assert not args.strict
        assert args.output is None


class TestSummarize:
    def test_counts(self):
        result = BibLoader(StoreConfig(warn_missing_required=False)).loads(INCOMPLETE_BIB)
        summary = summarize("x.bib", result)
        assert summary.entries == 1
        assert summary.incomplete == ["k"]
        assert summary.to_dict()["path"] == "x.bib"


class TestMain:
    def test_clean_file(self, sample_bib_path):
        assert main([str(sample_bib_path)]) == 0

    def test_strict_clean_file(self, sample_bib_path):
        assert main([str(sample_bib_path), "--strict"]) == 0

    def test_problems_only_fail_in_strict_mode(self, tmp_path):
        path = tmp_path / "bad.bib"
        path.write_text(INCOMPLETE_BIB, encoding="utf-8")
        assert main([str(path)]) == 0
        assert main([str(path), "--strict"]) == 2

    def test_missing_input(self, tmp_path):
        assert main([str(tmp_path / "missing.bib")]) == 1

    def test_output_needs_single_input(self, sample_bib_path, tmp_path):
        assert main([str(sample_bib_path), str(sample_bib_path), "-o", str(tmp_path / "o.bib")]) == 1

    def test_writes_output(self, sample_bib_path, tmp_path):
        out = tmp_path / "out.bib"
        assert main([str(sample_bib_path), "-o", str(out)]) == 0
        text = out.read_text(encoding="utf-8")
        assert text.startswith("% This file was created with bibstore")
        assert "@article{smith2020" in text

    def test_report(self, tmp_path):
        path = tmp_path / "bad.bib"
        path.write_text(INCOMPLETE_BIB, encoding="utf-8")
        report = tmp_path / "report.json"
        assert main([str(path), "--report", str(report)]) == 0
        data = json.loads(report.read_text(encoding="utf-8"))
        assert data[0]["incomplete"] == ["k"]
        assert data[0]["warnings"]

    def test_types_option(self, tmp_path):
        types = tmp_path / "types.yaml"
        types.write_text("entry_types:\n  software:\n    required: [title]\n", encoding="utf-8")
        path = tmp_path / "tool.bib"
        path.write_text("@software{tool, title = {A Tool}}\n", encoding="utf-8")
        assert main([str(path), "--strict"]) == 2
        assert main([str(path), "--strict", "--types", str(types)]) == 0

    def test_bad_config(self, tmp_path, sample_bib_path):
        cfg = tmp_path / "cfg.yaml"
        cfg.write_text("colour: blue\n", encoding="utf-8")
        assert main([str(sample_bib_path), "--config", str(cfg)]) == 1
