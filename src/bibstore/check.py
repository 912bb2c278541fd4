"""
bibstore-check: load BibTeX files and report integrity problems.

Reports parser warnings, duplicate citation keys, unresolved crossrefs and
entries lacking required fields (taking crossref inheritance into account).
Optionally writes the loaded database back out in normalised form.

Examples
--------
$ bibstore-check refs.bib
$ bibstore-check refs.bib --types my_types.yaml --strict
$ bibstore-check refs.bib -o normalised.bib --report report.json
"""

from __future__ import annotations

import argparse
import json
import logging
from dataclasses import dataclass, field
from typing import Any

from bibstore.bibio import BibLoader, BibWriter
from bibstore.config import StoreConfig
from bibstore.parser_result import ParserResult


@dataclass
class FileSummary:
    path: str
    entries: int
    invalid: bool
    error: str | None
    warnings: list[str] = field(default_factory=list)
    duplicate_keys: list[str] = field(default_factory=list)
    incomplete: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "entries": self.entries,
            "invalid": self.invalid,
            "error": self.error,
            "warnings": self.warnings,
            "duplicate_keys": self.duplicate_keys,
            "incomplete": self.incomplete,
        }


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="bibstore-check",
        description="Check BibTeX files for duplicate keys, broken crossrefs and missing required fields.",
    )
    p.add_argument("inputs", nargs="+", help="Input .bib files")
    p.add_argument("--config", help="YAML configuration file")
    p.add_argument("--types", help="YAML file with entry type customisations (overrides the config)")
    p.add_argument("-o", "--output", help="Write the loaded database to this file (single input only)")
    p.add_argument("--report", help="Write a JSON report")
    p.add_argument("--strict", action="store_true", help="Exit with status 2 when any problem is found")
    p.add_argument("--verbose", "-v", action="store_true", help="Verbose logging")
    return p


def init_logging(verbose: bool) -> logging.Logger:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")
    return logging.getLogger("bibstore_check")


def summarize(path: str, result: ParserResult) -> FileSummary:
    database = result.database
    incomplete = [
        entry.cite_key or entry.id for entry in database if not entry.has_all_required_fields(database)
    ]
    return FileSummary(
        path=path,
        entries=len(database),
        invalid=result.invalid,
        error=result.error_message,
        warnings=list(result.warnings),
        duplicate_keys=list(result.duplicate_keys),
        incomplete=incomplete,
    )


def log_summary(summary: FileSummary, logger: logging.Logger) -> None:
    if summary.invalid:
        logger.error("%s: unusable (%s)", summary.path, summary.error)
        return
    logger.info(
        "%s: %d entries, %d warnings, %d duplicate keys, %d incomplete",
        summary.path,
        summary.entries,
        len(summary.warnings),
        len(summary.duplicate_keys),
        len(summary.incomplete),
    )
    for w in summary.warnings:
        logger.warning("  %s", w)
    for key in summary.duplicate_keys:
        logger.debug("  duplicate key: %s", key)


def load_config(args: argparse.Namespace, logger: logging.Logger) -> StoreConfig | None:
    try:
        config = StoreConfig.from_yaml(args.config) if args.config else StoreConfig()
    except (OSError, ValueError) as e:
        logger.error("Failed to read config: %s", e)
        return None
    if args.types:
        config.entry_types_file = args.types
    return config


def main(argv: list[str] | None = None) -> int:
    """Run the checker.

    Returns:
        Exit code: 0=clean (or problems without --strict), 1=error, 2=problems found with --strict.
    """
    args = build_arg_parser().parse_args(argv)
    logger = init_logging(args.verbose)

    if args.output and len(args.inputs) > 1:
        logger.error("--output requires a single input file")
        return 1

    config = load_config(args, logger)
    if config is None:
        return 1
    try:
        loader = BibLoader(config)
    except (OSError, ValueError) as e:
        logger.error("Failed to load entry types: %s", e)
        return 1

    summaries: list[FileSummary] = []
    results: list[ParserResult] = []
    for path in args.inputs:
        result = loader.load_file(path)
        summary = summarize(path, result)
        log_summary(summary, logger)
        summaries.append(summary)
        results.append(result)

    if args.report:
        try:
            with open(args.report, "w", encoding="utf-8") as fh:
                json.dump([s.to_dict() for s in summaries], fh, indent=2, ensure_ascii=False)
            logger.info("Report written to %s", args.report)
        except OSError as e:
            logger.error("Failed to write report %s: %s", args.report, e)
            return 1

    if any(s.invalid for s in summaries):
        return 1

    if args.output:
        writer = BibWriter(config)
        result = results[0]
        try:
            writer.dump_to_file(writer.dump_result(result), args.output, encoding=result.encoding)
        except (OSError, LookupError) as e:
            logger.error("Failed to write %s: %s", args.output, e)
            return 1
        logger.info("Wrote %d entries to %s", len(result.database), args.output)

    problems = any(s.warnings or s.duplicate_keys or s.incomplete for s in summaries)
    if args.strict and problems:
        return 2
    return 0
