"""Configuration for loading and saving bibliographies."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from bibstore._version import __version__
from bibstore.entry_types import EntryTypeRegistry, get_default_registry, load_entry_types
from bibstore.fields import DEFAULT_NUMERIC_FIELDS


@dataclass
class StoreConfig:
    """Settings supplied to the loader and writer.

    Attributes:
        default_encoding: Encoding used when a file carries no ``% Encoding:`` line
        application_name: Name written into the file signature
        application_version: Version written into the file signature
        id_prefix: Prefix for generated entry ids
        numeric_fields: Fields whose content should be numeric
        entry_types_file: Optional YAML file with entry type customisations
        warn_missing_required: Report entries lacking required fields
        warn_non_numeric: Report numeric fields holding other content
    """

    default_encoding: str = "utf-8"
    application_name: str = "bibstore"
    application_version: str = __version__
    id_prefix: str = "entry"
    numeric_fields: list[str] = field(default_factory=lambda: sorted(DEFAULT_NUMERIC_FIELDS))
    entry_types_file: str | None = None
    warn_missing_required: bool = True
    warn_non_numeric: bool = True

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StoreConfig:
        """Create config from a dictionary (e.g., loaded from YAML)."""
        known = set(cls.__dataclass_fields__)
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown configuration option(s): {', '.join(sorted(unknown))}")
        return cls(**data)

    @classmethod
    def from_yaml(cls, path: str | Path) -> StoreConfig:
        """Load config from a YAML file; a ``bibstore`` section is used if present.

        Raises:
            FileNotFoundError: If file doesn't exist
            ValueError: If the YAML is not a mapping or has unknown options
        """
        import yaml

        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        with open(path, encoding="utf-8") as f:
            try:
                data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ValueError(f"Invalid YAML in {path}: {e}") from e
        if not isinstance(data, dict):
            raise ValueError("Invalid config format: expected dict")
        section = data.get("bibstore", data)
        if not isinstance(section, dict):
            raise ValueError("Invalid config format: 'bibstore' must be a mapping")
        return cls.from_dict(dict(section))

    def to_dict(self) -> dict[str, Any]:
        """Convert config to a dictionary for serialization."""
        return {
            "default_encoding": self.default_encoding,
            "application_name": self.application_name,
            "application_version": self.application_version,
            "id_prefix": self.id_prefix,
            "numeric_fields": list(self.numeric_fields),
            "entry_types_file": self.entry_types_file,
            "warn_missing_required": self.warn_missing_required,
            "warn_non_numeric": self.warn_non_numeric,
        }

    def build_registry(self) -> EntryTypeRegistry:
        """Registry with built-ins plus the customisations from ``entry_types_file``.

        Without a customisation file the process-wide registry is returned.
        """
        if not self.entry_types_file:
            return get_default_registry()
        return EntryTypeRegistry.with_builtins(load_entry_types(self.entry_types_file))
