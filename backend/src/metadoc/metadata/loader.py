"""Load DocType definitions from YAML files."""

import logging
from pathlib import Path

import yaml

from metadoc.metadata.types import DocTypeDefinition

logger = logging.getLogger(__name__)


class DocTypeLoader:
    """Loads one DocType per ``*.yaml`` file (top-level ``doctype:`` key)."""

    def __init__(self, metadata_path: Path):
        self.metadata_path = metadata_path
        self.doc_types: dict[str, DocTypeDefinition] = {}
        self.sources: dict[str, Path] = {}

    def load_all(self) -> None:
        """Load every definition in the directory.

        Raises:
            ValueError: If two files declare the same DocType.
        """
        if not self.metadata_path.exists():
            logger.info("No DocType directory at %s", self.metadata_path)
            return

        for yaml_file in sorted(self.metadata_path.glob("*.yaml")):
            with open(yaml_file) as f:
                data = yaml.safe_load(f)
            if not data or "doctype" not in data:
                continue

            definition = DocTypeDefinition.from_dict(data)
            if definition.name in self.doc_types:
                raise ValueError(
                    f"DocType '{definition.name}' is declared in both "
                    f"{self.sources[definition.name].name} and {yaml_file.name}"
                )
            self.doc_types[definition.name] = definition
            self.sources[definition.name] = yaml_file

        logger.info("Loaded %d DocType definitions from %s", len(self.doc_types), self.metadata_path)

    def get_doc_type(self, name: str) -> DocTypeDefinition | None:
        return self.doc_types.get(name)

    def list_doc_types(self) -> list[str]:
        return list(self.doc_types.keys())

    def sync_order(self) -> list[DocTypeDefinition]:
        """Definitions ordered so child DocTypes come before their parents."""
        return sorted(self.doc_types.values(), key=lambda d: (not d.is_child, d.name))

    def missing_child_doc_types(self) -> list[tuple[str, str, str]]:
        """``(DocType, field, options)`` for Table fields naming no loaded child DocType."""
        missing = []
        for definition in self.doc_types.values():
            for field in definition.table_fields:
                child = self.doc_types.get(field.options or "")
                if child is None or not child.is_child:
                    missing.append((definition.name, field.name, field.options or ""))
        return missing
