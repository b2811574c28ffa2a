"""Record-file producer: declarations written as YAML or JSON documents.

A record file is a mapping with a ``declarations`` list; each entry is a type
record (``record: type``) or a field record (``record: field``)::

    declarations:
      - record: type
        name: Author
      - record: field
        ownerType: Author
        fieldName: posts
        typeRef: {name: Post, listDepth: 1, nullable: items}
"""

import json
from pathlib import Path
from typing import Any, cast

import yaml

from schemabind import log
from schemabind.model.declarations import DeclarationFile, DeclarationSet, Origin

RECORD_FILE_SUFFIXES = (".yaml", ".yml", ".json")


def parse_records(raw: Any, source_name: str = "<records>") -> DeclarationSet:
    """Validate raw record data (already parsed from YAML/JSON) into declarations.

    Args:
        raw: Parsed document. None or an empty mapping yields no declarations.
        source_name: Name used in declaration sites that don't give their own

    Returns:
        DeclarationSet: The declarations, marked as coming from a record file

    Raises:
        TypeError: If the document root is not a mapping
        ValidationError: If a record does not match the record schema
    """
    if raw is None or raw == {}:
        return DeclarationSet()

    if not isinstance(raw, dict):
        raise TypeError(f"Record file root must be a mapping, got {type(raw).__name__}")

    parsed = DeclarationFile.model_validate(cast(dict[str, Any], raw))

    produced = DeclarationSet()
    for index, record in enumerate(parsed.declarations):
        produced.records.append(
            record.model_copy(
                update={"origin": Origin.RECORD_FILE, "site": record.site or f"{source_name}#{index}"}
            )
        )
    return produced


def load_record_file(path: Path) -> DeclarationSet:
    """Load a YAML or JSON record file.

    Raises:
        OSError: If the file cannot be read
        yaml.YAMLError | json.JSONDecodeError: If the file cannot be parsed
        TypeError: If the document root is not a mapping
        ValidationError: If a record does not match the record schema
    """
    with path.open("r", encoding="utf-8") as f:
        raw = json.load(f) if path.suffix == ".json" else yaml.safe_load(f)

    produced = parse_records(raw, path.name)
    log.debug(f"Loaded {len(produced.records)} declaration records from {path}")
    return produced


def resolve_record_files(paths: list[Path]) -> list[Path]:
    """Flatten files and directories into the sorted list of record files they hold."""
    resolved_files: set[Path] = set()

    for path in paths:
        if path.is_file():
            resolved_files.add(path)
        elif path.is_dir():
            for file in path.rglob("*"):
                if file.suffix in RECORD_FILE_SUFFIXES:
                    resolved_files.add(file)

    return sorted(resolved_files)


def load_record_paths(paths: list[Path]) -> DeclarationSet:
    produced = DeclarationSet()
    for record_file in resolve_record_files(paths):
        produced.extend(load_record_file(record_file))
    return produced
