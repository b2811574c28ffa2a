"""Declaration producers: every way declarations can reach the collector.

Each producer returns a ``DeclarationSet``, so the collector never needs to know
where a declaration came from beyond its ``origin`` tag.
"""

from schemabind.producers.code_first import declarations_for_resolver, declarations_for_type, scan_classes
from schemabind.producers.records import load_record_file, load_record_paths, parse_records
from schemabind.producers.scanner import DEFAULT_TYPE_FILE_SUFFIXES, scan_module, scan_paths
from schemabind.producers.schema_first import load_sdl_paths, parse_sdl

__all__ = [
    "DEFAULT_TYPE_FILE_SUFFIXES",
    "declarations_for_resolver",
    "declarations_for_type",
    "load_record_file",
    "load_record_paths",
    "load_sdl_paths",
    "parse_records",
    "parse_sdl",
    "scan_classes",
    "scan_module",
    "scan_paths",
]
