"""Discover code-first declarations by importing modules.

Directories are scanned for Python files whose names end in an allowlisted
suffix; everything else in the tree is left alone, so scanning never imports
application code that has side effects.
"""

import hashlib
import importlib
import importlib.util
import sys
from pathlib import Path
from types import ModuleType

from schemabind import log
from schemabind.errors import InvalidDeclaration
from schemabind.model.declarations import DeclarationSet
from schemabind.producers.code_first import is_resolver, is_type_class, scan_classes

DEFAULT_TYPE_FILE_SUFFIXES = ("_input.py", "_args.py", "_model.py")


def resolve_type_files(
    paths: list[Path], suffixes: tuple[str, ...] | list[str] = DEFAULT_TYPE_FILE_SUFFIXES
) -> list[Path]:
    """Resolve files and directories into the sorted Python files matching the suffix allowlist.

    Files given explicitly are kept whatever their name.
    """
    resolved_files: set[Path] = set()

    for path in paths:
        if path.is_file():
            resolved_files.add(path)
        elif path.is_dir():
            for file in path.rglob("*.py"):
                if file.name.endswith(tuple(suffixes)):
                    resolved_files.add(file)

    return sorted(resolved_files)


def _module_name(path: Path) -> str:
    digest = hashlib.sha1(str(path.resolve()).encode("utf-8")).hexdigest()[:10]
    return f"schemabind_scan_{path.stem}_{digest}"


def import_file(path: Path) -> ModuleType:
    """Import a Python file under a name derived from its location. Repeated imports are cached."""
    module_name = _module_name(path)
    if module_name in sys.modules:
        return sys.modules[module_name]

    spec = importlib.util.spec_from_file_location(module_name, path)
    if spec is None or spec.loader is None:
        raise InvalidDeclaration(f"Cannot import {path}")

    module = importlib.util.module_from_spec(spec)
    sys.modules[module_name] = module
    try:
        spec.loader.exec_module(module)
    except Exception:
        del sys.modules[module_name]
        raise

    log.debug(f"Imported {path} as {module_name}")
    return module


def scan_module(module: ModuleType | str) -> DeclarationSet:
    """Collect the declarations of the type classes, resolver classes and handlers a module defines.

    Names the module merely imports are skipped, so each declaration is produced by
    the module that defines it.
    """
    if isinstance(module, str):
        module = importlib.import_module(module)

    targets = [
        member
        for member in vars(module).values()
        if getattr(member, "__module__", None) == module.__name__ and (is_type_class(member) or is_resolver(member))
    ]
    produced = scan_classes(*targets)
    log.debug(f"Found {len(targets)} declaring classes or functions in {module.__name__}")
    return produced


def scan_paths(paths: list[Path], suffixes: tuple[str, ...] | list[str] = DEFAULT_TYPE_FILE_SUFFIXES) -> DeclarationSet:
    """Import every allowlisted file under the given paths and collect its declarations."""
    type_files = resolve_type_files(paths, suffixes)
    # Import everything first so hints may name classes from any of the files
    modules = [import_file(type_file) for type_file in type_files]

    produced = DeclarationSet()
    for module in modules:
        produced.extend(scan_module(module))

    log.info(f"Scanned {len(type_files)} type file(s)")
    return produced
