from pathlib import Path
from types import ModuleType
from typing import Any

from schemabind import log
from schemabind.assembler import SchemaDocument, assemble
from schemabind.binder import ResolverBinder, ResolverFactory
from schemabind.coercion import ConstraintValidator
from schemabind.collector import DeclarationCollector
from schemabind.config import BuildConfig
from schemabind.model.declarations import DeclarationSet
from schemabind.producers import (
    DEFAULT_TYPE_FILE_SUFFIXES,
    load_record_paths,
    load_sdl_paths,
    parse_records,
    parse_sdl,
    scan_classes,
    scan_module,
    scan_paths,
)
from schemabind.registry import RegistrySnapshot, TypeRegistry
from schemabind.validation import PydanticConstraintValidator, parse_constraint


class SchemaBuilder:
    """Gathers declarations from any mix of producers and builds the schema in one pass.

    Nothing is checked until ``build()``: declarations may arrive in any order and
    reference each other freely. A failing build raises and produces no schema.

    Example:
        builder = SchemaBuilder(factory=MappingFactory({"AuthorResolver": AuthorResolver(repo)}))
        builder.add_sdl(SCHEMA_SDL)
        builder.add_resolvers(AuthorResolver)
        document = builder.build()
    """

    def __init__(
        self, factory: ResolverFactory | None = None, validator: ConstraintValidator | None = None
    ) -> None:
        self.factory = factory
        self.validator = validator
        self.declarations = DeclarationSet()
        self._document: SchemaDocument | None = None

    @classmethod
    def from_config(
        cls,
        config: BuildConfig,
        factory: ResolverFactory | None = None,
        validator: ConstraintValidator | None = None,
    ) -> "SchemaBuilder":
        builder = cls(factory=factory, validator=validator)
        if config.type_paths:
            builder.add_sdl_paths(config.type_paths)
        if config.sources:
            builder.scan(config.sources, config.type_file_suffixes)
        for module in config.modules:
            builder.add_module(module)
        if config.records:
            builder.add_records(config.records)
        return builder

    def _add(self, produced: DeclarationSet) -> "SchemaBuilder":
        if self._document is not None:
            raise RuntimeError("Declarations cannot be added after build()")
        self.declarations.extend(produced)
        return self

    def add_sdl(self, sdl: str, source_name: str = "<sdl>") -> "SchemaBuilder":
        return self._add(parse_sdl(sdl, source_name))

    def add_sdl_paths(self, paths: list[Path]) -> "SchemaBuilder":
        return self._add(load_sdl_paths(paths))

    def add_types(self, *classes: type) -> "SchemaBuilder":
        return self._add(scan_classes(*classes))

    def add_resolvers(self, *targets: Any) -> "SchemaBuilder":
        return self._add(scan_classes(*targets))

    def add_records(self, source: list[Path] | dict[str, Any]) -> "SchemaBuilder":
        """Add declaration records, from record files or from already parsed data."""
        if isinstance(source, dict):
            return self._add(parse_records(source))
        return self._add(load_record_paths(source))

    def scan(
        self, paths: list[Path], suffixes: tuple[str, ...] | list[str] = DEFAULT_TYPE_FILE_SUFFIXES
    ) -> "SchemaBuilder":
        return self._add(scan_paths(paths, suffixes))

    def add_module(self, module: ModuleType | str) -> "SchemaBuilder":
        return self._add(scan_module(module))

    def build_registry(self) -> RegistrySnapshot:
        """Collect and register the declared types without binding resolvers.

        Enough to render SDL for schemas whose resolvers live elsewhere.

        Raises:
            BuildError: If the declarations conflict or a reference does not resolve
        """
        collector = DeclarationCollector()
        collector.submit_all(self.declarations.records)

        registry = TypeRegistry()
        for descriptor in collector.finalize():
            registry.register(descriptor)
        return registry.finalize()

    def build(self) -> SchemaDocument:
        """Collect, register, bind and assemble everything added so far.

        Returns:
            SchemaDocument: The assembled schema

        Raises:
            BuildError: On the first problem found; no partial schema is produced
        """
        if self._document is not None:
            return self._document

        snapshot = self.build_registry()
        if isinstance(self.validator, PydanticConstraintValidator):
            _check_constraint_tags(snapshot)

        binder = ResolverBinder()
        for resolver_descriptor in self.declarations.resolvers:
            binder.register_resolver(resolver_descriptor)
        bindings = binder.finalize(snapshot, self.factory, self.validator)

        self._document = assemble(snapshot, bindings)
        log.info(
            f"Built schema from {len(self.declarations.records)} declarations "
            f"and {len(self.declarations.resolvers)} resolvers"
        )
        return self._document


def _check_constraint_tags(snapshot: RegistrySnapshot) -> None:
    for descriptor in snapshot:
        for field in descriptor.fields:
            for tag in field.constraints:
                parse_constraint(tag)
            for argument in field.arguments:
                for tag in argument.constraints:
                    parse_constraint(tag)
