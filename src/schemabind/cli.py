import json
import logging
import sys
from pathlib import Path
from typing import Any, NoReturn

import rich_click as click
from graphql import GraphQLError
from pydantic import ValidationError
from rich.traceback import install

from schemabind import __version__, log
from schemabind.assembler import SchemaDocument
from schemabind.builder import SchemaBuilder
from schemabind.config import BuildConfig, load_build_config
from schemabind.errors import BuildError, ResolverInstantiationError
from schemabind.model.descriptors import TypeKind
from schemabind.printer import print_types
from schemabind.producers.code_first import resolver_class
from schemabind.registry import RegistrySnapshot
from schemabind.validation import PydanticConstraintValidator


class ConstructorFactory:
    """Resolver factory calling the no-argument constructor of declared resolver classes."""

    def instantiate(self, class_name: str) -> Any:
        try:
            cls = resolver_class(class_name)
        except KeyError:
            raise ResolverInstantiationError(f"Resolver class '{class_name}' was not declared") from None
        try:
            return cls()
        except TypeError as error:
            raise ResolverInstantiationError(
                f"Resolver class '{class_name}' cannot be created without arguments: {error}"
            ) from error


schema_option = click.option(
    "--schema",
    "-s",
    "schemas",
    type=click.Path(exists=True, path_type=Path),
    multiple=True,
    help="GraphQL SDL file or directory containing SDL files. Can be specified multiple times.",
)

source_option = click.option(
    "--source",
    "-p",
    "sources",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    multiple=True,
    help="Directory scanned for code-first type files. Can be specified multiple times.",
)

module_option = click.option(
    "--module",
    "-m",
    "modules",
    type=str,
    multiple=True,
    help="Importable module holding code-first declarations. Can be specified multiple times.",
)

records_option = click.option(
    "--records",
    "records",
    type=click.Path(exists=True, path_type=Path),
    multiple=True,
    help="YAML or JSON declaration record file or directory. Can be specified multiple times.",
)

config_option = click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="YAML build configuration file",
)

optional_output_option = click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False, writable=True, path_type=Path),
    required=False,
    help="Output file",
)


def build_inputs(func: Any) -> Any:
    for option in reversed((schema_option, source_option, module_option, records_option, config_option)):
        func = option(func)
    return func


def load_config(
    config_path: Path | None,
    schemas: tuple[Path, ...],
    sources: tuple[Path, ...],
    modules: tuple[str, ...],
    records: tuple[Path, ...],
) -> BuildConfig:
    """Merge the configuration file with the inputs given on the command line."""
    config = load_build_config(config_path)
    return config.model_copy(
        update={
            "type_paths": [*config.type_paths, *schemas],
            "sources": [*config.sources, *sources],
            "modules": [*config.modules, *modules],
            "records": [*config.records, *records],
        }
    )


def make_builder(config: BuildConfig) -> SchemaBuilder:
    if not (config.type_paths or config.sources or config.modules or config.records):
        raise click.UsageError("No declarations given: pass --schema, --source, --module, --records or --config")
    return SchemaBuilder.from_config(config, factory=ConstructorFactory(), validator=PydanticConstraintValidator())


def write_output(content: str, output: Path | None) -> None:
    if output is None:
        click.echo(content)
        return
    output.parent.mkdir(parents=True, exist_ok=True)
    _ = output.write_text(content, encoding="utf-8")
    log.success(f"Result written to {output}")


def fail_build(error: Exception) -> NoReturn:
    log.rule("Build failed", style="bold red")
    log.error(str(error))
    sys.exit(1)


def build_document(config: BuildConfig) -> SchemaDocument:
    try:
        return make_builder(config).build()
    except (BuildError, GraphQLError, ValidationError) as error:
        fail_build(error)


def build_registry(config: BuildConfig) -> RegistrySnapshot:
    try:
        return make_builder(config).build_registry()
    except (BuildError, GraphQLError, ValidationError) as error:
        fail_build(error)


@click.group(context_settings={"auto_envvar_prefix": "schemabind"})
@click.option(
    "-l",
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False),
    default="INFO",
    help="Log level",
    show_default=True,
)
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False, writable=True, path_type=Path),
    help="Log file",
)
@click.version_option(__version__)
def cli(log_level: str, log_file: Path | None) -> None:
    if log_file:
        file_handler = logging.FileHandler(log_file, mode="w")
        file_handler.setFormatter(logging.Formatter("%(asctime)s:%(levelname)s:%(message)s"))
        log.addHandler(file_handler)

    log.setLevel(log_level.upper())
    if log_level.upper() == "DEBUG":
        _ = install(show_locals=True)


@click.group()
def export() -> None:
    """Export the assembled schema."""
    pass


# export -> sdl
# ----------
@export.command
@build_inputs
@optional_output_option
@click.option("--sort", is_flag=True, default=False, help="Sort types by name instead of declaration order")
def sdl(
    schemas: tuple[Path, ...],
    sources: tuple[Path, ...],
    modules: tuple[str, ...],
    records: tuple[Path, ...],
    config_path: Path | None,
    output: Path | None,
    sort: bool,
) -> None:
    """Render the declared types as GraphQL SDL. Resolvers are not bound."""
    config = load_config(config_path, schemas, sources, modules, records)
    registry = build_registry(config)
    write_output(print_types(registry, registry.types, sort=sort or config.sort_schema), output or config.schema_file)


# export -> json
# ----------
@export.command(name="json")
@build_inputs
@optional_output_option
def export_json(
    schemas: tuple[Path, ...],
    sources: tuple[Path, ...],
    modules: tuple[str, ...],
    records: tuple[Path, ...],
    config_path: Path | None,
    output: Path | None,
) -> None:
    """Build the schema, resolvers included, and write it as a JSON document."""
    config = load_config(config_path, schemas, sources, modules, records)
    document = build_document(config)
    write_output(json.dumps(document.to_dict(), indent=2), output)


# check
# ----------
@click.command()
@build_inputs
def check(
    schemas: tuple[Path, ...],
    sources: tuple[Path, ...],
    modules: tuple[str, ...],
    records: tuple[Path, ...],
    config_path: Path | None,
) -> None:
    """Build the schema and bind every field; report the first problem found."""
    config = load_config(config_path, schemas, sources, modules, records)
    document = build_document(config)
    log.success(f"Schema is valid: {len(document.types)} types, every field is resolvable")


# stats
# ----------
@click.command()
@build_inputs
def stats(
    schemas: tuple[Path, ...],
    sources: tuple[Path, ...],
    modules: tuple[str, ...],
    records: tuple[Path, ...],
    config_path: Path | None,
) -> None:
    """Get stats of the assembled schema."""
    config = load_config(config_path, schemas, sources, modules, records)
    document = build_document(config)
    counts: dict[str, Any] = {kind.value: 0 for kind in TypeKind}
    for descriptor in document.types:
        counts[descriptor.kind.value] += 1

    explicit = len(document.bindings.explicit_resolvers())
    bound = len(document.bindings.items())
    counts["fields"] = sum(len(descriptor.fields) for descriptor in document.types)
    counts["explicit_resolvers"] = explicit
    counts["default_bound_fields"] = bound - explicit

    log.rule("Schema Stats")
    log.print_dict(counts)


cli.add_command(check)
cli.add_command(export)
cli.add_command(stats)

if __name__ == "__main__":
    cli()
