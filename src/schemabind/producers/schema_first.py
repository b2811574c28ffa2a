"""Schema-first producer: declarations parsed out of GraphQL SDL documents."""

from pathlib import Path
from typing import Any

from ariadne import load_schema_from_path
from graphql import (
    DEFAULT_DEPRECATION_REASON,
    ArgumentNode,
    DirectiveDefinitionNode,
    DirectiveNode,
    FieldDefinitionNode,
    InputObjectTypeDefinitionNode,
    InputObjectTypeExtensionNode,
    InputValueDefinitionNode,
    ListTypeNode,
    NamedTypeNode,
    Node,
    NonNullTypeNode,
    ObjectTypeDefinitionNode,
    ObjectTypeExtensionNode,
    ScalarTypeDefinitionNode,
    SchemaDefinitionNode,
    Source,
    TypeNode,
    parse,
    value_from_ast_untyped,
)
from graphql.language import get_location

from schemabind import log
from schemabind.errors import InvalidDeclaration
from schemabind.model.declarations import (
    ArgumentRecord,
    DeclarationSet,
    FieldRecord,
    NullableFlags,
    Origin,
    TypeRecord,
    TypeRefRecord,
)
from schemabind.model.descriptors import TypeKind
from schemabind.model.graphql_type import ROOT_TYPES

GRAPHQL_FILE_SUFFIXES = (".graphql", ".graphqls", ".gql")

CONSTRAINT_DIRECTIVE = "constraint"


def resolve_graphql_files(paths: list[Path]) -> list[Path]:
    """Resolve a list of paths (files and directories) into a flat list of unique GraphQL files.

    Args:
        paths: List of file or directory paths

    Returns:
        Flat list of unique GraphQL file paths (deduplicated and sorted)
    """
    resolved_files: set[Path] = set()

    for path in paths:
        if path.is_file():
            resolved_files.add(path)
        elif path.is_dir():
            for file in path.rglob("*"):
                if file.suffix in GRAPHQL_FILE_SUFFIXES:
                    resolved_files.add(file)

    return sorted(resolved_files)


def _site(node: Node, source_name: str) -> str:
    if node.loc is None:
        return source_name
    location = get_location(node.loc.source, node.loc.start)
    return f"{source_name}:{location.line}"


def _description(node: Any) -> str | None:
    return node.description.value if getattr(node, "description", None) else None


def _find_directive(node: Any, name: str) -> DirectiveNode | None:
    return next((directive for directive in node.directives or () if directive.name.value == name), None)


def _directive_argument(directive: DirectiveNode, name: str) -> ArgumentNode | None:
    return next((argument for argument in directive.arguments if argument.name.value == name), None)


def _deprecation_reason(node: Any) -> str | None:
    directive = _find_directive(node, "deprecated")
    if directive is None:
        return None
    reason = _directive_argument(directive, "reason")
    return value_from_ast_untyped(reason.value) if reason else DEFAULT_DEPRECATION_REASON


def _constraints(node: Any) -> list[str]:
    directive = _find_directive(node, CONSTRAINT_DIRECTIVE)
    if directive is None:
        return []
    tags = _directive_argument(directive, "tags")
    if tags is None:
        return []
    value = value_from_ast_untyped(tags.value)
    return [str(tag) for tag in (value if isinstance(value, list) else [value])]


def type_ref_from_node(owner: str, node: TypeNode) -> TypeRefRecord:
    """Translate an SDL type (``[Post!]!`` etc.) into a type reference record.

    Raises:
        InvalidDeclaration: If a list other than the outermost one is nullable
    """
    nullable_levels: list[bool] = []
    current: TypeNode = node

    while True:
        nullable = True
        if isinstance(current, NonNullTypeNode):
            nullable = False
            current = current.type
        nullable_levels.append(nullable)

        if isinstance(current, ListTypeNode):
            current = current.type
            continue
        break

    if not isinstance(current, NamedTypeNode):
        raise InvalidDeclaration(f"'{owner}' has an unsupported type reference")
    depth = len(nullable_levels) - 1

    if any(nullable_levels[1:depth]):
        raise InvalidDeclaration(f"'{owner}' has a nullable intermediate list, which cannot be represented")

    return TypeRefRecord(
        name=current.name.value,
        list_depth=depth,
        nullable=NullableFlags(outer=nullable_levels[0], items=nullable_levels[depth] if depth else False),
    )


def _argument_record(owner: str, node: InputValueDefinitionNode) -> ArgumentRecord:
    qualified = f"{owner}({node.name.value})"
    kwargs: dict[str, Any] = {}
    if node.default_value is not None:
        kwargs["default"] = value_from_ast_untyped(node.default_value)
    return ArgumentRecord(
        name=node.name.value,
        type_ref=type_ref_from_node(qualified, node.type),
        description=_description(node),
        constraints=_constraints(node),
        **kwargs,
    )


def _field_record(
    type_name: str, node: FieldDefinitionNode | InputValueDefinitionNode, source_name: str
) -> FieldRecord:
    owner = f"{type_name}.{node.name.value}"
    kwargs: dict[str, Any] = {}
    if isinstance(node, InputValueDefinitionNode):
        if node.default_value is not None:
            kwargs["default"] = value_from_ast_untyped(node.default_value)
    else:
        kwargs["arguments"] = [_argument_record(owner, argument) for argument in node.arguments or ()]

    return FieldRecord(
        owner_type=type_name,
        field_name=node.name.value,
        type_ref=type_ref_from_node(owner, node.type),
        description=_description(node),
        deprecation_reason=_deprecation_reason(node),
        constraints=_constraints(node),
        origin=Origin.SCHEMA_FIRST,
        site=_site(node, source_name),
        **kwargs,
    )


def _check_schema_definition(node: SchemaDefinitionNode, source_name: str) -> None:
    for operation_type in node.operation_types:
        operation = operation_type.operation.value
        type_name = operation_type.type.name.value
        if operation == "subscription":
            raise InvalidDeclaration(f"{_site(node, source_name)}: subscriptions are not supported")
        if type_name not in ROOT_TYPES:
            raise InvalidDeclaration(
                f"{_site(node, source_name)}: the {operation} type must be named "
                f"'{operation.capitalize()}', got '{type_name}'"
            )


def parse_sdl(sdl: str, source_name: str = "<sdl>") -> DeclarationSet:
    """Parse an SDL document into declaration records.

    Supported definitions are object types, input types, scalars, their extensions,
    directive definitions and a schema definition using the default root type names.

    Args:
        sdl: The SDL text
        source_name: Name used in declaration sites, usually the file name

    Returns:
        DeclarationSet: One type record per definition and one field record per field

    Raises:
        InvalidDeclaration: For unsupported definitions
        graphql.GraphQLError: For syntax errors
    """
    document = parse(Source(sdl, source_name))
    produced = DeclarationSet()

    for definition in document.definitions:
        if isinstance(definition, DirectiveDefinitionNode):
            continue

        if isinstance(definition, SchemaDefinitionNode):
            _check_schema_definition(definition, source_name)
            continue

        if isinstance(definition, ScalarTypeDefinitionNode):
            produced.records.append(
                TypeRecord(
                    name=definition.name.value,
                    kind=TypeKind.SCALAR,
                    description=_description(definition),
                    origin=Origin.SCHEMA_FIRST,
                    site=_site(definition, source_name),
                )
            )
            continue

        if isinstance(definition, ObjectTypeDefinitionNode | ObjectTypeExtensionNode):
            kind = TypeKind.OBJECT
        elif isinstance(definition, InputObjectTypeDefinitionNode | InputObjectTypeExtensionNode):
            kind = TypeKind.INPUT
        else:
            raise InvalidDeclaration(
                f"{_site(definition, source_name)}: {definition.kind.replace('_', ' ')} is not supported"
            )

        type_name = definition.name.value
        produced.records.append(
            TypeRecord(
                name=type_name,
                kind=kind,
                description=_description(definition),
                origin=Origin.SCHEMA_FIRST,
                site=_site(definition, source_name),
            )
        )
        for field in definition.fields or ():
            produced.records.append(_field_record(type_name, field, source_name))

    log.debug(f"Parsed {len(produced.records)} declarations from {source_name}")
    return produced


def load_sdl_paths(paths: list[Path]) -> DeclarationSet:
    """Load GraphQL files and directories and parse each file into declarations."""
    produced = DeclarationSet()
    for graphql_file in resolve_graphql_files(paths):
        content = load_schema_from_path(graphql_file)
        produced.extend(parse_sdl(content, graphql_file.name))

    log.info(f"Loaded {len(produced.records)} declarations from {len(paths)} schema path(s)")
    return produced
