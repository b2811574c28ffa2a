"""Hand the assembled schema to graphql-core's executor, with resolvers bound through ariadne."""

from ariadne import MutationType, ObjectType, QueryType, make_executable_schema
from graphql import GraphQLSchema, print_schema, validate_schema

from schemabind import log
from schemabind.assembler import SchemaDocument
from schemabind.errors import BuildError
from schemabind.model.graphql_type import MUTATION_TYPE, QUERY_TYPE

# Added when the schema has no Query type, which graphql-core requires
GENERIC_QUERY_SDL = "type Query {\n  ping: String\n}"


def ensure_query(sdl: str, document: SchemaDocument) -> str:
    """
    Ensures that the SDL handed to graphql-core has a Query type. If the document has
    none, a generic Query type is appended.

    Args:
        sdl: The rendered schema
        document: The document the SDL was rendered from

    Returns:
        str: The SDL, with a generic Query type added if needed
    """
    if document.query_type is not None:
        return sdl

    log.info("The assembled schema has no Query type, adding a generic one.")
    return f"{sdl}\n\n{GENERIC_QUERY_SDL}" if sdl else GENERIC_QUERY_SDL


def make_executable(document: SchemaDocument) -> GraphQLSchema:
    """Build an executable graphql-core schema from an assembled document.

    Every explicitly bound field gets a resolver that coerces its arguments and calls
    the handler; other fields keep graphql-core's default property resolver.

    Args:
        document: The assembled schema

    Returns:
        GraphQLSchema: Schema ready for ``graphql.graphql`` / ``graphql.graphql_sync``

    Raises:
        BuildError: If graphql-core rejects the schema
    """
    sdl = ensure_query(document.to_sdl(), document)

    bindables: dict[str, ObjectType] = {}
    for descriptor in document.bindings.explicit_resolvers():
        type_name = descriptor.type_name
        if type_name not in bindables:
            if type_name == QUERY_TYPE:
                bindables[type_name] = QueryType()
            elif type_name == MUTATION_TYPE:
                bindables[type_name] = MutationType()
            else:
                bindables[type_name] = ObjectType(type_name)
        bindables[type_name].set_field(
            descriptor.field_name,
            document.bindings.make_field_resolver(type_name, descriptor.field_name),
        )

    schema = make_executable_schema(sdl, *bindables.values())

    errors = validate_schema(schema)
    if errors:
        messages = "\n".join(f"  - {error.message}" for error in errors)
        raise BuildError(f"Assembled schema is not a valid GraphQL schema:\n{messages}")

    log.debug(f"Executable schema: \n{print_schema(schema)}")
    return schema
