import asyncio
from typing import Annotated, Any

import pytest
from graphql import GraphQLSchema, graphql, graphql_sync

from schemabind.builder import SchemaBuilder
from schemabind.cli import ConstructorFactory
from schemabind.executable import make_executable
from schemabind.producers.code_first import arg, mutation, query
from schemabind.validation import PydanticConstraintValidator
from tests.conftest import TestSchemaData

AUTHORS: dict[int, dict[str, Any]] = {
    1: {"id": 1, "firstName": "Ada", "lastName": "Lovelace", "posts": []},
    2: {"id": 2, "firstName": "Alan", "lastName": "Turing", "nickname": "Prof", "posts": []},
}


@query(name="author")
def find_author(id: Annotated[int, arg()]) -> dict[str, Any] | None:
    if id == 99:
        raise ConnectionError("author store unavailable")
    return AUTHORS.get(id)


@query(name="posts")
def list_posts(limit: Annotated[int, arg()]) -> list[dict[str, Any]]:
    return [{"id": index, "title": f"Post {index}", "votes": None} for index in range(1, limit + 1)]


@mutation(name="addPost")
def add_post(post: Annotated[dict[str, Any], arg()]) -> dict[str, Any]:
    return {"id": 100, **post}


@pytest.fixture(scope="module")
def blog_schema(blog_sdl: str) -> GraphQLSchema:
    builder = SchemaBuilder(validator=PydanticConstraintValidator())
    builder.add_sdl(blog_sdl, "blog.graphql").add_sdl_paths([TestSchemaData.BLOG_EXTENSION])
    builder.add_resolvers(find_author, list_posts, add_post)
    return make_executable(builder.build())


def test_query_with_arguments_and_defaults(blog_schema: GraphQLSchema) -> None:
    result = graphql_sync(blog_schema, "{ author(id: 2) { firstName nickname } posts { id } }")

    assert result.errors is None
    assert result.data == {
        "author": {"firstName": "Alan", "nickname": "Prof"},
        "posts": [{"id": index} for index in range(1, 11)],
    }


def test_failing_field_does_not_affect_siblings(blog_schema: GraphQLSchema) -> None:
    result = graphql_sync(blog_schema, "{ broken: author(id: 99) { id } author(id: 1) { lastName } }")

    assert result.data == {"broken": None, "author": {"lastName": "Lovelace"}}
    assert result.errors is not None
    (error,) = result.errors
    assert error.path == ["broken"]
    assert error.extensions == {"code": "RESOLVER_ERROR"}
    assert "author store unavailable" in error.message


def test_mutation_with_input_defaults(blog_schema: GraphQLSchema) -> None:
    result = graphql_sync(blog_schema, 'mutation { addPost(post: {title: "Hello"}) { id title votes } }')

    assert result.errors is None
    assert result.data == {"addPost": {"id": 100, "title": "Hello", "votes": 0}}


def test_mutation_constraint_violation(blog_schema: GraphQLSchema) -> None:
    result = graphql_sync(blog_schema, 'mutation { addPost(post: {title: "Hi"}) { id } }')

    assert result.data is None
    assert result.errors is not None
    (error,) = result.errors
    assert error.extensions is not None
    assert error.extensions["code"] == "CONSTRAINT_VIOLATION"
    assert error.path == ["addPost"]


def test_code_first_blog() -> None:
    builder = SchemaBuilder(factory=ConstructorFactory(), validator=PydanticConstraintValidator())
    schema = make_executable(builder.scan([TestSchemaData.BLOG_SOURCES], ("_model.py", "_args.py")).build())

    result = graphql_sync(
        schema,
        '{ author(id: 2) { id name posts { title votes } } posts(search: "On") { title } }',
    )

    assert result.errors is None
    assert result.data == {
        "author": {
            "id": 2,
            "name": "Alan Turing",
            "posts": [
                {"title": "On Computable Numbers", "votes": 40},
                {"title": "Computing Machinery and Intelligence", "votes": None},
            ],
        },
        "posts": [{"title": "On Computable Numbers"}],
    }


def test_async_resolvers() -> None:
    @query(returns="Int")
    async def answer() -> int:
        await asyncio.sleep(0)
        return 42

    @query(returns="Int", nullable=True)
    async def timeout() -> int:
        raise TimeoutError("upstream timed out")

    schema = make_executable(SchemaBuilder().add_resolvers(answer, timeout).build())
    result = asyncio.run(graphql(schema, "{ answer timeout }"))

    assert result.data == {"answer": 42, "timeout": None}
    assert result.errors is not None
    assert result.errors[0].extensions == {"code": "RESOLVER_ERROR"}


def test_schema_without_query_type() -> None:
    schema = make_executable(SchemaBuilder().add_sdl("type Author { id: Int }").build())

    result = graphql_sync(schema, "{ ping }")
    assert result.errors is None
    assert result.data == {"ping": None}


def test_schema_without_types() -> None:
    schema = make_executable(SchemaBuilder().build())
    assert schema.query_type is not None

