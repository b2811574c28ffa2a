import re
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest
from ariadne import gql
from faker import Faker
from hypothesis import strategies as st
from hypothesis.strategies import composite

from schemabind.model.declarations import FieldRecord, TypeRecord, TypeRefRecord
from schemabind.model.graphql_type import BUILTIN_SCALARS


class TestSchemaData:
    TESTS_DATA_DIR: Path = Path(__file__).parent / "data"
    BLOG_SCHEMA: Path = TESTS_DATA_DIR / "blog.graphql"
    BLOG_EXTENSION: Path = TESTS_DATA_DIR / "blog_extension.graphql"
    UNRESOLVED_SCHEMA: Path = TESTS_DATA_DIR / "unresolved.graphql"
    INVALID_DIR: Path = TESTS_DATA_DIR / "invalid"
    CONFLICTING_SCHEMA: Path = INVALID_DIR / "conflicting.graphql"
    UNION_SCHEMA: Path = INVALID_DIR / "union.graphql"
    BLOG_SOURCES: Path = TESTS_DATA_DIR / "blog"
    RECORDS_YAML: Path = TESTS_DATA_DIR / "records.yaml"
    RECORDS_JSON: Path = TESTS_DATA_DIR / "records.json"
    BUILD_CONFIG: Path = TESTS_DATA_DIR / "schemabind.yaml"


AUTHOR_POST_SDL = gql(
    """
    type Author {
      id: Int!
      firstName: String
      lastName: String
      posts: [Post]
    }

    type Post {
      id: Int!
      title: String!
      votes: Int
    }
    """
)

AUTHOR_DEFINITION = "type Author { id: Int! firstName: String lastName: String posts: [Post] }"


def normalize_whitespace(text: str) -> str:
    """Normalize whitespace in text by collapsing multiple spaces/newlines."""
    return re.sub(r"\s+", " ", text).strip()


@pytest.fixture(scope="module")
def blog_sdl() -> str:
    assert TestSchemaData.BLOG_SCHEMA.exists(), f"Missing test file: {TestSchemaData.BLOG_SCHEMA}"
    return TestSchemaData.BLOG_SCHEMA.read_text()


NULLABILITY_SHORTHANDS: list[Any] = [False, True, "items", "itemsAndList"]


@composite
def type_ref_strategy(draw: Callable[[st.SearchStrategy[Any]], Any], type_names: list[str]) -> TypeRefRecord:
    list_depth = draw(st.integers(min_value=0, max_value=2))
    nullable = draw(st.sampled_from(NULLABILITY_SHORTHANDS if list_depth else [False, True]))
    return TypeRefRecord(name=draw(st.sampled_from(type_names)), list_depth=list_depth, nullable=nullable)


@composite
def declaration_set_strategy(
    draw: Callable[[st.SearchStrategy[Any]], Any],
) -> list[TypeRecord | FieldRecord]:
    """Generate a valid set of object types referencing each other (cycles included) and built-in scalars."""
    faker = Faker()
    faker.seed_instance(draw(st.integers(min_value=0, max_value=10_000)))

    num_types = draw(st.integers(min_value=1, max_value=5))
    type_names = [f"{faker.word().capitalize()}{index}" for index in range(num_types)]
    targets = [*BUILTIN_SCALARS, *type_names]

    records: list[TypeRecord | FieldRecord] = []
    for type_name in type_names:
        records.append(TypeRecord(name=type_name, site=f"{type_name.lower()}.graphql:1"))
        num_fields = draw(st.integers(min_value=1, max_value=4))
        for index in range(num_fields):
            records.append(
                FieldRecord(
                    owner_type=type_name,
                    field_name=f"{faker.word()}{index}",
                    type_ref=draw(type_ref_strategy(targets)),
                    site=f"{type_name.lower()}.graphql:{index + 2}",
                )
            )

    # Declaration order must not matter
    return draw(st.permutations(records))
