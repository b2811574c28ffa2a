import logging
from typing import Any

import pytest

from schemabind.collector import DeclarationCollector, normalize_type_ref
from schemabind.errors import (
    AmbiguousNumericType,
    ConflictingDeclaration,
    ContradictoryNullability,
    InvalidDeclaration,
)
from schemabind.model.declarations import ArgumentRecord, FieldRecord, NullableFlags, TypeRecord, TypeRefRecord
from schemabind.model.descriptors import NO_DEFAULT, TypeKind, TypeRef


def field_record(owner: str, name: str, type_name: str, **kwargs: Any) -> FieldRecord:
    type_ref = kwargs.pop("type_ref", TypeRefRecord(name=type_name))
    return FieldRecord(owner_type=owner, field_name=name, type_ref=type_ref, **kwargs)


# #########################################################
# Type reference normalization
# #########################################################


@pytest.mark.parametrize(
    ("nullable", "items_nullable", "list_depth", "expected"),
    [
        (False, None, 0, (False, False)),
        (True, None, 0, (True, False)),
        (False, None, 1, (False, False)),
        ("items", None, 1, (False, True)),
        ("itemsAndList", None, 1, (True, True)),
        (True, None, 2, (True, False)),
        (False, True, 1, (False, True)),
        ("items", True, 1, (False, True)),
        (NullableFlags(outer=True, items=True), None, 2, (True, True)),
    ],
)
def test_normalize_type_ref(
    nullable: Any, items_nullable: bool | None, list_depth: int, expected: tuple[bool, bool]
) -> None:
    ref = TypeRefRecord(name="Post", list_depth=list_depth, nullable=nullable, items_nullable=items_nullable)
    normalized = normalize_type_ref("Author.posts", ref)
    assert normalized == TypeRef("Post", list_depth, *expected)


@pytest.mark.parametrize(
    ("nullable", "items_nullable", "list_depth"),
    [
        ("items", False, 1),
        ("itemsAndList", False, 2),
        ("items", None, 0),
        (False, True, 0),
    ],
)
def test_normalize_type_ref_contradictions(nullable: Any, items_nullable: bool | None, list_depth: int) -> None:
    ref = TypeRefRecord(name="Int", list_depth=list_depth, nullable=nullable, items_nullable=items_nullable)
    with pytest.raises(ContradictoryNullability, match="Author.scores"):
        _ = normalize_type_ref("Author.scores", ref)


@pytest.mark.parametrize("type_name", ["Number", "Numeric"])
def test_ambiguous_numeric_type_fails_at_submission(type_name: str) -> None:
    collector = DeclarationCollector()
    with pytest.raises(AmbiguousNumericType) as exc_info:
        collector.submit(field_record("Post", "votes", type_name))
    assert exc_info.value.owner == "Post.votes"
    assert "Int or Float" in str(exc_info.value)


def test_ambiguous_numeric_argument_fails_at_submission() -> None:
    collector = DeclarationCollector()
    record = field_record(
        "Query", "posts", "Post", arguments=[ArgumentRecord(name="limit", type_ref=TypeRefRecord(name="Number"))]
    )
    with pytest.raises(AmbiguousNumericType, match=r"Query.posts\(limit\)"):
        collector.submit(record)


# #########################################################
# Merging
# #########################################################


def test_collect_in_declaration_order() -> None:
    collector = DeclarationCollector()
    collector.submit_all(
        [
            TypeRecord(name="Author", description="A person writing posts"),
            field_record("Author", "id", "Int"),
            field_record("Author", "firstName", "String", type_ref=TypeRefRecord(name="String", nullable=True)),
            TypeRecord(name="Post"),
            field_record("Post", "title", "String"),
        ]
    )

    types = collector.finalize()

    assert [descriptor.name for descriptor in types] == ["Author", "Post"]
    assert types[0].field_names == ["id", "firstName"]
    assert types[0].description == "A person writing posts"
    assert types[0].get_field("firstName").type_ref.outer_nullable  # type: ignore[union-attr]


def test_field_for_undeclared_type_creates_object_type() -> None:
    collector = DeclarationCollector()
    collector.submit(field_record("Query", "ping", "String"))

    (query,) = collector.finalize()
    assert query.name == "Query"
    assert query.kind == TypeKind.OBJECT


def test_later_type_record_sets_kind() -> None:
    collector = DeclarationCollector()
    collector.submit(field_record("NewPost", "title", "String"))
    collector.submit(TypeRecord(name="NewPost", kind=TypeKind.INPUT))

    (new_post,) = collector.finalize()
    assert new_post.kind == TypeKind.INPUT


def test_conflicting_field_types_name_both_sites() -> None:
    collector = DeclarationCollector()
    collector.submit(field_record("Author", "id", "Int", site="schema.graphql:3"))
    collector.submit(field_record("Author", "id", "String", site="author_model.py:12"))

    with pytest.raises(ConflictingDeclaration) as exc_info:
        _ = collector.finalize()

    error = exc_info.value
    assert error.owner == "Author.id"
    assert error.sites == ("schema.graphql:3", "author_model.py:12")
    assert "schema.graphql:3" in str(error)
    assert "author_model.py:12" in str(error)


def test_conflicting_nullability_is_a_conflict() -> None:
    collector = DeclarationCollector()
    collector.submit(field_record("Author", "name", "String"))
    collector.submit(field_record("Author", "name", "String", type_ref=TypeRefRecord(name="String", nullable=True)))

    with pytest.raises(ConflictingDeclaration, match="Author.name"):
        _ = collector.finalize()


def test_conflicting_type_kinds() -> None:
    collector = DeclarationCollector()
    collector.submit(TypeRecord(name="Author", site="a.graphql:1"))
    collector.submit(TypeRecord(name="Author", kind=TypeKind.INPUT, site="b.graphql:1"))

    with pytest.raises(ConflictingDeclaration, match="declared as OBJECT and as INPUT"):
        _ = collector.finalize()


def test_conflicting_defaults() -> None:
    collector = DeclarationCollector()
    collector.submit(TypeRecord(name="NewPost", kind=TypeKind.INPUT))
    collector.submit(field_record("NewPost", "votes", "Int", default=0))
    collector.submit(field_record("NewPost", "votes", "Int", default=1))

    with pytest.raises(ConflictingDeclaration, match="default 0 vs 1"):
        _ = collector.finalize()


def test_conflicting_argument_types() -> None:
    collector = DeclarationCollector()
    for type_name in ("Int", "ID"):
        collector.submit(
            field_record(
                "Query",
                "author",
                "Author",
                arguments=[ArgumentRecord(name="id", type_ref=TypeRefRecord(name=type_name))],
            )
        )

    with pytest.raises(ConflictingDeclaration, match=r"Query.author\(id\)"):
        _ = collector.finalize()


def test_compatible_declarations_merge(caplog: pytest.LogCaptureFixture) -> None:
    collector = DeclarationCollector()
    collector.submit(TypeRecord(name="Author", description="Writes posts"))
    collector.submit(TypeRecord(name="Author", description="A person"))
    collector.submit(
        field_record(
            "Query",
            "posts",
            "Post",
            arguments=[ArgumentRecord(name="limit", type_ref=TypeRefRecord(name="Int"))],
            constraints=["max_length:5"],
        )
    )
    collector.submit(
        field_record(
            "Query",
            "posts",
            "Post",
            description="Recent posts",
            arguments=[
                ArgumentRecord(name="limit", type_ref=TypeRefRecord(name="Int"), default=10),
                ArgumentRecord(name="offset", type_ref=TypeRefRecord(name="Int", nullable=True)),
            ],
            constraints=["max_length:5", "min_length:1"],
        )
    )

    with caplog.at_level(logging.WARNING, logger="schemabind"):
        author, query = collector.finalize()

    assert author.description == "Writes posts"
    assert "differing description" in caplog.text

    posts = query.get_field("posts")
    assert posts is not None
    assert posts.description == "Recent posts"
    assert [argument.name for argument in posts.arguments] == ["limit", "offset"]
    assert posts.arguments[0].default == 10
    assert posts.constraints == ("max_length:5", "min_length:1")


def test_field_default_absent_unless_declared() -> None:
    collector = DeclarationCollector()
    collector.submit(TypeRecord(name="NewPost", kind=TypeKind.INPUT))
    collector.submit(field_record("NewPost", "title", "String"))
    subtitle = TypeRefRecord(name="String", nullable=True)
    collector.submit(field_record("NewPost", "subtitle", "String", type_ref=subtitle, default=None))

    (new_post,) = collector.finalize()
    assert new_post.fields[0].default is NO_DEFAULT
    assert new_post.fields[1].has_default
    assert new_post.fields[1].default is None


def test_null_default_on_non_nullable_field() -> None:
    collector = DeclarationCollector()
    with pytest.raises(InvalidDeclaration, match="'NewPost.votes' is non-nullable and cannot default to null"):
        collector.submit(field_record("NewPost", "votes", "Int", default=None))


def test_null_default_on_non_nullable_argument() -> None:
    collector = DeclarationCollector()
    argument = ArgumentRecord(name="id", type_ref=TypeRefRecord(name="Int"), default=None)
    record = field_record("Query", "author", "Author", arguments=[argument])
    with pytest.raises(InvalidDeclaration, match=r"Query.author\(id\)"):
        collector.submit(record)


def test_submit_after_finalize() -> None:
    collector = DeclarationCollector()
    _ = collector.finalize()
    with pytest.raises(RuntimeError):
        collector.submit(TypeRecord(name="Late"))
