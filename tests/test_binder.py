import asyncio
from typing import Annotated, Any

import pytest

from schemabind.binder import MappingFactory, ResolverBinder
from schemabind.builder import SchemaBuilder
from schemabind.errors import (
    ConflictingDeclaration,
    DanglingReference,
    FieldError,
    InvalidDeclaration,
    InvalidTypeUsage,
    ParentTypeMismatch,
    ResolverInstantiationError,
    UnresolvedField,
)
from schemabind.model.descriptors import (
    DEFAULT_PROPERTY_ACCESS,
    ParamSource,
    ParamSpec,
    ResolverDescriptor,
)
from schemabind.producers.code_first import (
    arg,
    args,
    context,
    info,
    object_type,
    parent,
    query,
    resolve_field,
    resolver,
)
from tests.conftest import AUTHOR_POST_SDL, TestSchemaData

POSTS = [
    {"id": 1, "title": "Notes on the Analytical Engine", "votes": 12, "authorId": 1},
    {"id": 2, "title": "On Computable Numbers", "votes": 40, "authorId": 2},
]


class PostsService:
    def __init__(self, posts: list[dict[str, Any]]) -> None:
        self.posts = posts

    def find_all(self, author_id: int) -> list[dict[str, Any]]:
        return [post for post in self.posts if post["authorId"] == author_id]


@resolver(of="Author")
class AuthorPostsResolver:
    def __init__(self, service: PostsService) -> None:
        self.service = service

    @resolve_field()
    def posts(self, author: Annotated[dict[str, Any], parent()]) -> list[dict[str, Any]]:
        return self.service.find_all(author["id"])


@query(name="author")
def find_author(id: Annotated[int, arg()]) -> dict[str, Any] | None:
    return {"id": id, "firstName": "Ada", "lastName": "Lovelace"} if id == 1 else None


def author_post_builder() -> SchemaBuilder:
    builder = SchemaBuilder(factory=MappingFactory({"AuthorPostsResolver": AuthorPostsResolver(PostsService(POSTS))}))
    builder.add_sdl(AUTHOR_POST_SDL, "blog.graphql")
    builder.add_sdl("type Query { author(id: Int!): Author }", "query.graphql")
    builder.add_resolvers(AuthorPostsResolver, find_author)
    return builder


def test_explicit_resolver_wins_over_property_fallback() -> None:
    document = author_post_builder().build()

    posts = document.bindings.bind("Author", "posts")
    assert isinstance(posts, ResolverDescriptor)
    assert posts.handler_name == "AuthorPostsResolver.posts"
    assert document.bindings.bind("Author", "firstName") is DEFAULT_PROPERTY_ACCESS
    assert document.bindings.bind("Post", "title") is DEFAULT_PROPERTY_ACCESS
    assert document.bindings.bind("Query", "author").handler is find_author


def test_public_name_is_independent_of_handler_name() -> None:
    document = author_post_builder().build()

    author = document.bindings.bind("Query", "author")
    assert author.field_name == "author"
    assert author.handler_name.endswith("find_author")
    with pytest.raises(KeyError):
        _ = document.bindings.bind("Query", "find_author")


def test_binding_is_idempotent() -> None:
    builder = author_post_builder()
    snapshot = builder.build_registry()

    binder = ResolverBinder()
    for descriptor in builder.declarations.resolvers:
        binder.register_resolver(descriptor)
    bindings = binder.finalize(snapshot, MappingFactory({"AuthorPostsResolver": AuthorPostsResolver(PostsService([]))}))

    assert binder.finalize(snapshot) is bindings
    first = [binder.bind(type_name, field_name) for (type_name, field_name), _ in bindings.items()]
    second = [binder.bind(type_name, field_name) for (type_name, field_name), _ in bindings.items()]
    assert first == second


def test_top_level_operation_without_resolver() -> None:
    builder = SchemaBuilder().add_sdl_paths([TestSchemaData.UNRESOLVED_SCHEMA])

    with pytest.raises(UnresolvedField) as exc_info:
        _ = builder.build()
    assert (exc_info.value.type_name, exc_info.value.field_name) == ("Query", "author")


def _author_field(name: str, type_ref: dict[str, Any]) -> dict[str, Any]:
    return {"declarations": [{"record": "field", "ownerType": "Author", "fieldName": name, "typeRef": type_ref}]}


def test_field_without_property_or_resolver() -> None:
    @object_type()
    class Author:
        id: int

    builder = SchemaBuilder().add_types(Author)
    builder.add_records(_author_field("posts", {"name": "Author", "listDepth": 1}))

    with pytest.raises(UnresolvedField, match="Author.posts"):
        _ = builder.build()


def test_scalar_leaf_outside_property_shape_falls_back() -> None:
    @object_type()
    class Author:
        id: int

    builder = SchemaBuilder().add_types(Author)
    builder.add_records(_author_field("nickname", {"name": "String"}))

    assert builder.build().bindings.bind("Author", "nickname") is DEFAULT_PROPERTY_ACCESS


def test_properties_of_type_class_allow_fallback() -> None:
    @object_type()
    class Author:
        id: int

        @property
        def display_name(self) -> str:
            return f"Author {self.id}"

    builder = SchemaBuilder().add_types(Author)
    builder.add_records(
        {
            "declarations": [
                {"record": "field", "ownerType": "Author", "fieldName": "display_name", "typeRef": {"name": "String"}}
            ]
        }
    )

    document = builder.build()
    assert document.bindings.bind("Author", "display_name") is DEFAULT_PROPERTY_ACCESS


def test_parent_type_mismatch() -> None:
    @object_type()
    class Post:
        id: int

    @resolve_field(returns=[Post], of="Author", name="posts")
    def posts_of(author: Annotated[Post, parent()]) -> list[Any]:
        return []

    builder = SchemaBuilder().add_sdl("type Author { id: Int! }").add_types(Post).add_resolvers(posts_of)

    with pytest.raises(ParentTypeMismatch) as exc_info:
        _ = builder.build()
    assert exc_info.value.parent_type == "Post"
    assert exc_info.value.type_name == "Author"


def test_duplicate_resolver() -> None:
    binder = ResolverBinder()
    binder.register_resolver(ResolverDescriptor("Query", "author", find_author, site="a.py:1"))
    with pytest.raises(ConflictingDeclaration, match="Query.author"):
        binder.register_resolver(ResolverDescriptor("Query", "author", find_author, site="b.py:1"))


def test_method_name_without_resolver_class() -> None:
    binder = ResolverBinder()
    with pytest.raises(InvalidDeclaration):
        binder.register_resolver(ResolverDescriptor("Query", "author", "find_author"))


@pytest.mark.parametrize(
    ("descriptor", "error"),
    [
        (ResolverDescriptor("Comment", "body", find_author), DanglingReference),
        (ResolverDescriptor("Query", "authors", find_author), DanglingReference),
        (
            ResolverDescriptor(
                "Query", "author", find_author, plan=(ParamSpec(ParamSource.ARGS, key="name", name="name"),)
            ),
            DanglingReference,
        ),
        (ResolverDescriptor("Int", "value", find_author), InvalidTypeUsage),
    ],
)
def test_resolver_targets_are_checked(descriptor: ResolverDescriptor, error: type[Exception]) -> None:
    builder = SchemaBuilder().add_sdl(AUTHOR_POST_SDL).add_sdl("type Query { author(id: Int!): Author }")
    snapshot = builder.build_registry()
    binder = ResolverBinder()
    binder.register_resolver(descriptor)
    with pytest.raises(error):
        _ = binder.finalize(snapshot)


def test_resolver_class_needs_factory() -> None:
    builder = SchemaBuilder().add_sdl(AUTHOR_POST_SDL).add_sdl("type Query { author(id: Int!): Author }")
    builder.add_resolvers(AuthorPostsResolver, find_author)
    with pytest.raises(ResolverInstantiationError, match="AuthorPostsResolver"):
        _ = builder.build()


def test_resolver_method_needs_resolver_class() -> None:
    binder = ResolverBinder()
    with pytest.raises(InvalidDeclaration, match="'find_author' names a method but no resolver class"):
        binder.register_resolver(ResolverDescriptor("Query", "author", handler="find_author"))


def test_factory_without_instance() -> None:
    builder = SchemaBuilder(factory=MappingFactory({}))
    builder.add_sdl(AUTHOR_POST_SDL).add_sdl("type Query { author(id: Int!): Author }")
    builder.add_resolvers(AuthorPostsResolver, find_author)
    with pytest.raises(ResolverInstantiationError, match="No instance available"):
        _ = builder.build()


def test_factory_instance_is_shared_by_handlers() -> None:
    instances: list[str] = []

    class CountingFactory:
        def instantiate(self, class_name: str) -> Any:
            instances.append(class_name)
            return AuthorQueries()

    @resolver()
    class AuthorQueries:
        @query(returns="String")
        def greeting(self) -> str:
            return "hello"

        @query(returns="Int")
        def answer(self) -> int:
            return 42

    document = SchemaBuilder(factory=CountingFactory()).add_resolvers(AuthorQueries).build()

    assert instances == ["AuthorQueries"]
    assert document.bindings.resolve("Query", "answer", None) == 42


# #########################################################
# Request time
# #########################################################


def test_resolve_field_with_parent() -> None:
    bindings = author_post_builder().build().bindings

    assert bindings.resolve("Author", "posts", {"id": 2}) == [POSTS[1]]
    assert bindings.resolve("Author", "firstName", {"id": 2, "firstName": "Alan"}) == "Alan"
    assert bindings.resolve("Author", "lastName", {"id": 2}) is None


def test_resolve_coerces_arguments() -> None:
    bindings = author_post_builder().build().bindings

    assert bindings.resolve("Query", "author", None, raw_args={"id": 1})["firstName"] == "Ada"

    with pytest.raises(FieldError) as exc_info:
        _ = bindings.resolve("Query", "author", None, raw_args={})
    assert exc_info.value.extensions == {"code": "MISSING_REQUIRED_ARGUMENT", "argument": "id"}

    with pytest.raises(FieldError) as exc_info:
        _ = bindings.resolve("Query", "author", None, raw_args={"id": "1"})
    assert exc_info.value.extensions["code"] == "COERCION_TYPE_MISMATCH"


def test_handler_failure_is_wrapped() -> None:
    @query(returns="Int")
    def broken() -> int:
        raise ValueError("database unavailable")

    bindings = SchemaBuilder().add_resolvers(broken).build().bindings

    with pytest.raises(FieldError, match="database unavailable") as exc_info:
        _ = bindings.resolve("Query", "broken", None)
    assert exc_info.value.extensions == {"code": "RESOLVER_ERROR"}
    assert isinstance(exc_info.value.cause, ValueError)


def test_parameter_sources() -> None:
    class Info:
        context = {"user": "ada", "locale": "en"}

    @query(returns="String")
    def whoami(
        user: Annotated[str, context("user")],
        ctx: Annotated[dict[str, Any], context()],
        resolve_info: Annotated[Any, info()],
        all_args: Annotated[dict[str, Any], args()],
        shout: Annotated[bool, arg(type="Boolean", default=False)],
    ) -> str:
        assert ctx["locale"] == "en"
        assert isinstance(resolve_info, Info)
        assert all_args == {"shout": shout}
        return user.upper() if shout else user

    bindings = SchemaBuilder().add_resolvers(whoami).build().bindings

    assert bindings.resolve("Query", "whoami", None, info=Info()) == "ada"
    assert bindings.resolve("Query", "whoami", None, info=Info(), raw_args={"shout": True}) == "ADA"
    assert bindings.resolve("Query", "whoami", None, info=Info(), context={"user": "alan", "locale": "en"}) == "alan"


def test_async_handler() -> None:
    @query(returns="Int")
    async def slow_answer() -> int:
        await asyncio.sleep(0)
        return 42

    @query(returns="Int")
    async def slow_failure() -> int:
        raise RuntimeError("timeout")

    bindings = SchemaBuilder().add_resolvers(slow_answer, slow_failure).build().bindings

    assert asyncio.run(bindings.resolve("Query", "slow_answer", None)) == 42
    with pytest.raises(FieldError, match="timeout"):
        _ = asyncio.run(bindings.resolve("Query", "slow_failure", None))
