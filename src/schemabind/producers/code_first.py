"""Code-first producer: declarations derived from structural hints on Python classes.

Type classes are marked with ``object_type``, ``input_type``, ``args_type`` or
``scalar_type``; their annotated attributes become fields. Resolver classes are
marked with ``resolver`` and their methods with ``query``, ``mutation`` or
``resolve_field``. Handler parameters say where their values come from through
``typing.Annotated`` markers (``parent()``, ``arg()``, ``args()``, ``context()``,
``info()``).

Decorators only attach metadata. Type hints are evaluated when declarations are
produced, so classes may reference each other before both exist.
"""

import decimal
import inspect
import numbers
import sys
import types
import typing
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field as dataclass_field
from typing import Any, NewType, TypeVar

from schemabind.errors import InvalidDeclaration
from schemabind.model.declarations import (
    ArgumentRecord,
    DeclarationSet,
    FieldRecord,
    NullableSpec,
    Origin,
    TypeRecord,
    TypeRefRecord,
)
from schemabind.model.descriptors import NO_DEFAULT, ParamSource, ParamSpec, ResolverDescriptor, TypeKind
from schemabind.model.graphql_type import MUTATION_TYPE, QUERY_TYPE

ID = NewType("ID", str)

TYPE_META_ATTRIBUTE = "__schemabind_type__"
RESOLVER_META_ATTRIBUTE = "__schemabind_resolver__"
HANDLER_META_ATTRIBUTE = "__schemabind_handler__"

SCALAR_HINTS: dict[Any, str] = {
    int: "Int",
    float: "Float",
    str: "String",
    bool: "Boolean",
    ID: "ID",
}

AMBIGUOUS_NUMERIC_HINTS: dict[Any, str] = {
    numbers.Number: "Number",
    numbers.Real: "Number",
    decimal.Decimal: "Number",
    complex: "Number",
}

# Classes marked with a type decorator, by Python name, for resolving forward references
_known_types: dict[str, type] = {}
# Resolver classes by class name, the key resolver factories receive
_known_resolvers: dict[str, type] = {}

T = TypeVar("T")

TypeOverride = str | type | list[Any]


# Markers
# ----------
@dataclass
class FieldInfo:
    type: TypeOverride | None = None
    nullable: NullableSpec | None = None
    items_nullable: bool | None = None
    default: Any = NO_DEFAULT
    description: str | None = None
    deprecation_reason: str | None = None
    constraints: tuple[str, ...] = ()


def field(
    *,
    type: TypeOverride | None = None,
    nullable: NullableSpec | None = None,
    items_nullable: bool | None = None,
    default: Any = NO_DEFAULT,
    description: str | None = None,
    deprecation_reason: str | None = None,
    constraints: Sequence[str] = (),
) -> Any:
    """Attach field metadata to a class attribute.

    Args:
        type: Explicit GraphQL type, overriding the annotation. A type name, a marked
            class, or a list such as ``[Post]`` for list types
        nullable: ``True``, ``"items"`` or ``"itemsAndList"``; taken from the annotation when omitted
        items_nullable: Explicit override of the list items nullability
        default: Default value (input and argument types only)
        description: Field description
        deprecation_reason: Marks the field deprecated
        constraints: Validation constraint tags
    """
    return FieldInfo(
        type=type,
        nullable=nullable,
        items_nullable=items_nullable,
        default=default,
        description=description,
        deprecation_reason=deprecation_reason,
        constraints=tuple(constraints),
    )


@dataclass(frozen=True)
class ParentMarker:
    pass


@dataclass(frozen=True)
class ArgMarker:
    name: str | None = None
    type: TypeOverride | None = None
    nullable: NullableSpec | None = None
    items_nullable: bool | None = None
    default: Any = NO_DEFAULT
    description: str | None = None
    constraints: tuple[str, ...] = ()


@dataclass(frozen=True)
class ArgsMarker:
    pass


@dataclass(frozen=True)
class ContextMarker:
    key: str | None = None


@dataclass(frozen=True)
class InfoMarker:
    pass


def parent() -> ParentMarker:
    return ParentMarker()


def arg(
    name: str | None = None,
    *,
    type: TypeOverride | None = None,
    nullable: NullableSpec | None = None,
    items_nullable: bool | None = None,
    default: Any = NO_DEFAULT,
    description: str | None = None,
    constraints: Sequence[str] = (),
) -> ArgMarker:
    return ArgMarker(
        name=name,
        type=type,
        nullable=nullable,
        items_nullable=items_nullable,
        default=default,
        description=description,
        constraints=tuple(constraints),
    )


def args() -> ArgsMarker:
    return ArgsMarker()


def context(key: str | None = None) -> ContextMarker:
    return ContextMarker(key)


def info() -> InfoMarker:
    return InfoMarker()


ParamMarker = ParentMarker | ArgMarker | ArgsMarker | ContextMarker | InfoMarker


# Decorators
# ----------
@dataclass
class TypeMeta:
    name: str
    kind: TypeKind
    description: str | None = None
    deprecation_reason: str | None = None
    fields: dict[str, FieldInfo] = dataclass_field(default_factory=dict)


@dataclass
class ResolverClassMeta:
    of: TypeOverride | None = None


@dataclass
class HandlerMeta:
    operation: str
    name: str | None = None
    of: TypeOverride | None = None
    returns: TypeOverride | None = None
    nullable: NullableSpec | None = None
    items_nullable: bool | None = None
    description: str | None = None
    deprecation_reason: str | None = None


def _type_decorator(kind: TypeKind) -> Callable[..., Callable[[type[T]], type[T]]]:
    def decorator_factory(
        name: str | None = None, *, description: str | None = None, deprecation_reason: str | None = None
    ) -> Callable[[type[T]], type[T]]:
        def decorator(cls: type[T]) -> type[T]:
            meta = TypeMeta(
                name=name or cls.__name__,
                kind=kind,
                description=description,
                deprecation_reason=deprecation_reason,
            )
            for attribute, value in list(vars(cls).items()):
                if not isinstance(value, FieldInfo):
                    continue
                meta.fields[attribute] = value
                # The marker gives way to the real default, or to nothing
                if value.default is NO_DEFAULT:
                    delattr(cls, attribute)
                else:
                    setattr(cls, attribute, value.default)

            setattr(cls, TYPE_META_ATTRIBUTE, meta)
            _known_types[cls.__name__] = cls
            return cls

        return decorator

    return decorator_factory


object_type = _type_decorator(TypeKind.OBJECT)
input_type = _type_decorator(TypeKind.INPUT)
args_type = _type_decorator(TypeKind.ARGS)
scalar_type = _type_decorator(TypeKind.SCALAR)


def resolver(of: TypeOverride | None = None) -> Callable[[type[T]], type[T]]:
    """Mark a class whose methods resolve fields of ``of`` and/or root operations."""

    def decorator(cls: type[T]) -> type[T]:
        setattr(cls, RESOLVER_META_ATTRIBUTE, ResolverClassMeta(of=of))
        _known_resolvers[cls.__name__] = cls
        return cls

    return decorator


def _handler_decorator(operation: str) -> Callable[..., Callable[[Callable[..., T]], Callable[..., T]]]:
    def decorator_factory(
        returns: TypeOverride | None = None,
        *,
        name: str | None = None,
        of: TypeOverride | None = None,
        nullable: NullableSpec | None = None,
        items_nullable: bool | None = None,
        description: str | None = None,
        deprecation_reason: str | None = None,
    ) -> Callable[[Callable[..., T]], Callable[..., T]]:
        def decorator(func: Callable[..., T]) -> Callable[..., T]:
            meta = HandlerMeta(
                operation=operation,
                name=name,
                of=of,
                returns=returns,
                nullable=nullable,
                items_nullable=items_nullable,
                description=description,
                deprecation_reason=deprecation_reason,
            )
            setattr(func, HANDLER_META_ATTRIBUTE, meta)
            return func

        return decorator

    return decorator_factory


query = _handler_decorator(QUERY_TYPE)
mutation = _handler_decorator(MUTATION_TYPE)
resolve_field = _handler_decorator("field")


def resolver_class(class_name: str) -> type:
    """Look up a resolver class marked with ``resolver`` by its class name.

    Raises:
        KeyError: If no resolver class of that name was declared
    """
    return _known_resolvers[class_name]


# Type hints → type references
# ----------
def _strip_optional(hint: Any) -> tuple[bool, Any]:
    origin = typing.get_origin(hint)
    if origin is typing.Union or origin is types.UnionType:
        members = [member for member in typing.get_args(hint) if member is not type(None)]
        nullable = len(members) != len(typing.get_args(hint))
        if len(members) != 1:
            raise InvalidDeclaration(f"Union hints other than Optional are not supported: {hint!r}")
        return nullable, members[0]
    return False, hint


def _strip_annotated(hint: Any) -> tuple[Any, tuple[Any, ...]]:
    if typing.get_origin(hint) is typing.Annotated:
        return typing.get_args(hint)[0], tuple(hint.__metadata__)
    return hint, ()


def graphql_name(hint: Any) -> str:
    """GraphQL name of a non-list, non-optional hint."""
    if isinstance(hint, str):
        return hint
    if isinstance(hint, typing.ForwardRef):
        return hint.__forward_arg__
    if hint in SCALAR_HINTS:
        return SCALAR_HINTS[hint]
    if hint in AMBIGUOUS_NUMERIC_HINTS:
        return AMBIGUOUS_NUMERIC_HINTS[hint]
    meta = getattr(hint, TYPE_META_ATTRIBUTE, None)
    if isinstance(meta, TypeMeta):
        return meta.name
    raise InvalidDeclaration(f"Cannot map {hint!r} to a GraphQL type; mark the class or give an explicit type")


def _shape_from_hint(owner: str, hint: Any) -> tuple[str, int, bool, bool]:
    """Return (name, list depth, outer nullable, items nullable) described by a hint."""
    outer_nullable, current = _strip_optional(hint)
    depth = 0
    items_nullable = False

    while typing.get_origin(current) in (list, Sequence):
        (item,) = typing.get_args(current)
        if depth > 0 and items_nullable:
            raise InvalidDeclaration(f"'{owner}' has a nullable intermediate list, which cannot be represented")
        items_nullable, current = _strip_optional(item)
        depth += 1

    return graphql_name(current), depth, outer_nullable, items_nullable


def _shape_from_override(override: TypeOverride) -> tuple[str, int]:
    depth = 0
    current: Any = override
    while isinstance(current, list):
        if len(current) != 1:
            raise InvalidDeclaration(f"List type overrides take exactly one item type, got {override!r}")
        current = current[0]
        depth += 1
    return graphql_name(current), depth


def type_ref_record(
    owner: str,
    hint: Any,
    override: TypeOverride | None = None,
    nullable: NullableSpec | None = None,
    items_nullable: bool | None = None,
) -> TypeRefRecord:
    """Build a type reference from a hint, an explicit override and nullability options.

    An explicit type override wins over the hint's type, explicit nullability over
    the hint's Optional wrappers.
    """
    has_hint = hint is not inspect.Parameter.empty and hint is not None

    if override is not None:
        name, depth = _shape_from_override(override)
        hint_outer, hint_items = False, False
        if has_hint:
            try:
                _, _, hint_outer, hint_items = _shape_from_hint(owner, hint)
            except InvalidDeclaration:
                hint_outer = _strip_optional(hint)[0]
    elif has_hint:
        name, depth, hint_outer, hint_items = _shape_from_hint(owner, hint)
    else:
        raise InvalidDeclaration(f"'{owner}' has neither a type hint nor an explicit type")

    if nullable is None:
        if hint_outer and hint_items:
            nullable = "itemsAndList"
        elif hint_items:
            nullable = "items"
        else:
            nullable = hint_outer

    return TypeRefRecord(name=name, list_depth=depth, nullable=nullable, items_nullable=items_nullable)


def _resolve_hints(target: Any) -> dict[str, Any]:
    module = sys.modules.get(getattr(target, "__module__", ""), None)
    # Names of the defining module win over same-named classes decorated elsewhere
    namespace = {**_known_types, **(vars(module) if module is not None else {})}
    try:
        return typing.get_type_hints(target, globalns=namespace, localns=namespace, include_extras=True)
    except NameError as error:
        raise InvalidDeclaration(f"Cannot resolve the type hints of {target!r}: {error}") from error


def _site(target: Any, *parts: str) -> str:
    return ".".join([target.__module__, target.__qualname__, *parts])


# Scanning
# ----------
def is_type_class(target: Any) -> bool:
    return inspect.isclass(target) and isinstance(vars(target).get(TYPE_META_ATTRIBUTE), TypeMeta)


def is_resolver(target: Any) -> bool:
    if inspect.isclass(target):
        return isinstance(vars(target).get(RESOLVER_META_ATTRIBUTE), ResolverClassMeta)
    return inspect.isfunction(target) and isinstance(getattr(target, HANDLER_META_ATTRIBUTE, None), HandlerMeta)


def _property_names(cls: type) -> list[str]:
    return [name for name, value in inspect.getmembers(cls) if isinstance(value, property)]


def declarations_for_type(cls: type) -> DeclarationSet:
    """Produce the type record and field records of a marked type class.

    Annotated attributes become fields, except ``ClassVar`` and private ones. Object
    types also record which properties their instances carry, so fields without
    a resolver can fall back to reading them.

    Raises:
        InvalidDeclaration: If the class is not marked or a hint cannot be mapped
    """
    if not is_type_class(cls):
        raise InvalidDeclaration(f"{cls!r} is not marked as a GraphQL type")

    meta: TypeMeta = vars(cls)[TYPE_META_ATTRIBUTE]
    produced = DeclarationSet()
    hints = _resolve_hints(cls) if meta.kind != TypeKind.SCALAR else {}
    attributes: list[str] = []

    for attribute, hint in hints.items():
        if attribute.startswith("_") or typing.get_origin(hint) is typing.ClassVar:
            continue

        base_hint, metadata = _strip_annotated(hint)
        annotated_info = next((item for item in metadata if isinstance(item, FieldInfo)), None)
        info = meta.fields.get(attribute) or annotated_info or FieldInfo()
        owner = f"{meta.name}.{attribute}"

        kwargs: dict[str, Any] = {}
        if meta.kind in (TypeKind.INPUT, TypeKind.ARGS):
            default = info.default if info.default is not NO_DEFAULT else getattr(cls, attribute, NO_DEFAULT)
            if default is not NO_DEFAULT:
                kwargs["default"] = default

        produced.records.append(
            FieldRecord(
                owner_type=meta.name,
                field_name=attribute,
                type_ref=type_ref_record(owner, base_hint, info.type, info.nullable, info.items_nullable),
                description=info.description,
                deprecation_reason=info.deprecation_reason,
                constraints=list(info.constraints),
                origin=Origin.CODE_FIRST,
                site=_site(cls, attribute),
                **kwargs,
            )
        )
        attributes.append(attribute)

    properties = None
    if meta.kind == TypeKind.OBJECT:
        properties = attributes + [name for name in _property_names(cls) if name not in attributes]

    produced.records.insert(
        0,
        TypeRecord(
            name=meta.name,
            kind=meta.kind,
            description=meta.description,
            deprecation_reason=meta.deprecation_reason,
            properties=properties,
            origin=Origin.CODE_FIRST,
            site=_site(cls),
        ),
    )
    return produced


def _parent_type_name(hint: Any) -> str | None:
    """GraphQL type named by a ``parent()`` hint; None when the hint does not pin one."""
    if hint is inspect.Parameter.empty or hint is Any:
        return None
    _, base = _strip_optional(hint)
    if isinstance(base, str | typing.ForwardRef) or is_type_class(base):
        return graphql_name(base)
    return None


def _handler_declarations(
    func: Callable[..., Any],
    meta: HandlerMeta,
    owner_class: type | None,
    class_of: TypeOverride | None,
) -> DeclarationSet:
    if meta.operation == "field":
        of = meta.of if meta.of is not None else class_of
        if of is None:
            raise InvalidDeclaration(f"Field resolver {func.__qualname__} does not say which type it belongs to")
        type_name = graphql_name(of)
    else:
        type_name = meta.operation

    field_name = meta.name or func.__name__
    owner = f"{type_name}.{field_name}"
    site = _site(func)
    hints = _resolve_hints(func)

    parameters = list(inspect.signature(func).parameters.values())
    if owner_class is not None:
        parameters = parameters[1:]

    plan: list[ParamSpec] = []
    arguments: list[ArgumentRecord] = []
    bundle: str | None = None
    parent_type: str | None = None

    for param in parameters:
        hint = hints.get(param.name, inspect.Parameter.empty)
        base_hint, metadata = _strip_annotated(hint)
        marker = next((item for item in metadata if isinstance(item, ParamMarker)), None)
        if marker is None:
            raise InvalidDeclaration(
                f"Parameter '{param.name}' of {func.__qualname__} does not say where its value comes from; "
                "annotate it with parent(), arg(), args(), context() or info()"
            )

        if isinstance(marker, ParentMarker):
            parent_type = _parent_type_name(base_hint)
            plan.append(ParamSpec(ParamSource.ROOT, name=param.name))
        elif isinstance(marker, ArgMarker):
            argument_name = marker.name or param.name
            default = marker.default
            if default is NO_DEFAULT and param.default is not inspect.Parameter.empty:
                default = param.default
            kwargs: dict[str, Any] = {} if default is NO_DEFAULT else {"default": default}
            arguments.append(
                ArgumentRecord(
                    name=argument_name,
                    type_ref=type_ref_record(
                        f"{owner}({argument_name})", base_hint, marker.type, marker.nullable, marker.items_nullable
                    ),
                    description=marker.description,
                    constraints=list(marker.constraints),
                    **kwargs,
                )
            )
            plan.append(ParamSpec(ParamSource.ARGS, key=argument_name, name=param.name))
        elif isinstance(marker, ArgsMarker):
            if is_type_class(base_hint):
                bundle_meta: TypeMeta = vars(base_hint)[TYPE_META_ATTRIBUTE]
                if bundle_meta.kind != TypeKind.ARGS:
                    raise InvalidDeclaration(
                        f"Parameter '{param.name}' of {func.__qualname__} takes all arguments, "
                        f"but '{bundle_meta.name}' is not an argument type"
                    )
                bundle = bundle_meta.name
            plan.append(ParamSpec(ParamSource.ARGS, name=param.name))
        elif isinstance(marker, ContextMarker):
            plan.append(ParamSpec(ParamSource.CONTEXT, key=marker.key, name=param.name))
        else:
            plan.append(ParamSpec(ParamSource.INFO, name=param.name))

    produced = DeclarationSet()
    if meta.returns is not None:
        produced.records.append(
            FieldRecord(
                owner_type=type_name,
                field_name=field_name,
                type_ref=type_ref_record(
                    owner, inspect.Parameter.empty, meta.returns, meta.nullable, meta.items_nullable
                ),
                arguments=arguments,
                args_type=bundle,
                description=meta.description,
                deprecation_reason=meta.deprecation_reason,
                origin=Origin.CODE_FIRST,
                site=site,
            )
        )

    produced.resolvers.append(
        ResolverDescriptor(
            type_name=type_name,
            field_name=field_name,
            handler=func if owner_class is None else func.__name__,
            owner=owner_class.__name__ if owner_class is not None else None,
            parent_type=parent_type if meta.operation == "field" else None,
            plan=tuple(plan),
            site=site,
        )
    )
    return produced


def declarations_for_resolver(target: Any) -> DeclarationSet:
    """Produce resolver descriptors (and declared fields) of a resolver class or handler function.

    Methods of a resolver class are bound by class name, so instances come from the
    resolver factory when the schema is built. Plain functions are bound directly.

    Raises:
        InvalidDeclaration: If the target is not marked or a handler parameter has no source
    """
    if not is_resolver(target):
        raise InvalidDeclaration(f"{target!r} is neither a resolver class nor a handler function")

    produced = DeclarationSet()
    if not inspect.isclass(target):
        produced.extend(_handler_declarations(target, getattr(target, HANDLER_META_ATTRIBUTE), None, None))
        return produced

    class_meta: ResolverClassMeta = vars(target)[RESOLVER_META_ATTRIBUTE]
    seen: set[str] = set()
    # Most derived definition wins
    for klass in target.__mro__:
        for attribute, member in vars(klass).items():
            meta = getattr(member, HANDLER_META_ATTRIBUTE, None)
            if not inspect.isfunction(member) or not isinstance(meta, HandlerMeta) or attribute in seen:
                continue
            seen.add(attribute)
            produced.extend(_handler_declarations(getattr(target, attribute), meta, target, class_meta.of))

    return produced


def scan_classes(*targets: Any) -> DeclarationSet:
    """Produce the declarations of any mix of type classes, resolver classes and handler functions."""
    produced = DeclarationSet()
    for target in targets:
        if is_type_class(target):
            produced.extend(declarations_for_type(target))
        elif is_resolver(target):
            produced.extend(declarations_for_resolver(target))
        else:
            raise InvalidDeclaration(f"{target!r} carries no schema declarations")
    return produced
