from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any


class TypeKind(str, Enum):
    OBJECT = "OBJECT"
    INPUT = "INPUT"
    ARGS = "ARGS"
    SCALAR = "SCALAR"


class ParamSource(str, Enum):
    ROOT = "ROOT"
    CONTEXT = "CONTEXT"
    INFO = "INFO"
    ARGS = "ARGS"
    RAW_ARG = "RAW_ARG"


@dataclass(frozen=True)
class TypeRef:
    """Reference to a named type, wrapped in ``list_depth`` lists.

    Args:
        name: Name of the referenced type
        list_depth: Number of nested list wrappers (0 for a plain value)
        outer_nullable: The value itself (or the outermost list) may be null
        items_nullable: Elements of the innermost list may be null
    """

    name: str
    list_depth: int = 0
    outer_nullable: bool = False
    items_nullable: bool = False

    @property
    def is_list(self) -> bool:
        return self.list_depth > 0

    def nullable_at(self, level: int) -> bool:
        """Whether the value found ``level`` list wrappers deep may be null.

        Level 0 is the value itself and level ``list_depth`` the innermost items.
        Intermediate lists are never nullable.
        """
        if level == 0:
            return self.outer_nullable
        if level == self.list_depth:
            return self.items_nullable
        return False

    def to_sdl(self) -> str:
        if not self.is_list:
            return self.name if self.outer_nullable else f"{self.name}!"

        rendered = self.name if self.items_nullable else f"{self.name}!"
        for level in range(self.list_depth - 1, -1, -1):
            rendered = f"[{rendered}]"
            if not self.nullable_at(level):
                rendered += "!"
        return rendered

    def __str__(self) -> str:
        return self.to_sdl()


class _NoDefault:
    def __repr__(self) -> str:
        return "NO_DEFAULT"


NO_DEFAULT: Any = _NoDefault()


@dataclass(frozen=True)
class ArgumentDescriptor:
    name: str
    type_ref: TypeRef
    default: Any = NO_DEFAULT
    description: str | None = None
    constraints: tuple[str, ...] = ()

    @property
    def has_default(self) -> bool:
        return self.default is not NO_DEFAULT

    @property
    def required(self) -> bool:
        return not self.type_ref.outer_nullable and not self.has_default


@dataclass(frozen=True)
class FieldDescriptor:
    name: str
    type_ref: TypeRef
    default: Any = NO_DEFAULT
    description: str | None = None
    deprecation_reason: str | None = None
    arguments: tuple[ArgumentDescriptor, ...] = ()
    args_type: str | None = None
    constraints: tuple[str, ...] = ()
    site: str | None = None

    @property
    def has_default(self) -> bool:
        return self.default is not NO_DEFAULT

    def as_argument(self) -> ArgumentDescriptor:
        """View of an input field as an argument, sharing its coercion rules."""
        return ArgumentDescriptor(
            name=self.name,
            type_ref=self.type_ref,
            default=self.default,
            description=self.description,
            constraints=self.constraints,
        )


@dataclass(frozen=True)
class TypeDescriptor:
    name: str
    kind: TypeKind
    fields: tuple[FieldDescriptor, ...] = ()
    description: str | None = None
    deprecation_reason: str | None = None
    properties: frozenset[str] | None = None
    site: str | None = None

    def get_field(self, field_name: str) -> FieldDescriptor | None:
        return next((f for f in self.fields if f.name == field_name), None)

    @property
    def field_names(self) -> list[str]:
        return [f.name for f in self.fields]


@dataclass(frozen=True)
class ParamSpec:
    """One entry of a resolver's parameter-extraction plan.

    Args:
        source: Where the value comes from
        key: Argument name for ARGS/RAW_ARG, context key for CONTEXT, unused otherwise
        name: Keyword the value is passed under; positional when None
    """

    source: ParamSource
    key: str | None = None
    name: str | None = None


@dataclass(frozen=True)
class ResolverDescriptor:
    type_name: str
    field_name: str
    handler: Callable[..., Any] | str
    owner: str | None = None
    parent_type: str | None = None
    plan: tuple[ParamSpec, ...] = ()
    site: str | None = None

    @property
    def key(self) -> tuple[str, str]:
        return (self.type_name, self.field_name)

    @property
    def handler_name(self) -> str:
        if isinstance(self.handler, str):
            return f"{self.owner}.{self.handler}" if self.owner else self.handler
        return getattr(self.handler, "__qualname__", repr(self.handler))


class _DefaultPropertyAccess:
    def __repr__(self) -> str:
        return "DEFAULT_PROPERTY_ACCESS"


DEFAULT_PROPERTY_ACCESS: Any = _DefaultPropertyAccess()

