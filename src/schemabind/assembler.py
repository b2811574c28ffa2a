from dataclasses import dataclass
from typing import Any

from schemabind import log
from schemabind.binder import ResolverBindings
from schemabind.model.descriptors import (
    DEFAULT_PROPERTY_ACCESS,
    ArgumentDescriptor,
    FieldDescriptor,
    TypeDescriptor,
    TypeKind,
    TypeRef,
)
from schemabind.model.graphql_type import MUTATION_TYPE, QUERY_TYPE
from schemabind.printer import print_types
from schemabind.registry import RegistrySnapshot


@dataclass(frozen=True)
class SchemaDocument:
    """The assembled schema: finalized types plus the resolver bindings of their fields."""

    registry: RegistrySnapshot
    bindings: ResolverBindings

    @property
    def types(self) -> tuple[TypeDescriptor, ...]:
        return self.registry.types

    @property
    def query_type(self) -> TypeDescriptor | None:
        return self.registry.get(QUERY_TYPE)

    @property
    def mutation_type(self) -> TypeDescriptor | None:
        return self.registry.get(MUTATION_TYPE)

    def get_type(self, name: str) -> TypeDescriptor | None:
        return self.registry.get(name)

    def to_sdl(self, sort: bool = False) -> str:
        return print_types(self.registry, self.types, sort=sort)

    def to_dict(self) -> dict[str, Any]:
        """Serializable description of every type, field and binding, in declaration order."""
        return {"types": [self._type_to_dict(descriptor) for descriptor in self.types]}

    def _type_to_dict(self, descriptor: TypeDescriptor) -> dict[str, Any]:
        result: dict[str, Any] = {"name": descriptor.name, "kind": descriptor.kind.value}
        if descriptor.description:
            result["description"] = descriptor.description
        if descriptor.deprecation_reason:
            result["deprecationReason"] = descriptor.deprecation_reason
        if descriptor.kind != TypeKind.SCALAR:
            result["fields"] = [self._field_to_dict(descriptor, field) for field in descriptor.fields]
        return result

    def _field_to_dict(self, owner: TypeDescriptor, field: FieldDescriptor) -> dict[str, Any]:
        result: dict[str, Any] = {
            "name": field.name,
            "type": field.type_ref.to_sdl(),
            "typeRef": _type_ref_to_dict(field.type_ref),
        }
        if field.has_default:
            result["default"] = field.default
        if field.description:
            result["description"] = field.description
        if field.deprecation_reason:
            result["deprecationReason"] = field.deprecation_reason
        if field.constraints:
            result["constraints"] = list(field.constraints)

        if owner.kind == TypeKind.OBJECT:
            result["arguments"] = [_argument_to_dict(argument) for argument in self.registry.arguments_of(field)]
            if field.args_type:
                result["argsType"] = field.args_type
            target = self.bindings.bind(owner.name, field.name)
            result["resolver"] = None if target is DEFAULT_PROPERTY_ACCESS else target.handler_name
        return result


def _type_ref_to_dict(type_ref: TypeRef) -> dict[str, Any]:
    return {
        "name": type_ref.name,
        "listDepth": type_ref.list_depth,
        "nullable": {"outer": type_ref.outer_nullable, "items": type_ref.items_nullable},
    }


def _argument_to_dict(argument: ArgumentDescriptor) -> dict[str, Any]:
    result: dict[str, Any] = {
        "name": argument.name,
        "type": argument.type_ref.to_sdl(),
        "typeRef": _type_ref_to_dict(argument.type_ref),
        "required": argument.required,
    }
    if argument.has_default:
        result["default"] = argument.default
    if argument.description:
        result["description"] = argument.description
    if argument.constraints:
        result["constraints"] = list(argument.constraints)
    return result


def assemble(registry: RegistrySnapshot, bindings: ResolverBindings) -> SchemaDocument:
    """Combine the finalized registry and the resolver bindings into a SchemaDocument.

    Raises:
        ValueError: If the bindings were produced for another registry
    """
    if bindings.registry is not registry:
        raise ValueError("Resolver bindings were finalized against a different type registry")

    document = SchemaDocument(registry=registry, bindings=bindings)
    log.info(f"Assembled schema with {len(registry)} types")
    return document
