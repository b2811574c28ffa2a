from collections.abc import Iterator, Mapping
from types import MappingProxyType

from schemabind import log
from schemabind.errors import (
    ConflictingDeclaration,
    DanglingReference,
    DuplicateType,
    InvalidTypeUsage,
    UnknownType,
)
from schemabind.model.descriptors import (
    ArgumentDescriptor,
    FieldDescriptor,
    TypeDescriptor,
    TypeKind,
)
from schemabind.model.graphql_type import BUILTIN_SCALARS, is_root_type

BUILTIN_SCALAR_DESCRIPTORS: Mapping[str, TypeDescriptor] = MappingProxyType(
    {name: TypeDescriptor(name=name, kind=TypeKind.SCALAR) for name in BUILTIN_SCALARS}
)

INPUT_KINDS = (TypeKind.SCALAR, TypeKind.INPUT)
OUTPUT_KINDS = (TypeKind.SCALAR, TypeKind.OBJECT)


class RegistrySnapshot:
    """Immutable view of the finalized registry.

    Types keep their registration order. Built-in scalars resolve by name but are
    not part of ``types``.
    """

    def __init__(self, types: tuple[TypeDescriptor, ...]) -> None:
        self._types = types
        self._by_name: Mapping[str, TypeDescriptor] = MappingProxyType(
            {**BUILTIN_SCALAR_DESCRIPTORS, **{descriptor.name: descriptor for descriptor in types}}
        )

    @property
    def types(self) -> tuple[TypeDescriptor, ...]:
        return self._types

    def __iter__(self) -> Iterator[TypeDescriptor]:
        return iter(self._types)

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    def __len__(self) -> int:
        return len(self._types)

    def get(self, name: str) -> TypeDescriptor | None:
        return self._by_name.get(name)

    def resolve_reference(self, name: str) -> TypeDescriptor:
        descriptor = self._by_name.get(name)
        if descriptor is None:
            raise UnknownType(name)
        return descriptor

    def types_of_kind(self, kind: TypeKind) -> list[TypeDescriptor]:
        return [descriptor for descriptor in self._types if descriptor.kind == kind]

    def arguments_of(self, field: FieldDescriptor) -> tuple[ArgumentDescriptor, ...]:
        """Inline arguments of a field followed by the fields of its argument bundle."""
        if field.args_type is None:
            return field.arguments

        bundle = self.resolve_reference(field.args_type)
        return field.arguments + tuple(bundle_field.as_argument() for bundle_field in bundle.fields)


class TypeRegistry:
    """Collects type descriptors and checks them as a whole on ``finalize``.

    References between types are stored by name and only resolved on finalize,
    so types may be registered in any order and reference each other cyclically.
    """

    def __init__(self) -> None:
        self._pending: list[TypeDescriptor] = []
        self._snapshot: RegistrySnapshot | None = None

    def register(self, descriptor: TypeDescriptor) -> None:
        if self._snapshot is not None:
            raise RuntimeError("Types cannot be registered after finalize()")
        self._pending.append(descriptor)
        log.debug(f"Registered {descriptor.kind.value} type '{descriptor.name}'")

    def resolve_reference(self, name: str) -> TypeDescriptor:
        """Look a type up by name, in any phase.

        Raises:
            UnknownType: If no type of that name is registered
        """
        if self._snapshot is not None:
            return self._snapshot.resolve_reference(name)

        if name in BUILTIN_SCALAR_DESCRIPTORS:
            return BUILTIN_SCALAR_DESCRIPTORS[name]
        for descriptor in self._pending:
            if descriptor.name == name:
                return descriptor
        raise UnknownType(name)

    def finalize(self) -> RegistrySnapshot:
        """Check every registered type and freeze the registry.

        Returns:
            RegistrySnapshot: The immutable registry

        Raises:
            DuplicateType: If a type name is registered more than once
            DanglingReference: If a field, argument or argument bundle references an unknown type
            InvalidTypeUsage: If a reference points at a type of the wrong kind
            ConflictingDeclaration: If a bundle field and an inline argument share a name
        """
        if self._snapshot is not None:
            return self._snapshot

        by_name: dict[str, TypeDescriptor] = {}
        for descriptor in self._pending:
            if descriptor.name in by_name or descriptor.name in BUILTIN_SCALAR_DESCRIPTORS:
                sites = [d.site for d in self._pending if d.name == descriptor.name]
                raise DuplicateType(descriptor.name, sites)
            by_name[descriptor.name] = descriptor

        snapshot = RegistrySnapshot(tuple(self._pending))
        for descriptor in snapshot:
            _check_type(snapshot, descriptor)

        self._snapshot = snapshot
        log.info(f"Type registry finalized with {len(snapshot)} types")
        return snapshot


def _resolve(snapshot: RegistrySnapshot, owner: str, name: str, site: str | None) -> TypeDescriptor:
    descriptor = snapshot.get(name)
    if descriptor is None:
        raise DanglingReference(owner, name, site)
    return descriptor


def _check_type(snapshot: RegistrySnapshot, descriptor: TypeDescriptor) -> None:
    if descriptor.kind == TypeKind.SCALAR:
        if descriptor.fields:
            raise InvalidTypeUsage(descriptor.name, "scalar types cannot declare fields")
        return

    if is_root_type(descriptor.name) and descriptor.kind != TypeKind.OBJECT:
        raise InvalidTypeUsage(descriptor.name, "root operation types must be object types")

    is_input = descriptor.kind in (TypeKind.INPUT, TypeKind.ARGS)
    allowed = INPUT_KINDS if is_input else OUTPUT_KINDS

    for field in descriptor.fields:
        owner = f"{descriptor.name}.{field.name}"
        target = _resolve(snapshot, owner, field.type_ref.name, field.site)
        if target.kind not in allowed:
            raise InvalidTypeUsage(owner, f"cannot use {target.kind.value} type '{target.name}' here")

        if is_input:
            if field.arguments or field.args_type:
                raise InvalidTypeUsage(owner, "input fields cannot take arguments")
            continue

        if field.has_default:
            raise InvalidTypeUsage(owner, "only input and argument fields take defaults")

        for argument in field.arguments:
            argument_owner = f"{owner}({argument.name})"
            argument_type = _resolve(snapshot, argument_owner, argument.type_ref.name, field.site)
            if argument_type.kind not in INPUT_KINDS:
                raise InvalidTypeUsage(
                    argument_owner, f"arguments must be scalars or input types, not '{argument_type.name}'"
                )

        if field.args_type is not None:
            bundle = _resolve(snapshot, owner, field.args_type, field.site)
            if bundle.kind != TypeKind.ARGS:
                raise InvalidTypeUsage(owner, f"'{bundle.name}' is not an argument bundle")
            inline_names = {argument.name for argument in field.arguments}
            for bundle_field in bundle.fields:
                if bundle_field.name in inline_names:
                    raise ConflictingDeclaration(
                        f"{owner}({bundle_field.name})",
                        f"declared both inline and in argument bundle '{bundle.name}'",
                        (field.site, bundle_field.site),
                    )
