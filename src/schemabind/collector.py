from dataclasses import dataclass, field
from typing import Any

from schemabind import log
from schemabind.errors import (
    AmbiguousNumericType,
    BuildError,
    ConflictingDeclaration,
    ContradictoryNullability,
    InvalidDeclaration,
)
from schemabind.model.declarations import (
    ArgumentRecord,
    Declaration,
    FieldRecord,
    NullableFlags,
    TypeRecord,
    TypeRefRecord,
)
from schemabind.model.descriptors import (
    NO_DEFAULT,
    ArgumentDescriptor,
    FieldDescriptor,
    TypeDescriptor,
    TypeKind,
    TypeRef,
)
from schemabind.model.graphql_type import is_ambiguous_numeric_type


def normalize_type_ref(owner: str, ref: TypeRefRecord) -> TypeRef:
    """Turn a declared type reference into a TypeRef, resolving nullability shorthands.

    Args:
        owner: Qualified name of the declaring element, used in error messages
        ref: The type reference as declared

    Returns:
        The normalized TypeRef

    Raises:
        AmbiguousNumericType: If the referenced type does not say whether it is Int or Float
        ContradictoryNullability: If the shorthand and the explicit items override disagree,
            or items nullability is set on a non-list type
    """
    if is_ambiguous_numeric_type(ref.name):
        raise AmbiguousNumericType(owner, ref.name)

    nullable = ref.nullable
    override = ref.items_nullable

    if isinstance(nullable, NullableFlags):
        outer, items = nullable.outer, nullable.items
        shorthand_sets_items = nullable.items
    elif nullable == "itemsAndList":
        outer, items = True, True
        shorthand_sets_items = True
    elif nullable == "items":
        outer, items = False, True
        shorthand_sets_items = True
    else:
        outer, items = bool(nullable), False
        shorthand_sets_items = False

    if override is not None:
        if shorthand_sets_items and not override:
            raise ContradictoryNullability(
                owner, f"'{nullable}' makes items nullable but items are declared non-nullable"
            )
        items = override

    if items and ref.list_depth == 0:
        raise ContradictoryNullability(owner, "items nullability requires a list type")

    return TypeRef(name=ref.name, list_depth=ref.list_depth, outer_nullable=outer, items_nullable=items)


def _normalize_default(owner: str, type_ref: TypeRef, record: ArgumentRecord | FieldRecord) -> Any:
    if not record.has_default:
        return NO_DEFAULT
    if record.default is None and not type_ref.outer_nullable:
        raise InvalidDeclaration(f"'{owner}' is non-nullable and cannot default to null")
    return record.default


def _normalize_argument(owner: str, record: ArgumentRecord) -> ArgumentDescriptor:
    qualified = f"{owner}({record.name})"
    type_ref = normalize_type_ref(qualified, record.type_ref)
    return ArgumentDescriptor(
        name=record.name,
        type_ref=type_ref,
        default=_normalize_default(qualified, type_ref, record),
        description=record.description,
        constraints=tuple(record.constraints),
    )


def _first_non_empty(owner: str, attribute: str, current: str | None, incoming: str | None) -> str | None:
    if current and incoming and current != incoming:
        log.warning(f"'{owner}' has differing {attribute} values; keeping the first one declared")
    return current or incoming


def _merge_constraints(current: tuple[str, ...], incoming: tuple[str, ...]) -> tuple[str, ...]:
    return current + tuple(tag for tag in incoming if tag not in current)


@dataclass
class _PendingType:
    name: str
    kind: TypeKind
    kind_explicit: bool
    site: str | None
    description: str | None = None
    deprecation_reason: str | None = None
    properties: frozenset[str] | None = None
    fields: dict[str, FieldDescriptor] = field(default_factory=dict)

    def to_descriptor(self) -> TypeDescriptor:
        return TypeDescriptor(
            name=self.name,
            kind=self.kind,
            fields=tuple(self.fields.values()),
            description=self.description,
            deprecation_reason=self.deprecation_reason,
            properties=self.properties,
            site=self.site,
        )


class DeclarationCollector:
    """Gathers declaration records from any producer and merges them into type descriptors.

    Records are normalized as soon as they are submitted, so invalid nullability or
    ambiguous numeric types fail at the declaration. Conflicts between declarations
    are only known once everything is in, and are reported by ``finalize``.
    """

    def __init__(self) -> None:
        self._types: dict[str, _PendingType] = {}
        self._conflicts: list[BuildError] = []
        self._finalized: list[TypeDescriptor] | None = None

    def submit(self, declaration: Declaration) -> None:
        if self._finalized is not None:
            raise RuntimeError("Declarations cannot be submitted after finalize()")

        if isinstance(declaration, TypeRecord):
            self._submit_type(declaration)
        else:
            self._submit_field(declaration)

    def submit_all(self, declarations: list[Declaration]) -> None:
        for declaration in declarations:
            self.submit(declaration)

    def _pending_type(self, name: str, site: str | None) -> _PendingType:
        if name not in self._types:
            self._types[name] = _PendingType(name=name, kind=TypeKind.OBJECT, kind_explicit=False, site=site)
        return self._types[name]

    def _submit_type(self, record: TypeRecord) -> None:
        pending = self._types.get(record.name)
        if pending is None:
            pending = self._pending_type(record.name, record.site)
            pending.kind = record.kind
            pending.kind_explicit = True
        elif pending.kind_explicit and pending.kind != record.kind:
            self._conflicts.append(
                ConflictingDeclaration(
                    record.name,
                    f"declared as {pending.kind.value} and as {record.kind.value}",
                    (pending.site, record.site),
                )
            )
            return
        else:
            pending.kind = record.kind
            pending.kind_explicit = True
            pending.site = pending.site or record.site

        pending.description = _first_non_empty(record.name, "description", pending.description, record.description)
        pending.deprecation_reason = _first_non_empty(
            record.name, "deprecation reason", pending.deprecation_reason, record.deprecation_reason
        )
        if record.properties is not None:
            incoming = frozenset(record.properties)
            pending.properties = incoming if pending.properties is None else pending.properties | incoming

    def _submit_field(self, record: FieldRecord) -> None:
        owner = record.qualified_name
        type_ref = normalize_type_ref(owner, record.type_ref)
        descriptor = FieldDescriptor(
            name=record.field_name,
            type_ref=type_ref,
            default=_normalize_default(owner, type_ref, record),
            description=record.description,
            deprecation_reason=record.deprecation_reason,
            arguments=tuple(_normalize_argument(owner, argument) for argument in record.arguments),
            args_type=record.args_type,
            constraints=tuple(record.constraints),
            site=record.site,
        )

        pending = self._pending_type(record.owner_type, record.site)
        existing = pending.fields.get(record.field_name)
        if existing is None:
            pending.fields[record.field_name] = descriptor
            return

        merged = self._merge_fields(owner, existing, descriptor)
        if merged is not None:
            pending.fields[record.field_name] = merged

    def _conflict(self, owner: str, message: str, first: str | None, second: str | None) -> None:
        self._conflicts.append(ConflictingDeclaration(owner, message, (first, second)))

    def _merge_fields(self, owner: str, current: FieldDescriptor, incoming: FieldDescriptor) -> FieldDescriptor | None:
        if current.type_ref != incoming.type_ref:
            self._conflict(owner, f"type {current.type_ref} vs {incoming.type_ref}", current.site, incoming.site)
            return None

        default: Any = current.default
        if incoming.has_default:
            if current.has_default and current.default != incoming.default:
                self._conflict(
                    owner, f"default {current.default!r} vs {incoming.default!r}", current.site, incoming.site
                )
                return None
            default = incoming.default

        if current.args_type and incoming.args_type and current.args_type != incoming.args_type:
            self._conflict(
                owner, f"arguments {current.args_type} vs {incoming.args_type}", current.site, incoming.site
            )
            return None

        arguments = {argument.name: argument for argument in current.arguments}
        for argument in incoming.arguments:
            known = arguments.get(argument.name)
            if known is None:
                arguments[argument.name] = argument
                continue
            if known.type_ref != argument.type_ref:
                self._conflict(
                    f"{owner}({argument.name})",
                    f"type {known.type_ref} vs {argument.type_ref}",
                    current.site,
                    incoming.site,
                )
                return None
            if known.has_default and argument.has_default and known.default != argument.default:
                self._conflict(
                    f"{owner}({argument.name})",
                    f"default {known.default!r} vs {argument.default!r}",
                    current.site,
                    incoming.site,
                )
                return None
            if argument.has_default and not known.has_default:
                arguments[argument.name] = ArgumentDescriptor(
                    name=known.name,
                    type_ref=known.type_ref,
                    default=argument.default,
                    description=known.description or argument.description,
                    constraints=_merge_constraints(known.constraints, argument.constraints),
                )

        return FieldDescriptor(
            name=current.name,
            type_ref=current.type_ref,
            default=default,
            description=_first_non_empty(owner, "description", current.description, incoming.description),
            deprecation_reason=_first_non_empty(
                owner, "deprecation reason", current.deprecation_reason, incoming.deprecation_reason
            ),
            arguments=tuple(arguments.values()),
            args_type=current.args_type or incoming.args_type,
            constraints=_merge_constraints(current.constraints, incoming.constraints),
            site=current.site or incoming.site,
        )

    def finalize(self) -> list[TypeDescriptor]:
        """Return the merged type descriptors in declaration order.

        Returns:
            list[TypeDescriptor]: One descriptor per declared type

        Raises:
            ConflictingDeclaration: If any two declarations could not be reconciled
        """
        if self._finalized is not None:
            return self._finalized

        if self._conflicts:
            for conflict in self._conflicts:
                log.error(str(conflict))
            raise self._conflicts[0]

        self._finalized = [pending.to_descriptor() for pending in self._types.values()]
        log.debug(f"Collected {len(self._finalized)} type declarations")
        return self._finalized
