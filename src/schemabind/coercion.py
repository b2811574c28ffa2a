import math
from collections.abc import Callable, Mapping, Sequence
from typing import Any, Protocol

from schemabind.errors import (
    CoercionTypeMismatch,
    ConstraintViolation,
    MissingRequiredArgument,
)
from schemabind.model.descriptors import ArgumentDescriptor, FieldDescriptor, TypeKind, TypeRef
from schemabind.registry import RegistrySnapshot

GRAPHQL_MAX_INT = 2**31 - 1
GRAPHQL_MIN_INT = -(2**31)


class ConstraintValidator(Protocol):
    """Validation collaborator. Returns the list of violations, empty when the value is valid."""

    def validate(self, value: Any, constraints: list[str]) -> list[str]: ...


class AcceptAllValidator:
    def validate(self, value: Any, constraints: list[str]) -> list[str]:
        return []


def _coerce_int(value: Any) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    if not GRAPHQL_MIN_INT <= value <= GRAPHQL_MAX_INT:
        return None
    return value


def _coerce_float(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, int | float):
        return None
    try:
        number = float(value)
    except OverflowError:
        return None
    return number if math.isfinite(number) else None


def _coerce_string(value: Any) -> str | None:
    return value if isinstance(value, str) else None


def _coerce_boolean(value: Any) -> bool | None:
    return value if isinstance(value, bool) else None


def _coerce_id(value: Any) -> str | None:
    if isinstance(value, str):
        return value
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return None


SCALAR_COERCERS: dict[str, Callable[[Any], Any]] = {
    "Int": _coerce_int,
    "Float": _coerce_float,
    "String": _coerce_string,
    "Boolean": _coerce_boolean,
    "ID": _coerce_id,
}


class ArgumentCoercionEngine:
    """Turns raw request arguments into typed values following the declared arguments.

    Args:
        registry: Finalized registry, used to look up input types and argument bundles
        validator: Collaborator checking constraint tags on supplied values
    """

    def __init__(self, registry: RegistrySnapshot, validator: ConstraintValidator | None = None) -> None:
        self.registry = registry
        self.validator = validator or AcceptAllValidator()

    def coerce_field(self, field: FieldDescriptor, raw_args: Mapping[str, Any]) -> dict[str, Any]:
        """Coerce the arguments of a field, flattening its argument bundle if it has one."""
        return self.coerce(self.registry.arguments_of(field), raw_args)

    def coerce(
        self, arguments: Sequence[ArgumentDescriptor], raw_args: Mapping[str, Any], path_prefix: str = ""
    ) -> dict[str, Any]:
        """Coerce raw arguments against their declarations, in declaration order.

        Args:
            arguments: Declared arguments
            raw_args: Values supplied by the request
            path_prefix: Prefix of argument paths in error messages (used for nested input objects)

        Returns:
            dict[str, Any]: One entry per declared argument

        Raises:
            MissingRequiredArgument: If a required argument is absent
            CoercionTypeMismatch: If a value does not match its declared type, or is not declared
            ConstraintViolation: If the validator rejects a supplied value
        """
        declared = {argument.name for argument in arguments}
        for name, value in raw_args.items():
            if name not in declared:
                raise CoercionTypeMismatch(f"{path_prefix}{name}", "a declared argument", value)

        coerced: dict[str, Any] = {}
        for argument in arguments:
            path = f"{path_prefix}{argument.name}"
            if argument.name in raw_args:
                value = self.coerce_value(raw_args[argument.name], argument.type_ref, path)
                if argument.constraints:
                    violations = self.validator.validate(value, list(argument.constraints))
                    if violations:
                        raise ConstraintViolation(path, violations)
                coerced[argument.name] = value
            elif argument.has_default:
                coerced[argument.name] = argument.default
            elif argument.required:
                raise MissingRequiredArgument(path)
            else:
                coerced[argument.name] = None

        return coerced

    def coerce_value(self, value: Any, type_ref: TypeRef, path: str) -> Any:
        return self._coerce_at_level(value, type_ref, 0, path)

    def _coerce_at_level(self, value: Any, type_ref: TypeRef, level: int, path: str) -> Any:
        if value is None:
            if type_ref.nullable_at(level):
                return None
            raise CoercionTypeMismatch(path, _expected(type_ref, level), value)

        if level < type_ref.list_depth:
            if not isinstance(value, list | tuple):
                raise CoercionTypeMismatch(path, _expected(type_ref, level), value)
            return [
                self._coerce_at_level(item, type_ref, level + 1, f"{path}[{index}]")
                for index, item in enumerate(value)
            ]

        return self._coerce_named(value, type_ref.name, path)

    def _coerce_named(self, value: Any, type_name: str, path: str) -> Any:
        coercer = SCALAR_COERCERS.get(type_name)
        if coercer is not None:
            result = coercer(value)
            if result is None:
                raise CoercionTypeMismatch(path, type_name, value)
            return result

        descriptor = self.registry.resolve_reference(type_name)
        if descriptor.kind == TypeKind.SCALAR:
            return value

        if not isinstance(value, Mapping):
            raise CoercionTypeMismatch(path, f"input object {type_name}", value)
        return self.coerce([field.as_argument() for field in descriptor.fields], value, path_prefix=f"{path}.")


def _expected(type_ref: TypeRef, level: int) -> str:
    if level == 0:
        return type_ref.to_sdl()
    return f"items of {type_ref.to_sdl()} at depth {level}"
