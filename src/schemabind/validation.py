"""Constraint validation backed by pydantic.

Constraint tags are ``name:value`` strings attached to fields and arguments, for
example ``min_length:3`` or ``pattern:^[a-z]+$``. They are translated into
pydantic ``Field`` constraints and checked with a ``TypeAdapter``.
"""

from functools import lru_cache
from typing import Annotated, Any

from pydantic import Field, TypeAdapter, ValidationError

from schemabind.errors import InvalidDeclaration

NUMBER_TYPES: tuple[type, ...] = (int, float)
SIZED_TYPES: tuple[type, ...] = (str, list)

# Constraint name → value types it applies to
CONSTRAINT_TARGETS: dict[str, tuple[type, ...]] = {
    "min_length": SIZED_TYPES,
    "max_length": SIZED_TYPES,
    "pattern": (str,),
    "gt": NUMBER_TYPES,
    "ge": NUMBER_TYPES,
    "lt": NUMBER_TYPES,
    "le": NUMBER_TYPES,
    "multiple_of": NUMBER_TYPES,
}


def parse_constraint(tag: str) -> tuple[str, Any]:
    """Split a ``name:value`` tag and convert the value to what the constraint takes.

    Raises:
        InvalidDeclaration: If the tag is malformed or names an unknown constraint
    """
    name, separator, raw = tag.partition(":")
    name = name.strip()
    if not separator or name not in CONSTRAINT_TARGETS:
        raise InvalidDeclaration(f"Unknown constraint tag '{tag}'")

    if name == "pattern":
        return name, raw
    try:
        if name in ("min_length", "max_length"):
            return name, int(raw)
        number = float(raw)
        return name, int(number) if number.is_integer() and "." not in raw else number
    except ValueError:
        raise InvalidDeclaration(f"Constraint tag '{tag}' has a malformed value") from None


def _value_type(value: Any) -> type | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, list | tuple):
        return list
    for candidate in (str, int, float):
        if isinstance(value, candidate):
            return candidate
    return None


@lru_cache(maxsize=256)
def _adapter(value_type: type, constraints: tuple[tuple[str, Any], ...]) -> TypeAdapter[Any]:
    return TypeAdapter(Annotated[value_type, Field(**dict(constraints))])


class PydanticConstraintValidator:
    """Checks constraint tags with pydantic. Values of other types than the constraint targets are rejected."""

    def validate(self, value: Any, constraints: list[str]) -> list[str]:
        if value is None or not constraints:
            return []

        value_type = _value_type(value)
        violations: list[str] = []
        applicable: list[tuple[str, Any]] = []
        for tag in constraints:
            name, limit = parse_constraint(tag)
            if value_type is None or value_type not in CONSTRAINT_TARGETS[name]:
                violations.append(f"'{name}' does not apply to a value of type {type(value).__name__}")
                continue
            applicable.append((name, limit))

        if value_type is None or not applicable:
            return violations

        try:
            _adapter(value_type, tuple(applicable)).validate_python(list(value) if value_type is list else value)
        except ValidationError as error:
            violations.extend(detail["msg"] for detail in error.errors())
        return violations
