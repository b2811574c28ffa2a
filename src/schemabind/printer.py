"""Render assembled types as GraphQL schema definition language."""

import json
from collections.abc import Iterable
from typing import Any

from schemabind.model.descriptors import ArgumentDescriptor, FieldDescriptor, TypeDescriptor, TypeKind
from schemabind.registry import RegistrySnapshot

INDENT = "  "


def print_value(value: Any) -> str:
    """Render a Python value as a GraphQL value literal."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int | float):
        return repr(value)
    if isinstance(value, str):
        return json.dumps(value, ensure_ascii=False)
    if isinstance(value, list | tuple):
        return f"[{', '.join(print_value(item) for item in value)}]"
    if isinstance(value, dict):
        return "{" + ", ".join(f"{key}: {print_value(item)}" for key, item in value.items()) + "}"
    raise TypeError(f"Cannot render {value!r} as a GraphQL value")


def print_description(description: str | None, indent: str = "") -> list[str]:
    if not description:
        return []
    escaped = description.replace('"""', '\\"""')
    if "\n" not in escaped:
        return [f'{indent}"""{escaped}"""']
    return [f'{indent}"""', *(f"{indent}{line}" if line else "" for line in escaped.splitlines()), f'{indent}"""']


def print_deprecation(reason: str | None) -> str:
    if reason is None:
        return ""
    return f" @deprecated(reason: {print_value(reason)})"


def print_argument(argument: ArgumentDescriptor) -> str:
    rendered = f"{argument.name}: {argument.type_ref.to_sdl()}"
    if argument.has_default:
        rendered += f" = {print_value(argument.default)}"
    return rendered


def print_arguments(arguments: tuple[ArgumentDescriptor, ...], indent: str) -> str:
    if not arguments:
        return ""

    if not any(argument.description for argument in arguments):
        return f"({', '.join(print_argument(argument) for argument in arguments)})"

    # One argument per line when any of them carries a description
    lines = ["("]
    for argument in arguments:
        lines.extend(print_description(argument.description, indent + INDENT))
        lines.append(f"{indent}{INDENT}{print_argument(argument)}")
    lines.append(f"{indent})")
    return "\n".join(lines)


def print_field(registry: RegistrySnapshot, field: FieldDescriptor, input_field: bool = False) -> list[str]:
    lines = print_description(field.description, INDENT)
    arguments = print_arguments(registry.arguments_of(field), INDENT)
    line = f"{INDENT}{field.name}{arguments}: {field.type_ref.to_sdl()}"
    if input_field and field.has_default:
        line += f" = {print_value(field.default)}"
    line += print_deprecation(field.deprecation_reason)
    lines.append(line)
    return lines


def print_type(registry: RegistrySnapshot, descriptor: TypeDescriptor) -> str:
    lines = print_description(descriptor.description)

    if descriptor.kind == TypeKind.SCALAR:
        lines.append(f"scalar {descriptor.name}")
        return "\n".join(lines)

    keyword = "input" if descriptor.kind == TypeKind.INPUT else "type"
    if not descriptor.fields:
        lines.append(f"{keyword} {descriptor.name}")
        return "\n".join(lines)

    lines.append(f"{keyword} {descriptor.name} {{")
    for field in descriptor.fields:
        lines.extend(print_field(registry, field, descriptor.kind == TypeKind.INPUT))
    lines.append("}")
    return "\n".join(lines)


def print_types(registry: RegistrySnapshot, types: Iterable[TypeDescriptor], sort: bool = False) -> str:
    """
    Render type definitions in the given order, or sorted by name.

    Argument bundles are not rendered as types: their fields appear as the
    arguments of the fields using them.

    Args:
        registry: The registry the types belong to
        types: Types to render
        sort: Sort types lexicographically instead of keeping declaration order

    Returns:
        str: The SDL text
    """
    printable = [descriptor for descriptor in types if descriptor.kind != TypeKind.ARGS]
    if sort:
        printable.sort(key=lambda descriptor: descriptor.name)
    return "\n\n".join(print_type(registry, descriptor) for descriptor in printable)
