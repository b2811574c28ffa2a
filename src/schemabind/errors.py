from typing import Any


class SchemaBindError(Exception):
    """Base class of every error raised by schemabind."""


# Build phase
# ----------
class BuildError(SchemaBindError):
    """Raised while collecting declarations or assembling the schema. Always fatal."""


class DuplicateType(BuildError):
    def __init__(self, type_name: str, sites: list[str | None]) -> None:
        self.type_name = type_name
        self.sites = sites
        super().__init__(f"Type '{type_name}' is registered more than once (sites: {_format_sites(sites)})")


class UnknownType(BuildError):
    def __init__(self, type_name: str) -> None:
        self.type_name = type_name
        super().__init__(f"Unknown type '{type_name}'")


class DanglingReference(BuildError):
    def __init__(self, owner: str, reference: str, site: str | None = None) -> None:
        self.owner = owner
        self.reference = reference
        self.site = site
        location = f" (declared at {site})" if site else ""
        super().__init__(f"'{owner}' references unknown type '{reference}'{location}")


class InvalidTypeUsage(BuildError):
    def __init__(self, owner: str, message: str) -> None:
        self.owner = owner
        super().__init__(f"'{owner}': {message}")


class InvalidDeclaration(BuildError):
    pass


class ContradictoryNullability(InvalidDeclaration):
    def __init__(self, owner: str, message: str) -> None:
        self.owner = owner
        super().__init__(f"'{owner}' has contradictory nullability: {message}")


class AmbiguousNumericType(InvalidDeclaration):
    def __init__(self, owner: str, type_name: str) -> None:
        self.owner = owner
        self.type_name = type_name
        super().__init__(
            f"'{owner}' is declared with the ambiguous numeric type '{type_name}'. "
            "Declare it explicitly as Int or Float."
        )


class ConflictingDeclaration(BuildError):
    def __init__(self, owner: str, message: str, sites: tuple[str | None, str | None]) -> None:
        self.owner = owner
        self.sites = sites
        super().__init__(f"Conflicting declarations for '{owner}': {message} (sites: {_format_sites(list(sites))})")


class UnresolvedField(BuildError):
    def __init__(self, type_name: str, field_name: str, reason: str) -> None:
        self.type_name = type_name
        self.field_name = field_name
        super().__init__(f"Field '{type_name}.{field_name}' has no resolver: {reason}")


class ParentTypeMismatch(BuildError):
    def __init__(self, type_name: str, field_name: str, parent_type: str) -> None:
        self.type_name = type_name
        self.field_name = field_name
        self.parent_type = parent_type
        super().__init__(
            f"Resolver for '{type_name}.{field_name}' expects a parent of type '{parent_type}', "
            f"but the field belongs to '{type_name}'"
        )


class ResolverInstantiationError(BuildError):
    pass


# Request phase
# ----------
class CoercionError(SchemaBindError):
    """Raised while coercing the arguments of a single field. Scoped to that field."""

    code = "COERCION_ERROR"

    def __init__(self, path: str, message: str) -> None:
        self.path = path
        super().__init__(f"Argument '{path}' {message}")

    @property
    def extensions(self) -> dict[str, Any]:
        return {"code": self.code, "argument": self.path}


class MissingRequiredArgument(CoercionError):
    code = "MISSING_REQUIRED_ARGUMENT"

    def __init__(self, path: str) -> None:
        super().__init__(path, "is required but was not provided")


class CoercionTypeMismatch(CoercionError):
    code = "COERCION_TYPE_MISMATCH"

    def __init__(self, path: str, expected: str, value: Any) -> None:
        self.expected = expected
        self.value = value
        super().__init__(path, f"expected {expected}, got {value!r}")


class ConstraintViolation(CoercionError):
    code = "CONSTRAINT_VIOLATION"

    def __init__(self, path: str, violations: list[str]) -> None:
        self.violations = violations
        super().__init__(path, f"violates constraints: {'; '.join(violations)}")


class FieldError(SchemaBindError):
    """Failure of one field resolution, attached by the executor to that field only."""

    def __init__(self, type_name: str, field_name: str, cause: Exception) -> None:
        self.type_name = type_name
        self.field_name = field_name
        self.cause = cause
        super().__init__(f"Error resolving '{type_name}.{field_name}': {cause}")

    @property
    def extensions(self) -> dict[str, Any]:
        if isinstance(self.cause, CoercionError):
            return self.cause.extensions
        return {"code": "RESOLVER_ERROR"}


def _format_sites(sites: list[str | None]) -> str:
    return ", ".join(site or "<unknown>" for site in sites)
