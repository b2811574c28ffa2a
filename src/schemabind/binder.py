import inspect
from collections.abc import Awaitable, Callable, Mapping
from types import MappingProxyType
from typing import Any, Protocol, cast

from schemabind import log
from schemabind.coercion import ArgumentCoercionEngine, ConstraintValidator
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
    FieldDescriptor,
    ParamSource,
    ResolverDescriptor,
    TypeDescriptor,
    TypeKind,
)
from schemabind.model.graphql_type import is_root_type
from schemabind.registry import RegistrySnapshot

FieldKey = tuple[str, str]


class ResolverFactory(Protocol):
    """Dependency-injection collaborator supplying resolver class instances."""

    def instantiate(self, class_name: str) -> Any: ...


class MappingFactory:
    """Factory serving instances that were built elsewhere, looked up by class name."""

    def __init__(self, instances: Mapping[str, Any]) -> None:
        self.instances = dict(instances)

    def instantiate(self, class_name: str) -> Any:
        try:
            return self.instances[class_name]
        except KeyError:
            raise ResolverInstantiationError(f"No instance available for resolver class '{class_name}'") from None


def read_property(parent: Any, field_name: str) -> Any:
    if parent is None:
        return None
    if isinstance(parent, Mapping):
        return parent.get(field_name)
    return getattr(parent, field_name, None)


class ResolverBindings:
    """Final (type, field) → resolver mapping, plus the request-time entry point.

    Instances are immutable and hold no per-request state, so they can be shared
    by any number of concurrent requests.
    """

    def __init__(
        self,
        registry: RegistrySnapshot,
        targets: dict[FieldKey, Any],
        handlers: dict[FieldKey, Callable[..., Any]],
        engine: ArgumentCoercionEngine,
    ) -> None:
        self.registry = registry
        self._targets: Mapping[FieldKey, Any] = MappingProxyType(targets)
        self._handlers: Mapping[FieldKey, Callable[..., Any]] = MappingProxyType(handlers)
        self.engine = engine

    def bind(self, type_name: str, field_name: str) -> ResolverDescriptor | Any:
        """Return the resolver of a field, or DEFAULT_PROPERTY_ACCESS.

        Raises:
            KeyError: If the field is not part of an object type of the schema
        """
        return self._targets[(type_name, field_name)]

    def explicit_resolvers(self) -> list[ResolverDescriptor]:
        return [target for target in self._targets.values() if target is not DEFAULT_PROPERTY_ACCESS]

    def items(self) -> list[tuple[FieldKey, Any]]:
        return list(self._targets.items())

    def resolve(
        self,
        type_name: str,
        field_name: str,
        parent: Any,
        info: Any = None,
        raw_args: Mapping[str, Any] | None = None,
        context: Any = None,
    ) -> Any:
        """Resolve one field selection.

        Args:
            type_name: Type the field belongs to
            field_name: Public field name
            parent: Value produced for the enclosing selection (the root value for operations)
            info: Executor resolve info, passed through to handlers asking for it
            raw_args: Arguments as supplied by the request
            context: Request context, taken from ``info.context`` when not given

        Returns:
            The handler's value, or an awaitable of it for asynchronous handlers

        Raises:
            FieldError: If coercion or the handler fails. Only this field is affected.
        """
        try:
            target = self.bind(type_name, field_name)
            if target is DEFAULT_PROPERTY_ACCESS:
                return read_property(parent, field_name)
            result = self._invoke(target, parent, info, raw_args or {}, context)
        except Exception as error:
            raise FieldError(type_name, field_name, error) from error

        if inspect.isawaitable(result):
            return self._await_result(type_name, field_name, result)
        return result

    async def _await_result(self, type_name: str, field_name: str, awaitable: Awaitable[Any]) -> Any:
        try:
            return await awaitable
        except Exception as error:
            raise FieldError(type_name, field_name, error) from error

    def _invoke(
        self, descriptor: ResolverDescriptor, parent: Any, info: Any, raw_args: Mapping[str, Any], context: Any
    ) -> Any:
        owner = self.registry.resolve_reference(descriptor.type_name)
        field = owner.get_field(descriptor.field_name)
        if field is None:
            raise InvalidDeclaration(
                f"Resolver for '{descriptor.type_name}.{descriptor.field_name}' targets an undeclared field"
            )
        arguments = self.engine.coerce_field(field, raw_args)

        if context is None and info is not None:
            context = getattr(info, "context", None)

        positional: list[Any] = []
        keywords: dict[str, Any] = {}
        for param in descriptor.plan:
            if param.source == ParamSource.ROOT:
                value = parent
            elif param.source == ParamSource.INFO:
                value = info
            elif param.source == ParamSource.CONTEXT:
                value = context if param.key is None else read_property(context, param.key)
            elif param.source == ParamSource.ARGS:
                value = arguments if param.key is None else arguments[param.key]
            else:
                value = dict(raw_args) if param.key is None else raw_args.get(param.key)

            if param.name is None:
                positional.append(value)
            else:
                keywords[param.name] = value

        handler = self._handlers[descriptor.key]
        return handler(*positional, **keywords)

    def make_field_resolver(self, type_name: str, field_name: str) -> Callable[..., Any]:
        """Build a resolver with the ``(parent, info, **args)`` signature graphql-core expects."""

        def resolve_field(parent: Any, info: Any, **kwargs: Any) -> Any:
            return self.resolve(type_name, field_name, parent, info, kwargs)

        resolve_field.__name__ = f"resolve_{type_name}_{field_name}"
        return resolve_field


class ResolverBinder:
    """Maps (type, field) pairs to resolver descriptors and checks every field is served.

    Keys are the public type and field names given at registration; they never
    depend on handler names.
    """

    def __init__(self) -> None:
        self._resolvers: dict[FieldKey, ResolverDescriptor] = {}
        self._bindings: ResolverBindings | None = None

    def register_resolver(self, descriptor: ResolverDescriptor) -> None:
        if self._bindings is not None:
            raise RuntimeError("Resolvers cannot be registered after finalize()")

        existing = self._resolvers.get(descriptor.key)
        if existing is not None:
            raise ConflictingDeclaration(
                f"{descriptor.type_name}.{descriptor.field_name}",
                f"resolved by both {existing.handler_name} and {descriptor.handler_name}",
                (existing.site, descriptor.site),
            )
        if isinstance(descriptor.handler, str) and descriptor.owner is None:
            raise InvalidDeclaration(f"Resolver '{descriptor.handler}' names a method but no resolver class")

        self._resolvers[descriptor.key] = descriptor
        log.debug(f"Registered resolver {descriptor.handler_name} for '{descriptor.type_name}.{descriptor.field_name}'")

    def bind(self, type_name: str, field_name: str) -> ResolverDescriptor | Any:
        if self._bindings is None:
            raise RuntimeError("bind() is only available after finalize()")
        return self._bindings.bind(type_name, field_name)

    def finalize(
        self,
        registry: RegistrySnapshot,
        factory: ResolverFactory | None = None,
        validator: ConstraintValidator | None = None,
    ) -> ResolverBindings:
        """Bind every field of every object type.

        Args:
            registry: Finalized type registry
            factory: Supplies instances for resolvers declared on resolver classes
            validator: Constraint validation collaborator used during argument coercion

        Returns:
            ResolverBindings: The immutable bindings

        Raises:
            DanglingReference: If a resolver targets an unknown type, field or argument
            ParentTypeMismatch: If a field resolver expects a parent of another type
            UnresolvedField: If a field has neither a resolver nor a property to fall back on
            ResolverInstantiationError: If a resolver class instance cannot be obtained
        """
        if self._bindings is not None:
            return self._bindings

        for descriptor in self._resolvers.values():
            _check_resolver(registry, descriptor)

        targets: dict[FieldKey, Any] = {}
        for type_descriptor in registry.types_of_kind(TypeKind.OBJECT):
            for field in type_descriptor.fields:
                targets[(type_descriptor.name, field.name)] = self._bind_field(registry, type_descriptor, field)

        handlers = self._instantiate_handlers(factory)
        engine = ArgumentCoercionEngine(registry, validator)
        self._bindings = ResolverBindings(registry, targets, handlers, engine)

        log.info(
            f"Bound {len(targets)} fields: {len(self._resolvers)} explicit resolvers, "
            f"{len(targets) - len(self._resolvers)} default property reads"
        )
        return self._bindings

    def _bind_field(
        self, registry: RegistrySnapshot, type_descriptor: TypeDescriptor, field: FieldDescriptor
    ) -> ResolverDescriptor | Any:
        explicit = self._resolvers.get((type_descriptor.name, field.name))
        if explicit is not None:
            return explicit

        if is_root_type(type_descriptor.name):
            raise UnresolvedField(type_descriptor.name, field.name, "top-level operations need an explicit resolver")

        properties = type_descriptor.properties
        if properties is None or field.name in properties:
            return DEFAULT_PROPERTY_ACCESS
        if registry.resolve_reference(field.type_ref.name).kind == TypeKind.SCALAR:
            return DEFAULT_PROPERTY_ACCESS

        raise UnresolvedField(
            type_descriptor.name,
            field.name,
            f"values of '{type_descriptor.name}' carry no '{field.name}' property and no resolver is registered",
        )

    def _instantiate_handlers(self, factory: ResolverFactory | None) -> dict[FieldKey, Callable[..., Any]]:
        instances: dict[str, Any] = {}
        handlers: dict[FieldKey, Callable[..., Any]] = {}

        for key, descriptor in self._resolvers.items():
            if not isinstance(descriptor.handler, str):
                handlers[key] = descriptor.handler
                continue

            # Method-name handlers always carry their class, checked at registration
            owner = cast(str, descriptor.owner)
            if owner not in instances:
                if factory is None:
                    raise ResolverInstantiationError(
                        f"Resolver class '{owner}' needs an instance but no resolver factory was given"
                    )
                instances[owner] = factory.instantiate(owner)
                log.debug(f"Obtained instance of resolver class '{owner}'")

            handler = getattr(instances[owner], descriptor.handler, None)
            if not callable(handler):
                raise ResolverInstantiationError(f"Resolver class '{owner}' has no method '{descriptor.handler}'")
            handlers[key] = handler

        return handlers


def _check_resolver(registry: RegistrySnapshot, descriptor: ResolverDescriptor) -> None:
    owner = f"resolver {descriptor.handler_name}"
    type_descriptor = registry.get(descriptor.type_name)
    if type_descriptor is None:
        raise DanglingReference(owner, descriptor.type_name, descriptor.site)
    if type_descriptor.kind != TypeKind.OBJECT:
        raise InvalidTypeUsage(owner, f"'{descriptor.type_name}' is not an object type")

    field = type_descriptor.get_field(descriptor.field_name)
    if field is None:
        raise DanglingReference(owner, f"{descriptor.type_name}.{descriptor.field_name}", descriptor.site)

    if (
        not is_root_type(descriptor.type_name)
        and descriptor.parent_type is not None
        and descriptor.parent_type != descriptor.type_name
    ):
        raise ParentTypeMismatch(descriptor.type_name, descriptor.field_name, descriptor.parent_type)

    argument_names = {argument.name for argument in registry.arguments_of(field)}
    for param in descriptor.plan:
        if param.source in (ParamSource.ARGS, ParamSource.RAW_ARG) and param.key is not None:
            if param.key not in argument_names:
                raise DanglingReference(
                    owner, f"argument '{param.key}' of {descriptor.type_name}.{descriptor.field_name}", descriptor.site
                )
