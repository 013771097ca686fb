from __future__ import annotations

from collections.abc import Sequence
from typing import Any


class BindWireError(Exception):
    """Represent a base class for all bindwire-specific failures.

    Catch this type when you want to handle any bindwire error path without
    matching each concrete exception class individually.
    """


class BindWireBindingNotFoundError(BindWireError, KeyError):
    """Signal that a key has no owning binding in the context chain.

    Raised by ``Context.get``, ``Context.get_sync`` and ``Context.get_binding``
    after the local registry and every ancestor context were searched.

    Typical fixes include binding the key on the context (or one of its
    parents) before resolution, or checking ``Context.is_bound`` first.
    """

    def __init__(self, key: str, context_name: str) -> None:
        self.key = key
        self.context_name = context_name
        msg = f"The key '{key}' is not bound to any value in context '{context_name}'."
        super().__init__(msg)

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the plain message.
        return str(self.args[0])


class BindWireInjectionMissingError(BindWireError):
    """Signal a required parameter without injection metadata.

    The message names the class, the method and the 1-based argument position
    so call sites can match it, for example ``resolve.*InfoController.*argument 1``.

    Typical fix is marking the parameter with ``Annotated[T, Inject("key")]``,
    registering an explicit descriptor, or giving it a default value.
    """

    def __init__(self, target: Any, method_name: str, index: int, parameter_name: str) -> None:
        self.target = target
        self.method_name = method_name
        self.index = index
        self.parameter_name = parameter_name
        target_name = getattr(target, "__qualname__", repr(target))
        msg = (
            f"Cannot resolve injected arguments for {target_name}.{method_name}(): "
            f"argument {index} ('{parameter_name}') is not marked for injection "
            "and has no default value."
        )
        super().__init__(msg)


class BindWireResolutionMustBeSyncError(BindWireError):
    """Signal that a sync-only lookup hit a deferred resolution path.

    Raised by ``Context.get_sync`` when the binding (or one of its
    dependencies) produces an awaitable.

    Typical fix is switching to ``await context.aget(...)`` or awaiting the
    result of ``Context.get``.
    """

    def __init__(self, key: str) -> None:
        self.key = key
        msg = f"Cannot get '{key}' synchronously: the value is a promise of a value (awaitable)."
        super().__init__(msg)


class BindWireBindingLockedError(BindWireError):
    """Signal an attempt to rebind or remove a locked binding.

    Typical fix is calling ``binding.unlock()`` explicitly before the binding
    is reconfigured.
    """

    def __init__(self, key: str) -> None:
        self.key = key
        msg = f"Cannot rebind key '{key}' to a locked binding."
        super().__init__(msg)


class BindWireBindingNotConfiguredError(BindWireError):
    """Signal resolution of a binding that has no value strategy yet.

    Raised by ``Binding.get_value`` until one of ``to``, ``to_dynamic_value``,
    ``to_class`` or ``to_provider`` was applied.
    """

    def __init__(self, key: str) -> None:
        self.key = key
        msg = f"No value was configured for binding '{key}'."
        super().__init__(msg)


class BindWireInvalidBindingKeyError(BindWireError, ValueError):
    """Signal a binding key that cannot be registered.

    Keys must be non-empty strings and must not contain the ``#`` property
    separator, which is reserved for nested path lookups.
    """

    def __init__(self, key: object) -> None:
        self.key = key
        msg = (
            f"Invalid binding key {key!r}: keys must be non-empty strings without the '#' "
            "property separator."
        )
        super().__init__(msg)


class BindWireInvalidInjectionError(BindWireError):
    """Signal invalid injection configuration.

    Raised for malformed ``to_dynamic_value`` arguments, provider classes
    without a ``value()`` method, and injection markers used on unsupported
    members.
    """


class BindWireExtensionPointMissingError(BindWireError):
    """Signal registration of an extension for an unbound extension point.

    Typical fix is registering the extension point first with
    ``Application.extension_point``.
    """

    def __init__(self, extension_point: str) -> None:
        self.extension_point = extension_point
        msg = f"Extension point {extension_point} does not exist."
        super().__init__(msg)


class BindWireExtensionNotFoundError(BindWireError):
    """Signal lookup of an extension name that is not registered for a point."""

    def __init__(self, extension_point: str, extension_name: str) -> None:
        self.extension_point = extension_point
        self.extension_name = extension_name
        msg = f"Extension {extension_name} does not exist for extension point {extension_point}."
        super().__init__(msg)


class BindWireCircularDependencyError(BindWireError):
    """Signal a resolution cycle between bindings.

    Raised when a binding is requested again while its own value is still
    being produced, for example ``a`` depends on ``b`` which depends on ``a``.
    """

    def __init__(self, keys: Sequence[str]) -> None:
        self.keys = tuple(keys)
        chain = " --> ".join(self.keys)
        msg = f"Circular dependency detected: {chain}"
        super().__init__(msg)


__all__ = [
    "BindWireBindingLockedError",
    "BindWireBindingNotConfiguredError",
    "BindWireBindingNotFoundError",
    "BindWireCircularDependencyError",
    "BindWireError",
    "BindWireExtensionNotFoundError",
    "BindWireExtensionPointMissingError",
    "BindWireInjectionMissingError",
    "BindWireInvalidBindingKeyError",
    "BindWireInvalidInjectionError",
    "BindWireResolutionMustBeSyncError",
]
