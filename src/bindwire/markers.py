from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Annotated, Any, TypeAlias, get_args, get_origin

from bindwire._internal.deferred import transform_value_or_awaitable
from bindwire.keys import get_deep_property, normalize_property_path

if TYPE_CHECKING:
    from bindwire.context import Context
    from bindwire.injection import Injection


ResolverFunction: TypeAlias = "Callable[[Context, Injection], Any]"
"""Custom resolution hook: ``(context, injection) -> value | awaitable``."""

Getter: TypeAlias = Callable[[], Any]
"""The function injected by ``Inject.getter``; returns a value or an awaitable."""

Setter: TypeAlias = Callable[[Any], None]
"""The function injected by ``Inject.setter``."""


@dataclass(frozen=True, slots=True)
class Inject:
    """Mark a constructor parameter, method parameter or property for injection.

    Attach the marker to ``typing.Annotated`` metadata. Without a custom
    ``resolve`` hook, the value is fetched from the resolving context with
    ``context.get(binding_key)``; the key may carry a nested path
    (``config#db.url``).

    Examples:
        .. code-block:: python

            class InfoController:
                user: Annotated[str, Inject("authentication.user")]

                def __init__(
                    self,
                    app_name: Annotated[str, Inject("application.name")],
                ) -> None:
                    self.app_name = app_name

    """

    binding_key: str
    metadata: Mapping[str, Any] | None = None
    resolve: ResolverFunction | None = None

    @classmethod
    def getter(cls, binding_key: str, metadata: Mapping[str, Any] | None = None) -> Inject:
        """Inject a function that looks ``binding_key`` up each time it is called.

        Useful when the dependency is bound (or re-bound) after the consumer was
        created; the getter always observes the current binding.
        """
        return cls(binding_key, metadata, resolve_as_getter)

    @classmethod
    def setter(cls, binding_key: str, metadata: Mapping[str, Any] | None = None) -> Inject:
        """Inject a function that binds ``binding_key`` to a constant value."""
        return cls(binding_key, metadata, resolve_as_setter)

    @classmethod
    def options(cls, binding_key: str = "", metadata: Mapping[str, Any] | None = None) -> Inject:
        """Inject a value from the ``options`` of the binding being resolved.

        ``binding_key`` is a property path into the options (``x#y`` or
        ``#x``); an empty path injects the whole options object. Missing options
        or missing path segments inject ``None``.
        """
        return cls(binding_key, metadata, resolve_as_options)

    @classmethod
    def context(cls, metadata: Mapping[str, Any] | None = None) -> Inject:
        """Inject the context that is performing the resolution."""
        return cls("", metadata, resolve_as_context)


def resolve_as_getter(context: Context, injection: Injection) -> Getter:
    def getter() -> Any:
        return context.get(injection.binding_key)

    return getter


def resolve_as_setter(context: Context, injection: Injection) -> Setter:
    def setter(value: Any) -> None:
        context.bind(injection.binding_key).to(value)

    return setter


def resolve_as_options(context: Context, injection: Injection) -> Any:
    _ = context
    if injection.binding is None:
        # Plain instantiate_class() calls have no owning binding.
        return None

    path = normalize_property_path(injection.binding_key)
    return transform_value_or_awaitable(
        injection.binding.options,
        lambda options: get_deep_property(options, path),
    )


def resolve_as_context(context: Context, injection: Injection) -> Context:
    _ = injection
    return context


def find_inject_marker(annotation: Any) -> Inject | None:
    """Return the first ``Inject`` marker of an ``Annotated`` hint, if any."""
    if get_origin(annotation) is not Annotated:
        return None
    for item in get_args(annotation)[1:]:
        if isinstance(item, Inject):
            return item
    return None


__all__ = [
    "Getter",
    "Inject",
    "ResolverFunction",
    "Setter",
    "find_inject_marker",
    "resolve_as_context",
    "resolve_as_getter",
    "resolve_as_options",
    "resolve_as_setter",
]
