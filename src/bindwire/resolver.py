"""Class instantiation and method invocation with dependency injection.

Every function here returns either a ready value or an awaitable. The result is
synchronous whenever every injected dependency resolved synchronously; as soon
as one dependency is deferred, the whole result becomes an awaitable that must
be awaited by the caller.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from inspect import Parameter
from typing import TYPE_CHECKING, Any, TypeVar

from bindwire._internal.deferred import (
    ValueOrAwaitable,
    resolve_list,
    resolve_map,
    transform_value_or_awaitable,
)
from bindwire._internal.integrations.pydantic_settings import is_pydantic_settings_subclass
from bindwire.exceptions import BindWireInjectionMissingError, BindWireInvalidInjectionError
from bindwire.injection import CONSTRUCTOR, Injection, injectable_parameters

if TYPE_CHECKING:
    from bindwire.binding import Binding
    from bindwire.context import Context

T = TypeVar("T")

logger = logging.getLogger(__name__)

_POSITIONAL_KINDS = (Parameter.POSITIONAL_ONLY, Parameter.POSITIONAL_OR_KEYWORD)
_VARIADIC_KINDS = (Parameter.VAR_POSITIONAL, Parameter.VAR_KEYWORD)


@dataclass(slots=True)
class ResolvedArguments:
    """Positional and keyword arguments ready to be passed to a callable."""

    args: list[Any] = field(default_factory=list)
    kwargs: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class _ArgumentSlot:
    parameter: Parameter
    injection: Injection | None
    value: Any = None


def resolve_injection(context: Context, injection: Injection) -> ValueOrAwaitable[Any]:
    """Resolve a single injection against ``context``.

    A custom ``resolve`` hook takes precedence; otherwise the value of
    ``injection.binding_key`` (nested path included) is fetched from the context.
    """
    if injection.resolve is not None:
        return injection.resolve(context, injection)
    return context.get(injection.binding_key)


def resolve_injected_arguments(
    target: Any,
    context: Context,
    *,
    method_name: str | None = None,
    binding: Binding | None = None,
    non_injected_args: Sequence[Any] = (),
) -> ValueOrAwaitable[ResolvedArguments]:
    """Resolve the arguments of a constructor, method or function.

    Parameters without an injection consume ``non_injected_args`` in order.
    Once those run out, optional parameters keep their default values and a
    required parameter fails.

    Args:
        target: Class (constructor), instance or class owning ``method_name``,
            or a plain function.
        context: Context used to resolve dependencies.
        method_name: Method to describe; ``None`` for the constructor.
        binding: Binding being resolved, exposed to ``Inject.options``.
        non_injected_args: Values for parameters that are not injected.

    Raises:
        BindWireInjectionMissingError: If a required parameter is neither
            injected nor supplied.

    """
    parameters = injectable_parameters(target, method_name)
    injections = context.metadata_provider.describe_injected_arguments(target, method_name)
    if method_name is not None:
        owner, member = (target if inspect.isclass(target) else type(target)), method_name
    elif inspect.isclass(target):
        owner, member = target, CONSTRUCTOR
    else:
        owner, member = target, "__call__"
    slots = _plan_arguments(
        target=owner,
        method_name=member,
        parameters=parameters,
        injections=injections,
        non_injected_args=list(non_injected_args),
    )

    injected_slots = [slot for slot in slots if slot is not None and slot.injection is not None]
    values = resolve_list(
        injected_slots,
        lambda slot, _index: resolve_injection(context, slot.injection.for_binding(binding)),  # type: ignore[union-attr]
    )
    return transform_value_or_awaitable(
        values,
        lambda resolved: _assemble_arguments(target, slots, dict(zip(map(id, injected_slots), resolved, strict=True))),
    )


def _plan_arguments(
    *,
    target: Any,
    method_name: str,
    parameters: list[Parameter],
    injections: list[Injection | None],
    non_injected_args: list[Any],
) -> list[_ArgumentSlot | None]:
    slots: list[_ArgumentSlot | None] = []
    position = 0
    for index, parameter in enumerate(parameters):
        if parameter.kind in _VARIADIC_KINDS:
            continue
        position += 1
        injection = injections[index] if index < len(injections) else None
        if injection is not None:
            slots.append(_ArgumentSlot(parameter=parameter, injection=injection))
        elif non_injected_args:
            slots.append(_ArgumentSlot(parameter=parameter, injection=None, value=non_injected_args.pop(0)))
        elif parameter.default is not Parameter.empty:
            # Leave a gap: the callable falls back to the parameter default.
            slots.append(None)
        else:
            raise BindWireInjectionMissingError(target, method_name, position, parameter.name)
    return slots


def _assemble_arguments(
    target: Any,
    slots: list[_ArgumentSlot | None],
    resolved_by_slot: dict[int, Any],
) -> ResolvedArguments:
    arguments = ResolvedArguments()
    positional_gap = False
    for slot in slots:
        if slot is None:
            positional_gap = True
            continue
        value = resolved_by_slot[id(slot)] if slot.injection is not None else slot.value
        parameter = slot.parameter
        if parameter.kind in _POSITIONAL_KINDS and not positional_gap:
            arguments.args.append(value)
        elif parameter.kind is Parameter.POSITIONAL_ONLY:
            target_name = getattr(target, "__qualname__", repr(target))
            msg = (
                f"Cannot pass positional-only parameter '{parameter.name}' of {target_name} "
                "after a parameter that was left to its default value."
            )
            raise BindWireInvalidInjectionError(msg)
        else:
            arguments.kwargs[parameter.name] = value
    return arguments


def resolve_injected_properties(
    target: Any,
    context: Context,
    *,
    binding: Binding | None = None,
) -> ValueOrAwaitable[dict[str, Any]]:
    """Resolve every injected property declared on ``target`` and its bases."""
    injections = context.metadata_provider.describe_injected_properties(target)
    return resolve_map(
        injections,
        lambda injection, _name: resolve_injection(context, injection.for_binding(binding)),
    )


def instantiate_class(
    cls: type[T],
    context: Context,
    *,
    binding: Binding | None = None,
    non_injected_args: Sequence[Any] = (),
) -> ValueOrAwaitable[T]:
    """Create an instance of ``cls`` with constructor and property injection.

    Constructor arguments are resolved first; injected properties are resolved
    and assigned once the instance exists, in declaration order. No partially
    initialized instance is returned when a dependency fails.

    Pydantic settings classes are created without arguments so they load their
    values from the environment.

    Args:
        cls: Class to instantiate.
        context: Context used to resolve dependencies.
        binding: Binding the instance is produced for, if any.
        non_injected_args: Values for constructor parameters that are not
            injected.

    Returns:
        The instance, or an awaitable of it when any dependency is deferred.

    Raises:
        BindWireInjectionMissingError: If a required constructor parameter has
            no injection.

    Examples:
        .. code-block:: python

            context.bind("application.name").to("CodeHub")


            class InfoController:
                def __init__(self, name: Annotated[str, Inject("application.name")]) -> None:
                    self.name = name


            controller = instantiate_class(InfoController, context)

    """
    logger.debug("Instantiating %s in context %r", cls.__qualname__, context.name)
    if is_pydantic_settings_subclass(cls):
        return cls()

    arguments = resolve_injected_arguments(
        cls,
        context,
        binding=binding,
        non_injected_args=non_injected_args,
    )
    instance = transform_value_or_awaitable(
        arguments,
        lambda resolved: cls(*resolved.args, **resolved.kwargs),
    )
    return transform_value_or_awaitable(
        instance,
        lambda created: _inject_properties(created, context, binding),
    )


def _inject_properties(instance: T, context: Context, binding: Binding | None) -> ValueOrAwaitable[T]:
    properties = resolve_injected_properties(type(instance), context, binding=binding)

    def _assign(values: dict[str, Any]) -> T:
        for name, value in values.items():
            setattr(instance, name, value)
        return instance

    return transform_value_or_awaitable(properties, _assign)


def invoke_method(
    target: Any,
    method_name: str,
    context: Context,
    non_injected_args: Sequence[Any] = (),
) -> ValueOrAwaitable[Any]:
    """Call ``target.method_name`` with its injected parameters resolved.

    Args:
        target: Instance (or class, for static and class methods).
        method_name: Name of the method to invoke.
        context: Context used to resolve dependencies.
        non_injected_args: Values for the parameters that are not injected, in
            order.

    Returns:
        The method result, or an awaitable of it when any dependency is
        deferred or the method itself is a coroutine function.

    """
    method = getattr(target, method_name, None)
    if method is None or not callable(method):
        target_name = getattr(target, "__qualname__", type(target).__qualname__)
        msg = f"{target_name} has no method '{method_name}'."
        raise BindWireInvalidInjectionError(msg)

    logger.debug("Invoking %s.%s in context %r", type(target).__qualname__, method_name, context.name)
    arguments = resolve_injected_arguments(
        target,
        context,
        method_name=method_name,
        non_injected_args=non_injected_args,
    )
    return transform_value_or_awaitable(
        arguments,
        lambda resolved: method(*resolved.args, **resolved.kwargs),
    )


__all__ = [
    "ResolvedArguments",
    "instantiate_class",
    "invoke_method",
    "resolve_injected_arguments",
    "resolve_injected_properties",
    "resolve_injection",
]
