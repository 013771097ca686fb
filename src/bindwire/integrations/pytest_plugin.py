from __future__ import annotations

import functools
import inspect
from collections.abc import Callable, Iterator
from typing import Any, cast

import pytest

from bindwire._internal.deferred import discard_deferred, is_deferred
from bindwire.context import Context
from bindwire.exceptions import BindWireResolutionMustBeSyncError
from bindwire.injection import Injection, describe_injected_arguments
from bindwire.resolver import resolve_injection

InjectedParameters = tuple[tuple[str, Injection], ...]

_BINDWIRE_CONTEXT_ATTR = "_bindwire_context"
_BINDWIRE_INJECTED_PARAMETERS_ATTR = "__bindwire_pytest_injected_parameters__"


@pytest.fixture()
def bindwire_context() -> Context:
    """Create a per-test root context used by the plugin.

    Test parameters annotated with ``Annotated[T, Inject("key")]`` are resolved
    from this context. Override the fixture to bind the values your tests need.

    Returns:
        A new, empty ``Context`` named ``"pytest"``.

    """
    return Context(name="pytest")


@pytest.fixture(autouse=True)
def _bindwire_state(
    request: pytest.FixtureRequest,
    bindwire_context: Context,
) -> None:
    """Store plugin state on the test node for hook access."""
    node = cast("Any", request.node)
    setattr(node, _BINDWIRE_CONTEXT_ATTR, bindwire_context)


def inspect_injected_parameters(func: Callable[..., Any]) -> InjectedParameters:
    """Return ``(parameter name, injection)`` pairs declared by ``func``."""
    try:
        parameters = list(inspect.signature(func).parameters.values())
        injections = describe_injected_arguments(func)
    except (TypeError, ValueError):
        return ()
    return tuple(
        (parameter.name, injection)
        for parameter, injection in zip(parameters, injections, strict=False)
        if injection is not None
    )


def pytest_pycollect_makeitem(
    collector: Any,
    name: str,
    obj: object,
) -> Any | None:
    """Hide injected parameters from pytest fixture name matching.

    Pytest treats every test function parameter as a fixture name. For test
    functions that declare ``Inject`` markers, the injected parameters are
    recorded on the function and removed from its public signature.

    Returns:
        ``None`` to continue the default collection flow.

    """
    if not callable(obj):
        return None
    if not collector.istestfunction(obj, name):
        return None

    func = cast("Callable[..., Any]", obj)
    injected = inspect_injected_parameters(func)
    if not injected:
        return None

    injected_names = {parameter_name for parameter_name, _ in injected}
    signature = inspect.signature(func)
    public_signature = signature.replace(
        parameters=[parameter for parameter in signature.parameters.values() if parameter.name not in injected_names],
    )
    func_as_any = cast("Any", func)
    func_as_any.__dict__[_BINDWIRE_INJECTED_PARAMETERS_ATTR] = injected
    func_as_any.__signature__ = public_signature
    return None


@pytest.hookimpl(hookwrapper=True, tryfirst=True)
def pytest_runtest_call(item: pytest.Item) -> Iterator[None]:
    """Swap the test callable for one that resolves injected parameters.

    The swap happens before the test runs, so async test runners (such as
    pytest-asyncio) wrap the injecting coroutine rather than the original one.
    Items without recorded injections or without plugin state are left alone.

    Yields:
        Control back to pytest around test execution.

    """
    function_item = cast("Any", item)
    original_callable = getattr(function_item, "obj", None)
    injected = cast(
        "InjectedParameters | None",
        getattr(original_callable, _BINDWIRE_INJECTED_PARAMETERS_ATTR, None),
    )
    context = cast("Context | None", getattr(function_item, _BINDWIRE_CONTEXT_ATTR, None))
    if not injected or context is None:
        yield
        return

    function_item.obj = build_injecting_callable(original_callable, injected, context)
    try:
        yield
    finally:
        function_item.obj = original_callable


def build_injecting_callable(
    func: Callable[..., Any],
    injected: InjectedParameters,
    context: Context,
) -> Callable[..., Any]:
    """Wrap ``func`` so that injected parameters are resolved from ``context``.

    Coroutine functions get an async wrapper that awaits deferred values;
    plain functions require every injected value to be synchronous. Values
    passed explicitly by the caller are kept.
    """
    if inspect.iscoroutinefunction(func):

        @functools.wraps(func)
        async def _invoke_async(*args: Any, **kwargs: Any) -> Any:
            for parameter_name, injection in injected:
                if parameter_name in kwargs:
                    continue
                value = resolve_injection(context, injection)
                kwargs[parameter_name] = await value if is_deferred(value) else value
            return await func(*args, **kwargs)

        return _invoke_async

    @functools.wraps(func)
    def _invoke(*args: Any, **kwargs: Any) -> Any:
        for parameter_name, injection in injected:
            if parameter_name in kwargs:
                continue
            value = resolve_injection(context, injection)
            if is_deferred(value):
                discard_deferred(value)
                raise BindWireResolutionMustBeSyncError(injection.binding_key)
            kwargs[parameter_name] = value
        return func(*args, **kwargs)

    return _invoke


__all__ = [
    "bindwire_context",
    "build_injecting_callable",
    "inspect_injected_parameters",
    "pytest_pycollect_makeitem",
    "pytest_runtest_call",
]
