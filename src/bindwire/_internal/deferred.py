from __future__ import annotations

import asyncio
import inspect
from collections.abc import Awaitable, Callable, Generator, Iterable, Mapping
from typing import Any, Generic, TypeAlias, TypeGuard, TypeVar

T = TypeVar("T")
R = TypeVar("R")
K = TypeVar("K")

ValueOrAwaitable: TypeAlias = T | Awaitable[T]
"""Either a ready value or an awaitable that produces it."""


def is_deferred(value: object) -> TypeGuard[Awaitable[Any]]:
    """Return true when ``value`` must be awaited before it can be used."""
    return inspect.isawaitable(value)


def discard_deferred(value: object) -> None:
    """Close a coroutine that will never be awaited.

    Shared awaitables are left untouched because other callers may still await
    them.
    """
    if inspect.iscoroutine(value):
        value.close()


def transform_value_or_awaitable(
    value: ValueOrAwaitable[T],
    transformer: Callable[[T], ValueOrAwaitable[R]],
) -> ValueOrAwaitable[R]:
    """Apply ``transformer`` now for ready values, or after awaiting otherwise.

    An awaitable returned by ``transformer`` on the deferred path is awaited as
    well, so the result never nests awaitables.
    """
    if is_deferred(value):
        return _transform_later(value, transformer)
    return transformer(value)


async def _transform_later(
    awaitable: Awaitable[T],
    transformer: Callable[[T], ValueOrAwaitable[R]],
) -> R:
    result = transformer(await awaitable)
    if is_deferred(result):
        return await result
    return result


def resolve_list(
    items: Iterable[K],
    resolver: Callable[[K, int], ValueOrAwaitable[T]],
) -> ValueOrAwaitable[list[T]]:
    """Resolve every item, staying synchronous unless some result is deferred.

    Deferred results are awaited concurrently and the output keeps the input
    order. The first failure propagates.

    Args:
        items: Items to resolve.
        resolver: Called with each item and its index.

    """
    values: list[Any] = []
    try:
        for index, item in enumerate(items):
            values.append(resolver(item, index))
    except BaseException:
        for value in values:
            discard_deferred(value)
        raise

    if not any(is_deferred(value) for value in values):
        return values
    return _gather_list(values)


async def _gather_list(values: list[Any]) -> list[Any]:
    pending_indexes = [index for index, value in enumerate(values) if is_deferred(value)]
    results = await asyncio.gather(*(values[index] for index in pending_indexes))
    resolved = list(values)
    for index, result in zip(pending_indexes, results, strict=True):
        resolved[index] = result
    return resolved


def resolve_map(
    items: Mapping[str, K],
    resolver: Callable[[K, str], ValueOrAwaitable[T]],
) -> ValueOrAwaitable[dict[str, T]]:
    """Resolve every mapping value, keeping the mapping's iteration order.

    Args:
        items: Mapping to resolve.
        resolver: Called with each value and its key.

    """
    names = list(items)
    resolved = resolve_list(names, lambda name, _index: resolver(items[name], name))
    return transform_value_or_awaitable(
        resolved,
        lambda values: dict(zip(names, values, strict=True)),
    )


class SharedAwaitable(Generic[T]):
    """Let many callers await one underlying awaitable exactly once.

    The wrapped awaitable is scheduled as a task on first await; later (and
    concurrent) awaiters receive the same result or the same exception.
    """

    __slots__ = ("_awaitable", "_future")

    def __init__(self, awaitable: Awaitable[T]) -> None:
        self._awaitable = awaitable
        self._future: asyncio.Future[T] | None = None

    def __await__(self) -> Generator[Any, None, T]:
        if self._future is None:
            self._future = asyncio.ensure_future(self._awaitable)
        return self._future.__await__()

    @property
    def started(self) -> bool:
        """Return true once some caller awaited the shared value."""
        return self._future is not None

    def __repr__(self) -> str:
        state = "started" if self.started else "pending"
        return f"<SharedAwaitable {state} {self._awaitable!r}>"


def share_awaitables(value: Any) -> Any:
    """Wrap awaitables, including those nested in mappings, in ``SharedAwaitable``.

    A value that is read many times (such as binding options) may then hand out
    the same awaitable repeatedly. Mappings are copied only when one of their
    values was wrapped.
    """
    if isinstance(value, SharedAwaitable):
        return value
    if is_deferred(value):
        return SharedAwaitable(_share_result(value))
    if isinstance(value, Mapping):
        shared = {key: share_awaitables(item) for key, item in value.items()}
        if all(shared[key] is item for key, item in value.items()):
            return value
        return shared
    return value


async def _share_result(awaitable: Awaitable[Any]) -> Any:
    return share_awaitables(await awaitable)


__all__ = [
    "SharedAwaitable",
    "ValueOrAwaitable",
    "discard_deferred",
    "is_deferred",
    "resolve_list",
    "resolve_map",
    "share_awaitables",
    "transform_value_or_awaitable",
]
