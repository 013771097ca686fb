from __future__ import annotations

import asyncio
from typing import Any

import pytest

from bindwire._internal.deferred import (
    SharedAwaitable,
    discard_deferred,
    is_deferred,
    resolve_list,
    resolve_map,
    share_awaitables,
    transform_value_or_awaitable,
)


async def _later(value: Any) -> Any:
    await asyncio.sleep(0)
    return value


async def _fail(message: str) -> Any:
    await asyncio.sleep(0)
    raise RuntimeError(message)


def test_is_deferred_detects_awaitables() -> None:
    coroutine = _later(1)

    assert is_deferred(coroutine) is True
    assert is_deferred(1) is False
    assert is_deferred(None) is False

    coroutine.close()


def test_discard_deferred_closes_coroutines() -> None:
    coroutine = _later(1)

    discard_deferred(coroutine)

    assert coroutine.cr_frame is None


def test_discard_deferred_ignores_plain_values() -> None:
    discard_deferred("value")


def test_transform_value_or_awaitable_stays_sync_for_values() -> None:
    assert transform_value_or_awaitable(2, lambda value: value * 10) == 20


@pytest.mark.asyncio
async def test_transform_value_or_awaitable_defers_for_awaitables() -> None:
    result = transform_value_or_awaitable(_later(2), lambda value: value * 10)

    assert is_deferred(result)
    assert await result == 20


@pytest.mark.asyncio
async def test_transform_value_or_awaitable_flattens_nested_awaitables() -> None:
    result = transform_value_or_awaitable(_later(2), lambda value: _later(value + 1))

    assert await result == 3


def test_resolve_list_stays_sync_when_every_item_is_ready() -> None:
    assert resolve_list(["a", "b"], lambda item, index: f"{item}{index}") == ["a0", "b1"]


@pytest.mark.asyncio
async def test_resolve_list_keeps_order_with_mixed_items() -> None:
    result = resolve_list([1, 2, 3], lambda item, _index: _later(item) if item % 2 else item)

    assert is_deferred(result)
    assert await result == [1, 2, 3]


@pytest.mark.asyncio
async def test_resolve_list_propagates_first_failure() -> None:
    result = resolve_list(["boom"], lambda item, _index: _fail(item))

    with pytest.raises(RuntimeError, match="boom"):
        await result


def test_resolve_list_closes_pending_coroutines_when_resolver_raises() -> None:
    created: list[Any] = []

    def resolver(item: int, _index: int) -> Any:
        if item == 2:
            msg = "resolver failed"
            raise ValueError(msg)
        coroutine = _later(item)
        created.append(coroutine)
        return coroutine

    with pytest.raises(ValueError, match="resolver failed"):
        resolve_list([1, 2], resolver)

    assert created[0].cr_frame is None


def test_resolve_map_stays_sync_when_every_value_is_ready() -> None:
    assert resolve_map({"a": 1, "b": 2}, lambda value, key: f"{key}={value}") == {"a": "a=1", "b": "b=2"}


@pytest.mark.asyncio
async def test_resolve_map_keeps_key_order() -> None:
    result = resolve_map({"z": 1, "a": 2}, lambda value, _key: _later(value))

    resolved = await result

    assert list(resolved) == ["z", "a"]
    assert resolved == {"z": 1, "a": 2}


@pytest.mark.asyncio
async def test_shared_awaitable_runs_once_for_concurrent_awaiters() -> None:
    calls = 0

    async def compute() -> str:
        nonlocal calls
        calls += 1
        await asyncio.sleep(0.01)
        return "value"

    shared = SharedAwaitable(compute())

    assert shared.started is False
    results = await asyncio.gather(shared, shared, shared)

    assert results == ["value", "value", "value"]
    assert calls == 1
    assert shared.started is True
    assert await shared == "value"


@pytest.mark.asyncio
async def test_shared_awaitable_repeats_the_same_exception() -> None:
    shared = SharedAwaitable(_fail("shared failure"))

    with pytest.raises(RuntimeError, match="shared failure"):
        await shared
    with pytest.raises(RuntimeError, match="shared failure"):
        await shared


@pytest.mark.asyncio
async def test_shared_awaitable_repr_reports_state() -> None:
    shared = SharedAwaitable(_later(1))

    assert repr(shared).startswith("<SharedAwaitable pending")
    await shared
    assert repr(shared).startswith("<SharedAwaitable started")


def test_share_awaitables_keeps_plain_values() -> None:
    options = {"x": 1, "nested": {"y": "a"}}

    assert share_awaitables(options) is options
    assert share_awaitables(None) is None


@pytest.mark.asyncio
async def test_share_awaitables_wraps_nested_awaitables() -> None:
    shared = share_awaitables({"x": _later(1), "nested": {"y": _later(2)}, "z": 3})

    assert isinstance(shared["x"], SharedAwaitable)
    assert isinstance(shared["nested"]["y"], SharedAwaitable)
    assert shared["z"] == 3
    assert await shared["x"] == 1
    assert await shared["x"] == 1
    assert await shared["nested"]["y"] == 2


@pytest.mark.asyncio
async def test_share_awaitables_shares_the_awaited_result() -> None:
    shared = share_awaitables(_later({"x": _later(1)}))

    first = await shared
    second = await shared

    assert first is second
    assert await first["x"] == 1
    assert await second["x"] == 1


def test_share_awaitables_keeps_shared_awaitables() -> None:
    shared = SharedAwaitable(_later(1))

    assert share_awaitables(shared) is shared

    shared._awaitable.close()  # type: ignore[attr-defined]
