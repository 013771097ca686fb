from __future__ import annotations

import asyncio

import pytest

from bindwire._internal.resolution_stack import get_resolution_path, resolving
from bindwire.binding import Binding
from bindwire.exceptions import BindWireCircularDependencyError


def test_resolution_path_is_empty_outside_resolution() -> None:
    assert get_resolution_path() == ()


def test_resolving_tracks_nested_bindings() -> None:
    outer = Binding("outer")
    inner = Binding("inner")

    with resolving(outer):
        assert get_resolution_path() == ("outer",)
        with resolving(inner):
            assert get_resolution_path() == ("outer", "inner")
        assert get_resolution_path() == ("outer",)

    assert get_resolution_path() == ()


def test_resolving_same_binding_twice_reports_cycle() -> None:
    first = Binding("a")
    second = Binding("b")

    with resolving(first), resolving(second):
        with pytest.raises(BindWireCircularDependencyError) as exc_info:
            with resolving(first):
                pass

    assert exc_info.value.keys == ("a", "b", "a")
    assert str(exc_info.value) == "Circular dependency detected: a --> b --> a"


def test_cycle_reports_only_the_looping_part() -> None:
    root = Binding("root")
    loop = Binding("loop")

    with resolving(root), resolving(loop):
        with pytest.raises(BindWireCircularDependencyError) as exc_info:
            with resolving(loop):
                pass

    assert exc_info.value.keys == ("loop", "loop")


def test_distinct_bindings_with_same_key_are_not_a_cycle() -> None:
    parent_binding = Binding("name")
    child_binding = Binding("name")

    with resolving(parent_binding), resolving(child_binding):
        assert get_resolution_path() == ("name", "name")


def test_stack_is_restored_after_error() -> None:
    binding = Binding("failing")

    with pytest.raises(RuntimeError), resolving(binding):
        raise RuntimeError

    assert get_resolution_path() == ()


@pytest.mark.asyncio
async def test_tasks_do_not_share_resolution_path() -> None:
    binding = Binding("shared")
    seen: list[tuple[str, ...]] = []

    async def observe() -> None:
        seen.append(get_resolution_path())

    with resolving(binding):
        task = asyncio.ensure_future(observe())
    await asyncio.sleep(0)
    await task

    # The task copied the context at creation time, then the stack was popped.
    assert seen == [("shared",)]
    assert get_resolution_path() == ()
