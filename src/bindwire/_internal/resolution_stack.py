from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from typing import TYPE_CHECKING

from bindwire.exceptions import BindWireCircularDependencyError

if TYPE_CHECKING:
    from bindwire.binding import Binding

# Bindings whose strategy is running synchronously in the current thread/task.
# Tasks copy the variable on creation, so parallel resolutions never share it.
_resolution_stack: ContextVar[tuple[Binding, ...]] = ContextVar(
    "bindwire_resolution_stack",
    default=(),
)


def get_resolution_path() -> tuple[str, ...]:
    """Return the keys of the bindings currently being resolved, outermost first."""
    return tuple(binding.key for binding in _resolution_stack.get())


@contextmanager
def resolving(binding: Binding) -> Iterator[None]:
    """Track ``binding`` as in-progress while its strategy runs.

    Raises:
        BindWireCircularDependencyError: If ``binding`` is already in progress.

    """
    stack = _resolution_stack.get()
    for position, entry in enumerate(stack):
        if entry is binding:
            cycle = [item.key for item in stack[position:]]
            cycle.append(binding.key)
            raise BindWireCircularDependencyError(cycle)

    token = _resolution_stack.set((*stack, binding))
    try:
        yield
    finally:
        _resolution_stack.reset(token)


__all__ = ["get_resolution_path", "resolving"]
