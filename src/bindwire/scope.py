from __future__ import annotations

from enum import Enum


class BindingScope(str, Enum):
    """Define how long a binding keeps the value it produced."""

    TRANSIENT = "transient"
    """A new value is computed every time the binding is resolved."""

    SINGLETON = "singleton"
    """The first resolved value (or in-flight awaitable) is cached on the binding.

    The cache lives as long as the binding, which is owned by exactly one
    context. Child contexts that delegate to the owning context share it.
    """


__all__ = ["BindingScope"]
