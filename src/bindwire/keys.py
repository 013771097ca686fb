from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

PROPERTY_SEPARATOR = "#"
"""Separator between a binding key and a nested property path (``config#db.url``)."""


@dataclass(frozen=True, slots=True)
class BindingKey:
    """A binding key with an optional nested property path.

    ``BindingKey.parse("config#db.url")`` addresses the ``db.url`` property of
    the value bound to ``config``. Keys without the separator have no path.

    Examples:
        .. code-block:: python

            key = BindingKey.parse("config#db.url")
            assert key.key == "config"
            assert key.path == "db.url"

    """

    key: str
    path: str | None = None

    @classmethod
    def parse(cls, value: str) -> BindingKey:
        """Split ``value`` into the binding key and the property path.

        Args:
            value: Binding key, optionally followed by ``#`` and a dotted path.

        """
        key, separator, path = value.partition(PROPERTY_SEPARATOR)
        return cls(key=key, path=path if separator else None)

    def __str__(self) -> str:
        if self.path is None:
            return self.key
        return f"{self.key}{PROPERTY_SEPARATOR}{self.path}"


def normalize_property_path(path: str | None) -> str:
    """Turn an option path such as ``#x#y`` into the dotted form ``x.y``."""
    if not path:
        return ""
    path = path.removeprefix(PROPERTY_SEPARATOR)
    return path.replace(PROPERTY_SEPARATOR, ".")


def get_deep_property(value: Any, path: str | None) -> Any:
    """Walk ``path`` (dot-separated) into ``value``.

    Mappings are indexed by key, other objects are read by attribute. Missing
    segments yield ``None`` instead of raising. An empty path returns ``value``
    itself.

    Args:
        value: Root object to project.
        path: Dotted property path, for example ``db.url``.

    """
    if not path:
        return value
    current = value
    for segment in path.split("."):
        if current is None:
            return None
        if isinstance(current, Mapping):
            current = current.get(segment)
        else:
            current = getattr(current, segment, None)
    return current


__all__ = [
    "PROPERTY_SEPARATOR",
    "BindingKey",
    "get_deep_property",
    "normalize_property_path",
]
