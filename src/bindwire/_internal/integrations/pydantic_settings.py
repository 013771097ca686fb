from __future__ import annotations

import functools
import importlib
import types
import warnings
from typing import Any

# Each group yields at most one ``BaseSettings``; later modules in a group are
# fallbacks. pydantic 2 raises on ``pydantic.BaseSettings``, so it is only
# touched when ``pydantic.v1`` is missing.
_SETTINGS_MODULE_GROUPS = (("pydantic_settings",), ("pydantic.v1", "pydantic"))

_PYDANTIC_V1_WARNING_PATTERN = (
    r"Core Pydantic V1 functionality isn't compatible with Python 3\.14 or greater\."
)


def _import_base_settings(module_name: str) -> type[Any] | None:
    with warnings.catch_warnings():
        warnings.filterwarnings("ignore", message=_PYDANTIC_V1_WARNING_PATTERN, category=UserWarning)
        try:
            module = importlib.import_module(module_name)
        except ImportError:
            return None
    base_settings = getattr(module, "BaseSettings", None)
    return base_settings if isinstance(base_settings, type) else None


@functools.cache
def settings_bases() -> tuple[type[Any], ...]:
    """Return the importable ``BaseSettings`` classes, without duplicates.

    The lookup runs once, on first use, so importing bindwire never imports
    pydantic.
    """
    bases: list[type[Any]] = []
    for group in _SETTINGS_MODULE_GROUPS:
        for module_name in group:
            base = _import_base_settings(module_name)
            if base is None:
                continue
            if base not in bases:
                bases.append(base)
            break
    return tuple(bases)


def is_pydantic_settings_subclass(candidate: object) -> bool:
    """Return true when ``candidate`` is a class deriving from a settings base.

    Such classes are instantiated with no arguments and load their fields from
    the environment. Without pydantic installed, nothing is a settings class.
    """
    if not isinstance(candidate, type) or isinstance(candidate, types.GenericAlias):
        return False
    try:
        return any(issubclass(candidate, base) for base in settings_bases())
    except TypeError:
        return False


__all__ = ["is_pydantic_settings_subclass", "settings_bases"]
