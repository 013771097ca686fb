from __future__ import annotations

import logging
from abc import ABC
from typing import Any, Generic, TypeVar

from typing_extensions import TypedDict

from bindwire._internal.deferred import ValueOrAwaitable, is_deferred, transform_value_or_awaitable
from bindwire.binding import Binding
from bindwire.context import Context
from bindwire.exceptions import BindWireExtensionNotFoundError

ExtensionT = TypeVar("ExtensionT")

logger = logging.getLogger(__name__)

EXTENSION_POINT_TAG_PREFIX = "extensionPoint:"
"""Prefix of the tag linking an extension binding to its extension point."""

NAME_TAG_PREFIX = "name:"
"""Prefix of the tag carrying an extension or extension point name."""

CONFIG_KEY = "config"
"""Key bound in the child context created for an extension (or extension point)."""


class ExtensionPointConfig(TypedDict, total=False):
    """Shape of the default extension point configuration.

    Arbitrary extra entries are allowed at runtime; ``extensions`` holds
    per-extension settings keyed by extension name.
    """

    extensionPoint: dict[str, Any]
    extensions: dict[str, Any]


class ExtensionPoint(ABC, Generic[ExtensionT]):
    """Base class for extension points.

    An extension point groups the extensions bound under its name. Extensions
    are ordinary bindings tagged ``extensionPoint:<name>`` (to belong to the
    point) and ``name:<extension>`` (to be found by name). Configuration is
    stored in the context under ``<name>.config`` for the point itself and
    ``<name>.<extension>.config`` for each extension.

    Subclasses usually receive their collaborators through injection:

    Examples:
        .. code-block:: python

            class AuthenticationStrategies(ExtensionPoint[Strategy]):
                def __init__(
                    self,
                    context: Annotated[Context, Inject.context()],
                    config: Annotated[dict[str, Any], Inject("config")],
                ) -> None:
                    super().__init__("authentication.strategies", context, config)

    Args:
        name: Unique name of the extension point; also the key prefix of its
            extensions.
        context: Context used to look extensions up.
        config: Configuration of the extension point itself.

    """

    def __init__(
        self,
        name: str,
        context: Context,
        config: ExtensionPointConfig | dict[str, Any] | None = None,
    ) -> None:
        self.name = name
        self.context = context
        if config is None:
            config = {"extensionPoint": {}, "extensions": {}}
        self.config: ExtensionPointConfig | dict[str, Any] = config

    def get_all_extension_bindings(self) -> list[Binding]:
        """Return the bindings of every extension visible from the context."""
        return self.context.find_by_tag(f"{EXTENSION_POINT_TAG_PREFIX}{self.name}")

    def get_extension_binding_map(self) -> dict[str, Binding]:
        """Return extension bindings keyed by their binding key."""
        return {binding.key: binding for binding in self.get_all_extension_bindings()}

    def get_extension_binding(self, extension_name: str) -> Binding:
        """Return the binding of the extension named ``extension_name``.

        Raises:
            BindWireExtensionNotFoundError: If no extension of this point
                carries that name.

        """
        name_tag = f"{NAME_TAG_PREFIX}{extension_name}"
        for binding in self.get_all_extension_bindings():
            if name_tag in binding.tags:
                return binding
        raise BindWireExtensionNotFoundError(self.name, extension_name)

    def get_configuration(self) -> ValueOrAwaitable[Any]:
        """Return the value bound at ``<name>.config``, or ``{}`` when unbound."""
        return self._get_config(f"{self.name}.{CONFIG_KEY}")

    def get_extension_configuration(self, extension_name: str) -> ValueOrAwaitable[Any]:
        """Return the value bound at ``<name>.<extension_name>.config``, or ``{}``."""
        return self._get_config(f"{self.name}.{extension_name}.{CONFIG_KEY}")

    def get_extension(self, extension_name: str) -> ValueOrAwaitable[ExtensionT]:
        """Resolve the extension named ``extension_name``.

        The extension is resolved in a child of the extension point context in
        which ``config`` is bound to the extension configuration, so the
        extension can inject it with ``Inject("config")``.

        Raises:
            BindWireExtensionNotFoundError: If the extension does not exist.

        """
        binding = self.get_extension_binding(extension_name)
        configuration = self.get_extension_configuration(extension_name)

        def _resolve(config: Any) -> ValueOrAwaitable[ExtensionT]:
            extension_context = self.context.create_child(name=f"{self.name}.{extension_name}")
            extension_context.bind(CONFIG_KEY).to(config)
            logger.debug("Resolving extension %r of extension point %r", extension_name, self.name)
            return binding.get_value(extension_context)

        return transform_value_or_awaitable(configuration, _resolve)

    async def aget_extension(self, extension_name: str) -> ExtensionT:
        """Resolve the extension named ``extension_name`` and await it if needed."""
        extension = self.get_extension(extension_name)
        if is_deferred(extension):
            return await extension
        return extension

    def _get_config(self, key: str) -> ValueOrAwaitable[Any]:
        if not self.context.is_bound(key):
            return {}
        return self.context.get(key)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} name={self.name!r}>"


__all__ = [
    "CONFIG_KEY",
    "EXTENSION_POINT_TAG_PREFIX",
    "NAME_TAG_PREFIX",
    "ExtensionPoint",
    "ExtensionPointConfig",
]
