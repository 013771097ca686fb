"""Application: a root context that composes controllers, servers and components."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Mapping
from typing import Any, Protocol, TypeVar, runtime_checkable

from typing_extensions import TypedDict

from bindwire._internal.deferred import is_deferred
from bindwire.binding import Binding
from bindwire.context import Context
from bindwire.exceptions import BindWireExtensionPointMissingError
from bindwire.extension_point import CONFIG_KEY, EXTENSION_POINT_TAG_PREFIX, NAME_TAG_PREFIX
from bindwire.injection import MetadataProvider
from bindwire.scope import BindingScope

ServerT = TypeVar("ServerT", bound="Server")

logger = logging.getLogger(__name__)


class CoreBindings:
    """Well-known binding keys and key prefixes of an ``Application``."""

    APPLICATION_INSTANCE = "application.instance"
    APPLICATION_CONFIG = "application.config"
    SERVERS = "servers"
    CONTROLLERS = "controllers"
    COMPONENTS = "components"
    EXTENSION_POINTS = "extensionPoints"


@runtime_checkable
class Server(Protocol):
    """A long-running service started and stopped with the application."""

    async def start(self) -> None: ...

    async def stop(self) -> None: ...


class Component(Protocol):
    """A bundle of artifacts mounted into an application.

    Both attributes are optional: ``controllers`` lists controller classes and
    ``providers`` maps binding keys to provider classes.
    """

    controllers: Iterable[type[Any]]
    providers: Mapping[str, type[Any]]


class ApplicationConfig(TypedDict, total=False):
    """Entries of the application configuration understood by ``Application``.

    Any other entry is kept as is and exposed at ``application.config``.
    """

    components: Iterable[type[Any]]
    controllers: Iterable[type[Any]]
    servers: Mapping[str, type[Any]]


class Application(Context):
    """Root context that hosts the artifacts of an application.

    The application binds itself at ``application.instance`` and its
    configuration at ``application.config`` so that any class can inject them.
    Components, controllers and servers listed in the configuration are
    registered on construction.

    Examples:
        .. code-block:: python

            app = Application({"servers": {"rest": RestServer}})
            app.controller(ProductController)
            await app.start()

    Args:
        config: Application configuration; see ``ApplicationConfig``.
        name: Name of the root context.
        metadata_provider: Source of injection metadata.

    """

    def __init__(
        self,
        config: ApplicationConfig | Mapping[str, Any] | None = None,
        *,
        name: str = "application",
        metadata_provider: MetadataProvider | None = None,
    ) -> None:
        super().__init__(name=name, metadata_provider=metadata_provider)
        self.config: Mapping[str, Any] = config if config is not None else {}

        self.bind(CoreBindings.APPLICATION_INSTANCE).to(self)
        self.bind(CoreBindings.APPLICATION_CONFIG).to(self.config)

        for component_cls in self.config.get("components", ()):
            self.component(component_cls)
        for server_name, server_cls in self.config.get("servers", {}).items():
            self.server(server_cls, server_name)
        for controller_cls in self.config.get("controllers", ()):
            self.controller(controller_cls)

    def controller(self, controller_cls: type[Any], name: str | None = None) -> Binding:
        """Register a controller class at ``controllers.<name>``.

        Args:
            controller_cls: The controller class.
            name: Controller name; defaults to the class name.

        Returns:
            The new binding, which can be configured further (for example
            locked).

        """
        name = name or controller_cls.__name__
        return self.bind(f"{CoreBindings.CONTROLLERS}.{name}").to_class(controller_cls).tag("controller")

    def server(self, server_cls: type[ServerT], name: str | None = None) -> Binding:
        """Register a server class as a singleton at ``servers.<name>``.

        Args:
            server_cls: The server class.
            name: Server name; defaults to the class name.

        """
        name = name or server_cls.__name__
        return (
            self.bind(f"{CoreBindings.SERVERS}.{name}")
            .to_class(server_cls)
            .tag("server")
            .in_scope(BindingScope.SINGLETON)
        )

    def servers(self, server_classes: Iterable[type[Server]]) -> list[Binding]:
        """Register several server classes, each named after its class."""
        return [self.server(server_cls) for server_cls in server_classes]

    async def get_server(self, target: type[ServerT] | str) -> ServerT:
        """Return the singleton server registered for a class or a name."""
        name = target if isinstance(target, str) else target.__name__
        return await self.aget(f"{CoreBindings.SERVERS}.{name}")

    async def start(self) -> None:
        """Start every registered server concurrently."""
        logger.info("Starting application %r", self.name)
        await self._for_each_server("start")

    async def stop(self) -> None:
        """Stop every registered server concurrently."""
        logger.info("Stopping application %r", self.name)
        await self._for_each_server("stop")

    async def _for_each_server(self, method_name: str) -> None:
        async def _run(binding: Binding) -> None:
            server = await self.aget(binding.key)
            logger.info("Calling %s() on server %r", method_name, binding.key)
            result = getattr(server, method_name)()
            if is_deferred(result):
                await result

        bindings = self.find(f"{CoreBindings.SERVERS}.*")
        await asyncio.gather(*(_run(binding) for binding in bindings))

    def component(self, component_cls: type[Any], name: str | None = None) -> Binding:
        """Register a component and mount the artifacts it contributes.

        The component is bound as a singleton at ``components.<name>`` and
        instantiated immediately, so its dependencies must resolve
        synchronously. Its ``controllers`` are registered and each entry of its
        ``providers`` mapping is bound to the provider class.

        Raises:
            BindWireResolutionMustBeSyncError: If the component cannot be
                created synchronously.

        """
        name = name or component_cls.__name__
        key = f"{CoreBindings.COMPONENTS}.{name}"
        binding = self.bind(key).to_class(component_cls).in_scope(BindingScope.SINGLETON).tag("component")
        instance = self.get_sync(key)
        self.mount_component(instance)
        logger.info("Mounted component %r in application %r", name, self.name)
        return binding

    def mount_component(self, component: Component | Any) -> None:
        """Register the controllers and providers of a component instance."""
        for controller_cls in getattr(component, "controllers", None) or ():
            self.controller(controller_cls)
        providers: Mapping[str, type[Any]] = getattr(component, "providers", None) or {}
        for provider_key, provider_cls in providers.items():
            self.bind(provider_key).to_provider(provider_cls)

    def extension_point(self, extension_point_cls: type[Any], name: str | None = None) -> Binding:
        """Register an extension point class as a singleton.

        Args:
            extension_point_cls: The extension point class.
            name: Binding key of the extension point; defaults to
                ``extensionPoints.<ClassName>``.

        """
        name = name or f"{CoreBindings.EXTENSION_POINTS}.{extension_point_cls.__name__}"
        return (
            self.bind(name)
            .to_class(extension_point_cls)
            .in_scope(BindingScope.SINGLETON)
            .tag("extensionPoint", f"{NAME_TAG_PREFIX}{name}")
        )

    def extension(
        self,
        extension_point_name: str,
        extension_cls: type[Any],
        name: str | None = None,
    ) -> Binding:
        """Register an extension of a bound extension point.

        Args:
            extension_point_name: Name of the extension point.
            extension_cls: The extension class.
            name: Extension name; defaults to the class name.

        Raises:
            BindWireExtensionPointMissingError: If the extension point is not
                bound.

        """
        if not self.is_bound(extension_point_name):
            raise BindWireExtensionPointMissingError(extension_point_name)
        name = name or extension_cls.__name__
        return (
            self.bind(f"{extension_point_name}.{name}")
            .to_class(extension_cls)
            .tag(f"{EXTENSION_POINT_TAG_PREFIX}{extension_point_name}", f"{NAME_TAG_PREFIX}{name}")
        )

    def extension_point_config(self, extension_point_name: str, config: Any) -> Binding:
        """Bind the configuration of an extension point."""
        return self.bind(f"{extension_point_name}.{CONFIG_KEY}").to(config)

    def extension_config(self, extension_point_name: str, extension_name: str, config: Any) -> Binding:
        """Bind the configuration of one extension."""
        return self.bind(f"{extension_point_name}.{extension_name}.{CONFIG_KEY}").to(config)

    async def get_extension_point(self, extension_point_name: str) -> Any:
        """Resolve an extension point with its configuration bound at ``config``."""
        config_key = f"{extension_point_name}.{CONFIG_KEY}"
        config = await self.aget(config_key) if self.is_bound(config_key) else {}
        extension_point_context = self.create_child(name=extension_point_name)
        extension_point_context.bind(CONFIG_KEY).to(config)
        return await extension_point_context.aget(extension_point_name)


__all__ = [
    "Application",
    "ApplicationConfig",
    "Component",
    "CoreBindings",
    "Server",
]
