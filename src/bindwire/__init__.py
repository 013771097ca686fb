from bindwire.application import Application, CoreBindings, Server
from bindwire.binding import Binding, Provider
from bindwire.context import Context
from bindwire.exceptions import (
    BindWireBindingLockedError,
    BindWireBindingNotConfiguredError,
    BindWireBindingNotFoundError,
    BindWireCircularDependencyError,
    BindWireError,
    BindWireExtensionNotFoundError,
    BindWireExtensionPointMissingError,
    BindWireInjectionMissingError,
    BindWireInvalidBindingKeyError,
    BindWireInvalidInjectionError,
    BindWireResolutionMustBeSyncError,
)
from bindwire.extension_point import ExtensionPoint, ExtensionPointConfig
from bindwire.injection import Injection, InjectionMetadata, MetadataProvider
from bindwire.keys import PROPERTY_SEPARATOR, BindingKey, get_deep_property
from bindwire.markers import Getter, Inject, Setter
from bindwire.resolver import (
    instantiate_class,
    invoke_method,
    resolve_injected_arguments,
    resolve_injected_properties,
)
from bindwire.scope import BindingScope

__all__ = [
    "PROPERTY_SEPARATOR",
    "Application",
    "BindWireBindingLockedError",
    "BindWireBindingNotConfiguredError",
    "BindWireBindingNotFoundError",
    "BindWireCircularDependencyError",
    "BindWireError",
    "BindWireExtensionNotFoundError",
    "BindWireExtensionPointMissingError",
    "BindWireInjectionMissingError",
    "BindWireInvalidBindingKeyError",
    "BindWireInvalidInjectionError",
    "BindWireResolutionMustBeSyncError",
    "Binding",
    "BindingKey",
    "BindingScope",
    "Context",
    "CoreBindings",
    "ExtensionPoint",
    "ExtensionPointConfig",
    "Getter",
    "Inject",
    "Injection",
    "InjectionMetadata",
    "MetadataProvider",
    "Provider",
    "Server",
    "Setter",
    "get_deep_property",
    "instantiate_class",
    "invoke_method",
    "resolve_injected_arguments",
    "resolve_injected_properties",
]
