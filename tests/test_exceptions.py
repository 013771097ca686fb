"""Tests for the exception hierarchy and error messages."""

from typing import Annotated

import pytest

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
from bindwire.markers import Inject
from bindwire.scope import BindingScope


class ServiceA:
    def __init__(self, b: Annotated["ServiceB", Inject("service.b")]) -> None:
        self.b = b


class ServiceB:
    def __init__(self, a: Annotated[ServiceA, Inject("service.a")]) -> None:
        self.a = a


class SelfReferencing:
    itself: Annotated["SelfReferencing", Inject("service.self")]


@pytest.mark.parametrize(
    "error_cls",
    [
        BindWireBindingLockedError,
        BindWireBindingNotConfiguredError,
        BindWireBindingNotFoundError,
        BindWireCircularDependencyError,
        BindWireExtensionNotFoundError,
        BindWireExtensionPointMissingError,
        BindWireInjectionMissingError,
        BindWireInvalidBindingKeyError,
        BindWireInvalidInjectionError,
        BindWireResolutionMustBeSyncError,
    ],
)
def test_all_errors_derive_from_base(error_cls: type[Exception]) -> None:
    assert issubclass(error_cls, BindWireError)


class TestBindWireCircularDependencyError:
    def test_constructor_cycle_is_detected(self, context: Context) -> None:
        context.bind("service.a").to_class(ServiceA)
        context.bind("service.b").to_class(ServiceB)

        with pytest.raises(BindWireCircularDependencyError) as exc_info:
            context.get("service.a")

        assert exc_info.value.keys == ("service.a", "service.b", "service.a")
        assert str(exc_info.value) == "Circular dependency detected: service.a --> service.b --> service.a"

    def test_property_cycle_is_detected(self, context: Context) -> None:
        context.bind("service.self").to_class(SelfReferencing)

        with pytest.raises(BindWireCircularDependencyError) as exc_info:
            context.get("service.self")

        assert exc_info.value.keys == ("service.self", "service.self")

    def test_singleton_cycle_is_detected(self, context: Context) -> None:
        context.bind("service.a").to_class(ServiceA).in_scope(BindingScope.SINGLETON)
        context.bind("service.b").to_class(ServiceB).in_scope(BindingScope.SINGLETON)

        with pytest.raises(BindWireCircularDependencyError):
            context.get("service.b")

    def test_dynamic_value_cycle_is_detected(self, context: Context) -> None:
        context.bind("a").to_dynamic_value(lambda b: b, "b")
        context.bind("b").to_dynamic_value(lambda a: a, "a")

        with pytest.raises(BindWireCircularDependencyError, match="a --> b --> a"):
            context.get("a")

    def test_context_recovers_after_cycle(self, context: Context) -> None:
        context.bind("service.a").to_class(ServiceA)
        context.bind("service.b").to_class(ServiceB)
        with pytest.raises(BindWireCircularDependencyError):
            context.get("service.a")

        context.bind("service.b").to("plain")

        assert context.get_sync("service.a").b == "plain"

    def test_same_key_in_sibling_positions_is_not_a_cycle(self, context: Context) -> None:
        context.bind("name").to("x")
        context.bind("pair").to_dynamic_value(lambda first, second: (first, second), "name", "name")

        assert context.get_sync("pair") == ("x", "x")


class TestBindWireInjectionMissingError:
    def test_attributes_and_message(self, context: Context) -> None:
        class Controller:
            def __init__(self, name: str) -> None:
                self.name = name

        with pytest.raises(BindWireInjectionMissingError) as exc_info:
            context.bind("controller").to_class(Controller)
            context.get("controller")

        error = exc_info.value
        assert error.target is Controller
        assert error.index == 1
        assert error.parameter_name == "name"
        assert str(error).endswith(
            ".Controller.__init__(): argument 1 ('name') is not marked for injection and has no default value.",
        )


class TestBindWireResolutionMustBeSyncError:
    def test_message_names_key(self, context: Context) -> None:
        async def load() -> int:
            return 1

        context.bind("async.value").to_dynamic_value(load)

        with pytest.raises(BindWireResolutionMustBeSyncError, match="'async.value'"):
            context.get_sync("async.value")


class TestBindWireBindingLockedError:
    def test_message_names_key(self, context: Context) -> None:
        context.bind("locked").to(1).lock()

        with pytest.raises(BindWireBindingLockedError, match="Cannot rebind key 'locked' to a locked binding."):
            context.bind("locked")


class TestExtensionErrors:
    def test_extension_not_found_message(self) -> None:
        error = BindWireExtensionNotFoundError("authentication.strategies", "saml")

        assert error.extension_point == "authentication.strategies"
        assert error.extension_name == "saml"
        assert str(error) == "Extension saml does not exist for extension point authentication.strategies."

    def test_extension_point_missing_message(self) -> None:
        error = BindWireExtensionPointMissingError("authentication.strategies")

        assert error.extension_point == "authentication.strategies"
        assert str(error) == "Extension point authentication.strategies does not exist."
