from __future__ import annotations

import dataclasses
import inspect
import sys
import threading
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol

from bindwire.exceptions import BindWireInvalidInjectionError
from bindwire.markers import Inject, ResolverFunction, find_inject_marker

if TYPE_CHECKING:
    from bindwire.binding import Binding

CONSTRUCTOR = "__init__"
"""Member name used for constructor injections in descriptors and diagnostics."""


@dataclass(frozen=True, slots=True)
class Injection:
    """Describe one injection point: what to resolve and how.

    ``binding`` is only set while a class is instantiated for a binding (see
    ``Binding.to_class``); ``Inject.options`` relies on it to find the owning
    binding's ``options``.
    """

    binding_key: str
    metadata: Mapping[str, Any] | None = None
    resolve: ResolverFunction | None = None
    binding: Binding | None = None
    target: Any = None
    """Class (or function) that declared the injection."""
    member: str | None = None
    """Method or property name that declared the injection."""
    index: int | None = None
    """0-based parameter position for argument injections."""

    @classmethod
    def from_marker(
        cls,
        marker: Inject,
        *,
        target: Any,
        member: str,
        index: int | None = None,
    ) -> Injection:
        """Build a descriptor from an ``Inject`` marker."""
        return cls(
            binding_key=marker.binding_key,
            metadata=marker.metadata,
            resolve=marker.resolve,
            target=target,
            member=member,
            index=index,
        )

    def for_binding(self, binding: Binding | None) -> Injection:
        """Return a copy bound to the binding whose value is being produced."""
        if binding is None or binding is self.binding:
            return self
        return dataclasses.replace(self, binding=binding)


class MetadataProvider(Protocol):
    """Supply injection descriptors for classes, methods and functions."""

    def describe_injected_arguments(
        self,
        target: Any,
        method_name: str | None = None,
    ) -> list[Injection | None]:
        """Return descriptors by parameter position; ``None`` marks a plain parameter.

        Args:
            target: Class (constructor when ``method_name`` is ``None``),
                instance, or plain function.
            method_name: Method whose parameters are described.

        """
        ...

    def describe_injected_properties(self, target: Any) -> dict[str, Injection]:
        """Return property descriptors merged along the class hierarchy.

        Args:
            target: Class (or instance) whose properties are described.

        """
        ...


class InjectionMetadata:
    """Default metadata provider.

    Descriptors come from two sources:

    * ``typing.Annotated[T, Inject(...)]`` hints on constructor/method
      parameters and on class-level attribute annotations;
    * an explicit table filled with ``register_argument`` and
      ``register_property``, for classes that cannot be annotated.

    Explicit registrations win over annotations for the same member. Results
    are cached per target and invalidated on registration.
    """

    def __init__(self) -> None:
        self._explicit_arguments: dict[tuple[Any, str], dict[int, Inject]] = {}
        self._explicit_properties: dict[Any, dict[str, Inject]] = {}
        self._arguments_cache: dict[tuple[Any, str], list[Injection | None]] = {}
        self._properties_cache: dict[Any, dict[str, Injection]] = {}
        self._lock = threading.Lock()

    def register_argument(
        self,
        target: Any,
        index: int,
        marker: Inject,
        *,
        method_name: str | None = None,
    ) -> None:
        """Declare an injection for a parameter position.

        Args:
            target: Class owning the constructor or method.
            index: 0-based parameter position, ``self`` excluded.
            marker: Injection marker to apply.
            method_name: Method name; ``None`` for the constructor.

        """
        if index < 0:
            msg = f"Parameter index must not be negative, got {index}."
            raise BindWireInvalidInjectionError(msg)
        with self._lock:
            member = method_name or CONSTRUCTOR
            self._explicit_arguments.setdefault((target, member), {})[index] = marker
            self._arguments_cache.clear()

    def register_property(self, target: type[Any], name: str, marker: Inject) -> None:
        """Declare an injection for an instance attribute of ``target``."""
        if not inspect.isclass(target):
            msg = f"Property injection requires a class, got {target!r}."
            raise BindWireInvalidInjectionError(msg)
        with self._lock:
            self._explicit_properties.setdefault(target, {})[name] = marker
            self._properties_cache.clear()

    def describe_injected_arguments(
        self,
        target: Any,
        method_name: str | None = None,
    ) -> list[Injection | None]:
        owner = _owner_class(target, method_name)
        member = method_name or CONSTRUCTOR
        cache_key = (owner, member)
        cached = self._arguments_cache.get(cache_key)
        if cached is not None:
            return cached

        callable_obj = _described_callable(target, owner, method_name)
        parameters = injectable_parameters(target, method_name)
        globalns = _callable_globals(callable_obj)
        explicit = self._find_explicit_arguments(owner, member)

        injections: list[Injection | None] = []
        for index, parameter in enumerate(parameters):
            marker = explicit.get(index)
            if marker is None:
                annotation = _evaluate_annotation(
                    parameter.annotation,
                    globalns,
                    None,
                    owner=owner,
                    member=f"{member}() parameter '{parameter.name}'",
                )
                marker = find_inject_marker(annotation)
            if marker is None:
                injections.append(None)
                continue
            injections.append(
                Injection.from_marker(marker, target=owner, member=member, index=index),
            )

        self._arguments_cache[cache_key] = injections
        return injections

    def describe_injected_properties(self, target: Any) -> dict[str, Injection]:
        owner = target if inspect.isclass(target) else type(target)
        cached = self._properties_cache.get(owner)
        if cached is not None:
            return cached

        injections: dict[str, Injection] = {}
        for klass in owner.__mro__:
            if klass is object:
                continue
            # Subclass declarations shadow the ones of their bases.
            for name, marker in self._own_property_markers(klass).items():
                if name not in injections:
                    injections[name] = Injection.from_marker(marker, target=klass, member=name)

        self._properties_cache[owner] = injections
        return injections

    def _find_explicit_arguments(self, owner: Any, member: str) -> dict[int, Inject]:
        if not inspect.isclass(owner):
            return self._explicit_arguments.get((owner, member), {})
        for klass in owner.__mro__:
            explicit = self._explicit_arguments.get((klass, member))
            if explicit is not None:
                return explicit
            if member in vars(klass):
                break
        return {}

    def _own_property_markers(self, klass: type[Any]) -> dict[str, Inject]:
        markers: dict[str, Inject] = {}
        init_fields = _dataclass_init_fields(klass)
        module = sys.modules.get(klass.__module__)
        globalns = vars(module) if module is not None else {}
        localns = dict(vars(klass))
        for name, annotation in inspect.get_annotations(klass).items():
            if name in init_fields:
                # Dataclass fields are injected through the generated __init__.
                continue
            resolved = _evaluate_annotation(annotation, globalns, localns, owner=klass, member=name)
            marker = find_inject_marker(resolved)
            if marker is not None:
                markers[name] = marker
        markers.update(self._explicit_properties.get(klass, {}))
        return markers


def injectable_parameters(target: Any, method_name: str | None = None) -> list[inspect.Parameter]:
    """Return the parameters a caller must supply, ``self``/``cls`` excluded."""
    if method_name is None:
        return list(inspect.signature(target).parameters.values())

    owner = _owner_class(target, method_name)
    callable_obj = _described_callable(target, owner, method_name)
    parameters = list(inspect.signature(callable_obj).parameters.values())
    if isinstance(inspect.getattr_static(owner, method_name), staticmethod):
        return parameters
    return parameters[1:]


def _owner_class(target: Any, method_name: str | None) -> Any:
    if inspect.isclass(target):
        return target
    if method_name is None:
        # A plain function describes its own parameters.
        return target
    return type(target)


def _described_callable(target: Any, owner: Any, method_name: str | None) -> Callable[..., Any]:
    if method_name is None:
        if inspect.isclass(target):
            return target.__init__
        if callable(target):
            return target
        msg = f"Cannot describe injections of {target!r}: it is neither a class nor callable."
        raise BindWireInvalidInjectionError(msg)

    member = inspect.getattr_static(owner, method_name, None)
    if member is None:
        msg = f"{owner.__qualname__} has no method '{method_name}'."
        raise BindWireInvalidInjectionError(msg)
    if isinstance(member, (staticmethod, classmethod)):
        return member.__func__
    return member


def _callable_globals(callable_obj: Callable[..., Any]) -> dict[str, Any]:
    return getattr(inspect.unwrap(callable_obj), "__globals__", {})


def _evaluate_annotation(
    annotation: Any,
    globalns: dict[str, Any],
    localns: dict[str, Any] | None,
    *,
    owner: Any,
    member: str,
) -> Any:
    """Evaluate one string annotation, leaving other annotations untouched.

    Annotations are evaluated one at a time so that a single unresolvable
    hint (typically a name imported under ``TYPE_CHECKING``) does not hide the
    ``Inject`` markers of its neighbours. An unresolvable plain type hint is
    returned as is, since it cannot carry a marker.

    Raises:
        BindWireInvalidInjectionError: If an unresolvable annotation uses
            ``Annotated`` or ``Inject`` and may therefore hide a marker.

    """
    if not isinstance(annotation, str):
        return annotation
    try:
        return eval(annotation, globalns, localns)  # noqa: S307
    except (AttributeError, NameError, SyntaxError, TypeError) as error:
        if "Annotated" not in annotation and "Inject" not in annotation:
            return annotation
        owner_name = getattr(owner, "__qualname__", repr(owner))
        msg = (
            f"Cannot evaluate the annotation {annotation!r} of {owner_name}.{member}: {error}. "
            "Make every name used in an injected annotation available at runtime."
        )
        raise BindWireInvalidInjectionError(msg) from error


def _dataclass_init_fields(klass: type[Any]) -> set[str]:
    if not dataclasses.is_dataclass(klass):
        return set()
    return {field.name for field in dataclasses.fields(klass) if field.init}


default_metadata_provider = InjectionMetadata()
"""Provider used by contexts created without an explicit ``metadata_provider``."""


def describe_injected_arguments(target: Any, method_name: str | None = None) -> list[Injection | None]:
    """Describe parameter injections with the default metadata provider."""
    return default_metadata_provider.describe_injected_arguments(target, method_name)


def describe_injected_properties(target: Any) -> dict[str, Injection]:
    """Describe property injections with the default metadata provider."""
    return default_metadata_provider.describe_injected_properties(target)


__all__ = [
    "CONSTRUCTOR",
    "Injection",
    "InjectionMetadata",
    "MetadataProvider",
    "default_metadata_provider",
    "describe_injected_arguments",
    "describe_injected_properties",
    "injectable_parameters",
]
