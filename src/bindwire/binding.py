from __future__ import annotations

import logging
import threading
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any, Protocol, TypeVar

from typing_extensions import Self

from bindwire._internal.deferred import (
    SharedAwaitable,
    ValueOrAwaitable,
    is_deferred,
    resolve_list,
    share_awaitables,
    transform_value_or_awaitable,
)
from bindwire._internal.resolution_stack import resolving
from bindwire.exceptions import BindWireBindingNotConfiguredError, BindWireInvalidInjectionError
from bindwire.resolver import instantiate_class, invoke_method
from bindwire.scope import BindingScope

if TYPE_CHECKING:
    from bindwire.context import Context

T = TypeVar("T")

logger = logging.getLogger(__name__)

ValueStrategy = Callable[["Context"], ValueOrAwaitable[Any]]

_NOT_CACHED: Any = object()


class Provider(Protocol):
    """A class whose ``value()`` method produces the bound value.

    Provider classes are instantiated with dependency injection, so their
    constructor parameters and properties may carry ``Inject`` markers.
    """

    def value(self) -> Any: ...


class Binding:
    """Describe how the value of one key is produced.

    A binding is created by ``Context.bind`` and configured with exactly one
    value strategy (``to``, ``to_dynamic_value``, ``to_class`` or
    ``to_provider``); the last strategy applied wins. Configuration methods
    return the binding so calls can be chained.

    Examples:
        .. code-block:: python

            context.bind("controllers.info").to_class(InfoController).in_scope(
                BindingScope.SINGLETON,
            ).tag("controller")

    """

    def __init__(self, key: str, *, is_locked: bool = False) -> None:
        self.key = key
        self.is_locked = is_locked
        self.scope = BindingScope.TRANSIENT
        self.tags: set[str] = set()
        self.value_constructor: type[Any] | None = None
        self.provider_constructor: type[Any] | None = None
        self.options: Any = None

        self._strategy: ValueStrategy | None = None
        self._cache: Any = _NOT_CACHED
        self._cache_lock = threading.RLock()
        self._generation = 0

    @property
    def is_configured(self) -> bool:
        """Return true once a value strategy was applied."""
        return self._strategy is not None

    def get_value(self, context: Context) -> ValueOrAwaitable[Any]:
        """Produce the bound value, resolving dependencies against ``context``.

        ``context`` is the context that requested the value, which may be a
        descendant of the context owning this binding.

        Returns:
            The value, or an awaitable of it when the strategy (or one of its
            dependencies) is asynchronous.

        Raises:
            BindWireBindingNotConfiguredError: If no strategy was applied yet.
            BindWireCircularDependencyError: If the binding is already being
                resolved higher up in the current resolution chain.

        """
        strategy = self._strategy
        if strategy is None:
            raise BindWireBindingNotConfiguredError(self.key)

        if self.scope is not BindingScope.SINGLETON:
            with resolving(self):
                return strategy(context)

        cached = self._cache
        if cached is not _NOT_CACHED:
            return cached

        with resolving(self), self._cache_lock:
            if self._cache is not _NOT_CACHED:
                return self._cache
            result = strategy(context)
            if is_deferred(result):
                result = SharedAwaitable(self._evict_on_failure(result, self._generation))
            self._cache = result
            return result

    async def _evict_on_failure(self, awaitable: Awaitable[T], generation: int) -> T:
        try:
            return await awaitable
        except BaseException:
            with self._cache_lock:
                if self._generation == generation:
                    self._cache = _NOT_CACHED
            raise

    def to(self, value: Any) -> Self:
        """Bind a constant value. Resolution of a constant is always synchronous.

        An awaitable is stored as is, so ``get`` returns that awaitable.
        """
        self.value_constructor = None
        self.provider_constructor = None
        return self._set_strategy(lambda _context: value, "constant")

    def to_dynamic_value(self, factory: Callable[..., Any], *injection_keys: str) -> Self:
        """Compute the value by calling ``factory`` on every resolution.

        Args:
            factory: Called with the values of ``injection_keys``, in order.
                It may return an awaitable.
            *injection_keys: Keys resolved against the requesting context; a key
                may carry a nested property path.

        Raises:
            BindWireInvalidInjectionError: If ``factory`` is not callable.

        """
        if not callable(factory):
            msg = f"Dynamic value factory for binding '{self.key}' must be callable, got {factory!r}."
            raise BindWireInvalidInjectionError(msg)

        def strategy(context: Context) -> ValueOrAwaitable[Any]:
            values = resolve_list(injection_keys, lambda key, _index: context.get(key))
            return transform_value_or_awaitable(values, lambda resolved: factory(*resolved))

        self.value_constructor = None
        self.provider_constructor = None
        return self._set_strategy(strategy, "dynamic value")

    def to_class(self, cls: type[Any]) -> Self:
        """Instantiate ``cls`` with constructor and property injection."""
        if not isinstance(cls, type):
            msg = f"Binding '{self.key}' can only be bound to a class, got {cls!r}."
            raise BindWireInvalidInjectionError(msg)

        self.value_constructor = cls
        self.provider_constructor = None
        return self._set_strategy(
            lambda context: instantiate_class(cls, context, binding=self),
            f"class {cls.__qualname__}",
        )

    def to_provider(self, provider_cls: type[Provider]) -> Self:
        """Instantiate ``provider_cls`` and bind the result of its ``value()`` method.

        Both the provider instantiation and the ``value()`` call may be
        asynchronous; ``value()`` may declare injected parameters as well.

        Raises:
            BindWireInvalidInjectionError: If ``provider_cls`` has no callable
                ``value`` attribute.

        """
        if not isinstance(provider_cls, type) or not callable(getattr(provider_cls, "value", None)):
            msg = f"Provider for binding '{self.key}' must be a class with a value() method, got {provider_cls!r}."
            raise BindWireInvalidInjectionError(msg)

        def strategy(context: Context) -> ValueOrAwaitable[Any]:
            provider = instantiate_class(provider_cls, context, binding=self)
            return transform_value_or_awaitable(
                provider,
                lambda created: invoke_method(created, "value", context),
            )

        self.value_constructor = provider_cls
        self.provider_constructor = provider_cls
        return self._set_strategy(strategy, f"provider {provider_cls.__qualname__}")

    def in_scope(self, scope: BindingScope | str) -> Self:
        """Change the binding scope; any cached singleton value is dropped."""
        self.scope = BindingScope(scope)
        self._clear_cache()
        return self

    def with_options(self, options: Any) -> Self:
        """Attach an options payload, available to injections via ``Inject.options``.

        Awaitables in the payload, at the top level or nested in mappings, are
        shared, so every resolution awaits the same result.
        """
        self.options = share_awaitables(options)
        return self

    def tag(self, *names: str) -> Self:
        """Add tags to the binding. Adding an existing tag has no effect."""
        self.tags.update(names)
        return self

    def lock(self) -> Self:
        """Prevent the owning context from replacing this binding."""
        self.is_locked = True
        return self

    def unlock(self) -> Self:
        self.is_locked = False
        return self

    def _set_strategy(self, strategy: ValueStrategy, description: str) -> Self:
        self._strategy = strategy
        self._clear_cache()
        logger.debug("Binding %r now resolves to %s", self.key, description)
        return self

    def _clear_cache(self) -> None:
        with self._cache_lock:
            self._cache = _NOT_CACHED
            self._generation += 1

    def __repr__(self) -> str:
        tags = ", ".join(sorted(self.tags))
        return f"<Binding key={self.key!r} scope={self.scope.value} tags=[{tags}] locked={self.is_locked}>"


__all__ = ["Binding", "Provider", "ValueStrategy"]
