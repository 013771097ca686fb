from __future__ import annotations

import functools
import itertools
import logging
import re
import threading
from collections.abc import Callable
from typing import Any

from bindwire._internal.deferred import (
    ValueOrAwaitable,
    discard_deferred,
    is_deferred,
    transform_value_or_awaitable,
)
from bindwire.binding import Binding
from bindwire.exceptions import (
    BindWireBindingLockedError,
    BindWireBindingNotFoundError,
    BindWireInvalidBindingKeyError,
    BindWireResolutionMustBeSyncError,
)
from bindwire.injection import MetadataProvider, default_metadata_provider
from bindwire.keys import PROPERTY_SEPARATOR, BindingKey, get_deep_property, normalize_property_path

logger = logging.getLogger(__name__)

BindingFilter = Callable[[Binding], bool]

_context_ids = itertools.count(1)


class Context:
    """A registry of bindings with hierarchical lookup.

    Keys are looked up in this context first, then in each ancestor. Values are
    always produced against the context that requested them, so a binding
    owned by a parent sees the bindings of the requesting child.

    Values that can be produced synchronously are returned as is; as soon as a
    strategy or one of its dependencies is asynchronous, an awaitable is
    returned instead. Use ``aget`` to always receive the awaited value, or
    ``get_sync`` to insist on a synchronous one.

    Examples:
        .. code-block:: python

            app = Context(name="app")
            app.bind("application.name").to("CodeHub")

            request = app.create_child(name="request")
            request.bind("authentication.user").to("mary")
            request.bind("controllers.info").to_class(InfoController)

            controller = request.get_sync("controllers.info")

    Args:
        parent: Context consulted when a key is not bound locally.
        name: Name used in diagnostics; generated when omitted.
        metadata_provider: Source of injection metadata; inherited from
            ``parent`` when omitted.

    """

    def __init__(
        self,
        parent: Context | None = None,
        *,
        name: str | None = None,
        metadata_provider: MetadataProvider | None = None,
    ) -> None:
        self._parent = parent
        self.name = name or f"context-{next(_context_ids)}"
        if metadata_provider is None:
            metadata_provider = parent.metadata_provider if parent is not None else default_metadata_provider
        self._metadata_provider = metadata_provider
        self._registry: dict[str, Binding] = {}
        self._lock = threading.RLock()

    @property
    def parent(self) -> Context | None:
        return self._parent

    @property
    def metadata_provider(self) -> MetadataProvider:
        return self._metadata_provider

    @property
    def bindings(self) -> dict[str, Binding]:
        """Return a snapshot of the local bindings, in registration order."""
        with self._lock:
            return dict(self._registry)

    def bind(self, key: str) -> Binding:
        """Create a binding for ``key`` in this context and return it.

        An existing local binding is replaced unless it is locked. Bindings of
        ancestors are never touched; the new binding shadows them.

        Raises:
            BindWireInvalidBindingKeyError: If ``key`` is empty or contains the
                property separator.
            BindWireBindingLockedError: If the local binding for ``key`` is
                locked.

        """
        _validate_key(key)
        with self._lock:
            existing = self._registry.get(key)
            if existing is not None and existing.is_locked:
                raise BindWireBindingLockedError(key)
            binding = Binding(key)
            self._registry[key] = binding
        logger.debug("Bound %r in context %r", key, self.name)
        return binding

    def unbind(self, key: str) -> bool:
        """Remove the local binding for ``key``.

        Returns:
            ``True`` if a binding was removed, ``False`` if none was bound
            locally.

        Raises:
            BindWireBindingLockedError: If the local binding is locked.

        """
        with self._lock:
            existing = self._registry.get(key)
            if existing is None:
                return False
            if existing.is_locked:
                raise BindWireBindingLockedError(key)
            del self._registry[key]
        logger.debug("Unbound %r from context %r", key, self.name)
        return True

    def contains(self, key: str) -> bool:
        """Return true if ``key`` is bound in this context, ignoring ancestors."""
        with self._lock:
            return key in self._registry

    def is_bound(self, key: str) -> bool:
        """Return true if ``key`` is bound in this context or any ancestor."""
        return self._find_binding(key) is not None

    def get_binding(self, key: str) -> Binding:
        """Return the binding that owns ``key``, searching ancestors as needed.

        Raises:
            BindWireBindingNotFoundError: If no context in the chain binds ``key``.

        """
        binding_key = BindingKey.parse(key)
        binding = self._find_binding(binding_key.key)
        if binding is None:
            raise BindWireBindingNotFoundError(binding_key.key, self.name)
        return binding

    def get(self, key: str) -> ValueOrAwaitable[Any]:
        """Resolve ``key`` to its value, or to an awaitable of it.

        ``key`` may carry a nested property path (``config#db.url``); the
        resolved value is then projected through the path, and a missing
        segment yields ``None``.

        Raises:
            BindWireBindingNotFoundError: If the key is not bound.

        """
        binding_key = BindingKey.parse(key)
        binding = self.get_binding(binding_key.key)
        value = binding.get_value(self)
        if binding_key.path is None:
            return value

        path = normalize_property_path(binding_key.path)
        return transform_value_or_awaitable(value, lambda resolved: get_deep_property(resolved, path))

    def get_sync(self, key: str) -> Any:
        """Resolve ``key`` synchronously.

        When the value turns out to be deferred, only the outermost coroutine
        is closed. Coroutines created for transient dependencies further down
        are left unawaited and emit ``RuntimeWarning: coroutine ... was never
        awaited`` when collected, which fails test runs using ``-W error``.
        Use ``aget`` for keys that may resolve asynchronously.

        Raises:
            BindWireResolutionMustBeSyncError: If the value (or one of its
                dependencies) is asynchronous.
            BindWireBindingNotFoundError: If the key is not bound.

        """
        value = self.get(key)
        if is_deferred(value):
            discard_deferred(value)
            raise BindWireResolutionMustBeSyncError(key)
        return value

    async def aget(self, key: str) -> Any:
        """Resolve ``key`` and await the value when it is asynchronous."""
        value = self.get(key)
        if is_deferred(value):
            return await value
        return value

    def find(self, pattern: str | BindingFilter | None = None) -> list[Binding]:
        """Find bindings visible from this context.

        Local bindings come first, then those of each ancestor; a key bound in
        several contexts is reported once, from the closest one.

        Args:
            pattern: ``None`` for every binding, a glob over keys where ``*``
                stays within one dot-separated segment and ``**`` spans
                segments, or a predicate called with each binding.

        """
        if pattern is None:
            return self._collect(lambda _binding: True)
        if callable(pattern):
            return self._collect(pattern)
        regex = _compile_glob(pattern)
        return self._collect(lambda binding: regex.fullmatch(binding.key) is not None)

    def find_by_tag(self, tag: str) -> list[Binding]:
        """Find visible bindings carrying exactly ``tag``.

        Tags are opaque strings; pass a predicate to ``find`` for pattern
        matching.
        """
        return self._collect(lambda binding: tag in binding.tags)

    def create_child(self, *, name: str | None = None) -> Context:
        """Create a context whose parent is this one."""
        child = Context(self, name=name)
        logger.debug("Created context %r with parent %r", child.name, self.name)
        return child

    def _find_binding(self, key: str) -> Binding | None:
        context: Context | None = self
        while context is not None:
            with context._lock:
                binding = context._registry.get(key)
            if binding is not None:
                return binding
            context = context._parent
        return None

    def _collect(self, predicate: BindingFilter) -> list[Binding]:
        seen: set[str] = set()
        found: list[Binding] = []
        context: Context | None = self
        while context is not None:
            for key, binding in context.bindings.items():
                if key in seen:
                    continue
                # Shadowed keys stay hidden even when the closer binding does not match.
                seen.add(key)
                if predicate(binding):
                    found.append(binding)
            context = context._parent
        return found

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.is_bound(key)

    def __repr__(self) -> str:
        parent_name = self._parent.name if self._parent is not None else None
        return f"<{type(self).__name__} name={self.name!r} parent={parent_name!r} bindings={len(self._registry)}>"


def _validate_key(key: str) -> None:
    if not isinstance(key, str) or not key or PROPERTY_SEPARATOR in key:
        raise BindWireInvalidBindingKeyError(key)


@functools.lru_cache(maxsize=256)
def _compile_glob(pattern: str) -> re.Pattern[str]:
    parts: list[str] = []
    index = 0
    while index < len(pattern):
        char = pattern[index]
        if pattern.startswith("**", index):
            parts.append(".*")
            index += 2
            continue
        if char == "*":
            parts.append("[^.]*")
        elif char == "?":
            parts.append("[^.]")
        else:
            parts.append(re.escape(char))
        index += 1
    return re.compile("".join(parts))


__all__ = ["BindingFilter", "Context"]
