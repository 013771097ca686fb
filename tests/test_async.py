"""Tests for deferred (awaitable) resolution."""

import asyncio
from typing import Annotated

import pytest

from bindwire._internal.deferred import SharedAwaitable
from bindwire.context import Context
from bindwire.exceptions import BindWireResolutionMustBeSyncError
from bindwire.markers import Inject
from bindwire.scope import BindingScope


class Connection:
    def __init__(self, dsn: Annotated[str, Inject("db.dsn")]) -> None:
        self.dsn = dsn


class Repository:
    connection: Annotated[Connection, Inject("db.connection")]


class TestAget:
    @pytest.mark.asyncio
    async def test_aget_returns_sync_values(self, context: Context) -> None:
        context.bind("key").to("value")

        assert await context.aget("key") == "value"

    @pytest.mark.asyncio
    async def test_aget_awaits_deferred_values(self, context: Context) -> None:
        async def load() -> str:
            await asyncio.sleep(0)
            return "value"

        context.bind("key").to_dynamic_value(load)

        assert await context.aget("key") == "value"

    @pytest.mark.asyncio
    async def test_aget_projects_nested_path_after_awaiting(self, context: Context) -> None:
        async def load() -> dict[str, dict[str, str]]:
            return {"db": {"dsn": "sqlite://"}}

        context.bind("config").to_dynamic_value(load)

        assert await context.aget("config#db.dsn") == "sqlite://"


class TestDeferredDependencies:
    @pytest.mark.asyncio
    async def test_deferred_dependency_propagates_to_dependents(self, context: Context) -> None:
        async def dsn() -> str:
            await asyncio.sleep(0)
            return "postgres://"

        context.bind("db.dsn").to_dynamic_value(dsn)
        context.bind("db.connection").to_class(Connection)
        context.bind("repository").to_class(Repository)

        with pytest.raises(BindWireResolutionMustBeSyncError):
            context.get_sync("repository")

        repository = await context.aget("repository")

        assert isinstance(repository, Repository)
        assert repository.connection.dsn == "postgres://"

    @pytest.mark.asyncio
    async def test_async_factory_receives_resolved_dependencies(self, context: Context) -> None:
        async def user() -> str:
            return "mary"

        async def greeting(name: str) -> str:
            await asyncio.sleep(0)
            return f"hello {name}"

        context.bind("user").to_dynamic_value(user)
        context.bind("greeting").to_dynamic_value(greeting, "user")

        assert await context.aget("greeting") == "hello mary"

    @pytest.mark.asyncio
    async def test_sibling_dependencies_resolve_concurrently(self, context: Context) -> None:
        started: list[str] = []
        release = asyncio.Event()

        def waiter(name: str):  # type: ignore[no-untyped-def]
            async def wait() -> str:
                started.append(name)
                await release.wait()
                return name

            return wait

        context.bind("a").to_dynamic_value(waiter("a"))
        context.bind("b").to_dynamic_value(waiter("b"))
        context.bind("pair").to_dynamic_value(lambda a, b: (a, b), "a", "b")

        task = asyncio.ensure_future(context.aget("pair"))
        for _ in range(5):
            await asyncio.sleep(0)

        assert sorted(started) == ["a", "b"]
        release.set()
        assert await task == ("a", "b")

    @pytest.mark.asyncio
    async def test_first_failure_propagates(self, context: Context) -> None:
        async def broken() -> str:
            msg = "database unavailable"
            raise RuntimeError(msg)

        context.bind("db.dsn").to_dynamic_value(broken)
        context.bind("db.connection").to_class(Connection)

        with pytest.raises(RuntimeError, match="database unavailable"):
            await context.aget("db.connection")


class TestDeferredSingleton:
    @pytest.mark.asyncio
    async def test_concurrent_requests_share_one_instance(self, context: Context) -> None:
        calls: list[int] = []

        async def dsn() -> str:
            calls.append(1)
            await asyncio.sleep(0.01)
            return "postgres://"

        context.bind("db.dsn").to_dynamic_value(dsn)
        context.bind("db.connection").to_class(Connection).in_scope(BindingScope.SINGLETON)

        first = context.get("db.connection")
        second = context.get("db.connection")

        assert isinstance(first, SharedAwaitable)
        assert first is second

        one, two = await asyncio.gather(first, second)

        assert one is two
        assert calls == [1]
        assert context.get("db.connection") is first
        assert await context.aget("db.connection") is one

    @pytest.mark.asyncio
    async def test_failed_singleton_is_retried(self, context: Context) -> None:
        attempts: list[int] = []

        async def flaky() -> str:
            attempts.append(1)
            if len(attempts) == 1:
                msg = "temporary failure"
                raise ConnectionError(msg)
            return "postgres://"

        context.bind("db.dsn").to_dynamic_value(flaky)
        context.bind("db.connection").to_class(Connection).in_scope(BindingScope.SINGLETON)

        with pytest.raises(ConnectionError):
            await context.aget("db.connection")

        connection = await context.aget("db.connection")

        assert connection.dsn == "postgres://"
        assert await context.aget("db.connection") is connection
        assert len(attempts) == 2

    @pytest.mark.asyncio
    async def test_child_contexts_share_deferred_singleton(self, context: Context) -> None:
        async def dsn() -> str:
            await asyncio.sleep(0)
            return "postgres://"

        context.bind("db.dsn").to_dynamic_value(dsn)
        context.bind("db.connection").to_class(Connection).in_scope(BindingScope.SINGLETON)
        first_child = context.create_child()
        second_child = context.create_child()

        one, two = await asyncio.gather(
            first_child.aget("db.connection"),
            second_child.aget("db.connection"),
        )

        assert one is two
