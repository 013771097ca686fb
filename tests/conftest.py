"""Shared pytest fixtures for bindwire tests."""

import pytest

from bindwire.application import Application
from bindwire.context import Context
from bindwire.injection import InjectionMetadata


@pytest.fixture()
def context() -> Context:
    """Root context with the default metadata provider."""
    return Context(name="root")


@pytest.fixture()
def child_context(context: Context) -> Context:
    """Child of the ``context`` fixture."""
    return context.create_child(name="child")


@pytest.fixture()
def metadata() -> InjectionMetadata:
    """Isolated metadata provider, so explicit registrations do not leak between tests."""
    return InjectionMetadata()


@pytest.fixture()
def isolated_context(metadata: InjectionMetadata) -> Context:
    """Root context using the isolated ``metadata`` provider."""
    return Context(name="isolated", metadata_provider=metadata)


@pytest.fixture()
def app() -> Application:
    """Application without configuration."""
    return Application()
