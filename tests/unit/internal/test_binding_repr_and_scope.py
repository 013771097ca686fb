from __future__ import annotations

import pytest

from bindwire.binding import Binding
from bindwire.scope import BindingScope


def test_binding_scope_values() -> None:
    assert BindingScope("transient") is BindingScope.TRANSIENT
    assert BindingScope("singleton") is BindingScope.SINGLETON
    assert BindingScope.SINGLETON == "singleton"


def test_unknown_scope_is_rejected() -> None:
    with pytest.raises(ValueError, match="request"):
        Binding("key").in_scope("request")


def test_binding_repr() -> None:
    binding = Binding("servers.rest").in_scope("singleton").tag("server")

    assert repr(binding) == "<Binding key='servers.rest' scope=singleton tags=[server] locked=False>"
