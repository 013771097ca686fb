from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from bindwire._internal.integrations.pydantic_settings import is_pydantic_settings_subclass
from bindwire.exceptions import BindWireInvalidInjectionError
from bindwire.scope import BindingScope

if TYPE_CHECKING:
    from bindwire.binding import Binding
    from bindwire.context import Context

logger = logging.getLogger(__name__)


def bind_settings(context: Context, key: str, settings_cls: type[Any]) -> Binding:
    """Bind a pydantic settings class as a singleton.

    The settings object is created without arguments on first resolution, so
    it reads its fields from the environment (and dotenv files, when
    configured) exactly once per binding.

    Args:
        context: Context that owns the new binding.
        key: Binding key, for example ``"settings.database"``.
        settings_cls: Subclass of ``pydantic_settings.BaseSettings``.

    Returns:
        The new binding, for further configuration such as ``lock()``.

    Raises:
        BindWireInvalidInjectionError: If ``settings_cls`` is not a settings
            class or pydantic settings is not installed.

    Examples:
        .. code-block:: python

            class DatabaseSettings(BaseSettings):
                url: str = "sqlite://"


            bind_settings(context, "settings.database", DatabaseSettings)
            url = context.get_sync("settings.database#url")

    """
    if not is_pydantic_settings_subclass(settings_cls):
        msg = (
            f"{settings_cls!r} is not a pydantic settings class. "
            "Install the 'pydantic-settings' extra and subclass BaseSettings."
        )
        raise BindWireInvalidInjectionError(msg)

    logger.debug("Binding settings %s at %r", settings_cls.__qualname__, key)
    return context.bind(key).to_class(settings_cls).in_scope(BindingScope.SINGLETON).tag("settings")


__all__ = ["bind_settings"]
