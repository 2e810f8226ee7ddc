"""Named provider lookup.

Bundlers (the only provider kind today) are addressed by name from
``[bundler] name`` in ``mdlayer.toml``. Built-in names resolve through the
registry; a ``package.module:attribute`` name imports a project-defined
factory instead, so custom bundlers need no registration call.
"""

from __future__ import annotations

import importlib
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from mdlayer.exceptions import PluginError

if TYPE_CHECKING:
    from collections.abc import Callable

__all__ = ["Provider", "ProviderRegistry", "default_registry"]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Provider:
    category: str
    name: str
    factory: Callable[[dict[str, Any]], Any]


class ProviderRegistry:
    """Maps ``(category, name)`` to a factory taking an options dict.

    With ``auto_discover`` set, the first lookup imports
    :mod:`mdlayer.bundle`, whose import registers the built-in bundlers.

    Usage::

        registry = ProviderRegistry()

        @registry.provider("bundler", "plain")
        def plain(options):
            return PlainBundler(**options)

        bundler = registry.create("bundler", "plain", {})
    """

    def __init__(self, *, auto_discover: bool = False) -> None:
        self._providers: dict[tuple[str, str], Provider] = {}
        self._auto_discover = auto_discover

    def register(self, category: str, name: str, factory: Callable[[dict[str, Any]], Any]) -> None:
        """Register ``factory`` under ``category``/``name``.

        Raises:
            PluginError: If the name is already taken in that category.
        """
        key = (category, name)
        if key in self._providers:
            raise PluginError(f"Provider '{name}' already registered in category '{category}'")
        self._providers[key] = Provider(category, name, factory)
        logger.debug("Registered provider %s/%s", category, name)

    def provider(self, category: str, name: str):
        """Decorator form of :meth:`register`."""

        def decorator(factory):
            self.register(category, name, factory)
            return factory

        return decorator

    def _discover(self) -> None:
        if self._auto_discover:
            self._auto_discover = False
            import mdlayer.bundle  # noqa: F401

    def get(self, category: str, name: str) -> Provider:
        """Look up a provider, importing ``module:attribute`` names on demand.

        Raises:
            PluginError: If the provider is unknown or cannot be imported.
        """
        self._discover()
        if (category, name) in self._providers:
            return self._providers[(category, name)]
        if ":" in name:
            return Provider(category, name, _import_factory(name))

        available = self.list_providers(category)
        if not available:
            raise PluginError(f"Unknown provider category '{category}'")
        raise PluginError(
            f"Unknown provider '{name}' in category '{category}'. Available: {available}"
        )

    def create(self, category: str, name: str, options: dict[str, Any] | None = None) -> Any:
        """Instantiate a provider with a copy of ``options``."""
        provider = self.get(category, name)
        logger.info("Creating provider %s/%s", category, name)
        return provider.factory(dict(options or {}))

    def list_providers(self, category: str) -> list[str]:
        """Registered names of one category, sorted."""
        self._discover()
        return sorted(name for cat, name in self._providers if cat == category)

    def has_provider(self, category: str, name: str) -> bool:
        self._discover()
        return (category, name) in self._providers


def _import_factory(reference: str) -> Callable[[dict[str, Any]], Any]:
    module_name, _, attr = reference.partition(":")
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise PluginError(f"Cannot import provider module {module_name!r}: {e}") from e
    factory = getattr(module, attr, None)
    if not callable(factory):
        raise PluginError(f"{reference!r} is not a callable provider factory")
    return lambda options: factory(**options)


default_registry = ProviderRegistry(auto_discover=True)
