"""Plugin registry — construction from config, validation, and resolution."""

from __future__ import annotations

import importlib
from importlib.metadata import entry_points
from typing import Any, Callable, Mapping

from abiforge import logger
from abiforge.cache import AbiCache
from abiforge.errors import ConfigError
from abiforge.models import ContractConfig, ResolvedContract
from abiforge.plugins import fetch, hardhat
from abiforge.plugins.base import Plugin
from abiforge.resolve import resolve_contracts

PluginFactory = Callable[..., Plugin]

BUILTIN_FACTORIES: dict[str, PluginFactory] = {
    "fetch": fetch.from_config,
    "hardhat": hardhat.from_config,
}


class PluginRegistry:
    """Ordered set of configured plugins for one generation run."""

    def __init__(self, plugins: list[Plugin]) -> None:
        self.plugins = list(plugins)

    def __iter__(self):
        return iter(self.plugins)

    def __len__(self) -> int:
        return len(self.plugins)

    def validate(self) -> None:
        """Validate every plugin in order; the first failure propagates."""
        for plugin in self.plugins:
            plugin.validate()

    def resolve(self, inline: list[ContractConfig] | None = None) -> list[ResolvedContract]:
        return resolve_contracts(self.plugins, inline)

    def watched(self) -> list[Plugin]:
        return [p for p in self.plugins if p.watch is not None]


def _load_entry_point_factories() -> dict[str, PluginFactory]:
    """Load factories registered via the ``abiforge.plugins`` entry-point group."""
    factories: dict[str, PluginFactory] = {}
    for ep in entry_points(group="abiforge.plugins"):
        try:
            factories[ep.name] = ep.load()
        except Exception as exc:
            logger.warn(f"Skipping plugin '{ep.name}': {exc}")
    return factories


def load_import_factory(import_string: str) -> PluginFactory:
    """Load a factory from ``pkg.module:factory`` (the part after ``import:``)."""
    try:
        module_path, attr = import_string.rsplit(":", 1)
        mod = importlib.import_module(module_path)
        return getattr(mod, attr)
    except (ValueError, ImportError, AttributeError) as exc:
        raise ConfigError(f"Cannot import plugin '{import_string}': {exc}") from exc


def available_plugin_types() -> list[str]:
    return sorted({*BUILTIN_FACTORIES, *_load_entry_point_factories()})


def load_plugin(entry: Mapping[str, Any], *, cache: AbiCache) -> Plugin:
    """Build one plugin from a config entry.

    ``type`` selects the factory: a built-in name, an entry-point name, or
    ``import:pkg.module:factory``.
    """
    kind = entry.get("type")
    if not isinstance(kind, str) or not kind:
        raise ConfigError("Every plugin entry needs a 'type'")

    if kind.startswith("import:"):
        factory = load_import_factory(kind[len("import:") :])
    elif kind in BUILTIN_FACTORIES:
        factory = BUILTIN_FACTORIES[kind]
    else:
        factory = _load_entry_point_factories().get(kind)
        if factory is None:
            raise ConfigError(f"No registered plugin type named '{kind}'")

    plugin = factory(entry, cache=cache)
    if not isinstance(plugin, Plugin):
        raise ConfigError(f"Plugin type '{kind}' did not produce a plugin")
    return plugin


def load_plugins(entries: list[Mapping[str, Any]], *, cache: AbiCache) -> PluginRegistry:
    return PluginRegistry([load_plugin(e, cache=cache) for e in entries])
