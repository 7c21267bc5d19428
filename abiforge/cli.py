"""CLI — click-based command-line interface."""

from __future__ import annotations

import sys

import click

import abiforge
from abiforge import logger
from abiforge.cache import AbiCache
from abiforge.config import AbiforgeConfig, load_config
from abiforge.emit import BundleEmitter
from abiforge.errors import AbiforgeError
from abiforge.plugins.registry import PluginRegistry, available_plugin_types, load_plugins
from abiforge.watch import WatchCoordinator


@click.group()
@click.version_option(abiforge.__version__, prog_name="abiforge")
def main() -> None:
    """abiforge — resolve contract ABIs from pluggable sources."""


def _load(config_path: str | None) -> tuple[AbiforgeConfig, PluginRegistry]:
    cfg = load_config(config_path=config_path)
    cache = AbiCache(cfg.resolved_cache_dir)
    registry = load_plugins(cfg.plugins, cache=cache)
    return cfg, registry


def _fail(exc: AbiforgeError) -> None:
    click.echo(f"Error: {exc}", err=True)
    sys.exit(1)


# ───────────────────────────────────────────────────────────────────
# generate
# ───────────────────────────────────────────────────────────────────

@main.command()
@click.option("--config", "config_path", default=None, type=click.Path(),
              help="Path to config file (default: search for .abiforge.yml).")
@click.option("--watch", "watch_flag", is_flag=True, default=False,
              help="Keep running and regenerate on source changes.")
def generate(config_path: str | None, watch_flag: bool) -> None:
    """Resolve every configured source and write the ABI bundle."""
    try:
        cfg, registry = _load(config_path)
        if cfg.config_path:
            logger.info(f"Using config {cfg.config_path}")

        # --- validate ---
        registry.validate()

        # --- resolve ---
        resolved = registry.resolve(cfg.contracts)

        # --- emit ---
        emitter = BundleEmitter(cfg.out_dir)
        summary = emitter.emit_all(resolved)
    except AbiforgeError as exc:
        _fail(exc)
        return

    logger.success(
        f"Wrote {len(summary.written)} contract(s) to {summary.out_dir}"
    )

    if not watch_flag:
        return

    watched = registry.watched()
    if not watched:
        logger.warn("No configured plugin supports watching.")
        return

    coordinator = WatchCoordinator(watched, emitter.update, emitter.remove)
    coordinator.start()
    logger.info(f"Watching {len(watched)} plugin(s). Press Ctrl+C to stop.")
    try:
        coordinator.wait()
    except KeyboardInterrupt:
        pass
    finally:
        coordinator.close()


# ───────────────────────────────────────────────────────────────────
# plugins
# ───────────────────────────────────────────────────────────────────

@main.group()
def plugins() -> None:
    """Inspect plugins."""


@plugins.command("list")
@click.option("--config", "config_path", default=None, type=click.Path(),
              help="Path to config file (default: search for .abiforge.yml).")
def plugins_list(config_path: str | None) -> None:
    """List configured plugins and available plugin types."""
    try:
        _cfg, registry = _load(config_path)
    except AbiforgeError as exc:
        _fail(exc)
        return

    click.echo(f"Available types: {', '.join(available_plugin_types())}")
    if not len(registry):
        click.echo("No plugins configured.")
        return
    click.echo(f"{'Name':<20} {'Watch':<6} {'Class'}")
    click.echo("-" * 52)
    for p in registry:
        watch = "yes" if p.watch is not None else "no"
        click.echo(f"{p.name:<20} {watch:<6} {type(p).__module__}.{type(p).__qualname__}")
