"""Hardhat plugin — resolve ABIs from a Hardhat project's build artifacts.

Lifecycle of ``contracts()``: clean (optional) -> build (optional) -> scan the
artifacts directory. In watch mode the sources directory is observed and the
project rebuilt on every change, while the artifact hooks recompute single
contracts as the build output changes. The two run independently.
"""

from __future__ import annotations

import json
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional, Union

from abiforge import logger
from abiforge.commands import (
    detect_package_manager,
    install_hint,
    run_command,
    runner_for,
)
from abiforge.errors import (
    BuildCommandError,
    ConfigError,
    PrerequisiteError,
    ResolutionError,
)
from abiforge.globs import scan
from abiforge.models import HANDLED_KINDS, ContractConfig, FileEvent
from abiforge.plugins.base import WatchSpec
from abiforge.watch import Watcher

DEFAULT_EXCLUDES = ["build-info/**", "*.dbg.json"]

# ``None`` -> use the default, ``False`` -> skip, ``str`` -> run this.
CommandSetting = Union[str, bool, None]


@dataclass
class Commands:
    """User-supplied clean/build/rebuild commands."""

    clean: CommandSetting = None
    build: CommandSetting = None
    rebuild: CommandSetting = None

    @property
    def fully_specified(self) -> bool:
        return all(c is not None for c in (self.clean, self.build, self.rebuild))


@dataclass(frozen=True)
class ResolvedCommands:
    """Commands to actually run; ``None`` means the step is disabled."""

    clean: Optional[str]
    build: Optional[str]
    rebuild: Optional[str]


def resolve_commands(commands: Commands, package_manager: str | None) -> ResolvedCommands:
    """Fill unset commands with ``<runner> hardhat clean|compile`` defaults."""
    runner = runner_for(package_manager) if package_manager else "npx"
    defaults = {
        "clean": f"{runner} hardhat clean",
        "build": f"{runner} hardhat compile",
        "rebuild": f"{runner} hardhat compile",
    }

    def _pick(step: str) -> Optional[str]:
        value = getattr(commands, step)
        if value is None or value is True:
            return defaults[step]
        if value is False or not str(value).strip():
            return None
        return str(value)

    return ResolvedCommands(clean=_pick("clean"), build=_pick("build"), rebuild=_pick("rebuild"))


@dataclass
class HardhatPlugin:
    """ABI source backed by a Hardhat project."""

    project: str
    artifacts: str = "artifacts"
    sources: str = "contracts"
    include: list[str] = field(default_factory=lambda: ["*.json"])
    exclude: list[str] = field(default_factory=lambda: list(DEFAULT_EXCLUDES))
    name_prefix: str = ""
    commands: Commands = field(default_factory=Commands)
    name: str = "Hardhat"

    def __post_init__(self) -> None:
        self._package_manager: str | None = None
        self.watch = WatchSpec(
            paths=self.artifact_patterns,
            on_add=self.on_add,
            on_change=self.on_change,
            on_remove=self.on_remove,
            command=None if self.commands.rebuild is False else self.watch_sources,
        )

    # ── paths ───────────────────────────────────────────────────

    @property
    def project_path(self) -> Path:
        return Path(self.project).expanduser().resolve()

    @property
    def artifacts_dir(self) -> Path:
        return self.project_path / self.artifacts

    @property
    def sources_dir(self) -> Path:
        return self.project_path / self.sources

    @property
    def artifact_patterns(self) -> list[str]:
        base = self.artifacts_dir.as_posix()
        return [f"{base}/**/{x}" for x in self.include] + [
            f"!{base}/**/{x}" for x in self.exclude
        ]

    # ── commands ────────────────────────────────────────────────

    @property
    def package_manager(self) -> str:
        if self._package_manager is None:
            self._package_manager = detect_package_manager(self.project_path)
        return self._package_manager

    def resolved_commands(self) -> ResolvedCommands:
        pm = None if self.commands.fully_specified else self.package_manager
        return resolve_commands(self.commands, pm)

    # ── plugin protocol ─────────────────────────────────────────

    def validate(self) -> None:
        if not self.project_path.is_dir():
            raise PrerequisiteError(f"Hardhat project not found at '{self.project_path}'.")
        if self.commands.fully_specified:
            return

        pm = self.package_manager
        probe = f"{runner_for(pm)} hardhat --version"
        try:
            run_command(probe, self.project_path)
        except BuildCommandError as exc:
            raise PrerequisiteError(
                "hardhat must be installed to use Hardhat plugin.\n"
                f"To install, run: {install_hint(pm, 'hardhat')}."
            ) from exc

    def contracts(self) -> list[ContractConfig]:
        commands = self.resolved_commands()
        if commands.clean:
            run_command(commands.clean, self.project_path)
        if commands.build:
            run_command(commands.build, self.project_path)

        if not self.artifacts_dir.is_dir():
            raise ResolutionError(self.name, f"Artifacts not found at '{self.artifacts_dir}'.")

        out: list[ContractConfig] = []
        for path in self.artifact_paths():
            try:
                contract = self.get_contract(path)
            except (OSError, ValueError, KeyError, TypeError, AttributeError) as exc:
                raise ResolutionError(self.name, f"{path}: {exc}") from exc
            if not contract.abi:
                continue
            out.append(contract)
        return out

    # ── artifacts ───────────────────────────────────────────────

    def artifact_paths(self) -> list[str]:
        return scan(self.artifact_patterns)

    def contract_name(self, artifact: Mapping[str, Any]) -> str:
        return f"{self.name_prefix}{artifact['contractName']}"

    def get_contract(self, path: str) -> ContractConfig:
        artifact = json.loads(Path(path).read_text(encoding="utf-8"))
        return ContractConfig(name=self.contract_name(artifact), abi=artifact.get("abi") or ())

    # ── watch hooks ─────────────────────────────────────────────

    def on_add(self, path: str) -> ContractConfig:
        return self.get_contract(path)

    def on_change(self, path: str) -> ContractConfig:
        return self.get_contract(path)

    def on_remove(self, path: str) -> Optional[str]:
        # The artifact is gone, so the name can only be guessed from its path.
        removed = f"{self.name_prefix}{Path(path).stem}"
        # TODO: skip `path` itself in this re-scan; a removal reported while the
        # file is still briefly on disk is currently suppressed.
        for artifact_path in self.artifact_paths():
            if self.get_contract(artifact_path).name == removed:
                return None
        return removed

    def watch_sources(self, stop_event: threading.Event) -> None:
        """Rebuild the project whenever a source file changes, until stopped."""
        logger.info(f'Watching Hardhat project for changes at "{self.project_path}".')
        watcher = Watcher(
            [self.sources_dir.as_posix()],
            self.rebuild,
            name=f"{self.name} sources",
            parent=stop_event,
        )
        watcher.run()

    def rebuild(self, event: FileEvent) -> None:
        if event.kind not in HANDLED_KINDS:
            return
        command = self.resolved_commands().rebuild
        if not command:
            return
        logger.info("Rebuilding Hardhat project…")
        run_command(command, self.project_path, forward_output=True)


def from_config(entry: Mapping[str, Any], **_: Any) -> HardhatPlugin:
    """Create a ``HardhatPlugin`` from a ``type: hardhat`` config entry."""
    project = entry.get("project")
    if not isinstance(project, str) or not project:
        raise ConfigError("hardhat plugin requires a 'project' path")

    raw_commands = entry.get("commands") or {}
    if not isinstance(raw_commands, dict):
        raise ConfigError("hardhat plugin 'commands' must be a mapping")
    commands = Commands(
        clean=raw_commands.get("clean"),
        build=raw_commands.get("build"),
        rebuild=raw_commands.get("rebuild"),
    )

    kwargs: dict[str, Any] = {}
    for key in ("artifacts", "sources", "name_prefix", "name"):
        if key in entry:
            kwargs[key] = str(entry[key])
    for key in ("include", "exclude"):
        if key in entry:
            value = entry[key]
            kwargs[key] = [str(v) for v in value] if isinstance(value, list) else [str(value)]
    return HardhatPlugin(project=project, commands=commands, **kwargs)
