"""Configuration loader for abiforge.

The config file is ``.abiforge.yml``, looked up in the working directory and
its ancestors (stopping at the repository root), or passed explicitly::

    # .abiforge.yml
    out: generated
    cache_dir: ~/.abiforge/plugins/fetch/cache

    contracts:
      - name: Token
        address: "0x00000000000C2E074eC69A0dFb2997BA6C7d2e1e"
        abi: [...]

    plugins:
      - type: hardhat
        project: ../contracts
        name_prefix: Hh
      - type: fetch
        url: "https://api.etherscan.io/v2/api"
        params: {chainid: 1, module: contract, action: getabi, address: "{address}"}
        abi_key: result
        contracts:
          - name: Pool
            address: "0x..."

Relative ``out`` and hardhat ``project`` paths resolve against the directory
holding the config file.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from abiforge.cache import DEFAULT_CACHE_DIR
from abiforge.errors import ConfigError
from abiforge.models import ContractConfig

CONFIG_FILENAME = ".abiforge.yml"
DEFAULT_OUT = "generated"


@dataclass
class AbiforgeConfig:
    """Top-level configuration container."""

    out: str = DEFAULT_OUT
    cache_dir: str = str(DEFAULT_CACHE_DIR)
    contracts: list[ContractConfig] = field(default_factory=list)
    plugins: list[dict[str, Any]] = field(default_factory=list)

    # Where the config was loaded from (None = defaults only).
    config_path: str | None = None

    @property
    def base_dir(self) -> Path:
        if self.config_path:
            return Path(self.config_path).resolve().parent
        return Path.cwd()

    @property
    def out_dir(self) -> Path:
        return (self.base_dir / Path(self.out).expanduser()).resolve()

    @property
    def resolved_cache_dir(self) -> Path:
        return self.base_dir / Path(self.cache_dir).expanduser()


# ---------------------------------------------------------------------------
# Public loaders
# ---------------------------------------------------------------------------


def load_config(
    search_path: str | Path | None = None,
    config_path: str | Path | None = None,
) -> AbiforgeConfig:
    """Load configuration.

    Parameters
    ----------
    search_path:
        Directory to search (with ancestors) for ``.abiforge.yml``.
        Defaults to the working directory.
    config_path:
        Explicit config file. When given, no search happens and the file
        must exist.
    """
    if config_path is not None:
        path = Path(config_path).expanduser()
        if not path.is_file():
            raise ConfigError(f"Config file not found: {path}")
    else:
        path = find_config(search_path or Path.cwd())
        if path is None:
            return AbiforgeConfig()

    raw = _load_yaml(path)
    cfg = _raw_to_config(raw)
    cfg.config_path = str(path)
    cfg.plugins = [_rebase_plugin(p, cfg.base_dir) for p in cfg.plugins]
    return cfg


def find_config(search_path: str | Path) -> Path | None:
    """Search for ``.abiforge.yml`` in *search_path* and ancestors."""
    p = Path(search_path).resolve()
    candidates = [p / CONFIG_FILENAME]
    if not (p / ".git").exists():
        for parent in p.parents:
            candidates.append(parent / CONFIG_FILENAME)
            if (parent / ".git").exists():
                break
    for candidate in candidates:
        if candidate.is_file():
            return candidate
    return None


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _load_yaml(path: Path) -> dict:
    try:
        raw = yaml.safe_load(path.read_text())
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(f"Cannot read {path}: {exc}") from exc
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigError(f"{path}: top level must be a mapping")
    return raw


def _raw_to_config(raw: dict) -> AbiforgeConfig:
    contracts_raw = raw.get("contracts", []) or []
    if not isinstance(contracts_raw, list):
        raise ConfigError("'contracts' must be a list")
    plugins_raw = raw.get("plugins", []) or []
    if not isinstance(plugins_raw, list) or not all(isinstance(p, dict) for p in plugins_raw):
        raise ConfigError("'plugins' must be a list of mappings")

    cfg = AbiforgeConfig(
        out=str(raw.get("out", DEFAULT_OUT)),
        contracts=[_contract_from_raw(c) for c in contracts_raw],
        plugins=[dict(p) for p in plugins_raw],
    )
    if raw.get("cache_dir"):
        cfg.cache_dir = str(raw["cache_dir"])
    return cfg


def _contract_from_raw(raw: Any) -> ContractConfig:
    if not isinstance(raw, dict) or not raw.get("name"):
        raise ConfigError("Every inline contract needs a 'name'")
    abi = raw.get("abi", [])
    if not isinstance(abi, list):
        raise ConfigError(f"Contract '{raw['name']}': 'abi' must be a list")
    return ContractConfig(name=str(raw["name"]), abi=abi, address=raw.get("address"))


def _rebase_plugin(entry: dict[str, Any], base_dir: Path) -> dict[str, Any]:
    """Make a relative hardhat ``project`` path relative to *base_dir*."""
    project = entry.get("project")
    if entry.get("type") == "hardhat" and isinstance(project, str):
        p = Path(project).expanduser()
        if not p.is_absolute():
            entry = {**entry, "project": str(base_dir / p)}
    return entry
