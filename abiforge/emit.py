"""Emission — write the resolved ABI set to the output directory.

Output layout::

    <out>/index.json        [{"name", "address", "source", "file"}, ...]
    <out>/<ContractName>.json   {"name", "address", "abi"}

``emit_all`` rewrites everything; ``update``/``remove`` touch one contract
file plus the index, which is what watch mode uses.
"""

from __future__ import annotations

import json
import os
import tempfile
import threading
from pathlib import Path
from typing import Any

from abiforge import logger
from abiforge.models import ContractConfig, EmitSummary, ResolvedContract

INDEX_FILENAME = "index.json"


def _write_json(path: Path, doc: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=".tmp-", suffix=".json")
    with os.fdopen(fd, "w", encoding="utf-8") as f:
        json.dump(doc, f, indent=2, ensure_ascii=False)
        f.write("\n")
    os.replace(tmp, path)


class BundleEmitter:
    """Keeps the current contract set and mirrors it to *out_dir*."""

    def __init__(self, out_dir: str | Path) -> None:
        self.out_dir = Path(out_dir)
        self._contracts: dict[str, ResolvedContract] = {}
        self._lock = threading.Lock()

    @property
    def contracts(self) -> list[ResolvedContract]:
        with self._lock:
            return list(self._contracts.values())

    def contract_path(self, name: str) -> Path:
        return self.out_dir / f"{name}.json"

    def emit_all(self, resolved: list[ResolvedContract]) -> EmitSummary:
        with self._lock:
            self._contracts = {r.name: r for r in resolved}
            summary = EmitSummary(out_dir=str(self.out_dir))

            keep = {f"{name}.json" for name in self._contracts} | {INDEX_FILENAME}
            if self.out_dir.is_dir():
                for stale in sorted(self.out_dir.glob("*.json")):
                    if stale.name not in keep:
                        stale.unlink()
                        summary.removed.append(str(stale))

            for item in self._contracts.values():
                path = self.contract_path(item.name)
                _write_json(path, item.contract.to_dict())
                summary.written.append(str(path))
            self._write_index()
        return summary

    def update(self, source: str, contract: ContractConfig) -> bool:
        """Re-emit one contract. Rejects names owned by another source."""
        with self._lock:
            current = self._contracts.get(contract.name)
            if current is not None and current.plugin != source:
                logger.warn(
                    f"Ignoring '{contract.name}' from {source}: "
                    f"already provided by {current.plugin}."
                )
                return False
            self._contracts[contract.name] = ResolvedContract(plugin=source, contract=contract)
            _write_json(self.contract_path(contract.name), contract.to_dict())
            self._write_index()
        logger.success(f"Updated {contract.name} ({source})")
        return True

    def remove(self, source: str, name: str) -> bool:
        """Drop one contract's output, if *source* owns it."""
        with self._lock:
            current = self._contracts.get(name)
            if current is None or current.plugin != source:
                return False
            del self._contracts[name]
            path = self.contract_path(name)
            if path.exists():
                path.unlink()
            self._write_index()
        logger.success(f"Removed {name} ({source})")
        return True

    def _write_index(self) -> None:
        index = [
            {
                "name": r.name,
                "address": r.contract.to_dict()["address"],
                "source": r.plugin,
                "file": f"{r.name}.json",
            }
            for r in sorted(self._contracts.values(), key=lambda r: r.name)
        ]
        _write_json(self.out_dir / INDEX_FILENAME, index)
