"""Shared fixtures."""

from __future__ import annotations

import json
from pathlib import Path
from types import SimpleNamespace

import pytest

ERC20_ABI = [
    {
        "inputs": [{"internalType": "address", "name": "owner", "type": "address"}],
        "name": "balanceOf",
        "outputs": [{"internalType": "uint256", "name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "anonymous": False,
        "inputs": [
            {"indexed": True, "internalType": "address", "name": "from", "type": "address"},
            {"indexed": True, "internalType": "address", "name": "to", "type": "address"},
            {"indexed": False, "internalType": "uint256", "name": "value", "type": "uint256"},
        ],
        "name": "Transfer",
        "type": "event",
    },
]


@pytest.fixture
def erc20_abi() -> list[dict]:
    return json.loads(json.dumps(ERC20_ABI))


@pytest.fixture
def hardhat_project(tmp_path):
    """A Hardhat-like project layout with a helper to write artifacts."""
    project = tmp_path / "project"
    (project / "contracts").mkdir(parents=True)
    (project / "artifacts").mkdir()
    (project / "package-lock.json").write_text("{}")

    def _artifact(rel: str, contract_name: str, abi: list | None = None, **extra) -> Path:
        path = project / "artifacts" / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        doc = {"contractName": contract_name, "abi": ERC20_ABI if abi is None else abi}
        doc.update(extra)
        path.write_text(json.dumps(doc))
        return path

    return SimpleNamespace(path=project, artifact=_artifact)
