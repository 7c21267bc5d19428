"""Resolution pass — run every source in order and merge the results."""

from __future__ import annotations

from abiforge.errors import AbiforgeError, ContractCollisionError, ResolutionError
from abiforge.models import ContractConfig, ResolvedContract
from abiforge.plugins.base import Plugin

CONFIG_SOURCE = "config"


def resolve_contracts(
    plugins: list[Plugin],
    inline: list[ContractConfig] | None = None,
) -> list[ResolvedContract]:
    """Resolve *inline* contracts, then each plugin's, sequentially.

    Contracts with an empty ABI are dropped. A name produced twice raises
    ``ContractCollisionError`` for the first duplicate in source order. Any
    unexpected plugin failure is wrapped in ``ResolutionError`` and aborts the
    whole pass.
    """
    resolved: list[ResolvedContract] = []
    owners: dict[str, str] = {}

    def _add(source: str, contract: ContractConfig) -> None:
        if not contract.abi:
            return
        if contract.name in owners:
            raise ContractCollisionError(contract.name, owners[contract.name], source)
        owners[contract.name] = source
        resolved.append(ResolvedContract(plugin=source, contract=contract))

    for contract in inline or []:
        _add(CONFIG_SOURCE, contract)

    for plugin in plugins:
        try:
            contracts = plugin.contracts()
        except AbiforgeError:
            raise
        except Exception as exc:
            raise ResolutionError(plugin.name, exc) from exc
        for contract in contracts:
            _add(plugin.name, contract)

    return resolved
