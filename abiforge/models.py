"""Data models used throughout abiforge."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Union

Address = Union[str, Mapping[int, str]]
AbiItem = dict[str, Any]

ADD = "add"
CHANGE = "change"
UNLINK = "unlink"
HANDLED_KINDS = frozenset({ADD, CHANGE, UNLINK})


# ---------------------------------------------------------------------------
# Contracts
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ContractSource:
    """A contract entry whose ABI has not been resolved yet."""

    name: str
    address: Address | None = None


@dataclass(frozen=True)
class ContractConfig:
    """One resolved contract: name, optional address(es) and its ABI."""

    name: str
    abi: tuple[AbiItem, ...] = ()
    address: Address | None = None

    def __post_init__(self) -> None:
        if isinstance(self.abi, (str, bytes, Mapping)):
            raise TypeError(
                f"ABI for '{self.name}' must be a sequence of items, "
                f"not {type(self.abi).__name__}"
            )
        if not isinstance(self.abi, tuple):
            object.__setattr__(self, "abi", tuple(self.abi))

    def to_dict(self) -> dict[str, Any]:
        address = self.address
        if isinstance(address, Mapping):
            address = {str(k): v for k, v in address.items()}
        return {"name": self.name, "address": address, "abi": list(self.abi)}


@dataclass(frozen=True)
class ResolvedContract:
    """A contract together with the name of the source that produced it."""

    plugin: str
    contract: ContractConfig

    @property
    def name(self) -> str:
        return self.contract.name


# ---------------------------------------------------------------------------
# File events
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FileEvent:
    """A settled filesystem event.

    ``kind`` is one of ``add``, ``change``, ``unlink``; event sources may also
    report other kinds (``addDir``, ``changeDir``), which are ignored.
    """

    kind: str
    path: str

    @property
    def handled(self) -> bool:
        return self.kind in HANDLED_KINDS


@dataclass
class EmitSummary:
    """What a full emission wrote."""

    out_dir: str
    written: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)
