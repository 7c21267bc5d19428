"""Plugin protocol — the contract every ABI source must satisfy."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Callable, Optional, Protocol, runtime_checkable

from abiforge.models import ContractConfig

ContractHook = Callable[[str], Optional[ContractConfig]]
RemoveHook = Callable[[str], Optional[str]]
WatchCommand = Callable[[threading.Event], None]


@dataclass
class WatchSpec:
    """Incremental-update capability of a plugin.

    ``paths`` are glob patterns (``!`` negates) whose add/change/unlink events
    are routed to the hooks. ``on_add``/``on_change`` return the fresh contract
    for the path or ``None``; ``on_remove`` returns the name of the contract
    that is gone, or ``None`` to keep it.

    ``command`` is started once when watching begins. It may block until the
    ``threading.Event`` it receives is set.
    """

    paths: list[str]
    on_add: ContractHook
    on_change: ContractHook
    on_remove: RemoveHook
    command: Optional[WatchCommand] = None


@runtime_checkable
class Plugin(Protocol):
    """Pluggable ABI source."""

    name: str
    watch: Optional[WatchSpec]

    def validate(self) -> None:
        """Raise ``PrerequisiteError`` when something the plugin needs is missing.

        Must be idempotent and must not mutate plugin state.
        """
        ...

    def contracts(self) -> list[ContractConfig]:
        """Return every contract this source provides.

        Contracts with an empty ABI are left out. Either all contracts are
        returned or an exception is raised.
        """
        ...
