"""Error kinds raised by plugins and the resolution pipeline."""

from __future__ import annotations


class AbiforgeError(Exception):
    """Base class for every error abiforge reports to the user."""


class ConfigError(AbiforgeError):
    """The configuration file or a plugin entry in it is malformed."""


class PrerequisiteError(AbiforgeError):
    """An external tool or project path a plugin depends on is missing."""


class ResolutionError(AbiforgeError):
    """A source could not produce its contracts and has no fallback."""

    def __init__(self, source: str, cause: BaseException | str) -> None:
        self.source = source
        self.cause = cause
        super().__init__(f"{source}: failed to resolve contracts: {cause}")


class BuildCommandError(AbiforgeError):
    """A clean/build/rebuild command exited non-zero or could not start."""

    def __init__(self, command: str, returncode: int | None, output: str = "") -> None:
        self.command = command
        self.returncode = returncode
        self.output = output
        if returncode is None:
            msg = f"Command could not be started: {command}"
        else:
            msg = f"Command failed with exit code {returncode}: {command}"
        if output.strip():
            msg += f"\n{output.strip()}"
        super().__init__(msg)


class ContractCollisionError(AbiforgeError):
    """Two sources resolved a contract with the same name."""

    def __init__(self, name: str, first: str, second: str) -> None:
        self.name = name
        self.first = first
        self.second = second
        super().__init__(
            f"Contract name '{name}' is produced by both '{first}' and '{second}'. "
            "Rename one of them (e.g. with a name prefix)."
        )
