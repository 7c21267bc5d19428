"""External commands — package-manager detection and build-tool invocation."""

from __future__ import annotations

import subprocess
from pathlib import Path

from abiforge.errors import BuildCommandError

# Lockfile -> package manager, checked in this order.
LOCKFILES: list[tuple[str, str]] = [
    ("pnpm-lock.yaml", "pnpm"),
    ("yarn.lock", "yarn"),
    ("bun.lockb", "bun"),
    ("bun.lock", "bun"),
    ("package-lock.json", "npm"),
]

# How each package manager runs a locally installed binary.
RUNNERS: dict[str, str] = {
    "npm": "npx",
    "pnpm": "pnpm",
    "yarn": "yarn",
    "bun": "bunx",
}


def detect_package_manager(start: str | Path) -> str:
    """Guess the package manager from lockfiles in *start* and its ancestors."""
    p = Path(start).resolve()
    for directory in [p, *p.parents]:
        for lockfile, manager in LOCKFILES:
            if (directory / lockfile).is_file():
                return manager
    return "npm"


def runner_for(package_manager: str) -> str:
    return RUNNERS.get(package_manager, "npx")


def install_hint(package_manager: str, package: str) -> str:
    """Return the command a user should run to install *package*."""
    verb = "install --save-dev" if package_manager == "npm" else "add -D"
    return f"{package_manager} {verb} {package}"


def split_command(command: str) -> list[str]:
    """Split a command string on whitespace into executable + arguments."""
    argv = command.split()
    if not argv:
        raise BuildCommandError(command, None, "empty command")
    return argv


def run_command(command: str, cwd: str | Path, *, forward_output: bool = False) -> str:
    """Run *command* in *cwd* to completion.

    With *forward_output* the child's stdout goes straight to ours; otherwise
    it is captured and returned. Raises ``BuildCommandError`` on a non-zero
    exit or when the executable cannot be started.
    """
    argv = split_command(command)
    try:
        completed = subprocess.run(
            argv,
            cwd=str(cwd),
            stdout=None if forward_output else subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            check=False,
        )
    except OSError as exc:
        raise BuildCommandError(command, None, str(exc)) from exc

    if completed.returncode != 0:
        output = (completed.stderr or "") or (completed.stdout or "")
        raise BuildCommandError(command, completed.returncode, output)
    return completed.stdout or ""
