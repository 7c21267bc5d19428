"""Terminal output helpers.

Everything user-facing is written with ``click`` so output respects
``NO_COLOR``/non-tty detection and is captured by ``CliRunner`` in tests.
Diagnostics go to stderr; ``log`` writes plain progress lines to stdout.
"""

from __future__ import annotations

import click


def log(message: str) -> None:
    click.echo(message)


def info(message: str) -> None:
    click.echo(click.style(message, fg="cyan"), err=True)


def success(message: str) -> None:
    click.echo(click.style(message, fg="green"), err=True)


def warn(message: str) -> None:
    click.echo(click.style(message, fg="yellow"), err=True)


def error(message: str) -> None:
    click.echo(click.style(message, fg="red"), err=True)
