from __future__ import annotations

import click

from stashtriage.config import Config
from stashtriage.stash import GitStashBackend


def _trace(line: str) -> None:
    click.secho(line, fg="bright_black", err=True)


def _make_backend(repo_path: str | None, verbose: bool, config: Config) -> GitStashBackend:
    """Build a backend for --repo or the current directory."""
    return GitStashBackend(
        repo_path=repo_path or ".",
        color=config.color,
        trace=_trace if verbose else None,
    )
