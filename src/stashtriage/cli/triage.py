from __future__ import annotations

import click

from stashtriage.cli.utils import _make_backend
from stashtriage.config import get_config
from stashtriage.stash import BackendError
from stashtriage.triage import InputExhaustedError, TriageLoop


def run_triage(repo_path: str | None, verbose: bool) -> None:
    config = get_config()
    backend = _make_backend(repo_path, verbose, config)
    loop = TriageLoop(
        backend,
        branch_prefix=config.branch_prefix,
        edit_message=config.edit_message,
        confirm_unapplied_drop=config.confirm_unapplied_drop,
        color=config.color,
    )
    try:
        result = loop.run()
    except (BackendError, InputExhaustedError) as e:
        raise click.ClickException(str(e))

    if result.removed or result.skipped or result.applied:
        click.echo(result.summary())
    for branch in result.branches:
        click.echo(f"  {branch}")


@click.command()
@click.pass_context
def triage(ctx: click.Context) -> None:
    """Triage stashes interactively (the default action)."""
    run_triage(ctx.obj["repo_path"], ctx.obj["verbose"])


@click.command("list")
@click.pass_context
def list_cmd(ctx: click.Context) -> None:
    """List stash entries."""
    config = get_config()
    backend = _make_backend(ctx.obj["repo_path"], ctx.obj["verbose"], config)
    try:
        entries = backend.entries()
    except BackendError as e:
        raise click.ClickException(str(e))

    if not entries:
        click.echo("No stashes found.")
        return
    for entry in entries:
        click.echo(f"{entry.ref}: {entry.subject}")
