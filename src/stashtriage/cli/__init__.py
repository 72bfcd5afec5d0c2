from __future__ import annotations

import click

from stashtriage.cli.admin import config
from stashtriage.cli.triage import list_cmd, run_triage, triage


@click.group(invoke_without_command=True)
@click.option(
    "-r",
    "--repo",
    "repo_path",
    default=None,
    help="Target repo path (default: current directory).",
)
@click.option("-v", "--verbose", is_flag=True, help="Echo every git command run.")
@click.pass_context
def cli(ctx: click.Context, repo_path: str | None, verbose: bool) -> None:
    """git-stash-triage: walk through git stashes one at a time.

    Without a subcommand, runs the interactive triage.
    """
    ctx.ensure_object(dict)
    ctx.obj["repo_path"] = repo_path
    ctx.obj["verbose"] = verbose
    if ctx.invoked_subcommand is None:
        run_triage(repo_path, verbose)


cli.add_command(triage)
cli.add_command(list_cmd)
cli.add_command(config)

__all__ = ["cli"]
