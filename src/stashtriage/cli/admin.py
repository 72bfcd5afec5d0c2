from __future__ import annotations

import os
import subprocess

import click

from stashtriage.config import Config, ensure_config


def _format_config(config: Config) -> str:
    return "\n".join(
        [
            f"branch prefix:           {config.branch_prefix}",
            f"edit commit message:     {'yes' if config.edit_message else 'no'}",
            f"confirm unapplied drops: {'yes' if config.confirm_unapplied_drop else 'no'}",
            f"color:                   {'yes' if config.color else 'no'}",
        ]
    )


@click.command()
@click.option("--edit", is_flag=True, help="Open config in $EDITOR.")
@click.option("--raw", is_flag=True, help="Print the config file as written.")
def config(edit: bool, raw: bool) -> None:
    """Show the settings triage will use, or edit the config file."""
    config_path = ensure_config()

    if edit:
        editor = os.environ.get("EDITOR", "vi")
        subprocess.run([editor, str(config_path)])
        return

    if raw:
        click.echo(config_path.read_text())
        return

    click.echo(f"# {config_path}")
    click.echo(_format_config(Config.load(config_path)))
