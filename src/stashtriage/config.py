from __future__ import annotations

import tomllib
from dataclasses import dataclass
from pathlib import Path

CONFIG_DIR = Path.home() / ".config" / "stashtriage"
CONFIG_FILE = CONFIG_DIR / "config.toml"

DEFAULT_CONFIG = """\
[branch]
# Branches created with `b` are named "<prefix>/<commit_subject>".
prefix = "stash"
# Open $EDITOR for the commit message instead of reusing the stash subject.
edit_message = false

[drop]
# Ask before dropping a stash whose changes are not in the working tree.
# Off by default so `d` always drops right away.
confirm_unapplied = false

[display]
color = true
"""


@dataclass
class Config:
    branch_prefix: str  # prefix for branches created from stashes
    edit_message: bool  # open $EDITOR when committing a stash to a branch
    confirm_unapplied_drop: bool  # confirm before dropping unapplied stashes
    color: bool  # colored diffs, prompt and help

    @classmethod
    def load(cls, path: Path | None = None) -> Config:
        path = path or CONFIG_FILE
        if path.exists():
            with open(path, "rb") as f:
                data = tomllib.load(f)
        else:
            data = {}

        branch = data.get("branch", {})
        branch_prefix = branch.get("prefix", "stash").strip("/") or "stash"
        edit_message = branch.get("edit_message", False)

        drop = data.get("drop", {})
        confirm_unapplied_drop = drop.get("confirm_unapplied", False)

        display = data.get("display", {})
        color = display.get("color", True)

        return cls(
            branch_prefix=branch_prefix,
            edit_message=edit_message,
            confirm_unapplied_drop=confirm_unapplied_drop,
            color=color,
        )


def get_config() -> Config:
    return Config.load()


def ensure_config() -> Path:
    """Create default config file if it doesn't exist. Returns config path."""
    if not CONFIG_FILE.exists():
        CONFIG_DIR.mkdir(parents=True, exist_ok=True)
        CONFIG_FILE.write_text(DEFAULT_CONFIG)
    return CONFIG_FILE
