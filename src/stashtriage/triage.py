"""Interactive triage loop: show each stash, ask what to do, do it."""

from __future__ import annotations

import sys
from typing import TextIO

import click

from stashtriage.models import Decision, TriageResult, TriageState, parse_decision
from stashtriage.stash import (
    BranchCreateError,
    StashBackend,
    StashExecutionError,
    stash_ref,
)

PROMPT = "Action on this stash [d,b,s,a,q,?]? "
CONFIRM_DROP_PROMPT = "Stash may not be applied. Drop anyway? [y/N] "

HELP_TEXT = """\
d - drop this stash
b - commit this stash to a separate branch and delete it
s - take no action on this stash
a - apply; apply the stash and take no further action
q - quit; take no further action on remaining stashes
? - print help"""

LOCAL_CHANGES_WARNING = (
    "WARNING - Can't backup stashes as branches with local changes.\n"
    "Resolve local changes to backup stashes as branches."
)


class InputExhaustedError(Exception):
    """Raised when input ends while a decision is still required."""

    def __init__(self) -> None:
        super().__init__("Input ended before a decision was made.")


class TriageLoop:
    """Walks the stash list, lowest index first, one decision per entry.

    The cursor is a backend index. Drop and branch remove the entry under the
    cursor so the next one shifts into place; skip and apply leave it and move
    the cursor on. The stash count is re-read from the backend before every
    presentation.
    """

    def __init__(
        self,
        backend: StashBackend,
        input_stream: TextIO | None = None,
        branch_prefix: str = "stash",
        edit_message: bool = False,
        confirm_unapplied_drop: bool = False,
        color: bool = True,
    ) -> None:
        self.backend = backend
        self.input = input_stream if input_stream is not None else sys.stdin
        self.branch_prefix = branch_prefix
        self.edit_message = edit_message
        self.confirm_unapplied_drop = confirm_unapplied_drop
        self.color = color
        self.state = TriageState()
        self.result = TriageResult()

    # -- Output --

    def _style(self, text: str, fg: str) -> str:
        if not self.color:
            return text
        return click.style(text, fg=fg, bold=True)

    def _error(self, message: str) -> None:
        click.echo(self._style(message, "red"), err=True)

    def _read_line(self, prompt: str) -> str:
        click.echo(self._style(prompt, "blue"), nl=False)
        line = self.input.readline()
        if not line:
            click.echo()
            raise InputExhaustedError()
        return line

    # -- Loop --

    def run(self) -> TriageResult:
        if self.backend.count() == 0:
            click.echo("No stashes found.")
            return self.result

        if self.backend.has_local_changes():
            self._error(LOCAL_CHANGES_WARNING)

        while self.state.running and self.state.cursor < self.backend.count():
            index = self.state.cursor
            click.echo(self.backend.show(index), nl=False)
            self._decide(index)

        return self.result

    def _decide(self, index: int) -> None:
        """Prompt until a decision acts on the stash at index or quits.

        Returns without moving the cursor when the stash should be shown again.
        """
        while True:
            line = self._read_line(PROMPT)
            decision = parse_decision(line)

            if decision is Decision.HELP:
                click.echo(self._style(HELP_TEXT, "red"))
                continue
            if decision is Decision.UNRECOGNIZED:
                click.echo(f"Invalid choice '{line.strip()}'. Enter ? for help.")
                continue

            if decision is Decision.QUIT:
                self.result.quit = True
                self.state.running = False
            elif decision is Decision.SKIP:
                self.result.skipped += 1
                self.state.cursor += 1
            elif decision is Decision.DROP:
                self._drop(index)
            elif decision is Decision.BRANCH:
                self._branch(index)
            elif decision is Decision.APPLY:
                self._apply(index)
            return

    def _drop(self, index: int) -> None:
        if self.confirm_unapplied_drop and not self.backend.is_applied(index):
            answer = self._read_line(CONFIRM_DROP_PROMPT)
            if answer.strip().lower() != "y":
                click.echo(f"Kept {stash_ref(index)}.")
                return
        self.backend.drop(index)
        self.result.dropped += 1
        click.echo(f"Dropped {stash_ref(index)}.")

    def _branch(self, index: int) -> None:
        try:
            branch = self.backend.branch(
                index, prefix=self.branch_prefix, edit_message=self.edit_message
            )
        except BranchCreateError as e:
            self._error(f"ERROR - {e}")
            return
        self.result.branched += 1
        self.result.branches.append(branch)
        click.echo(f"Saved {stash_ref(index)} to branch '{branch}'.")

    def _apply(self, index: int) -> None:
        try:
            conflicted = self.backend.apply(index)
        except StashExecutionError as e:
            self._error(f"ERROR - {e}")
            return
        if conflicted:
            self._error(f"Applied {stash_ref(index)} with conflicts; resolve them later.")
        else:
            click.echo(f"Applied {stash_ref(index)}.")
        self.result.applied += 1
        self.state.cursor += 1
