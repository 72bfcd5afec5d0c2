from __future__ import annotations

import re
import subprocess
from collections.abc import Callable
from typing import Protocol

from stashtriage.models import StashEntry

TEMP_BRANCH_NAME = "__TEMP_STASH__"

_MISSING_MARKERS = (
    "is not a valid reference",
    "does not exist",
    "is not a stash-like commit",
)


# -- Exceptions --


class BackendError(Exception):
    """Base class for failures of a git stash operation."""

    def __init__(
        self,
        message: str,
        returncode: int | None = None,
        stderr: str | None = None,
    ) -> None:
        self.returncode = returncode
        self.stderr = (stderr or "").strip()
        if returncode is not None:
            message += f" (exit {returncode})"
        if self.stderr:
            message += f"\n{self.stderr}"
        super().__init__(message)


class RepositoryError(BackendError):
    """Raised when the stash list cannot be queried at all."""


class StashNotFoundError(BackendError):
    """Raised when a stash index does not exist in the current stash list."""

    def __init__(self, index: int, stderr: str | None = None) -> None:
        self.index = index
        super().__init__(f"{stash_ref(index)} not found.", stderr=stderr)


class StashExecutionError(BackendError):
    """Raised when a git command exits non-zero or cannot be run."""


class BranchCreateError(StashExecutionError):
    """Raised when a stash could not be committed to a branch. The stash is kept."""


class RollbackError(StashExecutionError):
    """Raised when undoing a failed branch attempt failed, leaving the temp branch behind."""

    def __init__(
        self,
        temp_branch: str,
        step: str,
        returncode: int | None = None,
        stderr: str | None = None,
    ) -> None:
        self.temp_branch = temp_branch
        self.step = step
        super().__init__(
            f"Could not clean up branch '{temp_branch}': git {step} failed. "
            "Check out your previous branch and delete it by hand.",
            returncode,
            stderr,
        )


class StashDropError(StashExecutionError):
    """Raised when the branch was created but dropping the stash failed."""

    def __init__(
        self,
        branch: str,
        index: int,
        returncode: int | None = None,
        stderr: str | None = None,
    ) -> None:
        self.branch = branch
        self.index = index
        super().__init__(
            f"Saved {stash_ref(index)} to branch '{branch}' but could not drop it.",
            returncode,
            stderr,
        )


# -- Helpers --


def stash_ref(index: int) -> str:
    return f"stash@{{{index}}}"


def strip_stash_prefix(subject: str) -> str:
    """Remove git's 'WIP on <branch>: ' / 'On <branch>: ' prefix from a stash subject."""
    return re.sub(r"^(?:WIP on|On) [^:]+:\s*", "", subject).strip()


def slugify_subject(subject: str) -> str:
    """Turn a commit subject into a branch-safe name.

    Whitespace runs become underscores and everything but letters, digits and
    underscores is dropped.
    """
    name = "_".join(subject.split())
    name = "".join(c for c in name if c == "_" or c.isalnum())
    return name.lower() or "stash"


def _is_missing(result: subprocess.CompletedProcess[str]) -> bool:
    return any(marker in (result.stderr or "") for marker in _MISSING_MARKERS)


# -- Backend --


class StashBackend(Protocol):
    """Operations the triage loop needs from a stash store."""

    def count(self) -> int: ...

    def show(self, index: int) -> str: ...

    def drop(self, index: int) -> None: ...

    def branch(
        self, index: int, prefix: str = "stash", edit_message: bool = False
    ) -> str: ...

    def apply(self, index: int) -> bool: ...

    def has_local_changes(self) -> bool: ...

    def is_applied(self, index: int) -> bool: ...


class GitStashBackend:
    """Stash operations against a single repository, run through the git CLI."""

    def __init__(
        self,
        repo_path: str = ".",
        color: bool = True,
        trace: Callable[[str], None] | None = None,
    ) -> None:
        self.repo_path = repo_path
        self.color = color
        self.trace = trace

    def _git(
        self,
        *args: str,
        input: str | None = None,
        capture: bool = True,
    ) -> subprocess.CompletedProcess[str]:
        cmd = ["git", "-C", self.repo_path, *args]
        if self.trace is not None:
            self.trace("$ " + " ".join(cmd))
        try:
            return subprocess.run(
                cmd,
                input=input,
                capture_output=capture,
                text=True,
            )
        except FileNotFoundError as e:
            raise RepositoryError("git executable not found.") from e

    def _ensure_repo(self) -> None:
        result = self._git("rev-parse", "--git-dir")
        if result.returncode != 0:
            raise RepositoryError(
                "Not inside a git repository.", result.returncode, result.stderr
            )

    def _check_index(self, index: int) -> None:
        if index < 0 or index >= self.count():
            raise StashNotFoundError(index)

    def _run_on_stash(self, index: int, *args: str) -> subprocess.CompletedProcess[str]:
        """Run a stash subcommand against stash@{index}, mapping failures to errors."""
        self._check_index(index)
        ref = stash_ref(index)
        result = self._git(*args, ref)
        if result.returncode != 0:
            if _is_missing(result):
                raise StashNotFoundError(index, result.stderr)
            raise StashExecutionError(
                f"git {' '.join(args)} {ref} failed.",
                result.returncode,
                result.stderr,
            )
        return result

    def count(self) -> int:
        """Return the number of stash entries."""
        self._ensure_repo()
        result = self._git("stash", "list")
        if result.returncode != 0:
            raise RepositoryError(
                "Could not list stashes.", result.returncode, result.stderr
            )
        return len(result.stdout.splitlines())

    def entries(self) -> list[StashEntry]:
        self._ensure_repo()
        result = self._git("stash", "list", "--format=%gd%x00%gs")
        if result.returncode != 0:
            raise RepositoryError(
                "Could not list stashes.", result.returncode, result.stderr
            )
        entries: list[StashEntry] = []
        for index, line in enumerate(result.stdout.splitlines()):
            ref, _, subject = line.partition("\0")
            entries.append(StashEntry(index=index, ref=ref, subject=subject))
        return entries

    def show(self, index: int) -> str:
        """Return the patch of a stash, colored when the backend has color on."""
        if self.color:
            return self._run_on_stash(
                index, "-c", "color.ui=always", "stash", "show", "-p"
            ).stdout
        return self._run_on_stash(index, "stash", "show", "-p").stdout

    def drop(self, index: int) -> None:
        self._run_on_stash(index, "stash", "drop")

    def apply(self, index: int) -> bool:
        """Apply a stash without removing it.

        Returns True if git reported merge conflicts, False on a clean apply.
        Raises StashExecutionError when git refused to apply at all.
        """
        self._check_index(index)
        ref = stash_ref(index)
        result = self._git("stash", "apply", ref)
        if result.returncode == 0:
            return False
        if "CONFLICT" in (result.stdout or "") + (result.stderr or ""):
            return True
        if _is_missing(result):
            raise StashNotFoundError(index, result.stderr)
        raise StashExecutionError(
            f"git stash apply {ref} failed.", result.returncode, result.stderr
        )

    def has_local_changes(self) -> bool:
        """Check if the working tree is dirty (staged, unstaged or untracked)."""
        result = self._git("status", "--porcelain")
        if result.returncode != 0:
            raise RepositoryError(
                "Could not read working tree status.", result.returncode, result.stderr
            )
        return bool(result.stdout.strip())

    def is_applied(self, index: int) -> bool:
        """Check whether a stash's changes are already present in the working tree.

        The stash patch is reverse-applied with --check: if that would succeed,
        every hunk is already there.
        """
        patch = self._run_on_stash(index, "stash", "show", "-p", "--no-color").stdout
        if not patch.strip():
            return False
        result = self._git("apply", "--check", "--reverse", input=patch)
        return result.returncode == 0

    def stash_subject(self, index: int) -> str:
        result = self._run_on_stash(index, "log", "-1", "--format=%s")
        return strip_stash_prefix(result.stdout.strip())

    def _branch_exists(self, name: str) -> bool:
        result = self._git("rev-parse", "--verify", "--quiet", f"refs/heads/{name}")
        return result.returncode == 0

    def _unique_branch_name(self, name: str) -> str:
        if not self._branch_exists(name):
            return name
        i = 2
        while self._branch_exists(f"{name}-{i}"):
            i += 1
        return f"{name}-{i}"

    def _rollback_branch(self, temp_branch: str) -> None:
        """Discard the half-built temp branch and return to the previous branch.

        Raises RollbackError if any step fails; the repository is then left on
        or with the temp branch and needs manual cleanup.
        """
        steps = (
            ("reset", "--hard", "HEAD"),
            ("clean", "-fd"),
            ("checkout", "-"),
            ("branch", "-D", temp_branch),
        )
        for step in steps:
            result = self._git(*step)
            if result.returncode != 0:
                raise RollbackError(
                    temp_branch, " ".join(step), result.returncode, result.stderr
                )

    def branch(
        self,
        index: int,
        prefix: str = "stash",
        edit_message: bool = False,
    ) -> str:
        """Commit a stash to its own branch, then drop the stash.

        The stash is applied onto a temporary branch cut from HEAD and committed
        with the stash subject as message (or via $EDITOR when edit_message is
        set). The branch is then renamed after the commit subject.

        Returns the new branch name.
        Raises BranchCreateError if anything fails before the branch exists;
        the stash is left untouched in that case.
        Raises RollbackError if undoing a failed attempt itself failed.
        Raises StashDropError if the branch exists but the stash could not be dropped.
        """
        ref = stash_ref(index)
        self._check_index(index)
        if self.has_local_changes():
            raise BranchCreateError(
                "Can't commit stashes to branches with local changes in the working tree."
            )

        subject = self.stash_subject(index)
        temp_branch = f"{prefix}/{TEMP_BRANCH_NAME}"

        result = self._git("checkout", "-b", temp_branch)
        if result.returncode != 0:
            raise BranchCreateError(
                f"Could not create branch '{temp_branch}'.",
                result.returncode,
                result.stderr,
            )

        result = self._git("stash", "apply", ref)
        if result.returncode != 0:
            self._rollback_branch(temp_branch)
            raise BranchCreateError(
                f"Could not apply {ref} onto '{temp_branch}'.",
                result.returncode,
                result.stderr or result.stdout,
            )

        result = self._git("add", "-A")
        if result.returncode != 0:
            self._rollback_branch(temp_branch)
            raise BranchCreateError(
                f"Could not stage the changes of {ref}.",
                result.returncode,
                result.stderr,
            )

        commit_args = ["commit", "-n", "-m", subject]
        if edit_message:
            commit_args.append("-e")
        # The editor needs the terminal, so output is not captured in that case.
        result = self._git(*commit_args, capture=not edit_message)
        if result.returncode != 0:
            self._rollback_branch(temp_branch)
            raise BranchCreateError(
                f"Commit aborted; {ref} was kept.", result.returncode, result.stderr
            )

        if edit_message:
            subject = self._git("log", "-1", "--format=%s").stdout.strip()

        branch_name = self._unique_branch_name(f"{prefix}/{slugify_subject(subject)}")
        result = self._git("branch", "-m", branch_name)
        if result.returncode != 0:
            raise StashExecutionError(
                f"Committed {ref} to '{temp_branch}' but could not rename it "
                f"to '{branch_name}'.",
                result.returncode,
                result.stderr,
            )

        result = self._git("checkout", "-")
        if result.returncode != 0:
            raise StashExecutionError(
                f"Committed {ref} to '{branch_name}' but could not check out "
                "the previous branch.",
                result.returncode,
                result.stderr,
            )

        result = self._git("stash", "drop", ref)
        if result.returncode != 0:
            raise StashDropError(branch_name, index, result.returncode, result.stderr)

        return branch_name
