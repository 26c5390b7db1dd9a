"""Record certificate changes in a local git repository."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from .providers.git import GitError, GitProvider
from .stages import StageResult


@dataclass(slots=True)
class RepositoryCommitter:
    """Commit outstanding changes of a directory under the automation identity.

    Missing tooling and directories that are not repositories are soft
    preconditions: the commit is skipped and reported as success so that
    hosts without an audit repository still propagate certificates.
    """

    git: GitProvider

    def commit(self, directory: Path) -> StageResult:
        """Commit every change below *directory*."""
        if not self.git.available():
            return StageResult.skipped(
                f"{self.git.git_bin} not installed; skipping commit of {directory}.",
                directory=directory,
            )
        if not directory.is_dir():
            return StageResult.skipped(
                f"{directory} does not exist; nothing to commit.", directory=directory
            )
        if not self.git.is_repository(directory):
            return StageResult.skipped(
                f"{directory} is not a git repository; skipping commit.", directory=directory
            )

        try:
            untracked = self.git.untracked_files(directory)
            tracked = 1 if self.git.has_tracked_changes(directory) else 0
        except GitError as exc:
            return StageResult.failed(
                f"Unable to inspect {directory}: {exc}", directory=directory
            )

        # Tracked changes count as one regardless of how many files moved.
        changed = len(untracked) + tracked
        if changed == 0:
            return StageResult.success(
                f"No changes in {directory}; nothing to commit.", directory=directory, changed=0
            )

        message = f"certsync: record certificate changes in {directory}"
        try:
            self.git.add_all(directory)
            self.git.commit(directory, message)
        except GitError as exc:
            return StageResult.failed(
                f"Failed to commit {directory}: {exc}", directory=directory, changed=changed
            )
        return StageResult.success(
            f"Committed {changed} file(s) changed in {directory}.",
            directory=directory,
            changed=changed,
        )


__all__ = ["RepositoryCommitter"]
