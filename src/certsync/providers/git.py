"""Git provider used to record certificate changes in a local repository."""
from __future__ import annotations

import shutil
import subprocess
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path


class GitError(RuntimeError):
    """Raised when git operations fail."""


@dataclass(slots=True)
class GitProvider:
    """Run the handful of git commands needed to audit certificate changes."""

    git_bin: str = "git"
    author_name: str = "certsync"
    author_email: str = "certsync@localhost"

    def available(self) -> bool:
        """Return ``True`` when the git binary can be found."""
        return shutil.which(self.git_bin) is not None

    def is_repository(self, directory: Path) -> bool:
        """Return ``True`` when *directory* is the root of a git checkout."""
        return (directory / ".git").exists()

    def untracked_files(self, directory: Path) -> list[str]:
        """Return untracked files that are not excluded by ignore rules."""
        result = self._git(directory, ["ls-files", "--others", "--exclude-standard"])
        return [line for line in result.stdout.splitlines() if line.strip()]

    def has_tracked_changes(self, directory: Path) -> bool:
        """Return ``True`` when any tracked file is modified, added, removed or renamed."""
        result = self._git(directory, ["status", "--porcelain", "--untracked-files=no"])
        return bool(result.stdout.strip())

    def add_all(self, directory: Path) -> subprocess.CompletedProcess[str]:
        """Stage every change below *directory*."""
        return self._git(directory, ["add", "--all", "."])

    def commit(self, directory: Path, message: str) -> subprocess.CompletedProcess[str]:
        """Commit staged changes using the automation identity."""
        identity = f"{self.author_name} <{self.author_email}>"
        return self._git(
            directory,
            ["commit", "--quiet", f"--author={identity}", "--message", message],
            settings={"user.name": self.author_name, "user.email": self.author_email},
        )

    # ------------------------------------------------------------------
    def _git(
        self,
        directory: Path,
        args: Sequence[str],
        *,
        settings: Mapping[str, str] | None = None,
    ) -> subprocess.CompletedProcess[str]:
        command = [self.git_bin, "-C", str(directory)]
        for key, value in (settings or {}).items():
            command.extend(["-c", f"{key}={value}"])
        command.extend(args)
        try:
            result = subprocess.run(  # noqa: S603, S607
                command,
                capture_output=True,
                text=True,
                check=False,
            )
        except FileNotFoundError as exc:
            raise GitError(f"{self.git_bin} not found: {exc}") from exc
        if result.returncode != 0:
            message = (result.stderr or result.stdout or "no output").strip()
            raise GitError(
                f"{self.git_bin} {args[0]} failed (exit {result.returncode}): {message}"
            )
        return result


__all__ = ["GitError", "GitProvider"]
