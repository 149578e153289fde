"""Exceptions raised while reading a repository and rendering it."""

from __future__ import annotations

from typing import List


class RenderGitError(Exception):
    """Base exception for rendergit-site."""


class GitError(RenderGitError):
    """Raised when the repository cannot answer a query."""


class RepositoryError(GitError):
    """Raised when the repository cannot be opened."""


class NotFoundError(GitError):
    """Raised when an identifier, name or path does not resolve."""

    def __init__(self, what: str) -> None:
        self.what = what
        super().__init__(f"not found: {what}")


class GitCommandError(GitError):
    """Raised when a git subprocess exits with a non-zero status."""

    def __init__(self, cmd: List[str], returncode: int, stderr: str = "") -> None:
        self.cmd = cmd
        self.returncode = returncode
        self.stderr = stderr
        msg = stderr.strip() or f"exit status {returncode}"
        super().__init__(f"{' '.join(cmd)}: {msg}")
