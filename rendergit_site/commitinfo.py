"""
Per-commit records and the first-parent history walk.

A CommitInfo bundles a commit with its tree, its first parent's tree and the
diff between the two. Records are built one commit at a time and released as
soon as the commit has been rendered.
"""

from __future__ import annotations

import dataclasses
import sys
from typing import Iterator, Optional

from .diff import Diff, DiffStats
from .errors import GitError, NotFoundError
from .git import Commit, Repository, Signature


@dataclasses.dataclass
class CommitInfo:
    oid: str
    parent_oid: str  # "" for a root commit
    author: Optional[Signature]
    summary: Optional[str]
    msg: Optional[str]
    filecount: int
    addcount: int
    delcount: int

    commit: Optional[Commit] = None
    commit_tree: Optional[str] = None
    parent_tree: Optional[str] = None
    diff: Optional[Diff] = None
    stats: Optional[DiffStats] = None

    def __enter__(self) -> "CommitInfo":
        return self

    def __exit__(self, *exc) -> None:
        self.release()

    def release(self) -> None:
        """Drop the commit, trees, diff and stats together."""
        self.commit = None
        self.commit_tree = None
        self.parent_tree = None
        self.diff = None
        self.stats = None

    @property
    def released(self) -> bool:
        return self.diff is None


def get_commit_info(repo: Repository, oid: str) -> CommitInfo:
    """Build the CommitInfo for `oid`, diffed against its first parent only.

    Raises NotFoundError when `oid` is not a commit. A first parent that is
    missing from the object store (shallow clones) is treated like no parent:
    the diff is taken against the empty tree.
    """
    commit = repo.commit(oid)

    parent_oid = commit.parents[0] if commit.parents else ""
    parent_tree: Optional[str] = None
    if parent_oid:
        try:
            parent_tree = repo.commit(parent_oid).tree
        except NotFoundError:
            parent_tree = None

    diff = repo.diff_trees(parent_tree, commit.tree)
    stats = diff.stats()

    return CommitInfo(
        oid=commit.oid,
        parent_oid=parent_oid,
        author=commit.author,
        summary=commit.summary,
        msg=commit.message,
        filecount=stats.files_changed,
        addcount=stats.insertions,
        delcount=stats.deletions,
        commit=commit,
        commit_tree=commit.tree,
        parent_tree=parent_tree,
        diff=diff,
        stats=stats,
    )


def walk(repo: Repository, start: str, max_count: Optional[int] = None) -> Iterator[CommitInfo]:
    """Yield CommitInfo records along the first-parent chain from `start`.

    Each record is released once the consumer moves on. If a commit cannot be
    extracted the walk stops there; what was already yielded stays valid.
    """
    ids = repo.rev_list(start, max_count=max_count)
    try:
        for oid in ids:
            try:
                ci = get_commit_info(repo, oid)
            except GitError as e:
                print(f"⚠️  History walk stopped at {oid[:8]}: {e}", file=sys.stderr)
                return
            with ci:
                yield ci
    finally:
        ids.close()
