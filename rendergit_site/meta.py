"""Repository metadata shown in every page's header."""

from __future__ import annotations

import dataclasses
import pathlib

from .git import Repository


@dataclasses.dataclass(frozen=True)
class RepoMeta:
    name: str
    stripped_name: str
    description: str = ""
    clone_url: str = ""
    has_readme: bool = False
    has_license: bool = False


def read_first_line(repo_dir: pathlib.Path, filename: str) -> str:
    """First line of `filename` in `repo_dir` or `repo_dir/.git`, else ""."""
    for p in (repo_dir / filename, repo_dir / ".git" / filename):
        if not p.is_file():
            continue
        with p.open(encoding="utf-8", errors="replace") as f:
            return f.readline().rstrip("\r\n")
    return ""


def read_meta(repo: Repository, repo_dir: str | pathlib.Path) -> RepoMeta:
    path = pathlib.Path(repo_dir)
    name = path.resolve().name
    stripped = name[:-4] if name.endswith(".git") else name
    return RepoMeta(
        name=name,
        stripped_name=stripped,
        description=read_first_line(path, "description"),
        clone_url=read_first_line(path, "url"),
        has_readme=repo.exists("HEAD:README"),
        has_license=repo.exists("HEAD:LICENSE"),
    )
