"""Shared test fixtures for rendergit-site."""

from __future__ import annotations

import dataclasses
import os
import pathlib
import subprocess
from typing import Dict, Optional, Union

import pytest

from rendergit_site.git import Repository
from rendergit_site.meta import RepoMeta

START_TIME = 1_700_000_000


class RepoBuilder:
    """Builds a throwaway repository with predictable dates."""

    def __init__(self, path: pathlib.Path, home: pathlib.Path):
        self.path = path
        self.tick = START_TIME
        self.env = dict(
            os.environ,
            HOME=str(home),
            GIT_CONFIG_NOSYSTEM="1",
            GIT_CONFIG_GLOBAL=os.devnull,
            GIT_AUTHOR_NAME="A U Thor",
            GIT_AUTHOR_EMAIL="author@example.com",
            GIT_COMMITTER_NAME="C O Mitter",
            GIT_COMMITTER_EMAIL="committer@example.com",
        )
        path.mkdir(parents=True, exist_ok=True)
        self.git("init", "-q")
        self.git("symbolic-ref", "HEAD", "refs/heads/master")

    def git(self, *args: str) -> str:
        cp = subprocess.run(
            ["git", *args], cwd=self.path, env=self.env, check=True, capture_output=True, text=True
        )
        return cp.stdout

    def write(self, relpath: str, content: Union[str, bytes]) -> None:
        p = self.path / relpath
        p.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, str):
            content = content.encode("utf-8")
        p.write_bytes(content)

    def _next_date(self) -> str:
        self.tick += 3600
        date = f"{self.tick} +0100"
        self.env["GIT_AUTHOR_DATE"] = date
        self.env["GIT_COMMITTER_DATE"] = date
        return date

    def commit(self, message: str, files: Optional[Dict[str, Union[str, bytes]]] = None) -> str:
        for relpath, content in (files or {}).items():
            self.write(relpath, content)
        self.git("add", "-A")
        self._next_date()
        self.git("commit", "-q", "--allow-empty", "-m", message)
        return self.git("rev-parse", "HEAD").strip()

    def merge(self, branch: str, message: str) -> str:
        self._next_date()
        self.git("merge", "-q", "--no-ff", "-m", message, branch)
        return self.git("rev-parse", "HEAD").strip()


@dataclasses.dataclass
class Sample:
    path: pathlib.Path
    builder: RepoBuilder
    root: str
    second: str
    feature: str
    third: str
    merge: str


@pytest.fixture
def builder(tmp_path: pathlib.Path) -> RepoBuilder:
    return RepoBuilder(tmp_path / "sample.git", tmp_path)


@pytest.fixture
def sample(builder: RepoBuilder) -> Sample:
    """master: root -> second -> third -> merge(feature); tags v0.1, v0.2."""
    root = builder.commit(
        "Initial commit\n\nAdds the README, docs and a logo.",
        {
            "README": "hello\n",
            "docs/a.txt": "a\nb\n",
            "logo.bin": b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR",
        },
    )
    second = builder.commit(
        "Rework docs <and> add main",
        {"docs/a.txt": "a\nB\nc\n", "src/main.py": "print('hi')\n"},
    )
    builder.git("tag", "v0.1", root)
    builder.git("tag", "-a", "-m", "release 0.2", "v0.2", second)

    builder.git("checkout", "-q", "-b", "feature")
    feature = builder.commit("Feature work", {"feature.txt": "one\ntwo\nthree\n"})
    builder.git("checkout", "-q", "master")
    third = builder.commit("Tweak README", {"README": "hello\nworld\n"})
    merge = builder.merge("feature", "Merge branch 'feature'")
    return Sample(builder.path, builder, root, second, feature, third, merge)


@pytest.fixture
def repo(sample: Sample):
    with Repository(sample.path) as r:
        yield r


@pytest.fixture
def meta() -> RepoMeta:
    return RepoMeta(name="sample.git", stripped_name="sample", description="A sample repository")
