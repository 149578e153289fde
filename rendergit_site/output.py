"""
Writing pages into the output directory.

Pages are written to a temporary file next to their final path and moved into
place only once complete, so an interrupted run never leaves a truncated page
behind. Commit pages use `exclusive=True`: the finished file is hard-linked to
its final name, which fails instead of replacing a page that already exists.
"""

from __future__ import annotations

import contextlib
import os
import pathlib
import tempfile
from typing import IO, Iterator

PAGE_MODE = 0o644


def relpath_for(path: str) -> str:
    """Prefix leading from output-relative `path` back to the output root."""
    return "../" * path.count("/")


@contextlib.contextmanager
def atomic_write(path: pathlib.Path, exclusive: bool = False) -> Iterator[IO[str]]:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=".tmp-", suffix=path.suffix)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as fp:
            yield fp
        os.chmod(tmp, PAGE_MODE)
        if exclusive:
            try:
                os.link(tmp, path)
            except FileExistsError:
                pass
        else:
            os.replace(tmp, path)
    finally:
        with contextlib.suppress(FileNotFoundError):
            os.unlink(tmp)
