"""
Read-only access to a git repository through the `git` command line.

Objects are read through one long-lived `git cat-file --batch` pipe; tree
listings, diffs, history and references come from the matching plumbing
commands. Nothing here ever writes to the repository.
"""

from __future__ import annotations

import codecs
import dataclasses
import pathlib
import re
import subprocess
from typing import IO, Generator, List, Optional, Tuple, cast

from .diff import Diff, parse_patch
from .errors import GitCommandError, GitError, NotFoundError, RepositoryError

# ---- constants & utilities ---------------------------------------------------

EMPTY_TREE_SHA = "4b825dc642cb6eb9a060e54bf8d69288fbee4904"
BINARY_PROBE_BYTES = 8000

_SIG_RE = re.compile(r"^(.*?) ?<(.*)> (-?\d+) ([+-])(\d\d)(\d\d)$")

_UTF16_32_BOMS = (
    codecs.BOM_UTF32_LE, codecs.BOM_UTF32_BE,
    codecs.BOM_UTF16_LE, codecs.BOM_UTF16_BE,
)


def run(cmd: List[str], cwd: str | None = None, check: bool = True, text: bool = True) -> subprocess.CompletedProcess:
    return subprocess.run(cmd, cwd=cwd, check=check, text=text, capture_output=True)


def is_binary(data: bytes) -> bool:
    """Guess whether blob content is binary, the way git's attributes-free check does."""
    probe = data[:BINARY_PROBE_BYTES]
    if probe.startswith(_UTF16_32_BOMS):
        return True
    if probe.startswith(codecs.BOM_UTF8):
        probe = probe[len(codecs.BOM_UTF8):]
    printable = nonprintable = 0
    for c in probe:
        if (c > 0x1F and c != 0x7F) or c in (0x08, 0x1B, 0x0C):
            printable += 1
        elif c == 0:
            return True
        elif c not in (0x20, 0x09, 0x0A, 0x0B, 0x0C, 0x0D):
            nonprintable += 1
    return (printable >> 7) < nonprintable


# ---- object model ------------------------------------------------------------

@dataclasses.dataclass(frozen=True)
class Signature:
    name: str
    email: str
    time: int  # seconds since the epoch
    offset: int  # minutes east of UTC


@dataclasses.dataclass
class Commit:
    oid: str
    tree: str
    parents: List[str]
    author: Optional[Signature]
    committer: Optional[Signature]
    summary: Optional[str]
    message: Optional[str]


@dataclasses.dataclass(frozen=True)
class TreeEntry:
    name: str
    mode: int
    kind: str  # "blob", "tree" or "commit" (submodule)
    oid: str
    size: Optional[int]


@dataclasses.dataclass(frozen=True)
class Reference:
    name: str
    target: Optional[str] = None  # object id, for direct references
    symbolic_target: Optional[str] = None  # reference name, for symbolic ones

    @property
    def is_symbolic(self) -> bool:
        return self.symbolic_target is not None

    @property
    def is_branch(self) -> bool:
        return self.name.startswith("refs/heads/")

    @property
    def is_tag(self) -> bool:
        return self.name.startswith("refs/tags/")

    @property
    def shorthand(self) -> str:
        for prefix in ("refs/heads/", "refs/tags/", "refs/remotes/", "refs/"):
            if self.name.startswith(prefix):
                return self.name[len(prefix):]
        return self.name


def parse_signature(raw: str) -> Optional[Signature]:
    m = _SIG_RE.match(raw.strip())
    if not m:
        return None
    name, email, ts, sign, hh, mm = m.groups()
    offset = int(hh) * 60 + int(mm)
    return Signature(name=name, email=email, time=int(ts), offset=-offset if sign == "-" else offset)


def commit_summary(message: str) -> Optional[str]:
    """First paragraph of `message` folded onto one line."""
    words: List[str] = []
    for line in message.lstrip().split("\n"):
        if not line.strip():
            break
        words.append(line.strip())
    summary = " ".join(words)
    return summary or None


def parse_commit(oid: str, data: bytes) -> Commit:
    head, sep, body = data.partition(b"\n\n")
    if not sep and not head.startswith(b"tree "):
        raise GitError(f"malformed commit {oid}")

    fields: List[Tuple[bytes, bytes]] = []
    for line in head.split(b"\n"):
        if line.startswith(b" ") and fields:
            key, value = fields[-1]
            fields[-1] = (key, value + b"\n" + line[1:])
            continue
        key, _, value = line.partition(b" ")
        fields.append((key, value))

    encoding = "utf-8"
    for key, value in fields:
        if key == b"encoding":
            try:
                encoding = codecs.lookup(value.decode("ascii", errors="replace")).name
            except LookupError:
                pass

    tree = ""
    parents: List[str] = []
    author = committer = None
    for key, value in fields:
        if key == b"tree":
            tree = value.decode("ascii")
        elif key == b"parent":
            parents.append(value.decode("ascii"))
        elif key == b"author":
            author = parse_signature(value.decode(encoding, errors="replace"))
        elif key == b"committer":
            committer = parse_signature(value.decode(encoding, errors="replace"))

    message = body.decode(encoding, errors="replace").lstrip("\n")
    return Commit(
        oid=oid,
        tree=tree,
        parents=parents,
        author=author,
        committer=committer,
        summary=commit_summary(message),
        message=message or None,
    )


# ---- object reader -----------------------------------------------------------

class CatFile:
    """Link to `git cat-file --batch`, started on first use."""

    def __init__(self, repo_dir: str):
        self.repo_dir = repo_dir
        self.p: Optional[subprocess.Popen] = None

    def _start(self) -> subprocess.Popen:
        self.p = subprocess.Popen(
            ["git", "cat-file", "--batch"],
            cwd=self.repo_dir,
            stdin=subprocess.PIPE,
            stdout=subprocess.PIPE,
            stderr=subprocess.DEVNULL,
        )
        return self.p

    def get(self, ref: str) -> Tuple[str, bytes]:
        """Return (kind, content) for the object named by `ref`."""
        if not ref or "\n" in ref:
            raise NotFoundError(repr(ref))
        p = self.p if self.p is not None else self._start()
        stdin, stdout = cast(IO[bytes], p.stdin), cast(IO[bytes], p.stdout)
        stdin.write(ref.encode("utf-8") + b"\n")
        stdin.flush()
        hdr = stdout.readline()
        if not hdr:
            self.close()
            raise GitError(f"unexpected cat-file EOF (last request: {ref!r})")
        parts = hdr.split()
        if len(parts) != 3:
            # "<ref> missing" or "<ref> ambiguous"
            raise NotFoundError(ref)
        _, kind, size = parts
        n = int(size)
        data = stdout.read(n)
        trailer = stdout.read(1)
        if len(data) != n or trailer != b"\n":
            self.close()
            raise GitError(f"short read from cat-file for {ref!r}")
        return kind.decode("ascii"), data

    def close(self) -> None:
        p, self.p = self.p, None
        if p is None:
            return
        cast(IO[bytes], p.stdin).close()
        cast(IO[bytes], p.stdout).close()
        p.wait()


# ---- repository --------------------------------------------------------------

class Repository:
    """A repository opened at exactly `path` (no upward search)."""

    def __init__(self, path: str | pathlib.Path):
        self.path = pathlib.Path(path)
        if not self.path.is_dir():
            raise RepositoryError(f"{self.path}: not a directory")
        cp = run(["git", "rev-parse", "--absolute-git-dir"], cwd=str(self.path), check=False)
        if cp.returncode != 0:
            raise RepositoryError(f"{self.path}: {cp.stderr.strip() or 'not a git repository'}")
        git_dir = pathlib.Path(cp.stdout.strip()).resolve()
        root = self.path.resolve()
        if git_dir not in (root, root / ".git"):
            raise RepositoryError(f"{self.path}: not a repository root (git dir is {git_dir})")
        self.git_dir = git_dir
        self._cat = CatFile(str(self.path))

    def __enter__(self) -> "Repository":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def close(self) -> None:
        self._cat.close()

    def git(self, *args: str, text: bool = True):
        cmd = ["git", *args]
        cp = run(cmd, cwd=str(self.path), check=False, text=text)
        if cp.returncode != 0:
            stderr = cp.stderr if text else cp.stderr.decode("utf-8", errors="replace")
            raise GitCommandError(cmd, cp.returncode, stderr)
        return cp.stdout

    # -- names -----------------------------------------------------------------

    def rev_parse(self, name: str) -> str:
        """Resolve `name` to a commit id."""
        cp = run(["git", "rev-parse", "--verify", "--quiet", f"{name}^{{commit}}"], cwd=str(self.path), check=False)
        if cp.returncode != 0:
            raise NotFoundError(name)
        return cp.stdout.strip()

    def exists(self, spec: str) -> bool:
        cp = run(["git", "rev-parse", "--verify", "--quiet", spec], cwd=str(self.path), check=False)
        return cp.returncode == 0

    # -- objects ---------------------------------------------------------------

    def read_object(self, oid: str) -> Tuple[str, bytes]:
        return self._cat.get(oid)

    def commit(self, oid: str) -> Commit:
        kind, data = self.read_object(oid)
        if kind != "commit":
            raise NotFoundError(f"commit {oid}")
        return parse_commit(oid, data)

    def blob(self, oid: str) -> bytes:
        kind, data = self.read_object(oid)
        if kind != "blob":
            raise NotFoundError(f"blob {oid}")
        return data

    def tree_entries(self, tree: str) -> List[TreeEntry]:
        """Entries of `tree` in the order the tree stores them."""
        try:
            out = self.git("ls-tree", "-z", "--long", tree, text=False)
        except GitCommandError as e:
            raise NotFoundError(f"tree {tree}") from e
        entries: List[TreeEntry] = []
        for rec in out.split(b"\0"):
            if not rec:
                continue
            meta, _, name = rec.partition(b"\t")
            mode, kind, oid, size = meta.split()
            entries.append(
                TreeEntry(
                    name=name.decode("utf-8", errors="replace"),
                    mode=int(mode, 8),
                    kind=kind.decode("ascii"),
                    oid=oid.decode("ascii"),
                    size=int(size) if size.isdigit() else None,
                )
            )
        return entries

    def diff_trees(self, old_tree: Optional[str], new_tree: str) -> Diff:
        """Whole-tree diff; `old_tree=None` diffs against the empty tree."""
        out = self.git(
            "-c", "core.quotepath=false",
            "diff-tree", "-p", "-r", "--no-renames", "--no-color",
            "--no-ext-diff", "--no-textconv", "--full-index",
            "--src-prefix=a/", "--dst-prefix=b/",
            old_tree or EMPTY_TREE_SHA, new_tree,
            text=False,
        )
        return parse_patch(out.decode("utf-8", errors="replace"))

    # -- history ---------------------------------------------------------------

    def rev_list(self, start: str, max_count: Optional[int] = None) -> Generator[str, None, None]:
        """Lazily yield first-parent ancestors of `start`, newest first."""
        cmd = ["git", "rev-list", "--first-parent"]
        if max_count is not None:
            cmd.append(f"--max-count={max_count}")
        cmd += [start, "--"]
        p = subprocess.Popen(cmd, cwd=str(self.path), stdout=subprocess.PIPE, stderr=subprocess.DEVNULL, text=True)
        stdout = cast(IO[str], p.stdout)
        finished = False
        try:
            for line in stdout:
                oid = line.strip()
                if oid:
                    yield oid
            finished = True
        finally:
            if not finished:
                p.kill()
            stdout.close()
            rc = p.wait()
        if rc != 0:
            raise NotFoundError(start)

    # -- references ------------------------------------------------------------

    def _for_each_ref(self, *patterns: str) -> List[Reference]:
        out = self.git("for-each-ref", "--format=%(refname)%00%(symref)%00%(objectname)", *patterns)
        refs: List[Reference] = []
        for line in out.splitlines():
            name, symref, oid = line.split("\0")
            if symref:
                refs.append(Reference(name=name, symbolic_target=symref))
            else:
                refs.append(Reference(name=name, target=oid))
        return refs

    def references(self) -> List[Reference]:
        return self._for_each_ref()

    def resolve(self, ref: Reference) -> Reference:
        """Follow a symbolic reference one level to the reference it names."""
        if not ref.is_symbolic:
            return ref
        for r in self._for_each_ref(ref.symbolic_target):
            if r.name == ref.symbolic_target:
                return r
        raise NotFoundError(f"{ref.name} -> {ref.symbolic_target}")

    def peel(self, ref: Reference) -> str:
        """Id of the commit `ref` designates, through any annotated tags."""
        if ref.target is None:
            raise NotFoundError(f"target of {ref.name}")
        oid = ref.target
        while True:
            kind, data = self.read_object(oid)
            if kind == "commit":
                return oid
            if kind != "tag":
                raise NotFoundError(f"commit for {ref.name} ({kind} {oid})")
            first = data.split(b"\n", 1)[0]
            if not first.startswith(b"object "):
                raise GitError(f"malformed tag {oid}")
            oid = first[len(b"object "):].decode("ascii").strip()
