"""
Structured diffs between two trees.

`parse_patch` turns the output of `git diff-tree -p` into per-file deltas,
hunks and lines carrying their old/new line numbers, which is the shape the
commit pages are rendered from. Renames are never detected, so a delta's old
and new path only differ in their side of the patch header.
"""

from __future__ import annotations

import dataclasses
import re
from typing import Iterator, List, Optional, Tuple

HUNK_RE = re.compile(r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@")

_C_ESCAPES = {
    "a": b"\a", "b": b"\b", "t": b"\t", "n": b"\n",
    "v": b"\v", "f": b"\f", "r": b"\r", '"': b'"', "\\": b"\\",
}


@dataclasses.dataclass
class DiffLine:
    origin: str  # " " context, "+" addition, "-" deletion, "\\" no-newline marker
    content: str  # raw text including its line terminator
    old_lineno: Optional[int]
    new_lineno: Optional[int]


@dataclasses.dataclass
class DiffHunk:
    header: str
    lines: List[DiffLine] = dataclasses.field(default_factory=list)


@dataclasses.dataclass
class FileDelta:
    old_path: str
    new_path: str
    binary: bool = False
    hunks: List[DiffHunk] = dataclasses.field(default_factory=list)
    old_mode: Optional[str] = None
    new_mode: Optional[str] = None

    @property
    def added(self) -> bool:
        return self.old_mode is None and self.new_mode is not None

    @property
    def deleted(self) -> bool:
        return self.new_mode is None and self.old_mode is not None

    @property
    def insertions(self) -> int:
        return sum(1 for h in self.hunks for ln in h.lines if ln.origin == "+")

    @property
    def deletions(self) -> int:
        return sum(1 for h in self.hunks for ln in h.lines if ln.origin == "-")


@dataclasses.dataclass(frozen=True)
class DiffStats:
    files_changed: int
    insertions: int
    deletions: int


@dataclasses.dataclass
class Diff:
    deltas: List[FileDelta] = dataclasses.field(default_factory=list)

    def __iter__(self) -> Iterator[FileDelta]:
        return iter(self.deltas)

    def __len__(self) -> int:
        return len(self.deltas)

    def stats(self) -> DiffStats:
        return DiffStats(
            files_changed=len(self.deltas),
            insertions=sum(d.insertions for d in self.deltas),
            deletions=sum(d.deletions for d in self.deltas),
        )


# ---- patch parsing -----------------------------------------------------------

def _split_lines(text: str) -> Iterator[str]:
    # str.splitlines() also breaks on \f, \x1c and friends, which are content
    parts = text.split("\n")
    for p in parts[:-1]:
        yield p + "\n"
    if parts[-1]:
        yield parts[-1]


def unquote_path(s: str) -> str:
    """Undo git's C-style quoting of a path ("a/t\\303\\251st")."""
    if not (len(s) >= 2 and s[0] == '"' and s[-1] == '"'):
        return s
    body = s[1:-1]
    out = bytearray()
    i = 0
    while i < len(body):
        ch = body[i]
        if ch != "\\":
            out += ch.encode("utf-8")
            i += 1
            continue
        nxt = body[i + 1:i + 2]
        if nxt in _C_ESCAPES:
            out += _C_ESCAPES[nxt]
            i += 2
        elif nxt.isdigit():
            out.append(int(body[i + 1:i + 4], 8) & 0xFF)
            i += 4
        else:
            out += b"\\"
            i += 1
    return out.decode("utf-8", errors="replace")


def _read_quoted(s: str) -> Tuple[str, str]:
    """Split a leading quoted token off `s`; returns (token, rest)."""
    i = 1
    while i < len(s):
        if s[i] == "\\":
            i += 2
            continue
        if s[i] == '"':
            break
        i += 1
    return s[:i + 1], s[i + 2:]


def _strip_prefix(p: str, prefix: str) -> str:
    return p[len(prefix):] if p.startswith(prefix) else p


def parse_git_header(line: str) -> Tuple[str, str]:
    """Return (old_path, new_path) from a `diff --git a/X b/Y` line."""
    rest = line[len("diff --git "):].rstrip("\n")
    if rest.startswith('"'):
        a, b = _read_quoted(rest)
    elif rest.endswith('"') and ' "' in rest:
        a, b = rest.split(' "', 1)
        b = '"' + b
    else:
        # without renames both sides name the same path
        n = (len(rest) - 1) // 2
        a, b = rest[:n], rest[n + 1:]
        if a[2:] != b[2:] and " b/" in rest:
            a, b = rest.split(" b/", 1)
            b = "b/" + b
    return _strip_prefix(unquote_path(a), "a/"), _strip_prefix(unquote_path(b), "b/")


def parse_patch(text: str) -> Diff:
    """Parse unified `git diff-tree -p` output into a Diff."""
    diff = Diff()
    delta: Optional[FileDelta] = None
    hunk: Optional[DiffHunk] = None
    old_left = new_left = 0
    old_no = new_no = 0

    for line in _split_lines(text):
        if hunk is not None:
            if old_left > 0 or new_left > 0:
                origin = line[:1]
                if origin == "+":
                    hunk.lines.append(DiffLine("+", line[1:], None, new_no))
                    new_no += 1
                    new_left -= 1
                elif origin == "-":
                    hunk.lines.append(DiffLine("-", line[1:], old_no, None))
                    old_no += 1
                    old_left -= 1
                elif origin == "\\":
                    hunk.lines.append(DiffLine("\\", line, None, None))
                else:
                    content = line[1:] if origin == " " else line
                    hunk.lines.append(DiffLine(" ", content, old_no, new_no))
                    old_no += 1
                    new_no += 1
                    old_left -= 1
                    new_left -= 1
                continue
            if line.startswith("\\"):
                hunk.lines.append(DiffLine("\\", line, None, None))
                continue
            hunk = None

        if line.startswith("diff --git "):
            old_path, new_path = parse_git_header(line)
            delta = FileDelta(old_path=old_path, new_path=new_path)
            diff.deltas.append(delta)
            continue
        if delta is None:
            continue

        m = HUNK_RE.match(line)
        if m:
            old_no = int(m.group(1))
            old_left = int(m.group(2)) if m.group(2) is not None else 1
            new_no = int(m.group(3))
            new_left = int(m.group(4)) if m.group(4) is not None else 1
            hunk = DiffHunk(header=line)
            delta.hunks.append(hunk)
        elif line.startswith("Binary files ") and line.rstrip("\n").endswith(" differ"):
            delta.binary = True
        elif line.startswith("new file mode "):
            delta.new_mode = line.split()[-1]
        elif line.startswith("deleted file mode "):
            delta.old_mode = line.split()[-1]
        elif line.startswith("old mode "):
            delta.old_mode = line.split()[-1]
        elif line.startswith("new mode "):
            delta.new_mode = line.split()[-1]
        elif line.startswith("index "):
            parts = line.split()
            if len(parts) == 3:
                delta.old_mode = delta.new_mode = parts[2]

    return diff


# ---- diffstat ----------------------------------------------------------------

def _scale(n: int, max_change: int, graph_width: int) -> int:
    if n == 0 or max_change <= graph_width:
        return n
    return max(1, (n * graph_width + max_change // 2) // max_change)


def format_diffstat(diff: Diff, width: int = 80) -> str:
    """Return a `git diff --stat` style block for `diff`, or "" when empty."""
    if not diff.deltas:
        return ""
    names = [d.new_path or d.old_path for d in diff.deltas]
    name_width = max(len(n) for n in names)
    max_change = max(d.insertions + d.deletions for d in diff.deltas)
    digits = len(str(max_change))
    graph_width = max(width - name_width - digits - 5, 10)

    lines: List[str] = []
    for name, d in zip(names, diff.deltas):
        row = f" {name.ljust(name_width)} | "
        if d.binary:
            row += "Bin"
        else:
            adds, dels = d.insertions, d.deletions
            row += str(adds + dels).rjust(digits)
            if adds or dels:
                row += " " + "+" * _scale(adds, max_change, graph_width) + "-" * _scale(dels, max_change, graph_width)
        lines.append(row)

    st = diff.stats()
    summary = f" {st.files_changed} file{'s' if st.files_changed != 1 else ''} changed"
    if st.insertions or st.deletions == 0:
        summary += f", {st.insertions} insertion{'s' if st.insertions != 1 else ''}(+)"
    if st.deletions or st.insertions == 0:
        summary += f", {st.deletions} deletion{'s' if st.deletions != 1 else ''}(-)"
    lines.append(summary)
    return "\n".join(lines) + "\n"
