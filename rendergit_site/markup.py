"""
HTML and XML fragments shared by every page.

All writers take an open text file and an explicit `relpath`, the prefix that
leads from the page being written back to the output root ("" for top-level
pages, "../" for commit pages, one "../" per directory level for file pages).
"""

from __future__ import annotations

import datetime as dt
from typing import IO, TYPE_CHECKING, Optional
from urllib.parse import quote

from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexers import TextLexer, get_lexer_for_filename
from pygments.util import ClassNotFound

from .diff import Diff
from .git import Signature

if TYPE_CHECKING:
    from .commitinfo import CommitInfo
    from .meta import RepoMeta

_XML_ESCAPES = str.maketrans({
    "<": "&lt;",
    ">": "&gt;",
    "'": "&apos;",
    "&": "&amp;",
    '"': "&quot;",
})

_DAYS = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
_MONTHS = ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]


def xmlencode(s: str) -> str:
    """Escape the five XML special characters and nothing else."""
    return s.translate(_XML_ESCAPES)


def href(path: str) -> str:
    return quote(path, safe="/")


def truncate_summary(summary: str, max_len: int) -> str:
    if len(summary) > max_len:
        return summary[:max_len - 1] + "…"
    return summary


# ---- time --------------------------------------------------------------------

def _wall_clock(sig: Signature) -> dt.datetime:
    return dt.datetime.fromtimestamp(sig.time + sig.offset * 60, tz=dt.timezone.utc)


def format_time(sig: Signature) -> str:
    """`Thu Jan  1 00:00:00 1970`, in the author's own timezone."""
    t = _wall_clock(sig)
    return f"{_DAYS[t.weekday()]} {_MONTHS[t.month - 1]} {t.day:2d} {t:%H:%M:%S} {t.year}"


def format_time_short(sig: Signature) -> str:
    return f"{_wall_clock(sig):%Y-%m-%d %H:%M}"


def format_time_z(sig: Signature) -> str:
    """RFC 3339 timestamp in UTC, for the feed."""
    return f"{dt.datetime.fromtimestamp(sig.time, tz=dt.timezone.utc):%Y-%m-%dT%H:%M:%SZ}"


# ---- page chrome -------------------------------------------------------------

def write_header(fp: IO[str], meta: "RepoMeta", relpath: str) -> None:
    name = xmlencode(meta.stripped_name)
    desc = xmlencode(meta.description)
    fp.write(
        "<!DOCTYPE html>\n"
        '<html dir="ltr" lang="en">\n<head>\n'
        '<meta http-equiv="Content-Type" content="text/html; charset=UTF-8" />\n'
        '<meta http-equiv="Content-Language" content="en" />\n'
        f"<title>{name}{' - ' if meta.description else ''}{desc}</title>\n"
        f'<link rel="icon" type="image/png" href="{relpath}favicon.png" />\n'
        f'<link rel="alternate" type="application/atom+xml" title="{xmlencode(meta.name)} Atom Feed" href="{relpath}atom.xml" />\n'
        f'<link rel="stylesheet" type="text/css" href="{relpath}style.css" />\n'
        "</head>\n<body>\n<table><tr><td>"
        f'<a href="../{relpath}"><img src="{relpath}logo.png" alt="" width="32" height="32" /></a>'
        f'</td><td><h1>{name}</h1><span class="desc">{desc}</span></td></tr>'
    )
    if meta.clone_url:
        url = xmlencode(meta.clone_url)
        fp.write(f'<tr class="url"><td></td><td>git clone <a href="{url}">{url}</a></td></tr>')
    fp.write("<tr><td></td><td>\n")
    fp.write(f'<a href="{relpath}log.html">Log</a> | ')
    fp.write(f'<a href="{relpath}files.html">Files</a> | ')
    fp.write(f'<a href="{relpath}refs.html">Refs</a>')
    if meta.has_readme:
        fp.write(f' | <a href="{relpath}file/README.html">README</a>')
    if meta.has_license:
        fp.write(f' | <a href="{relpath}file/LICENSE.html">LICENSE</a>')
    fp.write('</td></tr></table>\n<hr/>\n<div id="content">\n')


def write_footer(fp: IO[str]) -> None:
    fp.write("</div>\n</body>\n</html>\n")


# ---- blobs -------------------------------------------------------------------

def count_lines(text: str) -> int:
    """Number of lines, counting a final line without a newline."""
    if not text:
        return 0
    return text.count("\n", 0, len(text) - 1) + 1


def write_blob(fp: IO[str], data: bytes) -> int:
    """Write line-numbered blob content; returns the line count."""
    text = data.decode("utf-8", errors="replace")
    n = count_lines(text)
    fp.write('<table id="blob"><tr><td class="num"><pre>\n')
    for i in range(1, n + 1):
        fp.write(f'<a href="#l{i}" id="l{i}">{i}</a>\n')
    fp.write("</pre></td><td><pre>\n")
    fp.write(xmlencode(text))
    fp.write("</pre></td></tr></table>\n")
    return n


def write_blob_highlighted(fp: IO[str], data: bytes, filename: str) -> int:
    """Like write_blob, with pygments syntax highlighting."""
    text = data.decode("utf-8", errors="replace")
    try:
        lexer = get_lexer_for_filename(filename, stripnl=False, stripall=False)
    except ClassNotFound:
        lexer = TextLexer(stripnl=False)
    formatter = HtmlFormatter(linenos="table", lineanchors="l", anchorlinenos=True)
    fp.write('<div id="blob">')
    fp.write(highlight(text, lexer, formatter))
    fp.write("</div>\n")
    return count_lines(text)


# ---- commits -----------------------------------------------------------------

def write_commit_header(fp: IO[str], ci: "CommitInfo", relpath: str) -> None:
    fp.write(f'<b>commit</b> <a href="{relpath}commit/{ci.oid}.html">{ci.oid}</a>\n')
    if ci.parent_oid:
        fp.write(f'<b>parent</b> <a href="{relpath}commit/{ci.parent_oid}.html">{ci.parent_oid}</a>\n')
    if ci.author:
        email = xmlencode(ci.author.email)
        fp.write(
            f"<b>Author:</b> {xmlencode(ci.author.name)} "
            f'&lt;<a href="mailto:{email}">{email}</a>&gt;\n'
            f"<b>Date:</b>   {format_time(ci.author)}\n"
        )
    if ci.msg:
        fp.write("\n")
        fp.write(xmlencode(ci.msg))
        fp.write("\n")


def _file_link(relpath: str, path: str, exists: bool = True) -> str:
    if not exists:
        return xmlencode(path)
    return f'<a href="{relpath}file/{href(path)}.html">{xmlencode(path)}</a>'


def write_diff(fp: IO[str], diff: Optional[Diff], relpath: str) -> None:
    """Render every delta of `diff` with per-hunk and per-line anchors."""
    if diff is None:
        return
    j = 0  # hunk number, counted across the whole diff
    for delta in diff:
        fp.write(
            f"<b>diff --git a/{_file_link(relpath, delta.old_path, not delta.added)} "
            f"b/{_file_link(relpath, delta.new_path, not delta.deleted)}</b>\n"
        )
        if delta.binary:
            fp.write("Binary files differ\n")
            continue
        for hunk in delta.hunks:
            fp.write(f'<a href="#h{j}" id="h{j}" class="h">{xmlencode(hunk.header)}</a>')
            for k, line in enumerate(hunk.lines):
                if line.origin == "+":
                    fp.write(f'<a href="#h{j}-{k}" id="h{j}-{k}" class="i">+{xmlencode(line.content)}</a>')
                elif line.origin == "-":
                    fp.write(f'<a href="#h{j}-{k}" id="h{j}-{k}" class="d">-{xmlencode(line.content)}</a>')
                elif line.origin == "\\":
                    fp.write(xmlencode(line.content))
                else:
                    fp.write(" " + xmlencode(line.content))
            j += 1
