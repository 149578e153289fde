"""
The site's pages: log, commit details, file tree, refs and Atom feed.

Every writer takes the already-open output file for its page and returns a
small count for progress reporting. Commit pages are keyed by commit id and
never rewritten once they exist.
"""

from __future__ import annotations

import dataclasses
import pathlib
import stat
from typing import IO, List, Tuple

from pygments.formatters import HtmlFormatter

from .commitinfo import CommitInfo, get_commit_info, walk
from .diff import format_diffstat
from .errors import NotFoundError
from .git import Reference, Repository, is_binary
from .markup import (
    format_time,
    format_time_short,
    format_time_z,
    href,
    truncate_summary,
    write_blob,
    write_blob_highlighted,
    write_commit_header,
    write_diff,
    write_footer,
    write_header,
    xmlencode,
)
from .meta import RepoMeta
from .output import atomic_write, relpath_for

DEFAULT_SUMMARY_LEN = 70
DEFAULT_FEED_MAX = 100
DIFFSTAT_WIDTH = 80

STYLE_CSS = """\
body { color: #000; background-color: #fff; font-family: monospace; }
h1, h2, h3, h4, h5, h6 { font-size: 1em; margin: 0; }
img, h1, h2 { vertical-align: middle; }
img { border: 0; }
a:target { background-color: #ccc; }
a.d, a.h, a.i, a.line { text-decoration: none; }
#blob a { color: #777; }
#blob a:hover { color: #0366d6; text-decoration: none; }
table thead td { font-weight: bold; }
table td { padding: 0 0.4em; }
#content table td { vertical-align: top; white-space: nowrap; }
#branches tr:hover td, #tags tr:hover td, #log tr:hover td, #files tr:hover td { background-color: #eee; }
#branches tr td:nth-child(3), #tags tr td:nth-child(3), #log tr td:nth-child(2) { white-space: normal; }
td.num { text-align: right; }
.desc { color: #777; }
hr { border: 0; border-top: 1px solid #777; height: 1px; }
pre { font-family: monospace; }
pre a.h { color: #00a; }
.A, span.i, pre a.i { color: #0a7b34; }
.D, span.d, pre a.d { color: #a01515; }
pre a.h:hover, pre a.i:hover, pre a.d:hover { text-decoration: none; }
"""


@dataclasses.dataclass
class Options:
    show_line_count: bool = True
    summary_len: int = DEFAULT_SUMMARY_LEN
    feed_max: int = DEFAULT_FEED_MAX
    highlight: bool = False


# ---- log & commit pages ------------------------------------------------------

def commit_page_path(out_dir: pathlib.Path, oid: str) -> pathlib.Path:
    return out_dir / "commit" / f"{oid}.html"


def write_commit_page(meta: RepoMeta, out_dir: pathlib.Path, ci: CommitInfo) -> bool:
    """Write commit/<id>.html unless it already exists; True when written."""
    path = commit_page_path(out_dir, ci.oid)
    if path.exists():
        return False
    relpath = "../"
    with atomic_write(path, exclusive=True) as fp:
        write_header(fp, meta, relpath)
        fp.write("<pre>")
        write_commit_header(fp, ci, relpath)
        if ci.diff is not None:
            diffstat = format_diffstat(ci.diff, DIFFSTAT_WIDTH)
            if diffstat:
                fp.write("<b>Diffstat:</b>\n")
                fp.write(xmlencode(diffstat))
        fp.write("<hr/>")
        write_diff(fp, ci.diff, relpath)
        fp.write("</pre>\n")
        write_footer(fp)
    return True


def write_log_row(fp: IO[str], ci: CommitInfo, options: Options, relpath: str = "") -> None:
    fp.write("<tr><td>")
    if ci.author:
        fp.write(format_time_short(ci.author))
    fp.write("</td><td>")
    if ci.summary:
        fp.write(f'<a href="{relpath}commit/{ci.oid}.html">')
        fp.write(xmlencode(truncate_summary(ci.summary, options.summary_len)))
        fp.write("</a>")
    fp.write("</td><td>")
    if ci.author:
        fp.write(xmlencode(ci.author.name))
    fp.write(
        f'</td><td class="num">{ci.filecount}</td>'
        f'<td class="num">+{ci.addcount}</td>'
        f'<td class="num">-{ci.delcount}</td></tr>\n'
    )


def write_log(
    fp: IO[str],
    repo: Repository,
    meta: RepoMeta,
    out_dir: pathlib.Path,
    head: str,
    options: Options,
) -> Tuple[int, int]:
    """Write the log table; returns (commits listed, commit pages written)."""
    fp.write(
        '<table id="log"><thead>\n<tr><td>Age</td><td>Commit message</td>'
        '<td>Author</td><td>Files</td><td class="num">+</td>'
        '<td class="num">-</td></tr>\n</thead><tbody>\n'
    )
    listed = written = 0
    for ci in walk(repo, head):
        write_log_row(fp, ci, options)
        listed += 1
        if write_commit_page(meta, out_dir, ci):
            written += 1
    fp.write("</tbody></table>")
    return listed, written


# ---- files -------------------------------------------------------------------

def write_blob_page(
    meta: RepoMeta,
    out_dir: pathlib.Path,
    filepath: str,
    filename: str,
    data: bytes,
    options: Options,
) -> int:
    """Write one file page; returns its line count (0 for binary files)."""
    relpath = relpath_for(filepath)
    lc = 0
    with atomic_write(out_dir / filepath) as fp:
        write_header(fp, meta, relpath)
        fp.write(f"<p> {xmlencode(filename)} ({len(data)}B)</p><hr/>")
        if is_binary(data):
            fp.write("<p>Binary file</p>\n")
        elif options.highlight:
            lc = write_blob_highlighted(fp, data, filename)
        else:
            lc = write_blob(fp, data)
        write_footer(fp)
    return lc


def write_files_tree(
    fp: IO[str],
    repo: Repository,
    meta: RepoMeta,
    out_dir: pathlib.Path,
    tree: str,
    path: str,
    options: Options,
) -> int:
    """Render every file below `tree`, whose path in the repository is `path`.

    Entries are visited in tree order. Subtrees recurse with their own path,
    submodules are skipped, and any lookup failure propagates.
    """
    count = 0
    for entry in repo.tree_entries(tree):
        entrypath = f"{path}/{entry.name}" if path else entry.name
        if entry.kind == "tree":
            count += write_files_tree(fp, repo, meta, out_dir, entry.oid, entrypath, options)
            continue
        if entry.kind != "blob":
            continue

        filepath = f"file/{entrypath}.html"
        data = repo.blob(entry.oid)
        lc = write_blob_page(meta, out_dir, filepath, entry.name, data, options)
        count += 1

        size = f"{lc}L" if options.show_line_count and lc > 0 else f"{len(data)}B"
        fp.write(
            f"<tr><td>{stat.filemode(entry.mode)}</td>"
            f'<td><a href="{href(filepath)}">{xmlencode(entrypath)}</a></td>'
            f'<td class="num">{size}</td></tr>\n'
        )
    return count


def write_files(
    fp: IO[str],
    repo: Repository,
    meta: RepoMeta,
    out_dir: pathlib.Path,
    head: str,
    options: Options,
) -> int:
    fp.write(
        '<table id="files"><thead>\n<tr>'
        '<td>Mode</td><td>Name</td><td class="num">Size</td>'
        "</tr>\n</thead><tbody>\n"
    )
    tree = repo.commit(head).tree
    count = write_files_tree(fp, repo, meta, out_dir, tree, "", options)
    fp.write("</tbody></table>")
    return count


# ---- refs --------------------------------------------------------------------

REF_GROUPS = (
    ("Branches", "branches", "Branch"),
    ("Tags", "tags", "Tag"),
)


def sort_refs(refs: List[Reference]) -> List[Reference]:
    """Branches then tags, each by shorthand name; other kinds are dropped."""
    kept = [r for r in refs if r.is_branch or r.is_tag]
    return sorted(kept, key=lambda r: (not r.is_branch, r.shorthand))


def write_refs(fp: IO[str], repo: Repository) -> int:
    refs = sort_refs(repo.references())
    total = 0
    for (title, table_id, column), group in zip(
        REF_GROUPS,
        ([r for r in refs if r.is_branch], [r for r in refs if r.is_tag]),
    ):
        count = 0
        for ref in group:
            r = repo.resolve(ref)
            if r.target is None:
                raise NotFoundError(f"target of {r.name}")
            commit_id = repo.peel(r)
            with get_commit_info(repo, commit_id) as ci:
                count += 1
                if count == 1:
                    fp.write(
                        f'<h2>{title}</h2><table id="{table_id}"><thead>\n<tr><td>{column}</td>'
                        "<td>Age</td><td>Author</td>\n</tr>\n</thead><tbody>\n"
                    )
                fp.write(f"<tr><td>{xmlencode(r.shorthand)}</td><td>")
                if ci.author:
                    fp.write(format_time_short(ci.author))
                fp.write("</td><td>")
                if ci.author:
                    fp.write(xmlencode(ci.author.name))
                fp.write("</td></tr>\n")
        if count:
            fp.write("</tbody></table><br/>")
        total += count
    return total


# ---- feed --------------------------------------------------------------------

def write_atom_entry(fp: IO[str], ci: CommitInfo) -> None:
    fp.write(f"<entry>\n<id>{ci.oid}</id>\n")
    if ci.author:
        fp.write(f"<updated>{format_time_z(ci.author)}</updated>\n")
    if ci.summary:
        fp.write(f'<title type="text">{xmlencode(ci.summary)}</title>\n')
    fp.write(f'<content type="text">commit {ci.oid}\n')
    if ci.parent_oid:
        fp.write(f"parent {ci.parent_oid}\n")
    if ci.author:
        fp.write(
            f"Author: {xmlencode(ci.author.name)} &lt;{xmlencode(ci.author.email)}&gt;\n"
            f"Date:   {format_time(ci.author)}\n"
        )
    if ci.msg:
        fp.write("\n")
        fp.write(xmlencode(ci.msg))
    fp.write("\n</content>\n")
    if ci.author:
        fp.write(
            f"<author><name>{xmlencode(ci.author.name)}</name>\n"
            f"<email>{xmlencode(ci.author.email)}</email>\n</author>\n"
        )
    fp.write("</entry>\n")


def write_atom(fp: IO[str], repo: Repository, meta: RepoMeta, head: str, options: Options) -> int:
    fp.write(
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<feed xmlns="http://www.w3.org/2005/Atom">\n'
        f"<title>{xmlencode(meta.stripped_name)}, branch HEAD</title>\n"
        f"<subtitle>{xmlencode(meta.description)}</subtitle>\n"
    )
    count = 0
    for ci in walk(repo, head, max_count=options.feed_max):
        write_atom_entry(fp, ci)
        count += 1
    fp.write("</feed>")
    return count


# ---- stylesheet --------------------------------------------------------------

def write_stylesheet(out_dir: pathlib.Path, options: Options) -> bool:
    """Write style.css unless the site already has one."""
    path = out_dir / "style.css"
    if path.exists():
        return False
    with atomic_write(path, exclusive=True) as fp:
        fp.write(STYLE_CSS)
        if options.highlight:
            fp.write("\n/* Pygments */\n")
            fp.write(HtmlFormatter().get_style_defs(".highlight"))
            fp.write("\n")
    return True
