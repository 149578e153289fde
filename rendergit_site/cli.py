"""
Render a git repository as a directory of static pages.

    rendergit-site /path/to/repo -o /var/www/repo

Writes log.html, files.html, refs.html and atom.xml into the output directory,
plus one page per commit under commit/ and one page per file of HEAD under
file/. Commit pages that already exist are kept as they are, so re-running
against a grown repository only renders the new commits.
"""

from __future__ import annotations

import argparse
import pathlib
import sys
from typing import List, Optional

from .errors import GitError, RenderGitError
from .git import Repository
from .markup import write_footer, write_header
from .meta import read_meta
from .output import atomic_write
from .pages import (
    DEFAULT_FEED_MAX,
    DEFAULT_SUMMARY_LEN,
    Options,
    write_atom,
    write_files,
    write_log,
    write_refs,
    write_stylesheet,
)


def positive_int(value: str) -> int:
    try:
        n = int(value)
    except ValueError:
        n = 0
    if n < 1:
        raise argparse.ArgumentTypeError(f"expected a positive integer, got {value!r}")
    return n


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="rendergit-site", description="Render a git repository as static HTML pages")
    ap.add_argument("repo_dir", help="Path to the repository (work tree or bare)")
    ap.add_argument("--out", "-o", default=".", help="Output directory (default: current directory)")
    ap.add_argument("--no-line-count", action="store_true", help="Show byte sizes instead of line counts in the file list")
    ap.add_argument("--summary-len", type=positive_int, default=DEFAULT_SUMMARY_LEN, help="Truncate commit subjects in the log after this many characters")
    ap.add_argument("--feed-max", type=positive_int, default=DEFAULT_FEED_MAX, help="Maximum number of commits in atom.xml")
    ap.add_argument("--highlight", action="store_true", help="Syntax-highlight file pages with Pygments")
    return ap


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    out_dir = pathlib.Path(args.out)
    options = Options(
        show_line_count=not args.no_line_count,
        summary_len=args.summary_len,
        feed_max=args.feed_max,
        highlight=args.highlight,
    )

    print(f"📁 Opening {args.repo_dir}", file=sys.stderr)
    try:
        repo = Repository(args.repo_dir)
    except GitError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1

    with repo:
        try:
            head = repo.rev_parse("HEAD")
        except GitError as e:
            print(f"error: cannot resolve HEAD: {e}", file=sys.stderr)
            return 1
        print(f"✓ HEAD: {head[:8]}", file=sys.stderr)

        try:
            meta = read_meta(repo, args.repo_dir)
            out_dir.mkdir(parents=True, exist_ok=True)

            print("📜 Writing log and commit pages...", file=sys.stderr)
            with atomic_write(out_dir / "log.html") as fp:
                write_header(fp, meta, "")
                listed, written = write_log(fp, repo, meta, out_dir, head, options)
                write_footer(fp)
            print(f"✓ {listed} commits ({written} new commit pages)", file=sys.stderr)

            print("🗂️  Writing file pages...", file=sys.stderr)
            with atomic_write(out_dir / "files.html") as fp:
                write_header(fp, meta, "")
                files = write_files(fp, repo, meta, out_dir, head, options)
                write_footer(fp)
            print(f"✓ {files} files", file=sys.stderr)

            print("🏷️  Writing refs...", file=sys.stderr)
            with atomic_write(out_dir / "refs.html") as fp:
                write_header(fp, meta, "")
                refs = write_refs(fp, repo)
                write_footer(fp)
            print(f"✓ {refs} refs", file=sys.stderr)

            print("📡 Writing Atom feed...", file=sys.stderr)
            with atomic_write(out_dir / "atom.xml") as fp:
                write_atom(fp, repo, meta, head, options)

            if write_stylesheet(out_dir, options):
                print("🎨 Wrote style.css", file=sys.stderr)
        except (RenderGitError, OSError) as e:
            print(f"error: {e}", file=sys.stderr)
            return 1

    print(f"💾 Output: {out_dir.resolve()}", file=sys.stderr)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
