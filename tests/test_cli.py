"""End-to-end tests for the rendergit-site command."""

from __future__ import annotations

import pathlib

import pytest

from rendergit_site.cli import build_parser, main
from rendergit_site.git import Repository
from rendergit_site.meta import read_meta


def _snapshot(site: pathlib.Path) -> dict:
    return {str(p.relative_to(site)): p.read_bytes() for p in sorted(site.rglob("*")) if p.is_file()}


class TestParser:
    def test_defaults(self):
        args = build_parser().parse_args(["repo"])
        assert args.out == "."
        assert args.summary_len == 70
        assert args.feed_max == 100
        assert not args.no_line_count
        assert not args.highlight

    @pytest.mark.parametrize("flag", ["--summary-len", "--feed-max"])
    @pytest.mark.parametrize("value", ["0", "-3", "x"])
    def test_rejects_non_positive_limits(self, flag, value, capsys):
        with pytest.raises(SystemExit) as exc:
            build_parser().parse_args(["repo", flag, value])
        assert exc.value.code == 2
        assert "positive integer" in capsys.readouterr().err


class TestMeta:
    def test_read_meta(self, sample):
        (sample.path / ".git" / "description").write_text("Sample repo\nsecond line\n")
        (sample.path / "url").write_text("https://example.com/sample.git\n")
        with Repository(sample.path) as repo:
            meta = read_meta(repo, sample.path)
        assert meta.name == "sample.git"
        assert meta.stripped_name == "sample"
        assert meta.description == "Sample repo"
        assert meta.clone_url == "https://example.com/sample.git"
        assert meta.has_readme
        assert not meta.has_license


class TestMain:
    def test_writes_site(self, sample, tmp_path: pathlib.Path, capsys):
        site = tmp_path / "site"
        assert main([str(sample.path), "-o", str(site)]) == 0
        for name in ("log.html", "files.html", "refs.html", "atom.xml", "style.css"):
            assert (site / name).is_file()
        assert (site / "commit" / f"{sample.merge}.html").is_file()
        assert (site / "file" / "docs" / "a.txt.html").is_file()
        assert not list(site.rglob(".tmp-*"))
        err = capsys.readouterr().err
        assert "4 commits (4 new commit pages)" in err

    def test_rerun_is_idempotent(self, sample, tmp_path: pathlib.Path, capsys):
        site = tmp_path / "site"
        assert main([str(sample.path), "-o", str(site)]) == 0
        first = _snapshot(site)
        assert main([str(sample.path), "-o", str(site)]) == 0
        assert _snapshot(site) == first
        assert "(0 new commit pages)" in capsys.readouterr().err

    def test_new_commits_only_add_pages(self, sample, tmp_path: pathlib.Path):
        site = tmp_path / "site"
        main([str(sample.path), "-o", str(site)])
        old_page = (site / "commit" / f"{sample.merge}.html").read_bytes()
        newest = sample.builder.commit("Another one", {"new.txt": "n\n"})
        assert main([str(sample.path), "-o", str(site)]) == 0
        assert (site / "commit" / f"{newest}.html").is_file()
        assert (site / "commit" / f"{sample.merge}.html").read_bytes() == old_page
        assert "new.txt" in (site / "files.html").read_text()

    def test_not_a_repository(self, tmp_path: pathlib.Path, capsys):
        assert main([str(tmp_path), "-o", str(tmp_path / "site")]) == 1
        assert "error:" in capsys.readouterr().err

    def test_repository_without_head(self, builder, tmp_path: pathlib.Path, capsys):
        assert main([str(builder.path), "-o", str(tmp_path / "site")]) == 1
        assert "cannot resolve HEAD" in capsys.readouterr().err

    def test_output_failure(self, sample, tmp_path: pathlib.Path, capsys):
        site = tmp_path / "site"
        (site / "log.html").mkdir(parents=True)
        assert main([str(sample.path), "-o", str(site)]) == 1
        assert "error:" in capsys.readouterr().err
