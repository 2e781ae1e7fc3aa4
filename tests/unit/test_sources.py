"""Unit tests for gulp-style glob sets."""

from __future__ import annotations

import logging
import os
from pathlib import Path, PurePosixPath

import pytest

from assetflow.orchestrator.sources import GlobSet, _walk_error, compile_glob, glob_parent


@pytest.mark.parametrize(
    "pattern, path, expected",
    [
        ("src/**/*.css", "src/a.css", True),
        ("src/**/*.css", "src/x/y/a.css", True),
        ("src/**/*.css", "srcx/a.css", False),
        ("src/*.css", "src/x/a.css", False),
        ("src/?.js", "src/a.js", True),
        ("src/?.js", "src/ab.js", False),
        ("src/[ab].js", "src/b.js", True),
        ("src/[!ab].js", "src/b.js", False),
        ("./src/**/*.php", "src/inc/field.php", True),
    ],
)
def test_compile_glob(pattern: str, path: str, expected: bool) -> None:
    assert bool(compile_glob(pattern).match(path)) is expected


def test_glob_parent() -> None:
    assert glob_parent("src/**/*.css") == PurePosixPath("src")
    assert glob_parent("src/languages/**/*.po") == PurePosixPath("src/languages")
    assert glob_parent("*.css") == PurePosixPath(".")
    assert glob_parent("src/style.css") == PurePosixPath("src")


def test_exclude_applies_to_earlier_includes_only() -> None:
    globs = GlobSet(["src/**/*.css", "!src/**/*.min.css"])
    assert globs.matches("src/a.css")
    assert not globs.matches("src/a.min.css")

    reincluded = GlobSet(["src/**/*.css", "!src/**/*.min.css", "src/keep.min.css"])
    assert reincluded.matches("src/keep.min.css")
    assert not reincluded.matches("src/other.min.css")


def test_glob_set_requires_include() -> None:
    with pytest.raises(ValueError):
        GlobSet(["!src/**/*.css"])


def test_expand_layout_relative_to_glob_parent(tmp_path: Path, write_file) -> None:
    write_file("src/css/a.css", "a{}")
    write_file("src/b.css", "b{}")
    write_file("src/b.min.css", "b{}")
    write_file("other/c.css", "c{}")

    files = GlobSet(["src/**/*.css", "!src/**/*.min.css"]).expand(tmp_path)

    assert [str(f.relpath) for f in files] == ["b.css", "css/a.css"]
    assert files[1].path == tmp_path / "src/css/a.css"


def test_expand_with_explicit_base(tmp_path: Path, write_file) -> None:
    write_file("src/languages/ja.po", "")
    files = GlobSet(["src/languages/**/*.po"]).expand(tmp_path, base="src")
    assert [str(f.relpath) for f in files] == ["languages/ja.po"]


def test_expand_lists_each_file_once(tmp_path: Path, write_file) -> None:
    write_file("src/a.js", "")
    files = GlobSet(["src/**/*.js", "src/a.js"]).expand(tmp_path)
    assert len(files) == 1


def test_expand_missing_directory(tmp_path: Path) -> None:
    assert GlobSet(["nope/**/*.css"]).expand(tmp_path) == []


def test_unreadable_directory_is_logged(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.ERROR, logger="assetflow.sources"):
        _walk_error(PermissionError(13, "Permission denied", "/project/src/locked"))
        _walk_error(FileNotFoundError(2, "No such file or directory", "/project/src/languages"))

    assert [r.getMessage() for r in caplog.records] == [
        "Skipped /project/src/locked (read error): Permission denied"
    ]


@pytest.mark.skipif(
    not hasattr(os, "geteuid") or os.geteuid() == 0, reason="needs directory permissions"
)
def test_expand_logs_and_skips_locked_directory(
    tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    (tmp_path / "src/locked").mkdir(parents=True)
    (tmp_path / "src/locked/b.css").write_text(".b{}")
    (tmp_path / "src/a.css").write_text(".a{}")
    (tmp_path / "src/locked").chmod(0)
    try:
        with caplog.at_level(logging.ERROR, logger="assetflow.sources"):
            found = GlobSet(["src/**/*.css"]).expand(tmp_path)
    finally:
        (tmp_path / "src/locked").chmod(0o755)

    assert [str(s.relpath) for s in found] == ["a.css"]
    assert "locked" in caplog.text
