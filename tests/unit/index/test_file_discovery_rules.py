from __future__ import annotations

import os
from pathlib import Path

import pytest

from repogrep.config import DEFAULT_EXCLUDE_GLOBS, DEFAULT_INCLUDE_GLOBS
from repogrep.index import discover_candidates


def test_discovery_honors_includes_excludes_and_stable_order(tmp_path: Path) -> None:
    (tmp_path / "src").mkdir()
    (tmp_path / "docs").mkdir()
    (tmp_path / ".git").mkdir()
    (tmp_path / "src" / "z.py").write_text("print('z')\n", encoding="utf-8")
    (tmp_path / "src" / "a.py").write_text("print('a')\n", encoding="utf-8")
    (tmp_path / "docs" / "guide.md").write_text("# Guide\n", encoding="utf-8")
    (tmp_path / "src" / "image.png").write_bytes(b"\x89PNG")
    (tmp_path / ".git" / "config.py").write_text("internal", encoding="utf-8")

    paths = discover_candidates(tmp_path, ("**/*.py", "**/*.md"), ("**/.git/**",))

    assert paths == ["docs/guide.md", "src/a.py", "src/z.py"]


def test_discovery_includes_hidden_entries(tmp_path: Path) -> None:
    (tmp_path / ".config").mkdir()
    (tmp_path / ".config" / "settings.ts").write_text("export {};\n", encoding="utf-8")
    (tmp_path / ".eslintrc.js").write_text("module.exports = {};\n", encoding="utf-8")

    paths = discover_candidates(tmp_path, DEFAULT_INCLUDE_GLOBS, DEFAULT_EXCLUDE_GLOBS)

    assert paths == [".config/settings.ts", ".eslintrc.js"]


def test_default_excludes_prune_dependency_directories(tmp_path: Path) -> None:
    for directory in ("node_modules/pkg", "dist", "src/__pycache__", "nested/.venv/lib"):
        (tmp_path / directory).mkdir(parents=True)
        (tmp_path / directory / "noise.py").write_text("x = 1\n", encoding="utf-8")
    (tmp_path / "src" / "keep.py").write_text("x = 2\n", encoding="utf-8")

    paths = discover_candidates(tmp_path, DEFAULT_INCLUDE_GLOBS, DEFAULT_EXCLUDE_GLOBS)

    assert paths == ["src/keep.py"]


def test_root_level_files_match_double_star_patterns(tmp_path: Path) -> None:
    (tmp_path / "main.go").write_text("package main\n", encoding="utf-8")

    assert discover_candidates(tmp_path, ("**/*.go",), ()) == ["main.go"]


@pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks unavailable")
def test_symlinks_are_not_followed(tmp_path: Path) -> None:
    outside = tmp_path / "outside"
    outside.mkdir()
    (outside / "secret.py").write_text("token = 1\n", encoding="utf-8")
    root = tmp_path / "root"
    root.mkdir()
    (root / "real.py").write_text("x = 1\n", encoding="utf-8")
    try:
        (root / "linked").symlink_to(outside, target_is_directory=True)
        (root / "alias.py").symlink_to(root / "real.py")
    except OSError:
        pytest.skip("symlink creation not permitted")

    assert discover_candidates(root, ("**/*.py",), ()) == ["real.py"]


def test_missing_root_raises(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        discover_candidates(tmp_path / "missing", DEFAULT_INCLUDE_GLOBS, ())


def test_file_root_raises(tmp_path: Path) -> None:
    target = tmp_path / "file.py"
    target.write_text("x = 1\n", encoding="utf-8")

    with pytest.raises(NotADirectoryError):
        discover_candidates(target, DEFAULT_INCLUDE_GLOBS, ())
