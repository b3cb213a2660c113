from __future__ import annotations

from pathlib import Path

import pytest

from repogrep.index import is_binary_bytes, scan_file, sha256_bytes


def test_empty_content_is_text() -> None:
    assert is_binary_bytes(b"") is False


def test_null_byte_in_sample_is_binary() -> None:
    assert is_binary_bytes(b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR") is True


def test_null_byte_beyond_sample_is_ignored() -> None:
    assert is_binary_bytes(b"a" * 1024 + b"\x00") is False


def test_control_character_ratio_threshold() -> None:
    mostly_control = bytes([1, 2, 3, 4]) * 10 + b"abc"
    few_control = b"hello world\n" * 10 + bytes([1, 2])

    assert is_binary_bytes(mostly_control) is True
    assert is_binary_bytes(few_control) is False


def test_common_whitespace_is_not_suspicious() -> None:
    assert is_binary_bytes(b"\t\n\r\x0b\x0c" * 50) is False


def test_scan_file_hashes_full_bytes_but_caps_contents(tmp_path: Path) -> None:
    data = b"a" * 100 + b"TAIL"
    (tmp_path / "big.md").write_bytes(data)

    scanned = scan_file(tmp_path, "big.md", max_indexed_bytes=10)

    assert scanned.contents == "a" * 10
    assert scanned.content_hash == sha256_bytes(data)
    assert scanned.size_bytes == len(data)
    assert scanned.filename == "big.md"
    assert scanned.is_binary is False


def test_change_beyond_cap_changes_hash(tmp_path: Path) -> None:
    target = tmp_path / "big.ts"
    target.write_bytes(b"x" * (64 * 1024) + b"one")
    first = scan_file(tmp_path, "big.ts", max_indexed_bytes=64 * 1024)
    target.write_bytes(b"x" * (64 * 1024) + b"two")
    second = scan_file(tmp_path, "big.ts", max_indexed_bytes=64 * 1024)

    assert first.contents == second.contents
    assert first.content_hash != second.content_hash


def test_scan_file_marks_binary_without_contents(tmp_path: Path) -> None:
    (tmp_path / "b.png").write_bytes(b"\x89PNG\x00\x00")

    scanned = scan_file(tmp_path, "b.png", max_indexed_bytes=1024)

    assert scanned.is_binary is True
    assert scanned.contents == ""


def test_scan_file_decodes_invalid_utf8_with_replacement(tmp_path: Path) -> None:
    (tmp_path / "latin.py").write_bytes(b"name = '\xe9t\xe9'\n")

    scanned = scan_file(tmp_path, "latin.py", max_indexed_bytes=1024)

    assert "�" in scanned.contents


def test_scan_file_raises_for_missing_file(tmp_path: Path) -> None:
    with pytest.raises(OSError):
        scan_file(tmp_path, "gone.py", max_indexed_bytes=1024)
