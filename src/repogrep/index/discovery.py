"""Deterministic file discovery and change-detecting file scans."""

from __future__ import annotations

import hashlib
import os
import re
from pathlib import Path

from repogrep.index.models import ScannedFile

BINARY_SNIFF_BYTES = 1024
BINARY_SUSPICIOUS_RATIO = 0.3

_GLOB_META = frozenset("*?[]{}")


def discover_candidates(
    root: Path,
    include_globs: tuple[str, ...],
    exclude_globs: tuple[str, ...],
) -> list[str]:
    """Return sorted relative paths of files matching include and no exclude glob."""
    resolved = root.resolve()
    if not resolved.exists():
        raise FileNotFoundError(f"Repository root does not exist: {root}")
    if not resolved.is_dir():
        raise NotADirectoryError(f"Repository root is not a directory: {root}")

    includes = compile_globs(include_globs)
    excludes = compile_globs(exclude_globs)
    pruned_dir_names = _excluded_dir_names(exclude_globs)

    found: set[str] = set()
    stack: list[Path] = [resolved]
    while stack:
        current = stack.pop()
        try:
            with os.scandir(current) as entries:
                ordered_entries = sorted(entries, key=lambda item: item.name)
        except OSError:
            continue
        for entry in reversed(ordered_entries):
            full_path = Path(entry.path)
            relative = full_path.relative_to(resolved).as_posix()
            if entry.is_dir(follow_symlinks=False):
                if entry.name in pruned_dir_names:
                    continue
                stack.append(full_path)
                continue
            if not entry.is_file(follow_symlinks=False):
                continue
            if not matches_any(relative, includes):
                continue
            if matches_any(relative, excludes):
                continue
            found.add(relative)
    return sorted(found)


def scan_file(root: Path, relative_path: str, max_indexed_bytes: int) -> ScannedFile:
    """Read one candidate, classify it and hash its full contents.

    Raises OSError when the file cannot be read.
    """
    full_path = root / relative_path
    data = full_path.read_bytes()
    stat = full_path.stat()
    filename = Path(relative_path).name
    mtime_ms = stat.st_mtime_ns // 1_000_000
    if is_binary_bytes(data):
        return ScannedFile(
            path=relative_path,
            filename=filename,
            mtime_ms=mtime_ms,
            size_bytes=stat.st_size,
            content_hash="",
            contents="",
            is_binary=True,
        )
    return ScannedFile(
        path=relative_path,
        filename=filename,
        mtime_ms=mtime_ms,
        size_bytes=stat.st_size,
        content_hash=sha256_bytes(data),
        contents=data[:max_indexed_bytes].decode("utf-8", errors="replace"),
        is_binary=False,
    )


def sha256_bytes(data: bytes) -> str:
    """Hex SHA-256 digest of the full byte sequence."""
    return hashlib.sha256(data).hexdigest()


def is_binary_bytes(data: bytes) -> bool:
    """Classify content as binary by sniffing its leading bytes."""
    sample = data[:BINARY_SNIFF_BYTES]
    if not sample:
        return False
    suspicious = 0
    for byte in sample:
        if byte == 0:
            return True
        if byte < 7 or 13 < byte < 32 or byte == 255:
            suspicious += 1
    return suspicious / len(sample) > BINARY_SUSPICIOUS_RATIO


def compile_globs(patterns: tuple[str, ...]) -> tuple[re.Pattern[str], ...]:
    """Compile glob patterns (with brace alternatives) into anchored regexes."""
    compiled: list[re.Pattern[str]] = []
    for pattern in patterns:
        for expanded in _expand_braces(pattern):
            compiled.append(glob_to_regex(expanded))
    return tuple(compiled)


def matches_any(relative_path: str, compiled: tuple[re.Pattern[str], ...]) -> bool:
    """Return True when the relative path matches one of the compiled globs."""
    return any(regex.match(relative_path) for regex in compiled)


def glob_to_regex(pattern: str) -> re.Pattern[str]:
    """Translate one glob into a regex where only ``**`` crosses directories."""
    normalized = pattern.replace("\\", "/")
    while normalized.startswith("./"):
        normalized = normalized[2:]
    normalized = normalized.strip("/")
    parts = [part for part in normalized.split("/") if part]
    output: list[str] = []
    for index, part in enumerate(parts):
        is_last = index == len(parts) - 1
        if part == "**":
            output.append(".*" if is_last else "(?:[^/]+/)*")
            continue
        output.append(_translate_segment(part))
        if not is_last:
            output.append("/")
    return re.compile("^" + "".join(output) + "$")


def _translate_segment(segment: str) -> str:
    output: list[str] = []
    index = 0
    length = len(segment)
    while index < length:
        char = segment[index]
        if char == "*":
            while index + 1 < length and segment[index + 1] == "*":
                index += 1
            output.append("[^/]*")
        elif char == "?":
            output.append("[^/]")
        elif char == "[":
            end = index + 1
            if end < length and segment[end] in "!^":
                end += 1
            if end < length and segment[end] == "]":
                end += 1
            end = segment.find("]", end)
            if end == -1:
                output.append(re.escape(char))
            else:
                body = segment[index + 1 : end]
                if body[:1] in ("!", "^"):
                    body = "^" + body[1:]
                output.append("[" + body.replace("\\", "\\\\") + "]")
                index = end
        else:
            output.append(re.escape(char))
        index += 1
    return "".join(output)


def _expand_braces(pattern: str) -> list[str]:
    start = pattern.find("{")
    if start == -1:
        return [pattern]
    depth = 0
    options: list[str] = []
    current = start + 1
    for index in range(start, len(pattern)):
        char = pattern[index]
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                options.append(pattern[current:index])
                if len(options) < 2:
                    return [pattern]
                prefix = pattern[:start]
                suffix = pattern[index + 1 :]
                expanded: list[str] = []
                for option in options:
                    expanded.extend(_expand_braces(prefix + option + suffix))
                return expanded
        elif char == "," and depth == 1:
            options.append(pattern[current:index])
            current = index + 1
    return [pattern]


def _excluded_dir_names(exclude_globs: tuple[str, ...]) -> set[str]:
    """Extract directory-name prunes from **/name/** glob patterns."""
    output: set[str] = set()
    for pattern in exclude_globs:
        if not pattern.startswith("**/") or not pattern.endswith("/**"):
            continue
        name = pattern[3:-3].strip("/")
        if not name or "/" in name:
            continue
        if any(char in _GLOB_META for char in name):
            continue
        output.add(name)
    return output
