"""Repository naming and git checkouts for remote sources."""

from __future__ import annotations

import logging
import re
import subprocess
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

_PREFIX_PATTERNS = (
    re.compile(r"^git@[^:]+:"),
    re.compile(r"^ssh://[^/]+/", re.IGNORECASE),
    re.compile(r"^https?://[^/]+/", re.IGNORECASE),
    re.compile(r"^git://[^/]+/", re.IGNORECASE),
    re.compile(r"^file://", re.IGNORECASE),
)
_GIT_SUFFIX = re.compile(r"\.git$", re.IGNORECASE)
_UNSAFE_RUN = re.compile(r"[^A-Za-z0-9_-]+")
_DASH_RUN = re.compile(r"-{2,}")

GitRunner = Callable[[Sequence[str], Path | None], None]


@dataclass(slots=True, frozen=True)
class CheckoutResult:
    """Local checkout of a remote repository."""

    repo: str
    path: Path
    cloned: bool


def normalize_repo_name(identifier: str) -> str:
    """Derive a filesystem-safe repository name from a URL or path."""
    source = identifier.strip()
    if not source:
        raise ValueError("Repository identifier cannot be empty.")
    cleaned = source
    for pattern in _PREFIX_PATTERNS:
        cleaned = pattern.sub("", cleaned)
    cleaned = _GIT_SUFFIX.sub("", cleaned).replace("\\", "/")
    parts = [part for part in cleaned.split("/") if part]
    base = "-".join(parts) if parts else cleaned
    normalized = _DASH_RUN.sub("-", _UNSAFE_RUN.sub("-", base)).strip("-")
    return normalized or "repo"


def safe_repo_name_from_path(path: Path) -> str:
    return normalize_repo_name(path.resolve().name)


def run_git(args: Sequence[str], cwd: Path | None) -> None:
    """Run one git command, raising CalledProcessError on failure."""
    logger.debug("git %s (cwd=%s)", " ".join(args), cwd)
    subprocess.run(["git", *args], cwd=cwd, check=True, capture_output=True, text=True)


def clone_or_update(
    url: str,
    repos_dir: Path,
    name: str | None = None,
    *,
    runner: GitRunner = run_git,
) -> CheckoutResult:
    """Clone into ``repos_dir/<name>`` or bring an existing checkout up to date.

    A failed pull is retried once after ``git reset --hard HEAD``.
    """
    repo = normalize_repo_name(name or url)
    target = repos_dir / repo
    repos_dir.mkdir(parents=True, exist_ok=True)
    if not target.exists():
        runner(["clone", url, str(target)], None)
        return CheckoutResult(repo=repo, path=target, cloned=True)
    runner(["fetch"], target)
    try:
        runner(["pull"], target)
    except subprocess.CalledProcessError as error:
        logger.warning("git pull failed in %s, resetting: %s", target, error.stderr or error)
        runner(["reset", "--hard", "HEAD"], target)
        runner(["pull"], target)
    return CheckoutResult(repo=repo, path=target, cloned=False)
