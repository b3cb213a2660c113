"""Path safety primitives for the file tools."""

from .paths import PathBlockedError, resolve_repo_path

__all__ = ["PathBlockedError", "resolve_repo_path"]
