"""File tools operating on indexed repositories."""

from .files import (
    GrepOptions,
    GrepReport,
    format_line_number,
    glob_files,
    grep_files,
    list_directory,
    parse_repo_path,
    read_file_lines,
)

__all__ = [
    "GrepOptions",
    "GrepReport",
    "format_line_number",
    "glob_files",
    "grep_files",
    "list_directory",
    "parse_repo_path",
    "read_file_lines",
]
