"""Command-line entry point."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from collections.abc import Callable
from datetime import datetime
from pathlib import Path

from repogrep.config import AppConfig, CliOverrides, load_effective_config
from repogrep.index.models import IndexSummary
from repogrep.service import RepoSearchService
from repogrep.tools.files import (
    GrepOptions,
    format_line_number,
    glob_files,
    grep_files,
    list_directory,
    parse_repo_path,
    read_file_lines,
)

ServiceFactory = Callable[[AppConfig], RepoSearchService]


def format_duration(ms: int) -> str:
    """Render a duration as 850ms, 12.3s or 2m 5s."""
    if ms < 1000:
        return f"{ms}ms"
    seconds = ms / 1000
    if seconds < 60:
        return f"{seconds:.1f}s"
    minutes = int(seconds // 60)
    return f"{minutes}m {seconds % 60:.0f}s"


def format_timestamp(timestamp_ms: int | None) -> str:
    if not timestamp_ms:
        return "never"
    return datetime.fromtimestamp(timestamp_ms / 1000).strftime("%Y-%m-%d %H:%M:%S")


def format_index_summary(summary: IndexSummary) -> str:
    return (
        f"Indexed {summary.repo} ({summary.files_indexed} file(s) updated, "
        f"{summary.files_deleted} deleted, {summary.files_skipped_unchanged} unchanged, "
        f"{summary.files_skipped_binary} binary skipped) in {format_duration(summary.duration_ms)}."
    )


def build_arg_parser() -> argparse.ArgumentParser:
    """Build the argument parser with one subcommand per operation."""
    parser = argparse.ArgumentParser(
        prog="repogrep",
        description="Local code search combining SQLite FTS and LanceDB semantic search.",
    )
    parser.add_argument("--data-dir", default=None)
    parser.add_argument("--model", default=None, help="Embedding model name override.")
    parser.add_argument("-v", "--verbose", action="store_true")
    commands = parser.add_subparsers(dest="command", required=True)

    add = commands.add_parser("add", help="Clone or update a git repository and index it.")
    add.add_argument("url")
    add.add_argument("-n", "--name", default=None)
    add.set_defaults(handler=_cmd_add)

    index = commands.add_parser("index", help="Index a local repository path.")
    index.add_argument("path")
    index.add_argument("-r", "--repo", default=None)
    index.add_argument("--force", action="store_true")
    index.add_argument("--include", action="append", default=None, metavar="GLOB")
    index.add_argument("--exclude", action="append", default=None, metavar="GLOB")
    index.set_defaults(handler=_cmd_index)

    search = commands.add_parser("search", help="Search indexed repositories.")
    search.add_argument("query", nargs="+")
    search.add_argument("-r", "--repo", default=None)
    search.add_argument("-l", "--limit", type=int, default=None)
    modes = search.add_mutually_exclusive_group()
    modes.add_argument("--semantic", action="store_true")
    modes.add_argument("--hybrid", action="store_true")
    search.add_argument("--keyword-weight", type=float, default=None)
    search.add_argument("--semantic-weight", type=float, default=None)
    search.set_defaults(handler=_cmd_search)

    listing = commands.add_parser("list", help="List indexed repositories.")
    listing.set_defaults(handler=_cmd_list)

    remove = commands.add_parser("remove", help="Remove a repository from the index.")
    remove.add_argument("repo")
    remove.set_defaults(handler=_cmd_remove)

    reconcile = commands.add_parser("reconcile", help="Repair missing or stale vectors.")
    reconcile.add_argument("path")
    reconcile.add_argument("-r", "--repo", default=None)
    reconcile.set_defaults(handler=_cmd_reconcile)

    config = commands.add_parser("config", help="Print the effective configuration.")
    config.set_defaults(handler=_cmd_config)

    log = commands.add_parser("log", help="Print recent operations from the audit journal.")
    log.add_argument("--limit", type=int, default=20)
    log.set_defaults(handler=_cmd_log)

    ls = commands.add_parser("ls", help="List files and directories of an indexed path.")
    ls.add_argument("path", nargs="?", default=None)
    ls.add_argument("--ignore", action="append", default=[], metavar="GLOB")
    ls.set_defaults(handler=_cmd_ls)

    glob = commands.add_parser("glob", help="Find indexed files matching a glob.")
    glob.add_argument("pattern")
    glob.add_argument("-r", "--repo", default=None)
    glob.add_argument("--limit", type=int, default=None)
    glob.set_defaults(handler=_cmd_glob)

    read = commands.add_parser("read", help="Print lines of an indexed file.")
    read.add_argument("file", help="repo/path")
    read.add_argument("--offset", type=int, default=1)
    read.add_argument("--limit", type=int, default=None)
    read.add_argument("--no-line-numbers", dest="line_numbers", action="store_false")
    read.set_defaults(handler=_cmd_read)

    grep = commands.add_parser("grep", help="Regex search over indexed files.")
    grep.add_argument("pattern")
    grep.add_argument("-r", "--repo", default=None)
    grep.add_argument("-i", "--ignore-case", action="store_true")
    grep.add_argument("-A", dest="after", type=int, default=0)
    grep.add_argument("-B", dest="before", type=int, default=0)
    grep.add_argument("-C", dest="context", type=int, default=None)
    grep.add_argument("-l", "--files-with-matches", action="store_true")
    grep.add_argument("-c", "--count", action="store_true")
    grep.add_argument("--type", dest="extension", default=None)
    grep.add_argument("--limit", type=int, default=None)
    grep.set_defaults(handler=_cmd_grep)
    return parser


def main(argv: list[str] | None = None, *, service_factory: ServiceFactory | None = None) -> int:
    """Entrypoint for the repogrep command; returns the process exit status."""
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    else:
        logging.basicConfig(level=logging.WARNING, format="%(levelname)s %(name)s: %(message)s")
    try:
        config = load_effective_config(
            CliOverrides(
                data_dir=Path(args.data_dir).expanduser().resolve() if args.data_dir else None,
                model_name=args.model,
            )
        )
        factory = service_factory or RepoSearchService
        with factory(config) as service:
            return int(args.handler(service, args))
    except Exception as error:
        print(f"Error: {error}", file=sys.stderr)
        return 1


def _report_index(summary: IndexSummary) -> int:
    print(format_index_summary(summary))
    if summary.files_failed:
        print(f"  {summary.files_failed} file(s) could not be read.")
    for failure in summary.vector_failures:
        print(f"Warning: {failure}", file=sys.stderr)
    return 0 if summary.ok else 1


def _cmd_add(service: RepoSearchService, args: argparse.Namespace) -> int:
    return _report_index(service.add_repository(args.url, name=args.name))


def _cmd_index(service: RepoSearchService, args: argparse.Namespace) -> int:
    summary = service.index_repository(
        Path(args.path),
        repo=args.repo,
        force=args.force,
        include_globs=tuple(args.include) if args.include else None,
        exclude_globs=tuple(args.exclude) if args.exclude else None,
    )
    return _report_index(summary)


def _cmd_search(service: RepoSearchService, args: argparse.Namespace) -> int:
    mode = "keyword"
    if args.hybrid:
        mode = "hybrid"
    elif args.semantic:
        mode = "semantic"
    results = service.search(
        " ".join(args.query).strip(),
        mode,
        repo=args.repo,
        limit=args.limit,
        keyword_weight=args.keyword_weight,
        semantic_weight=args.semantic_weight,
    )
    if not results:
        print("No results found.")
        return 0
    for result in results:
        print(f"{result.repo}/{result.path}  (score {result.score:.3f})")
        if result.snippet:
            print("  " + result.snippet.replace("\n", "\n  "))
        print("")
    return 0


def _cmd_list(service: RepoSearchService, args: argparse.Namespace) -> int:
    entries = service.list_repositories()
    if not entries:
        print("No repositories indexed yet.")
        return 0
    for entry in entries:
        status = f"error: {entry.last_error}" if entry.last_error else f"{entry.file_count} files"
        print(f"{entry.repo}  ({status})  last indexed: {format_timestamp(entry.last_indexed_ms)}")
        if entry.source:
            print(f"  source: {entry.source}")
    return 0


def _cmd_remove(service: RepoSearchService, args: argparse.Namespace) -> int:
    removed = service.reset_repository(args.repo)
    print(f"Removed {args.repo} ({removed} file(s)).")
    return 0


def _cmd_reconcile(service: RepoSearchService, args: argparse.Namespace) -> int:
    summary = service.reconcile(Path(args.path), repo=args.repo)
    print(
        f"Reconciled {summary.repo}: {summary.checked} checked, {summary.repaired} repaired, "
        f"{summary.orphans_removed} orphan(s) removed, {summary.missing_on_disk} missing on disk "
        f"in {format_duration(summary.duration_ms)}."
    )
    return 0


def _cmd_config(service: RepoSearchService, args: argparse.Namespace) -> int:
    print(json.dumps(service.config.to_public_dict(), indent=2, sort_keys=True))
    return 0


def _cmd_log(service: RepoSearchService, args: argparse.Namespace) -> int:
    for event in service.audit.read(limit=args.limit):
        print(json.dumps(event, sort_keys=True))
    return 0


def _cmd_ls(service: RepoSearchService, args: argparse.Namespace) -> int:
    if not args.path:
        entries = service.list_repositories()
        if not entries:
            print("No repositories indexed yet.")
        for entry in entries:
            print(f"{entry.repo}/")
        return 0
    repo, directory = parse_repo_path(args.path)
    if not repo:
        raise ValueError("Invalid path format. Use: repo or repo/path")
    listed = list_directory(service.metadata, repo, directory, tuple(args.ignore))
    if not listed:
        print("No files found in this directory.")
    for item in listed:
        print(item)
    return 0


def _cmd_glob(service: RepoSearchService, args: argparse.Namespace) -> int:
    records = glob_files(service.metadata, args.pattern, repo=args.repo, limit=args.limit)
    if not records:
        print("No files found matching pattern.")
    for record in records:
        print(f"{record.repo}/{record.path}")
    return 0


def _cmd_read(service: RepoSearchService, args: argparse.Namespace) -> int:
    repo, path = parse_repo_path(args.file)
    if not repo or not path:
        raise ValueError("Invalid file format. Use: repo/path")
    if service.metadata.get_file(repo, path) is None:
        raise FileNotFoundError(f"File not found in index: {args.file}")
    lines = read_file_lines(
        service.repository_root(repo), path, offset=args.offset, limit=args.limit
    )
    for number, text in lines:
        print(f"{format_line_number(number)}|{text}" if args.line_numbers else text)
    return 0


def _cmd_grep(service: RepoSearchService, args: argparse.Namespace) -> int:
    before = args.before if args.context is None else args.context
    after = args.after if args.context is None else args.context
    report = grep_files(
        service.metadata,
        service.repository_root,
        args.pattern,
        GrepOptions(
            repo=args.repo,
            ignore_case=args.ignore_case,
            before=before,
            after=after,
            files_with_matches=args.files_with_matches,
            count=args.count,
            extension=args.extension,
            limit=args.limit,
        ),
    )
    for line in report.lines:
        print(line)
    if not report.counts:
        print("No matches found.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
