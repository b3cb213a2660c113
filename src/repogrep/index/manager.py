"""Incremental indexing across the metadata and vector stores."""

from __future__ import annotations

import logging
import time
from pathlib import Path

from repogrep.config import IndexConfig
from repogrep.embedding import Embedder
from repogrep.index.discovery import discover_candidates, scan_file
from repogrep.index.models import (
    FileRecord,
    IndexSummary,
    ReconcileSummary,
    StagedUpdate,
    VectorRecord,
    vector_id,
)
from repogrep.registry import RepositoryRegistry
from repogrep.store.metadata import MetadataStore
from repogrep.store.vectors import LanceVectorStore, VectorStoreConflictError

logger = logging.getLogger(__name__)


def now_ms() -> int:
    return int(time.time() * 1000)


class Indexer:
    """Keeps file metadata, full-text rows and vectors in step with a directory."""

    def __init__(
        self,
        metadata: MetadataStore,
        vectors: LanceVectorStore,
        embedder: Embedder,
        registry: RepositoryRegistry,
        index_config: IndexConfig,
    ) -> None:
        self._metadata = metadata
        self._vectors = vectors
        self._embedder = embedder
        self._registry = registry
        self._index_config = index_config

    def index(
        self,
        root: Path,
        repo: str,
        *,
        source: str | None = None,
        force: bool = False,
        include_globs: tuple[str, ...] | None = None,
        exclude_globs: tuple[str, ...] | None = None,
    ) -> IndexSummary:
        """Index one repository root and record the outcome in the registry.

        Unchanged files (same content hash) are skipped unless ``force`` is set.
        A run that raises records its error and keeps the previous timestamp.
        """
        root_path = root.resolve()
        try:
            summary = self._run(
                root_path,
                repo,
                force=force,
                include_globs=include_globs or self._index_config.include_globs,
                exclude_globs=exclude_globs or self._index_config.exclude_globs,
            )
        except Exception as error:
            self._registry.upsert(repo, source, None, str(error) or type(error).__name__)
            raise
        error_message = "; ".join(summary.vector_failures) or None
        self._registry.upsert(repo, source, now_ms(), error_message, str(root_path))
        return summary

    def reconcile(self, root: Path, repo: str) -> ReconcileSummary:
        """Repair vector rows that are missing or stale and drop orphans."""
        started = time.perf_counter()
        root_path = root.resolve()
        records = self._metadata.load_file_index(repo)
        stored_hashes = self._vectors.rows_for_repo(repo)
        duplicated = self._vectors.duplicate_keys(repo)

        repaired: list[VectorRecord] = []
        missing_on_disk = 0
        for path in sorted(records):
            record = records[path]
            key = vector_id(repo, path)
            if stored_hashes.get(key) == record.hash and key not in duplicated:
                continue
            try:
                scanned = scan_file(root_path, path, self._index_config.max_indexed_bytes)
            except OSError:
                logger.warning("Cannot read %s while reconciling %s", path, repo)
                missing_on_disk += 1
                continue
            if scanned.is_binary:
                missing_on_disk += 1
                continue
            repaired.append(VectorRecord.from_file(record, self._embedder.embed(scanned.contents)))

        expected = {vector_id(repo, path) for path in records}
        orphans = sorted(key for key in stored_hashes if key not in expected)
        self._vectors.delete_keys(orphans)
        self._vectors.delete_keys([row.id for row in repaired])
        self._vectors.add(repaired)
        return ReconcileSummary(
            repo=repo,
            checked=len(records),
            repaired=len(repaired),
            orphans_removed=len(orphans),
            missing_on_disk=missing_on_disk,
            duration_ms=int((time.perf_counter() - started) * 1000),
        )

    def reset(self, repo: str) -> int:
        """Remove all indexed state of a repository; returns removed file count."""
        removed = self._metadata.delete_repo(repo)
        self._vectors.delete_repo(repo)
        return removed

    def _run(
        self,
        root: Path,
        repo: str,
        *,
        force: bool,
        include_globs: tuple[str, ...],
        exclude_globs: tuple[str, ...],
    ) -> IndexSummary:
        started = time.perf_counter()
        existing = self._metadata.load_file_index(repo)
        candidates = discover_candidates(root, include_globs, exclude_globs)

        seen: set[str] = set()
        staged: list[StagedUpdate] = []
        skipped_binary = 0
        skipped_unchanged = 0
        failed = 0
        for relative_path in candidates:
            try:
                scanned = scan_file(root, relative_path, self._index_config.max_indexed_bytes)
            except OSError as error:
                logger.warning("Skipping unreadable file %s: %s", relative_path, error)
                failed += 1
                if relative_path in existing:
                    seen.add(relative_path)
                continue
            if scanned.is_binary:
                skipped_binary += 1
                continue
            seen.add(relative_path)
            previous = existing.get(relative_path)
            if previous is not None and previous.hash == scanned.content_hash and not force:
                skipped_unchanged += 1
                continue
            record = FileRecord(
                repo=repo,
                path=relative_path,
                filename=scanned.filename,
                mtime_ms=scanned.mtime_ms,
                size_bytes=scanned.size_bytes,
                hash=scanned.content_hash,
            )
            staged.append(
                StagedUpdate(
                    record=record,
                    contents=scanned.contents,
                    vector=self._embedder.embed(scanned.contents),
                )
            )

        removals = [existing[path] for path in sorted(existing) if path not in seen]
        persisted = self._metadata.apply_changes(staged, removals)
        vector_failures = self._sync_vectors(repo, staged, persisted, removals)

        return IndexSummary(
            repo=repo,
            repo_path=str(root),
            files_scanned=len(candidates),
            files_indexed=len(staged),
            files_deleted=len(removals),
            files_skipped_binary=skipped_binary,
            files_skipped_unchanged=skipped_unchanged,
            files_failed=failed,
            duration_ms=int((time.perf_counter() - started) * 1000),
            vector_failures=tuple(vector_failures),
        )

    def _sync_vectors(
        self,
        repo: str,
        staged: list[StagedUpdate],
        persisted: list[FileRecord],
        removals: list[FileRecord],
    ) -> list[str]:
        """Delete stale keys then add fresh rows; conflicts are collected, not raised.

        A key whose delete gave up gets no fresh row, so it stays a single stale
        row that ``reconcile`` repairs.
        """
        failures: list[str] = []
        blocked: set[str] = set()
        stale_keys = [vector_id(repo, record.path) for record in removals]
        stale_keys.extend(vector_id(repo, update.record.path) for update in staged)
        for key in stale_keys:
            try:
                self._vectors.delete_keys([key])
            except VectorStoreConflictError as error:
                logger.warning("Vector delete gave up for %s: %s", key, error)
                failures.append(str(error))
                blocked.add(key)
        rows = [
            VectorRecord.from_file(record, update.vector)
            for record, update in zip(persisted, staged, strict=True)
            if vector_id(repo, record.path) not in blocked
        ]
        try:
            self._vectors.add(rows)
        except VectorStoreConflictError as error:
            logger.warning("Vector add gave up for %s: %s", repo, error)
            failures.append(str(error))
        return failures
