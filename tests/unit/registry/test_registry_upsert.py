from __future__ import annotations

from pathlib import Path

from repogrep.index.models import FileRecord, StagedUpdate
from repogrep.registry import RepositoryRegistry
from repogrep.store import MetadataStore


def test_upsert_is_idempotent_and_list_is_ordered(tmp_path: Path) -> None:
    store = MetadataStore(tmp_path / "search.sqlite")
    try:
        registry = RepositoryRegistry(store)
        registry.upsert("zeta", None, 10, None, "/work/zeta")
        registry.upsert("alpha", "https://example.com/alpha.git", 20, None)
        registry.upsert("alpha", "https://example.com/alpha.git", 30, None)

        entries = registry.list()

        assert [entry.repo for entry in entries] == ["alpha", "zeta"]
        assert entries[0].last_indexed_ms == 30
        assert entries[0].source == "https://example.com/alpha.git"
        assert entries[1].root_path == "/work/zeta"
    finally:
        store.close()


def test_failed_run_keeps_previous_timestamp_and_root(tmp_path: Path) -> None:
    store = MetadataStore(tmp_path / "search.sqlite")
    try:
        registry = RepositoryRegistry(store)
        registry.upsert("demo", None, 100, None, "/work/demo")
        registry.upsert("demo", None, None, "boom")

        entry = registry.get("demo")

        assert entry is not None
        assert entry.last_indexed_ms == 100
        assert entry.last_error == "boom"
        assert entry.root_path == "/work/demo"
    finally:
        store.close()


def test_file_count_is_derived_live(tmp_path: Path) -> None:
    store = MetadataStore(tmp_path / "search.sqlite")
    try:
        registry = RepositoryRegistry(store)
        registry.upsert("demo", None, 1, None)
        record = FileRecord(
            repo="demo", path="a.py", filename="a.py", mtime_ms=1, size_bytes=1, hash="h"
        )
        [persisted] = store.apply_changes([StagedUpdate(record, "x = 1", [0.0] * 384)], [])
        assert registry.get("demo").file_count == 1

        store.apply_changes([], [persisted])
        assert registry.get("demo").file_count == 0
        assert registry.get("missing") is None
    finally:
        store.close()
