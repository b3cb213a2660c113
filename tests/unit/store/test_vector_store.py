from __future__ import annotations

from pathlib import Path

import lancedb
import pyarrow as pa
import pytest

from repogrep.index.models import FileRecord, VectorRecord
from repogrep.store import LanceVectorStore, RetryPolicy, VectorStoreConflictError


def _unit(index: int, dimension: int = 384) -> list[float]:
    vector = [0.0] * dimension
    vector[index] = 1.0
    return vector


def _row(repo: str, path: str, index: int, digest: str = "h") -> VectorRecord:
    record = FileRecord(
        repo=repo, path=path, filename=Path(path).name, mtime_ms=1, size_bytes=1, hash=digest
    )
    return VectorRecord.from_file(record, _unit(index))


def test_add_search_and_delete_by_key(tmp_path: Path) -> None:
    store = LanceVectorStore(tmp_path / "vectors", 384)
    store.add([_row("demo", "a.ts", 1), _row("demo", "b.ts", 2), _row("other", "c.ts", 1)])

    hits = store.search(_unit(1), limit=3)
    assert hits[0].distance == pytest.approx(0.0)
    assert {(hit.repo, hit.path) for hit in hits[:2]} == {("demo", "a.ts"), ("other", "c.ts")}

    filtered = store.search(_unit(1), repo="demo", limit=5)
    assert {hit.repo for hit in filtered} == {"demo"}

    store.delete_keys(["demo:a.ts"])
    assert store.rows_for_repo("demo") == {"demo:b.ts": "h"}


def test_search_on_empty_table_returns_nothing(tmp_path: Path) -> None:
    store = LanceVectorStore(tmp_path / "vectors", 384)

    assert store.search(_unit(0), limit=5) == []


def test_repo_names_with_quotes_are_escaped(tmp_path: Path) -> None:
    store = LanceVectorStore(tmp_path / "vectors", 384)
    store.add([_row("o'brien", "x.py", 3)])

    assert [hit.path for hit in store.search(_unit(3), repo="o'brien", limit=1)] == ["x.py"]
    store.delete_repo("o'brien")
    assert store.count_rows() == 0


def test_schema_drift_recreates_table(tmp_path: Path) -> None:
    directory = tmp_path / "vectors"
    db = lancedb.connect(str(directory))
    db.create_table(
        "files",
        schema=pa.schema(
            [pa.field("id", pa.string()), pa.field("vector", pa.list_(pa.float32(), 8))]
        ),
    )

    store = LanceVectorStore(directory, 384)
    store.add([_row("demo", "a.ts", 0)])

    vector_type = store.table().schema.field("vector").type
    assert vector_type.list_size == 384
    assert store.count_rows("demo") == 1


def test_conflicts_surface_as_vector_store_conflict(tmp_path: Path) -> None:
    store = LanceVectorStore(
        tmp_path / "vectors", 384, retry_policy=RetryPolicy(max_attempts=2, base_delay_seconds=0)
    )
    calls: list[int] = []

    def always_conflicts() -> None:
        calls.append(1)
        raise RuntimeError("Commit conflict for version 3")

    with pytest.raises(VectorStoreConflictError) as error:
        store._mutate(always_conflicts, "add")

    assert len(calls) == 2
    assert error.value.attempts == 2
    assert "Commit conflict" in str(error.value)
