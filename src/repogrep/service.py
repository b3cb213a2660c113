"""Service facade owning store handles for the lifetime of a session."""

from __future__ import annotations

import threading
from collections.abc import Callable
from pathlib import Path
from types import TracebackType
from typing import TypeVar

from repogrep.config import AppConfig
from repogrep.embedding import Embedder, SentenceTransformerEmbedder
from repogrep.index.manager import Indexer
from repogrep.index.models import IndexSummary, ReconcileSummary
from repogrep.logging.audit import JsonlAuditLogger
from repogrep.registry import RepositoryEntry, RepositoryRegistry
from repogrep.search.engine import HybridSearchEngine, SearchResult, validate_request
from repogrep.sources import GitRunner, clone_or_update, run_git, safe_repo_name_from_path
from repogrep.store.metadata import MetadataStore
from repogrep.store.vectors import LanceVectorStore

T = TypeVar("T")


class RepoSearchService:
    """Indexes repositories and answers queries over the shared stores.

    The SQLite connection, the vector table handle and the embedding model are
    created on first use and released by ``close()``.
    """

    def __init__(
        self,
        config: AppConfig,
        *,
        embedder: Embedder | None = None,
        git_runner: GitRunner = run_git,
    ) -> None:
        self._config = config
        self._embedder = embedder
        self._git_runner = git_runner
        self._lock = threading.Lock()
        self._metadata: MetadataStore | None = None
        self._vectors: LanceVectorStore | None = None
        self._audit = JsonlAuditLogger(config.audit_log_path)

    @property
    def config(self) -> AppConfig:
        return self._config

    @property
    def audit(self) -> JsonlAuditLogger:
        return self._audit

    @property
    def metadata(self) -> MetadataStore:
        with self._lock:
            if self._metadata is None:
                self._config.ensure_layout()
                self._metadata = MetadataStore(self._config.sqlite_path)
            return self._metadata

    @property
    def vectors(self) -> LanceVectorStore:
        with self._lock:
            if self._vectors is None:
                self._config.ensure_layout()
                self._vectors = LanceVectorStore(
                    self._config.vectors_dir,
                    self._config.embedding.dimension,
                )
            return self._vectors

    @property
    def embedder(self) -> Embedder:
        with self._lock:
            if self._embedder is None:
                self._embedder = SentenceTransformerEmbedder(
                    self._config.embedding.model_name,
                    self._config.embedding.dimension,
                )
            return self._embedder

    @property
    def registry(self) -> RepositoryRegistry:
        return RepositoryRegistry(self.metadata)

    def indexer(self) -> Indexer:
        return Indexer(
            metadata=self.metadata,
            vectors=self.vectors,
            embedder=self.embedder,
            registry=self.registry,
            index_config=self._config.index,
        )

    def engine(self) -> HybridSearchEngine:
        return HybridSearchEngine(
            metadata=self.metadata,
            vectors=self.vectors,
            embedder=self.embedder,
            search_config=self._config.search,
        )

    def index_repository(
        self,
        path: Path,
        *,
        repo: str | None = None,
        source: str | None = None,
        force: bool = False,
        include_globs: tuple[str, ...] | None = None,
        exclude_globs: tuple[str, ...] | None = None,
    ) -> IndexSummary:
        name = repo or safe_repo_name_from_path(path)
        arguments: dict[str, object] = {
            "repo": name,
            "force": force,
            "include_globs": list(include_globs or ()),
            "exclude_globs": list(exclude_globs or ()),
        }
        return self._audited(
            "index",
            arguments,
            lambda: self.indexer().index(
                path,
                name,
                source=source,
                force=force,
                include_globs=include_globs,
                exclude_globs=exclude_globs,
            ),
        )

    def add_repository(self, url: str, *, name: str | None = None) -> IndexSummary:
        """Clone or update a remote repository, then index the checkout."""
        checkout = clone_or_update(url, self._config.repos_dir, name, runner=self._git_runner)
        return self.index_repository(checkout.path, repo=checkout.repo, source=url)

    def search(
        self,
        query: str,
        mode: str = "keyword",
        *,
        repo: str | None = None,
        limit: int | None = None,
        keyword_weight: float | None = None,
        semantic_weight: float | None = None,
    ) -> list[SearchResult]:
        arguments: dict[str, object] = {"query": query, "mode": mode, "repo": repo, "limit": limit}

        def run() -> list[SearchResult]:
            validate_request(query, mode)
            return self.engine().search(
                query,
                mode,
                repo=repo,
                limit=limit,
                keyword_weight=keyword_weight,
                semantic_weight=semantic_weight,
            )

        return self._audited("search", arguments, run)

    def list_repositories(self) -> list[RepositoryEntry]:
        return self.registry.list()

    def reset_repository(self, repo: str) -> int:
        """Drop every stored trace of a repository; returns removed file count."""
        return self._audited("reset", {"repo": repo}, lambda: self.indexer().reset(repo))

    def reconcile(self, path: Path, *, repo: str | None = None) -> ReconcileSummary:
        name = repo or safe_repo_name_from_path(path)
        return self._audited(
            "reconcile", {"repo": name}, lambda: self.indexer().reconcile(path, name)
        )

    def repository_root(self, repo: str) -> Path:
        """Directory holding a repository's files: recorded root, else the clone dir."""
        entry = self.registry.get(repo)
        if entry is not None and entry.root_path:
            return Path(entry.root_path)
        return self._config.repos_dir / repo

    def close(self) -> None:
        with self._lock:
            if self._metadata is not None:
                self._metadata.close()
                self._metadata = None
            if self._vectors is not None:
                self._vectors.close()
                self._vectors = None

    def __enter__(self) -> RepoSearchService:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        self.close()

    def _audited(self, operation: str, arguments: dict[str, object], action: Callable[[], T]) -> T:
        try:
            result = action()
        except Exception as error:
            self._audit.record(operation, arguments, error=error)
            raise
        self._audit.record(operation, arguments)
        return result
