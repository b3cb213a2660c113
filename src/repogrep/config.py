"""Configuration loading and deterministic merge order."""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass
from pathlib import Path

CONFIG_FILENAME = "repogrep.toml"
DATA_DIR_ENV = "REPOGREP_HOME"

MAX_INDEXED_BYTES_CAP = 16 * 1024 * 1024
MAX_SEARCH_LIMIT_CAP = 1_000
EMBEDDING_DIMENSION = 384

DEFAULT_INCLUDE_GLOBS = (
    "**/*.ts",
    "**/*.tsx",
    "**/*.js",
    "**/*.jsx",
    "**/*.py",
    "**/*.java",
    "**/*.go",
    "**/*.rs",
    "**/*.c",
    "**/*.cpp",
    "**/*.h",
    "**/*.hpp",
    "**/*.md",
)
DEFAULT_EXCLUDE_GLOBS = (
    "**/node_modules/**",
    "**/.git/**",
    "**/dist/**",
    "**/build/**",
    "**/.next/**",
    "**/.turbo/**",
    "**/coverage/**",
    "**/vendor/**",
    "**/.venv/**",
    "**/__pycache__/**",
)
DEFAULT_MAX_INDEXED_BYTES = 64 * 1024
DEFAULT_EMBEDDING_MODEL = "sentence-transformers/all-MiniLM-L6-v2"


@dataclass(slots=True, frozen=True)
class IndexConfig:
    """Scanner and indexer settings."""

    include_globs: tuple[str, ...]
    exclude_globs: tuple[str, ...]
    max_indexed_bytes: int = DEFAULT_MAX_INDEXED_BYTES


@dataclass(slots=True, frozen=True)
class SearchConfig:
    """Retrieval defaults."""

    default_limit: int = 20
    keyword_weight: float = 0.4
    semantic_weight: float = 0.6


@dataclass(slots=True, frozen=True)
class EmbeddingConfig:
    """Embedding model selection."""

    model_name: str = DEFAULT_EMBEDDING_MODEL
    dimension: int = EMBEDDING_DIMENSION


@dataclass(slots=True, frozen=True)
class AppConfig:
    """Fully merged application configuration."""

    data_dir: Path
    index: IndexConfig
    search: SearchConfig
    embedding: EmbeddingConfig

    @property
    def store_dir(self) -> Path:
        return self.data_dir / ".rsearch"

    @property
    def sqlite_path(self) -> Path:
        return self.store_dir / "search.sqlite"

    @property
    def vectors_dir(self) -> Path:
        return self.store_dir / "vectors"

    @property
    def repos_dir(self) -> Path:
        return self.data_dir / "repos"

    @property
    def audit_log_path(self) -> Path:
        return self.store_dir / "audit.jsonl"

    def ensure_layout(self) -> None:
        """Create the on-disk directory layout when missing."""
        for directory in (self.data_dir, self.store_dir, self.vectors_dir, self.repos_dir):
            directory.mkdir(parents=True, exist_ok=True)

    def to_public_dict(self) -> dict[str, object]:
        """Return serializable config snapshot."""
        return {
            "data_dir": str(self.data_dir),
            "sqlite_path": str(self.sqlite_path),
            "vectors_dir": str(self.vectors_dir),
            "repos_dir": str(self.repos_dir),
            "index": {
                "include_globs": list(self.index.include_globs),
                "exclude_globs": list(self.index.exclude_globs),
                "max_indexed_bytes": self.index.max_indexed_bytes,
            },
            "search": {
                "default_limit": self.search.default_limit,
                "keyword_weight": self.search.keyword_weight,
                "semantic_weight": self.search.semantic_weight,
            },
            "embedding": {
                "model_name": self.embedding.model_name,
                "dimension": self.embedding.dimension,
            },
        }


@dataclass(slots=True, frozen=True)
class CliOverrides:
    """Optional startup overrides applied at highest precedence."""

    data_dir: Path | None = None
    model_name: str | None = None
    default_limit: int | None = None


def default_data_dir() -> Path:
    """Return $REPOGREP_HOME when set, else ~/.bloat."""
    configured = os.getenv(DATA_DIR_ENV, "").strip()
    if configured:
        return Path(configured).expanduser().resolve()
    return (Path.home() / ".bloat").resolve()


def default_config(data_dir: Path | None = None) -> AppConfig:
    """Build the default config rooted at a data directory."""
    resolved = (data_dir or default_data_dir()).resolve()
    return AppConfig(
        data_dir=resolved,
        index=IndexConfig(
            include_globs=DEFAULT_INCLUDE_GLOBS,
            exclude_globs=DEFAULT_EXCLUDE_GLOBS,
        ),
        search=SearchConfig(),
        embedding=EmbeddingConfig(),
    )


def load_config_file(data_dir: Path) -> dict[str, object]:
    """Load optional repogrep.toml from the data directory."""
    config_path = data_dir / CONFIG_FILENAME
    if not config_path.exists():
        return {}
    with config_path.open("rb") as handle:
        payload = tomllib.load(handle)
    if not isinstance(payload, dict):
        raise ValueError(f"{CONFIG_FILENAME} must contain a top-level table.")
    return payload


def _get_table(payload: dict[str, object], key: str) -> dict[str, object]:
    value = payload.get(key, {})
    if not isinstance(value, dict):
        raise ValueError(f"Config section '{key}' must be a table.")
    return value


def _tuple_of_strings(value: object, section: str, field: str) -> tuple[str, ...]:
    if not isinstance(value, list):
        raise ValueError(f"Config field '{section}.{field}' must be a list of strings.")
    output: list[str] = []
    for item in value:
        if not isinstance(item, str) or not item:
            raise ValueError(f"Config field '{section}.{field}' must contain only strings.")
        output.append(item)
    return tuple(output)


def merge_config(base: AppConfig, payload: dict[str, object], overrides: CliOverrides) -> AppConfig:
    """Merge defaults, config file, then CLI overrides."""
    index_payload = _get_table(payload, "index")
    search_payload = _get_table(payload, "search")
    embedding_payload = _get_table(payload, "embedding")

    include_globs = base.index.include_globs
    if "include_globs" in index_payload:
        include_globs = _tuple_of_strings(index_payload["include_globs"], "index", "include_globs")
    exclude_globs = base.index.exclude_globs
    if "exclude_globs" in index_payload:
        exclude_globs = _tuple_of_strings(index_payload["exclude_globs"], "index", "exclude_globs")
    max_indexed_bytes = _optional_positive_int_with_cap(
        index_payload.get("max_indexed_bytes"),
        "index.max_indexed_bytes",
        base.index.max_indexed_bytes,
        MAX_INDEXED_BYTES_CAP,
    )

    default_limit = _optional_positive_int_with_cap(
        search_payload.get("default_limit"),
        "search.default_limit",
        base.search.default_limit,
        MAX_SEARCH_LIMIT_CAP,
    )
    keyword_weight = _optional_weight(
        search_payload.get("keyword_weight"), "search.keyword_weight", base.search.keyword_weight
    )
    semantic_weight = _optional_weight(
        search_payload.get("semantic_weight"),
        "search.semantic_weight",
        base.search.semantic_weight,
    )

    model_name = base.embedding.model_name
    if "model_name" in embedding_payload:
        raw_model = embedding_payload["model_name"]
        if not isinstance(raw_model, str) or not raw_model.strip():
            raise ValueError("Config field 'embedding.model_name' must be a non-empty string.")
        model_name = raw_model
    if "dimension" in embedding_payload and embedding_payload["dimension"] != EMBEDDING_DIMENSION:
        raise ValueError(f"Config field 'embedding.dimension' must be {EMBEDDING_DIMENSION}.")

    merged = AppConfig(
        data_dir=base.data_dir,
        index=IndexConfig(
            include_globs=include_globs,
            exclude_globs=exclude_globs,
            max_indexed_bytes=max_indexed_bytes,
        ),
        search=SearchConfig(
            default_limit=default_limit,
            keyword_weight=keyword_weight,
            semantic_weight=semantic_weight,
        ),
        embedding=EmbeddingConfig(model_name=model_name, dimension=base.embedding.dimension),
    )
    return apply_cli_overrides(merged, overrides)


def apply_cli_overrides(config: AppConfig, overrides: CliOverrides) -> AppConfig:
    """Apply startup overrides at highest precedence."""
    default_limit = _optional_positive_int_with_cap(
        overrides.default_limit,
        "overrides.default_limit",
        config.search.default_limit,
        MAX_SEARCH_LIMIT_CAP,
    )
    data_dir = overrides.data_dir or config.data_dir
    return AppConfig(
        data_dir=data_dir.resolve(),
        index=config.index,
        search=SearchConfig(
            default_limit=default_limit,
            keyword_weight=config.search.keyword_weight,
            semantic_weight=config.search.semantic_weight,
        ),
        embedding=EmbeddingConfig(
            model_name=overrides.model_name or config.embedding.model_name,
            dimension=config.embedding.dimension,
        ),
    )


def load_effective_config(overrides: CliOverrides | None = None) -> AppConfig:
    """Load effective config using merge order defaults -> config file -> overrides."""
    effective_overrides = overrides or CliOverrides()
    base = default_config(effective_overrides.data_dir)
    payload = load_config_file(base.data_dir)
    return merge_config(base, payload, effective_overrides)


def _optional_positive_int_with_cap(
    value: object,
    name: str,
    default: int,
    cap: int | None,
) -> int:
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValueError(f"Config field '{name}' must be a positive integer.")
    if cap is not None and value > cap:
        raise ValueError(f"Config field '{name}' must be <= {cap}.")
    return value


def _optional_weight(value: object, name: str, default: float) -> float:
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
        raise ValueError(f"Config field '{name}' must be a non-negative number.")
    return float(value)
