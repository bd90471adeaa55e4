"""Tunable settings for chunking, scoring, aggregation and PR planning."""

from __future__ import annotations

import os
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from ..core.exceptions import ConfigError
from . import defaults


@dataclass
class ChunkingSettings:
    """Limits for splitting documents into chunks (characters)."""

    max_chars: int = defaults.DOCUMENT_CHUNK_MAX_CHARS
    min_chars: int = defaults.DOCUMENT_CHUNK_MIN_CHARS


@dataclass
class ScoringSettings:
    """Thresholds for guideline and custom document scoring."""

    custom_doc_limit: int = defaults.CUSTOM_DOC_SEARCH_LIMIT
    custom_doc_threshold: float = defaults.CUSTOM_DOC_SIMILARITY_THRESHOLD
    relevant_chunk_threshold: float = defaults.RELEVANT_CHUNK_THRESHOLD
    min_document_score: float = defaults.GUIDELINE_MIN_DOCUMENT_SCORE
    max_documents: int = defaults.GUIDELINE_MAX_DOCUMENTS
    generic_doc_penalty: float = defaults.GENERIC_DOC_PENALTY_FACTOR
    title_cache_size: int = defaults.TITLE_EMBEDDING_CACHE_SIZE


@dataclass
class AggregationSettings:
    """Caps applied to the merged context pools of a multi-file change."""

    max_examples: int = defaults.DEFAULT_MAX_EXAMPLES
    max_guidelines: int = defaults.AGGREGATED_GUIDELINE_CAP
    max_comments: int = defaults.AGGREGATED_COMMENT_CAP
    max_custom_chunks: int = defaults.AGGREGATED_CUSTOM_DOC_CAP


@dataclass
class PRChunkingSettings:
    """Token budgets used to decide whether and how a changeset is split."""

    chunk_token_budget: int = defaults.DEFAULT_CHUNK_TOKEN_BUDGET
    max_single_review_tokens: int = defaults.MAX_SINGLE_REVIEW_TOKENS
    max_single_review_files: int = defaults.MAX_SINGLE_REVIEW_FILES
    context_overhead_tokens: int = defaults.CONTEXT_OVERHEAD_TOKENS
    review_concurrency: int = defaults.DEFAULT_REVIEW_CONCURRENCY
    cross_chunk_similarity: float = defaults.CROSS_CHUNK_SIMILARITY_THRESHOLD


# Environment variable -> (section, key, type)
ENV_OVERRIDES: dict[str, tuple[str, str, type]] = {
    "REVIEW_CONTEXT_CHUNK_TOKEN_BUDGET": ("pr_chunking", "chunk_token_budget", int),
    "REVIEW_CONTEXT_MAX_EXAMPLES": ("aggregation", "max_examples", int),
    "REVIEW_CONTEXT_CONCURRENCY": ("pr_chunking", "review_concurrency", int),
}


@dataclass
class ReviewContextConfig:
    """Complete engine configuration."""

    chunking: ChunkingSettings = field(default_factory=ChunkingSettings)
    scoring: ScoringSettings = field(default_factory=ScoringSettings)
    aggregation: AggregationSettings = field(default_factory=AggregationSettings)
    pr_chunking: PRChunkingSettings = field(default_factory=PRChunkingSettings)
    cache_dir: Path | None = None

    def __post_init__(self) -> None:
        self.validate()

    @classmethod
    def load(cls, path: Path, apply_env: bool = True) -> ReviewContextConfig:
        """Load configuration from a YAML file.

        A missing file yields the defaults. Environment overrides are applied
        on top of the file contents unless ``apply_env`` is False.

        Args:
            path: Path to YAML configuration file
            apply_env: Whether to apply ``REVIEW_CONTEXT_*`` overrides

        Returns:
            ReviewContextConfig instance

        Raises:
            ConfigError: If the file cannot be parsed or holds invalid values
        """
        data: dict[str, Any] = {}
        if path.exists():
            try:
                with open(path) as f:
                    data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigError(f"Invalid YAML in {path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigError(f"Configuration root must be a mapping: {path}")

        if apply_env:
            data = cls._apply_env_overrides(data)

        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ReviewContextConfig:
        """Create config from dictionary.

        Args:
            data: Configuration dictionary

        Returns:
            ReviewContextConfig instance

        Raises:
            ConfigError: On unknown sections or keys
        """
        sections = {
            "chunking": ChunkingSettings,
            "scoring": ScoringSettings,
            "aggregation": AggregationSettings,
            "pr_chunking": PRChunkingSettings,
        }
        unknown = set(data) - set(sections) - {"cache_dir"}
        if unknown:
            raise ConfigError(
                f"Unknown configuration sections: {sorted(unknown)}",
                context={"sections": sorted(unknown)},
            )

        kwargs: dict[str, Any] = {}
        for name, section_cls in sections.items():
            section_data = data.get(name) or {}
            allowed = {f.name for f in fields(section_cls)}
            bad_keys = set(section_data) - allowed
            if bad_keys:
                raise ConfigError(
                    f"Unknown keys in '{name}': {sorted(bad_keys)}",
                    context={"section": name, "keys": sorted(bad_keys)},
                )
            kwargs[name] = section_cls(**section_data)

        cache_dir = data.get("cache_dir")
        return cls(**kwargs, cache_dir=Path(cache_dir) if cache_dir else None)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization.

        Returns:
            Dictionary representation
        """
        return {
            "chunking": asdict(self.chunking),
            "scoring": asdict(self.scoring),
            "aggregation": asdict(self.aggregation),
            "pr_chunking": asdict(self.pr_chunking),
            "cache_dir": str(self.cache_dir) if self.cache_dir else None,
        }

    def save(self, path: Path) -> None:
        """Save configuration to YAML file.

        Args:
            path: Path to save configuration
        """
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)

    def validate(self) -> None:
        """Reject budgets and caps that would make planning meaningless."""
        positive = {
            "chunking.max_chars": self.chunking.max_chars,
            "pr_chunking.chunk_token_budget": self.pr_chunking.chunk_token_budget,
            "pr_chunking.max_single_review_tokens": (
                self.pr_chunking.max_single_review_tokens
            ),
            "pr_chunking.review_concurrency": self.pr_chunking.review_concurrency,
            "aggregation.max_examples": self.aggregation.max_examples,
        }
        for key, value in positive.items():
            if value <= 0:
                raise ConfigError(
                    f"{key} must be positive, got {value}",
                    context={"key": key, "value": value},
                )
        if self.chunking.min_chars >= self.chunking.max_chars:
            raise ConfigError("chunking.min_chars must be smaller than max_chars")
        if not 0.0 < self.pr_chunking.cross_chunk_similarity <= 1.0:
            raise ConfigError("pr_chunking.cross_chunk_similarity must be in (0, 1]")

    @staticmethod
    def _apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
        merged = {
            key: dict(value) if isinstance(value, dict) else value
            for key, value in data.items()
        }
        for env_var, (section, key, cast) in ENV_OVERRIDES.items():
            raw = os.environ.get(env_var)
            if raw is None:
                continue
            try:
                value = cast(raw)
            except ValueError as e:
                raise ConfigError(f"Invalid value for {env_var}: {raw!r}") from e
            if not isinstance(merged.get(section), dict):
                merged[section] = {}
            merged[section][key] = value

        cache_dir = os.environ.get("REVIEW_CONTEXT_CACHE_DIR")
        if cache_dir:
            merged["cache_dir"] = cache_dir
        return merged
