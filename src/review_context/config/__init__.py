"""Configuration for the review context engine."""

from .settings import (
    AggregationSettings,
    ChunkingSettings,
    PRChunkingSettings,
    ReviewContextConfig,
    ScoringSettings,
)

__all__ = [
    "AggregationSettings",
    "ChunkingSettings",
    "PRChunkingSettings",
    "ReviewContextConfig",
    "ScoringSettings",
]
