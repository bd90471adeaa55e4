"""Core models, collaborators and primitives for the review context engine."""

from .concurrency import gather_with_defaults, run_in_windows
from .embeddings import (
    EmbeddingProvider,
    SentenceTransformerEmbedder,
    TitleEmbeddingCache,
)
from .exceptions import (
    ConfigError,
    EmbeddingError,
    ProcessingError,
    ReviewContextError,
    ReviewError,
    SearchError,
    ValidationError,
)
from .models import (
    Area,
    CandidateKind,
    CustomDocumentChunk,
    DocumentChunk,
    InferredContext,
    PRFileChange,
    Provenance,
    ScoredCandidate,
)

__all__ = [
    "Area",
    "CandidateKind",
    "ConfigError",
    "CustomDocumentChunk",
    "DocumentChunk",
    "EmbeddingError",
    "EmbeddingProvider",
    "InferredContext",
    "PRFileChange",
    "ProcessingError",
    "Provenance",
    "ReviewContextError",
    "ReviewError",
    "ScoredCandidate",
    "SearchError",
    "SentenceTransformerEmbedder",
    "TitleEmbeddingCache",
    "ValidationError",
    "gather_with_defaults",
    "run_in_windows",
]
