"""Typed exception hierarchy for review-context-engine.

Hierarchy
---------
ReviewContextError (base)
├── ValidationError        – empty input (document content, query text)
├── ProcessingError        – wraps an underlying failure, cause appended
│   ├── EmbeddingError     – embedding collaborator failures
│   └── SearchError        – retrieval / reranking failures
├── ReviewError            – LLM completion failures, fatal for a review run
└── ConfigError            – configuration loading / validation errors

Validation errors are raised synchronously and never retried. Soft failures
(a single retrieval branch, a single file's context, a single embedding entry)
never surface as exceptions: they are logged and replaced with defaults by
:func:`review_context.core.concurrency.gather_with_defaults`.
"""

from typing import Any


class ReviewContextError(Exception):
    """Base exception for review-context-engine."""

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.context = context or {}


# ── Input validation ────────────────────────────────────────────────────


class ValidationError(ReviewContextError):
    """Input failed validation (e.g. empty document content or empty query)."""

    pass


# ── Processing layer ────────────────────────────────────────────────────


class ProcessingError(ReviewContextError):
    """An operation failed because of an underlying error.

    Callers should construct it with the original cause's message appended
    and chain the cause with ``raise ... from e``.
    """

    pass


class EmbeddingError(ProcessingError):
    """Embedding generation failed."""

    pass


class SearchError(ProcessingError):
    """Retrieval or reranking failed."""

    pass


# ── Review layer ────────────────────────────────────────────────────────


class ReviewError(ReviewContextError):
    """LLM completion or changeset-wide review setup failed."""

    pass


# ── Configuration ───────────────────────────────────────────────────────


class ConfigError(ReviewContextError):
    """Configuration could not be loaded or is invalid."""

    pass
