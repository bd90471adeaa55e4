"""Tests for the typed exception hierarchy."""

from __future__ import annotations

import pytest

from review_context.core.exceptions import (
    ConfigError,
    EmbeddingError,
    ProcessingError,
    ReviewContextError,
    ReviewError,
    SearchError,
    ValidationError,
)


class TestExceptionHierarchy:
    """Verify the class hierarchy defined in core/exceptions.py."""

    @pytest.mark.parametrize(
        "exc_class",
        [ValidationError, ProcessingError, ReviewError, ConfigError],
    )
    def test_direct_subclasses_of_base(self, exc_class):
        err = exc_class("boom")
        assert isinstance(err, ReviewContextError)
        assert isinstance(err, Exception)

    def test_embedding_error_is_processing_error(self):
        assert isinstance(EmbeddingError("embed"), ProcessingError)

    def test_search_error_is_processing_error(self):
        assert isinstance(SearchError("search"), ProcessingError)

    def test_validation_error_is_not_processing_error(self):
        assert not isinstance(ValidationError("empty"), ProcessingError)


class TestExceptionContext:
    """Context payload carried by every error."""

    def test_context_defaults_to_empty_dict(self):
        err = ReviewContextError("message")
        assert err.context == {}
        assert str(err) == "message"

    def test_context_is_kept(self):
        err = SearchError("failed", {"file_path": "src/a.py"})
        assert err.context["file_path"] == "src/a.py"

    def test_cause_is_chained(self):
        with pytest.raises(ProcessingError) as exc_info:
            try:
                raise RuntimeError("backend down")
            except RuntimeError as e:
                raise ProcessingError(f"Reranking failed: {e}") from e

        assert "backend down" in str(exc_info.value)
        assert isinstance(exc_info.value.__cause__, RuntimeError)


def test_base_error_exported_from_package_root():
    import review_context

    assert review_context.ReviewContextError is ReviewContextError
