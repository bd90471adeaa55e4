"""Tests for shared candidate and chunk models."""

import pytest

from review_context.core.models import (
    Area,
    CandidateKind,
    CustomDocumentChunk,
    DocumentChunk,
    InferredContext,
    PRFileChange,
    ScoredCandidate,
)


class TestScoredCandidate:
    def test_similarity_is_clamped_and_base_kept(self):
        candidate = ScoredCandidate(
            kind=CandidateKind.CODE_EXAMPLE, path="a.py", content="", similarity=1.3
        )
        assert candidate.similarity == 1.0
        assert candidate.base_similarity == 1.3

    def test_rescore_marks_reranked(self):
        candidate = ScoredCandidate(
            kind=CandidateKind.CUSTOM_DOCUMENT,
            path="Policy",
            content="x",
            similarity=0.4,
            id="policy-chunk-0",
        )
        candidate.rescore(-0.5)
        assert candidate.similarity == 0.0
        assert candidate.reranked is True
        assert candidate.base_similarity == 0.4

    def test_keys_per_kind(self):
        code = ScoredCandidate(kind=CandidateKind.CODE_EXAMPLE, path="a.py", content="")
        guideline = ScoredCandidate.from_search_result(
            {
                "path": "docs/style.md",
                "content": "Use snake_case",
                "similarity": 0.7,
                "type": "documentation-chunk",
                "heading_text": "Naming",
            }
        )
        comment = ScoredCandidate.from_search_result(
            {"id": 42, "path": "a.py", "content": "nit", "relevanceScore": 0.8},
            kind=CandidateKind.PR_COMMENT,
        )

        assert code.key == "a.py"
        assert guideline.key == "docs/style.md-Naming"
        assert comment.key == "42"
        assert comment.similarity == 0.8

    def test_from_search_result_unknown_type_defaults_to_code(self):
        candidate = ScoredCandidate.from_search_result(
            {"path": "a.py", "content": "x", "similarity": 0.5, "type": "weird"}
        )
        assert candidate.kind == CandidateKind.CODE_EXAMPLE

    def test_to_dict_for_comment(self):
        comment = ScoredCandidate(
            kind=CandidateKind.PR_COMMENT,
            path="a.py",
            content="nit",
            similarity=0.6,
            id="7",
        )
        data = comment.to_dict()
        assert data["type"] == "pr-comment"
        assert data["relevanceScore"] == 0.6
        assert data["id"] == "7"


class TestInferredContext:
    def test_is_known(self):
        assert not InferredContext().is_known
        assert InferredContext(area=Area.BACKEND.value).is_known

    def test_shares_tech_case_insensitive(self):
        a = InferredContext(dominant_tech=["React", "TypeScript"])
        b = InferredContext(dominant_tech=["react"])
        c = InferredContext(dominant_tech=["django"])
        assert a.shares_tech_with(b)
        assert not a.shares_tech_with(c)


class TestDocumentChunks:
    def test_document_chunk_dict_round_trip(self):
        chunk = DocumentChunk(
            id="guide-chunk-1",
            content="Body",
            document_title="Guide",
            chunk_index=1,
            total_chunks=3,
            original_title="guide",
            chunk_hash="abc",
        )
        data = chunk.to_dict()
        assert data["metadata"]["section_start"] is False
        assert DocumentChunk.from_dict(data) == chunk

    def test_custom_chunk_to_candidate(self):
        chunk = CustomDocumentChunk(
            chunk=DocumentChunk(
                id="guide-chunk-0",
                content="Body",
                document_title="Guide",
                chunk_index=0,
                total_chunks=1,
                original_title="Guide",
                chunk_hash="abc",
            ),
            embedding=[1.0],
            project_path="/p",
            created_at="now",
        )
        candidate = chunk.to_candidate(0.9)
        assert candidate.kind == CandidateKind.CUSTOM_DOCUMENT
        assert candidate.key == "guide-chunk-0"
        assert candidate.document_title == "Guide"
        assert chunk.to_dict()["type"] == "custom-document-chunk"


class TestPRFileChange:
    def test_from_camel_case_dict(self):
        change = PRFileChange.from_dict(
            {"filePath": "src/a.js", "diffContent": "+x", "content": "x"}
        )
        assert change.file_path == "src/a.js"
        assert change.diff_content == "+x"
        assert change.full_content == "x"
        assert change.review_text == "x"

    def test_review_text_falls_back_to_diff(self):
        change = PRFileChange.from_dict({"file_path": "a.py", "diff_content": "+y"})
        assert change.full_content is None
        assert change.review_text == "+y"

    @pytest.mark.parametrize(
        "path,expected",
        [
            ("src/button.test.js", True),
            ("tests/test_models.py", True),
            ("src\\api\\handler_spec.rb", True),
            ("src/latest.js", False),
        ],
    )
    def test_is_test(self, path, expected):
        assert PRFileChange(path).is_test is expected
