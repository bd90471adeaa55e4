"""Tests for recombining chunked review results."""

import pytest

from review_context.review.combiner import (
    CROSS_CHUNK_SUGGESTION,
    ChunkResultCombiner,
    combine_chunk_results,
    description_similarity,
    normalize_description,
)
from review_context.review.pr_models import Severity

SQL_CONCAT = "SQL query built by string concatenation"


def file_result(path: str, *descriptions: str) -> dict:
    return {
        "success": True,
        "filePath": path,
        "results": {
            "summary": "",
            "issues": [
                {"type": "bug", "severity": "high", "description": d}
                for d in descriptions
            ],
        },
    }


def chunk(chunk_id, *files, success=True) -> dict:
    return {"chunkId": chunk_id, "success": success, "results": list(files)}


@pytest.fixture
def combiner():
    return ChunkResultCombiner()


class TestCombine:
    def test_no_chunks(self):
        result = combine_chunk_results([], 0)

        assert result.success is True
        assert result.results == []
        assert result.cross_chunk_issues == []
        assert result.pr_context == {
            "totalFiles": 0,
            "chunkedReview": True,
            "chunks": 0,
        }
        assert result.combined_summary == (
            "Chunked PR review completed: 0/0 chunks processed successfully. "
            "Total issues found: 0. Review performed in parallel chunks to "
            "optimize token usage."
        )

    def test_results_are_tagged_with_chunk_info(self, combiner):
        result = combiner.combine(
            [
                chunk(1, file_result("src/a.js", "Issue A")),
                chunk(2, file_result("src/b.js"), file_result("src/c.js")),
            ],
            3,
        )

        assert [r["filePath"] for r in result.results] == [
            "src/a.js",
            "src/b.js",
            "src/c.js",
        ]
        assert result.results[0]["chunkInfo"] == {"chunkNumber": 1, "totalChunks": 2}
        assert result.results[2]["chunkInfo"] == {"chunkNumber": 2, "totalChunks": 2}
        assert result.pr_context["totalFiles"] == 3

    def test_failed_chunks_contribute_nothing(self, combiner):
        result = combiner.combine(
            [
                chunk(1, file_result("src/a.js", "Missing null check in handler")),
                chunk(
                    2,
                    file_result("src/b.js", "Missing null check in handler"),
                    success=False,
                ),
                {"chunkId": 3, "success": False, "results": None},
            ],
            3,
        )

        assert [r["filePath"] for r in result.results] == ["src/a.js"]
        assert result.cross_chunk_issues == []
        assert result.combined_summary.startswith(
            "Chunked PR review completed: 1/3 chunks processed successfully. "
            "Total issues found: 1."
        )

    def test_to_dict(self, combiner):
        data = combiner.combine(
            [
                chunk(1, file_result("src/a.js", "Missing null check in handler")),
                chunk(2, file_result("src/b.js", "Missing null check in handler")),
            ],
            2,
        ).to_dict()

        assert set(data) == {
            "success",
            "results",
            "crossChunkIssues",
            "combinedSummary",
            "prContext",
        }
        assert data["crossChunkIssues"][0] == {
            "type": "pattern",
            "severity": "medium",
            "description": (
                "Similar issue pattern detected across 2 chunks: "
                "Missing null check in handler"
            ),
            "affectedFiles": ["src/a.js", "src/b.js"],
            "suggestion": CROSS_CHUNK_SUGGESTION,
        }


class TestCrossChunkDetection:
    def test_same_issue_in_two_chunks(self, combiner):
        issues = combiner.detect_cross_chunk_issues(
            [
                chunk(1, file_result("src/a.js", "Missing null check in handler")),
                chunk(2, file_result("src/b.js", "Missing null check in handler.")),
            ]
        )

        assert len(issues) == 1
        issue = issues[0]
        assert issue.affected_files == ["src/a.js", "src/b.js"]
        assert issue.chunk_ids == [1, 2]
        assert issue.severity == Severity.MEDIUM
        assert issue.type == "pattern"

    def test_unrelated_issues_are_not_grouped(self, combiner):
        issues = combiner.detect_cross_chunk_issues(
            [
                chunk(1, file_result("src/a.js", "Missing null check in handler")),
                chunk(2, file_result("src/b.js", "Unused variable in loop")),
            ]
        )
        assert issues == []

    def test_repeats_within_one_chunk_are_not_cross_chunk(self, combiner):
        issues = combiner.detect_cross_chunk_issues(
            [
                chunk(
                    1,
                    file_result("src/a.js", "Missing null check in handler"),
                    file_result("src/b.js", "Missing null check in handler"),
                ),
                chunk(2, file_result("src/c.js", "Unused import")),
            ]
        )
        assert issues == []

    def test_missing_chunk_id_uses_position(self, combiner):
        issues = combiner.detect_cross_chunk_issues(
            [
                {"success": True, "results": [file_result("a.js", "Hardcoded secret")]},
                {"success": True, "results": [file_result("b.js", "Hardcoded secret")]},
            ]
        )
        assert issues[0].chunk_ids == [1, 2]

    def test_three_chunks_one_pattern(self, combiner):
        issues = combiner.detect_cross_chunk_issues(
            [
                chunk(1, file_result("a.js", SQL_CONCAT)),
                chunk(2, file_result("b.js", f"{SQL_CONCAT}!")),
                chunk(3, file_result("c.js", SQL_CONCAT.lower())),
            ]
        )

        assert len(issues) == 1
        assert issues[0].description.startswith(
            "Similar issue pattern detected across 3 chunks"
        )
        assert issues[0].affected_files == ["a.js", "b.js", "c.js"]

    def test_issues_without_description_are_ignored(self, combiner):
        results = [
            chunk(1, {"filePath": "a.js", "results": {"issues": [{"type": "bug"}]}}),
            chunk(2, {"filePath": "b.js", "results": {"issues": [{"type": "bug"}]}}),
        ]
        assert combiner.detect_cross_chunk_issues(results) == []

    def test_pair_matching_a_later_group_member_is_reported(self, combiner):
        issues = combiner.detect_cross_chunk_issues(
            [
                chunk(
                    1,
                    file_result(
                        "src/a.js", "missing null check in the request handler"
                    ),
                    file_result(
                        "src/a2.js", "missing null check in the request handlers here"
                    ),
                ),
                chunk(
                    2,
                    file_result(
                        "src/b.js", "missing null checks in request handlers here now"
                    ),
                ),
            ]
        )

        assert len(issues) == 1
        assert {"src/a2.js", "src/b.js"} <= set(issues[0].affected_files)
        assert issues[0].chunk_ids == [1, 2]

    def test_groups_are_transitive(self, combiner, monkeypatch):
        scores = {
            frozenset({"first", "second"}): 0.9,
            frozenset({"second", "third"}): 0.9,
            frozenset({"first", "third"}): 0.1,
        }
        monkeypatch.setattr(
            "review_context.review.combiner.description_similarity",
            lambda a, b: scores[frozenset({a, b})],
        )

        issues = combiner.detect_cross_chunk_issues(
            [
                chunk(1, file_result("a.js", "first")),
                chunk(2, file_result("b.js", "second")),
                chunk(3, file_result("c.js", "third")),
            ]
        )

        assert len(issues) == 1
        assert issues[0].chunk_ids == [1, 2, 3]
        assert issues[0].affected_files == ["a.js", "b.js", "c.js"]
        assert issues[0].description.endswith(": first")

    def test_similarity_must_exceed_threshold(self, monkeypatch):
        monkeypatch.setattr(
            "review_context.review.combiner.description_similarity",
            lambda a, b: 0.85,
        )
        issues = ChunkResultCombiner(
            similarity_threshold=0.85
        ).detect_cross_chunk_issues(
            [
                chunk(1, file_result("a.js", "first")),
                chunk(2, file_result("b.js", "second")),
            ]
        )
        assert issues == []


    def test_threshold_is_configurable(self):
        strict = ChunkResultCombiner(similarity_threshold=0.99)
        issues = strict.detect_cross_chunk_issues(
            [
                chunk(1, file_result("a.js", "Missing null check in handler")),
                chunk(2, file_result("b.js", "Missing null checks in handlers")),
            ]
        )
        assert issues == []


class TestDescriptionSimilarity:
    def test_normalize(self):
        assert normalize_description("  Missing, NULL check!\n") == "missing null check"
        assert normalize_description(None) == ""

    def test_similarity_bounds(self):
        assert description_similarity("Same text", "same text.") == 1.0
        assert description_similarity("", "anything") == 0.0
        assert 0.0 <= description_similarity("abc", "xyz") < 0.5
