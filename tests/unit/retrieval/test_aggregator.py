"""Tests for merging per-file context into one changeset context."""

import pytest

from review_context.config.settings import AggregationSettings
from review_context.core.models import CandidateKind, Provenance, ScoredCandidate
from review_context.retrieval.aggregator import (
    AggregatedContext,
    ContextAggregator,
    merge_pool,
)
from review_context.retrieval.file_context import FileContext


def example(path: str, similarity: float, **kwargs) -> ScoredCandidate:
    return ScoredCandidate(
        kind=CandidateKind.CODE_EXAMPLE,
        path=path,
        content=f"// {path}",
        similarity=similarity,
        **kwargs,
    )


def comment(comment_id: str, similarity: float) -> ScoredCandidate:
    return ScoredCandidate(
        kind=CandidateKind.PR_COMMENT,
        path="src/a.js",
        content="nit",
        similarity=similarity,
        id=comment_id,
    )


def guideline(path: str, heading: str, similarity: float) -> ScoredCandidate:
    return ScoredCandidate(
        kind=CandidateKind.GUIDELINE,
        path=path,
        content="rule",
        similarity=similarity,
        provenance=Provenance(heading_text=heading),
    )


@pytest.fixture
def aggregator():
    return ContextAggregator()


class TestMergePool:
    def test_keeps_highest_score_per_key(self):
        merged = merge_pool([example("src/x.js", 0.7), example("src/x.js", 0.9)])
        assert len(merged) == 1
        assert merged[0].similarity == pytest.approx(0.9)

    def test_equal_score_keeps_first_seen(self):
        first = example("src/x.js", 0.5)
        second = example("src/x.js", 0.5)
        assert merge_pool([first, second])[0] is first

    def test_drops_candidates_without_key(self):
        assert merge_pool([example("", 0.9), comment(None, 0.9)]) == []

    def test_sorted_and_capped(self):
        merged = merge_pool(
            [example("a", 0.2), example("b", 0.8), example("c", 0.5)], cap=2
        )
        assert [c.path for c in merged] == ["b", "c"]


class TestAggregate:
    def test_same_example_from_two_files_keeps_best(self, aggregator):
        contexts = [
            FileContext(file_path="src/a.js", code_examples=[example("src/x.js", 0.7)]),
            FileContext(file_path="src/b.js", code_examples=[example("src/x.js", 0.9)]),
        ]

        result = aggregator.aggregate(contexts)

        assert len(result.code_examples) == 1
        assert result.code_examples[0].similarity == pytest.approx(0.9)

    def test_reviewed_files_and_docs_are_not_examples(self, aggregator):
        contexts = [
            FileContext(
                file_path="src/a.js",
                code_examples=[
                    example("./src/a.js", 0.99),
                    example("src/b.js", 0.95),
                    example("docs/guide.md", 0.9, is_documentation=True),
                    example("src/c.js", 0.6),
                ],
            )
        ]

        result = aggregator.aggregate(contexts, reviewed_paths=["src/a.js", "src/b.js"])

        assert [c.path for c in result.code_examples] == ["src/c.js"]

    def test_pools_are_deduplicated_by_their_keys(self, aggregator):
        contexts = [
            FileContext(
                file_path="src/a.js",
                pr_comments=[comment("1", 0.4), comment("2", 0.6)],
                guidelines=[guideline("docs/api.md", "Errors", 0.5)],
            ),
            FileContext(
                file_path="src/b.js",
                pr_comments=[comment("1", 0.8)],
                guidelines=[
                    guideline("docs/api.md", "Errors", 0.3),
                    guideline("docs/api.md", "Naming", 0.4),
                ],
            ),
        ]

        result = aggregator.aggregate(contexts)

        assert [(c.id, c.similarity) for c in result.pr_comments] == [
            ("1", pytest.approx(0.8)),
            ("2", pytest.approx(0.6)),
        ]
        assert [g.provenance.heading_text for g in result.guidelines] == [
            "Errors",
            "Naming",
        ]
        assert result.guidelines[0].similarity == pytest.approx(0.5)

    def test_none_contexts_are_skipped(self, aggregator):
        result = aggregator.aggregate(
            [None, FileContext(file_path="a.js", pr_comments=[comment("1", 0.5)])]
        )
        assert result.counts()["prComments"] == 1

    def test_caps(self):
        aggregator = ContextAggregator(
            AggregationSettings(max_examples=10, max_comments=2, max_custom_chunks=1)
        )
        contexts = [
            FileContext(
                file_path="src/a.js",
                code_examples=[example(f"src/e{i}.js", i / 10) for i in range(5)],
                pr_comments=[comment(str(i), i / 10) for i in range(5)],
                custom_doc_chunks=[
                    ScoredCandidate(
                        kind=CandidateKind.CUSTOM_DOCUMENT,
                        path="Policy",
                        content="x",
                        similarity=0.3 + i / 10,
                        id=f"policy_chunk_{i}",
                    )
                    for i in range(3)
                ],
            )
        ]

        result = aggregator.aggregate(contexts, max_examples=3)

        assert [c.path for c in result.code_examples] == [
            "src/e4.js",
            "src/e3.js",
            "src/e2.js",
        ]
        assert [c.id for c in result.pr_comments] == ["4", "3"]
        assert [c.id for c in result.custom_doc_chunks] == ["policy_chunk_2"]

    def test_empty_input(self, aggregator):
        result = aggregator.aggregate([])
        assert result.counts() == {
            "codeExamples": 0,
            "guidelines": 0,
            "prComments": 0,
            "customDocChunks": 0,
        }


def test_with_max_examples_copies_pools():
    context = AggregatedContext(
        code_examples=[example(f"e{i}", 0.5) for i in range(5)],
        pr_comments=[comment("1", 0.5)],
    )
    trimmed = context.with_max_examples(2)

    assert len(trimmed.code_examples) == 2
    assert len(context.code_examples) == 5
    assert trimmed.pr_comments == context.pr_comments
    assert trimmed.pr_comments is not context.pr_comments
    assert set(context.to_dict()) == {
        "codeExamples",
        "guidelines",
        "prComments",
        "customDocChunks",
    }
