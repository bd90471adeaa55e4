"""Merging of per-file context into one deduplicated context for a changeset."""

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from ..config.settings import AggregationSettings
from ..core.models import ScoredCandidate
from .file_context import FileContext, normalize_path
from .scorer import sort_by_score


@dataclass
class AggregatedContext:
    """Deduplicated, capped context pools shared by every file of a change."""

    code_examples: list[ScoredCandidate] = field(default_factory=list)
    guidelines: list[ScoredCandidate] = field(default_factory=list)
    pr_comments: list[ScoredCandidate] = field(default_factory=list)
    custom_doc_chunks: list[ScoredCandidate] = field(default_factory=list)

    def counts(self) -> dict[str, int]:
        return {
            "codeExamples": len(self.code_examples),
            "guidelines": len(self.guidelines),
            "prComments": len(self.pr_comments),
            "customDocChunks": len(self.custom_doc_chunks),
        }

    def with_max_examples(self, max_examples: int) -> "AggregatedContext":
        """Copy with the code-example pool cut down to ``max_examples``."""
        return AggregatedContext(
            code_examples=self.code_examples[:max_examples],
            guidelines=list(self.guidelines),
            pr_comments=list(self.pr_comments),
            custom_doc_chunks=list(self.custom_doc_chunks),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "codeExamples": [c.to_dict() for c in self.code_examples],
            "guidelines": [c.to_dict() for c in self.guidelines],
            "prComments": [c.to_dict() for c in self.pr_comments],
            "customDocChunks": [c.to_dict() for c in self.custom_doc_chunks],
        }


def merge_pool(
    candidates: Iterable[ScoredCandidate], cap: int | None = None
) -> list[ScoredCandidate]:
    """Keep the highest-scoring candidate per key, sorted and capped.

    On a key collision the later candidate replaces the kept one only when its
    score is strictly greater. Candidates without a key are dropped.
    """
    best: dict[str, ScoredCandidate] = {}
    for candidate in candidates:
        key = candidate.key
        if not key:
            continue
        current = best.get(key)
        if current is None or candidate.similarity > current.similarity:
            best[key] = candidate

    merged = sort_by_score(list(best.values()))
    return merged if cap is None else merged[:cap]


class ContextAggregator:
    """Merges the context gathered for each file of a multi-file change."""

    def __init__(self, settings: AggregationSettings | None = None) -> None:
        self.settings = settings or AggregationSettings()

    def aggregate(
        self,
        file_contexts: Iterable[FileContext | None],
        *,
        max_examples: int | None = None,
        reviewed_paths: Iterable[str] = (),
    ) -> AggregatedContext:
        """Merge per-file pools into one deduplicated context.

        Args:
            file_contexts: Context per reviewed file (None entries are skipped)
            max_examples: Code-example cap (defaults to the configured value)
            reviewed_paths: Paths under review; never offered as code examples

        Returns:
            Aggregated context with every pool sorted by score and capped
        """
        max_examples = (
            self.settings.max_examples if max_examples is None else max_examples
        )
        excluded = {normalize_path(p) for p in reviewed_paths}

        code_examples: list[ScoredCandidate] = []
        guidelines: list[ScoredCandidate] = []
        pr_comments: list[ScoredCandidate] = []
        custom_chunks: list[ScoredCandidate] = []
        merged_files = 0

        for file_context in file_contexts:
            if file_context is None:
                continue
            merged_files += 1
            own_path = normalize_path(file_context.file_path)
            code_examples.extend(
                example
                for example in file_context.code_examples
                if not example.is_documentation
                and normalize_path(example.path) != own_path
                and normalize_path(example.path) not in excluded
            )
            guidelines.extend(file_context.guidelines)
            pr_comments.extend(file_context.pr_comments)
            custom_chunks.extend(file_context.custom_doc_chunks)

        aggregated = AggregatedContext(
            code_examples=merge_pool(code_examples, max_examples),
            guidelines=merge_pool(guidelines, self.settings.max_guidelines),
            pr_comments=merge_pool(pr_comments, self.settings.max_comments),
            custom_doc_chunks=merge_pool(
                custom_chunks, self.settings.max_custom_chunks
            ),
        )
        logger.debug(
            f"Aggregated context from {merged_files} files: {aggregated.counts()}"
        )
        return aggregated
