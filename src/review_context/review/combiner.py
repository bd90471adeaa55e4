"""Recombination of chunked review results into one changeset result.

Chunk results are mappings shaped like::

    {
        "chunkId": 1,
        "success": True,
        "results": [
            {"filePath": "src/a.js", "results": {"issues": [{...}, ...]}},
        ],
    }

Issues raised in different chunks with near-identical descriptions are
reported once more as a ``pattern`` issue so a reviewer sees that the same
problem recurs across the changeset.
"""

import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from difflib import SequenceMatcher
from typing import Any

from loguru import logger

from ..config.defaults import CROSS_CHUNK_SIMILARITY_THRESHOLD
from .pr_models import CombinedReviewResult, CrossChunkIssue, Severity

CROSS_CHUNK_SUGGESTION = (
    "This issue appears in multiple parts of the PR. Consider addressing it "
    "consistently across all affected files."
)

_PUNCTUATION = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")


def normalize_description(text: str | None) -> str:
    """Lowercase, strip punctuation and collapse whitespace."""
    if not text:
        return ""
    text = _PUNCTUATION.sub(" ", str(text).lower())
    return _WHITESPACE.sub(" ", text).strip()


def description_similarity(a: str | None, b: str | None) -> float:
    """Similarity ratio in [0, 1] between two normalized issue descriptions."""
    left = normalize_description(a)
    right = normalize_description(b)
    if not left or not right:
        return 0.0
    if left == right:
        return 1.0
    return SequenceMatcher(None, left, right).ratio()


@dataclass
class _LocatedIssue:
    issue: Mapping[str, Any]
    chunk_id: int | str
    file_path: str

    @property
    def description(self) -> str:
        return str(self.issue.get("description") or "")


def _file_issues(file_result: Mapping[str, Any]) -> list[Mapping[str, Any]]:
    results = file_result.get("results")
    if not isinstance(results, Mapping):
        return []
    issues = results.get("issues") or []
    return [issue for issue in issues if isinstance(issue, Mapping)]


def _contributing_files(chunk_result: Mapping[str, Any]) -> list[Mapping[str, Any]]:
    """Per-file results of a chunk, empty for failed or result-less chunks."""
    if not chunk_result.get("success"):
        return []
    results = chunk_result.get("results")
    if not results:
        return []
    return [r for r in results if isinstance(r, Mapping)]


class ChunkResultCombiner:
    """Merges chunk-level review results and finds cross-chunk patterns."""

    def __init__(
        self, similarity_threshold: float = CROSS_CHUNK_SIMILARITY_THRESHOLD
    ) -> None:
        self.similarity_threshold = similarity_threshold

    def combine(
        self, chunk_results: Sequence[Mapping[str, Any]], total_files: int
    ) -> CombinedReviewResult:
        """Combine chunk results into one result.

        Args:
            chunk_results: One result mapping per chunk, in chunk order
            total_files: Number of files in the whole changeset

        Returns:
            Combined result; ``success`` is True even when some chunks failed
        """
        total_chunks = len(chunk_results)
        results: list[dict[str, Any]] = []

        for chunk_number, chunk_result in enumerate(chunk_results, start=1):
            for file_result in _contributing_files(chunk_result):
                tagged = dict(file_result)
                tagged["chunkInfo"] = {
                    "chunkNumber": chunk_number,
                    "totalChunks": total_chunks,
                }
                results.append(tagged)

        cross_chunk_issues = self.detect_cross_chunk_issues(chunk_results)
        combined = CombinedReviewResult(
            success=True,
            results=results,
            cross_chunk_issues=cross_chunk_issues,
            combined_summary=self.create_summary(chunk_results),
            pr_context={
                "totalFiles": total_files,
                "chunkedReview": True,
                "chunks": total_chunks,
            },
        )
        logger.info(
            f"Combined {total_chunks} chunk results: {len(results)} file results, "
            f"{len(cross_chunk_issues)} cross-chunk issues"
        )
        return combined

    def create_summary(self, chunk_results: Sequence[Mapping[str, Any]]) -> str:
        total_issues = sum(
            len(_file_issues(file_result))
            for chunk_result in chunk_results
            for file_result in _contributing_files(chunk_result)
        )
        successful = sum(1 for c in chunk_results if c.get("success"))
        return (
            f"Chunked PR review completed: {successful}/{len(chunk_results)} "
            f"chunks processed successfully. Total issues found: {total_issues}. "
            "Review performed in parallel chunks to optimize token usage."
        )

    def detect_cross_chunk_issues(
        self, chunk_results: Sequence[Mapping[str, Any]]
    ) -> list[CrossChunkIssue]:
        """Find issues whose descriptions recur in at least two chunks.

        Every pair of issues from different chunks is compared; pairs whose
        similarity exceeds the threshold are merged into one group, so groups
        are transitive. Each group is reported once, in order of its earliest
        issue. Issues are never paired with others from their own chunk.
        """
        located: list[_LocatedIssue] = []
        for position, chunk_result in enumerate(chunk_results, start=1):
            chunk_id = chunk_result.get("chunkId")
            if chunk_id is None:
                chunk_id = position
            for file_result in _contributing_files(chunk_result):
                file_path = str(file_result.get("filePath") or "")
                located.extend(
                    _LocatedIssue(issue, chunk_id, file_path)
                    for issue in _file_issues(file_result)
                    if normalize_description(issue.get("description"))
                )

        parent = list(range(len(located)))

        def find(index: int) -> int:
            while parent[index] != index:
                parent[index] = parent[parent[index]]
                index = parent[index]
            return index

        for i, first in enumerate(located):
            for j in range(i + 1, len(located)):
                second = located[j]
                if first.chunk_id == second.chunk_id:
                    continue
                similarity = description_similarity(
                    first.description, second.description
                )
                if similarity > self.similarity_threshold:
                    root_i, root_j = find(i), find(j)
                    if root_i != root_j:
                        parent[max(root_i, root_j)] = min(root_i, root_j)

        groups: dict[int, list[_LocatedIssue]] = {}
        for index, item in enumerate(located):
            groups.setdefault(find(index), []).append(item)

        issues = []
        for group in groups.values():
            chunk_ids = list(dict.fromkeys(item.chunk_id for item in group))
            if len(chunk_ids) < 2:
                continue
            affected_files = list(
                dict.fromkeys(item.file_path for item in group if item.file_path)
            )
            issues.append(
                CrossChunkIssue(
                    description=(
                        "Similar issue pattern detected across "
                        f"{len(chunk_ids)} chunks: {group[0].description}"
                    ),
                    affected_files=affected_files,
                    suggestion=CROSS_CHUNK_SUGGESTION,
                    severity=Severity.MEDIUM,
                    chunk_ids=chunk_ids,
                )
            )

        if issues:
            logger.debug(f"Detected {len(issues)} cross-chunk issue patterns")
        return issues


def combine_chunk_results(
    chunk_results: Sequence[Mapping[str, Any]], total_files: int
) -> CombinedReviewResult:
    """Module-level shortcut for :meth:`ChunkResultCombiner.combine`."""
    return ChunkResultCombiner().combine(chunk_results, total_files)
