"""Data models for chunked pull request review.

Design Philosophy:
    - Planning types (``PlannedFile``, ``PRChunk``, ``ChunkingDecision``) are
      plain dataclasses with ``to_dict`` methods emitting the camelCase shapes
      the surrounding pipeline exchanges
    - Per-file review results stay as mappings (they come straight from the
      LLM); only the combined envelope is typed
"""

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from ..core.models import PRFileChange


class Severity(StrEnum):
    """Severity level of a review issue."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFO = "info"


@dataclass(frozen=True)
class ChunkingDecision:
    """Token estimate for a changeset and whether it must be split.

    Attributes:
        should_chunk: True when the changeset is too large for one review
        estimated_tokens: Diff + full-content tokens + fixed context overhead
        diff_tokens: Estimated tokens of all diffs
        full_content_tokens: Estimated tokens of all full file contents
        recommended_chunks: Number of chunks at the target chunk budget
        file_count: Number of changed files
    """

    should_chunk: bool
    estimated_tokens: int
    diff_tokens: int
    full_content_tokens: int
    recommended_chunks: int
    file_count: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "shouldChunk": self.should_chunk,
            "estimatedTokens": self.estimated_tokens,
            "diffTokens": self.diff_tokens,
            "fullContentTokens": self.full_content_tokens,
            "recommendedChunks": self.recommended_chunks,
            "fileCount": self.file_count,
        }


@dataclass(frozen=True)
class PlannedFile:
    """A changed file with the metrics used to place it in a chunk."""

    change: PRFileChange
    change_size: int
    file_complexity: float
    estimated_diff_tokens: int
    estimated_full_tokens: int

    @property
    def estimated_tokens(self) -> int:
        return self.estimated_diff_tokens + self.estimated_full_tokens

    @property
    def file_path(self) -> str:
        return self.change.file_path

    @property
    def is_test(self) -> bool:
        return self.change.is_test

    @property
    def diff_content(self) -> str:
        return self.change.diff_content

    @property
    def full_content(self) -> str | None:
        return self.change.full_content

    def to_dict(self) -> dict[str, Any]:
        return {
            "filePath": self.file_path,
            "diffContent": self.diff_content,
            "fullContent": self.full_content,
            "changeSize": self.change_size,
        }


@dataclass
class PRChunk:
    """A token-budgeted group of changed files reviewed together."""

    chunk_id: int
    files: list[PlannedFile] = field(default_factory=list)
    total_tokens: int = 0

    @property
    def file_paths(self) -> list[str]:
        return [planned.file_path for planned in self.files]

    @property
    def changes(self) -> list[PRFileChange]:
        return [planned.change for planned in self.files]

    def to_dict(self) -> dict[str, Any]:
        return {
            "chunkId": self.chunk_id,
            "files": [planned.to_dict() for planned in self.files],
            "totalTokens": self.total_tokens,
        }


@dataclass(frozen=True)
class CrossChunkIssue:
    """A review issue that recurs in files reviewed in different chunks."""

    description: str
    affected_files: list[str]
    suggestion: str
    severity: Severity = Severity.MEDIUM
    chunk_ids: list[int | str] = field(default_factory=list)
    type: str = "pattern"

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "severity": self.severity.value,
            "description": self.description,
            "affectedFiles": list(self.affected_files),
            "suggestion": self.suggestion,
        }


@dataclass
class CombinedReviewResult:
    """Result of a chunked review, merged back into one changeset result.

    Attributes:
        success: False only when the review could not run at all
        results: Per-file results tagged with ``chunkInfo``
        cross_chunk_issues: Issues recurring across chunks
        combined_summary: Human-readable summary
        pr_context: ``{totalFiles, chunkedReview, chunks}``
        error: Failure message when ``success`` is False
    """

    success: bool = True
    results: list[dict[str, Any]] = field(default_factory=list)
    cross_chunk_issues: list[CrossChunkIssue] = field(default_factory=list)
    combined_summary: str = ""
    pr_context: dict[str, Any] = field(default_factory=dict)
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "success": self.success,
            "results": list(self.results),
            "crossChunkIssues": [issue.to_dict() for issue in self.cross_chunk_issues],
            "combinedSummary": self.combined_summary,
            "prContext": dict(self.pr_context),
        }
        if self.error is not None:
            data["error"] = self.error
        return data
