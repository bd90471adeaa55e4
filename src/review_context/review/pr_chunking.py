"""Token estimation and partitioning of large changesets.

A changeset is reviewed in one request unless its estimated prompt size or
file count is too large. Large changesets are split into chunks that each fit
a token budget; files sharing a directory stay adjacent so related changes are
reviewed together, and no file is ever split across chunks.

Token counts are a heuristic of 3 characters per token. Every review prompt
also carries retrieved guidelines, examples and instructions, accounted for as
a fixed ``CONTEXT_OVERHEAD_TOKENS`` per changeset.
"""

import math
import posixpath
from collections.abc import Iterable, Mapping
from typing import Any

from loguru import logger

from ..config.defaults import CHARS_PER_TOKEN
from ..config.settings import PRChunkingSettings
from ..core.models import PRFileChange
from .pr_models import ChunkingDecision, PlannedFile, PRChunk

# Path hint -> complexity points
PATH_COMPLEXITY_HINTS: tuple[tuple[tuple[str, ...], int], ...] = (
    (("/src/", "/lib/"), 10),
    (("/test/", "/spec/"), 5),
    (("/config/", "/settings/"), 8),
    (("/main.", "/index."), 15),
)
NEW_FILE_COMPLEXITY = 12
DELETED_FILE_COMPLEXITY = 8
MAX_SIZE_COMPLEXITY = 20


def estimate_tokens(text: str | None) -> int:
    """Rough token count of a text (3 characters per token, rounded up)."""
    if not text:
        return 0
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def calculate_change_size(diff_content: str | None) -> int:
    """Number of added plus removed lines in a unified diff."""
    if not diff_content:
        return 0
    return sum(
        1 for line in diff_content.split("\n") if line.startswith(("+", "-"))
    )


def calculate_file_complexity(change: PRFileChange) -> float:
    """Heuristic review complexity from diff size, path and change kind."""
    diff = change.diff_content or ""
    complexity = min(len(diff) / 1000, MAX_SIZE_COMPLEXITY)

    path = change.file_path.lower()
    for hints, points in PATH_COMPLEXITY_HINTS:
        if any(hint in path for hint in hints):
            complexity += points

    if "new file mode" in diff:
        complexity += NEW_FILE_COMPLEXITY
    if "deleted file mode" in diff:
        complexity += DELETED_FILE_COMPLEXITY
    return complexity


def file_directory(file_path: str) -> str:
    return posixpath.dirname(file_path.replace("\\", "/"))


def as_change(file: PRFileChange | Mapping[str, Any]) -> PRFileChange:
    if isinstance(file, PRFileChange):
        return file
    return PRFileChange.from_dict(dict(file))


class PRChunkPlanner:
    """Decides whether a changeset needs chunking and builds the chunks."""

    def __init__(self, settings: PRChunkingSettings | None = None) -> None:
        self.settings = settings or PRChunkingSettings()

    def should_chunk_pr(
        self, files: Iterable[PRFileChange | Mapping[str, Any]]
    ) -> ChunkingDecision:
        """Estimate the prompt size of a changeset.

        Args:
            files: Changed files (``PRFileChange`` or ``{filePath, diffContent,
                content}`` mappings)

        Returns:
            Decision with token estimates and recommended chunk count
        """
        changes = [as_change(file) for file in files]
        diff_tokens = sum(estimate_tokens(c.diff_content) for c in changes)
        full_tokens = sum(estimate_tokens(c.full_content) for c in changes)

        estimated = diff_tokens + full_tokens
        if changes:
            estimated += self.settings.context_overhead_tokens

        should_chunk = (
            estimated > self.settings.max_single_review_tokens
            or len(changes) > self.settings.max_single_review_files
        )
        decision = ChunkingDecision(
            should_chunk=should_chunk,
            estimated_tokens=estimated,
            diff_tokens=diff_tokens,
            full_content_tokens=full_tokens,
            recommended_chunks=math.ceil(
                estimated / self.settings.chunk_token_budget
            ),
            file_count=len(changes),
        )
        logger.debug(
            f"Changeset estimate: {len(changes)} files, ~{estimated} tokens "
            f"(diff {diff_tokens}, full {full_tokens}), chunk={should_chunk}"
        )
        return decision

    def plan_files(
        self, files: Iterable[PRFileChange | Mapping[str, Any]]
    ) -> list[PlannedFile]:
        """Attach metrics to each file and order them for chunking.

        Files are grouped by directory (lexicographic) and, within a
        directory, ordered by change size descending. Ties keep input order.
        """
        planned = []
        for file in files:
            change = as_change(file)
            planned.append(
                PlannedFile(
                    change=change,
                    change_size=calculate_change_size(change.diff_content),
                    file_complexity=calculate_file_complexity(change),
                    estimated_diff_tokens=estimate_tokens(change.diff_content),
                    estimated_full_tokens=estimate_tokens(change.full_content),
                )
            )
        planned.sort(key=lambda p: (file_directory(p.file_path), -p.change_size))
        return planned

    def chunk_pr_files(
        self,
        files: Iterable[PRFileChange | Mapping[str, Any]],
        max_tokens_per_chunk: int | None = None,
    ) -> list[PRChunk]:
        """Split changed files into token-budgeted chunks.

        Files are added greedily to the current chunk while its total stays
        within budget. A file that exceeds the budget on its own gets a chunk
        to itself.

        Args:
            files: Changed files
            max_tokens_per_chunk: Budget per chunk (defaults to the configured
                chunk budget)

        Returns:
            Chunks with contiguous 1-based ``chunk_id`` values
        """
        budget = max_tokens_per_chunk or self.settings.chunk_token_budget
        chunks: list[PRChunk] = []
        current: list[PlannedFile] = []
        current_tokens = 0

        def flush() -> None:
            nonlocal current, current_tokens
            if current:
                chunks.append(
                    PRChunk(
                        chunk_id=len(chunks) + 1,
                        files=current,
                        total_tokens=current_tokens,
                    )
                )
            current = []
            current_tokens = 0

        for planned in self.plan_files(files):
            if planned.estimated_tokens > budget:
                flush()
                current = [planned]
                current_tokens = planned.estimated_tokens
                flush()
                continue

            if current_tokens + planned.estimated_tokens > budget:
                flush()
            current.append(planned)
            current_tokens += planned.estimated_tokens

        flush()

        for chunk in chunks:
            logger.debug(
                f"Chunk {chunk.chunk_id}: {len(chunk.files)} files "
                f"(~{chunk.total_tokens} tokens)"
            )
        return chunks


def should_chunk_pr(
    files: Iterable[PRFileChange | Mapping[str, Any]],
    settings: PRChunkingSettings | None = None,
) -> ChunkingDecision:
    """Module-level shortcut for :meth:`PRChunkPlanner.should_chunk_pr`."""
    return PRChunkPlanner(settings).should_chunk_pr(files)


def chunk_pr_files(
    files: Iterable[PRFileChange | Mapping[str, Any]],
    max_tokens_per_chunk: int | None = None,
    settings: PRChunkingSettings | None = None,
) -> list[PRChunk]:
    """Module-level shortcut for :meth:`PRChunkPlanner.chunk_pr_files`."""
    return PRChunkPlanner(settings).chunk_pr_files(files, max_tokens_per_chunk)
