"""Chunked pull request review.

Key Components:
- PRChunkPlanner: Token estimation and token-budgeted partitioning
- ChunkResultCombiner: Merges chunk results and finds cross-chunk patterns
- PRReviewEngine: Orchestrates context gathering, chunking and LLM review

Usage:
    from review_context.review import PRReviewEngine

    engine = PRReviewEngine(gatherer, llm_client)
    result = await engine.review_pr(changed_files)
"""

from .combiner import ChunkResultCombiner, combine_chunk_results
from .pr_chunking import PRChunkPlanner, chunk_pr_files, should_chunk_pr
from .pr_engine import PRReviewEngine
from .pr_models import (
    ChunkingDecision,
    CombinedReviewResult,
    CrossChunkIssue,
    PlannedFile,
    PRChunk,
    Severity,
)

__all__ = [
    "ChunkResultCombiner",
    "ChunkingDecision",
    "CombinedReviewResult",
    "CrossChunkIssue",
    "PRChunk",
    "PRChunkPlanner",
    "PRReviewEngine",
    "PlannedFile",
    "Severity",
    "chunk_pr_files",
    "combine_chunk_results",
    "should_chunk_pr",
]
