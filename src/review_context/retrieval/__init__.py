"""Context retrieval: relevance scoring, per-file gathering and aggregation.

Key Components:
- RelevanceScorer: Guideline document scoring and custom document reranking
- FileContextGatherer: Four concurrent retrievals per reviewed file
- ContextAggregator: Deduplicated, capped context for a multi-file change
"""

from .aggregator import AggregatedContext, ContextAggregator
from .file_context import ContextSearchBackend, FileContext, FileContextGatherer
from .scorer import RelevanceScorer, ScoredDocument

__all__ = [
    "AggregatedContext",
    "ContextAggregator",
    "ContextSearchBackend",
    "FileContext",
    "FileContextGatherer",
    "RelevanceScorer",
    "ScoredDocument",
]
