"""Review Context Engine - context retrieval and chunk orchestration for AI code review."""

__version__ = "0.1.0"

from .core.exceptions import ReviewContextError
from .documents import CustomDocumentProcessor, DocumentChunker
from .retrieval import ContextAggregator, FileContextGatherer, RelevanceScorer
from .review import ChunkResultCombiner, PRChunkPlanner, PRReviewEngine

__all__ = [
    "ChunkResultCombiner",
    "ContextAggregator",
    "CustomDocumentProcessor",
    "DocumentChunker",
    "FileContextGatherer",
    "PRChunkPlanner",
    "PRReviewEngine",
    "RelevanceScorer",
    "ReviewContextError",
    "__version__",
]
