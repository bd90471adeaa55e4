"""Default configuration values for the review context engine."""

from pathlib import Path

# Document chunking (characters)
DOCUMENT_CHUNK_MAX_CHARS = 1000
DOCUMENT_CHUNK_MIN_CHARS = 100
CHUNK_HASH_LENGTH = 8

# Custom document search
CUSTOM_DOC_SEARCH_LIMIT = 5
CUSTOM_DOC_SIMILARITY_THRESHOLD = 0.3
TITLE_EMBEDDING_CACHE_SIZE = 500

# Guideline document selection
RELEVANT_CHUNK_THRESHOLD = 0.1
GUIDELINE_MIN_DOCUMENT_SCORE = 0.3
GUIDELINE_MAX_DOCUMENTS = 4
GENERIC_DOC_PENALTY_FACTOR = 0.7

# Retrieval limits per reviewed file
GUIDELINE_CANDIDATE_LIMIT = 100
CODE_EXAMPLE_LIMIT = 40
MAX_FINAL_EXAMPLES = 8
MAX_PR_COMMENTS_FOR_CONTEXT = 40
GUIDELINE_SIMILARITY_THRESHOLD = 0.05
CODE_SIMILARITY_THRESHOLD = 0.3
PR_COMMENT_SIMILARITY_THRESHOLD = 0.3
MAX_EMBEDDING_CONTENT_LENGTH = 10000
MAX_QUERY_CONTEXT_LENGTH = 1500

# Aggregated pool caps for a multi-file change
DEFAULT_MAX_EXAMPLES = 40
AGGREGATED_GUIDELINE_CAP = 100
AGGREGATED_COMMENT_CAP = 40
AGGREGATED_CUSTOM_DOC_CAP = 10

# PR chunk planning (tokens)
CHARS_PER_TOKEN = 3
# Prompt scaffolding, guidelines and examples sent alongside every review request.
CONTEXT_OVERHEAD_TOKENS = 25_000
MAX_SINGLE_REVIEW_TOKENS = 100_000
MAX_SINGLE_REVIEW_FILES = 30
DEFAULT_CHUNK_TOKEN_BUDGET = 35_000

# Review orchestration
DEFAULT_REVIEW_CONCURRENCY = 3
MIN_EXAMPLES_PER_CHUNK = 3

# Descriptions at or above this ratio (difflib, normalized text) are treated as
# the same finding. High enough that "Missing null check in handler" pairs up
# across files while two unrelated one-liners sharing a word or two do not.
CROSS_CHUNK_SIMILARITY_THRESHOLD = 0.85

# Language mappings for reviewed files
LANGUAGE_MAPPINGS: dict[str, str] = {
    ".py": "python",
    ".pyw": "python",
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".ts": "typescript",
    ".tsx": "typescript",
    ".java": "java",
    ".go": "go",
    ".rs": "rust",
    ".rb": "ruby",
    ".php": "php",
    ".cs": "c_sharp",
    ".md": "markdown",
    ".txt": "text",
}


def get_default_cache_path(project_root: Path) -> Path:
    """Get the default chunk cache directory for a project."""
    return project_root / ".review-context" / "cache"


def get_language_from_extension(extension: str) -> str:
    """Get the language name from file extension."""
    return LANGUAGE_MAPPINGS.get(extension.lower(), "text")
