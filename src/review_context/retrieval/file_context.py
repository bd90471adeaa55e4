"""Per-file context gathering.

For every reviewed file four independent retrievals run concurrently:

    1. Historical review comments on similar code
    2. Guideline documentation (grouped and scored per document)
    3. Similar code examples from the project
    4. Relevant chunks of the caller's custom documents

Each branch is soft-fail: a branch that raises is logged and contributes an
empty list, so one broken backend never costs the reviewer the other three.
"""

import posixpath
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol

from loguru import logger

from ..analysis.context_inference import infer_context_from_code_content
from ..config.defaults import (
    CODE_EXAMPLE_LIMIT,
    CODE_SIMILARITY_THRESHOLD,
    CUSTOM_DOC_SEARCH_LIMIT,
    CUSTOM_DOC_SIMILARITY_THRESHOLD,
    GUIDELINE_CANDIDATE_LIMIT,
    GUIDELINE_SIMILARITY_THRESHOLD,
    MAX_EMBEDDING_CONTENT_LENGTH,
    MAX_FINAL_EXAMPLES,
    MAX_PR_COMMENTS_FOR_CONTEXT,
    MAX_QUERY_CONTEXT_LENGTH,
    PR_COMMENT_SIMILARITY_THRESHOLD,
    get_language_from_extension,
)
from ..core.concurrency import gather_with_defaults
from ..core.embeddings import EmbeddingProvider
from ..core.exceptions import SearchError
from ..core.models import (
    Area,
    CandidateKind,
    InferredContext,
    PRFileChange,
    ScoredCandidate,
    is_test_file,
)
from .scorer import RelevanceScorer, sort_by_score

if TYPE_CHECKING:
    from ..documents.processor import CustomDocumentProcessor

SearchResult = Mapping[str, Any] | ScoredCandidate

TEST_QUERY_SUFFIX = "\n// Looking for similar test files and testing patterns"
TESTING_KEYWORDS = ("test", "spec", "mock", "stub", "assert", "coverage", "fixture")
GUIDELINE_QUERY_NEUTRAL_AREAS = frozenset(
    {Area.UNKNOWN.value, Area.GENERAL.value, Area.GENERAL_JS_TS.value}
)


class ContextSearchBackend(Protocol):
    """Vector-database queries used to gather context for one file.

    Each method returns search results shaped like
    ``{path, content, similarity, type, metadata}`` (or ready-made
    ``ScoredCandidate`` objects).
    """

    async def find_pr_comments(
        self,
        file_path: str,
        query_embedding: list[float] | None,
        *,
        limit: int,
        threshold: float,
    ) -> Sequence[SearchResult]: ...

    async def find_guidelines(
        self,
        query: str,
        query_embedding: list[float] | None,
        *,
        limit: int,
        threshold: float,
    ) -> Sequence[SearchResult]: ...

    async def find_similar_code(
        self,
        content: str,
        query_embedding: list[float] | None,
        *,
        limit: int,
        threshold: float,
        query_file_path: str,
    ) -> Sequence[SearchResult]: ...


@dataclass
class FileContext:
    """Everything retrieved for one reviewed file."""

    file_path: str
    context: InferredContext = field(default_factory=InferredContext)
    code_examples: list[ScoredCandidate] = field(default_factory=list)
    guidelines: list[ScoredCandidate] = field(default_factory=list)
    pr_comments: list[ScoredCandidate] = field(default_factory=list)
    custom_doc_chunks: list[ScoredCandidate] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (
            self.code_examples
            or self.guidelines
            or self.pr_comments
            or self.custom_doc_chunks
        )

    def counts(self) -> dict[str, int]:
        return {
            "codeExamples": len(self.code_examples),
            "guidelines": len(self.guidelines),
            "prComments": len(self.pr_comments),
            "customDocChunks": len(self.custom_doc_chunks),
        }


def normalize_path(file_path: str) -> str:
    return posixpath.normpath(file_path.replace("\\", "/")) if file_path else ""


def build_guideline_query(
    content: str, context: InferredContext, language: str, test_file: bool = False
) -> str:
    """Natural-language query used to search guideline documentation."""
    snippet = content[:MAX_QUERY_CONTEXT_LENGTH]
    tech = ", ".join(context.dominant_tech)
    known_area = str(context.area) not in GUIDELINE_QUERY_NEUTRAL_AREAS

    if test_file:
        parts = [
            "Retrieve testing documentation, test patterns, and testing best "
            "practices.",
            "Focus on test coverage, naming conventions, assertion patterns, "
            "mocking strategies, and test organization.",
        ]
        if known_area:
            parts.append(
                f"Specifically looking for {context.area} testing patterns "
                "and practices."
            )
        if tech:
            parts.append(f"Focus on testing frameworks and patterns for: {tech}.")
        keywords = [
            kw
            for kw in context.keywords
            if any(term in kw.lower() for term in TESTING_KEYWORDS)
        ]
    else:
        parts = [
            "Retrieve technical documentation, architectural guidelines, and "
            "best practices."
        ]
        if known_area:
            parts.append(
                f"Specifically looking for {context.area} related information."
            )
        if tech:
            parts.append(f"Focus on technologies like: {tech}.")
        lowered_tech = {t.lower() for t in context.dominant_tech}
        keywords = [kw for kw in context.keywords if kw.lower() not in lowered_tech]

    if keywords:
        concepts = ", ".join(keywords[:3])
        parts.append(f"Consider relevance to concepts such as: {concepts}.")
    parts.append(
        f"Relevant to the following {language} code snippet context:\n"
        f"```{language}\n{snippet}\n```"
    )
    return " ".join(parts)


def to_candidates(
    results: Sequence[SearchResult] | None, kind: CandidateKind | None = None
) -> list[ScoredCandidate]:
    """Normalize raw search results into candidates."""
    candidates = []
    for result in results or []:
        if isinstance(result, ScoredCandidate):
            candidates.append(result)
        else:
            candidates.append(ScoredCandidate.from_search_result(dict(result), kind))
    return candidates


def select_code_examples(
    candidates: Sequence[ScoredCandidate],
    reviewed_path: str,
    limit: int = MAX_FINAL_EXAMPLES,
) -> list[ScoredCandidate]:
    """Drop self-matches and documentation, dedupe by path, keep the best."""
    own_path = normalize_path(reviewed_path)
    best_by_path: dict[str, ScoredCandidate] = {}
    for candidate in candidates:
        if candidate.is_documentation:
            continue
        path = normalize_path(candidate.path)
        if not path or path == own_path:
            continue
        current = best_by_path.get(path)
        if current is None or candidate.similarity > current.similarity:
            best_by_path[path] = candidate
    return sort_by_score(list(best_by_path.values()))[:limit]


class FileContextGatherer:
    """Gathers review context for changed files against a search backend."""

    def __init__(
        self,
        backend: ContextSearchBackend,
        embedding_provider: EmbeddingProvider,
        scorer: RelevanceScorer | None = None,
        document_processor: "CustomDocumentProcessor | None" = None,
        project_path: str | Path | None = None,
    ) -> None:
        """Initialize gatherer.

        Args:
            backend: Vector-database search backend
            embedding_provider: Embedding service for file content and queries
            scorer: Guideline/custom document scorer (created if omitted)
            document_processor: Source of custom document chunks
            project_path: Project whose custom documents are searched
        """
        self.backend = backend
        self.embedding_provider = embedding_provider
        self.document_processor = document_processor
        if scorer is None:
            scorer = (
                document_processor.scorer
                if document_processor is not None
                else RelevanceScorer(embedding_provider)
            )
        self.scorer = scorer
        self.project_path = project_path

    async def gather(self, file: PRFileChange) -> FileContext:
        """Retrieve all four kinds of context for one file.

        Raises:
            SearchError: If the file content cannot be embedded
        """
        file_path = file.file_path
        content = file.review_text
        language = file.language or get_language_from_extension(
            posixpath.splitext(file_path)[1]
        )
        test_file = is_test_file(file_path)
        context = infer_context_from_code_content(content, language)
        logger.debug(f"Reviewed context for {file_path}: {context.to_dict()}")

        code_query = f"{content}{TEST_QUERY_SUFFIX}" if test_file else content
        guideline_query = build_guideline_query(content, context, language, test_file)

        try:
            file_embedding = None
            code_embedding = None
            if content.strip():
                file_embedding = await self.embedding_provider.embed(
                    content[:MAX_EMBEDDING_CONTENT_LENGTH]
                )
                code_embedding = (
                    await self.embedding_provider.embed(code_query)
                    if test_file
                    else file_embedding
                )
            guideline_embedding = await self.embedding_provider.embed(guideline_query)
        except Exception as e:
            raise SearchError(f"Context embedding failed for {file_path}: {e}") from e

        comments, guidelines, code_examples, custom_chunks = await gather_with_defaults(
            [
                self._find_pr_comments(file_path, code_embedding),
                self._find_guidelines(
                    guideline_query, guideline_embedding, context, file_embedding
                ),
                self._find_code_examples(file_path, code_query, code_embedding),
                self._find_custom_chunks(
                    guideline_query, guideline_embedding, context, file_path
                ),
            ],
            default_factory=list,
            labels=[
                f"PR comment search for {file_path}",
                f"Guideline search for {file_path}",
                f"Code search for {file_path}",
                f"Custom document search for {file_path}",
            ],
        )

        file_context = FileContext(
            file_path=file_path,
            context=context,
            code_examples=code_examples,
            guidelines=guidelines,
            pr_comments=comments,
            custom_doc_chunks=custom_chunks,
        )
        logger.debug(f"Context for {file_path}: {file_context.counts()}")
        return file_context

    async def gather_for_files(
        self, files: Sequence[PRFileChange], max_concurrency: int | None = None
    ) -> list[FileContext]:
        """Gather context for every file; a failing file yields empty context."""
        contexts = await gather_with_defaults(
            (self.gather(file) for file in files),
            labels=[f"Context gathering for {file.file_path}" for file in files],
            max_concurrency=max_concurrency,
        )
        return [
            ctx if ctx is not None else FileContext(file_path=file.file_path)
            for file, ctx in zip(files, contexts, strict=True)
        ]

    async def _find_pr_comments(
        self, file_path: str, query_embedding: list[float] | None
    ) -> list[ScoredCandidate]:
        results = await self.backend.find_pr_comments(
            file_path,
            query_embedding,
            limit=MAX_PR_COMMENTS_FOR_CONTEXT,
            threshold=PR_COMMENT_SIMILARITY_THRESHOLD,
        )
        return sort_by_score(to_candidates(results, CandidateKind.PR_COMMENT))

    async def _find_guidelines(
        self,
        query: str,
        query_embedding: list[float] | None,
        context: InferredContext,
        file_embedding: list[float] | None,
    ) -> list[ScoredCandidate]:
        results = await self.backend.find_guidelines(
            query,
            query_embedding,
            limit=GUIDELINE_CANDIDATE_LIMIT,
            threshold=GUIDELINE_SIMILARITY_THRESHOLD,
        )
        candidates = [
            c for c in to_candidates(results) if c.kind == CandidateKind.GUIDELINE
        ]
        return await self.scorer.select_guideline_snippets(
            candidates, context, file_embedding
        )

    async def _find_code_examples(
        self, file_path: str, query: str, query_embedding: list[float] | None
    ) -> list[ScoredCandidate]:
        results = await self.backend.find_similar_code(
            query,
            query_embedding,
            limit=CODE_EXAMPLE_LIMIT,
            threshold=CODE_SIMILARITY_THRESHOLD,
            query_file_path=file_path,
        )
        return select_code_examples(
            to_candidates(results, CandidateKind.CODE_EXAMPLE), file_path
        )

    async def _find_custom_chunks(
        self,
        query: str,
        query_embedding: list[float] | None,
        context: InferredContext,
        file_path: str,
    ) -> list[ScoredCandidate]:
        if self.document_processor is None or self.project_path is None:
            return []
        chunks = await self.document_processor.get_existing_chunks(self.project_path)
        if not chunks:
            return []
        return await self.document_processor.find_relevant_chunks(
            query,
            chunks,
            limit=CUSTOM_DOC_SEARCH_LIMIT,
            threshold=CUSTOM_DOC_SIMILARITY_THRESHOLD,
            context=context,
            query_embedding=query_embedding,
            query_file_path=file_path,
        )
