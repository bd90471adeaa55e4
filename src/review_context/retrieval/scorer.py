"""Context-aware relevance scoring for guideline and custom documents.

Two related scoring paths live here:

Guideline documents (project docs found by vector search):
    Chunks are grouped by source document and each document is scored as

        score = 0.2 * semantic_quality + 0.6 * context_match + 0.2 * title_relevance

    multiplied by a 0.7 penalty for README-style documents without a strong
    context match. The best chunk of each of the top 4 documents is kept.

Custom documents (policy/instruction files supplied by the caller):
    Each chunk above the similarity threshold is rescored as

        score = 0.4 * similarity + context_bonus + 0.2 * title_similarity
                + 0.1 * path_similarity + generic_penalty

All final scores are clamped to [0, 1]. Sorting is by score descending and
equal scores keep discovery order (stable sort).
"""

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from ..analysis.context_inference import (
    DocumentClassifier,
    build_document_analysis_text,
    infer_context_from_document_content,
)
from ..analysis.document_detection import (
    get_generic_document_context,
    is_generic_document,
)
from ..config.settings import ScoringSettings
from ..core.concurrency import gather_with_defaults
from ..core.embeddings import EmbeddingProvider, TitleEmbeddingCache
from ..core.exceptions import SearchError, ValidationError
from ..core.models import (
    Area,
    CandidateKind,
    CustomDocumentChunk,
    InferredContext,
    ScoredCandidate,
)
from ..core.similarity import clamp_score, cosine_similarity, path_similarity

NEUTRAL_AREAS = frozenset({Area.UNKNOWN.value, Area.GENERAL.value})


@dataclass
class ScoredDocument:
    """A guideline document with its composite score breakdown."""

    path: str
    score: float
    chunks: list[ScoredCandidate]
    context: InferredContext
    semantic_quality: float = 0.0
    context_match: float = 0.0
    title_relevance: float = 0.0
    penalty_factor: float = 1.0
    is_generic: bool = False
    debug: dict[str, Any] = field(default_factory=dict)

    @property
    def best_chunk(self) -> ScoredCandidate | None:
        return self.chunks[0] if self.chunks else None


def sort_by_score(candidates: list[ScoredCandidate]) -> list[ScoredCandidate]:
    """Sort descending by similarity; ties keep their existing order."""
    return sorted(candidates, key=lambda c: -c.similarity)


class RelevanceScorer:
    """Scores guideline and custom-document candidates against a reviewed file."""

    # Guideline document weights
    _W_SEMANTIC_QUALITY = 0.2
    _W_CONTEXT_MATCH = 0.6
    _W_TITLE_RELEVANCE = 0.2
    _W_MAX_CHUNK = 0.5
    _W_AVG_CHUNK = 0.3
    _W_CHUNK_COUNT = 0.04
    _MAX_COUNTED_CHUNKS = 5
    _BOOST_SAME_AREA = 0.8
    _BOOST_SAME_AREA_TECH = 0.2
    _PENALTY_AREA_MISMATCH = -0.2
    _STRONG_CONTEXT_MATCH = 0.8

    # Custom document weights
    _W_INITIAL_SIM = 0.4
    _W_DOCUMENT_TITLE = 0.2
    _W_PATH_SIMILARITY = 0.1
    _W_KEYWORD_RATIO = 0.1
    _BOOST_CUSTOM_SAME_AREA = 0.3
    _BOOST_CUSTOM_TECH_MATCH = 0.15
    _PENALTY_CUSTOM_AREA_MISMATCH = -0.1
    _PENALTY_GENERIC_LOW_MATCH = -0.1
    _GENERIC_CONTENT_LENGTH = 2000
    _GENERIC_KEYWORD_RATIO = 0.3

    def __init__(
        self,
        embedding_provider: EmbeddingProvider,
        title_cache: TitleEmbeddingCache | None = None,
        classifier: DocumentClassifier | None = None,
        settings: ScoringSettings | None = None,
    ) -> None:
        """Initialize scorer.

        Args:
            embedding_provider: Embedding service for queries and titles
            title_cache: Shared title-embedding cache (created if omitted)
            classifier: Optional document classifier for non-generic docs
            settings: Scoring thresholds
        """
        self.settings = settings or ScoringSettings()
        self.embedding_provider = embedding_provider
        self.title_cache = title_cache or TitleEmbeddingCache(
            max_size=self.settings.title_cache_size
        )
        self.classifier = classifier

    # ------------------------------------------------------------------
    # Custom documents
    # ------------------------------------------------------------------

    async def find_relevant_custom_chunks(
        self,
        query: str,
        chunks: Sequence[CustomDocumentChunk],
        *,
        limit: int | None = None,
        threshold: float | None = None,
        context: InferredContext | None = None,
        use_reranking: bool = True,
        query_embedding: list[float] | None = None,
        query_file_path: str | None = None,
    ) -> list[ScoredCandidate]:
        """Find the custom document chunks most relevant to a query.

        Args:
            query: Query text (must be non-empty)
            chunks: Processed custom document chunks with embeddings
            limit: Maximum number of results (default 5)
            threshold: Minimum cosine similarity before reranking (default 0.3)
            context: Reviewed file's inferred context; enables reranking
            use_reranking: Set False to rank by raw similarity only
            query_embedding: Precomputed query embedding (skips embedding call)
            query_file_path: Reviewed file path for the path-similarity bonus

        Returns:
            Candidates sorted by final score, at most ``limit`` long

        Raises:
            ValidationError: If the query is empty
            SearchError: If the query cannot be embedded
        """
        if not query or not query.strip():
            raise ValidationError(
                "Empty query text provided for custom document search"
            )

        limit = self.settings.custom_doc_limit if limit is None else limit
        threshold = (
            self.settings.custom_doc_threshold if threshold is None else threshold
        )

        if not chunks:
            logger.debug("No custom document chunks available for search")
            return []

        if query_embedding is None:
            try:
                query_embedding = await self.embedding_provider.embed(query)
            except Exception as e:
                raise SearchError(f"Custom document search failed: {e}") from e

        results = []
        for chunk in chunks:
            similarity = cosine_similarity(query_embedding, chunk.embedding)
            if similarity >= threshold:
                results.append(chunk.to_candidate(similarity))

        if use_reranking and context is not None and len(results) >= 2:
            await self.rerank_custom_candidates(
                results, context, query_embedding, query_file_path
            )

        ranked = sort_by_score(results)[:limit]
        logger.debug(
            f"Found {len(ranked)} relevant custom document chunks "
            f"out of {len(chunks)} searched"
        )
        return ranked

    async def rerank_custom_candidates(
        self,
        candidates: list[ScoredCandidate],
        context: InferredContext,
        query_embedding: list[float] | None,
        query_file_path: str | None = None,
    ) -> None:
        """Rescore custom document candidates in place.

        Title embeddings are resolved once for all candidates (cache first,
        then one batch call for misses), then every candidate is scored
        concurrently.
        """
        titles = [c.document_title for c in candidates if c.document_title]
        title_embeddings = await self.title_cache.get_many(
            titles, self.embedding_provider
        )

        async def rescore(candidate: ScoredCandidate) -> None:
            title_embedding = title_embeddings.get(candidate.document_title or "")
            candidate.rescore(
                self.score_custom_candidate(
                    candidate,
                    context,
                    query_embedding,
                    title_embedding,
                    query_file_path,
                )
            )

        await gather_with_defaults(
            (rescore(candidate) for candidate in candidates),
            labels=[f"rerank {c.id}" for c in candidates],
        )
        logger.debug(f"Reranked {len(candidates)} custom document chunks")

    def score_custom_candidate(
        self,
        candidate: ScoredCandidate,
        context: InferredContext,
        query_embedding: list[float] | None,
        title_embedding: list[float] | None,
        query_file_path: str | None = None,
    ) -> float:
        """Composite score for one custom document chunk, clamped to [0, 1]."""
        score = candidate.base_similarity * self._W_INITIAL_SIM
        content_lower = candidate.content.lower()

        # Factor 1: Area and technology mentions in the chunk text
        area = str(context.area)
        if area not in NEUTRAL_AREAS:
            area_lower = area.lower()
            patterns = {area_lower, area_lower.replace("_", " ").replace("-", " ")}
            if any(pattern in content_lower for pattern in patterns):
                score += self._BOOST_CUSTOM_SAME_AREA
                if any(tech.lower() in content_lower for tech in context.dominant_tech):
                    score += self._BOOST_CUSTOM_TECH_MATCH
            elif area != Area.GENERAL_JS_TS:
                score += self._PENALTY_CUSTOM_AREA_MISMATCH

        # Factor 2: Share of the reviewed file's keywords present in the chunk
        keywords = [kw.lower() for kw in context.keywords]
        keyword_ratio = 0.0
        if keywords:
            matched = sum(1 for kw in keywords if kw in content_lower)
            keyword_ratio = matched / len(keywords)
            score += keyword_ratio * self._W_KEYWORD_RATIO

        # Factor 3: Document title relevance to the query
        if title_embedding is not None and query_embedding is not None:
            score += (
                cosine_similarity(query_embedding, title_embedding)
                * self._W_DOCUMENT_TITLE
            )

        # Factor 4: Long, unfocused documents
        if (
            len(candidate.content) > self._GENERIC_CONTENT_LENGTH
            and keywords
            and keyword_ratio < self._GENERIC_KEYWORD_RATIO
        ):
            score += self._PENALTY_GENERIC_LOW_MATCH

        # Factor 5: Directory proximity between reviewed file and document
        if query_file_path and candidate.document_title:
            score += (
                path_similarity(query_file_path, candidate.document_title)
                * self._W_PATH_SIMILARITY
            )

        return clamp_score(score)

    # ------------------------------------------------------------------
    # Guideline documents
    # ------------------------------------------------------------------

    async def select_guideline_snippets(
        self,
        candidates: Sequence[ScoredCandidate],
        reviewed_context: InferredContext,
        file_embedding: list[float] | None,
    ) -> list[ScoredCandidate]:
        """Pick the best chunk of each top-scoring guideline document.

        Snippets come back in document score order. Each keeps its own chunk
        similarity, which the aggregator later sorts and deduplicates on.

        Args:
            candidates: Guideline search results (non-documentation entries ignored)
            reviewed_context: Inferred context of the reviewed file
            file_embedding: Embedding of the reviewed file content

        Returns:
            Up to ``max_documents`` chunks, one per document
        """
        documents = await self.score_guideline_documents(
            candidates, reviewed_context, file_embedding
        )

        snippets = []
        for document in documents:
            if not self._passes_document_filters(document, reviewed_context):
                continue
            best = document.best_chunk
            if best is None:
                continue
            snippets.append(best)
            if len(snippets) >= self.settings.max_documents:
                break

        return snippets

    async def score_guideline_documents(
        self,
        candidates: Sequence[ScoredCandidate],
        reviewed_context: InferredContext,
        file_embedding: list[float] | None,
    ) -> list[ScoredDocument]:
        """Group guideline chunks by document and score every document.

        Returns:
            Scored documents sorted by score (filters not yet applied)
        """
        by_document: dict[str, list[ScoredCandidate]] = {}
        for candidate in candidates:
            if candidate.kind != CandidateKind.GUIDELINE:
                continue
            by_document.setdefault(candidate.path, []).append(candidate)

        if not by_document:
            return []

        titles = {
            path: self._document_title(path, chunks)
            for path, chunks in by_document.items()
        }
        title_embeddings: dict[str, list[float]] = {}
        if file_embedding is not None:
            title_embeddings = await self.title_cache.get_many(
                list(titles.values()), self.embedding_provider
            )

        paths = list(by_document)
        scored = await gather_with_defaults(
            (
                self._score_document(
                    path,
                    by_document[path],
                    titles[path],
                    reviewed_context,
                    file_embedding,
                    title_embeddings.get(titles[path]),
                )
                for path in paths
            ),
            labels=[f"score document {path}" for path in paths],
        )

        documents = [doc for doc in scored if doc is not None]
        documents.sort(key=lambda d: -d.score)
        for document in documents[:7]:
            logger.debug(
                f"Guideline doc {document.path}: score={document.score:.4f} "
                f"area={document.context.area} generic={document.is_generic}"
            )
        return documents

    async def _score_document(
        self,
        path: str,
        chunks: list[ScoredCandidate],
        title: str,
        reviewed_context: InferredContext,
        file_embedding: list[float] | None,
        title_embedding: list[float] | None,
    ) -> ScoredDocument | None:
        relevant = [
            c for c in chunks if c.similarity >= self.settings.relevant_chunk_threshold
        ]
        if not relevant:
            return None

        doc_context = await self.infer_document_context(path, title, chunks)
        is_generic = is_generic_document(path, title)

        semantic_quality = self.semantic_quality([c.similarity for c in relevant])
        context_match = self.context_match(reviewed_context, doc_context)
        title_relevance = (
            cosine_similarity(file_embedding, title_embedding)
            if file_embedding is not None and title_embedding is not None
            else 0.0
        )

        penalty_factor = 1.0
        if doc_context.is_general_purpose_readme_style or is_generic:
            if reviewed_context.area != Area.DEVOPS and (
                context_match < self._STRONG_CONTEXT_MATCH or is_generic
            ):
                penalty_factor = self.settings.generic_doc_penalty

        raw_score = (
            semantic_quality * self._W_SEMANTIC_QUALITY
            + context_match * self._W_CONTEXT_MATCH
            + title_relevance * self._W_TITLE_RELEVANCE
        ) * penalty_factor

        return ScoredDocument(
            path=path,
            score=clamp_score(raw_score),
            chunks=sort_by_score(chunks),
            context=doc_context,
            semantic_quality=semantic_quality,
            context_match=context_match,
            title_relevance=title_relevance,
            penalty_factor=penalty_factor,
            is_generic=is_generic,
            debug={"raw_score": raw_score},
        )

    async def infer_document_context(
        self, path: str, title: str, chunks: Sequence[ScoredCandidate]
    ) -> InferredContext:
        """Document context via the generic fast path, classifier or heuristics."""
        if is_generic_document(path, title):
            return get_generic_document_context(path)

        classification = None
        if self.classifier is not None:
            text = build_document_analysis_text(path, title, chunks)
            try:
                classification = await self.classifier.classify(text)
            except Exception as e:
                logger.warning(
                    f"Document classification failed for {path}, using heuristics: {e}"
                )

        return infer_context_from_document_content(path, title, chunks, classification)

    def semantic_quality(self, similarities: Sequence[float]) -> float:
        """Blend of best, mean and count of relevant chunk similarities."""
        if not similarities:
            return 0.0
        return (
            max(similarities) * self._W_MAX_CHUNK
            + (sum(similarities) / len(similarities)) * self._W_AVG_CHUNK
            + min(len(similarities), self._MAX_COUNTED_CHUNKS) * self._W_CHUNK_COUNT
        )

    def context_match(
        self, reviewed_context: InferredContext, doc_context: InferredContext
    ) -> float:
        """Area/technology agreement between the reviewed file and a document."""
        if (
            reviewed_context.area == Area.UNKNOWN
            or str(doc_context.area) in NEUTRAL_AREAS
        ):
            return 0.0

        if reviewed_context.area == doc_context.area:
            score = self._BOOST_SAME_AREA
            if doc_context.shares_tech_with(reviewed_context):
                score += self._BOOST_SAME_AREA_TECH
            return score

        if reviewed_context.area != Area.GENERAL_JS_TS:
            return self._PENALTY_AREA_MISMATCH
        return 0.0

    def _passes_document_filters(
        self, document: ScoredDocument, reviewed_context: InferredContext
    ) -> bool:
        if document.score < self.settings.min_document_score:
            logger.debug(
                f"Excluding doc {document.path}: score too low ({document.score:.4f})"
            )
            return False

        area_conflict = (
            reviewed_context.area != Area.UNKNOWN
            and str(document.context.area) not in NEUTRAL_AREAS
            and reviewed_context.area != document.context.area
        )
        if area_conflict and not document.context.shares_tech_with(reviewed_context):
            logger.debug(
                f"Excluding doc {document.path}: area mismatch "
                f"{document.context.area} vs {reviewed_context.area}"
            )
            return False
        return True

    @staticmethod
    def _document_title(path: str, chunks: Sequence[ScoredCandidate]) -> str:
        for chunk in chunks:
            if chunk.document_title:
                return chunk.document_title
        stem = path.replace("\\", "/").rsplit("/", 1)[-1]
        return stem.rsplit(".", 1)[0] if "." in stem else stem
