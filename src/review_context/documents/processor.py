"""Custom document processing: chunk, embed, store and search.

Custom documents are policy or instruction files supplied by the caller for a
single project (``CODING_STANDARDS.md``, team checklists, ...). They are not
indexed in the vector database; instead each document is chunked, its chunks
are embedded in one batch call and the result is kept per project, both in
memory and on disk, until the project's chunks are explicitly cleared.
"""

import time
from collections.abc import Mapping, Sequence
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from loguru import logger

from ..config.settings import ChunkingSettings, ScoringSettings
from ..core.chunk_store import DocumentChunkCache, ProjectChunkStore
from ..core.concurrency import gather_with_defaults
from ..core.embeddings import EmbeddingProvider, TitleEmbeddingCache
from ..core.models import (
    CustomDocumentChunk,
    DocumentChunk,
    InferredContext,
    ScoredCandidate,
)
from ..retrieval.scorer import RelevanceScorer
from .chunker import DocumentChunker


class CustomDocumentProcessor:
    """Turns caller-supplied documents into searchable, embedded chunks.

    Example:
        >>> processor = CustomDocumentProcessor(embedder)
        >>> chunks = await processor.process_documents(docs, "/path/to/project")
        >>> hits = await processor.find_relevant_chunks("error handling", chunks)
    """

    def __init__(
        self,
        embedding_provider: EmbeddingProvider,
        store: ProjectChunkStore | None = None,
        disk_cache: DocumentChunkCache | None = None,
        scorer: RelevanceScorer | None = None,
        chunking: ChunkingSettings | None = None,
        scoring: ScoringSettings | None = None,
    ) -> None:
        """Initialize processor.

        Args:
            embedding_provider: Embedding service for chunk content
            store: In-memory per-project chunk store (created if omitted)
            disk_cache: Optional persistent chunk cache
            scorer: Relevance scorer for searches (created if omitted)
            chunking: Chunk size limits
            scoring: Scoring thresholds used when ``scorer`` is created here
        """
        chunking = chunking or ChunkingSettings()
        self.embedding_provider = embedding_provider
        self.chunker = DocumentChunker(
            max_chars=chunking.max_chars, min_chars=chunking.min_chars
        )
        self.store = store or ProjectChunkStore()
        self.disk_cache = disk_cache
        self.scorer = scorer or RelevanceScorer(
            embedding_provider,
            title_cache=TitleEmbeddingCache(),
            settings=scoring,
        )
        self._cleaning_up = False
        self._reset_metrics()

    def _reset_metrics(self) -> None:
        self.metrics: dict[str, Any] = {
            "documents_processed": 0,
            "chunks_generated": 0,
            "chunks_embedded": 0,
            "chunks_dropped": 0,
            "batch_successes": 0,
            "batch_fallbacks": 0,
            "document_failures": 0,
            "total_processing_time": 0.0,
        }

    async def process_documents(
        self, documents: Sequence[Mapping[str, Any] | Any], project_path: str | Path
    ) -> list[CustomDocumentChunk]:
        """Chunk and embed custom documents for a project.

        A document that cannot be chunked is logged and skipped; a chunk whose
        embedding cannot be computed is dropped. The processed chunks replace
        whatever was stored for the project before.

        Args:
            documents: Mappings or objects with ``title`` and ``content``
            project_path: Project the documents belong to

        Returns:
            All embedded chunks, in document then chunk order
        """
        start_time = time.time()
        processed: list[CustomDocumentChunk] = []

        logger.info(f"Processing {len(documents)} custom documents for {project_path}")

        for document in documents:
            try:
                chunks = self.chunker.chunk_document(document)
            except Exception as e:
                logger.warning(f"Skipping custom document that failed to chunk: {e}")
                self.metrics["document_failures"] += 1
                continue

            self.metrics["chunks_generated"] += len(chunks)
            processed.extend(await self._embed_chunks(chunks, project_path))
            self.metrics["documents_processed"] += 1

        self.store.put(project_path, processed)
        if self.disk_cache is not None:
            await self.disk_cache.store(project_path, processed)

        elapsed = time.time() - start_time
        self.metrics["total_processing_time"] += elapsed
        logger.info(
            f"Processed {len(processed)} custom document chunks in {elapsed:.2f}s"
        )
        return processed

    async def _embed_chunks(
        self, chunks: list[DocumentChunk], project_path: str | Path
    ) -> list[CustomDocumentChunk]:
        if not chunks:
            return []

        texts = [chunk.content for chunk in chunks]
        embeddings: list[list[float] | None]
        try:
            embeddings = list(await self.embedding_provider.embed_batch(texts))
            self.metrics["batch_successes"] += 1
        except Exception as e:
            logger.warning(
                f"Batch embedding failed for {len(chunks)} chunks, "
                f"embedding individually: {e}"
            )
            self.metrics["batch_fallbacks"] += 1
            embeddings = [None] * len(chunks)

        # Entries the batch could not produce are retried one by one
        embeddings.extend([None] * (len(chunks) - len(embeddings)))
        retry = [i for i, embedding in enumerate(embeddings) if embedding is None]
        if retry:
            retried = await gather_with_defaults(
                (self.embedding_provider.embed(texts[i]) for i in retry),
                labels=[f"embed {chunks[i].id}" for i in retry],
            )
            for i, embedding in zip(retry, retried, strict=True):
                embeddings[i] = embedding

        created_at = datetime.now(UTC).isoformat()
        project = str(project_path)
        embedded = []
        for chunk, embedding in zip(chunks, embeddings, strict=False):
            if embedding is None:
                logger.warning(f"Dropping chunk {chunk.id}: no embedding")
                self.metrics["chunks_dropped"] += 1
                continue
            embedded.append(
                CustomDocumentChunk(
                    chunk=chunk,
                    embedding=list(embedding),
                    project_path=project,
                    created_at=created_at,
                )
            )

        self.metrics["chunks_embedded"] += len(embedded)
        return embedded

    async def get_existing_chunks(
        self, project_path: str | Path
    ) -> list[CustomDocumentChunk]:
        """Chunks previously processed for a project (memory, then disk)."""
        chunks = self.store.get(project_path)
        if chunks is not None:
            return chunks

        if self.disk_cache is not None:
            cached = await self.disk_cache.load(project_path)
            if cached is not None:
                logger.debug(
                    f"Loaded {len(cached)} custom document chunks from disk cache"
                )
                self.store.put(project_path, cached)
                return list(cached)

        return []

    def clear_project_chunks(self, project_path: str | Path) -> None:
        """Forget every processed chunk of a project."""
        removed = self.store.remove(project_path)
        if self.disk_cache is not None:
            removed = self.disk_cache.invalidate(project_path) or removed
        if removed:
            logger.debug(f"Cleared custom document chunks for {project_path}")

    async def find_relevant_chunks(
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
        """Search custom document chunks; see ``RelevanceScorer``."""
        return await self.scorer.find_relevant_custom_chunks(
            query,
            chunks,
            limit=limit,
            threshold=threshold,
            context=context,
            use_reranking=use_reranking,
            query_embedding=query_embedding,
            query_file_path=query_file_path,
        )

    def get_performance_metrics(self) -> dict[str, Any]:
        """Processing counters plus chunker and cache statistics."""
        metrics = dict(self.metrics)
        metrics["average_chunk_size"] = round(self.chunker.average_chunk_size, 1)
        metrics["store"] = self.store.get_stats()
        metrics["title_cache"] = self.scorer.title_cache.get_cache_stats()
        if self.disk_cache is not None:
            metrics["disk_cache"] = self.disk_cache.get_cache_stats()
        return metrics

    def clear_caches(self) -> None:
        """Drop in-memory chunks and cached title embeddings."""
        self.store.clear()
        self.scorer.title_cache.clear()
        logger.debug("Cleared custom document caches")

    def cleanup(self) -> None:
        """Release caches and reset metrics; safe to call more than once."""
        if self._cleaning_up:
            return
        self._cleaning_up = True
        try:
            self.clear_caches()
            self._reset_metrics()
        finally:
            self._cleaning_up = False
