"""Embedding collaborator interface, title-embedding cache and default embedder."""

import asyncio
from typing import Any, Protocol, runtime_checkable

from loguru import logger

from .exceptions import EmbeddingError

Embedding = list[float]


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Anything that can turn text into vectors.

    ``embed_batch`` may return ``None`` for individual entries that failed;
    callers are expected to re-embed those one by one.
    """

    async def embed(self, text: str) -> Embedding | None: ...

    async def embed_batch(self, texts: list[str]) -> list[Embedding | None]: ...


class TitleEmbeddingCache:
    """Bounded LRU cache of document-title embeddings.

    Custom document chunks sharing a title share one title embedding, so the
    reranker asks this cache first and batch-embeds only the misses. Values
    are written once per key after they are fully computed.
    """

    def __init__(self, max_size: int = 500) -> None:
        """Initialize title cache.

        Args:
            max_size: Maximum number of titles kept in memory
        """
        self.max_size = max_size
        self._memory_cache: dict[str, Embedding] = {}
        self._access_order: list[str] = []  # For LRU eviction
        self._cache_hits = 0
        self._cache_misses = 0

    def __len__(self) -> int:
        return len(self._memory_cache)

    def __contains__(self, title: str) -> bool:
        return title in self._memory_cache

    def get(self, title: str) -> Embedding | None:
        """Get a cached title embedding, refreshing its LRU position."""
        if title in self._memory_cache:
            self._cache_hits += 1
            self._access_order.remove(title)
            self._access_order.append(title)
            return self._memory_cache[title]

        self._cache_misses += 1
        return None

    def put(self, title: str, embedding: Embedding) -> None:
        """Store a title embedding with LRU eviction."""
        if title in self._memory_cache:
            self._access_order.remove(title)
            self._access_order.append(title)
            self._memory_cache[title] = embedding
            return

        if len(self._memory_cache) >= self.max_size:
            lru_key = self._access_order.pop(0)
            del self._memory_cache[lru_key]

        self._memory_cache[title] = embedding
        self._access_order.append(title)

    async def get_many(
        self, titles: list[str], provider: EmbeddingProvider
    ) -> dict[str, Embedding]:
        """Resolve embeddings for several titles, batch-embedding the misses.

        Titles whose embedding cannot be computed are simply absent from the
        returned mapping.

        Args:
            titles: Titles to resolve (duplicates are fine)
            provider: Embedding provider used for misses

        Returns:
            Mapping of title to embedding
        """
        resolved: dict[str, Embedding] = {}
        missing: list[str] = []
        for title in dict.fromkeys(t for t in titles if t):
            cached = self.get(title)
            if cached is not None:
                resolved[title] = cached
            else:
                missing.append(title)

        if not missing:
            return resolved

        try:
            embeddings = await provider.embed_batch(missing)
        except Exception as e:
            logger.warning(
                f"Title embedding batch failed for {len(missing)} titles: {e}"
            )
            return resolved

        for title, embedding in zip(missing, embeddings, strict=False):
            if embedding is None:
                continue
            self.put(title, embedding)
            resolved[title] = embedding

        logger.debug(
            f"Resolved {len(resolved)} title embeddings ({len(missing)} computed)"
        )
        return resolved

    def clear(self) -> None:
        """Clear all cached titles."""
        self._memory_cache.clear()
        self._access_order.clear()

    def get_cache_stats(self) -> dict[str, Any]:
        """Get cache performance statistics.

        Returns:
            Dictionary with cache statistics
        """
        total_requests = self._cache_hits + self._cache_misses
        hit_rate = self._cache_hits / total_requests if total_requests > 0 else 0.0
        return {
            "memory_cache_size": len(self._memory_cache),
            "max_cache_size": self.max_size,
            "cache_hits": self._cache_hits,
            "cache_misses": self._cache_misses,
            "hit_rate": round(hit_rate, 3),
        }


class SentenceTransformerEmbedder:
    """Local embedding provider backed by sentence-transformers.

    The model is loaded lazily on first use and encoding runs in a worker
    thread so the event loop stays responsive.
    """

    DEFAULT_MODEL = "sentence-transformers/all-MiniLM-L6-v2"

    def __init__(self, model_name: str | None = None, batch_size: int = 32) -> None:
        self.model_name = model_name or self.DEFAULT_MODEL
        self.batch_size = batch_size
        self._model: Any = None  # Lazy loading (type: SentenceTransformer)

    def _ensure_model(self) -> Any:
        """Lazy-load the embedding model.

        Raises:
            ImportError: If sentence-transformers is not installed
        """
        if self._model is None:
            try:
                from sentence_transformers import SentenceTransformer
            except ImportError as e:
                raise ImportError(
                    "sentence-transformers is required for local embeddings. "
                    "Install with: pip install 'review-context-engine[embeddings]'"
                ) from e

            logger.debug(f"Loading embedding model: {self.model_name}")
            self._model = SentenceTransformer(self.model_name)
        return self._model

    def _encode(self, texts: list[str]) -> list[Embedding]:
        model = self._ensure_model()
        vectors = model.encode(
            texts,
            batch_size=self.batch_size,
            convert_to_numpy=True,
            show_progress_bar=False,
        )
        return [vector.tolist() for vector in vectors]

    async def embed(self, text: str) -> Embedding | None:
        if not text or not text.strip():
            return None
        try:
            vectors = await asyncio.to_thread(self._encode, [text])
        except Exception as e:
            raise EmbeddingError(f"Embedding generation failed: {e}") from e
        return vectors[0]

    async def embed_batch(self, texts: list[str]) -> list[Embedding | None]:
        if not texts:
            return []
        try:
            return await asyncio.to_thread(self._encode, texts)
        except Exception as e:
            raise EmbeddingError(f"Batch embedding generation failed: {e}") from e
