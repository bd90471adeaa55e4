"""Project-scoped storage for processed custom document chunks.

Two layers:
    - ``ProjectChunkStore``: in-memory map of resolved project path to chunks,
      bounded by project count with LRU eviction
    - ``DocumentChunkCache``: on-disk JSON files (one per project) so processed
      chunks survive across runs until explicitly cleared

Both are explicit objects passed into the processor; nothing is module-global.
"""

import hashlib
from pathlib import Path
from typing import Any

import aiofiles
import orjson
from loguru import logger

from .models import CustomDocumentChunk


def resolve_project_key(project_path: str | Path) -> str:
    """Normalize a project path into the key used by both storage layers."""
    return str(Path(project_path).expanduser().resolve())


class ProjectChunkStore:
    """In-memory per-project chunk store with LRU eviction by project."""

    def __init__(self, max_projects: int = 50) -> None:
        self.max_projects = max_projects
        self._chunks: dict[str, list[CustomDocumentChunk]] = {}
        self._access_order: list[str] = []

    def get(self, project_path: str | Path) -> list[CustomDocumentChunk] | None:
        key = resolve_project_key(project_path)
        if key not in self._chunks:
            return None
        self._access_order.remove(key)
        self._access_order.append(key)
        return list(self._chunks[key])

    def put(self, project_path: str | Path, chunks: list[CustomDocumentChunk]) -> None:
        key = resolve_project_key(project_path)
        if key in self._chunks:
            self._access_order.remove(key)
        elif len(self._chunks) >= self.max_projects:
            lru_key = self._access_order.pop(0)
            del self._chunks[lru_key]
            logger.debug(f"Evicted custom document chunks for {lru_key}")

        self._chunks[key] = list(chunks)
        self._access_order.append(key)

    def remove(self, project_path: str | Path) -> bool:
        key = resolve_project_key(project_path)
        if key not in self._chunks:
            return False
        del self._chunks[key]
        self._access_order.remove(key)
        return True

    def clear(self) -> None:
        self._chunks.clear()
        self._access_order.clear()

    def get_stats(self) -> dict[str, Any]:
        return {
            "projects": len(self._chunks),
            "chunks": sum(len(chunks) for chunks in self._chunks.values()),
            "max_projects": self.max_projects,
        }


class DocumentChunkCache:
    """Disk cache of processed custom document chunks, one file per project."""

    def __init__(self, cache_dir: Path) -> None:
        """Initialize chunk cache.

        Args:
            cache_dir: Directory to store cached chunk files
        """
        self.cache_dir = cache_dir
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self._cache_hits = 0
        self._cache_misses = 0

    def _cache_file(self, project_path: str | Path) -> Path:
        key = resolve_project_key(project_path)
        digest = hashlib.sha256(key.encode()).hexdigest()[:16]
        return self.cache_dir / f"custom-docs-{digest}.json"

    async def load(self, project_path: str | Path) -> list[CustomDocumentChunk] | None:
        """Load cached chunks for a project, or None when nothing is cached."""
        cache_file = self._cache_file(project_path)
        if not cache_file.exists():
            self._cache_misses += 1
            return None

        try:
            async with aiofiles.open(cache_file, "rb") as f:
                payload = orjson.loads(await f.read())
            chunks = [CustomDocumentChunk.from_dict(item) for item in payload["chunks"]]
        except Exception as e:
            logger.warning(f"Failed to load cached document chunks: {e}")
            self._cache_misses += 1
            return None

        self._cache_hits += 1
        return chunks

    async def store(
        self, project_path: str | Path, chunks: list[CustomDocumentChunk]
    ) -> None:
        """Persist chunks for a project, replacing any previous entry."""
        cache_file = self._cache_file(project_path)
        payload = {
            "project_path": resolve_project_key(project_path),
            "chunks": [chunk.to_dict() for chunk in chunks],
        }
        try:
            async with aiofiles.open(cache_file, "wb") as f:
                await f.write(orjson.dumps(payload))
        except Exception as e:
            logger.warning(f"Failed to cache document chunks: {e}")

    def invalidate(self, project_path: str | Path) -> bool:
        """Delete the cache file for a project."""
        cache_file = self._cache_file(project_path)
        if not cache_file.exists():
            return False
        cache_file.unlink()
        return True

    def clear(self) -> int:
        """Delete every cached project file.

        Returns:
            Number of files removed
        """
        removed = 0
        for cache_file in self.cache_dir.glob("custom-docs-*.json"):
            cache_file.unlink()
            removed += 1
        return removed

    def get_cache_stats(self) -> dict[str, Any]:
        total_requests = self._cache_hits + self._cache_misses
        hit_rate = self._cache_hits / total_requests if total_requests > 0 else 0.0
        disk_files = (
            len(list(self.cache_dir.glob("custom-docs-*.json")))
            if self.cache_dir.exists()
            else 0
        )
        return {
            "cache_hits": self._cache_hits,
            "cache_misses": self._cache_misses,
            "hit_rate": round(hit_rate, 3),
            "disk_cache_files": disk_files,
        }
