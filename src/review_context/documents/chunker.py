"""Paragraph-based chunking of policy and guideline documents.

Documents are split on blank lines and paragraphs are packed into chunks of
roughly ``max_chars`` characters. A chunk is only closed once it has grown
past ``min_chars``, so short headings never end up as chunks of their own.
Each chunk carries a stable id (``<slug>_chunk_<n>``) and an 8-character
content hash used for change detection and cache keys.
"""

import hashlib
import re
from collections.abc import Mapping
from typing import Any

from loguru import logger

from ..config.defaults import (
    CHUNK_HASH_LENGTH,
    DOCUMENT_CHUNK_MAX_CHARS,
    DOCUMENT_CHUNK_MIN_CHARS,
)
from ..core.exceptions import ProcessingError, ValidationError
from ..core.models import DocumentChunk

PARAGRAPH_BREAK = re.compile(r"\n\s*\n")
MARKDOWN_H1 = re.compile(r"^#\s+(.+)$", re.MULTILINE)
# Titles like "instruction:./CODING_STANDARDS.md"
EMBEDDED_FILENAME = re.compile(r":\./([^/]+)\.([a-zA-Z]+)$")


def slugify(text: str | None) -> str:
    """Lowercase, dash-separated identifier safe for chunk ids."""
    if not text:
        return ""
    slug = str(text).lower().strip()
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"[^\w-]+", "", slug)
    return re.sub(r"--+", "-", slug)


def compute_chunk_hash(content: str) -> str:
    """First 8 hex characters of the MD5 digest of trimmed content."""
    return hashlib.md5(content.strip().encode()).hexdigest()[:CHUNK_HASH_LENGTH]


def extract_document_title(title: str, content: str) -> str:
    """Resolve a display title for a document.

    Precedence: first ``# Heading`` in the content, then a filename embedded
    at the end of the title (``name:./my_file.md`` becomes ``My File``), then
    the title as given.
    """
    header_match = MARKDOWN_H1.search(content)
    if header_match:
        return header_match.group(1).strip()

    filename_match = EMBEDDED_FILENAME.search(title or "")
    if filename_match:
        words = filename_match.group(1).replace("_", " ")
        return re.sub(r"\b\w", lambda m: m.group(0).upper(), words)

    return title


def _read_field(document: Any, name: str) -> Any:
    if document is None:
        return None
    if isinstance(document, Mapping):
        return document.get(name)
    return getattr(document, name, None)


class DocumentChunker:
    """Splits documents into bounded, addressable, hash-stamped chunks."""

    def __init__(
        self,
        max_chars: int = DOCUMENT_CHUNK_MAX_CHARS,
        min_chars: int = DOCUMENT_CHUNK_MIN_CHARS,
    ) -> None:
        self.max_chars = max_chars
        self.min_chars = min_chars
        self.chunks_generated = 0
        self.total_chunk_chars = 0

    @property
    def average_chunk_size(self) -> float:
        if not self.chunks_generated:
            return 0.0
        return self.total_chunk_chars / self.chunks_generated

    def chunk_document(self, document: Mapping[str, Any] | Any) -> list[DocumentChunk]:
        """Split one document into chunks.

        Args:
            document: Mapping or object with ``title`` and ``content``

        Returns:
            Chunks with contiguous ``chunk_index`` 0..N-1 and ``total_chunks == N``

        Raises:
            ValidationError: If the document has no content
            ProcessingError: If chunking fails for any other reason
        """
        content = _read_field(document, "content")
        if not isinstance(content, str) or not content.strip():
            raise ValidationError("Document must have content")

        title = _read_field(document, "title")
        title = str(title) if title is not None else ""

        try:
            document_title = extract_document_title(title, content)
            bodies = self._pack_paragraphs(content)
            slug = slugify(document_title)
            total = len(bodies)

            chunks = [
                DocumentChunk(
                    id=f"{slug}_chunk_{index}",
                    content=body,
                    document_title=document_title,
                    chunk_index=index,
                    total_chunks=total,
                    original_title=title,
                    chunk_hash=compute_chunk_hash(body),
                )
                for index, body in enumerate(bodies)
            ]
        except Exception as e:
            logger.error(f"Error chunking document '{title}': {e}")
            raise ProcessingError(f"Document chunking failed: {e}") from e

        self.chunks_generated += len(chunks)
        self.total_chunk_chars += sum(len(chunk.content) for chunk in chunks)
        logger.debug(f"Chunked document '{document_title}' into {len(chunks)} chunks")
        return chunks

    def _pack_paragraphs(self, content: str) -> list[str]:
        bodies: list[str] = []
        current = ""

        for raw_section in PARAGRAPH_BREAK.split(content):
            section = raw_section.strip()
            if not section:
                continue

            if (
                len(current) + len(section) > self.max_chars
                and len(current) > self.min_chars
            ):
                bodies.append(current.strip())
                current = section
            else:
                current = f"{current}\n\n{section}" if current else section

        if current.strip():
            bodies.append(current.strip())

        return bodies
