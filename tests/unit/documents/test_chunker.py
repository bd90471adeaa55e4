"""Tests for paragraph-based document chunking."""

import hashlib
from types import SimpleNamespace

import pytest

from review_context.core.exceptions import ValidationError
from review_context.documents.chunker import (
    DocumentChunker,
    compute_chunk_hash,
    extract_document_title,
    slugify,
)


@pytest.fixture
def chunker():
    return DocumentChunker(max_chars=1000, min_chars=100)


def paragraphs(count: int, size: int = 300) -> list[str]:
    return [f"{i}" + "x" * (size - len(str(i))) for i in range(count)]


class TestChunkDocument:
    def test_short_document_is_one_chunk(self, chunker):
        content = "# Coding Standards\n\nUse descriptive names.\n\nAvoid globals."
        chunks = chunker.chunk_document({"title": "standards", "content": content})

        assert len(chunks) == 1
        chunk = chunks[0]
        assert chunk.id == "coding-standards_chunk_0"
        assert chunk.document_title == "Coding Standards"
        assert chunk.original_title == "standards"
        assert chunk.total_chunks == 1
        assert chunk.section_start is True

    def test_long_document_indices_are_contiguous(self, chunker):
        paras = paragraphs(10)
        chunks = chunker.chunk_document(
            {"title": "Guide", "content": "\n\n".join(paras)}
        )

        assert len(chunks) == 4
        assert [c.chunk_index for c in chunks] == [0, 1, 2, 3]
        assert all(c.total_chunks == 4 for c in chunks)
        assert all(len(c.content) <= 1000 for c in chunks)

    def test_paragraphs_are_reconstructable(self, chunker):
        paras = paragraphs(7, size=450)
        content = "\n\n\n".join(paras)
        chunks = chunker.chunk_document({"title": "Guide", "content": content})

        rebuilt = "\n\n".join(c.content for c in chunks)
        assert rebuilt == "\n\n".join(paras)

    def test_short_heading_stays_with_following_text(self, chunker):
        content = "# T\n\n" + "y" * 1200
        chunks = chunker.chunk_document({"title": "t", "content": content})
        assert len(chunks) == 1
        assert chunks[0].content.startswith("# T\n\n")

    def test_accepts_objects_with_attributes(self, chunker):
        document = SimpleNamespace(title="Notes", content="Just one paragraph.")
        chunks = chunker.chunk_document(document)
        assert chunks[0].id == "notes_chunk_0"

    @pytest.mark.parametrize(
        "document",
        [
            {},
            {"title": "Empty", "content": ""},
            {"title": "Blank", "content": "   \n\n  "},
            {"title": "Wrong type", "content": 42},
            None,
        ],
    )
    def test_missing_content_raises(self, chunker, document):
        with pytest.raises(ValidationError):
            chunker.chunk_document(document)

    def test_chunk_hash_is_stable(self, chunker):
        first = chunker.chunk_document({"title": "A", "content": "Same text."})
        second = chunker.chunk_document({"title": "B", "content": "  Same text.  "})
        assert first[0].chunk_hash == second[0].chunk_hash
        assert len(first[0].chunk_hash) == 8

    def test_statistics(self, chunker):
        chunker.chunk_document({"title": "A", "content": "abcd"})
        chunker.chunk_document({"title": "B", "content": "abcdef"})
        assert chunker.chunks_generated == 2
        assert chunker.average_chunk_size == 5.0


class TestHelpers:
    def test_slugify(self):
        assert slugify("Hello, World!  Now") == "hello-world-now"
        assert slugify("a -- b") == "a-b"
        assert slugify(None) == ""

    def test_compute_chunk_hash(self):
        expected = hashlib.md5(b"abc").hexdigest()[:8]
        assert compute_chunk_hash("  abc\n") == expected

    def test_title_from_markdown_heading(self):
        assert extract_document_title("file", "intro\n# Real Title \nbody") == (
            "Real Title"
        )

    def test_title_from_embedded_filename(self):
        title = extract_document_title("instruction:./coding_standards.md", "body")
        assert title == "Coding Standards"

    def test_title_as_given(self):
        assert extract_document_title("Security Policy", "body") == "Security Policy"
