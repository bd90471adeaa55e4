"""Data models shared by the chunker, scorers and aggregator.

Design Philosophy:
    - Every retrievable context item (code example, guideline chunk, PR comment,
      custom document chunk) is a ``ScoredCandidate``: one envelope carrying the
      score and provenance, with a ``kind`` tag and a free-form ``metadata``
      payload for the fields specific to each source
    - Scorers and the aggregator only read and write the envelope
    - Document chunks are immutable once created; ``total_chunks`` is filled in
      by building the final instances after the chunking pass
"""

import posixpath
import re
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from .similarity import clamp_score

TEST_FILE_PATTERN = re.compile(r"\.test\.|\.spec\.|_test\.|_spec\.|^test_")


def is_test_file(file_path: str) -> bool:
    return bool(TEST_FILE_PATTERN.search(posixpath.basename(file_path)))


class Area(StrEnum):
    """Coarse topic areas that carry special meaning during scoring.

    Areas are open-ended strings (a classifier may return anything); these are
    the values the scoring rules treat specially.
    """

    UNKNOWN = "Unknown"
    GENERAL = "General"
    GENERAL_JS_TS = "GeneralJS_TS"
    GENERAL_PYTHON = "GeneralPython"
    FRONTEND = "Frontend"
    BACKEND = "Backend"
    DEVOPS = "DevOps"
    DATABASE = "Database"
    TESTING = "Testing"
    TOOLING_INTERNAL = "ToolingInternal"
    GENERAL_PROJECT_DOC = "GeneralProjectDoc"
    DOCUMENTATION = "Documentation"
    OPERATIONS = "Operations"
    DEVELOPMENT = "Development"
    LEGAL = "Legal"
    SETUP = "Setup"


class CandidateKind(StrEnum):
    """Source kind of a retrieved context item."""

    CODE_EXAMPLE = "code"
    GUIDELINE = "documentation-chunk"
    PR_COMMENT = "pr-comment"
    CUSTOM_DOCUMENT = "custom-document-chunk"


@dataclass
class InferredContext:
    """What a reviewed file or a candidate document is about."""

    area: str = Area.UNKNOWN.value
    dominant_tech: list[str] = field(default_factory=list)
    keywords: list[str] = field(default_factory=list)
    is_general_purpose_readme_style: bool = False
    fast_path: bool = False

    @property
    def is_known(self) -> bool:
        return self.area != Area.UNKNOWN

    def shares_tech_with(self, other: "InferredContext") -> bool:
        """True when any dominant technology appears in both contexts."""
        mine = {tech.lower() for tech in self.dominant_tech}
        return any(tech.lower() in mine for tech in other.dominant_tech)

    def to_dict(self) -> dict[str, Any]:
        return {
            "area": str(self.area),
            "dominantTech": list(self.dominant_tech),
            "keywords": list(self.keywords),
            "isGeneralPurposeReadmeStyle": self.is_general_purpose_readme_style,
            "fastPath": self.fast_path,
        }


@dataclass
class Provenance:
    """Where a candidate came from, as far as scoring cares."""

    area: str | None = None
    dominant_tech: list[str] = field(default_factory=list)
    heading_text: str | None = None


@dataclass
class ScoredCandidate:
    """A retrievable context item with its similarity score.

    ``similarity`` is the current (final) score and is always kept in [0, 1].
    ``base_similarity`` preserves the raw retrieval score before reranking.

    Attributes:
        kind: Source kind (code example, guideline, comment, custom doc)
        path: File path of the source (document title for custom documents)
        content: Text shown to the reviewer
        similarity: Final score, clamped to [0, 1]
        base_similarity: Raw similarity before reranking
        id: Stable identifier (comment id, chunk id); None for code examples
        embedding: Candidate embedding when available
        reranked: True once a reranker has rescored the candidate
        provenance: Area, technologies and heading of the source
        document_title: Title of the owning document, if any
        is_documentation: True for documentation entries returned by code search
        metadata: Source-specific fields passed through untouched
    """

    kind: CandidateKind
    path: str
    content: str
    similarity: float = 0.0
    base_similarity: float | None = None
    id: str | None = None
    embedding: list[float] | None = None
    reranked: bool = False
    provenance: Provenance = field(default_factory=Provenance)
    document_title: str | None = None
    is_documentation: bool = False
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.base_similarity is None:
            self.base_similarity = self.similarity
        self.similarity = clamp_score(self.similarity)

    @property
    def key(self) -> str | None:
        """Deduplication key within the candidate's pool."""
        if self.kind == CandidateKind.CODE_EXAMPLE:
            return self.path or None
        if self.kind == CandidateKind.GUIDELINE:
            return f"{self.path}-{self.provenance.heading_text or ''}"
        return self.id

    def rescore(self, score: float) -> None:
        """Replace the final score (clamped) and mark the candidate reranked."""
        self.similarity = clamp_score(score)
        self.reranked = True

    @classmethod
    def from_search_result(
        cls, data: dict[str, Any], kind: CandidateKind | None = None
    ) -> "ScoredCandidate":
        """Build a candidate from a vector-database result mapping.

        Accepts the ``{path, content, similarity, type, metadata}`` shape plus
        the optional fields the search backends attach (``id``,
        ``heading_text``, ``document_title``, ``isDocumentation``,
        ``relevanceScore`` for comments, ``embedding``).
        """
        if kind is None:
            try:
                kind = CandidateKind(data.get("type", CandidateKind.CODE_EXAMPLE))
            except ValueError:
                kind = CandidateKind.CODE_EXAMPLE

        score = data.get("similarity")
        if kind == CandidateKind.PR_COMMENT:
            score = data.get("relevanceScore", score)

        metadata = dict(data.get("metadata") or {})
        raw_id = data.get("id")
        return cls(
            kind=kind,
            path=str(data.get("path") or data.get("file_path") or ""),
            content=str(data.get("content") or ""),
            similarity=float(score or 0.0),
            id=str(raw_id) if raw_id is not None else None,
            embedding=data.get("embedding"),
            provenance=Provenance(
                area=data.get("area"),
                dominant_tech=list(data.get("dominantTech") or []),
                heading_text=data.get("heading_text") or data.get("headingText"),
            ),
            document_title=data.get("document_title"),
            is_documentation=bool(data.get("isDocumentation", False)),
            metadata=metadata,
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "type": self.kind.value,
            "path": self.path,
            "content": self.content,
            "similarity": self.similarity,
            "baseSimilarity": self.base_similarity,
            "reranked": self.reranked,
            "metadata": dict(self.metadata),
        }
        if self.id is not None:
            data["id"] = self.id
        if self.provenance.heading_text:
            data["heading_text"] = self.provenance.heading_text
        if self.document_title:
            data["document_title"] = self.document_title
        if self.kind == CandidateKind.PR_COMMENT:
            data["relevanceScore"] = self.similarity
        return data


@dataclass(frozen=True)
class DocumentChunk:
    """Addressable, hash-stamped slice of a document."""

    id: str
    content: str
    document_title: str
    chunk_index: int
    total_chunks: int
    original_title: str
    chunk_hash: str

    @property
    def section_start(self) -> bool:
        return self.chunk_index == 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "content": self.content,
            "document_title": self.document_title,
            "chunk_index": self.chunk_index,
            "metadata": {
                "section_start": self.section_start,
                "total_chunks": self.total_chunks,
                "original_title": self.original_title,
                "chunk_hash": self.chunk_hash,
            },
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DocumentChunk":
        metadata = data.get("metadata") or {}
        return cls(
            id=data["id"],
            content=data["content"],
            document_title=data["document_title"],
            chunk_index=int(data["chunk_index"]),
            total_chunks=int(metadata.get("total_chunks", 1)),
            original_title=metadata.get("original_title", data["document_title"]),
            chunk_hash=metadata.get("chunk_hash", ""),
        )


@dataclass(frozen=True)
class CustomDocumentChunk:
    """A caller-supplied policy document chunk with its embedding."""

    chunk: DocumentChunk
    embedding: list[float]
    project_path: str
    created_at: str

    type = CandidateKind.CUSTOM_DOCUMENT.value

    @property
    def id(self) -> str:
        return self.chunk.id

    @property
    def content(self) -> str:
        return self.chunk.content

    @property
    def document_title(self) -> str:
        return self.chunk.document_title

    def to_candidate(self, similarity: float) -> ScoredCandidate:
        return ScoredCandidate(
            kind=CandidateKind.CUSTOM_DOCUMENT,
            path=self.document_title,
            content=self.content,
            similarity=similarity,
            id=self.id,
            embedding=self.embedding,
            document_title=self.document_title,
            metadata={
                "chunk_index": self.chunk.chunk_index,
                "total_chunks": self.chunk.total_chunks,
                "chunk_hash": self.chunk.chunk_hash,
                "project_path": self.project_path,
            },
        )

    def to_dict(self) -> dict[str, Any]:
        data = self.chunk.to_dict()
        data.update(
            {
                "embedding": list(self.embedding),
                "type": self.type,
                "project_path": self.project_path,
                "created_at": self.created_at,
            }
        )
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CustomDocumentChunk":
        return cls(
            chunk=DocumentChunk.from_dict(data),
            embedding=list(data.get("embedding") or []),
            project_path=data.get("project_path", ""),
            created_at=data.get("created_at", ""),
        )


@dataclass(frozen=True)
class PRFileChange:
    """One changed file of a changeset as handed to the review pipeline.

    Attributes:
        file_path: Path of the changed file
        diff_content: Unified diff for the file
        full_content: Full file content after the change (None for deletions
            or when it was not fetched)
        language: Language name; derived from the extension when omitted
    """

    file_path: str
    diff_content: str = ""
    full_content: str | None = None
    language: str | None = None

    @property
    def review_text(self) -> str:
        """Content used for retrieval queries: the full file, else the diff."""
        return self.full_content or self.diff_content

    @property
    def is_test(self) -> bool:
        return is_test_file(self.file_path.replace("\\", "/"))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PRFileChange":
        """Build from ``{filePath, diffContent, content | fullContent, language}``."""
        full_content = data.get("content")
        if full_content is None:
            full_content = data.get("fullContent")
        return cls(
            file_path=str(data.get("filePath") or data.get("file_path") or ""),
            diff_content=data.get("diffContent") or data.get("diff_content") or "",
            full_content=full_content,
            language=data.get("language"),
        )
