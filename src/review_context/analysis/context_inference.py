"""Heuristic inference of topic area, technologies and keywords.

Two pure entry points:
    - ``infer_context_from_code_content``: what a reviewed source file is about
    - ``infer_context_from_document_content``: what a guideline document is
      about, using an optional classifier result and otherwise local rules
      (technology mentions, path hints, README-style phrasing)

Nothing here touches the embedding service, so every rule can be unit-tested
in isolation and swapped out independently of the scorers.
"""

import posixpath
import re
from collections import Counter
from collections.abc import Iterable, Mapping
from typing import Any, Protocol

from ..core.models import Area, InferredContext, ScoredCandidate

CODE_KEYWORDS = (
    "api",
    "component",
    "module",
    "function",
    "class",
    "hook",
    "service",
    "database",
    "query",
    "state",
    "props",
)

FRONTEND_MARKERS = (
    "react",
    "usestate",
    "useeffect",
    "angular",
    "vue",
    "document.getelementbyid",
    "jsx",
    ".tsx",
)
FRONTEND_TECH = (("react", "React"), ("angular", "Angular"), ("vue", "Vue"))
BACKEND_JS_MARKERS = (
    "require('express')",
    "http.createserver",
    "fs.readfilesync",
    "process.env",
)

# Technology mention -> (display name, area it points to)
TECHNOLOGY_HINTS: dict[str, tuple[str, Area]] = {
    "react": ("React", Area.FRONTEND),
    "vue": ("Vue", Area.FRONTEND),
    "angular": ("Angular", Area.FRONTEND),
    "node.js": ("Node.js", Area.BACKEND),
    "express": ("Express", Area.BACKEND),
    "django": ("Django", Area.BACKEND),
    "flask": ("Flask", Area.BACKEND),
    "fastapi": ("FastAPI", Area.BACKEND),
    "postgres": ("PostgreSQL", Area.DATABASE),
    "mysql": ("MySQL", Area.DATABASE),
    "mongodb": ("MongoDB", Area.DATABASE),
    "docker": ("Docker", Area.DEVOPS),
    "kubernetes": ("Kubernetes", Area.DEVOPS),
    "terraform": ("Terraform", Area.DEVOPS),
    "jest": ("Jest", Area.TESTING),
    "pytest": ("pytest", Area.TESTING),
}

TECH_AREA_BOOST = 0.3
PATH_HINT_BOOST = 0.5
AREA_SELECTION_THRESHOLD = 0.4
MAX_CHARS_FROM_CHUNKS = 2000
MAX_DOCUMENT_KEYWORDS = 15

TOOLING_PATH_HINTS = ("/tools/", "/scripts/", "/cli/")
TOOLING_TITLE_HINTS = (" cli", " tool")
BACKEND_PATH_HINTS = ("/api/", "/server/", "/db/", "/backend/")
BACKEND_TITLE_HINTS = (" api", " server", " backend")
FRONTEND_PATH_HINTS = ("/frontend/", "/ui/", "/components/", "/views/", "/pages/")
FRONTEND_TITLE_HINTS = (" frontend", " user interface")
PROJECT_DOC_SUFFIXES = ("readme.md", "runbook.md", "contributing.md", "changelog.md")

README_KEYWORD_POINTS: dict[str, float] = {
    "getting started": 2,
    "installation": 2,
    "setup": 2,
    "how to run": 2,
    "usage": 1,
    "configuration": 1,
    "deployment": 1,
    "troubleshooting": 1,
    "prerequisites": 1,
    "table of contents": 1,
    "contributing": 0.5,
    "license": 0.5,
    "overview": 1,
    "introduction": 1,
    "purpose": 1,
    "project structure": 0.5,
}

TITLE_STOPWORDS = frozenset(
    {"the", "for", "and", "with", "into", "about", "using", "docs", "this", "that"}
)
FREQUENCY_STOPWORDS = frozenset(
    {"the", "and", "for", "with", "this", "that", "from", "into"}
)


class DocumentClassifier(Protocol):
    """Optional zero-shot classifier returning ``{area, dominantTech, keywords}``."""

    async def classify(self, text: str) -> Mapping[str, Any]: ...


def infer_context_from_code_content(content: str, language: str) -> InferredContext:
    """Infer area, technologies and keywords for a reviewed source file.

    Args:
        content: Source text (full file or diff)
        language: Language name (``javascript``, ``typescript``, ``python``, ...)

    Returns:
        Inferred context; area stays ``Unknown`` for unsupported languages
    """
    context = InferredContext()
    lower_code = (content or "").lower()
    language = (language or "").lower()

    if language in ("javascript", "typescript"):
        if any(marker in lower_code for marker in FRONTEND_MARKERS):
            context.area = Area.FRONTEND.value
            for marker, tech in FRONTEND_TECH:
                if marker in lower_code:
                    context.dominant_tech.append(tech)
        elif any(marker in lower_code for marker in BACKEND_JS_MARKERS):
            context.area = Area.BACKEND.value
            context.dominant_tech.append(
                "Node.js/Express" if "express" in lower_code else "Node.js"
            )
        else:
            context.area = Area.GENERAL_JS_TS.value
    elif language == "python":
        if "django" in lower_code or "flask" in lower_code:
            context.area = Area.BACKEND.value
            if "django" in lower_code:
                context.dominant_tech.append("Django")
            if "flask" in lower_code:
                context.dominant_tech.append("Flask")
        else:
            context.area = Area.GENERAL_PYTHON.value

    context.keywords = [word for word in CODE_KEYWORDS if word in lower_code]
    context.dominant_tech = list(dict.fromkeys(context.dominant_tech))
    return context


def build_document_analysis_text(
    doc_path: str, h1: str | None, chunks: Iterable[ScoredCandidate] = ()
) -> str:
    """Assemble the lowercase text used to classify a document.

    The H1 is counted twice and the filename once, followed by up to
    ``MAX_CHARS_FROM_CHUNKS`` characters of chunk headings and content.
    """
    lower_h1 = (h1 or "").lower()
    pieces: list[str] = []
    char_count = 0

    for chunk in chunks:
        if char_count >= MAX_CHARS_FROM_CHUNKS:
            break
        heading = (chunk.provenance.heading_text or "").lower()
        text = f"{heading} " if heading and heading != lower_h1 else ""
        text += (chunk.content or "").lower()
        pieces.append(text[: MAX_CHARS_FROM_CHUNKS - char_count])
        char_count += len(text)

    file_stem = re.sub(
        r"\.(md|rst|txt|mdx)$",
        "",
        posixpath.basename(doc_path.lower().replace("\\", "/")),
        flags=re.IGNORECASE,
    )
    primary = f"{lower_h1} {lower_h1} {file_stem.replace('-', ' ')}"
    full_text = re.sub(r"\s+", " ", f"{primary} {' '.join(pieces)}").strip()
    return full_text or doc_path.lower()


def detect_technologies(text: str) -> list[str]:
    """Technologies mentioned in text, in vocabulary order."""
    found = []
    for term, (name, _area) in TECHNOLOGY_HINTS.items():
        if re.search(rf"(?<![\w.]){re.escape(term)}(?![\w])", text):
            found.append(name)
    return list(dict.fromkeys(found))


def score_document_areas(
    doc_path: str, h1: str | None, dominant_tech: Iterable[str]
) -> dict[str, float]:
    """Score candidate areas from technologies and path/title hints."""
    lower_path = doc_path.lower().replace("\\", "/")
    lower_h1 = (h1 or "").lower()
    scores: Counter[str] = Counter()

    tech_areas = {name.lower(): area for name, area in TECHNOLOGY_HINTS.values()}
    for tech in dominant_tech:
        area = tech_areas.get(tech.lower())
        if area is not None:
            scores[area.value] += TECH_AREA_BOOST

    if any(h in lower_path for h in TOOLING_PATH_HINTS) or any(
        h in lower_h1 for h in TOOLING_TITLE_HINTS
    ):
        scores[Area.TOOLING_INTERNAL.value] += PATH_HINT_BOOST
    if any(h in lower_path for h in BACKEND_PATH_HINTS) or any(
        h in lower_h1 for h in BACKEND_TITLE_HINTS
    ):
        scores[Area.BACKEND.value] += PATH_HINT_BOOST
    if any(h in lower_path for h in FRONTEND_PATH_HINTS) or any(
        h in lower_h1 for h in FRONTEND_TITLE_HINTS
    ):
        scores[Area.FRONTEND.value] += PATH_HINT_BOOST
    if lower_path.endswith(PROJECT_DOC_SUFFIXES):
        scores[Area.GENERAL_PROJECT_DOC.value] += PATH_HINT_BOOST

    return dict(scores)


def readme_style_points(text: str) -> float:
    """Sum of README-phrasing points found in the analysis text."""
    return sum(
        points for phrase, points in README_KEYWORD_POINTS.items() if phrase in text
    )


def is_readme_style(doc_path: str, area: str, text: str) -> bool:
    """Whether a document reads like a general-purpose README."""
    lower_path = doc_path.lower().replace("\\", "/")
    points = readme_style_points(text)
    directory = lower_path.rsplit("/", 1)[0] if "/" in lower_path else ""
    is_root_file = "/" not in directory

    if points >= 5:
        return True
    if is_root_file and lower_path.startswith("readme") and points >= 3:
        return True
    if area == Area.GENERAL_PROJECT_DOC:
        return True
    return area == Area.TOOLING_INTERNAL and "readme" in lower_path and points >= 2


def extract_document_keywords(
    h1: str | None, dominant_tech: Iterable[str], text: str
) -> list[str]:
    """Technologies and H1 words, falling back to frequent words in the text."""
    keywords = [tech.lower() for tech in dominant_tech]

    if h1:
        title_words = [
            word
            for word in re.split(r"[^a-z0-9-]+", h1.lower())
            if len(word) > 3 and word not in TITLE_STOPWORDS
        ]
        keywords.extend(title_words[:5])

    if not keywords:
        frequencies = Counter(
            word
            for word in text.split()
            if len(word) > 4 and word not in FREQUENCY_STOPWORDS
        )
        keywords = [
            word for word, _count in frequencies.most_common(MAX_DOCUMENT_KEYWORDS)
        ]

    return list(dict.fromkeys(keywords))[:MAX_DOCUMENT_KEYWORDS]


def infer_context_from_document_content(
    doc_path: str,
    h1: str | None,
    chunks: Iterable[ScoredCandidate] = (),
    classification: Mapping[str, Any] | None = None,
) -> InferredContext:
    """Infer what a guideline document is about.

    Args:
        doc_path: Document path
        h1: Document title
        chunks: Sample of the document's retrieved chunks
        classification: Optional classifier output with ``area``,
            ``dominantTech`` and ``keywords``

    Returns:
        Inferred context for the document
    """
    text = build_document_analysis_text(doc_path, h1, chunks)

    if classification is not None:
        area = str(classification.get("area") or Area.UNKNOWN.value)
        dominant_tech = list(classification.get("dominantTech") or [])
        keywords = list(classification.get("keywords") or [])
        if not keywords:
            keywords = extract_document_keywords(h1, dominant_tech, text)
    else:
        dominant_tech = detect_technologies(text)
        area_scores = score_document_areas(doc_path, h1, dominant_tech)
        area = Area.UNKNOWN.value
        if area_scores:
            best_area, best_score = max(area_scores.items(), key=lambda item: item[1])
            if best_score >= AREA_SELECTION_THRESHOLD:
                area = best_area
        keywords = extract_document_keywords(h1, dominant_tech, text)

    return InferredContext(
        area=area,
        dominant_tech=dominant_tech,
        keywords=keywords[:MAX_DOCUMENT_KEYWORDS],
        is_general_purpose_readme_style=is_readme_style(doc_path, area, text),
    )
