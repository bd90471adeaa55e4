"""Detection of generic project documents (README, CHANGELOG, RUNBOOK, ...).

Generic documents describe the project as a whole rather than a narrow
technical topic. Recognising them by name is cheap, so the guideline scorer
uses these helpers as a fast path instead of classifying their content.
"""

import posixpath
import re

from ..core.models import Area, InferredContext

GENERIC_DOC_REGEX = re.compile(
    r"(README|RUNBOOK|CONTRIBUTING|CHANGELOG|LICENSE|SETUP|INSTALL)(\.md|$)",
    re.IGNORECASE,
)

GENERIC_TITLE_PATTERNS = (
    "readme",
    "runbook",
    "changelog",
    "contributing",
    "license",
    "setup",
    "installation",
    "getting started",
)

# Filename fragment -> (area, dominant technologies), first match wins
GENERIC_DOC_CONTEXTS: tuple[tuple[tuple[str, ...], Area, list[str]], ...] = (
    (("readme",), Area.DOCUMENTATION, ["markdown", "documentation"]),
    (("runbook",), Area.OPERATIONS, ["operations", "deployment", "devops"]),
    (("changelog",), Area.DOCUMENTATION, ["versioning", "releases"]),
    (("contributing",), Area.DEVELOPMENT, ["git", "development", "contribution"]),
    (("license",), Area.LEGAL, ["licensing"]),
    (("setup", "install"), Area.SETUP, ["installation", "setup", "configuration"]),
)


def is_generic_document(doc_path: str | None, doc_h1: str | None = None) -> bool:
    """Check whether a document is generic project documentation.

    Args:
        doc_path: Document file path
        doc_h1: Document H1 title (optional)

    Returns:
        True for README/RUNBOOK/CHANGELOG-style documents
    """
    if not doc_path:
        return False

    if GENERIC_DOC_REGEX.search(doc_path):
        return True

    if doc_h1:
        lower_h1 = doc_h1.lower()
        return any(pattern in lower_h1 for pattern in GENERIC_TITLE_PATTERNS)

    return False


def get_generic_document_context(doc_path: str) -> InferredContext:
    """Pre-computed context for a generic document, skipping inference.

    Args:
        doc_path: Document file path

    Returns:
        Context marked as README-style and fast-path
    """
    file_name = posixpath.basename(doc_path.replace("\\", "/")).lower()

    for fragments, area, dominant_tech in GENERIC_DOC_CONTEXTS:
        if any(fragment in file_name for fragment in fragments):
            return InferredContext(
                area=area.value,
                dominant_tech=list(dominant_tech),
                is_general_purpose_readme_style=True,
                fast_path=True,
            )

    return InferredContext(
        area=Area.GENERAL.value,
        is_general_purpose_readme_style=True,
        fast_path=True,
    )
