"""Prompt template and output schema for context-augmented change review.

The prompt carries every changed file of a review unit (a whole changeset, a
chunk of one, or a single file) together with the context retrieved for it:
project guidelines, similar code, historical review comments and the caller's
custom policy documents. The model answers with one JSON object grouping
issues by file.
"""

from collections.abc import Sequence
from typing import Any

from ..core.models import PRFileChange, ScoredCandidate
from ..retrieval.aggregator import AggregatedContext

# Very large diffs are truncated to head and tail
MAX_DIFF_LINES = 400
DIFF_EDGE_LINES = 200
MAX_FULL_CONTENT_CHARS = 20000
MAX_SNIPPET_CHARS = 1500

REVIEW_PROMPT = """You are an expert code reviewer reviewing changes using the project's own guidelines, code and review history as context.

{chunk_note}## Custom Instructions

{custom_instructions}

## Project Guidelines

{guidelines}

## Similar Code in the Project

{code_examples}

## Historical Review Comments

{pr_comments}

## Changed Files

{files}

## Your Task

Review every changed file. Focus on the lines that changed, using the full
file content only to understand them. Prefer the project's guidelines and
custom instructions over general preferences, and flag inconsistencies with
the similar code shown above.

For each issue provide:
- `type`: "bug", "security", "performance", "style", "maintainability" or "testing"
- `severity`: "critical", "high", "medium", "low" or "info"
- `description`: Clear, actionable explanation of the problem
- `lineNumbers`: Affected line numbers in the new file (may be empty)
- `suggestion`: Concrete fix (null if none)

## Output Format

Return ONLY a JSON object (no additional text):

```json
{{
  "summary": "One paragraph summary of the review",
  "fileSpecificIssues": {{
    "src/handlers/user.js": [
      {{
        "type": "bug",
        "severity": "high",
        "description": "Missing null check in handler before reading user.id",
        "lineNumbers": [42],
        "suggestion": "Return early with a 400 response when user is undefined"
      }}
    ]
  }},
  "crossFileIssues": [],
  "recommendations": []
}}
```

Review the changes and return your result:"""

CHUNK_NOTE = """## Review Scope

This is part {chunk_number} of {total_chunks} of a large pull request that is
reviewed in parallel chunks. Only the files below are in this part; do not
report issues about files you cannot see.

"""

ISSUE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "type": {"type": "string"},
        "severity": {
            "type": "string",
            "enum": ["critical", "high", "medium", "low", "info"],
        },
        "description": {"type": "string"},
        "lineNumbers": {"type": "array", "items": {"type": "integer"}},
        "suggestion": {"type": ["string", "null"]},
    },
    "required": ["type", "severity", "description"],
}

REVIEW_OUTPUT_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "summary": {"type": "string"},
        "fileSpecificIssues": {
            "type": "object",
            "additionalProperties": {"type": "array", "items": ISSUE_SCHEMA},
        },
        "crossFileIssues": {"type": "array", "items": ISSUE_SCHEMA},
        "recommendations": {"type": "array", "items": {"type": "string"}},
    },
    "required": ["summary", "fileSpecificIssues"],
}


def _truncate_diff(diff: str) -> str:
    lines = diff.splitlines()
    if len(lines) <= MAX_DIFF_LINES:
        return diff
    return "\n".join(
        lines[:DIFF_EDGE_LINES]
        + ["... (diff truncated) ..."]
        + lines[-DIFF_EDGE_LINES:]
    )


def _format_candidates(candidates: Sequence[ScoredCandidate], empty: str) -> str:
    if not candidates:
        return empty
    sections = []
    for candidate in candidates:
        header = f"### {candidate.path}"
        if candidate.provenance.heading_text:
            header += f" ({candidate.provenance.heading_text})"
        sections.append(f"{header} [relevance: {candidate.similarity:.2f}]")
        sections.append(candidate.content[:MAX_SNIPPET_CHARS])
        sections.append("")
    return "\n".join(sections).strip()


def format_files(files: Sequence[PRFileChange]) -> str:
    sections = []
    for file in files:
        sections.append(f"### File: {file.file_path}")
        sections.append("")
        sections.append("**Diff:**")
        sections.append("```diff")
        sections.append(_truncate_diff(file.diff_content or ""))
        sections.append("```")
        if file.full_content:
            sections.append("")
            sections.append("**Full content after change:**")
            sections.append("```")
            sections.append(file.full_content[:MAX_FULL_CONTENT_CHARS])
            sections.append("```")
        sections.append("")
        sections.append("---")
        sections.append("")
    return "\n".join(sections).strip()


def build_review_prompt(
    files: Sequence[PRFileChange],
    context: AggregatedContext,
    *,
    chunk_number: int | None = None,
    total_chunks: int | None = None,
) -> str:
    """Render the review prompt for one review unit.

    Args:
        files: Changed files reviewed together
        context: Retrieved context shared by those files
        chunk_number: 1-based chunk number for chunked reviews
        total_chunks: Total number of chunks for chunked reviews

    Returns:
        Prompt text
    """
    chunk_note = ""
    if chunk_number is not None and total_chunks is not None and total_chunks > 1:
        chunk_note = CHUNK_NOTE.format(
            chunk_number=chunk_number, total_chunks=total_chunks
        )

    custom_instructions = _format_candidates(
        context.custom_doc_chunks,
        "No custom instructions provided.",
    )
    return REVIEW_PROMPT.format(
        chunk_note=chunk_note,
        custom_instructions=custom_instructions,
        guidelines=_format_candidates(
            context.guidelines, "No matching project guidelines found."
        ),
        code_examples=_format_candidates(
            context.code_examples, "No similar code found."
        ),
        pr_comments=_format_candidates(
            context.pr_comments,
            "No relevant historical review comments found.",
        ),
        files=format_files(files),
    )
