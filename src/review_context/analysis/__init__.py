"""Stateless heuristics for topic-area inference and generic-document detection."""

from .context_inference import (
    DocumentClassifier,
    infer_context_from_code_content,
    infer_context_from_document_content,
)
from .document_detection import get_generic_document_context, is_generic_document

__all__ = [
    "DocumentClassifier",
    "get_generic_document_context",
    "infer_context_from_code_content",
    "infer_context_from_document_content",
    "is_generic_document",
]
