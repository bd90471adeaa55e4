"""Document chunking and custom document processing."""

from .chunker import DocumentChunker
from .processor import CustomDocumentProcessor

__all__ = ["CustomDocumentProcessor", "DocumentChunker"]
