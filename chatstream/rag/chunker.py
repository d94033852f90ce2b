"""
Text Chunking Module

Splits documents into small overlapping chunks before they are embedded.

Chunking strategy:
- Recursive splitting: paragraphs first, then lines, sentences, words
- Overlap: keeps some context shared between neighbouring chunks
- Size: small chunks (256 characters by default) so each embedding stays focused
"""

from typing import List, Dict, Any, Optional
from langchain_text_splitters import RecursiveCharacterTextSplitter

from chatstream.core.config import settings
from chatstream.core.logging import get_logger

logger = get_logger(__name__)


class TextChunker:
    """
    Splits text with LangChain's RecursiveCharacterTextSplitter and tags each
    chunk with its position.
    """

    def __init__(
        self,
        chunk_size: int = settings.INGEST_CHUNK_SIZE,
        chunk_overlap: int = settings.INGEST_CHUNK_OVERLAP,
        separators: Optional[List[str]] = None
    ):
        """
        Initialize text chunker with parameters.

        Args:
            chunk_size: Maximum size of each chunk (characters)
            chunk_overlap: Overlap between chunks (characters)
            separators: Custom separators for splitting
        """
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap

        if separators is None:
            separators = ["\n\n", "\n", ". ", " ", ""]

        self.splitter = RecursiveCharacterTextSplitter(
            chunk_size=chunk_size,
            chunk_overlap=chunk_overlap,
            separators=separators,
            length_function=len,
        )

        logger.info(
            f"Initialized TextChunker: chunk_size={chunk_size}, "
            f"chunk_overlap={chunk_overlap}"
        )

    def chunk_text(
        self,
        text: str,
        metadata: Optional[Dict[str, Any]] = None
    ) -> List[Dict[str, Any]]:
        """
        Split text into chunks with metadata.

        Args:
            text: Input text to chunk
            metadata: Metadata copied onto every chunk (source, filename, ...)

        Returns:
            List of ``{"text": ..., "metadata": {...}}`` dicts
        """
        if not text or not text.strip():
            logger.warning("Empty text provided for chunking")
            return []

        pieces = self.splitter.split_text(text)
        logger.debug(f"Split text into {len(pieces)} chunks")

        return [
            {
                "text": piece,
                "metadata": {
                    **(metadata or {}),
                    "chunk_index": i,
                    "chunk_total": len(pieces),
                },
            }
            for i, piece in enumerate(pieces)
        ]


# Default chunker instance
_chunker = None


def get_chunker() -> TextChunker:
    """Get or create default chunker instance"""
    global _chunker
    if _chunker is None:
        _chunker = TextChunker()
    return _chunker
