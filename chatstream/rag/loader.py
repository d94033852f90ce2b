"""
Document Loading Module

Reads .pdf, .txt, .md and .docx files into plain text for ingestion.
"""

from pathlib import Path
from typing import List, Dict, Any, Optional
from PyPDF2 import PdfReader
import docx

from chatstream.core.config import settings
from chatstream.core.errors import ValidationError
from chatstream.core.logging import get_logger

logger = get_logger(__name__)


def clean_text(text: str) -> str:
    """Drop lone surrogates and replacement characters PDF extraction leaves behind."""
    if not text:
        return text
    text = text.encode("utf-8", "replace").decode("utf-8", "replace")
    return text.replace("\ufffd", "")


class DocumentLoader:
    """
    Loads documents by file extension.
    Supports: PDF, TXT, Markdown, DOCX
    """

    SUPPORTED_FORMATS = {
        ".pdf": "load_pdf",
        ".txt": "load_text",
        ".md": "load_text",
        ".docx": "load_docx"
    }

    @staticmethod
    def load_pdf(file_path: str) -> str:
        """Extract text from every readable page of a PDF"""
        pages = []
        with open(file_path, "rb") as file:
            reader = PdfReader(file)
            for page_num, page in enumerate(reader.pages):
                try:
                    page_text = page.extract_text()
                except Exception as e:
                    logger.warning(f"Error extracting page {page_num} from {file_path}: {e}")
                    continue
                if page_text:
                    pages.append(clean_text(page_text))

        logger.debug(f"Extracted {len(pages)} pages from {file_path}")
        return "\n\n".join(pages)

    @staticmethod
    def load_text(file_path: str) -> str:
        """Load a plain text or markdown file, falling back to latin-1"""
        try:
            return Path(file_path).read_text(encoding="utf-8")
        except UnicodeDecodeError:
            logger.debug(f"Loading {file_path} with latin-1 encoding")
            return Path(file_path).read_text(encoding="latin-1")

    @staticmethod
    def load_docx(file_path: str) -> str:
        """Extract the non-empty paragraphs of a DOCX file"""
        document = docx.Document(file_path)
        paragraphs = [para.text for para in document.paragraphs if para.text.strip()]
        logger.debug(f"Extracted {len(paragraphs)} paragraphs from {file_path}")
        return "\n".join(paragraphs)

    @classmethod
    def load_document(cls, file_path: str) -> Dict[str, Any]:
        """
        Load a single document with the loader for its extension.

        Returns:
            Dict with 'text' and 'metadata' (source, filename, file_type)

        Raises:
            ValidationError: If the file is missing, too large or of an unsupported type
        """
        path = Path(file_path)

        if not path.is_file():
            raise ValidationError(f"File not found: {file_path}")

        extension = path.suffix.lower()
        if extension not in cls.SUPPORTED_FORMATS:
            raise ValidationError(
                f"Unsupported file type: {extension}. "
                f"Supported types: {list(cls.SUPPORTED_FORMATS.keys())}"
            )

        size_mb = path.stat().st_size / (1024 * 1024)
        if size_mb > settings.MAX_FILE_SIZE_MB:
            raise ValidationError(
                f"File too large: {size_mb:.1f}MB (max {settings.MAX_FILE_SIZE_MB}MB)"
            )

        text = getattr(cls, cls.SUPPORTED_FORMATS[extension])(str(path))
        if not text or not text.strip():
            logger.warning(f"Loaded document is empty: {file_path}")

        return {
            "text": text,
            "metadata": {
                "source": str(path),
                "filename": path.name,
                "file_type": extension[1:],
            },
        }

    @classmethod
    def load_documents_from_directory(
        cls,
        directory_path: str,
        file_types: Optional[List[str]] = None
    ) -> List[Dict[str, Any]]:
        """
        Load every supported document directly inside ``directory_path``.

        Files that fail to load are logged and skipped.
        """
        dir_path = Path(directory_path)
        if not dir_path.is_dir():
            raise ValidationError(f"Directory not found: {directory_path}")

        documents = []
        for file_type in file_types or settings.SUPPORTED_FILE_TYPES:
            for file_path in sorted(dir_path.glob(f"*{file_type}")):
                try:
                    documents.append(cls.load_document(str(file_path)))
                    logger.info(f"Loaded: {file_path.name}")
                except Exception as e:
                    logger.error(f"Failed to load {file_path.name}: {e}")

        logger.info(f"Loaded {len(documents)} documents from {directory_path}")
        return documents
