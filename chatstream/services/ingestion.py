"""
Document Ingestion Service Module

Fills the vector store the retrieval pipeline reads from:
- raw text posted to the API
- files and directories loaded from disk
- index clearing and statistics
"""

from typing import Optional, Dict, Any, List

from chatstream.core.config import settings
from chatstream.core.errors import ValidationError
from chatstream.core.logging import get_logger
from chatstream.rag.chunker import TextChunker, get_chunker
from chatstream.rag.embeddings import get_embedding_client
from chatstream.rag.loader import DocumentLoader
from chatstream.rag.vector_store import get_vector_store

logger = get_logger(__name__)


class IngestionService:
    """
    Chunks, embeds and stores documents.
    """

    def __init__(
        self,
        chunker: Optional[TextChunker] = None,
        embedding_client=None,
        vector_store=None,
        loader: Optional[DocumentLoader] = None
    ):
        self.chunker = chunker or get_chunker()
        self.embedding_client = embedding_client or get_embedding_client()
        self.vector_store = vector_store or get_vector_store()
        self.loader = loader or DocumentLoader()

        logger.info("Initialized IngestionService")

    def _store(self, documents: List[Dict[str, Any]]) -> Dict[str, Any]:
        chunks = []
        for document in documents:
            chunks.extend(self.chunker.chunk_text(document["text"], document.get("metadata")))

        if not chunks:
            logger.warning("Documents produced no chunks")
            return {"status": "warning", "chunks_created": 0, "doc_ids": []}

        texts = [chunk["text"] for chunk in chunks]
        embeddings = self.embedding_client.embed_batch(texts)
        doc_ids = self.vector_store.add_texts(
            texts=texts,
            embeddings=embeddings,
            metadatas=[chunk["metadata"] for chunk in chunks]
        )

        logger.info(f"Stored {len(doc_ids)} chunks from {len(documents)} documents")
        return {"status": "success", "chunks_created": len(doc_ids), "doc_ids": doc_ids}

    def ingest_text(self, text: str, metadata: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Split, embed and store a block of raw text.

        Raises:
            ValidationError: If the text is empty
        """
        if not text or not text.strip():
            raise ValidationError("text cannot be empty")
        return self._store([{"text": text, "metadata": metadata or {}}])

    def ingest_file(self, file_path: str) -> Dict[str, Any]:
        """Load and store one document file"""
        logger.info(f"Ingesting file: {file_path}")
        document = self.loader.load_document(file_path)
        return {"documents_processed": 1, **self._store([document])}

    def ingest_directory(self, directory_path: str) -> Dict[str, Any]:
        """Load and store every supported document in a directory"""
        logger.info(f"Ingesting directory: {directory_path}")
        documents = self.loader.load_documents_from_directory(directory_path)
        return {"documents_processed": len(documents), **self._store(documents)}

    def rebuild_index(self, directory_path: Optional[str] = None) -> Dict[str, Any]:
        """Clear the collection and ingest ``directory_path`` (default: DATA_RAW_PATH)"""
        path = directory_path or settings.DATA_RAW_PATH
        logger.info(f"Rebuilding index from: {path}")
        self.clear_index()
        return self.ingest_directory(path)

    def clear_index(self) -> Dict[str, Any]:
        logger.warning("Clearing vector store index")
        self.vector_store.clear()
        return {"status": "success", "message": "Vector store cleared"}

    def get_index_stats(self) -> Dict[str, Any]:
        return {
            "documents": self.vector_store.get_count(),
            "collection": settings.CHROMA_COLLECTION_NAME,
            "embedding_model": self.embedding_client.model,
        }


# Global service instance
_ingestion_service = None


def get_ingestion_service() -> IngestionService:
    """Get or create ingestion service instance"""
    global _ingestion_service
    if _ingestion_service is None:
        _ingestion_service = IngestionService()
    return _ingestion_service
