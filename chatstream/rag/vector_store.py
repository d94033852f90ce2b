"""
Vector Store Module

This module wraps the Chroma collection that holds document chunks and their
embeddings.

Process:
1. Open (or create) the persistent collection
2. Add embeddings + metadata for each chunk during ingestion
3. Query by embedding to find the nearest chunks
"""

import uuid
from dataclasses import dataclass, field
from typing import List, Dict, Any, Optional
import numpy as np
from pathlib import Path

import chromadb

from chatstream.core.config import settings
from chatstream.core.errors import RetrievalError
from chatstream.core.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class RetrievedDocument:
    """A nearest-neighbour document returned by the vector store"""

    content: str
    metadata: Dict[str, Any] = field(default_factory=dict)
    similarity: Optional[float] = None


def _sanitize_metadata(meta: Dict[str, Any]) -> Dict[str, Any]:
    # Chroma only accepts str, int, float and bool values
    sanitized = {}
    for key, value in meta.items():
        if value is None:
            continue
        if isinstance(value, (str, int, float, bool)):
            sanitized[key] = value
        else:
            sanitized[key] = str(value)
    return sanitized


class VectorStore:
    """
    Chroma vector store wrapper for storing chunks and similarity search.
    """

    def __init__(
        self,
        persist_directory: str = settings.VECTOR_STORE_PATH,
        collection_name: str = settings.CHROMA_COLLECTION_NAME
    ):
        """
        Initialize vector store.

        Args:
            persist_directory: Directory to persist vector database
            collection_name: Name of the collection
        """
        self.persist_directory = persist_directory
        self.collection_name = collection_name

        Path(persist_directory).mkdir(parents=True, exist_ok=True)

        self.client = chromadb.PersistentClient(path=persist_directory)
        logger.info(f"Initialized Chroma client at {persist_directory}")

        self.collection = self.client.get_or_create_collection(
            name=collection_name,
            metadata={"hnsw:space": "cosine"}
        )
        logger.info(f"Using collection: {collection_name}")

    def add_texts(
        self,
        texts: List[str],
        embeddings: List[np.ndarray],
        metadatas: Optional[List[Dict[str, Any]]] = None
    ) -> List[str]:
        """
        Add text embeddings to vector store.

        Args:
            texts: List of text documents
            embeddings: List of embedding vectors (numpy arrays)
            metadatas: Optional metadata for each document

        Returns:
            List of generated document IDs
        """
        if not texts:
            logger.warning("Empty texts provided")
            return []

        if len(texts) != len(embeddings):
            raise ValueError("texts and embeddings must have same length")

        ids = [str(uuid.uuid4()) for _ in texts]
        sanitized = [_sanitize_metadata(m) for m in metadatas] if metadatas else None

        # Chroma caps the batch size at ~5461
        batch_size = 5000
        try:
            for i in range(0, len(texts), batch_size):
                self.collection.add(
                    ids=ids[i:i + batch_size],
                    embeddings=[e.tolist() for e in embeddings[i:i + batch_size]],
                    documents=texts[i:i + batch_size],
                    metadatas=sanitized[i:i + batch_size] if sanitized else None
                )
                logger.info(f"Added batch {i//batch_size + 1}: {len(texts[i:i + batch_size])} documents to vector store")
        except Exception as e:
            logger.error(f"Error adding texts to vector store: {e}")
            raise RetrievalError(f"Vector store insert failed: {e}") from e

        return ids

    def similarity_search(
        self,
        embedding: np.ndarray,
        k: int = settings.RETRIEVAL_TOP_K
    ) -> List[RetrievedDocument]:
        """
        Return the ``k`` documents nearest to ``embedding``, closest first.

        Raises:
            RetrievalError: If the Chroma query fails
        """
        try:
            results = self.collection.query(
                query_embeddings=[embedding.tolist()],
                n_results=k,
                include=["documents", "metadatas", "distances"]
            )
        except Exception as e:
            logger.error(f"Error searching vector store: {e}")
            raise RetrievalError(f"Vector store query failed: {e}") from e

        documents = (results.get("documents") or [[]])[0]
        metadatas = (results.get("metadatas") or [[]])[0] or [None] * len(documents)
        distances = (results.get("distances") or [[]])[0] or [None] * len(documents)

        found = []
        for doc, metadata, distance in zip(documents, metadatas, distances):
            # Cosine distance runs from 0 (identical) to 2 (opposite)
            similarity = None if distance is None else float(1 - distance / 2)
            found.append(RetrievedDocument(
                content=doc or "",
                metadata=dict(metadata or {}),
                similarity=similarity
            ))

        logger.debug(f"Found {len(found)} results")
        return found

    def get_count(self) -> int:
        """Get total number of documents in collection"""
        try:
            return self.collection.count()
        except Exception as e:
            logger.error(f"Error getting collection count: {e}")
            raise RetrievalError(f"Vector store count failed: {e}") from e

    def clear(self) -> None:
        """Clear all documents from collection"""
        try:
            all_items = self.collection.get()
            if all_items and all_items["ids"]:
                self.collection.delete(ids=all_items["ids"])
        except Exception as e:
            logger.error(f"Error clearing vector store: {e}")
            raise RetrievalError(f"Vector store clear failed: {e}") from e
        logger.info("Cleared vector store")


# Global vector store instance
_vector_store = None


def get_vector_store() -> VectorStore:
    """Get or create vector store instance"""
    global _vector_store
    if _vector_store is None:
        _vector_store = VectorStore()
    return _vector_store
