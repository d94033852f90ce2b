"""
Retriever Module

Semantic search over the vector store.

Retrieval Process:
1. Convert the standalone question to an embedding
2. Search the vector store for the k nearest chunks
3. Return them closest first, with their metadata

``combine_documents`` joins the retrieved contents into the single context
string the answer prompt is rendered with.
"""

from typing import List, Optional, Sequence

from chatstream.core.config import settings
from chatstream.core.logging import get_logger
from chatstream.rag.embeddings import get_embedding_client
from chatstream.rag.vector_store import RetrievedDocument, get_vector_store

logger = get_logger(__name__)


def combine_documents(documents: Sequence[RetrievedDocument]) -> str:
    """Join document contents with a blank line; no documents gives ``""``."""
    return "\n\n".join(doc.content for doc in documents)


class Retriever:
    """
    Retrieves relevant document chunks from vector store based on query similarity.
    """

    def __init__(
        self,
        vector_store=None,
        embedding_client=None,
        top_k: int = settings.RETRIEVAL_TOP_K
    ):
        """
        Initialize retriever.

        Args:
            vector_store: Vector store instance (uses default if None)
            embedding_client: Embedding client (uses default if None)
            top_k: Number of results to retrieve
        """
        self.vector_store = vector_store or get_vector_store()
        self.embedding_client = embedding_client or get_embedding_client()
        self.top_k = top_k

        logger.info(f"Initialized Retriever: top_k={top_k}")

    def retrieve(
        self,
        query: str,
        top_k: Optional[int] = None
    ) -> List[RetrievedDocument]:
        """
        Retrieve the documents nearest to ``query``.

        Args:
            query: Standalone question
            top_k: Override default top_k (number of results)

        Returns:
            Retrieved documents, closest first
        """
        if not query or not query.strip():
            logger.warning("Empty query provided")
            return []

        k = top_k or self.top_k
        logger.debug(f"Retrieving documents for query: {query[:100]}...")

        query_embedding = self.embedding_client.embed_text(query)
        documents = self.vector_store.similarity_search(query_embedding, k=k)

        logger.info(f"Retrieved {len(documents)} documents.")
        if not documents:
            logger.info("No documents found in vector store")
        for index, doc in enumerate(documents, 1):
            logger.debug(f"Doc {index}: {doc.content[:100]}... metadata={doc.metadata}")

        return documents


# Global retriever instance
_retriever = None


def get_retriever() -> Retriever:
    """Get or create retriever instance"""
    global _retriever
    if _retriever is None:
        _retriever = Retriever()
    return _retriever
