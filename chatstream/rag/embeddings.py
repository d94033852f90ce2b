"""
Embeddings Module

Vectors for standalone questions (retrieval) and document chunks (ingestion),
produced by an Ollama embedding model through ``/api/embed``. One request
carries a whole batch of inputs.
"""

import numpy as np
from typing import List, Sequence
import requests

from chatstream.core.config import settings
from chatstream.core.errors import RetrievalError
from chatstream.core.logging import get_logger

logger = get_logger(__name__)


class EmbeddingClient:
    """Ollama embedding client; every failure surfaces as ``RetrievalError``"""

    def __init__(
        self,
        base_url: str = settings.OLLAMA_BASE_URL,
        model: str = settings.EMBEDDING_MODEL,
        embedding_dim: int = settings.EMBEDDING_DIMENSION,
        timeout: int = settings.LLM_TIMEOUT
    ):
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.embedding_dim = embedding_dim
        self.timeout = timeout

        logger.info(f"Embedding client ready: {self.model} ({self.embedding_dim} dims)")

    def _embed(self, inputs: Sequence[str]) -> List[np.ndarray]:
        try:
            response = requests.post(
                f"{self.base_url}/api/embed",
                json={"model": self.model, "input": list(inputs)},
                timeout=self.timeout
            )
            response.raise_for_status()
            vectors = response.json().get("embeddings", [])
        except (requests.exceptions.RequestException, ValueError) as e:
            logger.error(f"Embedding request for {len(inputs)} inputs failed: {e}")
            raise RetrievalError(f"Embedding request failed: {e}") from e

        if len(vectors) != len(inputs):
            raise RetrievalError(
                f"Expected {len(inputs)} embeddings from Ollama, got {len(vectors)}"
            )
        return [np.asarray(vector, dtype=np.float32) for vector in vectors]

    def embed_text(self, text: str) -> np.ndarray:
        """
        Embed one text. Blank text maps to the zero vector without a request.

        Raises:
            RetrievalError: If Ollama cannot be reached or answers badly
        """
        if not text or not text.strip():
            logger.warning("Blank text passed to embed_text")
            return np.zeros(self.embedding_dim, dtype=np.float32)

        return self._embed([text.strip()])[0]

    def embed_batch(self, texts: List[str], batch_size: int = 128) -> List[np.ndarray]:
        """Embed ``texts`` in order, ``batch_size`` inputs per request."""
        vectors: List[np.ndarray] = []
        for start in range(0, len(texts), batch_size):
            vectors.extend(self._embed(texts[start:start + batch_size]))
            logger.debug(f"Embedded {len(vectors)}/{len(texts)} texts")

        logger.info(f"Generated embeddings for {len(vectors)} texts")
        return vectors


# Global embedding client instance
_embedding_client = None


def get_embedding_client() -> EmbeddingClient:
    """Get or create embedding client"""
    global _embedding_client
    if _embedding_client is None:
        _embedding_client = EmbeddingClient()
    return _embedding_client
