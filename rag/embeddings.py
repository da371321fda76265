"""
Embedding service backed by an Ollama embedding model.

Used by the ChromaDB collection that holds the business knowledge base.
"""

import httpx
import time
from typing import Optional
import logging

from core.exceptions import RetrievalError

logger = logging.getLogger(__name__)


class OllamaEmbeddingService:
    """Synchronous client for Ollama's /api/embed endpoint."""

    def __init__(
        self,
        model: str = "qwen3-embedding:8b-q4_K_M",
        base_url: str = "http://localhost:11434",
        timeout: float = 60.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def _embed(self, payload_input) -> list[list[float]]:
        start = time.time()
        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                response = client.post(
                    f"{self.base_url}/api/embed",
                    json={"model": self.model, "input": payload_input},
                )
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPError as e:
            logger.error(f"[EMBED] Request failed: {type(e).__name__}: {e}")
            raise RetrievalError(f"Embedding request failed: {e}") from e

        elapsed_ms = int((time.time() - start) * 1000)
        count = 1 if isinstance(payload_input, str) else len(payload_input)
        logger.debug(f"[EMBED] {count} text(s) in {elapsed_ms}ms")
        return data["embeddings"]

    def embed_text(self, text: str) -> list[float]:
        """
        Embed a single text.

        Args:
            text: Text to embed

        Returns:
            Embedding vector
        """
        return self._embed(text)[0]

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        """Embed a batch of texts in one request."""
        if not texts:
            return []
        return self._embed(texts)


class OllamaEmbeddingFunction:
    """
    ChromaDB-compatible embedding function wrapper.

    Usage with ChromaDB:
        collection = client.get_or_create_collection(
            name="business_knowledge",
            embedding_function=OllamaEmbeddingFunction(),
        )
    """

    def __init__(
        self,
        model: str = "qwen3-embedding:8b-q4_K_M",
        base_url: str = "http://localhost:11434",
    ):
        self._model = model
        self.service = OllamaEmbeddingService(model=model, base_url=base_url)

    def name(self) -> str:
        """Return embedding function name for ChromaDB."""
        return f"ollama_{self._model}"

    def embed_query(self, input: str) -> list[list[float]]:
        # ChromaDB expects a list of embeddings even for one query
        return [self.service.embed_text(input)]

    def embed_documents(self, input: list[str]) -> list[list[float]]:
        return self.service.embed_documents(input)

    def __call__(self, input: list[str]) -> list[list[float]]:
        return self.service.embed_documents(input)
