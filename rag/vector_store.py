"""
ChromaDB vector store for the business knowledge base.

Provides persistent local storage for knowledge passages and their embeddings.
"""

import chromadb
from chromadb.config import Settings
from typing import Optional
import logging
from pathlib import Path

from rag.embeddings import OllamaEmbeddingFunction

logger = logging.getLogger(__name__)


class ChromaVectorStore:
    """
    ChromaDB-based vector store for knowledge retrieval.

    Features:
    - Persistent storage
    - Ordered access to passages for general context
    """

    def __init__(
        self,
        persist_dir: str = "./data/chroma",
        collection_name: str = "business_knowledge",
        embedding_model: str = "qwen3-embedding:8b-q4_K_M",
        ollama_base_url: str = "http://localhost:11434",
        embedding_function=None,
    ):
        """
        Initialize ChromaDB vector store.

        Args:
            persist_dir: Directory for persistent storage
            collection_name: Name of the collection
            embedding_model: Ollama embedding model to use
            ollama_base_url: Ollama server URL for embeddings
            embedding_function: Overrides the Ollama embedding function
        """
        self.persist_dir = Path(persist_dir)
        self.persist_dir.mkdir(parents=True, exist_ok=True)

        self.client = chromadb.PersistentClient(
            path=str(self.persist_dir),
            settings=Settings(anonymized_telemetry=False, allow_reset=True),
        )

        self.embedding_fn = embedding_function or OllamaEmbeddingFunction(
            model=embedding_model, base_url=ollama_base_url
        )

        self.collection = self.client.get_or_create_collection(
            name=collection_name,
            embedding_function=self.embedding_fn,
            metadata={"description": "Business knowledge base"},
        )

        logger.info(
            f"[RAG] ChromaDB initialized: {collection_name} "
            f"({self.collection.count()} documents)"
        )

    def upsert_documents(
        self,
        ids: list[str],
        documents: list[str],
        metadatas: Optional[list[dict]] = None,
    ) -> None:
        """
        Add or update documents in the vector store.

        Args:
            ids: Unique identifiers for each document
            documents: Text content to embed and store
            metadatas: Optional metadata (topic, order)
        """
        if not ids or not documents:
            return

        self.collection.upsert(ids=ids, documents=documents, metadatas=metadatas)
        logger.info(f"[RAG] Upserted {len(ids)} documents to vector store")

    def query(
        self,
        query_text: str,
        n_results: int = 5,
    ) -> dict:
        """
        Query the vector store for similar documents.

        Returns:
            Dict with ids, documents, metadatas, and distances
        """
        count = self.collection.count()
        if count == 0:
            return {"ids": [], "documents": [], "metadatas": [], "distances": []}

        results = self.collection.query(
            query_texts=[query_text],
            n_results=min(n_results, count),
            include=["documents", "metadatas", "distances"],
        )

        return {
            "ids": results["ids"][0] if results["ids"] else [],
            "documents": results["documents"][0] if results.get("documents") else [],
            "metadatas": results["metadatas"][0] if results.get("metadatas") else [],
            "distances": results["distances"][0] if results.get("distances") else [],
        }

    def get_documents(self, ids: Optional[list[str]] = None, limit: Optional[int] = None) -> dict:
        """Fetch stored passages with metadata, optionally limited."""
        results = self.collection.get(
            ids=ids, limit=limit, include=["documents", "metadatas"]
        )
        return {
            "ids": results["ids"],
            "documents": results.get("documents") or [],
            "metadatas": results.get("metadatas") or [],
        }

    def count(self) -> int:
        """Return total document count."""
        return self.collection.count()
