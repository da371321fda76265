"""
Knowledge retrieval for the conversation service.

Provides:
- OllamaEmbeddingService: Embeddings via Ollama
- OllamaEmbeddingFunction: ChromaDB-compatible embedding function
- ChromaVectorStore: Local vector storage with persistence
- HybridRetriever: Semantic + keyword (BM25) search
- KnowledgeContextRetriever: Text context block for the system instruction
"""

from rag.embeddings import OllamaEmbeddingService, OllamaEmbeddingFunction
from rag.vector_store import ChromaVectorStore
from rag.retriever import HybridRetriever
from rag.context import KnowledgeContextRetriever, format_passages
from rag.ingest import load_knowledge_file, read_knowledge_file

__all__ = [
    "OllamaEmbeddingService",
    "OllamaEmbeddingFunction",
    "ChromaVectorStore",
    "HybridRetriever",
    "KnowledgeContextRetriever",
    "format_passages",
    "load_knowledge_file",
    "read_knowledge_file",
]
