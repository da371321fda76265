"""
Knowledge context retriever used by the orchestrator.

Wraps the hybrid retriever behind the ContextRetriever contract and renders
the top passages as a single text block for the system instruction.
"""

import asyncio
import logging
import time

from config.constants import RAG_CONFIG
from core.exceptions import RetrievalError
from core.interfaces import ContextRetriever
from rag.retriever import HybridRetriever

logger = logging.getLogger(__name__)


def format_passages(docs: list[dict], max_chars: int = RAG_CONFIG["max_passage_chars"]) -> str:
    """Format retrieved passages as a numbered block."""
    if not docs:
        return ""

    lines = []
    for i, doc in enumerate(docs, 1):
        content = (doc.get("content") or "").strip()
        if len(content) > max_chars:
            content = content[:max_chars] + "..."
        lines.append(f"[{i}] {content}")
    return "\n".join(lines)


class KnowledgeContextRetriever(ContextRetriever):
    """ContextRetriever backed by a HybridRetriever over the knowledge base."""

    def __init__(self, retriever: HybridRetriever):
        self.retriever = retriever

    async def retrieve(self, query: str, k: int) -> str:
        """
        Return the k most relevant passages as text.

        An empty query yields the first k passages of the knowledge base,
        which hold the general business description.
        """
        start = time.time()
        try:
            if query.strip():
                docs = await asyncio.to_thread(self.retriever.retrieve, query, k)
            else:
                docs = await asyncio.to_thread(self.retriever.first_passages, k)
        except RetrievalError:
            raise
        except Exception as e:
            raise RetrievalError(f"Knowledge retrieval failed: {e}") from e

        elapsed_ms = int((time.time() - start) * 1000)
        logger.info(f"[RAG] {len(docs)} passages in {elapsed_ms}ms")
        return format_passages(docs)
