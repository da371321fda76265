"""
Hybrid retriever combining semantic search (ChromaDB) with keyword search (BM25).

Keyword scoring keeps exact terms (product names, prices, opening hours)
ranked even when the embedding model blurs them.
"""

from typing import Optional
from rank_bm25 import BM25Okapi
import re
import logging

logger = logging.getLogger(__name__)

# Latin, Hebrew and Cyrillic word characters
_TOKEN_RE = re.compile(r"[\w\u0590-\u05FF\u0400-\u04FF]+")


class HybridRetriever:
    """
    Hybrid retriever combining semantic and keyword search.

    Features:
    - Semantic search via the vector store
    - Keyword search via BM25 for exact matches
    - Weighted score fusion
    """

    def __init__(
        self,
        vector_store,
        semantic_weight: float = 0.7,
        keyword_weight: float = 0.3,
    ):
        """
        Initialize hybrid retriever.

        Args:
            vector_store: ChromaVectorStore (or compatible) instance
            semantic_weight: Weight for semantic search scores (0-1)
            keyword_weight: Weight for keyword search scores (0-1)
        """
        self.vector_store = vector_store
        self.semantic_weight = semantic_weight
        self.keyword_weight = keyword_weight

        # BM25 index (built lazily)
        self._bm25: Optional[BM25Okapi] = None
        self._doc_ids: list[str] = []
        self._documents: list[str] = []
        self._metadatas: list[dict] = []

    def _build_bm25_index(self) -> None:
        """Build BM25 index from all documents in the vector store."""
        stored = self.vector_store.get_documents()
        if not stored["ids"]:
            logger.warning("[RAG] No documents in vector store for BM25 index")
            return

        self._doc_ids = stored["ids"]
        self._documents = stored["documents"]
        self._metadatas = [m or {} for m in stored["metadatas"]] or [{} for _ in self._doc_ids]

        tokenized_docs = [self._tokenize(doc) for doc in self._documents]
        self._bm25 = BM25Okapi(tokenized_docs)

        logger.info(f"[RAG] Built BM25 index with {len(self._doc_ids)} documents")

    @staticmethod
    def _tokenize(text: str) -> list[str]:
        return _TOKEN_RE.findall(text.lower())

    def _keyword_search(
        self,
        query: str,
        n_results: int = 10,
    ) -> list[tuple[str, float, str, dict]]:
        """
        Perform BM25 keyword search.

        Returns:
            List of (doc_id, score, document, metadata) tuples
        """
        if self._bm25 is None:
            self._build_bm25_index()

        if self._bm25 is None or not self._doc_ids:
            return []

        query_tokens = self._tokenize(query)
        if not query_tokens:
            return []
        scores = self._bm25.get_scores(query_tokens)

        scored_docs = list(zip(self._doc_ids, scores, self._documents, self._metadatas))
        scored_docs.sort(key=lambda x: x[1], reverse=True)

        return scored_docs[:n_results]

    def retrieve(
        self,
        query: str,
        n_results: int = 3,
    ) -> list[dict]:
        """
        Retrieve relevant passages using hybrid search.

        Args:
            query: Search query
            n_results: Number of results to return

        Returns:
            List of dicts with id, content, metadata, and score
        """
        semantic_results = self.vector_store.query(
            query_text=query,
            n_results=n_results * 2,
        )
        keyword_results = self._keyword_search(query, n_results * 2)

        fused = self._fuse_results(semantic_results, keyword_results)

        return [
            {"id": doc_id, "content": document, "metadata": metadata, "score": score}
            for doc_id, score, document, metadata in fused[:n_results]
        ]

    def _fuse_results(
        self,
        semantic_results: dict,
        keyword_results: list[tuple],
    ) -> list[tuple[str, float, str, dict]]:
        """Fuse semantic and keyword results using normalized weighted scores."""
        semantic_scores = {}
        if semantic_results["ids"]:
            distances = semantic_results["distances"] or [0.0] * len(semantic_results["ids"])
            max_dist = max(distances) if distances else 1
            for i, doc_id in enumerate(semantic_results["ids"]):
                # Lower distance means higher similarity
                sim = 1 - (distances[i] / (max_dist + 1e-6))
                semantic_scores[doc_id] = {
                    "score": sim,
                    "document": semantic_results["documents"][i],
                    "metadata": semantic_results["metadatas"][i] or {},
                }

        keyword_scores = {}
        if keyword_results:
            max_score = max(r[1] for r in keyword_results)
            for doc_id, score, document, metadata in keyword_results:
                if score <= 0:
                    continue
                keyword_scores[doc_id] = {
                    "score": score / (max_score + 1e-6),
                    "document": document,
                    "metadata": metadata,
                }

        fused = []
        for doc_id in set(semantic_scores) | set(keyword_scores):
            sem_data = semantic_scores.get(doc_id, {"score": 0})
            kw_data = keyword_scores.get(doc_id, {"score": 0})

            combined_score = (
                self.semantic_weight * sem_data["score"] +
                self.keyword_weight * kw_data["score"]
            )
            document = sem_data.get("document") or kw_data.get("document", "")
            metadata = sem_data.get("metadata") or kw_data.get("metadata", {})

            fused.append((doc_id, combined_score, document, metadata))

        fused.sort(key=lambda x: x[1], reverse=True)
        return fused

    def first_passages(self, n_results: int = 3) -> list[dict]:
        """Return the first stored passages in knowledge-file order."""
        stored = self.vector_store.get_documents()
        rows = list(zip(stored["ids"], stored["documents"], stored["metadatas"] or [{}] * len(stored["ids"])))
        rows.sort(key=lambda row: (row[2] or {}).get("order", 0))
        return [
            {"id": doc_id, "content": document, "metadata": metadata or {}, "score": 0.0}
            for doc_id, document, metadata in rows[:n_results]
        ]
