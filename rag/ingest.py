"""Load knowledge passages from YAML into the vector store."""

import logging
from pathlib import Path
from typing import Union

import yaml

logger = logging.getLogger(__name__)


def read_knowledge_file(path: Union[str, Path]) -> list[dict]:
    """
    Read passages from a YAML knowledge file.

    Expected format:
        passages:
          - id: opening_hours
            topic: general
            content: "We are open Sunday to Thursday, 9:00-18:00."

    Returns:
        List of dicts with id, content and metadata (topic, order)
    """
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    passages = []
    for order, item in enumerate(data.get("passages", [])):
        content = (item.get("content") or "").strip()
        if not content:
            logger.warning(f"[RAG] Skipping empty passage #{order} in {path}")
            continue
        passages.append({
            "id": str(item.get("id") or f"passage_{order}"),
            "content": content,
            "metadata": {"topic": item.get("topic", "general"), "order": order},
        })
    return passages


def load_knowledge_file(vector_store, path: Union[str, Path]) -> int:
    """Upsert all passages of a knowledge file; returns the passage count."""
    passages = read_knowledge_file(path)
    vector_store.upsert_documents(
        ids=[p["id"] for p in passages],
        documents=[p["content"] for p in passages],
        metadatas=[p["metadata"] for p in passages],
    )
    logger.info(f"[RAG] Loaded {len(passages)} passages from {path}")
    return len(passages)
