"""
Builds a ready-to-use ConversationOrchestrator from Settings.

Wiring:
- Model gateway: registered plugin selected by ``llm_provider``
- Knowledge: ChromaDB + BM25 hybrid retriever (optionally seeded from YAML)
- CRM: HTTP directory if ``crm_base_url`` is set, else the YAML customers file
- Tools: calendar tools + human handoff
"""

import logging
from typing import Optional

from config.constants import RAG_CONFIG
from config.logging_config import setup_logging
from config.settings import Settings, settings
from core.interfaces import ContextRetriever, CustomerDirectory, ModelGateway
from core.registry import get_registry
from memory.session_store import InMemorySessionStore
from messaging.formatter import ChannelReplyFormatter
from orchestration.orchestrator import ConversationOrchestrator
from orchestration.prompt_builder import PromptBuilder
from personalization.customer_directory import HttpCustomerDirectory, InMemoryCustomerDirectory
from plugins import register_all_plugins
from rag.context import KnowledgeContextRetriever
from rag.ingest import load_knowledge_file
from rag.retriever import HybridRetriever
from rag.vector_store import ChromaVectorStore
from tools.registry import create_default_registry

logger = logging.getLogger(__name__)


def create_gateway(app_settings: Settings) -> ModelGateway:
    """Instantiate the configured model gateway plugin."""
    registry = get_registry()
    if not registry.list_llm_plugins():
        register_all_plugins()

    provider = app_settings.llm_provider.lower()
    if provider == "gemini":
        return registry.create_llm(
            "gemini",
            api_key=app_settings.gemini_api_key,
            model=app_settings.gemini_model,
        )
    if provider == "ollama":
        return registry.create_llm(
            "ollama",
            model=app_settings.ollama_model,
            base_url=app_settings.ollama_base_url,
            timeout=app_settings.model_timeout_s,
        )
    return registry.create_llm(provider)


def create_context_retriever(app_settings: Settings) -> ContextRetriever:
    vector_store = ChromaVectorStore(
        persist_dir=app_settings.chroma_persist_dir,
        collection_name=app_settings.knowledge_collection,
        embedding_model=app_settings.embedding_model,
        ollama_base_url=app_settings.ollama_base_url,
    )
    if app_settings.knowledge_file:
        loaded = load_knowledge_file(vector_store, app_settings.knowledge_file)
        logger.info(f"[BOOT] Loaded {loaded} knowledge passages from {app_settings.knowledge_file}")
    elif vector_store.count() == 0:
        logger.warning("[BOOT] Knowledge base is empty; replies will have no business context")

    retriever = HybridRetriever(
        vector_store,
        semantic_weight=RAG_CONFIG["semantic_weight"],
        keyword_weight=RAG_CONFIG["keyword_weight"],
    )
    return KnowledgeContextRetriever(retriever)


def create_customer_directory(app_settings: Settings) -> CustomerDirectory:
    if app_settings.crm_base_url:
        return HttpCustomerDirectory(
            base_url=app_settings.crm_base_url,
            api_key=app_settings.crm_api_key,
            timeout=app_settings.directory_timeout_s,
        )
    if app_settings.customers_file:
        return InMemoryCustomerDirectory.from_yaml(app_settings.customers_file)

    logger.warning("[BOOT] No CRM configured; customer lookups will return nothing")
    return InMemoryCustomerDirectory()


def create_prompt_builder(app_settings: Settings) -> PromptBuilder:
    return PromptBuilder(
        business_name=app_settings.business_name,
        timezone=app_settings.timezone,
    )


def create_orchestrator(
    app_settings: Optional[Settings] = None,
    gateway: Optional[ModelGateway] = None,
    retriever: Optional[ContextRetriever] = None,
    directory: Optional[CustomerDirectory] = None,
) -> ConversationOrchestrator:
    """
    Create the orchestrator with all collaborators.

    Args:
        app_settings: Settings to use (defaults to the process settings)
        gateway: Override the configured model gateway
        retriever: Override the knowledge retriever
        directory: Override the customer directory

    Returns:
        Configured ConversationOrchestrator
    """
    app_settings = app_settings or settings
    setup_logging(app_settings.log_level)

    orchestrator = ConversationOrchestrator(
        sessions=InMemorySessionStore(max_history_turns=app_settings.max_history_turns),
        retriever=retriever or create_context_retriever(app_settings),
        directory=directory or create_customer_directory(app_settings),
        tools=create_default_registry(timezone=app_settings.timezone),
        gateway=gateway or create_gateway(app_settings),
        formatter=ChannelReplyFormatter(),
        prompt_builder=create_prompt_builder(app_settings),
        rag_top_k=app_settings.rag_top_k,
        model_timeout=app_settings.model_timeout_s,
        retrieval_timeout=app_settings.retrieval_timeout_s,
        directory_timeout=app_settings.directory_timeout_s,
        tool_timeout=app_settings.tool_timeout_s,
        max_tool_rounds=app_settings.max_tool_rounds,
    )
    logger.info(
        f"[BOOT] Orchestrator ready: gateway={orchestrator.gateway.name} "
        f"tools={', '.join(orchestrator.catalog.names())}"
    )
    return orchestrator
