"""
Plugins package for the conversation service.

Provides auto-registration of all available model gateway plugins.
"""

import logging

logger = logging.getLogger(__name__)


def register_all_plugins():
    """
    Register all available plugins with the registry.

    This function should be called during application startup
    before creating the orchestrator.
    """
    logger.info("[PLUGINS] Registering all plugins...")

    try:
        from plugins.llm.gemini import register_plugin as register_gemini
        register_gemini()
    except ImportError as e:
        logger.warning(f"[PLUGINS] Failed to register Gemini gateway: {e}")

    try:
        from plugins.llm.ollama import register_plugin as register_ollama
        register_ollama()
    except ImportError as e:
        logger.warning(f"[PLUGINS] Failed to register Ollama gateway: {e}")

    logger.info("[PLUGINS] Plugin registration complete")


def get_available_plugins() -> dict:
    """
    Get a summary of available plugins.

    Returns:
        Dict with plugin types and their registered implementations
    """
    from core.registry import get_registry
    return {"llm": get_registry().list_llm_plugins()}
