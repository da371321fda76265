"""Plugin registry for model gateway implementations."""

import logging
from typing import Optional, Type

from core.interfaces import ModelGateway

logger = logging.getLogger(__name__)


class PluginRegistry:
    """Maps provider names to model gateway classes."""

    def __init__(self):
        self._llm: dict[str, Type[ModelGateway]] = {}

    def register_llm(self, name: str, plugin_cls: Type[ModelGateway]) -> None:
        if name in self._llm and self._llm[name] is not plugin_cls:
            logger.warning(f"[REGISTRY] Replacing LLM plugin '{name}'")
        self._llm[name] = plugin_cls

    def list_llm_plugins(self) -> list[str]:
        return sorted(self._llm)

    def create_llm(self, name: str, **kwargs) -> ModelGateway:
        """
        Instantiate a registered model gateway.

        Args:
            name: Provider name (e.g. "gemini", "ollama")
            **kwargs: Constructor arguments for the plugin

        Returns:
            Configured ModelGateway instance
        """
        plugin_cls = self._llm.get(name)
        if plugin_cls is None:
            raise ValueError(
                f"Unknown LLM provider '{name}' "
                f"(available: {', '.join(self.list_llm_plugins()) or 'none'})"
            )
        return plugin_cls(**kwargs)


_registry: Optional[PluginRegistry] = None


def get_registry() -> PluginRegistry:
    """Get the process-wide plugin registry."""
    global _registry
    if _registry is None:
        _registry = PluginRegistry()
    return _registry
