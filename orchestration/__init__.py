"""
Orchestration module for the multi-channel conversation service.

Provides:
- ConversationOrchestrator: Main message pipeline (voice, chat, SMS)
- PromptBuilder: System instruction assembly
- extract_persona_marker: Persona tag parsing
- create_orchestrator: Wiring from Settings
"""

from orchestration.orchestrator import ConversationOrchestrator, ToolLoopState
from orchestration.persona import extract_persona_marker, contains_persona_marker
from orchestration.prompt_builder import PromptBuilder
from orchestration.bootstrap import create_orchestrator

__all__ = [
    "ConversationOrchestrator",
    "ToolLoopState",
    "PromptBuilder",
    "extract_persona_marker",
    "contains_persona_marker",
    "create_orchestrator",
]
