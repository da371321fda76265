"""
Configuration module for the conversation service.

Provides unified access to all configuration:
- settings: Environment-based settings (API keys, providers, timeouts, etc.)
- constants: Application-wide constants
- messages: Fixed per-channel system messages (loaded from messages.yaml)
"""

import yaml
from pathlib import Path
from typing import Optional

from config.settings import Settings, settings
from config.constants import (
    HANDOFF_TOOL_NAME,
    MESSAGE_KEYS,
    PERSONA_ATTRIBUTE,
    PERSONA_VALUES,
    CALENDAR_CONFIG,
    RAG_CONFIG,
)
from config.logging_config import setup_logging


def load_messages(path: Optional[Path] = None) -> dict:
    """Load fixed channel messages from messages.yaml."""
    config_path = path or Path(__file__).parent / "messages.yaml"
    if config_path.exists():
        with open(config_path, encoding="utf-8") as f:
            return yaml.safe_load(f) or {}
    return {}


__all__ = [
    # Settings
    "Settings",
    "settings",
    # Constants
    "HANDOFF_TOOL_NAME",
    "MESSAGE_KEYS",
    "PERSONA_ATTRIBUTE",
    "PERSONA_VALUES",
    "CALENDAR_CONFIG",
    "RAG_CONFIG",
    # Messages / logging
    "load_messages",
    "setup_logging",
]
