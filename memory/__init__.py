"""Session storage for conversation history and derived attributes."""

from memory.session_store import InMemorySessionStore, Session

__all__ = ["InMemorySessionStore", "Session"]
