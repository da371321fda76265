"""
Contracts for the collaborators of the conversation orchestrator.

Each external dependency (session storage, knowledge retrieval, CRM,
tools, model provider, channel formatting) is an abstract base class so
implementations can be swapped and faked in tests.
"""

import asyncio
import time
from abc import ABC, abstractmethod
from typing import Any, Optional

from core.types import (
    Channel,
    FunctionCall,
    ModelReply,
    Role,
    ToolCatalog,
    Turn,
)


class SessionStore(ABC):
    """Keyed conversation state: history turns plus derived attributes."""

    @abstractmethod
    async def init_session(self, session_id: str, channel: Channel) -> None:
        """Create the session if missing; no-op otherwise."""

    @abstractmethod
    async def get_history(self, session_id: str) -> list[Turn]:
        """Return a copy of the ordered history."""

    @abstractmethod
    async def add_to_history(self, session_id: str, role: Role, text: str) -> None:
        """Append a user or model text turn."""

    @abstractmethod
    async def add_function_interaction(
        self, session_id: str, call: FunctionCall, result: Any
    ) -> None:
        """Append the tool request and its result as a turn pair."""

    @abstractmethod
    async def get_attribute(self, session_id: str) -> Optional[str]:
        """Return the inferred persona, if any."""

    @abstractmethod
    async def set_attribute(self, session_id: str, value: str) -> None:
        """Store the inferred persona (overwrite allowed)."""

    @abstractmethod
    def lock(self, session_id: str) -> asyncio.Lock:
        """Per-session lock serialising read-then-append cycles."""

    @abstractmethod
    async def close_session(self, session_id: str) -> None:
        """Drop a finished session and its lock; no-op when unknown."""


class ContextRetriever(ABC):
    """Returns a text block of domain passages relevant to a query."""

    @abstractmethod
    async def retrieve(self, query: str, k: int) -> str:
        ...


class CustomerDirectory(ABC):
    """CRM lookup by phone number."""

    @abstractmethod
    async def lookup(self, phone: str):
        """Return a CustomerRecord or None when the phone is unknown."""


class ToolRegistry(ABC):
    """Static tool catalog plus execution by name."""

    @property
    @abstractmethod
    def catalog(self) -> ToolCatalog:
        ...

    @abstractmethod
    async def invoke(self, name: str, args: dict) -> Any:
        """Execute a tool; raises ToolExecutionError on failure."""


class ModelGateway(ABC):
    """
    Base class for model provider plugins.

    Tracks simple call metrics the same way for every provider.
    """

    def __init__(self):
        self._calls = 0
        self._errors = 0
        self._total_ms = 0

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @property
    @abstractmethod
    def model(self) -> str:
        ...

    @abstractmethod
    async def generate(
        self,
        system_instruction: str,
        catalog: ToolCatalog,
        conversation: list[Turn],
    ) -> ModelReply:
        """Run one model call over the given conversation."""

    def _record_call(self, duration_ms: int) -> None:
        self._calls += 1
        self._total_ms += duration_ms

    def _record_error(self) -> None:
        self._errors += 1

    def get_metrics(self) -> dict:
        return {
            "provider": self.name,
            "model": self.model,
            "calls": self._calls,
            "errors": self._errors,
            "avg_latency_ms": int(self._total_ms / self._calls) if self._calls else 0,
        }

    @staticmethod
    def _elapsed_ms(start_time: float) -> int:
        return int((time.time() - start_time) * 1000)


class ReplyFormatter(ABC):
    """Channel-specific rendering of replies and fixed system messages."""

    @abstractmethod
    def format(self, text: str, channel: Channel) -> str:
        ...

    @abstractmethod
    def fixed_message(self, key: str, channel: Channel) -> str:
        ...
