"""
Shared fixtures and fakes for the conversation service tests.
"""
import asyncio
from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo

import pytest

from core.interfaces import ContextRetriever, CustomerDirectory, ModelGateway
from core.types import ModelReply, ToolCatalog, Turn
from memory.session_store import InMemorySessionStore
from messaging.formatter import ChannelReplyFormatter
from orchestration.orchestrator import ConversationOrchestrator
from orchestration.prompt_builder import PromptBuilder
from personalization.customer_directory import CustomerRecord
from tools.calendar import AppointmentCalendar
from tools.registry import create_default_registry

TZ = ZoneInfo("Asia/Jerusalem")

# Sunday 2026-10-18 08:00 Israel time, before opening
FIXED_NOW = datetime(2026, 10, 18, 8, 0, tzinfo=TZ)

MESSAGES = {
    "apiError": {"default": "Technical problem, try again.", "voice": "Voice technical problem."},
    "checking": {"default": "Checking...", "voice": "One moment, checking."},
    "transferring": {"default": "Transferring you now."},
    "handoff": {"default": "A representative will contact you shortly."},
}


class FakeRetriever(ContextRetriever):
    """Returns a fixed context, or fails / hangs on demand."""

    def __init__(self, context: str = "[1] We are open Sunday to Thursday.", error: Optional[Exception] = None, delay: float = 0.0):
        self.context = context
        self.error = error
        self.delay = delay
        self.queries: list[tuple[str, int]] = []

    async def retrieve(self, query: str, k: int) -> str:
        self.queries.append((query, k))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return self.context


class FakeDirectory(CustomerDirectory):
    """Phone -> CustomerRecord map that records lookups."""

    def __init__(self, records: Optional[dict] = None, error: Optional[Exception] = None, delay: float = 0.0):
        self.records = records or {}
        self.error = error
        self.delay = delay
        self.lookups: list[str] = []

    async def lookup(self, phone: str):
        self.lookups.append(phone)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return self.records.get(phone)


class ScriptedGateway(ModelGateway):
    """
    Replays a script of replies; an Exception entry is raised instead.

    Every call's arguments are recorded for assertions.
    """

    def __init__(self, script: list):
        super().__init__()
        self.script = list(script)
        self.calls: list[dict] = []

    @property
    def name(self) -> str:
        return "scripted"

    @property
    def model(self) -> str:
        return "scripted-1"

    async def generate(self, system_instruction: str, catalog: ToolCatalog, conversation: list[Turn]) -> ModelReply:
        self.calls.append({
            "system_instruction": system_instruction,
            "catalog": catalog,
            "conversation": list(conversation),
        })
        if not self.script:
            raise AssertionError("Gateway called more times than scripted")
        step = self.script.pop(0)
        if isinstance(step, Exception):
            raise step
        return step


@pytest.fixture
def fixed_clock():
    return lambda: FIXED_NOW


@pytest.fixture
def calendar(fixed_clock):
    return AppointmentCalendar(timezone="Asia/Jerusalem", clock=fixed_clock)


@pytest.fixture
def sessions():
    return InMemorySessionStore()


@pytest.fixture
def formatter():
    return ChannelReplyFormatter(MESSAGES)


@pytest.fixture
def prompt_builder(fixed_clock):
    return PromptBuilder(business_name="Acme Payments", timezone="Asia/Jerusalem", clock=fixed_clock)


@pytest.fixture
def retriever():
    return FakeRetriever()


@pytest.fixture
def directory():
    return FakeDirectory({"+972533403449": CustomerRecord(phone="+972533403449", name="Dana", persona="female")})


@pytest.fixture
def make_orchestrator(sessions, retriever, directory, formatter, prompt_builder, calendar):
    """Factory: build an orchestrator around a scripted gateway."""

    def _make(script, **overrides):
        kwargs = dict(
            sessions=sessions,
            retriever=retriever,
            directory=directory,
            tools=create_default_registry(calendar=calendar),
            gateway=ScriptedGateway(script),
            formatter=formatter,
            prompt_builder=prompt_builder,
            retrieval_timeout=0.5,
            directory_timeout=0.5,
        )
        kwargs.update(overrides)
        return ConversationOrchestrator(**kwargs)

    return _make
