"""
Tests for orchestration: message pipeline, tool resolution, fallbacks.
"""
import asyncio
from datetime import date

import pytest

from core.exceptions import (
    DirectoryLookupError,
    ModelGatewayError,
    RetrievalError,
    ToolExecutionError,
    ToolLoopExhaustedError,
)
from core.types import Channel, FunctionCall, ModelReply, Role
from memory.session_store import InMemorySessionStore
from tests.conftest import FakeDirectory, FakeRetriever, ScriptedGateway

PHONE = "+972533403449"
UNKNOWN_PHONE = "+972500000000"
TOMORROW = date(2026, 10, 19)


def check_call(date: str = "2026-10-19") -> ModelReply:
    return ModelReply(function_calls=[FunctionCall("check_availability", {"date": date})])


def assert_result_invariant(result):
    assert result.requires_tool_call or (result.text and result.text.strip())


class SlowGateway(ScriptedGateway):
    async def generate(self, system_instruction, catalog, conversation):
        await asyncio.sleep(1)
        return await super().generate(system_instruction, catalog, conversation)


class TestTextReplies:
    """Plain text replies from the model."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("channel", [Channel.VOICE, Channel.CHAT, Channel.SMS])
    async def test_text_reply_per_channel(self, make_orchestrator, sessions, channel):
        orchestrator = make_orchestrator([ModelReply(text="We are open until 18:00.")])

        result = await orchestrator.process("When are you open?", "s1", channel, UNKNOWN_PHONE)

        assert result.text == "We are open until 18:00."
        assert result.requires_tool_call is False
        assert result.error is None
        history = await sessions.get_history("s1")
        assert [t.role for t in history] == [Role.USER, Role.MODEL]
        assert history[0].text == "When are you open?"

    @pytest.mark.asyncio
    async def test_voice_reply_is_speakable(self, make_orchestrator):
        orchestrator = make_orchestrator([ModelReply(text="**Great** news:\n- free installation")])

        result = await orchestrator.process("Any deals?", "call-1", Channel.VOICE, UNKNOWN_PHONE)

        assert result.text == "Great news: free installation"

    @pytest.mark.asyncio
    async def test_chat_reply_uses_whatsapp_bold(self, make_orchestrator):
        orchestrator = make_orchestrator([ModelReply(text="Price: **99 NIS** per month")])

        result = await orchestrator.process("Price?", "whatsapp:+972500000000", Channel.CHAT, UNKNOWN_PHONE)

        assert result.text == "Price: *99 NIS* per month"

    @pytest.mark.asyncio
    async def test_whatsapp_channel_alias(self, make_orchestrator, sessions):
        orchestrator = make_orchestrator([ModelReply(text="Hi")])

        result = await orchestrator.process("Hi", "whatsapp:+972500000000", "whatsapp", UNKNOWN_PHONE)

        assert result.text == "Hi"
        assert sessions.get_session("whatsapp:+972500000000").channel == Channel.CHAT

    @pytest.mark.asyncio
    async def test_unknown_channel_raises(self, make_orchestrator):
        orchestrator = make_orchestrator([])

        with pytest.raises(ValueError):
            await orchestrator.process("Hi", "s1", "fax", UNKNOWN_PHONE)

    @pytest.mark.asyncio
    async def test_system_instruction_contents(self, make_orchestrator):
        orchestrator = make_orchestrator([ModelReply(text="Hello")])

        await orchestrator.process("Hello", "s1", Channel.CHAT, UNKNOWN_PHONE)

        instruction = orchestrator.gateway.calls[0]["system_instruction"]
        assert "Acme Payments" in instruction
        assert "Sunday, 2026-10-18 08:00" in instruction
        assert "We are open Sunday to Thursday." in instruction
        assert "[GENDER: male]" in instruction

    @pytest.mark.asyncio
    async def test_catalog_shared_with_every_call(self, make_orchestrator):
        orchestrator = make_orchestrator([check_call(), ModelReply(text="09:00 is free")])

        await orchestrator.process("Free tomorrow?", "s1", Channel.SMS, UNKNOWN_PHONE)

        first, second = orchestrator.gateway.calls
        assert first["catalog"] is second["catalog"] is orchestrator.catalog
        assert "transfer_to_support" in orchestrator.catalog.names()

    @pytest.mark.asyncio
    async def test_sequential_turns_keep_order(self, make_orchestrator, sessions):
        orchestrator = make_orchestrator([ModelReply(text="Reply one"), ModelReply(text="Reply two")])

        await orchestrator.process("Message one", "s1", Channel.SMS, UNKNOWN_PHONE)
        await orchestrator.process("Message two", "s1", Channel.SMS, UNKNOWN_PHONE)

        history = await sessions.get_history("s1")
        assert [t.text for t in history] == ["Message one", "Reply one", "Message two", "Reply two"]
        second_conversation = orchestrator.gateway.calls[1]["conversation"]
        assert [t.text for t in second_conversation] == ["Message one", "Reply one", "Message two"]

    @pytest.mark.asyncio
    async def test_concurrent_messages_are_serialized(self, make_orchestrator, sessions):
        orchestrator = make_orchestrator(
            [ModelReply(text="First"), ModelReply(text="Second")],
            retriever=FakeRetriever(delay=0.01),
        )

        await asyncio.gather(
            orchestrator.process("A", "s1", Channel.CHAT, UNKNOWN_PHONE),
            orchestrator.process("B", "s1", Channel.CHAT, UNKNOWN_PHONE),
        )

        history = await sessions.get_history("s1")
        assert [t.role for t in history] == [Role.USER, Role.MODEL, Role.USER, Role.MODEL]
        assert len(orchestrator.gateway.calls[1]["conversation"]) == 3


class TestPersona:
    """Persona from the directory and from model markers."""

    @pytest.mark.asyncio
    async def test_marker_stripped_and_stored(self, make_orchestrator, sessions):
        orchestrator = make_orchestrator([ModelReply(text="Happy to help! [GENDER: female]")])

        result = await orchestrator.process("I am interested", "s1", Channel.CHAT, UNKNOWN_PHONE)

        assert result.text == "Happy to help!"
        assert await sessions.get_attribute("s1") == "female"
        history = await sessions.get_history("s1")
        assert all("GENDER" not in (t.text or "") for t in history)

    @pytest.mark.asyncio
    async def test_marker_mid_text(self, make_orchestrator, sessions):
        orchestrator = make_orchestrator([ModelReply(text="Sure [gender: MALE] I can help")])

        result = await orchestrator.process("Help", "s1", Channel.SMS, UNKNOWN_PHONE)

        assert result.text == "Sure I can help"
        assert await sessions.get_attribute("s1") == "male"

    @pytest.mark.asyncio
    async def test_directory_persona_sets_attribute(self, make_orchestrator, sessions, directory):
        orchestrator = make_orchestrator([ModelReply(text="Hello Dana"), ModelReply(text="Sure")])

        await orchestrator.process("Hi", "s1", Channel.CHAT, PHONE)

        assert await sessions.get_attribute("s1") == "female"
        assert "CUSTOMER PERSONA: female" in orchestrator.gateway.calls[0]["system_instruction"]

        await orchestrator.process("Another question", "s1", Channel.CHAT, PHONE)

        assert directory.lookups == [PHONE]
        assert "CUSTOMER PERSONA: female" in orchestrator.gateway.calls[1]["system_instruction"]

    @pytest.mark.asyncio
    async def test_unknown_phone_leaves_persona_empty(self, make_orchestrator, sessions):
        orchestrator = make_orchestrator([ModelReply(text="Hello")])

        await orchestrator.process("Hi", "s1", Channel.CHAT, UNKNOWN_PHONE)

        assert await sessions.get_attribute("s1") is None


class TestVoiceTools:
    """Voice defers tool execution to resolve_tools."""

    @pytest.mark.asyncio
    async def test_tool_call_returns_checking(self, make_orchestrator, sessions):
        orchestrator = make_orchestrator([check_call()])

        result = await orchestrator.process("Free tomorrow?", "call-1", Channel.VOICE, UNKNOWN_PHONE)

        assert result.requires_tool_call is True
        assert result.text == "One moment, checking."
        assert result.function_calls == [FunctionCall("check_availability", {"date": "2026-10-19"})]
        history = await sessions.get_history("call-1")
        assert [t.role for t in history] == [Role.USER]

    @pytest.mark.asyncio
    async def test_resolve_tools_follow_up(self, make_orchestrator, sessions, retriever):
        orchestrator = make_orchestrator([check_call(), ModelReply(text="We have 09:00 free.")])

        first = await orchestrator.process("Free tomorrow?", "call-1", Channel.VOICE, UNKNOWN_PHONE)
        result = await orchestrator.resolve_tools(first.function_calls, "call-1", Channel.VOICE)

        assert result.text == "We have 09:00 free."
        assert result.requires_tool_call is False
        history = await sessions.get_history("call-1")
        assert [t.role for t in history] == [Role.USER, Role.MODEL, Role.FUNCTION, Role.MODEL]
        assert history[1].function_call.name == "check_availability"
        assert history[2].function_result["success"] is True
        assert "09:00" in history[2].function_result["available_slots"]
        # Follow-up uses general context
        assert retriever.queries[-1] == ("", 3)
        follow_up = orchestrator.gateway.calls[1]["conversation"]
        assert follow_up[-1].role == Role.FUNCTION

    @pytest.mark.asyncio
    async def test_handoff_short_circuits(self, make_orchestrator, sessions):
        calls = [
            FunctionCall("transfer_to_support", {"reason": "wants a person"}),
            FunctionCall("check_availability", {"date": "2026-10-19"}),
        ]
        orchestrator = make_orchestrator([ModelReply(function_calls=calls)])

        first = await orchestrator.process("Let me talk to a human", "call-1", Channel.VOICE, UNKNOWN_PHONE)
        result = await orchestrator.resolve_tools(first.function_calls, "call-1", Channel.VOICE)

        assert result.transfer_to_operator is True
        assert result.text == "Transferring you now."
        assert len(orchestrator.gateway.calls) == 1
        history = await sessions.get_history("call-1")
        assert [t.role for t in history] == [Role.USER, Role.MODEL, Role.FUNCTION]

    @pytest.mark.asyncio
    async def test_unknown_tool_falls_back(self, make_orchestrator):
        orchestrator = make_orchestrator([ModelReply(function_calls=[FunctionCall("launch_rocket", {})])])
        first = await orchestrator.process("Go", "call-2", Channel.VOICE, UNKNOWN_PHONE)
        result = await orchestrator.resolve_tools(first.function_calls, "call-2", Channel.VOICE)

        assert result.text == "Voice technical problem."
        assert isinstance(result.error, ToolExecutionError)
        assert result.transfer_to_operator is False


class TestTextChannelTools:
    """Chat and SMS resolve tools within the same cycle."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("channel", [Channel.CHAT, Channel.SMS])
    async def test_tools_resolved_synchronously(self, make_orchestrator, sessions, channel):
        orchestrator = make_orchestrator([check_call(), ModelReply(text="09:00 is free tomorrow.")])

        result = await orchestrator.process("Free tomorrow?", "s1", channel, UNKNOWN_PHONE)

        assert result.text == "09:00 is free tomorrow."
        assert result.requires_tool_call is False
        assert result.function_calls is None
        history = await sessions.get_history("s1")
        assert [t.role for t in history] == [Role.USER, Role.MODEL, Role.FUNCTION, Role.MODEL]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("channel", [Channel.CHAT, Channel.SMS])
    async def test_handoff_acknowledgement(self, make_orchestrator, channel):
        orchestrator = make_orchestrator([
            ModelReply(function_calls=[FunctionCall("transfer_to_support", {})]),
        ])

        result = await orchestrator.process("I want a human", "s1", channel, UNKNOWN_PHONE)

        assert result.text == "A representative will contact you shortly."
        assert result.transfer_to_operator is False
        assert len(orchestrator.gateway.calls) == 1

    @pytest.mark.asyncio
    async def test_booking_through_tools(self, make_orchestrator, calendar):
        booking = FunctionCall("book_appointment", {"date": "2026-10-19", "time": "10:00", "name": "Dana"})
        orchestrator = make_orchestrator([
            ModelReply(function_calls=[booking]),
            ModelReply(text="Booked for 10:00."),
        ])

        result = await orchestrator.process("Book 10:00 tomorrow", "s1", Channel.CHAT, UNKNOWN_PHONE)

        assert result.text == "Booked for 10:00."
        assert "10:00" not in calendar.available_slots(TOMORROW)

    @pytest.mark.asyncio
    async def test_tool_loop_bound(self, make_orchestrator):
        orchestrator = make_orchestrator([check_call(), check_call("2026-10-20")])

        result = await orchestrator.process("Free this week?", "s1", Channel.SMS, UNKNOWN_PHONE)

        assert isinstance(result.error, ToolLoopExhaustedError)
        assert result.text == "Technical problem, try again."

    @pytest.mark.asyncio
    async def test_more_tool_rounds_allowed(self, make_orchestrator):
        orchestrator = make_orchestrator(
            [check_call(), check_call("2026-10-20"), ModelReply(text="Both days are open.")],
            max_tool_rounds=2,
        )

        result = await orchestrator.process("Free this week?", "s1", Channel.SMS, UNKNOWN_PHONE)

        assert result.text == "Both days are open."
        assert len(orchestrator.gateway.calls) == 3

    def test_invalid_tool_round_limit(self, make_orchestrator):
        with pytest.raises(ValueError):
            make_orchestrator([], max_tool_rounds=0)

    @pytest.mark.asyncio
    async def test_short_history_limit_keeps_question_for_follow_up(self, make_orchestrator):
        store = InMemorySessionStore(max_history_turns=2)
        orchestrator = make_orchestrator(
            [
                ModelReply(text="Hello!"),
                check_call(),
                ModelReply(text="09:00 is free tomorrow."),
            ],
            sessions=store,
        )

        await orchestrator.process("Hi", "s1", Channel.CHAT, UNKNOWN_PHONE)
        result = await orchestrator.process("Free tomorrow?", "s1", Channel.CHAT, UNKNOWN_PHONE)

        assert result.text == "09:00 is free tomorrow."
        follow_up = orchestrator.gateway.calls[2]["conversation"]
        assert follow_up[0].role == Role.USER
        assert follow_up[0].text == "Free tomorrow?"
        assert [t.role for t in follow_up] == [Role.USER, Role.MODEL, Role.FUNCTION]


class TestSessionLifecycle:
    """Sessions released by the transport."""

    @pytest.mark.asyncio
    async def test_end_session_forgets_history(self, make_orchestrator, sessions):
        orchestrator = make_orchestrator([ModelReply(text="Hello"), ModelReply(text="Hello again")])
        await orchestrator.process("Hi", "CA1", Channel.VOICE, UNKNOWN_PHONE)

        await orchestrator.end_session("CA1")

        assert sessions.get_session("CA1") is None
        await orchestrator.process("Hi", "CA1", Channel.VOICE, UNKNOWN_PHONE)
        assert len(orchestrator.gateway.calls[1]["conversation"]) == 1

    @pytest.mark.asyncio
    async def test_end_session_waits_for_running_cycle(self, make_orchestrator, sessions):
        orchestrator = make_orchestrator(
            [ModelReply(text="Slow reply")],
            retriever=FakeRetriever(delay=0.05),
        )

        running = asyncio.create_task(orchestrator.process("Hi", "s1", Channel.SMS, UNKNOWN_PHONE))
        await asyncio.sleep(0.01)
        await orchestrator.end_session("s1")
        result = await running

        assert result.text == "Slow reply"
        assert sessions.get_session("s1") is None


class TestFailures:
    """Failures become fallback results; degraded inputs stay invisible."""

    @pytest.mark.asyncio
    async def test_gateway_failure_on_sms(self, make_orchestrator, sessions):
        orchestrator = make_orchestrator([ModelGatewayError("provider down")])

        result = await orchestrator.process("Hello", "sms:+972500000000", Channel.SMS, UNKNOWN_PHONE)

        assert result.text == "Technical problem, try again."
        assert result.requires_tool_call is False
        assert isinstance(result.error, ModelGatewayError)
        assert result.failed
        assert await sessions.get_history("sms:+972500000000") == []

    @pytest.mark.asyncio
    async def test_gateway_failure_on_voice(self, make_orchestrator):
        orchestrator = make_orchestrator([ModelGatewayError("provider down")])

        result = await orchestrator.process("Hello", "call-1", Channel.VOICE, UNKNOWN_PHONE)

        assert result.text == "Voice technical problem."

    @pytest.mark.asyncio
    async def test_gateway_timeout(self, make_orchestrator, sessions):
        orchestrator = make_orchestrator(
            [], gateway=SlowGateway([ModelReply(text="late")]), model_timeout=0.05
        )

        result = await orchestrator.process("Hello", "s1", Channel.CHAT, UNKNOWN_PHONE)

        assert isinstance(result.error, ModelGatewayError)
        assert await sessions.get_history("s1") == []

    @pytest.mark.asyncio
    async def test_empty_reply_falls_back(self, make_orchestrator):
        orchestrator = make_orchestrator([ModelReply(text="  ")])

        result = await orchestrator.process("Hello", "s1", Channel.CHAT, UNKNOWN_PHONE)

        assert result.failed
        assert result.text == "Technical problem, try again."

    @pytest.mark.asyncio
    async def test_missing_api_error_message(self, make_orchestrator, sessions):
        from messaging.formatter import ChannelReplyFormatter

        orchestrator = make_orchestrator(
            [ModelGatewayError("down")], formatter=ChannelReplyFormatter({})
        )

        result = await orchestrator.process("Hello", "s1", Channel.CHAT, UNKNOWN_PHONE)

        assert result.failed
        assert result.text

    @pytest.mark.asyncio
    async def test_retrieval_failure_is_degraded(self, make_orchestrator):
        orchestrator = make_orchestrator(
            [ModelReply(text="Hello")], retriever=FakeRetriever(error=RetrievalError("index down"))
        )

        result = await orchestrator.process("Hello", "s1", Channel.CHAT, UNKNOWN_PHONE)

        assert result.text == "Hello"
        assert result.error is None
        assert "BUSINESS INFORMATION" not in orchestrator.gateway.calls[0]["system_instruction"]

    @pytest.mark.asyncio
    async def test_retrieval_timeout_is_degraded(self, make_orchestrator):
        orchestrator = make_orchestrator(
            [ModelReply(text="Hello")],
            retriever=FakeRetriever(delay=1.0),
            retrieval_timeout=0.05,
        )

        result = await orchestrator.process("Hello", "s1", Channel.CHAT, UNKNOWN_PHONE)

        assert result.text == "Hello"
        assert result.error is None

    @pytest.mark.asyncio
    async def test_directory_failure_is_degraded(self, make_orchestrator, sessions):
        orchestrator = make_orchestrator(
            [ModelReply(text="Hello")], directory=FakeDirectory(error=DirectoryLookupError("crm down"))
        )

        result = await orchestrator.process("Hello", "s1", Channel.VOICE, PHONE)

        assert result.text == "Hello"
        assert await sessions.get_attribute("s1") is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("channel", [Channel.VOICE, Channel.CHAT, Channel.SMS])
    async def test_results_always_satisfy_invariant(self, make_orchestrator, channel):
        scripts = [
            [ModelReply(text="ok")],
            [ModelGatewayError("down")],
            [check_call(), ModelReply(text="done")],
            [ModelReply(function_calls=[FunctionCall("transfer_to_support", {})])],
            [ModelReply(text="[GENDER: male]")],
        ]
        for i, script in enumerate(scripts):
            orchestrator = make_orchestrator(script)
            result = await orchestrator.process("Hi", f"{channel.value}-{i}", channel, UNKNOWN_PHONE)
            assert_result_invariant(result)
