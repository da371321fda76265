"""
Conversation orchestrator shared by the voice, chat and SMS channels.

Coordinates, per incoming message:
- Session bootstrap
- Knowledge retrieval and CRM lookup (concurrently)
- System instruction assembly and the model call
- Tool execution with the human-handoff short-circuit
- Persona marker extraction and channel formatting
"""

import asyncio
import logging
import time
from enum import Enum
from typing import Optional

from config.constants import HANDOFF_TOOL_NAME, MESSAGE_KEYS, RAG_CONFIG
from core.exceptions import ModelGatewayError, ToolLoopExhaustedError
from core.interfaces import (
    ContextRetriever,
    CustomerDirectory,
    ModelGateway,
    ReplyFormatter,
    SessionStore,
    ToolRegistry,
)
from core.types import (
    Channel,
    FunctionCall,
    MessageProcessingResult,
    ModelReply,
    Role,
    Turn,
)
from orchestration.persona import extract_persona_marker
from orchestration.prompt_builder import PromptBuilder

logger = logging.getLogger(__name__)

# Used only if the formatter has no apiError message
LAST_RESORT_REPLY = "Sorry, something went wrong. Please try again later."


class ToolLoopState(str, Enum):
    """States of the tool resolution loop."""
    AWAITING_TOOLS = "awaiting_tools"
    AWAITING_MODEL = "awaiting_model"
    DONE = "done"


class ConversationOrchestrator:
    """
    Main conversation engine.

    Flow (process):
    1. Ensure the session exists
    2. Retrieve context and, if no persona is known, look up the customer
    3. Call the model with history + the new message
    4. Text reply: strip persona marker, store, format
       Tool calls: resolve now (chat/SMS) or ask voice to hold
    5. Any failure becomes the channel's apiError message
    """

    def __init__(
        self,
        sessions: SessionStore,
        retriever: ContextRetriever,
        directory: CustomerDirectory,
        tools: ToolRegistry,
        gateway: ModelGateway,
        formatter: ReplyFormatter,
        prompt_builder: Optional[PromptBuilder] = None,
        rag_top_k: int = RAG_CONFIG["default_top_k"],
        model_timeout: float = 30.0,
        retrieval_timeout: float = 5.0,
        directory_timeout: float = 3.0,
        tool_timeout: float = 15.0,
        max_tool_rounds: int = 1,
        handoff_tool_name: str = HANDOFF_TOOL_NAME,
    ):
        """
        Initialize orchestrator.

        Args:
            sessions: Session store (history + persona)
            retriever: Knowledge context retriever
            directory: Customer directory (CRM)
            tools: Tool registry; its catalog is declared on every model call
            gateway: Model provider
            formatter: Channel formatter and fixed messages
            prompt_builder: System instruction builder
            rag_top_k: Passages retrieved per message
            model_timeout: Seconds allowed per model call
            retrieval_timeout: Seconds allowed for retrieval
            directory_timeout: Seconds allowed for the CRM lookup
            tool_timeout: Seconds allowed per tool call
            max_tool_rounds: Tool rounds per cycle before giving up
            handoff_tool_name: Tool that ends the automated conversation
        """
        if max_tool_rounds < 1:
            raise ValueError("max_tool_rounds must be at least 1")

        self.sessions = sessions
        self.retriever = retriever
        self.directory = directory
        self.tools = tools
        self.gateway = gateway
        self.formatter = formatter
        self.prompt_builder = prompt_builder or PromptBuilder()
        self.rag_top_k = rag_top_k
        self.model_timeout = model_timeout
        self.retrieval_timeout = retrieval_timeout
        self.directory_timeout = directory_timeout
        self.tool_timeout = tool_timeout
        self.max_tool_rounds = max_tool_rounds
        self.handoff_tool_name = handoff_tool_name

        # Built once; shared by every model call
        self.catalog = tools.catalog

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def process(
        self,
        user_message: str,
        session_id: str,
        channel: Channel,
        user_phone: str,
    ) -> MessageProcessingResult:
        """
        Process one incoming message.

        Args:
            user_message: Text from the customer (speech transcript for voice)
            session_id: Call sid, chat address or "sms:<number>"
            channel: voice, chat or sms
            user_phone: Customer phone number for the CRM lookup

        Returns:
            MessageProcessingResult; never raises for a valid channel
        """
        channel = Channel(channel)
        start_time = time.time()
        logger.info(f"[ORCH] [{channel.value.upper()}] Message from {user_phone}: {user_message[:80]!r}")

        try:
            await self.sessions.init_session(session_id, channel)
            async with self.sessions.lock(session_id):
                return await self._process_locked(user_message, session_id, channel, user_phone)
        except Exception as e:
            logger.exception(f"[ORCH] [{channel.value.upper()}] Processing failed for {session_id}")
            return self._fallback(channel, e)
        finally:
            duration_ms = int((time.time() - start_time) * 1000)
            logger.info(f"[ORCH] [{channel.value.upper()}] Total response time: {duration_ms}ms")

    async def resolve_tools(
        self,
        function_calls: list[FunctionCall],
        session_id: str,
        channel: Channel,
    ) -> MessageProcessingResult:
        """
        Execute pending tool calls and produce the follow-up reply.

        Called by the voice transport after a ``requires_tool_call`` result;
        chat and SMS reach the same logic from ``process``.
        """
        channel = Channel(channel)
        async with self.sessions.lock(session_id):
            return await self._resolve_tools_locked(function_calls, session_id, channel)

    async def end_session(self, session_id: str) -> None:
        """Release a session when its call or conversation is over."""
        # Wait for an in-flight cycle; the lock itself is dropped on close
        async with self.sessions.lock(session_id):
            logger.info(f"[ORCH] Ending session {session_id}")
        await self.sessions.close_session(session_id)

    # ------------------------------------------------------------------
    # Message pipeline
    # ------------------------------------------------------------------

    async def _process_locked(
        self,
        user_message: str,
        session_id: str,
        channel: Channel,
        user_phone: str,
    ) -> MessageProcessingResult:
        persona = await self.sessions.get_attribute(session_id)

        gather_start = time.time()
        lookup = self._lookup_customer(user_phone) if persona is None else self._skip_lookup()
        context, customer = await asyncio.gather(self._retrieve_context(user_message), lookup)
        logger.info(f"[ORCH] Context + CRM: {int((time.time() - gather_start) * 1000)}ms")

        if customer is not None and customer.persona:
            await self.sessions.set_attribute(session_id, customer.persona)
            logger.info(f"[ORCH] CRM data for {user_phone}: {customer.name} ({customer.persona})")

        persona = await self.sessions.get_attribute(session_id)
        system_instruction = self.prompt_builder.build(
            context, persona, self.prompt_builder.current_local_time()
        )

        history = await self.sessions.get_history(session_id)
        conversation = history + [Turn(role=Role.USER, text=user_message)]
        logger.info(f"[ORCH] Sending conversation of {len(conversation)} turns (context {len(context)} chars)")

        reply = await self._generate(system_instruction, conversation)

        # Committed only once the model call has succeeded
        await self.sessions.add_to_history(session_id, Role.USER, user_message)

        if reply.has_function_calls:
            names = ", ".join(fc.name for fc in reply.function_calls)
            logger.info(f"[ORCH] Model requested tools: {names}")

            if channel.is_text:
                return await self._resolve_tools_locked(reply.function_calls, session_id, channel)

            return MessageProcessingResult(
                text=self.formatter.fixed_message(MESSAGE_KEYS["checking"], channel),
                requires_tool_call=True,
                function_calls=list(reply.function_calls),
            )

        return await self._finalize_text(reply.text, session_id, channel)

    async def _resolve_tools_locked(
        self,
        function_calls: list[FunctionCall],
        session_id: str,
        channel: Channel,
    ) -> MessageProcessingResult:
        logger.info(f"[ORCH] Resolving tools for {session_id} [{channel.value}]")

        try:
            pending = list(function_calls)
            rounds = 0
            reply: Optional[ModelReply] = None
            state = ToolLoopState.AWAITING_TOOLS

            while state != ToolLoopState.DONE:
                if state == ToolLoopState.AWAITING_TOOLS:
                    if rounds >= self.max_tool_rounds:
                        raise ToolLoopExhaustedError(
                            f"Model still requested tools after {rounds} round(s): "
                            f"{', '.join(fc.name for fc in pending)}"
                        )
                    rounds += 1
                    terminal = await self._run_tools(pending, session_id, channel)
                    if terminal is not None:
                        return terminal
                    state = ToolLoopState.AWAITING_MODEL

                elif state == ToolLoopState.AWAITING_MODEL:
                    # No fresh user text here; general context only
                    context = await self._retrieve_context("")
                    persona = await self.sessions.get_attribute(session_id)
                    system_instruction = self.prompt_builder.build(
                        context, persona, self.prompt_builder.current_local_time()
                    )
                    history = await self.sessions.get_history(session_id)
                    reply = await self._generate(system_instruction, history)

                    if reply.has_function_calls:
                        pending = list(reply.function_calls)
                        state = ToolLoopState.AWAITING_TOOLS
                    else:
                        state = ToolLoopState.DONE

            return await self._finalize_text(reply.text, session_id, channel)

        except Exception as e:
            logger.exception(f"[ORCH] Tool resolution failed for {session_id}")
            return self._fallback(channel, e)

    async def _run_tools(
        self,
        function_calls: list[FunctionCall],
        session_id: str,
        channel: Channel,
    ) -> Optional[MessageProcessingResult]:
        """Run tools in order; returns a terminal result on handoff."""
        for index, call in enumerate(function_calls):
            logger.info(f"[ORCH] Executing tool {call.name}")
            result = await asyncio.wait_for(
                self.tools.invoke(call.name, dict(call.args)),
                timeout=self.tool_timeout,
            )
            await self.sessions.add_function_interaction(session_id, call, result)

            if call.name == self.handoff_tool_name:
                skipped = len(function_calls) - index - 1
                if skipped:
                    logger.info(f"[ORCH] Handoff requested; skipping {skipped} queued tool call(s)")

                if channel == Channel.VOICE:
                    return MessageProcessingResult(
                        text=self.formatter.fixed_message(MESSAGE_KEYS["transferring"], channel),
                        requires_tool_call=False,
                        transfer_to_operator=True,
                    )
                return MessageProcessingResult(
                    text=self.formatter.fixed_message(MESSAGE_KEYS["handoff"], channel),
                    requires_tool_call=False,
                )
        return None

    async def _finalize_text(
        self,
        raw_text: str,
        session_id: str,
        channel: Channel,
    ) -> MessageProcessingResult:
        """Strip the persona marker, store the model turn and format for the channel."""
        text, persona = extract_persona_marker(raw_text or "")
        if persona:
            await self.sessions.set_attribute(session_id, persona)
            logger.info(f"[ORCH] Persona detected from model output: {persona}")

        if not text:
            raise ModelGatewayError("Model returned an empty reply")

        await self.sessions.add_to_history(session_id, Role.MODEL, text)
        formatted = self.formatter.format(text, channel)

        return MessageProcessingResult(text=formatted, requires_tool_call=False)

    # ------------------------------------------------------------------
    # Collaborator calls
    # ------------------------------------------------------------------

    async def _generate(self, system_instruction: str, conversation: list[Turn]) -> ModelReply:
        start_time = time.time()
        try:
            reply = await asyncio.wait_for(
                self.gateway.generate(system_instruction, self.catalog, conversation),
                timeout=self.model_timeout,
            )
        except asyncio.TimeoutError as e:
            raise ModelGatewayError(
                f"{self.gateway.name} timed out after {self.model_timeout}s"
            ) from e
        logger.info(f"[ORCH] Model call ({self.gateway.name}): {int((time.time() - start_time) * 1000)}ms")
        return reply

    async def _retrieve_context(self, query: str) -> str:
        """Retrieval failures degrade to an empty context."""
        try:
            return await asyncio.wait_for(
                self.retriever.retrieve(query, self.rag_top_k),
                timeout=self.retrieval_timeout,
            ) or ""
        except Exception as e:
            logger.warning(f"[ORCH] Retrieval failed, continuing without context: {type(e).__name__}: {e}")
            return ""

    async def _lookup_customer(self, user_phone: str):
        """Directory failures degrade to 'no customer data'."""
        try:
            return await asyncio.wait_for(
                self.directory.lookup(user_phone),
                timeout=self.directory_timeout,
            )
        except Exception as e:
            logger.warning(f"[ORCH] Customer lookup failed for {user_phone}: {type(e).__name__}: {e}")
            return None

    @staticmethod
    async def _skip_lookup():
        return None

    def _fallback(self, channel: Channel, error: BaseException) -> MessageProcessingResult:
        try:
            text = self.formatter.fixed_message(MESSAGE_KEYS["api_error"], channel)
        except KeyError:
            logger.error("[ORCH] No apiError message configured")
            text = LAST_RESORT_REPLY
        return MessageProcessingResult(
            text=text,
            requires_tool_call=False,
            error=error,
        )
