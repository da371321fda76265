"""
Ollama model gateway.

Calls Ollama's /api/chat with native tool calling.
"""

import httpx
import json
import time
import logging
from typing import Any, Optional

from core.exceptions import ModelGatewayError
from core.interfaces import ModelGateway
from core.types import FunctionCall, ModelReply, Role, ToolCatalog, Turn

logger = logging.getLogger(__name__)


def catalog_to_ollama_tools(catalog: ToolCatalog) -> list[dict]:
    """Tool declarations in Ollama/OpenAI function format."""
    return [
        {
            "type": "function",
            "function": {
                "name": d.name,
                "description": d.description,
                "parameters": d.parameters,
            },
        }
        for d in catalog
    ]


def conversation_to_ollama_messages(conversation: list[Turn]) -> list[dict]:
    """Convert history turns to Ollama chat messages."""
    messages = []
    for turn in conversation:
        if turn.is_function_call:
            messages.append({
                "role": "assistant",
                "content": "",
                "tool_calls": [{
                    "function": {
                        "name": turn.function_call.name,
                        "arguments": dict(turn.function_call.args),
                    }
                }],
            })
        elif turn.is_function_result:
            messages.append({
                "role": "tool",
                "tool_name": turn.function_name,
                "content": json.dumps(turn.function_result, ensure_ascii=False, default=str),
            })
        elif turn.role == Role.USER:
            messages.append({"role": "user", "content": turn.text or ""})
        else:
            messages.append({"role": "assistant", "content": turn.text or ""})
    return messages


def _parse_arguments(raw: Any) -> dict:
    if isinstance(raw, dict):
        return raw
    if isinstance(raw, str) and raw.strip():
        try:
            parsed = json.loads(raw)
            return parsed if isinstance(parsed, dict) else {}
        except json.JSONDecodeError:
            logger.warning(f"[OLLAMA] Unparseable tool arguments: {raw[:80]}")
    return {}


class OllamaGateway(ModelGateway):
    """Ollama-based model gateway."""

    def __init__(
        self,
        model: str = "qwen3:8b-q4_K_M",
        base_url: str = "http://localhost:11434",
        temperature: float = 0.7,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        **kwargs,
    ):
        """
        Initialize Ollama gateway.

        Args:
            model: Ollama model name
            base_url: Ollama server URL
            temperature: Sampling temperature
            timeout: Request timeout
            transport: Custom httpx transport (tests)
        """
        super().__init__()
        self._model = model
        self._base_url = base_url.rstrip("/")
        self._temperature = temperature
        self._timeout = timeout
        self._transport = transport

    @property
    def name(self) -> str:
        return "ollama"

    @property
    def model(self) -> str:
        return self._model

    async def generate(
        self,
        system_instruction: str,
        catalog: ToolCatalog,
        conversation: list[Turn],
    ) -> ModelReply:
        start_time = time.time()

        messages = [{"role": "system", "content": system_instruction}]
        messages.extend(conversation_to_ollama_messages(conversation))

        payload = {
            "model": self._model,
            "messages": messages,
            "stream": False,
            "think": False,
            "options": {"temperature": self._temperature},
        }
        if len(catalog):
            payload["tools"] = catalog_to_ollama_tools(catalog)

        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.post(f"{self._base_url}/api/chat", json=payload)
                response.raise_for_status()
                result = response.json()
        except httpx.ConnectError as e:
            logger.error("[OLLAMA] Server not running! Start with: ollama serve")
            self._record_error()
            raise ModelGatewayError("Ollama server not running") from e
        except httpx.TimeoutException as e:
            duration_ms = self._elapsed_ms(start_time)
            logger.error(f"[OLLAMA] TIMEOUT after {duration_ms}ms")
            self._record_error()
            raise ModelGatewayError(f"Ollama timeout after {duration_ms}ms") from e
        except httpx.HTTPError as e:
            logger.error(f"[OLLAMA] Error: {type(e).__name__}: {e}")
            self._record_error()
            raise ModelGatewayError(f"Ollama request failed: {e}") from e

        message = result.get("message", {}) or {}
        calls = [
            FunctionCall(
                name=tc.get("function", {}).get("name", ""),
                args=_parse_arguments(tc.get("function", {}).get("arguments")),
            )
            for tc in message.get("tool_calls") or []
        ]
        text = (message.get("content") or "").strip()

        duration_ms = self._elapsed_ms(start_time)
        self._record_call(duration_ms)
        logger.info(
            f"[OLLAMA] Response: {duration_ms}ms | tool_calls:{len(calls)} | text:{text[:50]}..."
        )
        return ModelReply(text=text, function_calls=calls)

    async def health_check(self) -> bool:
        """Check if Ollama is available and the model is pulled."""
        try:
            async with httpx.AsyncClient(timeout=5.0, transport=self._transport) as client:
                response = await client.get(f"{self._base_url}/api/tags")
                if response.status_code == 200:
                    models = response.json().get("models", [])
                    return any(self._model in m.get("name", "") for m in models)
                return False
        except httpx.HTTPError as e:
            logger.error(f"[OLLAMA] Health check failed: {e}")
            return False


def register_plugin():
    """Register the Ollama gateway with the registry."""
    from core.registry import get_registry
    get_registry().register_llm("ollama", OllamaGateway)
    logger.info("[OLLAMA] Plugin registered")
