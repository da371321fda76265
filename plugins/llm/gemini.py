"""
Gemini model gateway.

Uses the google-genai SDK with function declarations built from the tool
catalog. History turns map onto Gemini contents as follows:
- user text      -> Content(role="user", parts=[text])
- model text     -> Content(role="model", parts=[text])
- tool request   -> Content(role="model", parts=[function_call])
- tool result    -> Content(role="user", parts=[function_response])
"""

import logging
import time
from typing import Any, Optional

from google import genai
from google.genai import errors as genai_errors
from google.genai import types as genai_types

from core.exceptions import ModelGatewayError
from core.interfaces import ModelGateway
from core.types import FunctionCall, ModelReply, Role, ToolCatalog, Turn

logger = logging.getLogger(__name__)

_SCHEMA_TYPES = {
    "string": "STRING",
    "integer": "INTEGER",
    "number": "NUMBER",
    "boolean": "BOOLEAN",
    "array": "ARRAY",
    "object": "OBJECT",
}


def json_schema_to_gemini(schema: dict) -> genai_types.Schema:
    """Convert a JSON-schema fragment to a Gemini Schema."""
    kwargs: dict[str, Any] = {
        "type": _SCHEMA_TYPES.get(schema.get("type", "string"), "STRING"),
    }
    if schema.get("description"):
        kwargs["description"] = schema["description"]
    if schema.get("enum"):
        kwargs["enum"] = [str(v) for v in schema["enum"]]
    if schema.get("properties"):
        kwargs["properties"] = {
            name: json_schema_to_gemini(prop) for name, prop in schema["properties"].items()
        }
    if schema.get("required"):
        kwargs["required"] = list(schema["required"])
    if schema.get("items"):
        kwargs["items"] = json_schema_to_gemini(schema["items"])
    return genai_types.Schema(**kwargs)


def catalog_to_gemini_tools(catalog: ToolCatalog) -> list[genai_types.Tool]:
    if not len(catalog):
        return []
    declarations = [
        genai_types.FunctionDeclaration(
            name=d.name,
            description=d.description,
            parameters=json_schema_to_gemini(d.parameters),
        )
        for d in catalog
    ]
    return [genai_types.Tool(function_declarations=declarations)]


def _function_response_payload(result: Any) -> dict:
    # Gemini requires a JSON object as function response
    return result if isinstance(result, dict) else {"result": result}


def conversation_to_contents(conversation: list[Turn]) -> list[genai_types.Content]:
    """Convert history turns to Gemini contents, merging adjacent same-role turns."""
    contents: list[genai_types.Content] = []
    for turn in conversation:
        if turn.is_function_call:
            role = "model"
            part = genai_types.Part(
                function_call=genai_types.FunctionCall(
                    name=turn.function_call.name, args=dict(turn.function_call.args)
                )
            )
        elif turn.is_function_result:
            role = "user"
            part = genai_types.Part.from_function_response(
                name=turn.function_name,
                response=_function_response_payload(turn.function_result),
            )
        else:
            role = "user" if turn.role == Role.USER else "model"
            part = genai_types.Part(text=turn.text or "")

        if contents and contents[-1].role == role:
            contents[-1].parts.append(part)
        else:
            contents.append(genai_types.Content(role=role, parts=[part]))
    return contents


def parse_response(response) -> ModelReply:
    """Extract text and function calls from a generate_content response."""
    calls: list[FunctionCall] = []
    texts: list[str] = []
    if response.candidates and response.candidates[0].content and response.candidates[0].content.parts:
        for part in response.candidates[0].content.parts:
            if getattr(part, "function_call", None):
                calls.append(FunctionCall(
                    name=part.function_call.name,
                    args=dict(part.function_call.args or {}),
                ))
            elif getattr(part, "text", None):
                texts.append(part.text)
    return ModelReply(text="".join(texts).strip(), function_calls=calls)


class GeminiGateway(ModelGateway):
    """Gemini-based model gateway."""

    def __init__(
        self,
        api_key: str = "",
        model: str = "gemini-2.0-flash",
        temperature: Optional[float] = None,
        client: Optional[genai.Client] = None,
        **kwargs,
    ):
        """
        Initialize Gemini gateway.

        Args:
            api_key: Gemini API key
            model: Gemini model name
            temperature: Optional sampling temperature
            client: Pre-built genai client (tests)
        """
        super().__init__()
        self._model = model
        self._temperature = temperature
        self._client = client or genai.Client(api_key=api_key)

    @property
    def name(self) -> str:
        return "gemini"

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
        config = genai_types.GenerateContentConfig(
            system_instruction=system_instruction,
            tools=catalog_to_gemini_tools(catalog) or None,
            temperature=self._temperature,
        )
        contents = conversation_to_contents(conversation)
        logger.info(f"[GEMINI] Sending {len(contents)} contents to {self._model}")

        try:
            response = await self._client.aio.models.generate_content(
                model=self._model,
                contents=contents,
                config=config,
            )
        except genai_errors.APIError as e:
            self._record_error()
            logger.error(f"[GEMINI] API error {e.code}: {e.message}")
            raise ModelGatewayError(f"Gemini API error {e.code}: {e.message}") from e
        except Exception as e:
            self._record_error()
            logger.error(f"[GEMINI] Error: {type(e).__name__}: {e}")
            raise ModelGatewayError(f"Gemini request failed: {e}") from e

        reply = parse_response(response)
        duration_ms = self._elapsed_ms(start_time)
        self._record_call(duration_ms)
        logger.info(
            f"[GEMINI] Response: {duration_ms}ms | tool_calls:{len(reply.function_calls)} | "
            f"text:{reply.text[:50]}..."
        )
        if duration_ms > 5000:
            logger.warning(f"[GEMINI] SLOW: {duration_ms}ms")
        return reply


def register_plugin():
    """Register the Gemini gateway with the registry."""
    from core.registry import get_registry
    get_registry().register_llm("gemini", GeminiGateway)
    logger.info("[GEMINI] Plugin registered")
