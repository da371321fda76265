"""
Base classes for tools the model can call.

A tool declares its parameters once; the declaration handed to the model
gateway is derived from them as a JSON-schema object.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional

from core.types import ToolDeclaration


@dataclass
class ToolParameter:
    """One tool argument."""
    name: str
    type: str  # string, integer, number, boolean
    description: str
    required: bool = True
    enum: Optional[list[str]] = None

    def to_schema(self) -> dict:
        schema = {"type": self.type, "description": self.description}
        if self.enum:
            schema["enum"] = list(self.enum)
        return schema


@dataclass
class ToolResult:
    """Outcome of a tool execution, returned to the model."""
    success: bool
    data: dict = field(default_factory=dict)
    display_text: str = ""
    error: Optional[str] = None

    def to_response(self) -> dict:
        """Payload recorded in history and sent back to the model."""
        response: dict[str, Any] = {"success": self.success, **self.data}
        if self.display_text:
            response["message"] = self.display_text
        if self.error:
            response["error"] = self.error
        return response


class BaseTool(ABC):
    """Base class for model-callable tools."""

    name: str = ""
    description: str = ""
    parameters: list[ToolParameter] = []

    def declaration(self) -> ToolDeclaration:
        return ToolDeclaration(
            name=self.name,
            description=self.description,
            parameters={
                "type": "object",
                "properties": {p.name: p.to_schema() for p in self.parameters},
                "required": [p.name for p in self.parameters if p.required],
            },
        )

    def missing_arguments(self, args: dict) -> list[str]:
        return [
            p.name for p in self.parameters
            if p.required and args.get(p.name) in (None, "")
        ]

    def run(self, **kwargs) -> ToolResult:
        """Validate required arguments, then execute."""
        missing = self.missing_arguments(kwargs)
        if missing:
            return ToolResult(
                success=False,
                error=f"Missing required arguments: {', '.join(missing)}",
            )
        known = {p.name for p in self.parameters}
        return self.execute(**{k: v for k, v in kwargs.items() if k in known})

    @abstractmethod
    def execute(self, **kwargs) -> ToolResult:
        ...
