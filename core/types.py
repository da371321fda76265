"""Value types shared by the orchestrator and its collaborators."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class Channel(str, Enum):
    """Channels a conversation can arrive on."""
    VOICE = "voice"
    CHAT = "chat"    # WhatsApp-style messaging
    SMS = "sms"

    @classmethod
    def _missing_(cls, value):
        # Older transports still send "whatsapp"
        if isinstance(value, str) and value.lower() == "whatsapp":
            return cls.CHAT
        return None

    @property
    def is_text(self) -> bool:
        return self is not Channel.VOICE


class Role(str, Enum):
    """Author of a history turn."""
    USER = "user"
    MODEL = "model"
    FUNCTION = "function"


@dataclass(frozen=True)
class FunctionCall:
    """A tool invocation requested by the model."""
    name: str
    args: dict = field(default_factory=dict)


@dataclass
class Turn:
    """
    One entry of a session's conversation history.

    Tool interactions are stored as two turns: a MODEL turn carrying
    ``function_call`` followed by a FUNCTION turn carrying the result.
    """
    role: Role
    text: Optional[str] = None
    function_call: Optional[FunctionCall] = None
    function_name: Optional[str] = None
    function_result: Optional[Any] = None

    @property
    def is_function_call(self) -> bool:
        return self.function_call is not None

    @property
    def is_function_result(self) -> bool:
        return self.role == Role.FUNCTION


@dataclass
class ModelReply:
    """Output of a model gateway call: text or requested tool invocations."""
    text: str = ""
    function_calls: list[FunctionCall] = field(default_factory=list)

    @property
    def has_function_calls(self) -> bool:
        return bool(self.function_calls)


@dataclass(frozen=True)
class ToolDeclaration:
    """Name, description and JSON-schema parameters of a tool."""
    name: str
    description: str
    parameters: dict


@dataclass(frozen=True)
class ToolCatalog:
    """Immutable set of tool declarations shared by every model call."""
    declarations: tuple[ToolDeclaration, ...] = ()

    def names(self) -> list[str]:
        return [d.name for d in self.declarations]

    def get(self, name: str) -> Optional[ToolDeclaration]:
        for declaration in self.declarations:
            if declaration.name == name:
                return declaration
        return None

    def __len__(self) -> int:
        return len(self.declarations)

    def __iter__(self):
        return iter(self.declarations)


@dataclass
class MessageProcessingResult:
    """
    Result handed back to the transport layer.

    Either ``text`` is a non-empty reply/fallback or ``requires_tool_call``
    is True (voice hold while tools run). ``error`` is only set on the
    fallback path.
    """
    text: Optional[str]
    requires_tool_call: bool = False
    function_calls: Optional[list[FunctionCall]] = None
    transfer_to_operator: bool = False
    error: Optional[BaseException] = None

    @property
    def failed(self) -> bool:
        return self.error is not None
