"""
Core contracts for the conversation service.

Provides:
- Value types (Channel, Turn, FunctionCall, MessageProcessingResult, ...)
- Collaborator interfaces (SessionStore, ContextRetriever, ModelGateway, ...)
- Exceptions and the model gateway plugin registry
"""

from core.types import (
    Channel,
    Role,
    FunctionCall,
    Turn,
    ModelReply,
    ToolDeclaration,
    ToolCatalog,
    MessageProcessingResult,
)
from core.exceptions import (
    OrchestrationError,
    SessionNotFoundError,
    ModelGatewayError,
    ToolExecutionError,
    ToolLoopExhaustedError,
    DirectoryLookupError,
    RetrievalError,
)

__all__ = [
    "Channel",
    "Role",
    "FunctionCall",
    "Turn",
    "ModelReply",
    "ToolDeclaration",
    "ToolCatalog",
    "MessageProcessingResult",
    "OrchestrationError",
    "SessionNotFoundError",
    "ModelGatewayError",
    "ToolExecutionError",
    "ToolLoopExhaustedError",
    "DirectoryLookupError",
    "RetrievalError",
]
