"""Exceptions raised by the orchestrator's collaborators."""


class OrchestrationError(Exception):
    """Base class for conversation service errors."""


class SessionNotFoundError(OrchestrationError, KeyError):
    """Raised when a session id has not been initialised."""


class ModelGatewayError(OrchestrationError):
    """Raised when the model provider is unreachable or rejects a call."""


class ToolExecutionError(OrchestrationError):
    """Raised when a tool is unknown or fails while executing."""

    def __init__(self, tool_name: str, message: str):
        super().__init__(f"{tool_name}: {message}")
        self.tool_name = tool_name


class ToolLoopExhaustedError(OrchestrationError):
    """Raised when the model keeps requesting tools past the round limit."""


class DirectoryLookupError(OrchestrationError):
    """Raised when the customer directory cannot be queried."""


class RetrievalError(OrchestrationError):
    """Raised when the knowledge base cannot be queried."""
