"""Human handoff tool."""

import logging

from config.constants import HANDOFF_TOOL_NAME
from tools.base_tool import BaseTool, ToolParameter, ToolResult

logger = logging.getLogger(__name__)


class TransferToSupportTool(BaseTool):
    """
    Hands the conversation to a human representative.

    The orchestrator ends the automated turn after this tool runs; the tool
    itself only acknowledges the request.
    """

    name = HANDOFF_TOOL_NAME
    description = (
        "Transfer the customer to a human representative. Use when the customer "
        "asks for a person, is upset, or the request is outside what you can handle."
    )
    parameters = [
        ToolParameter("reason", "string", "Short reason for the transfer", required=False),
    ]

    def execute(self, reason: str = "") -> ToolResult:
        logger.info(f"[TOOLS] Handoff requested: {reason or 'no reason given'}")
        return ToolResult(
            success=True,
            data={"status": "transfer_requested", "reason": reason or ""},
        )
