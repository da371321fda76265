"""
Tool registry: the static catalog declared to the model plus execution by name.
"""

import asyncio
import json
import logging
import time
from typing import Any, Iterable, Optional

from core.exceptions import ToolExecutionError
from core.interfaces import ToolRegistry
from core.types import ToolCatalog
from tools.base_tool import BaseTool, ToolResult
from tools.calendar import AppointmentCalendar
from tools.calendar_tools import BookAppointmentTool, CancelAppointmentTool, CheckAvailabilityTool
from tools.support_tools import TransferToSupportTool

logger = logging.getLogger(__name__)


def _shorten(value: Any, width: int = 60) -> str:
    try:
        rendered = json.dumps(value, ensure_ascii=False, default=str)
    except TypeError:
        rendered = repr(value)
    return rendered if len(rendered) <= width else rendered[: width - 3] + "..."


class LocalToolRegistry(ToolRegistry):
    """
    In-process tool registry.

    The catalog is built once from the registered tools and shared by
    reference with every model call.
    """

    def __init__(self, tools: Iterable[BaseTool]):
        self.tools: dict[str, BaseTool] = {}
        for tool in tools:
            if tool.name in self.tools:
                raise ValueError(f"Duplicate tool name: {tool.name}")
            self.tools[tool.name] = tool
        self._catalog = ToolCatalog(tuple(t.declaration() for t in self.tools.values()))

    @property
    def catalog(self) -> ToolCatalog:
        return self._catalog

    async def invoke(self, name: str, args: dict) -> dict:
        """
        Execute a tool by name.

        Args:
            name: Tool name as declared in the catalog
            args: Arguments produced by the model

        Returns:
            The tool's response payload (see ToolResult.to_response)
        """
        tool = self.tools.get(name)
        if tool is None:
            raise ToolExecutionError(name, "unknown tool")

        logger.info(f"[TOOLS] {name} {{ {_shorten(args or {})} }}")
        start = time.time()
        try:
            result: ToolResult = await asyncio.to_thread(tool.run, **(args or {}))
        except Exception as e:
            logger.exception(f"[TOOLS] {name} failed")
            raise ToolExecutionError(name, f"{type(e).__name__}: {e}") from e

        duration_ms = int((time.time() - start) * 1000)
        logger.info(f"[TOOLS] {name} -> success={result.success} ({duration_ms}ms)")
        return result.to_response()


def create_default_registry(
    calendar: Optional[AppointmentCalendar] = None,
    timezone: str = "Asia/Jerusalem",
) -> LocalToolRegistry:
    """Registry with the calendar tools and the handoff tool."""
    calendar = calendar or AppointmentCalendar(timezone=timezone)
    return LocalToolRegistry([
        CheckAvailabilityTool(calendar),
        BookAppointmentTool(calendar),
        CancelAppointmentTool(calendar),
        TransferToSupportTool(),
    ])
