"""
Model-callable tools.

Provides:
- BaseTool / ToolParameter / ToolResult: tool building blocks
- Calendar tools backed by AppointmentCalendar
- TransferToSupportTool: human handoff
- LocalToolRegistry: static catalog + execution by name
"""

from tools.base_tool import BaseTool, ToolParameter, ToolResult
from tools.calendar import AppointmentCalendar, Appointment, SlotUnavailableError
from tools.calendar_tools import CheckAvailabilityTool, BookAppointmentTool, CancelAppointmentTool
from tools.support_tools import TransferToSupportTool
from tools.registry import LocalToolRegistry, create_default_registry

__all__ = [
    "BaseTool",
    "ToolParameter",
    "ToolResult",
    "AppointmentCalendar",
    "Appointment",
    "SlotUnavailableError",
    "CheckAvailabilityTool",
    "BookAppointmentTool",
    "CancelAppointmentTool",
    "TransferToSupportTool",
    "LocalToolRegistry",
    "create_default_registry",
]
