"""Calendar tools: availability, booking and cancellation."""

import logging
from datetime import date, datetime, time

from config.constants import CALENDAR_CONFIG
from tools.base_tool import BaseTool, ToolParameter, ToolResult
from tools.calendar import AppointmentCalendar, SlotUnavailableError

logger = logging.getLogger(__name__)


def _parse_date(value: str) -> date:
    return date.fromisoformat(str(value).strip())


def _parse_time(value: str) -> time:
    return datetime.strptime(str(value).strip(), "%H:%M").time()


class CheckAvailabilityTool(BaseTool):
    name = "check_availability"
    description = (
        "Check which meeting slots are free on a given date. "
        "Use before offering or booking a meeting time."
    )
    parameters = [
        ToolParameter("date", "string", "Date to check, in YYYY-MM-DD format"),
    ]

    def __init__(self, calendar: AppointmentCalendar):
        self.calendar = calendar

    def execute(self, date: str) -> ToolResult:
        try:
            day = _parse_date(date)
        except ValueError:
            return ToolResult(success=False, error=f"Invalid date '{date}', expected YYYY-MM-DD")

        slots = self.calendar.available_slots(day)
        shown = slots[:CALENDAR_CONFIG["max_slots_returned"]]
        if not slots:
            text = f"No free slots on {day.isoformat()}"
        else:
            text = f"Free slots on {day.isoformat()}: {', '.join(shown)}"
        return ToolResult(
            success=True,
            data={"date": day.isoformat(), "available_slots": shown, "total_available": len(slots)},
            display_text=text,
        )


class BookAppointmentTool(BaseTool):
    name = "book_appointment"
    description = "Book a meeting with a sales advisor at a free slot."
    parameters = [
        ToolParameter("date", "string", "Meeting date, YYYY-MM-DD"),
        ToolParameter("time", "string", "Meeting start time, HH:MM (24h)"),
        ToolParameter("name", "string", "Customer full name"),
        ToolParameter("phone", "string", "Customer phone number", required=False),
        ToolParameter("notes", "string", "Topic of the meeting", required=False),
    ]

    def __init__(self, calendar: AppointmentCalendar):
        self.calendar = calendar

    def execute(self, date: str, time: str, name: str, phone: str = "", notes: str = "") -> ToolResult:
        try:
            day, start = _parse_date(date), _parse_time(time)
        except ValueError:
            return ToolResult(success=False, error="Invalid date or time format")

        try:
            appointment = self.calendar.book(day, start, name=name, phone=phone or "", notes=notes or "")
        except SlotUnavailableError as e:
            return ToolResult(
                success=False,
                data={"available_slots": self.calendar.available_slots(day)[:CALENDAR_CONFIG["max_slots_returned"]]},
                error=str(e),
            )

        return ToolResult(
            success=True,
            data=appointment.to_dict(),
            display_text=f"Meeting booked for {name} on {day.isoformat()} at {start.strftime('%H:%M')}",
        )


class CancelAppointmentTool(BaseTool):
    name = "cancel_appointment"
    description = "Cancel a previously booked meeting by its appointment id."
    parameters = [
        ToolParameter("appointment_id", "string", "Id returned when the meeting was booked"),
    ]

    def __init__(self, calendar: AppointmentCalendar):
        self.calendar = calendar

    def execute(self, appointment_id: str) -> ToolResult:
        if not self.calendar.cancel(appointment_id):
            return ToolResult(success=False, error=f"No appointment with id {appointment_id}")
        return ToolResult(
            success=True,
            data={"appointment_id": appointment_id},
            display_text="Meeting cancelled",
        )
