"""
In-memory appointment calendar.

Demo backend for the calendar tools: fixed business hours, equal-length
slots, bookings kept in process memory.
"""

import logging
import threading
import uuid
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Callable, Optional
from zoneinfo import ZoneInfo

from config.constants import CALENDAR_CONFIG

logger = logging.getLogger(__name__)


class SlotUnavailableError(ValueError):
    """Raised when a requested slot is outside hours, in the past, or taken."""


@dataclass
class Appointment:
    id: str
    start: datetime
    name: str
    phone: str = ""
    notes: str = ""

    def to_dict(self) -> dict:
        return {
            "appointment_id": self.id,
            "date": self.start.date().isoformat(),
            "time": self.start.strftime("%H:%M"),
            "name": self.name,
        }


class AppointmentCalendar:
    """Slot-based calendar in a fixed time zone."""

    def __init__(
        self,
        timezone: str = "Asia/Jerusalem",
        open_hour: int = CALENDAR_CONFIG["open_hour"],
        close_hour: int = CALENDAR_CONFIG["close_hour"],
        slot_minutes: int = CALENDAR_CONFIG["slot_minutes"],
        working_days: Optional[list[int]] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.tz = ZoneInfo(timezone)
        self.open_hour = open_hour
        self.close_hour = close_hour
        self.slot_minutes = slot_minutes
        self.working_days = working_days if working_days is not None else CALENDAR_CONFIG["working_days"]
        self._clock = clock or (lambda: datetime.now(self.tz))
        self._appointments: dict[str, Appointment] = {}
        # Guards _appointments; tools run in worker threads for any session
        self._lock = threading.Lock()

    def now(self) -> datetime:
        return self._clock().astimezone(self.tz)

    def _slot_starts(self, day: date) -> list[datetime]:
        if day.weekday() not in self.working_days:
            return []
        slots = []
        current = datetime.combine(day, time(self.open_hour), tzinfo=self.tz)
        end = datetime.combine(day, time(self.close_hour), tzinfo=self.tz)
        while current + timedelta(minutes=self.slot_minutes) <= end:
            slots.append(current)
            current += timedelta(minutes=self.slot_minutes)
        return slots

    def _booked(self) -> set[datetime]:
        return {a.start for a in self._appointments.values()}

    def available_slots(self, day: date) -> list[str]:
        """Free slot start times ("HH:MM") for a day, excluding past slots."""
        now = self.now()
        with self._lock:
            booked = self._booked()
        return [
            slot.strftime("%H:%M")
            for slot in self._slot_starts(day)
            if slot > now and slot not in booked
        ]

    def book(self, day: date, start: time, name: str, phone: str = "", notes: str = "") -> Appointment:
        slot = datetime.combine(day, start, tzinfo=self.tz)
        if slot not in self._slot_starts(day):
            raise SlotUnavailableError(f"{day.isoformat()} {start.strftime('%H:%M')} is outside business hours")
        if slot <= self.now():
            raise SlotUnavailableError("Requested time is in the past")

        with self._lock:
            if slot in self._booked():
                raise SlotUnavailableError("Requested time is already booked")
            appointment = Appointment(
                id=uuid.uuid4().hex[:8], start=slot, name=name, phone=phone, notes=notes
            )
            self._appointments[appointment.id] = appointment
        logger.info(f"[CALENDAR] Booked {appointment.id} at {slot.isoformat()} for {name}")
        return appointment

    def cancel(self, appointment_id: str) -> bool:
        with self._lock:
            removed = self._appointments.pop(appointment_id, None)
        if removed:
            logger.info(f"[CALENDAR] Cancelled {appointment_id}")
        return removed is not None

    def get(self, appointment_id: str) -> Optional[Appointment]:
        return self._appointments.get(appointment_id)
