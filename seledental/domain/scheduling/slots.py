"""
Slot Calculator

Turns the clinic's fixed half-hour grid into the list of start times still
bookable on a date. Availability is derived on every call, never stored.
"""

from datetime import date, datetime, time, timedelta
from typing import Iterable, Optional

from ...config import APPOINTMENT_MINUTES, CLINIC_CLOSING, CLINIC_OPENING, SLOT_MINUTES
from ...errors import PreconditionError, ValidationError
from . import clock
from .overlap import Scheduled, has_conflict


def _parse_hhmm(value: str) -> time:
    hour, minute = value.split(":")
    return time(int(hour), int(minute))


def base_grid(
    opening: str = CLINIC_OPENING,
    closing: str = CLINIC_CLOSING,
    step_minutes: int = SLOT_MINUTES,
) -> list[time]:
    """Slot start times from opening up to (not including) closing: 08:00 .. 17:30 by default"""
    start = _parse_hhmm(opening)
    end = _parse_hhmm(closing)

    current = datetime.combine(date.min, start)
    limit = datetime.combine(date.min, end)
    grid = []
    while current < limit:
        grid.append(current.time())
        current += timedelta(minutes=step_minutes)
    return grid


BASE_GRID = base_grid()


def format_slot(value: time) -> str:
    return value.strftime("%H:%M")


def is_grid_slot(value: datetime) -> bool:
    """True when value starts exactly on one of the clinic's slots"""
    return value.second == 0 and value.microsecond == 0 and value.time() in BASE_GRID


def occupied_cells(start: datetime, duration_minutes: int, step_minutes: int = SLOT_MINUTES) -> list[datetime]:
    """Grid cells covered by [start, start + duration). A 60-minute booking holds two."""
    cells = []
    current = start
    end = start + timedelta(minutes=duration_minutes)
    while current < end:
        cells.append(current)
        current += timedelta(minutes=step_minutes)
    return cells


def parse_date(value: Optional[str]) -> date:
    """Parse a YYYY-MM-DD query value"""
    if not value:
        raise ValidationError.for_field("fecha", "La fecha es requerida")
    try:
        return date.fromisoformat(value)
    except ValueError as e:
        raise ValidationError.for_field(
            "fecha", "Formato de fecha inválido. Se espera YYYY-MM-DD"
        ) from e


def compute_available_slots(
    day: date,
    active_appointments: Iterable[Scheduled],
    today: Optional[date] = None,
    duration_minutes: int = APPOINTMENT_MINUTES,
) -> list[str]:
    """
    Bookable slots for a date, in grid order.

    A grid slot is dropped when a booking of ``duration_minutes`` starting
    there would conflict with an active appointment, which is the same test
    the booking path runs, so an advertised slot is never refused on submit
    for overlap reasons.

    Raises:
        PreconditionError: the date is before today (clinic calendar)
    """
    if today is None:
        today = clock.clinic_today()
    if day < today:
        raise PreconditionError("No se pueden agendar citas en fechas pasadas")

    appointments = list(active_appointments)
    available = []
    for slot in BASE_GRID:
        candidate = datetime.combine(day, slot)
        if not has_conflict(candidate, duration_minutes, appointments):
            available.append(format_slot(slot))
    return available
