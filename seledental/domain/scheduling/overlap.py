"""
Overlap Guard

Decides whether a candidate appointment fits next to the appointments already
on the clinic schedule. The clinic has one shared timeline, so every active
appointment on the same day counts regardless of the assigned dentist.

Intervals are half-open: an appointment starting 09:00 for 60 minutes occupies
[09:00, 10:00), so a 10:00 booking right after it is admissible.
"""

from datetime import datetime
from typing import Iterable, Optional, Protocol

from ..appointments.catalog import INACTIVE_STATES


class Scheduled(Protocol):
    id: Optional[int]
    scheduled_at: datetime
    duration_minutes: int
    state: str


def minutes_since_midnight(value: datetime) -> int:
    return value.hour * 60 + value.minute


def interval_of(start: datetime, duration_minutes: int) -> tuple[int, int]:
    """Half-open [start, end) in minutes since midnight"""
    begin = minutes_since_midnight(start)
    return begin, begin + duration_minutes


def intervals_overlap(a: tuple[int, int], b: tuple[int, int]) -> bool:
    return a[0] < b[1] and a[1] > b[0]


def find_conflicts(
    candidate_start: datetime,
    candidate_duration_minutes: int,
    existing_appointments: Iterable[Scheduled],
    exclude_appointment: Optional[int] = None,
) -> list[Scheduled]:
    """
    Return the active appointments that overlap the candidate.

    Args:
        candidate_start: civil start time of the candidate
        candidate_duration_minutes: candidate length
        existing_appointments: appointments to test against; cancelled/no-show
            entries and other calendar days are ignored
        exclude_appointment: id to skip (the appointment being rescheduled)
    """
    candidate = interval_of(candidate_start, candidate_duration_minutes)
    candidate_day = candidate_start.date()

    conflicts = []
    for appointment in existing_appointments:
        if appointment.state in INACTIVE_STATES:
            continue
        if exclude_appointment is not None and appointment.id == exclude_appointment:
            continue
        if appointment.scheduled_at.date() != candidate_day:
            continue

        existing = interval_of(appointment.scheduled_at, appointment.duration_minutes)
        if intervals_overlap(candidate, existing):
            conflicts.append(appointment)

    return conflicts


def has_conflict(
    candidate_start: datetime,
    candidate_duration_minutes: int,
    existing_appointments: Iterable[Scheduled],
    exclude_appointment: Optional[int] = None,
) -> bool:
    return bool(
        find_conflicts(
            candidate_start,
            candidate_duration_minutes,
            existing_appointments,
            exclude_appointment=exclude_appointment,
        )
    )
