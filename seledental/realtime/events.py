"""
Appointment events published after each committed change.

The scheduling services only know the ``Notifier`` interface; the broker
backed implementation schedules delivery on the running event loop and
returns immediately, so a slow or broken subscriber never delays the request
that caused the event.
"""

import asyncio
import logging
from datetime import date, datetime
from typing import Any, Optional, Protocol

from .broker import RECEPTIONISTS_ROOM, RealtimeBroker, broker, client_room, date_room, dentist_room

logger = logging.getLogger(__name__)

# Event names understood by the frontend
SLOTS_UPDATED = "horarios_updated"
NEW_APPOINTMENT = "nueva_cita"
APPOINTMENT_ASSIGNED = "cita_asignada"
APPOINTMENT_UPDATED = "cita_actualizada"
APPOINTMENT_CANCELLED = "cita_cancelada"
APPOINTMENT_RESCHEDULED = "cita_reagendada"
NEW_ASSIGNMENT = "nueva_cita_asignada"
APPOINTMENT_COMPLETED = "cita_completada"
APPOINTMENT_STARTED = "cita_iniciada"


class Notifier(Protocol):
    def notify(self, room: str, event: str, data: dict[str, Any]) -> None: ...


class BrokerNotifier:
    """Fire-and-forget publishing into the in-process broker"""

    def __init__(self, target: RealtimeBroker):
        self.broker = target
        self._tasks: set[asyncio.Task] = set()

    def notify(self, room: str, event: str, data: dict[str, Any]) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug(f"No event loop running, {event} for {room} dropped")
            return

        task = loop.create_task(self._deliver(room, event, data))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _deliver(self, room: str, event: str, data: dict[str, Any]) -> None:
        try:
            await self.broker.publish(room, event, data)
        except Exception as e:
            logger.error(f"❌ Failed to publish {event} to {room}: {e}")


broker_notifier = BrokerNotifier(broker)


def get_notifier() -> Notifier:
    """FastAPI dependency; tests override it with a recording notifier"""
    return broker_notifier


def _day(value: datetime | date) -> str:
    if isinstance(value, datetime):
        value = value.date()
    return value.isoformat()


class AppointmentEvents:
    """Maps each lifecycle change to the rooms that must hear about it"""

    def __init__(self, notifier: Notifier):
        self.notifier = notifier

    def _emit(self, room: str, event: str, data: dict[str, Any]) -> None:
        try:
            self.notifier.notify(room, event, data)
        except Exception as e:
            logger.error(f"❌ Notifier failed for {event} in {room}: {e}")

    def _slots_changed(self, *days: datetime | date) -> None:
        for day in sorted({_day(d) for d in days}):
            self._emit(date_room(day), SLOTS_UPDATED, {"fecha": day})

    def created(self, cita: dict[str, Any], scheduled_at: datetime) -> None:
        self._slots_changed(scheduled_at)
        self._emit(RECEPTIONISTS_ROOM, NEW_APPOINTMENT, {"cita": cita})

    def assigned(self, cita: dict[str, Any], client_id: int, dentist_id: int) -> None:
        self._emit(client_room(client_id), APPOINTMENT_ASSIGNED, {"cita": cita})
        self._emit(dentist_room(dentist_id), NEW_ASSIGNMENT, {"cita": cita})
        # Other receptionists drop it from their pending queue
        self._emit(RECEPTIONISTS_ROOM, APPOINTMENT_UPDATED, {"cita": cita})

    def started(self, cita: dict[str, Any], client_id: int) -> None:
        self._emit(RECEPTIONISTS_ROOM, APPOINTMENT_STARTED, {"cita": cita})
        self._emit(client_room(client_id), APPOINTMENT_UPDATED, {"cita": cita})

    def completed(self, cita: dict[str, Any], client_id: int) -> None:
        self._emit(RECEPTIONISTS_ROOM, APPOINTMENT_COMPLETED, {"cita": cita})
        self._emit(client_room(client_id), APPOINTMENT_UPDATED, {"cita": cita})

    def cancelled(
        self,
        cita: dict[str, Any],
        scheduled_at: datetime,
        client_id: int,
        dentist_id: Optional[int],
    ) -> None:
        self._slots_changed(scheduled_at)
        self._emit(RECEPTIONISTS_ROOM, APPOINTMENT_CANCELLED, {"cita": cita})
        self._emit(client_room(client_id), APPOINTMENT_UPDATED, {"cita": cita})
        if dentist_id:
            self._emit(dentist_room(dentist_id), APPOINTMENT_UPDATED, {"cita": cita})

    def rescheduled(
        self,
        cita: dict[str, Any],
        previous_scheduled_at: datetime,
        scheduled_at: datetime,
        client_id: int,
        previous_dentist_id: Optional[int],
    ) -> None:
        self._slots_changed(previous_scheduled_at, scheduled_at)
        self._emit(RECEPTIONISTS_ROOM, APPOINTMENT_RESCHEDULED, {"cita": cita})
        self._emit(client_room(client_id), APPOINTMENT_UPDATED, {"cita": cita})
        if previous_dentist_id:
            self._emit(dentist_room(previous_dentist_id), APPOINTMENT_UPDATED, {"cita": cita})

    def no_show(
        self,
        cita: dict[str, Any],
        scheduled_at: datetime,
        client_id: int,
        dentist_id: Optional[int],
    ) -> None:
        self._slots_changed(scheduled_at)
        self._emit(RECEPTIONISTS_ROOM, APPOINTMENT_UPDATED, {"cita": cita})
        self._emit(client_room(client_id), APPOINTMENT_UPDATED, {"cita": cita})
        if dentist_id:
            self._emit(dentist_room(dentist_id), APPOINTMENT_UPDATED, {"cita": cita})
