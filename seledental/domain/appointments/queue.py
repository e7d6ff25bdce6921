"""Assignment queue - pending pool and dentist assignment for receptionists"""

import logging
from typing import Any, Optional

from sqlalchemy.orm import Session

from ...config import PENDING_PAGE_SIZE
from ...errors import ConflictError, NotFoundError, PreconditionError
from ...models import User
from ...realtime.events import AppointmentEvents, Notifier
from ..scheduling import clock
from ..scheduling.slots import parse_date
from . import lifecycle
from .catalog import AppointmentState, Role
from .repository import AppointmentRepository
from .schemas import UserSummary, serialize_appointment, serialize_page

logger = logging.getLogger(__name__)


class AssignmentQueue:
    """Pending appointments awaiting a dentist"""

    def __init__(self, db: Session, notifier: Notifier):
        self.db = db
        self.repo = AppointmentRepository()
        self.events = AppointmentEvents(notifier)

    def list_pending(
        self, fecha: Optional[str] = None, pagina: int = 1, limite: int = PENDING_PAGE_SIZE
    ) -> dict[str, Any]:
        """Every pending appointment, soonest first, optionally for one date"""
        day = parse_date(fecha) if fecha else None
        query = self.repo.pending_query(self.db, day)
        return serialize_page(self.repo.paginate(query, pagina, limite))

    def list_dentists(self) -> dict[str, Any]:
        dentists = self.repo.get_active_dentists(self.db)
        return {
            "odontologos": [
                UserSummary.from_user(d).model_dump(mode="json") for d in dentists
            ]
        }

    def assign(
        self, appointment_id: int, dentist_id: int, notes: Optional[str], actor: User
    ) -> dict[str, Any]:
        """
        Assign a dentist to a pending appointment.

        The write is one conditional UPDATE guarded on state = pendiente, so
        when two receptionists race, the second finds no row to update and
        gets a conflict instead of overwriting the first assignment.
        """
        appointment = self.repo.get_by_id(self.db, appointment_id)
        if not appointment:
            raise NotFoundError("Cita no encontrada")

        lifecycle.authorize(lifecycle.ASSIGN, appointment, actor)

        dentist = self.repo.get_user(self.db, dentist_id)
        if not dentist or dentist.role != Role.DENTIST.value:
            raise NotFoundError("Odontólogo no encontrado")
        if not dentist.is_active:
            raise PreconditionError("El odontólogo seleccionado no está activo")

        lifecycle.ensure_source_state(lifecycle.ASSIGN, appointment)

        now = clock.clinic_now()
        try:
            updated = self.repo.update_if_state(
                self.db,
                appointment_id,
                [AppointmentState.PENDING.value],
                **lifecycle.assignment_changes(dentist.id, notes, now),
            )
            if updated == 0:
                logger.warning(
                    f"⚠️ Appointment {appointment_id} was claimed by another receptionist before user {actor.id}"
                )
                raise ConflictError(lifecycle.TRANSITIONS[lifecycle.ASSIGN].wrong_state_message)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.expire_all()
        appointment = self.repo.get_by_id(self.db, appointment_id)
        cita = serialize_appointment(appointment)
        logger.info(
            f"👩‍⚕️ Appointment {appointment_id} assigned to dentist {dentist.id} by user {actor.id}"
        )
        self.events.assigned(cita, appointment.client_id, dentist.id)
        return cita
