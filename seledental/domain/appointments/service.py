"""Appointment service - Booking, availability and lifecycle operations"""

import logging
from datetime import datetime
from typing import Any, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...config import APPOINTMENT_MINUTES, CLIENT_PAGE_SIZE
from ...errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    PreconditionError,
    ValidationError,
)
from ...models import Appointment, User
from ...realtime.events import AppointmentEvents, Notifier
from ..scheduling import clock
from ..scheduling.overlap import find_conflicts
from ..scheduling.slots import compute_available_slots, is_grid_slot, parse_date
from . import lifecycle
from .catalog import CATEGORIES, AppointmentState, Role, is_valid_category
from .repository import AppointmentRepository
from .schemas import AppointmentCreate, serialize_appointment, serialize_page

logger = logging.getLogger(__name__)

SLOT_UNAVAILABLE = "El horario seleccionado no está disponible"
CONCURRENT_CHANGE = "La cita fue modificada por otra operación. Actualice e intente de nuevo"
OFF_GRID = "La hora debe coincidir con un horario de atención (08:00 a 17:30, cada 30 minutos)"


class AppointmentService:
    """Service layer for appointment business logic"""

    def __init__(self, db: Session, notifier: Notifier):
        self.db = db
        self.repo = AppointmentRepository()
        self.events = AppointmentEvents(notifier)

    # ========================================================================
    # READS
    # ========================================================================

    @staticmethod
    def get_categories() -> dict[str, Any]:
        return {"categorias": CATEGORIES}

    def get_available_slots(self, fecha: Optional[str]) -> dict[str, Any]:
        """Free slots for a date, computed from a fresh read of its active appointments"""
        day = parse_date(fecha)
        active = self.repo.get_active_on_date(self.db, day)
        slots = compute_available_slots(day, active, today=clock.clinic_today())
        return {"fecha": day.isoformat(), "horariosDisponibles": slots}

    def get_appointment(self, appointment_id: int) -> Appointment:
        appointment = self.repo.get_by_id(self.db, appointment_id)
        if not appointment:
            raise NotFoundError("Cita no encontrada")
        return appointment

    def list_client_appointments(
        self,
        actor: User,
        estado: Optional[str] = None,
        pagina: int = 1,
        limite: int = CLIENT_PAGE_SIZE,
    ) -> dict[str, Any]:
        """The caller's own appointments, newest first"""
        _validate_state_filter(estado)
        query = self.repo.client_appointments_query(self.db, actor.id, estado)
        return serialize_page(self.repo.paginate(query, pagina, limite))

    def list_dentist_appointments(
        self, actor: User, fecha: Optional[str] = None, estado: Optional[str] = None
    ) -> dict[str, Any]:
        """Appointments assigned to the calling dentist, chronological"""
        _validate_state_filter(estado)
        day = parse_date(fecha) if fecha else None
        appointments = self.repo.get_dentist_appointments(self.db, actor.id, day, estado)
        return {"citas": [serialize_appointment(a) for a in appointments]}

    # ========================================================================
    # BOOKING
    # ========================================================================

    def book(self, data: AppointmentCreate, actor: User) -> dict[str, Any]:
        """
        Create a pending appointment for a client.

        Every precondition is checked before anything is written. The grid
        cells claimed in the same transaction turn a race with another
        booking into an IntegrityError, reported as a conflict.
        """
        logger.info(f"📥 Booking request from user {actor.id} for {data.fechaHora}")

        if actor.role != Role.CLIENT.value:
            raise AuthorizationError("Solo los clientes pueden agendar citas")
        if not actor.profile_complete:
            raise PreconditionError("Debe completar su perfil antes de agendar una cita")

        consultation_type = data.tipoConsulta.value
        if not is_valid_category(consultation_type, data.categoria):
            raise ValidationError.for_field(
                "categoria", "La categoría no corresponde al tipo de consulta"
            )

        start = data.fechaHora
        self._ensure_bookable_start(start, "La fecha y hora de la cita debe ser futura")
        self._ensure_free(start, APPOINTMENT_MINUTES)

        try:
            appointment = self.repo.add(
                self.db,
                client_id=actor.id,
                consultation_type=consultation_type,
                category=data.categoria,
                scheduled_at=start,
                duration_minutes=APPOINTMENT_MINUTES,
                details=data.detalles,
                state=AppointmentState.PENDING.value,
            )
            self.repo.claim_slots(self.db, appointment.id, start, APPOINTMENT_MINUTES)
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            logger.warning(f"⚠️ Slot {start} taken concurrently, booking by user {actor.id} rejected")
            raise ConflictError(SLOT_UNAVAILABLE) from e
        except Exception:
            self.db.rollback()
            raise

        appointment = self.get_appointment(appointment.id)
        cita = serialize_appointment(appointment)
        logger.info(f"✅ Appointment {appointment.id} booked for {start} by client {actor.id}")
        self.events.created(cita, appointment.scheduled_at)
        return cita

    # ========================================================================
    # TRANSITIONS
    # ========================================================================

    def cancel(self, appointment_id: int, reason: Optional[str], actor: User) -> dict[str, Any]:
        appointment = self.get_appointment(appointment_id)
        now = clock.clinic_now()
        transition = lifecycle.guard(lifecycle.CANCEL, appointment, actor, now)

        scheduled_at = appointment.scheduled_at
        dentist_id = appointment.dentist_id
        try:
            self._apply(
                appointment_id, transition, lifecycle.cancellation_changes(reason, now)
            )
            self.repo.release_slots(self.db, appointment_id)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        cita = self._reload(appointment_id)
        logger.info(f"🗑️ Appointment {appointment_id} cancelled by user {actor.id} ({actor.role})")
        self.events.cancelled(cita, scheduled_at, appointment.client_id, dentist_id)
        return cita

    def reschedule(
        self, appointment_id: int, new_start: datetime, reason: Optional[str], actor: User
    ) -> dict[str, Any]:
        """Move an appointment to a new slot; it returns to the pending pool unassigned"""
        appointment = self.get_appointment(appointment_id)
        now = clock.clinic_now()
        transition = lifecycle.guard(lifecycle.RESCHEDULE, appointment, actor, now)

        self._ensure_bookable_start(new_start, "La nueva fecha y hora debe ser futura")
        self._ensure_free(new_start, appointment.duration_minutes, exclude=appointment_id)

        previous_start = appointment.scheduled_at
        previous_dentist_id = appointment.dentist_id
        changes = lifecycle.reschedule_changes(appointment, new_start, reason, now)
        try:
            self._apply(appointment_id, transition, changes)
            self.repo.release_slots(self.db, appointment_id)
            self.repo.claim_slots(self.db, appointment_id, new_start, appointment.duration_minutes)
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            logger.warning(f"⚠️ Slot {new_start} taken concurrently, reschedule of {appointment_id} rejected")
            raise ConflictError(SLOT_UNAVAILABLE) from e
        except Exception:
            self.db.rollback()
            raise

        cita = self._reload(appointment_id)
        logger.info(
            f"🔄 Appointment {appointment_id} rescheduled {previous_start} -> {new_start} by user {actor.id}"
        )
        self.events.rescheduled(
            cita, previous_start, new_start, appointment.client_id, previous_dentist_id
        )
        return cita

    def start(self, appointment_id: int, actor: User) -> dict[str, Any]:
        appointment = self.get_appointment(appointment_id)
        now = clock.clinic_now()
        transition = lifecycle.guard(lifecycle.START, appointment, actor, now)

        try:
            self._apply(appointment_id, transition, lifecycle.start_changes(now))
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        cita = self._reload(appointment_id)
        logger.info(f"▶️ Appointment {appointment_id} started by dentist {actor.id}")
        self.events.started(cita, appointment.client_id)
        return cita

    def complete(self, appointment_id: int, notes: Optional[str], actor: User) -> dict[str, Any]:
        appointment = self.get_appointment(appointment_id)
        now = clock.clinic_now()
        transition = lifecycle.guard(lifecycle.COMPLETE, appointment, actor, now)

        try:
            self._apply(appointment_id, transition, lifecycle.completion_changes(notes, now))
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        cita = self._reload(appointment_id)
        logger.info(f"✅ Appointment {appointment_id} completed by dentist {actor.id}")
        self.events.completed(cita, appointment.client_id)
        return cita

    def mark_no_show(self, appointment_id: int, actor: User) -> dict[str, Any]:
        appointment = self.get_appointment(appointment_id)
        now = clock.clinic_now()
        transition = lifecycle.guard(lifecycle.NO_SHOW, appointment, actor, now)

        scheduled_at = appointment.scheduled_at
        dentist_id = appointment.dentist_id
        try:
            self._apply(appointment_id, transition, lifecycle.no_show_changes())
            self.repo.release_slots(self.db, appointment_id)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        cita = self._reload(appointment_id)
        logger.info(f"🚫 Appointment {appointment_id} marked as no-show by user {actor.id}")
        self.events.no_show(cita, scheduled_at, appointment.client_id, dentist_id)
        return cita

    # ========================================================================
    # HELPERS
    # ========================================================================

    def _ensure_bookable_start(self, start: datetime, past_message: str) -> None:
        if start <= clock.clinic_now():
            raise PreconditionError(past_message)
        if not is_grid_slot(start):
            raise ValidationError.for_field("fechaHora", OFF_GRID)

    def _ensure_free(self, start: datetime, duration: int, exclude: Optional[int] = None) -> None:
        active = self.repo.get_active_on_date(self.db, start.date())
        conflicts = find_conflicts(start, duration, active, exclude_appointment=exclude)
        if conflicts:
            logger.info(
                f"⛔ Slot {start} overlaps appointment(s) {[c.id for c in conflicts]}"
            )
            raise ConflictError(SLOT_UNAVAILABLE)

    def _apply(self, appointment_id: int, transition: lifecycle.Transition, changes: dict) -> None:
        """Write a transition only if the row is still in a source state"""
        updated = self.repo.update_if_state(
            self.db, appointment_id, list(transition.sources), **changes
        )
        if updated == 0:
            logger.warning(
                f"⚠️ Appointment {appointment_id} changed state before {transition.action} was written"
            )
            raise ConflictError(CONCURRENT_CHANGE)

    def _reload(self, appointment_id: int) -> dict[str, Any]:
        self.db.expire_all()
        return serialize_appointment(self.get_appointment(appointment_id))


def _validate_state_filter(estado: Optional[str]) -> None:
    if estado and estado not in {s.value for s in AppointmentState}:
        raise ValidationError.for_field("estado", f"Estado inválido: {estado}")
