"""Appointment repository - Database operations for appointments"""

from datetime import date, datetime, time, timedelta
from typing import Any, Optional

from sqlalchemy.orm import Session, joinedload

from ...models import Appointment, AppointmentSlot, User
from ..scheduling.slots import occupied_cells
from .catalog import INACTIVE_STATES, AppointmentState, Role


class AppointmentRepository:
    """Repository for appointment database operations"""

    @staticmethod
    def get_by_id(db: Session, appointment_id: int) -> Optional[Appointment]:
        return (
            db.query(Appointment)
            .options(joinedload(Appointment.client), joinedload(Appointment.dentist))
            .filter(Appointment.id == appointment_id)
            .first()
        )

    @staticmethod
    def get_active_on_date(db: Session, day: date) -> list[Appointment]:
        """Appointments holding time on the schedule for a calendar day"""
        start = datetime.combine(day, time.min)
        end = start + timedelta(days=1)
        return (
            db.query(Appointment)
            .filter(
                Appointment.scheduled_at >= start,
                Appointment.scheduled_at < end,
                Appointment.state.notin_(INACTIVE_STATES),
            )
            .order_by(Appointment.scheduled_at.asc())
            .all()
        )

    @staticmethod
    def add(db: Session, **appointment_data) -> Appointment:
        """Stage a new appointment and flush so it gets an id (no commit)"""
        appointment = Appointment(**appointment_data)
        db.add(appointment)
        db.flush()
        return appointment

    @staticmethod
    def claim_slots(db: Session, appointment_id: int, start: datetime, duration_minutes: int) -> None:
        """Hold the grid cells of an appointment; flushes so a clash raises IntegrityError here"""
        for cell in occupied_cells(start, duration_minutes):
            db.add(AppointmentSlot(appointment_id=appointment_id, slot_start=cell))
        db.flush()

    @staticmethod
    def release_slots(db: Session, appointment_id: int) -> None:
        db.query(AppointmentSlot).filter(AppointmentSlot.appointment_id == appointment_id).delete(
            synchronize_session=False
        )
        db.flush()

    @staticmethod
    def update_if_state(
        db: Session, appointment_id: int, expected_states: list[str], **updates
    ) -> int:
        """
        Single conditional UPDATE: only applies while the row is still in one
        of expected_states. Returns the affected row count (0 or 1).
        """
        return (
            db.query(Appointment)
            .filter(Appointment.id == appointment_id, Appointment.state.in_(expected_states))
            .update(updates, synchronize_session=False)
        )

    @staticmethod
    def paginate(query, page: int, limit: int) -> dict[str, Any]:
        total = query.count()
        rows = query.offset((page - 1) * limit).limit(limit).all()
        return {
            "citas": rows,
            "totalCitas": total,
            "paginaActual": page,
            "totalPaginas": (total + limit - 1) // limit if limit else 0,
        }

    @staticmethod
    def client_appointments_query(db: Session, client_id: int, state: Optional[str] = None):
        query = (
            db.query(Appointment)
            .options(joinedload(Appointment.dentist))
            .filter(Appointment.client_id == client_id)
        )
        if state:
            query = query.filter(Appointment.state == state)
        return query.order_by(Appointment.scheduled_at.desc())

    @staticmethod
    def pending_query(db: Session, day: Optional[date] = None):
        query = (
            db.query(Appointment)
            .options(joinedload(Appointment.client))
            .filter(Appointment.state == AppointmentState.PENDING.value)
        )
        if day:
            start = datetime.combine(day, time.min)
            query = query.filter(
                Appointment.scheduled_at >= start,
                Appointment.scheduled_at < start + timedelta(days=1),
            )
        return query.order_by(Appointment.scheduled_at.asc(), Appointment.id.asc())

    @staticmethod
    def get_dentist_appointments(
        db: Session, dentist_id: int, day: Optional[date] = None, state: Optional[str] = None
    ) -> list[Appointment]:
        query = (
            db.query(Appointment)
            .options(joinedload(Appointment.client))
            .filter(Appointment.dentist_id == dentist_id)
        )
        if day:
            start = datetime.combine(day, time.min)
            query = query.filter(
                Appointment.scheduled_at >= start,
                Appointment.scheduled_at < start + timedelta(days=1),
            )
        if state:
            query = query.filter(Appointment.state == state)
        return query.order_by(Appointment.scheduled_at.asc()).all()

    # User lookups (users are owned by the auth service)
    @staticmethod
    def get_user(db: Session, user_id: int) -> Optional[User]:
        return db.query(User).filter(User.id == user_id).first()

    @staticmethod
    def get_active_dentists(db: Session) -> list[User]:
        return (
            db.query(User)
            .filter(User.role == Role.DENTIST.value, User.is_active.is_(True))
            .order_by(User.first_name.asc(), User.last_name.asc())
            .all()
        )
