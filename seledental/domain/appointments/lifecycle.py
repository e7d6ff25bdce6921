"""
Appointment lifecycle

    pendiente --asignar--> confirmada --iniciar--> en_proceso --completar--> completada
        ^                      |                        |
        +------reagendar-------+                        |
    pendiente/confirmada/en_proceso --cancelar--> cancelada
    pendiente/confirmada/en_proceso --no_asistio--> no_asistio

completada, cancelada and no_asistio are terminal. Guards only read; the
``*_changes`` helpers return the column updates a transition writes, so the
caller can apply them in a single statement.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Optional

from ...config import CANCELLATION_NOTICE_HOURS
from ...errors import AuthorizationError, ConflictError, PreconditionError
from ...models import Appointment, User
from .catalog import STAFF_ROLES, AppointmentState, Role

logger = logging.getLogger(__name__)

ASSIGN = "asignar"
START = "iniciar"
COMPLETE = "completar"
CANCEL = "cancelar"
RESCHEDULE = "reagendar"
NO_SHOW = "no_asistio"


@dataclass(frozen=True)
class Transition:
    action: str
    sources: frozenset
    target: str
    roles: frozenset
    wrong_state_message: str


_S = AppointmentState

TRANSITIONS: dict[str, Transition] = {
    ASSIGN: Transition(
        ASSIGN,
        frozenset({_S.PENDING.value}),
        _S.CONFIRMED.value,
        STAFF_ROLES,
        "La cita ya no está pendiente de asignación",
    ),
    START: Transition(
        START,
        frozenset({_S.CONFIRMED.value}),
        _S.IN_PROGRESS.value,
        frozenset({Role.DENTIST.value}),
        "Solo se pueden iniciar citas confirmadas",
    ),
    COMPLETE: Transition(
        COMPLETE,
        frozenset({_S.IN_PROGRESS.value}),
        _S.COMPLETED.value,
        frozenset({Role.DENTIST.value}),
        "Solo se pueden completar citas en proceso",
    ),
    CANCEL: Transition(
        CANCEL,
        frozenset({_S.PENDING.value, _S.CONFIRMED.value, _S.IN_PROGRESS.value}),
        _S.CANCELLED.value,
        STAFF_ROLES | {Role.CLIENT.value},
        "No se puede cancelar una cita en este estado",
    ),
    RESCHEDULE: Transition(
        RESCHEDULE,
        frozenset({_S.PENDING.value, _S.CONFIRMED.value}),
        _S.PENDING.value,
        STAFF_ROLES | {Role.CLIENT.value},
        "No se puede reagendar una cita en este estado",
    ),
    NO_SHOW: Transition(
        NO_SHOW,
        frozenset({_S.PENDING.value, _S.CONFIRMED.value, _S.IN_PROGRESS.value}),
        _S.NO_SHOW.value,
        STAFF_ROLES | {Role.DENTIST.value},
        "No se puede marcar como no asistida una cita en este estado",
    ),
}

_NOTICE_MESSAGES = {
    CANCEL: f"Las citas deben cancelarse con al menos {CANCELLATION_NOTICE_HOURS} horas de anticipación",
    RESCHEDULE: f"Las citas deben reagendarse con al menos {CANCELLATION_NOTICE_HOURS} horas de anticipación",
}

_FORBIDDEN_MESSAGES = {
    ASSIGN: "Solo recepcionistas o administradores pueden asignar odontólogos",
    START: "Solo el odontólogo asignado puede iniciar esta cita",
    COMPLETE: "Solo el odontólogo asignado puede completar esta cita",
    CANCEL: "No tiene permisos para cancelar esta cita",
    RESCHEDULE: "No tiene permisos para reagendar esta cita",
    NO_SHOW: "No tiene permisos para modificar esta cita",
}


def authorize(action: str, appointment: Appointment, actor: User) -> None:
    """Role and ownership check for an action"""
    transition = TRANSITIONS[action]
    allowed = actor.role in transition.roles

    if allowed and actor.role == Role.CLIENT.value:
        allowed = appointment.client_id == actor.id
    elif allowed and actor.role == Role.DENTIST.value:
        allowed = appointment.dentist_id == actor.id

    if not allowed:
        logger.warning(
            f"⚠️ User {actor.id} ({actor.role}) not allowed to {action} appointment {appointment.id}"
        )
        raise AuthorizationError(_FORBIDDEN_MESSAGES[action])


def ensure_source_state(action: str, appointment: Appointment) -> Transition:
    transition = TRANSITIONS[action]
    if appointment.state not in transition.sources:
        logger.warning(
            f"⚠️ Cannot {action} appointment {appointment.id} in state {appointment.state}"
        )
        # Losing an assignment race is a conflict, everything else is a business rule
        if action == ASSIGN:
            raise ConflictError(transition.wrong_state_message)
        raise PreconditionError(transition.wrong_state_message)
    return transition


def has_required_notice(scheduled_at: datetime, now: datetime) -> bool:
    return scheduled_at - now > timedelta(hours=CANCELLATION_NOTICE_HOURS)


def ensure_notice(action: str, appointment: Appointment, actor: User, now: datetime) -> None:
    """Clients must act more than CANCELLATION_NOTICE_HOURS before the appointment; staff are exempt"""
    if action not in _NOTICE_MESSAGES or actor.role != Role.CLIENT.value:
        return
    if not has_required_notice(appointment.scheduled_at, now):
        logger.info(
            f"⏰ Appointment {appointment.id} is within {CANCELLATION_NOTICE_HOURS}h, {action} refused for client {actor.id}"
        )
        raise PreconditionError(_NOTICE_MESSAGES[action])


def guard(action: str, appointment: Appointment, actor: User, now: datetime) -> Transition:
    """Run every guard of a transition; raises on the first violation"""
    authorize(action, appointment, actor)
    transition = ensure_source_state(action, appointment)
    ensure_notice(action, appointment, actor, now)
    return transition


# ============================================================================
# TRANSITION EFFECTS
# ============================================================================


def assignment_changes(dentist_id: int, notes: Optional[str], now: datetime) -> dict[str, Any]:
    return {
        "state": AppointmentState.CONFIRMED.value,
        "dentist_id": dentist_id,
        "assignment_notes": notes,
        "assigned_at": now,
    }


def start_changes(now: datetime) -> dict[str, Any]:
    return {"state": AppointmentState.IN_PROGRESS.value, "started_at": now}


def completion_changes(notes: Optional[str], now: datetime) -> dict[str, Any]:
    return {
        "state": AppointmentState.COMPLETED.value,
        "dentist_notes": notes,
        "completed_at": now,
    }


def cancellation_changes(reason: Optional[str], now: datetime) -> dict[str, Any]:
    return {
        "state": AppointmentState.CANCELLED.value,
        "cancellation_reason": reason or "Sin motivo especificado",
        "cancelled_at": now,
    }


def reschedule_changes(
    appointment: Appointment, new_start: datetime, reason: Optional[str], now: datetime
) -> dict[str, Any]:
    """Back to the pending pool; the previous assignment no longer applies"""
    return {
        "state": AppointmentState.PENDING.value,
        "previous_scheduled_at": appointment.scheduled_at,
        "rescheduled_at": now,
        "reschedule_reason": reason or "Sin motivo especificado",
        "scheduled_at": new_start,
        "dentist_id": None,
        "assigned_at": None,
        "assignment_notes": None,
    }


def no_show_changes() -> dict[str, Any]:
    return {"state": AppointmentState.NO_SHOW.value}
