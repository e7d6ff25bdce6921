"""Appointment router - FastAPI endpoints for booking, queue and lifecycle"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user, require_roles
from ...config import (
    BOOKING_RATE_LIMIT,
    BOOKING_RATE_WINDOW_SECONDS,
    CLIENT_PAGE_SIZE,
    PENDING_PAGE_SIZE,
)
from ...database import get_db
from ...models import User
from ...rate_limiter import create_rate_limiter
from ...realtime.events import Notifier, get_notifier
from ...responses import success_response
from .catalog import Role
from .queue import AssignmentQueue
from .schemas import (
    AppointmentCreate,
    AssignDentistRequest,
    CancelRequest,
    CompleteRequest,
    RescheduleRequest,
)
from .service import AppointmentService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/citas", tags=["Citas"])

clients_only = require_roles(Role.CLIENT.value)
staff_only = require_roles(Role.RECEPTIONIST.value, Role.ADMIN.value)
dentists_only = require_roles(Role.DENTIST.value)

booking_rate_limit = create_rate_limiter(
    limit=BOOKING_RATE_LIMIT, window_seconds=BOOKING_RATE_WINDOW_SECONDS, key_prefix="booking"
)


def get_appointment_service(
    db: Session = Depends(get_db), notifier: Notifier = Depends(get_notifier)
) -> AppointmentService:
    """Dependency injection for AppointmentService"""
    return AppointmentService(db, notifier)


def get_assignment_queue(
    db: Session = Depends(get_db), notifier: Notifier = Depends(get_notifier)
) -> AssignmentQueue:
    """Dependency injection for AssignmentQueue"""
    return AssignmentQueue(db, notifier)


# ============================================================================
# CATALOG AND AVAILABILITY
# ============================================================================


@router.get("/categorias")
async def get_categories(current_user: User = Depends(get_current_user)):
    return success_response(
        "Categorías obtenidas correctamente", AppointmentService.get_categories()
    )


@router.get("/horarios-disponibles")
async def get_available_slots(
    fecha: Optional[str] = Query(None),
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    """Bookable start times for a date; the date room carries later changes"""
    datos = service.get_available_slots(fecha)
    return success_response("Horarios disponibles obtenidos correctamente", datos)


# ============================================================================
# CLIENT OPERATIONS
# ============================================================================


@router.post("", status_code=201, dependencies=[Depends(booking_rate_limit)])
async def book_appointment(
    data: AppointmentCreate,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    cita = service.book(data, current_user)
    return success_response("Cita agendada correctamente", {"cita": cita}, status_code=201)


@router.get("/mis-citas")
async def get_my_appointments(
    estado: Optional[str] = Query(None),
    pagina: int = Query(1, ge=1),
    limite: int = Query(CLIENT_PAGE_SIZE, ge=1, le=100),
    current_user: User = Depends(clients_only),
    service: AppointmentService = Depends(get_appointment_service),
):
    datos = service.list_client_appointments(current_user, estado, pagina, limite)
    return success_response("Citas obtenidas correctamente", datos)


# ============================================================================
# RECEPTION QUEUE
# ============================================================================


@router.get("/pendientes")
async def get_pending_appointments(
    fecha: Optional[str] = Query(None),
    pagina: int = Query(1, ge=1),
    limite: int = Query(PENDING_PAGE_SIZE, ge=1, le=100),
    current_user: User = Depends(staff_only),
    queue: AssignmentQueue = Depends(get_assignment_queue),
):
    datos = queue.list_pending(fecha, pagina, limite)
    return success_response("Citas pendientes obtenidas correctamente", datos)


@router.get("/odontologos")
async def get_dentists(
    current_user: User = Depends(staff_only),
    queue: AssignmentQueue = Depends(get_assignment_queue),
):
    return success_response("Odontólogos obtenidos correctamente", queue.list_dentists())


# ============================================================================
# DENTIST QUEUE
# ============================================================================


@router.get("/odontologo/mis-citas")
async def get_dentist_appointments(
    fecha: Optional[str] = Query(None),
    estado: Optional[str] = Query(None),
    current_user: User = Depends(dentists_only),
    service: AppointmentService = Depends(get_appointment_service),
):
    datos = service.list_dentist_appointments(current_user, fecha, estado)
    return success_response("Citas asignadas obtenidas correctamente", datos)


# ============================================================================
# LIFECYCLE
# Role and ownership are checked by the lifecycle guards, not here, so a
# client acting on someone else's appointment gets the same 403 as a wrong role.
# ============================================================================


@router.put("/{cita_id}/cancelar")
async def cancel_appointment(
    cita_id: int,
    data: Optional[CancelRequest] = None,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    reason = data.motivoCancelacion if data else None
    cita = service.cancel(cita_id, reason, current_user)
    return success_response("Cita cancelada correctamente", {"cita": cita})


@router.put("/{cita_id}/reagendar", dependencies=[Depends(booking_rate_limit)])
async def reschedule_appointment(
    cita_id: int,
    data: RescheduleRequest,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    cita = service.reschedule(cita_id, data.fechaHora, data.motivo, current_user)
    return success_response("Cita reagendada correctamente", {"cita": cita})


@router.put("/{cita_id}/asignar-odontologo")
async def assign_dentist(
    cita_id: int,
    data: AssignDentistRequest,
    current_user: User = Depends(get_current_user),
    queue: AssignmentQueue = Depends(get_assignment_queue),
):
    cita = queue.assign(cita_id, data.odontologoId, data.observaciones, current_user)
    return success_response("Odontólogo asignado correctamente", {"cita": cita})


@router.put("/{cita_id}/iniciar")
async def start_appointment(
    cita_id: int,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    cita = service.start(cita_id, current_user)
    return success_response("Cita iniciada correctamente", {"cita": cita})


@router.put("/{cita_id}/completar")
async def complete_appointment(
    cita_id: int,
    data: Optional[CompleteRequest] = None,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    notes = data.notasOdontologo if data else None
    cita = service.complete(cita_id, notes, current_user)
    return success_response("Cita completada correctamente", {"cita": cita})


@router.put("/{cita_id}/no-asistio")
async def mark_no_show(
    cita_id: int,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    cita = service.mark_no_show(cita_id, current_user)
    return success_response("Cita marcada como no asistida", {"cita": cita})
