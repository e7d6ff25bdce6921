"""Appointment domain schemas - Pydantic models for validation and responses"""

from datetime import datetime
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, Field, field_validator

from ...models import Appointment, User
from ...utils.sanitization import sanitize_string, validate_and_sanitize_input
from ..scheduling.clock import CLINIC_TZ
from .catalog import ConsultationType


def to_clinic_time(value: datetime) -> datetime:
    """Keep civil times as sent; offset-aware input is converted to clinic time first"""
    if value.tzinfo is not None:
        value = value.astimezone(CLINIC_TZ).replace(tzinfo=None)
    return value


def _clean_text(value: Optional[str]) -> Optional[str]:
    return validate_and_sanitize_input(value, max_length=1000)


class AppointmentCreate(BaseModel):
    """Schema for booking a new appointment"""

    tipoConsulta: ConsultationType
    categoria: str
    fechaHora: datetime
    detalles: Optional[str] = None

    @field_validator("fechaHora")
    @classmethod
    def validate_fecha_hora(cls, v):
        return to_clinic_time(v)

    @field_validator("detalles")
    @classmethod
    def validate_detalles(cls, v):
        return _clean_text(v)


class CancelRequest(BaseModel):
    motivoCancelacion: Optional[str] = None

    @field_validator("motivoCancelacion")
    @classmethod
    def validate_motivo(cls, v):
        return _clean_text(v)


class RescheduleRequest(BaseModel):
    fechaHora: datetime
    motivo: Optional[str] = Field(
        None, validation_alias=AliasChoices("motivo", "motivoReagendamiento")
    )

    @field_validator("fechaHora")
    @classmethod
    def validate_fecha_hora(cls, v):
        return to_clinic_time(v)

    @field_validator("motivo")
    @classmethod
    def validate_motivo(cls, v):
        return _clean_text(v)


class AssignDentistRequest(BaseModel):
    odontologoId: int
    observaciones: Optional[str] = None

    @field_validator("observaciones")
    @classmethod
    def validate_observaciones(cls, v):
        return _clean_text(v)


class CompleteRequest(BaseModel):
    notasOdontologo: Optional[str] = None

    @field_validator("notasOdontologo")
    @classmethod
    def validate_notas(cls, v):
        return _clean_text(v)


class UserSummary(BaseModel):
    id: int
    nombre: Optional[str]
    apellido: Optional[str]
    email: Optional[str] = None
    celular: Optional[str] = None

    @classmethod
    def from_user(cls, user: User, include_contact: bool = True) -> "UserSummary":
        return cls(
            id=user.id,
            nombre=sanitize_string(user.first_name),
            apellido=sanitize_string(user.last_name),
            email=user.email if include_contact else None,
            celular=user.phone if include_contact else None,
        )


class AppointmentResponse(BaseModel):
    """Appointment as sent to the frontend and over the real-time channel"""

    id: int
    clienteId: int
    odontologoId: Optional[int]
    tipoConsulta: str
    categoria: str
    fechaHora: datetime
    duracion: int
    detalles: Optional[str]
    estado: str
    motivoCancelacion: Optional[str] = None
    fechaCancelacion: Optional[datetime] = None
    motivoReagendamiento: Optional[str] = None
    fechaAnterior: Optional[datetime] = None
    fechaReagendamiento: Optional[datetime] = None
    observaciones: Optional[str] = None
    fechaAsignacion: Optional[datetime] = None
    fechaInicio: Optional[datetime] = None
    fechaCompletada: Optional[datetime] = None
    notasOdontologo: Optional[str] = None
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None
    cliente: Optional[UserSummary] = None
    odontologo: Optional[UserSummary] = None

    @classmethod
    def from_model(cls, appointment: Appointment) -> "AppointmentResponse":
        return cls(
            id=appointment.id,
            clienteId=appointment.client_id,
            odontologoId=appointment.dentist_id,
            tipoConsulta=appointment.consultation_type,
            categoria=appointment.category,
            fechaHora=appointment.scheduled_at,
            duracion=appointment.duration_minutes,
            detalles=appointment.details,
            estado=appointment.state,
            motivoCancelacion=appointment.cancellation_reason,
            fechaCancelacion=appointment.cancelled_at,
            motivoReagendamiento=appointment.reschedule_reason,
            fechaAnterior=appointment.previous_scheduled_at,
            fechaReagendamiento=appointment.rescheduled_at,
            observaciones=appointment.assignment_notes,
            fechaAsignacion=appointment.assigned_at,
            fechaInicio=appointment.started_at,
            fechaCompletada=appointment.completed_at,
            notasOdontologo=appointment.dentist_notes,
            createdAt=appointment.created_at,
            updatedAt=appointment.updated_at,
            cliente=UserSummary.from_user(appointment.client) if appointment.client else None,
            odontologo=(
                UserSummary.from_user(appointment.dentist, include_contact=False)
                if appointment.dentist
                else None
            ),
        )


def serialize_appointment(appointment: Appointment) -> dict[str, Any]:
    return AppointmentResponse.from_model(appointment).model_dump(mode="json")


def serialize_page(page: dict[str, Any]) -> dict[str, Any]:
    return {**page, "citas": [serialize_appointment(a) for a in page["citas"]]}
