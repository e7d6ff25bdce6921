"""Fixed enumerations shared by the appointment domain.

Values are stored and sent over the wire as-is; the frontend depends on them.
"""

from enum import Enum


class Role(str, Enum):
    CLIENT = "cliente"
    RECEPTIONIST = "recepcionista"
    DENTIST = "odontologo"
    ADMIN = "administrador"


class AppointmentState(str, Enum):
    PENDING = "pendiente"
    CONFIRMED = "confirmada"
    IN_PROGRESS = "en_proceso"
    COMPLETED = "completada"
    CANCELLED = "cancelada"
    NO_SHOW = "no_asistio"


class ConsultationType(str, Enum):
    GENERAL = "general"
    CONTROL = "control"
    URGENT = "urgencia"


# States that no longer hold time on the clinic schedule
INACTIVE_STATES = frozenset({AppointmentState.CANCELLED.value, AppointmentState.NO_SHOW.value})

TERMINAL_STATES = frozenset(
    {
        AppointmentState.COMPLETED.value,
        AppointmentState.CANCELLED.value,
        AppointmentState.NO_SHOW.value,
    }
)

STAFF_ROLES = frozenset({Role.RECEPTIONIST.value, Role.ADMIN.value})

# Legal categories per consultation type, with display labels
CATEGORIES: dict[str, list[dict[str, str]]] = {
    ConsultationType.GENERAL.value: [
        {"value": "odontologia_general", "label": "Odontología general"},
        {"value": "diagnostico_especialidad", "label": "Diagnóstico por especialidad"},
    ],
    ConsultationType.CONTROL.value: [
        {"value": "ortodoncia", "label": "Ortodoncia"},
        {"value": "endodoncia", "label": "Endodoncia"},
        {"value": "cirugia_oral", "label": "Cirugía oral"},
        {"value": "protesis", "label": "Prótesis"},
        {"value": "periodoncia", "label": "Periodoncia"},
    ],
    ConsultationType.URGENT.value: [
        {"value": "cirugia_oral_urgencia", "label": "Cirugía oral"},
        {"value": "endodoncia_urgencia", "label": "Endodoncia"},
        {"value": "rehabilitacion", "label": "Rehabilitación"},
        {"value": "trauma_dental", "label": "Trauma dental"},
    ],
}

CATEGORY_VALUES: dict[str, frozenset[str]] = {
    consultation_type: frozenset(item["value"] for item in items)
    for consultation_type, items in CATEGORIES.items()
}


def is_valid_category(consultation_type: str, category: str) -> bool:
    return category in CATEGORY_VALUES.get(consultation_type, frozenset())
