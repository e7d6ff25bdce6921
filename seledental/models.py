from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


class User(Base):
    """Account owned by the authentication service; read-only for scheduling"""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    phone = Column(String(50), nullable=True)
    role = Column(String(20), default="cliente", nullable=False)  # cliente, recepcionista, odontologo, administrador
    is_active = Column(Boolean, default=True, nullable=False)
    profile_complete = Column(Boolean, default=False, nullable=False)  # Gates booking for clients
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class Appointment(Base):
    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True, index=True)
    client_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    dentist_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)  # Null until assigned
    consultation_type = Column(String(20), nullable=False)  # general, control, urgencia
    category = Column(String(50), nullable=False)
    # Civil clinic-local time, stored without tzinfo
    scheduled_at = Column(DateTime, nullable=False, index=True)
    duration_minutes = Column(Integer, default=60, nullable=False)
    details = Column(Text, nullable=True)  # Symptoms or notes from the client
    state = Column(String(20), default="pendiente", nullable=False, index=True)

    # Cancellation
    cancellation_reason = Column(Text, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)

    # Reschedule
    reschedule_reason = Column(Text, nullable=True)
    previous_scheduled_at = Column(DateTime, nullable=True)
    rescheduled_at = Column(DateTime, nullable=True)

    # Receptionist assignment
    assignment_notes = Column(Text, nullable=True)
    assigned_at = Column(DateTime, nullable=True)

    # Dentist workflow
    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    dentist_notes = Column(Text, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    client = relationship("User", foreign_keys=[client_id])
    dentist = relationship("User", foreign_keys=[dentist_id])
    slot_claims = relationship(
        "AppointmentSlot", back_populates="appointment", cascade="all, delete-orphan"
    )

    __table_args__ = (Index("ix_appointments_state_scheduled_at", "state", "scheduled_at"),)


class AppointmentSlot(Base):
    """Half-hour cell held by an active appointment.

    The unique index on slot_start is what rejects a second overlapping
    booking when two requests race past the overlap check.
    """

    __tablename__ = "appointment_slots"

    id = Column(Integer, primary_key=True, index=True)
    appointment_id = Column(
        Integer, ForeignKey("appointments.id", ondelete="CASCADE"), nullable=False, index=True
    )
    slot_start = Column(DateTime, nullable=False, unique=True)

    appointment = relationship("Appointment", back_populates="slot_claims")
