"""Appointment model definitions."""

from datetime import datetime
from enum import Enum

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class AppointmentStatus(str, Enum):
    """Lifecycle status of an appointment."""

    SCHEDULED = 'SCHEDULED'
    CONFIRMED = 'CONFIRMED'
    IN_PROGRESS = 'IN_PROGRESS'
    COMPLETED = 'COMPLETED'
    CANCELLED = 'CANCELLED'
    RESCHEDULED = 'RESCHEDULED'
    NO_SHOW = 'NO_SHOW'

    @classmethod
    def _missing_(cls, value):
        # Older endpoints send NOSHOW and lowercase values.
        if isinstance(value, str):
            normalized = value.strip().upper().replace('-', '_').replace(' ', '_')
            if normalized == 'NOSHOW':
                normalized = 'NO_SHOW'
            for member in cls:
                if member.value == normalized:
                    return member
        return None


TERMINAL_STATUSES = frozenset({
    AppointmentStatus.COMPLETED,
    AppointmentStatus.CANCELLED,
    AppointmentStatus.NO_SHOW,
})


def parse_backend_datetime(value: str) -> datetime:
    """Parse `YYYY-MM-DD HH:MM` or ISO 8601 timestamps sent by the backend."""
    normalized = value.strip()
    if normalized.endswith('Z'):
        normalized = normalized[:-1] + '+00:00'
    return datetime.fromisoformat(normalized)


class Appointment(BaseModel):
    """Immutable snapshot of an appointment as returned by the backend."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: int | str
    patient_id: int | str | None = Field(default=None, alias='patientId')
    doctor_id: int | str | None = Field(default=None, alias='doctorId')
    department_id: int | str | None = Field(default=None, alias='departmentId')
    scheduled_at: datetime = Field(
        alias='appointmentDateTime',
        validation_alias=AliasChoices('appointmentDateTime', 'appointmentDate', 'scheduledAt', 'scheduled_at'),
    )
    status: AppointmentStatus = AppointmentStatus.SCHEDULED
    notes: str | None = None
    cancellation_reason: str | None = Field(default=None, alias='cancellationReason')
    created_at: datetime | None = Field(default=None, alias='createdAt')
    updated_at: datetime | None = Field(default=None, alias='updatedAt')

    patient_name: str | None = Field(default=None, alias='patientName')
    doctor_name: str | None = Field(default=None, alias='doctorName')
    department: str | None = None

    @field_validator('scheduled_at', 'created_at', 'updated_at', mode='before')
    @classmethod
    def parse_timestamps(cls, value):
        if isinstance(value, str) and value.strip():
            return parse_backend_datetime(value)
        return value

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES
