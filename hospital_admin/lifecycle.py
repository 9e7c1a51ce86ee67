"""Appointment status transitions and role authorization.

Every status decision made by the portal goes through this module. The
functions here are pure: they take immutable ``Appointment`` snapshots and
return new values or a typed error, and never talk to the hospital API.
Persisting a successful decision is the caller's job.
"""

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict

from hospital_admin.models.appointment import TERMINAL_STATUSES, Appointment, AppointmentStatus
from hospital_admin.models.user import ActorRole

S = AppointmentStatus

TRANSITIONS: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
    S.SCHEDULED: frozenset({S.CONFIRMED, S.IN_PROGRESS, S.CANCELLED, S.NO_SHOW, S.RESCHEDULED}),
    S.CONFIRMED: frozenset({S.IN_PROGRESS, S.CANCELLED, S.NO_SHOW, S.RESCHEDULED}),
    S.IN_PROGRESS: frozenset({S.COMPLETED}),
    S.COMPLETED: frozenset(),
    S.CANCELLED: frozenset(),
    S.NO_SHOW: frozenset(),
}

ROLE_TRANSITIONS: dict[ActorRole, dict[AppointmentStatus, frozenset[AppointmentStatus]]] = {
    ActorRole.ADMIN: {
        S.SCHEDULED: TRANSITIONS[S.SCHEDULED],
        S.CONFIRMED: TRANSITIONS[S.CONFIRMED],
        S.IN_PROGRESS: frozenset({S.COMPLETED}),
    },
    ActorRole.DOCTOR: {
        S.SCHEDULED: frozenset({S.CONFIRMED, S.IN_PROGRESS, S.NO_SHOW}),
        S.CONFIRMED: frozenset({S.IN_PROGRESS, S.NO_SHOW}),
        S.IN_PROGRESS: frozenset({S.COMPLETED}),
    },
    ActorRole.HELPDESK: {
        S.SCHEDULED: frozenset({S.CONFIRMED}),
    },
    ActorRole.PATIENT: {},
}

CREATOR_ROLES = frozenset({ActorRole.ADMIN, ActorRole.HELPDESK})
RESCHEDULER_ROLES = frozenset({ActorRole.ADMIN, ActorRole.DOCTOR, ActorRole.HELPDESK})
RESCHEDULABLE_STATUSES = frozenset({S.SCHEDULED, S.CONFIRMED})


class LifecycleErrorKind(str, Enum):
    INVALID_TRANSITION = 'INVALID_TRANSITION'
    UNAUTHORIZED = 'UNAUTHORIZED'
    MISSING_REASON = 'MISSING_REASON'
    PAST_DATE = 'PAST_DATE'


class LifecycleError(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: LifecycleErrorKind
    message: str


class LifecycleResult(BaseModel):
    """Either an updated appointment or the reason the change was refused."""

    model_config = ConfigDict(frozen=True)

    appointment: Appointment | None = None
    error: LifecycleError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _failure(kind: LifecycleErrorKind, message: str) -> LifecycleResult:
    return LifecycleResult(error=LifecycleError(kind=kind, message=message))


def _coerce_status(value) -> AppointmentStatus | None:
    if isinstance(value, AppointmentStatus):
        return value
    try:
        return AppointmentStatus(value)
    except ValueError:
        return None


def _coerce_role(value) -> ActorRole | None:
    if isinstance(value, ActorRole):
        return value
    try:
        return ActorRole(value)
    except ValueError:
        return None


def _effective(status: AppointmentStatus) -> AppointmentStatus:
    # A rescheduled appointment moves on exactly like a scheduled one.
    if status is S.RESCHEDULED:
        return S.SCHEDULED
    return status


def _now_for(value: datetime, now: datetime | None) -> datetime:
    """Return ``now`` in a form comparable with ``value``."""
    if now is None:
        return datetime.now(value.tzinfo)
    if value.tzinfo is None and now.tzinfo is not None:
        return now.astimezone().replace(tzinfo=None)
    if value.tzinfo is not None and now.tzinfo is None:
        return now.astimezone()
    return now


def _touch(now: datetime | None) -> datetime:
    return now or datetime.now(timezone.utc)


def role_destinations(current_status, role) -> frozenset[AppointmentStatus]:
    status = _coerce_status(current_status)
    actor = _coerce_role(role)
    if status is None or actor is None:
        return frozenset()
    return ROLE_TRANSITIONS[actor].get(_effective(status), frozenset())


def list_available_transitions(current_status, role) -> frozenset[AppointmentStatus]:
    """Statuses to offer ``role`` for an appointment in ``current_status``.

    The current status is always part of the result, so a role without any
    rights gets back ``{current_status}``. A status that is not an
    ``AppointmentStatus`` has no current member to include, and gives an
    empty set.
    """
    status = _coerce_status(current_status)
    if status is None:
        # Malformed input only.
        return frozenset()

    allowed = TRANSITIONS[_effective(status)] & role_destinations(status, role)
    return allowed | {status}


def can_update_status(current_status, role) -> bool:
    status = _coerce_status(current_status)
    return len(list_available_transitions(current_status, role) - {status}) > 0


def _transition(
    appointment: Appointment,
    requested: AppointmentStatus,
    role,
    now: datetime | None,
) -> LifecycleResult:
    current = appointment.status

    if requested is current:
        return _failure(LifecycleErrorKind.INVALID_TRANSITION, f'Appointment is already {current.value}.')
    if current in TERMINAL_STATUSES:
        return _failure(
            LifecycleErrorKind.INVALID_TRANSITION,
            f'{current.value} appointments cannot change status.',
        )
    if requested not in TRANSITIONS[_effective(current)]:
        return _failure(
            LifecycleErrorKind.INVALID_TRANSITION,
            f'Cannot move an appointment from {current.value} to {requested.value}.',
        )
    if not role_destinations(current, role):
        return _failure(
            LifecycleErrorKind.UNAUTHORIZED,
            f'Role {getattr(role, "value", role)} cannot change {current.value} appointments.',
        )
    if requested not in list_available_transitions(current, role):
        return _failure(
            LifecycleErrorKind.INVALID_TRANSITION,
            f'Role {getattr(role, "value", role)} cannot move an appointment to {requested.value}.',
        )

    return LifecycleResult(
        appointment=appointment.model_copy(update={
            'status': requested,
            'cancellation_reason': None,
            'updated_at': _touch(now),
        })
    )


def apply_status_change(
    appointment: Appointment,
    requested_status,
    role,
    now: datetime | None = None,
) -> LifecycleResult:
    """Move an appointment to ``requested_status``.

    Cancelling needs a reason and goes through ``cancel`` instead; a request
    for CANCELLED that would otherwise be allowed is refused here.
    """
    requested = _coerce_status(requested_status)
    if requested is None:
        return _failure(LifecycleErrorKind.INVALID_TRANSITION, f'Unknown status: {requested_status!r}.')

    result = _transition(appointment, requested, role, now)
    if result.ok and requested is S.CANCELLED:
        return _failure(
            LifecycleErrorKind.INVALID_TRANSITION,
            'Cancelling an appointment requires a reason. Use cancel instead.',
        )
    return result


def can_cancel(current_status, role) -> bool:
    return S.CANCELLED in list_available_transitions(current_status, role) - {_coerce_status(current_status)}


def cancel(appointment: Appointment, reason: str | None, role, now: datetime | None = None) -> LifecycleResult:
    if not isinstance(reason, str) or not reason.strip():
        return _failure(LifecycleErrorKind.MISSING_REASON, 'Please provide a reason for cancellation.')

    result = _transition(appointment, S.CANCELLED, role, now)
    if not result.ok:
        return result

    return LifecycleResult(
        appointment=result.appointment.model_copy(update={'cancellation_reason': reason.strip()})
    )


def can_reschedule(current_status, role) -> bool:
    status = _coerce_status(current_status)
    if status is None:
        return False
    return (
        _coerce_role(role) in RESCHEDULER_ROLES
        and _effective(status) in RESCHEDULABLE_STATUSES
        and bool(role_destinations(status, role))
    )


def reschedule(
    appointment: Appointment,
    new_scheduled_at,
    role,
    now: datetime | None = None,
) -> LifecycleResult:
    if not isinstance(new_scheduled_at, datetime):
        return _failure(LifecycleErrorKind.PAST_DATE, 'A new date and time is required.')
    if new_scheduled_at <= _now_for(new_scheduled_at, now):
        return _failure(LifecycleErrorKind.PAST_DATE, 'Appointments can only be rescheduled to a future time.')
    if _coerce_role(role) not in RESCHEDULER_ROLES:
        return _failure(
            LifecycleErrorKind.UNAUTHORIZED,
            f'Role {getattr(role, "value", role)} cannot reschedule appointments.',
        )
    if _effective(appointment.status) not in RESCHEDULABLE_STATUSES:
        return _failure(
            LifecycleErrorKind.INVALID_TRANSITION,
            f'{appointment.status.value} appointments cannot be rescheduled.',
        )
    if not role_destinations(appointment.status, role):
        return _failure(
            LifecycleErrorKind.UNAUTHORIZED,
            f'Role {getattr(role, "value", role)} cannot change {appointment.status.value} appointments.',
        )

    return LifecycleResult(
        appointment=appointment.model_copy(update={
            'scheduled_at': new_scheduled_at,
            'status': S.SCHEDULED,
            'cancellation_reason': None,
            'updated_at': _touch(now),
        })
    )


def can_create(role) -> bool:
    return _coerce_role(role) in CREATOR_ROLES


def validate_new_appointment(scheduled_at, role, now: datetime | None = None) -> LifecycleError | None:
    """Check a new appointment before it is sent to the backend as SCHEDULED."""
    if not can_create(role):
        return LifecycleError(
            kind=LifecycleErrorKind.UNAUTHORIZED,
            message=f'Role {getattr(role, "value", role)} cannot create appointments.',
        )
    if not isinstance(scheduled_at, datetime) or scheduled_at <= _now_for(scheduled_at, now):
        return LifecycleError(
            kind=LifecycleErrorKind.PAST_DATE,
            message='Appointments must be scheduled in the future.',
        )
    return None


def can_edit_notes(current_status, role) -> bool:
    status = _coerce_status(current_status)
    actor = _coerce_role(role)
    if status is None or actor is None:
        return False
    if status in TERMINAL_STATUSES:
        return actor is ActorRole.ADMIN
    return bool(role_destinations(status, actor))


def update_notes(appointment: Appointment, notes: str | None, role, now: datetime | None = None) -> LifecycleResult:
    """Replace the notes of an appointment without touching its status or time.

    Notes follow status rights: a role may edit them wherever it may move the
    appointment on. Closed appointments only accept notes from admins, as a
    correction.
    """
    if not can_edit_notes(appointment.status, role):
        if appointment.is_terminal:
            message = f'Only admins can correct notes on {appointment.status.value} appointments.'
        else:
            message = f'Role {getattr(role, "value", role)} cannot edit notes on {appointment.status.value} appointments.'
        return _failure(LifecycleErrorKind.UNAUTHORIZED, message)

    normalized = notes.strip() if isinstance(notes, str) else None
    return LifecycleResult(
        appointment=appointment.model_copy(update={
            'notes': normalized or None,
            'updated_at': _touch(now),
        })
    )
