from datetime import datetime, timedelta, timezone

import pytest

from hospital_admin import lifecycle
from hospital_admin.lifecycle import LifecycleErrorKind, TRANSITIONS
from hospital_admin.models.appointment import Appointment, AppointmentStatus
from hospital_admin.models.user import ActorRole

S = AppointmentStatus
NOW = datetime(2026, 1, 5, 9, 0)
TERMINAL = [S.COMPLETED, S.CANCELLED, S.NO_SHOW]


def make_appointment(status: AppointmentStatus = S.SCHEDULED, **overrides) -> Appointment:
    values = {
        'id': 42,
        'patientId': 7,
        'doctorId': 3,
        'departmentId': 2,
        'appointmentDateTime': '2026-01-12 10:30',
        'status': status,
        'notes': 'Bring previous lab results',
        'createdAt': '2026-01-01T08:00:00',
        'updatedAt': '2026-01-02T08:00:00',
    }
    values.update(overrides)
    return Appointment.model_validate(values)


@pytest.mark.parametrize('status', list(S))
@pytest.mark.parametrize('role', list(ActorRole))
def test_available_transitions_only_contain_reachable_statuses(status: AppointmentStatus, role: ActorRole) -> None:
    available = lifecycle.list_available_transitions(status, role)

    reachable = TRANSITIONS[S.SCHEDULED if status is S.RESCHEDULED else status]
    assert status in available
    assert available <= set(S)
    assert available - {status} <= reachable


@pytest.mark.parametrize('status', TERMINAL)
@pytest.mark.parametrize('role', list(ActorRole))
def test_terminal_statuses_offer_nothing_else(status: AppointmentStatus, role: ActorRole) -> None:
    assert lifecycle.list_available_transitions(status, role) == {status}


@pytest.mark.parametrize(
    ('status', 'role', 'expected'),
    [
        (S.SCHEDULED, ActorRole.HELPDESK, {S.SCHEDULED, S.CONFIRMED}),
        (S.CONFIRMED, ActorRole.HELPDESK, {S.CONFIRMED}),
        (S.IN_PROGRESS, ActorRole.HELPDESK, {S.IN_PROGRESS}),
        (S.SCHEDULED, ActorRole.DOCTOR, {S.SCHEDULED, S.CONFIRMED, S.IN_PROGRESS, S.NO_SHOW}),
        (S.CONFIRMED, ActorRole.DOCTOR, {S.CONFIRMED, S.IN_PROGRESS, S.NO_SHOW}),
        (S.IN_PROGRESS, ActorRole.DOCTOR, {S.IN_PROGRESS, S.COMPLETED}),
        (
            S.SCHEDULED,
            ActorRole.ADMIN,
            {S.SCHEDULED, S.CONFIRMED, S.IN_PROGRESS, S.CANCELLED, S.NO_SHOW, S.RESCHEDULED},
        ),
        (S.CONFIRMED, ActorRole.ADMIN, {S.CONFIRMED, S.IN_PROGRESS, S.CANCELLED, S.NO_SHOW, S.RESCHEDULED}),
        (S.IN_PROGRESS, ActorRole.ADMIN, {S.IN_PROGRESS, S.COMPLETED}),
        (S.RESCHEDULED, ActorRole.HELPDESK, {S.RESCHEDULED, S.CONFIRMED}),
        (S.SCHEDULED, ActorRole.PATIENT, {S.SCHEDULED}),
    ],
)
def test_available_transitions_follow_role_matrix(status, role, expected) -> None:
    assert lifecycle.list_available_transitions(status, role) == expected


def test_available_transitions_accept_raw_strings() -> None:
    assert lifecycle.list_available_transitions('SCHEDULED', 'HELPDESK') == {S.SCHEDULED, S.CONFIRMED}
    assert lifecycle.list_available_transitions('SCHEDULED', 'NURSE') == {S.SCHEDULED}


def test_apply_status_change_returns_new_value_and_keeps_input() -> None:
    appointment = make_appointment(S.SCHEDULED)
    before = appointment.model_copy()

    result = lifecycle.apply_status_change(appointment, S.CONFIRMED, ActorRole.HELPDESK, now=NOW)

    assert result.ok
    assert result.appointment is not appointment
    assert result.appointment.status is S.CONFIRMED
    assert result.appointment.updated_at == NOW
    assert result.appointment.scheduled_at == appointment.scheduled_at
    assert appointment == before
    assert appointment.status is S.SCHEDULED


@pytest.mark.parametrize('status', list(S))
@pytest.mark.parametrize('role', list(ActorRole))
def test_requesting_current_status_is_invalid(status: AppointmentStatus, role: ActorRole) -> None:
    result = lifecycle.apply_status_change(make_appointment(status), status, role)

    assert not result.ok
    assert result.error.kind is LifecycleErrorKind.INVALID_TRANSITION


def test_doctor_can_complete_in_progress_appointment() -> None:
    result = lifecycle.apply_status_change(make_appointment(S.IN_PROGRESS), S.COMPLETED, ActorRole.DOCTOR)

    assert result.ok
    assert result.appointment.status is S.COMPLETED


def test_helpdesk_cannot_complete_in_progress_appointment() -> None:
    result = lifecycle.apply_status_change(make_appointment(S.IN_PROGRESS), S.COMPLETED, ActorRole.HELPDESK)

    assert result.error.kind is LifecycleErrorKind.UNAUTHORIZED
    assert result.appointment is None


def test_patient_has_no_rights() -> None:
    result = lifecycle.apply_status_change(make_appointment(S.SCHEDULED), S.CONFIRMED, ActorRole.PATIENT)

    assert result.error.kind is LifecycleErrorKind.UNAUTHORIZED


def test_completed_appointment_cannot_be_cancelled_by_admin() -> None:
    result = lifecycle.apply_status_change(make_appointment(S.COMPLETED), S.CANCELLED, ActorRole.ADMIN)

    assert result.error.kind is LifecycleErrorKind.INVALID_TRANSITION


@pytest.mark.parametrize(
    ('status', 'requested', 'role'),
    [
        (S.SCHEDULED, S.COMPLETED, ActorRole.ADMIN),
        (S.IN_PROGRESS, S.CANCELLED, ActorRole.ADMIN),
        (S.SCHEDULED, S.CANCELLED, ActorRole.DOCTOR),
        (S.SCHEDULED, S.IN_PROGRESS, ActorRole.HELPDESK),
        (S.RESCHEDULED, S.SCHEDULED, ActorRole.ADMIN),
        (S.SCHEDULED, 'ARCHIVED', ActorRole.ADMIN),
    ],
)
def test_unreachable_or_unoffered_status_is_invalid(status, requested, role) -> None:
    result = lifecycle.apply_status_change(make_appointment(status), requested, role)

    assert result.error.kind is LifecycleErrorKind.INVALID_TRANSITION


def test_rescheduled_appointment_moves_like_scheduled() -> None:
    result = lifecycle.apply_status_change(make_appointment(S.RESCHEDULED), S.CONFIRMED, ActorRole.HELPDESK)

    assert result.ok
    assert result.appointment.status is S.CONFIRMED


def test_unknown_role_is_unauthorized() -> None:
    result = lifecycle.apply_status_change(make_appointment(S.SCHEDULED), S.CONFIRMED, 'JANITOR')

    assert result.error.kind is LifecycleErrorKind.UNAUTHORIZED


def test_cancel_sets_status_and_reason() -> None:
    appointment = make_appointment(S.CONFIRMED)

    result = lifecycle.cancel(appointment, 'reason', ActorRole.ADMIN, now=NOW)

    assert result.ok
    assert result.appointment.status is S.CANCELLED
    assert result.appointment.cancellation_reason == 'reason'
    assert appointment.cancellation_reason is None


@pytest.mark.parametrize('reason', ['', '   ', None])
def test_cancel_requires_reason(reason) -> None:
    result = lifecycle.cancel(make_appointment(S.SCHEDULED), reason, ActorRole.ADMIN)

    assert result.error.kind is LifecycleErrorKind.MISSING_REASON


def test_cancel_is_refused_for_helpdesk() -> None:
    scheduled = lifecycle.cancel(make_appointment(S.SCHEDULED), 'Patient called', ActorRole.HELPDESK)
    confirmed = lifecycle.cancel(make_appointment(S.CONFIRMED), 'Patient called', ActorRole.HELPDESK)

    assert scheduled.error.kind is LifecycleErrorKind.INVALID_TRANSITION
    assert confirmed.error.kind is LifecycleErrorKind.UNAUTHORIZED


def test_cancel_is_refused_once_in_progress() -> None:
    result = lifecycle.cancel(make_appointment(S.IN_PROGRESS), 'Too late', ActorRole.ADMIN)

    assert result.error.kind is LifecycleErrorKind.INVALID_TRANSITION


def test_status_change_away_from_cancelled_never_happens() -> None:
    cancelled = make_appointment(S.CANCELLED, cancellationReason='Duplicate booking')

    result = lifecycle.apply_status_change(cancelled, S.SCHEDULED, ActorRole.ADMIN)

    assert result.error.kind is LifecycleErrorKind.INVALID_TRANSITION


def test_reschedule_rejects_past_time() -> None:
    result = lifecycle.reschedule(
        make_appointment(S.SCHEDULED),
        NOW - timedelta(hours=1),
        ActorRole.ADMIN,
        now=NOW,
    )

    assert result.error.kind is LifecycleErrorKind.PAST_DATE


def test_reschedule_rejects_current_time_and_missing_value() -> None:
    appointment = make_appointment(S.SCHEDULED)

    assert lifecycle.reschedule(appointment, NOW, ActorRole.ADMIN, now=NOW).error.kind is LifecycleErrorKind.PAST_DATE
    assert lifecycle.reschedule(appointment, None, ActorRole.ADMIN, now=NOW).error.kind is LifecycleErrorKind.PAST_DATE


def test_reschedule_without_explicit_clock_rejects_past_time() -> None:
    result = lifecycle.reschedule(make_appointment(S.SCHEDULED), datetime.now() - timedelta(hours=1), ActorRole.ADMIN)

    assert result.error.kind is LifecycleErrorKind.PAST_DATE


def test_reschedule_compares_aware_and_naive_times() -> None:
    aware_now = datetime(2026, 1, 5, 9, 0, tzinfo=timezone.utc)
    new_time = datetime(2030, 1, 1, 9, 0)

    result = lifecycle.reschedule(make_appointment(S.CONFIRMED), new_time, ActorRole.DOCTOR, now=aware_now)

    assert result.ok


@pytest.mark.parametrize(
    ('status', 'role'),
    [
        (S.CONFIRMED, ActorRole.ADMIN),
        (S.CONFIRMED, ActorRole.DOCTOR),
        (S.SCHEDULED, ActorRole.HELPDESK),
        (S.RESCHEDULED, ActorRole.HELPDESK),
    ],
)
def test_reschedule_returns_appointment_to_scheduled(status: AppointmentStatus, role: ActorRole) -> None:
    new_time = NOW + timedelta(days=3)

    result = lifecycle.reschedule(make_appointment(status), new_time, role, now=NOW)

    assert result.ok
    assert result.appointment.status is S.SCHEDULED
    assert result.appointment.scheduled_at == new_time
    assert result.appointment.cancellation_reason is None
    assert result.appointment.updated_at == NOW


def test_reschedule_refuses_patient() -> None:
    result = lifecycle.reschedule(make_appointment(S.SCHEDULED), NOW + timedelta(days=1), ActorRole.PATIENT, now=NOW)

    assert result.error.kind is LifecycleErrorKind.UNAUTHORIZED


@pytest.mark.parametrize('status', [S.IN_PROGRESS, S.COMPLETED, S.CANCELLED, S.NO_SHOW])
def test_reschedule_refuses_started_or_closed_appointments(status: AppointmentStatus) -> None:
    result = lifecycle.reschedule(make_appointment(status), NOW + timedelta(days=1), ActorRole.ADMIN, now=NOW)

    assert result.error.kind is LifecycleErrorKind.INVALID_TRANSITION


def test_affordance_helpers() -> None:
    assert lifecycle.can_update_status(S.SCHEDULED, ActorRole.HELPDESK)
    assert not lifecycle.can_update_status(S.CONFIRMED, ActorRole.HELPDESK)
    assert not lifecycle.can_update_status(S.COMPLETED, ActorRole.ADMIN)
    assert lifecycle.can_cancel(S.CONFIRMED, ActorRole.ADMIN)
    assert not lifecycle.can_cancel(S.CONFIRMED, ActorRole.DOCTOR)
    assert lifecycle.can_reschedule(S.RESCHEDULED, ActorRole.HELPDESK)
    assert not lifecycle.can_reschedule(S.CONFIRMED, ActorRole.HELPDESK)
    assert not lifecycle.can_reschedule(S.IN_PROGRESS, ActorRole.ADMIN)
    assert lifecycle.can_create(ActorRole.HELPDESK)
    assert not lifecycle.can_create(ActorRole.DOCTOR)
    assert lifecycle.can_edit_notes(S.SCHEDULED, ActorRole.HELPDESK)
    assert not lifecycle.can_edit_notes(S.CONFIRMED, ActorRole.HELPDESK)
    assert lifecycle.can_edit_notes(S.NO_SHOW, ActorRole.ADMIN)


def test_validate_new_appointment() -> None:
    future = NOW + timedelta(days=1)

    assert lifecycle.validate_new_appointment(future, ActorRole.ADMIN, now=NOW) is None
    assert lifecycle.validate_new_appointment(future, ActorRole.DOCTOR, now=NOW).kind is LifecycleErrorKind.UNAUTHORIZED
    past_error = lifecycle.validate_new_appointment(NOW - timedelta(minutes=1), ActorRole.HELPDESK, now=NOW)
    assert past_error.kind is LifecycleErrorKind.PAST_DATE


def test_update_notes_keeps_status_and_time() -> None:
    appointment = make_appointment(S.CONFIRMED)

    result = lifecycle.update_notes(appointment, '  Needs interpreter  ', ActorRole.DOCTOR, now=NOW)

    assert result.ok
    assert result.appointment.notes == 'Needs interpreter'
    assert result.appointment.status is S.CONFIRMED
    assert result.appointment.scheduled_at == appointment.scheduled_at


def test_update_notes_on_closed_appointment_is_admin_only() -> None:
    completed = make_appointment(S.COMPLETED)

    admin_result = lifecycle.update_notes(completed, 'Corrected follow-up date', ActorRole.ADMIN)
    doctor_result = lifecycle.update_notes(completed, 'Corrected follow-up date', ActorRole.DOCTOR)

    assert admin_result.appointment.status is S.COMPLETED
    assert doctor_result.error.kind is LifecycleErrorKind.UNAUTHORIZED


def test_update_notes_refuses_patient() -> None:
    result = lifecycle.update_notes(make_appointment(S.SCHEDULED), 'hello', ActorRole.PATIENT)

    assert result.error.kind is LifecycleErrorKind.UNAUTHORIZED


def test_update_notes_follows_status_rights() -> None:
    scheduled = lifecycle.update_notes(make_appointment(S.SCHEDULED), 'Wheelchair access', ActorRole.HELPDESK)
    confirmed = lifecycle.update_notes(make_appointment(S.CONFIRMED), 'Wheelchair access', ActorRole.HELPDESK)

    assert scheduled.ok
    assert confirmed.error.kind is LifecycleErrorKind.UNAUTHORIZED


def test_available_transitions_for_unknown_status_is_empty() -> None:
    assert lifecycle.list_available_transitions('ARCHIVED', ActorRole.ADMIN) == frozenset()


@pytest.mark.parametrize('status', [S.SCHEDULED, S.CONFIRMED, S.RESCHEDULED])
def test_generic_status_change_refuses_cancel(status: AppointmentStatus) -> None:
    result = lifecycle.apply_status_change(make_appointment(status), S.CANCELLED, ActorRole.ADMIN, now=NOW)

    assert not result.ok
    assert result.error.kind is LifecycleErrorKind.INVALID_TRANSITION
    assert 'reason' in result.error.message


def test_generic_status_change_to_cancelled_keeps_role_errors() -> None:
    result = lifecycle.apply_status_change(make_appointment(S.CONFIRMED), S.CANCELLED, ActorRole.HELPDESK)

    assert result.error.kind is LifecycleErrorKind.UNAUTHORIZED


def test_reschedule_refuses_helpdesk_on_confirmed_appointment() -> None:
    result = lifecycle.reschedule(make_appointment(S.CONFIRMED), NOW + timedelta(days=3), ActorRole.HELPDESK, now=NOW)

    assert result.error.kind is LifecycleErrorKind.UNAUTHORIZED
    assert result.appointment is None


def _every_outcome(status: AppointmentStatus, role: ActorRole) -> list:
    appointment = make_appointment(
        status,
        cancellationReason='Patient called' if status is S.CANCELLED else None,
    )
    results = [lifecycle.apply_status_change(appointment, requested, role, now=NOW) for requested in S]
    results.append(lifecycle.cancel(appointment, 'Patient called', role, now=NOW))
    results.append(lifecycle.reschedule(appointment, NOW + timedelta(days=2), role, now=NOW))
    results.append(lifecycle.update_notes(appointment, 'Follow-up booked', role, now=NOW))
    return [result.appointment for result in results if result.ok]


@pytest.mark.parametrize('status', list(S))
@pytest.mark.parametrize('role', list(ActorRole))
def test_cancellation_reason_is_set_only_on_cancelled(status: AppointmentStatus, role: ActorRole) -> None:
    for appointment in _every_outcome(status, role):
        assert (appointment.status is S.CANCELLED) == bool(appointment.cancellation_reason)
