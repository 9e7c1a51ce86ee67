import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from pydantic import BaseModel, field_validator, model_validator

from hospital_admin import lifecycle
from hospital_admin.auth.dependencies import get_current_session, get_hospital_client, require_roles
from hospital_admin.hospital_api import HospitalAPIClient, HospitalAPIError
from hospital_admin.lifecycle import LifecycleError, LifecycleErrorKind, LifecycleResult
from hospital_admin.models.appointment import Appointment, AppointmentStatus
from hospital_admin.models.user import ActorRole, SessionUser

router = APIRouter(tags=['appointments'], dependencies=[Depends(get_current_session)])

logger = logging.getLogger(__name__)

MAX_NOTES_LENGTH = 1000
MAX_REASON_LENGTH = 500
ALL_STATUSES = 'ALL'

LIFECYCLE_ERROR_STATUS_CODES = {
    LifecycleErrorKind.INVALID_TRANSITION: status.HTTP_400_BAD_REQUEST,
    LifecycleErrorKind.UNAUTHORIZED: status.HTTP_403_FORBIDDEN,
    LifecycleErrorKind.MISSING_REASON: status.HTTP_422_UNPROCESSABLE_ENTITY,
    LifecycleErrorKind.PAST_DATE: status.HTTP_422_UNPROCESSABLE_ENTITY,
}


class StatusChangeRequest(BaseModel):
    status: AppointmentStatus


class CancelRequest(BaseModel):
    reason: str = ''

    @field_validator('reason')
    @classmethod
    def validate_reason(cls, value: str) -> str:
        if len(value) > MAX_REASON_LENGTH:
            raise ValueError(f'Reason must be {MAX_REASON_LENGTH} characters or fewer.')
        return value


class RescheduleRequest(BaseModel):
    new_scheduled_at: datetime


class NotesRequest(BaseModel):
    notes: str | None = None

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        if value is not None and len(value) > MAX_NOTES_LENGTH:
            raise ValueError(f'Notes must be {MAX_NOTES_LENGTH} characters or fewer.')
        return value


class CreateAppointmentRequest(BaseModel):
    patient_id: int | str | None = None
    patient_name: str | None = None
    doctor_id: int | str
    department_id: int | str
    scheduled_at: datetime
    notes: str | None = None

    @field_validator('patient_name', 'notes')
    @classmethod
    def strip_text(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip() or None

    @model_validator(mode='after')
    def require_patient(self) -> 'CreateAppointmentRequest':
        if self.patient_id is None and not self.patient_name:
            raise ValueError('Either an existing patient or a new patient name is required.')
        return self


class AppointmentDetailResponse(BaseModel):
    appointment: Appointment
    available_statuses: list[AppointmentStatus]
    can_update_status: bool
    can_cancel: bool
    can_reschedule: bool
    can_edit_notes: bool


def build_detail(appointment: Appointment, user: SessionUser) -> AppointmentDetailResponse:
    offered = lifecycle.list_available_transitions(appointment.status, user.role)
    return AppointmentDetailResponse(
        appointment=appointment,
        available_statuses=[option for option in AppointmentStatus if option in offered],
        can_update_status=lifecycle.can_update_status(appointment.status, user.role),
        can_cancel=lifecycle.can_cancel(appointment.status, user.role),
        can_reschedule=lifecycle.can_reschedule(appointment.status, user.role),
        can_edit_notes=lifecycle.can_edit_notes(appointment.status, user.role),
    )


def raise_for_lifecycle_error(error: LifecycleError) -> None:
    raise HTTPException(
        status_code=LIFECYCLE_ERROR_STATUS_CODES[error.kind],
        detail={'kind': error.kind.value, 'message': error.message},
    )


def unwrap(result: LifecycleResult) -> Appointment:
    if not result.ok:
        raise_for_lifecycle_error(result.error)
    return result.appointment


async def with_display_names(client: HospitalAPIClient, appointments: list[Appointment]) -> list[Appointment]:
    patients = await client.lookup_names('patients', [a.patient_id for a in appointments if a.patient_id is not None])
    doctors = await client.lookup_names('doctors', [a.doctor_id for a in appointments if a.doctor_id is not None])
    departments = await client.lookup_names(
        'departments',
        [a.department_id for a in appointments if a.department_id is not None],
    )

    return [
        appointment.model_copy(update={
            'patient_name': patients.get(appointment.patient_id) or f'Patient {appointment.patient_id}',
            'doctor_name': doctors.get(appointment.doctor_id) or f'Doctor {appointment.doctor_id}',
            'department': departments.get(appointment.department_id) or f'Department {appointment.department_id}',
        })
        for appointment in appointments
    ]


def filter_appointments(
    appointments: list[Appointment],
    search: str | None = None,
    status_filter: str = ALL_STATUSES,
) -> list[Appointment]:
    filtered = appointments

    term = (search or '').strip().lower()
    if term:
        filtered = [
            appointment for appointment in filtered
            if any(
                term in (value or '').lower()
                for value in (appointment.patient_name, appointment.doctor_name, appointment.department)
            )
        ]

    if status_filter.strip().upper() != ALL_STATUSES:
        try:
            wanted = AppointmentStatus(status_filter)
        except ValueError as exc:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f'Unknown status filter: {status_filter}',
            ) from exc
        filtered = [appointment for appointment in filtered if appointment.status is wanted]

    return filtered


async def persist(
    send,
    client: HospitalAPIClient,
    updated: Appointment,
    snapshot: Appointment,
    user: SessionUser,
) -> AppointmentDetailResponse:
    """Send a local decision to the backend.

    On a conflict the decision is dropped and the fresh appointment state is
    returned in the error detail so the caller can decide again.
    """
    try:
        stored = await send(updated, snapshot=snapshot)
    except HospitalAPIError as exc:
        if not exc.conflict:
            raise
        logger.warning('Appointment %s changed on the server, discarding local decision', snapshot.id)
        fresh = await client.get_appointment(snapshot.id)
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                'message': 'Appointment was changed by someone else. Review the current state and try again.',
                'current': build_detail(fresh, user).model_dump(mode='json', by_alias=True),
            },
        ) from exc

    return build_detail(stored or updated, user)


@router.get('', response_model=list[Appointment], response_model_by_alias=True)
async def list_appointments(
    status_filter: str = Query(default=ALL_STATUSES, alias='status'),
    search: str | None = Query(default=None),
    client: HospitalAPIClient = Depends(get_hospital_client),
):
    appointments = await with_display_names(client, await client.list_appointments())
    return filter_appointments(appointments, search=search, status_filter=status_filter)


@router.post(
    '',
    response_model=AppointmentDetailResponse,
    response_model_by_alias=True,
    status_code=status.HTTP_201_CREATED,
)
async def create_appointment(
    data: CreateAppointmentRequest,
    current_user: SessionUser = Depends(get_current_session),
    client: HospitalAPIClient = Depends(get_hospital_client),
):
    error = lifecycle.validate_new_appointment(data.scheduled_at, current_user.role)
    if error is not None:
        raise_for_lifecycle_error(error)

    created = await client.create_appointment(
        doctor_id=data.doctor_id,
        department_id=data.department_id,
        scheduled_at=data.scheduled_at,
        patient_id=data.patient_id,
        patient_name=data.patient_name,
        notes=data.notes,
        created_by_id=current_user.id,
    )
    return build_detail(created, current_user)


@router.get('/{appointment_id}', response_model=AppointmentDetailResponse, response_model_by_alias=True)
async def get_appointment(
    appointment_id: int,
    current_user: SessionUser = Depends(get_current_session),
    client: HospitalAPIClient = Depends(get_hospital_client),
):
    appointment = await client.get_appointment(appointment_id)
    return build_detail(appointment, current_user)


@router.put('/{appointment_id}/status', response_model=AppointmentDetailResponse, response_model_by_alias=True)
async def change_status(
    appointment_id: int,
    data: StatusChangeRequest,
    current_user: SessionUser = Depends(get_current_session),
    client: HospitalAPIClient = Depends(get_hospital_client),
):
    snapshot = await client.get_appointment(appointment_id)
    updated = unwrap(lifecycle.apply_status_change(snapshot, data.status, current_user.role))
    return await persist(client.update_status, client, updated, snapshot, current_user)


@router.put('/{appointment_id}/cancel', response_model=AppointmentDetailResponse, response_model_by_alias=True)
async def cancel_appointment(
    appointment_id: int,
    data: CancelRequest,
    current_user: SessionUser = Depends(get_current_session),
    client: HospitalAPIClient = Depends(get_hospital_client),
):
    snapshot = await client.get_appointment(appointment_id)
    updated = unwrap(lifecycle.cancel(snapshot, data.reason, current_user.role))
    return await persist(client.cancel_appointment, client, updated, snapshot, current_user)


@router.put('/{appointment_id}/reschedule', response_model=AppointmentDetailResponse, response_model_by_alias=True)
async def reschedule_appointment(
    appointment_id: int,
    data: RescheduleRequest,
    current_user: SessionUser = Depends(get_current_session),
    client: HospitalAPIClient = Depends(get_hospital_client),
):
    snapshot = await client.get_appointment(appointment_id)
    updated = unwrap(lifecycle.reschedule(snapshot, data.new_scheduled_at, current_user.role))
    return await persist(client.reschedule_appointment, client, updated, snapshot, current_user)


@router.put('/{appointment_id}/notes', response_model=AppointmentDetailResponse, response_model_by_alias=True)
async def update_notes(
    appointment_id: int,
    data: NotesRequest,
    current_user: SessionUser = Depends(get_current_session),
    client: HospitalAPIClient = Depends(get_hospital_client),
):
    snapshot = await client.get_appointment(appointment_id)
    updated = unwrap(lifecycle.update_notes(snapshot, data.notes, current_user.role))
    return await persist(client.update_notes, client, updated, snapshot, current_user)


@router.delete('/{appointment_id}', status_code=status.HTTP_204_NO_CONTENT)
async def delete_appointment(
    appointment_id: int,
    current_user: SessionUser = Depends(require_roles(ActorRole.ADMIN)),
    client: HospitalAPIClient = Depends(get_hospital_client),
):
    logger.info('%s is deleting appointment %s', current_user.username, appointment_id)
    await client.delete_appointment(appointment_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
