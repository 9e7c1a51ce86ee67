"""Asynchronous client for the hospital REST backend."""

import logging
from datetime import date, datetime
from types import TracebackType
from typing import Any, Self

import httpx

from hospital_admin.core import config
from hospital_admin.models.appointment import Appointment, AppointmentStatus
from hospital_admin.models.department import Department
from hospital_admin.models.patient import Patient, PatientPage
from hospital_admin.models.user import StaffUser

logger = logging.getLogger(__name__)

LOOKUP_ENTITIES = ('patients', 'doctors', 'departments')


class HospitalAPIError(Exception):
    """Failure reported by, or while talking to, the hospital backend.

    ``status_code`` is ``None`` when no response was received.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    @property
    def retryable(self) -> bool:
        return self.status_code is None or self.status_code >= 500

    @property
    def conflict(self) -> bool:
        return self.status_code == 409

    @property
    def session_expired(self) -> bool:
        return self.status_code == 401


def to_backend_format(value: datetime) -> str:
    """Format for the backend, which expects local wall-clock time."""
    if value.tzinfo is not None:
        value = value.astimezone().replace(tzinfo=None)
    return value.strftime('%Y-%m-%d %H:%M')


def to_iso_format(value: datetime) -> str:
    return value.replace(microsecond=0).isoformat()


def _if_match(snapshot: Appointment | None) -> dict[str, str]:
    if snapshot is None or snapshot.updated_at is None:
        return {}
    return {'If-Match': f'"{snapshot.updated_at.isoformat()}"'}


class HospitalAPIClient:
    """Talks to the hospital backend on behalf of one signed-in user."""

    def __init__(
        self,
        access_token: str | None = None,
        base_url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._access_token = access_token
        self._base_url = (base_url or config.HOSPITAL_API_BASE_URL).rstrip('/')
        self._transport = transport or httpx.AsyncHTTPTransport(
            retries=config.HOSPITAL_API_RETRIES,
            verify=config.HOSPITAL_API_VERIFY_TLS,
        )
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> Self:
        self._ensure_client()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    async def close(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    def _headers(self) -> dict[str, str]:
        headers = {'Content-Type': 'application/json', 'Accept': 'application/json'}
        if self._access_token:
            headers['Authorization'] = f'Bearer {self._access_token}'
        return headers

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                headers=self._headers(),
                timeout=config.HOSPITAL_API_TIMEOUT_SECONDS,
                transport=self._transport,
            )
        return self._client

    async def _request(self, method: str, endpoint: str, **kwargs: Any) -> Any:
        """Send a request and return the decoded JSON body.

        Raises:
            HospitalAPIError: on transport failures and non-2xx responses.
        """
        client = self._ensure_client()
        try:
            response = await client.request(method, endpoint, **kwargs)
        except httpx.TransportError as exc:
            logger.warning('%s %s failed: %s', method, endpoint, exc)
            raise HospitalAPIError(f'Hospital API unreachable: {exc}') from exc

        if response.is_error:
            try:
                message = response.json().get('message')
            except (ValueError, AttributeError):
                message = None
            raise HospitalAPIError(
                message or f'API Error: {response.status_code}',
                status_code=response.status_code,
            )

        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    # Auth
    async def signin(self, username: str, password: str) -> dict[str, Any]:
        logger.info('Signing in %s', username)
        return await self._request('POST', '/auth/signin', json={'username': username, 'password': password})

    # Appointments
    async def list_appointments(self) -> list[Appointment]:
        data = await self._request('GET', '/appointments') or []
        logger.debug('Retrieved %d appointments', len(data))
        return [Appointment.model_validate(item) for item in data]

    async def get_appointment(self, appointment_id: int | str) -> Appointment:
        data = await self._request('GET', f'/appointments/{appointment_id}')
        return Appointment.model_validate(data)

    async def create_appointment(
        self,
        doctor_id: int | str,
        department_id: int | str,
        scheduled_at: datetime,
        patient_id: int | str | None = None,
        patient_name: str | None = None,
        notes: str | None = None,
        created_by_id: int | str | None = None,
    ) -> Appointment:
        payload: dict[str, Any] = {
            'doctorId': doctor_id,
            'departmentId': department_id,
            'appointmentDateTime': to_backend_format(scheduled_at),
            'notes': notes,
        }
        if patient_id is not None:
            payload['patientId'] = patient_id
        else:
            payload['patientName'] = patient_name
        if created_by_id is not None:
            payload['createdById'] = created_by_id

        logger.info('Creating appointment for doctor %s at %s', doctor_id, payload['appointmentDateTime'])
        data = await self._request('POST', '/appointments', json=payload)
        return Appointment.model_validate(data)

    async def update_notes(self, updated: Appointment, snapshot: Appointment | None = None) -> Appointment | None:
        logger.info('Updating notes of appointment %s', updated.id)
        data = await self._request(
            'PUT',
            f'/appointments/{updated.id}',
            json={'notes': updated.notes or ''},
            headers=_if_match(snapshot),
        )
        return Appointment.model_validate(data) if data else None

    async def update_status(self, updated: Appointment, snapshot: Appointment | None = None) -> Appointment | None:
        status = AppointmentStatus(updated.status)
        logger.info('Setting appointment %s to %s', updated.id, status.value)
        data = await self._request(
            'PUT',
            f'/appointments/{updated.id}/status/{status.value}',
            headers=_if_match(snapshot),
        )
        return Appointment.model_validate(data) if data else None

    async def cancel_appointment(self, updated: Appointment, snapshot: Appointment | None = None) -> Appointment | None:
        logger.info('Cancelling appointment %s', updated.id)
        data = await self._request(
            'PUT',
            f'/appointments/{updated.id}/cancel',
            json={'reason': updated.cancellation_reason},
            headers=_if_match(snapshot),
        )
        return Appointment.model_validate(data) if data else None

    async def reschedule_appointment(
        self,
        updated: Appointment,
        snapshot: Appointment | None = None,
    ) -> Appointment | None:
        new_date_time = to_iso_format(updated.scheduled_at)
        logger.info('Rescheduling appointment %s to %s', updated.id, new_date_time)
        data = await self._request(
            'PUT',
            f'/appointments/{updated.id}/reschedule',
            json={'newDateTime': new_date_time},
            headers=_if_match(snapshot),
        )
        return Appointment.model_validate(data) if data else None

    async def delete_appointment(self, appointment_id: int | str) -> None:
        logger.info('Deleting appointment %s', appointment_id)
        await self._request('DELETE', f'/appointments/{appointment_id}')

    async def list_appointments_by_doctor(
        self,
        doctor_id: int | str,
        start: date | None = None,
        end: date | None = None,
    ) -> list[Appointment]:
        params = {}
        if start is not None:
            params['start'] = start.isoformat()
        if end is not None:
            params['end'] = end.isoformat()
        data = await self._request('GET', f'/appointments/doctor/{doctor_id}', params=params) or []
        return [Appointment.model_validate(item) for item in data]

    async def list_appointments_by_patient(self, patient_id: int | str) -> list[Appointment]:
        data = await self._request('GET', f'/appointments/patient/{patient_id}') or []
        return [Appointment.model_validate(item) for item in data]

    # Patients
    async def list_patients(
        self,
        search: str | None = None,
        page: int | None = None,
        size: int | None = None,
    ) -> PatientPage:
        params: dict[str, Any] = {}
        if search:
            params['search'] = search
        if page is not None:
            params['page'] = page
        if size is not None:
            params['size'] = size
        data = await self._request('GET', '/patients', params=params) or {}
        # Older deployments return a bare list instead of a page.
        if isinstance(data, list):
            return PatientPage(content=data, totalElements=len(data), totalPages=1, size=len(data))
        return PatientPage.model_validate(data)

    async def get_patient(self, patient_id: int | str) -> Patient:
        data = await self._request('GET', f'/patients/{patient_id}')
        return Patient.model_validate(data)

    async def create_patient(self, payload: dict[str, Any]) -> Patient:
        logger.info('Creating patient %s %s', payload.get('firstName'), payload.get('lastName'))
        data = await self._request('POST', '/patients', json=payload)
        return Patient.model_validate(data)

    async def update_patient(self, patient_id: int | str, payload: dict[str, Any]) -> Patient:
        logger.info('Updating patient %s', patient_id)
        data = await self._request('PUT', f'/patients/{patient_id}', json=payload)
        return Patient.model_validate(data)

    # Departments
    async def list_departments(self) -> list[Department]:
        data = await self._request('GET', '/departments') or []
        return [Department.model_validate(item) for item in data]

    async def get_department(self, department_id: int | str) -> Department:
        data = await self._request('GET', f'/departments/{department_id}')
        return Department.model_validate(data)

    async def create_department(self, payload: dict[str, Any]) -> Department:
        logger.info('Creating department %s', payload.get('name'))
        data = await self._request('POST', '/departments', json=payload)
        return Department.model_validate(data)

    async def update_department(self, department_id: int | str, payload: dict[str, Any]) -> Department:
        logger.info('Updating department %s', department_id)
        data = await self._request('PUT', f'/departments/{department_id}', json=payload)
        return Department.model_validate(data)

    async def delete_department(self, department_id: int | str) -> None:
        logger.info('Deleting department %s', department_id)
        await self._request('DELETE', f'/departments/{department_id}')

    # Users
    async def signup(self, payload: dict[str, Any]) -> dict[str, Any] | None:
        logger.info('Registering user %s', payload.get('username'))
        return await self._request('POST', '/auth/signup', json=payload)

    async def list_users(self) -> list[StaffUser]:
        data = await self._request('GET', '/users') or []
        return [StaffUser.model_validate(item) for item in data]

    async def get_user(self, user_id: int | str) -> StaffUser:
        data = await self._request('GET', f'/users/{user_id}')
        return StaffUser.model_validate(data)

    async def update_user(self, user_id: int | str, payload: dict[str, Any]) -> StaffUser:
        logger.info('Updating user %s', user_id)
        data = await self._request('PUT', f'/users/{user_id}', json=payload)
        return StaffUser.model_validate(data)

    async def delete_user(self, user_id: int | str) -> None:
        logger.info('Deleting user %s', user_id)
        await self._request('DELETE', f'/users/{user_id}')

    # Lookups
    async def lookup_names(self, entity_type: str, ids: list[int | str]) -> dict[Any, str]:
        if entity_type not in LOOKUP_ENTITIES:
            raise ValueError(f'Unsupported lookup entity: {entity_type}')
        unique_ids = list(dict.fromkeys(ids))
        if not unique_ids:
            return {}

        data = await self._request(
            'GET',
            f'/lookup/{entity_type}',
            params={'ids': ','.join(str(item) for item in unique_ids)},
        ) or []
        return {item['id']: item['name'] for item in data if 'id' in item and 'name' in item}
