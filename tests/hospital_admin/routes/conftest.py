from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient

from hospital_admin.auth import jwt_handler
from hospital_admin.auth.dependencies import get_anonymous_client, get_hospital_client
from hospital_admin.hospital_api import HospitalAPIError
from hospital_admin.main import app
from hospital_admin.models.appointment import Appointment
from hospital_admin.models.department import Department
from hospital_admin.models.patient import Patient, PatientPage
from hospital_admin.models.user import ActorRole, SessionUser, StaffUser


def make_appointment(**overrides) -> Appointment:
    values = {
        'id': 42,
        'patientId': 7,
        'doctorId': 3,
        'departmentId': 2,
        'appointmentDateTime': (datetime.now() + timedelta(days=2)).strftime('%Y-%m-%d %H:%M'),
        'status': 'SCHEDULED',
        'updatedAt': '2026-01-02T08:00:00',
    }
    values.update(overrides)
    return Appointment.model_validate(values)


class FakeHospitalClient:
    """In-memory stand-in for HospitalAPIClient."""

    def __init__(self) -> None:
        self.appointments: dict[int, Appointment] = {}
        self.departments: list[Department] = []
        self.names = {'patients': {}, 'doctors': {}, 'departments': {}}
        self.calls: list[tuple] = []
        self.fail_next: HospitalAPIError | None = None
        self.signin_response: dict | None = None
        self.created: Appointment | None = None
        self.patients: dict[int, Patient] = {}
        self.patient_pages: list[dict] = []
        self.users: dict[int, StaffUser] = {}
        self.signups: list[dict] = []

    def add(self, appointment: Appointment) -> Appointment:
        self.appointments[appointment.id] = appointment
        return appointment

    def _maybe_fail(self) -> None:
        if self.fail_next is not None:
            error, self.fail_next = self.fail_next, None
            raise error

    async def signin(self, username: str, password: str) -> dict:
        self.calls.append(('signin', username))
        self._maybe_fail()
        return self.signin_response

    async def list_appointments(self) -> list[Appointment]:
        self._maybe_fail()
        return list(self.appointments.values())

    async def get_appointment(self, appointment_id) -> Appointment:
        if appointment_id not in self.appointments:
            raise HospitalAPIError('Appointment not found', status_code=404)
        return self.appointments[appointment_id]

    async def create_appointment(self, **kwargs) -> Appointment:
        self.calls.append(('create', kwargs))
        self.created = make_appointment(id=99, appointmentDateTime=kwargs['scheduled_at'].isoformat())
        return self.created

    async def _store(self, name: str, updated: Appointment, snapshot: Appointment | None = None) -> Appointment:
        self.calls.append((name, updated.id, snapshot))
        self._maybe_fail()
        self.appointments[updated.id] = updated
        return updated

    async def update_status(self, updated, snapshot=None):
        return await self._store('update_status', updated, snapshot)

    async def cancel_appointment(self, updated, snapshot=None):
        return await self._store('cancel_appointment', updated, snapshot)

    async def reschedule_appointment(self, updated, snapshot=None):
        return await self._store('reschedule_appointment', updated, snapshot)

    async def update_notes(self, updated, snapshot=None):
        return await self._store('update_notes', updated, snapshot)

    async def lookup_names(self, entity_type: str, ids) -> dict:
        return {key: value for key, value in self.names[entity_type].items() if key in ids}

    async def delete_appointment(self, appointment_id) -> None:
        self.calls.append(('delete_appointment', appointment_id))
        self._maybe_fail()
        self.appointments.pop(appointment_id, None)

    async def list_appointments_by_doctor(self, doctor_id, start=None, end=None) -> list[Appointment]:
        self.calls.append(('by_doctor', doctor_id, start, end))
        return [item for item in self.appointments.values() if item.doctor_id == doctor_id]

    async def list_appointments_by_patient(self, patient_id) -> list[Appointment]:
        return [item for item in self.appointments.values() if item.patient_id == patient_id]

    async def list_patients(self, search=None, page=None, size=None) -> PatientPage:
        self.patient_pages.append({'search': search, 'page': page, 'size': size})
        patients = list(self.patients.values())
        return PatientPage(content=patients, totalElements=len(patients), totalPages=1, number=page or 0, size=size or 0)

    async def get_patient(self, patient_id) -> Patient:
        if patient_id not in self.patients:
            raise HospitalAPIError('Patient not found', status_code=404)
        return self.patients[patient_id]

    async def create_patient(self, payload: dict) -> Patient:
        self.calls.append(('create_patient', payload))
        return Patient.model_validate({**payload, 'id': 100})

    async def update_patient(self, patient_id, payload: dict) -> Patient:
        self.calls.append(('update_patient', patient_id, payload))
        return Patient.model_validate({**payload, 'id': patient_id})

    async def list_departments(self) -> list[Department]:
        return self.departments

    async def get_department(self, department_id) -> Department:
        for department in self.departments:
            if department.id == department_id:
                return department
        raise HospitalAPIError('Department not found', status_code=404)

    async def create_department(self, payload: dict) -> Department:
        self.calls.append(('create_department', payload))
        return Department.model_validate({**payload, 'id': 50})

    async def update_department(self, department_id, payload: dict) -> Department:
        self.calls.append(('update_department', department_id, payload))
        return Department.model_validate({**payload, 'id': department_id})

    async def delete_department(self, department_id) -> None:
        self.calls.append(('delete_department', department_id))

    async def signup(self, payload: dict) -> dict:
        self.calls.append(('signup', payload['username']))
        self._maybe_fail()
        self.signups.append(payload)
        return {'message': 'User registered successfully!'}

    async def list_users(self) -> list[StaffUser]:
        return list(self.users.values())

    async def get_user(self, user_id) -> StaffUser:
        if user_id not in self.users:
            raise HospitalAPIError('User not found', status_code=404)
        return self.users[user_id]

    async def update_user(self, user_id, payload: dict) -> StaffUser:
        self.calls.append(('update_user', user_id, payload))
        current = self.users[user_id].model_dump(by_alias=True)
        merged = {**current, **payload}
        if 'roles' in payload:
            merged['role'] = None
        self.users[user_id] = StaffUser.model_validate(merged)
        return self.users[user_id]

    async def delete_user(self, user_id) -> None:
        self.calls.append(('delete_user', user_id))
        self.users.pop(user_id, None)


@pytest.fixture
def fake_client():
    fake = FakeHospitalClient()

    async def override():
        yield fake

    app.dependency_overrides[get_hospital_client] = override
    app.dependency_overrides[get_anonymous_client] = override
    try:
        yield fake
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def api() -> TestClient:
    return TestClient(app)


def auth_headers(role: ActorRole) -> dict[str, str]:
    user = SessionUser(id=5, username=f'{role.value.lower()}.user', role=role, access_token='upstream')
    return {'Authorization': f'Bearer {jwt_handler.create_access_token(user)}'}


@pytest.fixture
def appointment_factory():
    return make_appointment


@pytest.fixture
def headers_for():
    return auth_headers
