import logging
from datetime import date

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, EmailStr, field_validator

from hospital_admin.auth.dependencies import get_hospital_client, require_roles
from hospital_admin.hospital_api import HospitalAPIClient
from hospital_admin.models.appointment import Appointment
from hospital_admin.models.patient import Patient, PatientPage
from hospital_admin.models.user import ActorRole, SessionUser

router = APIRouter(
    tags=['patients'],
    dependencies=[Depends(require_roles(ActorRole.ADMIN, ActorRole.DOCTOR, ActorRole.HELPDESK))],
)

logger = logging.getLogger(__name__)

can_manage_patients = require_roles(ActorRole.ADMIN, ActorRole.HELPDESK)

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


class PatientRequest(BaseModel):
    first_name: str
    last_name: str
    email: EmailStr | None = None
    phone: str | None = None
    date_of_birth: date | None = None
    address: str | None = None
    emergency_contact: str | None = None
    medical_history: str | None = None
    insurance_info: str | None = None

    @field_validator('first_name', 'last_name')
    @classmethod
    def validate_name(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('First and last name are required.')
        return normalized

    @field_validator('date_of_birth')
    @classmethod
    def validate_date_of_birth(cls, value: date | None) -> date | None:
        if value is not None and value > date.today():
            raise ValueError('Date of birth cannot be in the future.')
        return value

    def to_backend(self) -> dict:
        return {
            'firstName': self.first_name,
            'lastName': self.last_name,
            'email': self.email,
            'phoneNumber': self.phone,
            'dateOfBirth': self.date_of_birth.isoformat() if self.date_of_birth else None,
            'address': self.address,
            'emergencyContact': self.emergency_contact,
            'medicalHistory': self.medical_history,
            'insuranceInfo': self.insurance_info,
        }


class PatientDetailResponse(BaseModel):
    patient: Patient
    appointments: list[Appointment]


@router.get('', response_model=PatientPage, response_model_by_alias=True)
async def list_patients(
    search: str | None = Query(default=None),
    page: int = Query(default=0, ge=0),
    size: int = Query(default=DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    client: HospitalAPIClient = Depends(get_hospital_client),
):
    return await client.list_patients(search=(search or '').strip() or None, page=page, size=size)


@router.post('', response_model=Patient, response_model_by_alias=True, status_code=201)
async def create_patient(
    data: PatientRequest,
    current_user: SessionUser = Depends(can_manage_patients),
    client: HospitalAPIClient = Depends(get_hospital_client),
):
    logger.info('%s is registering a patient', current_user.username)
    return await client.create_patient(data.to_backend())


@router.get('/{patient_id}', response_model=PatientDetailResponse, response_model_by_alias=True)
async def get_patient(patient_id: int, client: HospitalAPIClient = Depends(get_hospital_client)):
    patient = await client.get_patient(patient_id)
    history = await client.list_appointments_by_patient(patient_id)
    return PatientDetailResponse(
        patient=patient,
        appointments=sorted(history, key=lambda appointment: appointment.scheduled_at, reverse=True),
    )


@router.put('/{patient_id}', response_model=Patient, response_model_by_alias=True)
async def update_patient(
    patient_id: int,
    data: PatientRequest,
    current_user: SessionUser = Depends(can_manage_patients),
    client: HospitalAPIClient = Depends(get_hospital_client),
):
    logger.info('%s is updating patient %s', current_user.username, patient_id)
    return await client.update_patient(patient_id, data.to_backend())
