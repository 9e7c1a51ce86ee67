import logging

from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import BaseModel, EmailStr, field_validator

from hospital_admin.auth.dependencies import get_hospital_client, require_roles
from hospital_admin.hospital_api import HospitalAPIClient
from hospital_admin.models.department import Department
from hospital_admin.models.user import ActorRole, SessionUser

router = APIRouter(
    tags=['departments'],
    dependencies=[Depends(require_roles(ActorRole.ADMIN, ActorRole.DOCTOR, ActorRole.HELPDESK))],
)

logger = logging.getLogger(__name__)

require_admin = require_roles(ActorRole.ADMIN)


class DepartmentRequest(BaseModel):
    name: str
    description: str | None = None
    head_of_department: str | None = None
    location: str | None = None
    phone: str | None = None
    email: EmailStr | None = None

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Department name is required.')
        return normalized

    def to_backend(self) -> dict:
        return {
            'name': self.name,
            'description': self.description,
            'headOfDepartment': self.head_of_department,
            'location': self.location,
            'phone': self.phone,
            'email': self.email,
        }


def filter_departments(departments: list[Department], search: str | None) -> list[Department]:
    term = (search or '').strip().lower()
    if not term:
        return departments
    return [
        department for department in departments
        if term in (department.name or '').lower() or term in (department.description or '').lower()
    ]


@router.get('', response_model=list[Department], response_model_by_alias=True)
async def list_departments(
    search: str | None = Query(default=None),
    client: HospitalAPIClient = Depends(get_hospital_client),
):
    return filter_departments(await client.list_departments(), search)


@router.get('/{department_id}', response_model=Department, response_model_by_alias=True)
async def get_department(department_id: int, client: HospitalAPIClient = Depends(get_hospital_client)):
    return await client.get_department(department_id)


@router.post('', response_model=Department, response_model_by_alias=True, status_code=status.HTTP_201_CREATED)
async def create_department(
    data: DepartmentRequest,
    current_user: SessionUser = Depends(require_admin),
    client: HospitalAPIClient = Depends(get_hospital_client),
):
    logger.info('%s is creating department %s', current_user.username, data.name)
    return await client.create_department(data.to_backend())


@router.put('/{department_id}', response_model=Department, response_model_by_alias=True)
async def update_department(
    department_id: int,
    data: DepartmentRequest,
    current_user: SessionUser = Depends(require_admin),
    client: HospitalAPIClient = Depends(get_hospital_client),
):
    logger.info('%s is updating department %s', current_user.username, department_id)
    return await client.update_department(department_id, data.to_backend())


@router.delete('/{department_id}', status_code=status.HTTP_204_NO_CONTENT)
async def delete_department(
    department_id: int,
    current_user: SessionUser = Depends(require_admin),
    client: HospitalAPIClient = Depends(get_hospital_client),
):
    logger.info('%s is deleting department %s', current_user.username, department_id)
    await client.delete_department(department_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
