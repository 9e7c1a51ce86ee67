from datetime import date

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from hospital_admin import reports
from hospital_admin.auth.dependencies import get_hospital_client, require_roles
from hospital_admin.hospital_api import HospitalAPIClient
from hospital_admin.models.appointment import AppointmentStatus
from hospital_admin.models.user import ActorRole

router = APIRouter(tags=['reports'], dependencies=[Depends(require_roles(ActorRole.ADMIN, ActorRole.DOCTOR))])


class ReportResponse(BaseModel):
    total: int
    by_status: dict[AppointmentStatus, int]
    by_department: list[reports.DepartmentCount]
    monthly: list[reports.MonthCount]


@router.get('', response_model=ReportResponse)
async def report(client: HospitalAPIClient = Depends(get_hospital_client)):
    appointments = await client.list_appointments()
    departments = await client.list_departments()

    return ReportResponse(
        total=len(appointments),
        by_status=reports.count_by_status(appointments),
        by_department=reports.count_by_department(appointments, departments),
        monthly=reports.monthly_trends(appointments, date.today()),
    )
