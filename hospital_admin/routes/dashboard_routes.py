from datetime import date

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from hospital_admin import reports
from hospital_admin.auth.dependencies import get_current_session, get_hospital_client
from hospital_admin.hospital_api import HospitalAPIClient
from hospital_admin.models.appointment import Appointment, AppointmentStatus

router = APIRouter(tags=['dashboard'], dependencies=[Depends(get_current_session)])


class DashboardSummaryResponse(BaseModel):
    total: int
    by_status: dict[AppointmentStatus, int]
    weekly: list[reports.DayCount]
    by_department: list[reports.DepartmentCount]
    recent: list[Appointment]


@router.get('/summary', response_model=DashboardSummaryResponse, response_model_by_alias=True)
async def dashboard_summary(client: HospitalAPIClient = Depends(get_hospital_client)):
    appointments = await client.list_appointments()
    departments = await client.list_departments()

    return DashboardSummaryResponse(
        total=len(appointments),
        by_status=reports.count_by_status(appointments),
        weekly=reports.count_by_weekday(appointments, date.today()),
        by_department=reports.count_by_department(appointments, departments),
        recent=reports.recent_appointments(appointments),
    )
