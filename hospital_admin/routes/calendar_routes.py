from datetime import date, timedelta

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel

from hospital_admin.auth.dependencies import get_current_session, get_hospital_client
from hospital_admin.hospital_api import HospitalAPIClient
from hospital_admin.models.appointment import Appointment
from hospital_admin.routes.appointment_routes import with_display_names

router = APIRouter(tags=['calendar'], dependencies=[Depends(get_current_session)])

DEFAULT_RANGE_DAYS = 7
MAX_RANGE_DAYS = 42


class CalendarDay(BaseModel):
    day: date
    appointments: list[Appointment]


def resolve_range(start: date | None, end: date | None, today: date) -> tuple[date, date]:
    start = start or today
    end = end or start + timedelta(days=DEFAULT_RANGE_DAYS - 1)
    if end < start:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='End date must not be before start date.')
    if (end - start).days + 1 > MAX_RANGE_DAYS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f'Calendar range is limited to {MAX_RANGE_DAYS} days.',
        )
    return start, end


def group_by_day(appointments: list[Appointment], start: date, end: date) -> list[CalendarDay]:
    """One entry per day in the range, each sorted by time."""
    per_day: dict[date, list[Appointment]] = {}
    for appointment in appointments:
        per_day.setdefault(appointment.scheduled_at.date(), []).append(appointment)

    days = []
    current = start
    while current <= end:
        items = sorted(per_day.get(current, []), key=lambda appointment: appointment.scheduled_at)
        days.append(CalendarDay(day=current, appointments=items))
        current += timedelta(days=1)
    return days


@router.get('', response_model=list[CalendarDay], response_model_by_alias=True)
async def calendar(
    start: date | None = Query(default=None),
    end: date | None = Query(default=None),
    doctor_id: int | None = Query(default=None),
    client: HospitalAPIClient = Depends(get_hospital_client),
):
    start, end = resolve_range(start, end, date.today())

    if doctor_id is not None:
        appointments = await client.list_appointments_by_doctor(doctor_id, start, end)
    else:
        appointments = await client.list_appointments()

    # The backend may ignore the range, so it is applied here as well.
    in_range = [appointment for appointment in appointments if start <= appointment.scheduled_at.date() <= end]
    return group_by_day(await with_display_names(client, in_range), start, end)
