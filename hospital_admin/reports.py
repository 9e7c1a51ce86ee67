"""Dashboard and report summaries computed from appointment lists."""

from collections import Counter
from datetime import date, timedelta

from pydantic import BaseModel

from hospital_admin.models.appointment import Appointment, AppointmentStatus
from hospital_admin.models.department import Department

RECENT_APPOINTMENTS_LIMIT = 5
TREND_MONTHS = 6


class DayCount(BaseModel):
    day: str
    date: date
    appointments: int


class DepartmentCount(BaseModel):
    department_id: int | str | None
    name: str
    appointments: int


class MonthCount(BaseModel):
    month: str
    start: date
    appointments: int
    patients: int


def count_by_status(appointments: list[Appointment]) -> dict[AppointmentStatus, int]:
    counts = Counter(appointment.status for appointment in appointments)
    return {status: counts.get(status, 0) for status in AppointmentStatus}


def week_start(today: date) -> date:
    # Weeks start on Sunday.
    return today - timedelta(days=(today.weekday() + 1) % 7)


def count_by_weekday(appointments: list[Appointment], today: date) -> list[DayCount]:
    start = week_start(today)
    per_day = Counter(appointment.scheduled_at.date() for appointment in appointments)

    days = []
    for offset in range(7):
        current = start + timedelta(days=offset)
        days.append(DayCount(day=current.strftime('%a'), date=current, appointments=per_day.get(current, 0)))
    return days


def count_by_department(appointments: list[Appointment], departments: list[Department]) -> list[DepartmentCount]:
    per_department = Counter(appointment.department_id for appointment in appointments)
    return [
        DepartmentCount(
            department_id=department.id,
            name=department.name or f'Department {department.id}',
            appointments=per_department.get(department.id, 0),
        )
        for department in departments
    ]


def recent_appointments(appointments: list[Appointment], limit: int = RECENT_APPOINTMENTS_LIMIT) -> list[Appointment]:
    return appointments[:limit]


def month_start(day: date, months_back: int = 0) -> date:
    index = day.year * 12 + day.month - 1 - months_back
    return date(index // 12, index % 12 + 1, 1)


def monthly_trends(appointments: list[Appointment], today: date, months: int = TREND_MONTHS) -> list[MonthCount]:
    """Appointments and distinct patients per month, oldest month first."""
    per_month = Counter()
    patients_per_month: dict[date, set] = {}
    for appointment in appointments:
        key = month_start(appointment.scheduled_at.date())
        per_month[key] += 1
        if appointment.patient_id is not None:
            patients_per_month.setdefault(key, set()).add(appointment.patient_id)

    trends = []
    for months_back in range(months - 1, -1, -1):
        start = month_start(today, months_back)
        trends.append(MonthCount(
            month=start.strftime('%b'),
            start=start,
            appointments=per_month.get(start, 0),
            patients=len(patients_per_month.get(start, ())),
        ))
    return trends
