from datetime import date

from fastapi import HTTPException, Request, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinic_scheduling.core import config
from clinic_scheduling.core.cache import CLINIC_SETTINGS, PRACTITIONER_AVAILABILITY, SchedulingCache
from clinic_scheduling.database import SessionLocal, ensure_appointment_schema
from clinic_scheduling.models.appointment import Appointment
from clinic_scheduling.models.availability import PractitionerAvailability
from clinic_scheduling.models.clinic_settings import ClinicOperatingDay, ClosedDate
from clinic_scheduling.scheduling.availability import WeeklyAvailability
from clinic_scheduling.scheduling.clinic_calendar import (
    ClinicCalendarPolicy,
    ClinicSettings,
    OperatingDay,
    UnknownClinicState,
)
from clinic_scheduling.scheduling.clinic_calendar import ClosedDate as ClosedDateRecord
from clinic_scheduling.scheduling.models import AppointmentRecord

DATABASE_UNAVAILABLE_DETAIL = 'Database unavailable. Verify DATABASE_URL and Postgres credentials.'

_MISSING = object()


def ensure_database_ready() -> None:
    try:
        ensure_appointment_schema()
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_cache(request: Request) -> SchedulingCache:
    return request.app.state.cache


def clinic_settings_key() -> tuple[str, str]:
    return (CLINIC_SETTINGS, 'clinic')


def availability_key(practitioner_id: str) -> tuple[str, str]:
    return (PRACTITIONER_AVAILABILITY, str(practitioner_id))


def load_clinic_settings(db: Session, cache: SchedulingCache) -> ClinicSettings:
    cached = cache.get(clinic_settings_key())
    if cached is not None:
        return cached

    operating_days = db.query(ClinicOperatingDay).all()
    closed_dates = db.query(ClosedDate).order_by(ClosedDate.date.asc()).all()
    settings = ClinicSettings(
        operating_hours={
            day.weekday: OperatingDay(enabled=bool(day.enabled), start=day.start, end=day.end)
            for day in operating_days
        },
        closed_dates=[
            ClosedDateRecord(id=closed.id, date=closed.date, reason=closed.reason, type=closed.type or 'other')
            for closed in closed_dates
        ],
    )
    cache.set(clinic_settings_key(), settings)
    return settings


def build_policy(settings: ClinicSettings | None) -> ClinicCalendarPolicy:
    return ClinicCalendarPolicy(settings, UnknownClinicState(config.UNKNOWN_CLINIC_STATE))


def load_weekly_availability(db: Session, cache: SchedulingCache, practitioner_id: str) -> WeeklyAvailability | None:
    cached = cache.get(availability_key(practitioner_id), _MISSING)
    if cached is not _MISSING:
        return cached

    rows = db.query(PractitionerAvailability).filter(
        PractitionerAvailability.practitioner_id == str(practitioner_id),
    ).order_by(PractitionerAvailability.weekday.asc()).all()

    weekly = WeeklyAvailability.from_day_records(rows) if rows else None
    cache.set(availability_key(practitioner_id), weekly)
    return weekly


def appointment_to_record(appointment: Appointment) -> AppointmentRecord:
    return AppointmentRecord(
        id=appointment.id,
        patient_id=appointment.patient_id,
        practitioner_id=appointment.practitioner_id,
        date=appointment.date,
        start_time=appointment.start_time,
        end_time=appointment.end_time,
        duration=appointment.duration,
        additional_slots=appointment.additional_slots or [],
        status=appointment.status or 'scheduled',
        priority=appointment.priority or 'normal',
        deleted=bool(appointment.deleted),
    )


def load_day_appointments(db: Session, practitioner_id: str, on_date: date) -> list[AppointmentRecord]:
    appointments = db.query(Appointment).filter(
        Appointment.practitioner_id == str(practitioner_id),
        Appointment.date == on_date,
        Appointment.deleted.is_not(True),
    ).order_by(Appointment.start_time.asc()).all()

    return [appointment_to_record(appointment) for appointment in appointments]
