import logging
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinic_scheduling.core import config
from clinic_scheduling.core.cache import SchedulingCache
from clinic_scheduling.models.availability import PractitionerAvailability
from clinic_scheduling.routes.dependencies import (
    DATABASE_UNAVAILABLE_DETAIL,
    availability_key,
    build_policy,
    ensure_database_ready,
    get_cache,
    get_db,
    load_clinic_settings,
    load_day_appointments,
    load_weekly_availability,
)
from clinic_scheduling.scheduling.availability import WeeklyAvailability
from clinic_scheduling.scheduling.pipeline import build_day_schedule
from clinic_scheduling.scheduling.times import WEEKDAY_NAMES

router = APIRouter(tags=['availability'])

logger = logging.getLogger(__name__)


class SlotResponse(BaseModel):
    start: str
    end: str
    available: bool
    occupied: bool


class DaySlotsResponse(BaseModel):
    practitioner_id: str
    date: date
    duration_minutes: int
    clinic_closed: bool
    closed_reason: str | None = None
    slots: list[SlotResponse]


def validate_duration(duration: int) -> int:
    if duration not in config.AVAILABLE_SLOT_DURATIONS:
        allowed = ', '.join(str(minutes) for minutes in config.AVAILABLE_SLOT_DURATIONS)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f'Slot duration must be one of: {allowed} minutes.',
        )
    return duration


def save_weekly_availability(db: Session, practitioner_id: str, weekly: WeeklyAvailability) -> None:
    existing = {
        row.weekday: row
        for row in db.query(PractitionerAvailability).filter(
            PractitionerAvailability.practitioner_id == practitioner_id,
        ).all()
    }

    for weekday_number, day_name in enumerate(WEEKDAY_NAMES, start=1):
        day = weekly.day(day_name)
        time_slots = [window.model_dump() for window in day.sorted_slots()]
        row = existing.get(weekday_number)
        if row is None:
            db.add(
                PractitionerAvailability(
                    practitioner_id=practitioner_id,
                    weekday=weekday_number,
                    enabled=day.enabled,
                    time_slots=time_slots,
                )
            )
        else:
            row.enabled = day.enabled
            row.time_slots = time_slots


@router.get('/slots', response_model=DaySlotsResponse)
def list_day_slots(
    practitioner_id: str = Query(...),
    slot_date: date = Query(..., alias='date'),
    duration: int = Query(default=config.DEFAULT_SLOT_DURATION_MINUTES),
    exclude_appointment_id: int | None = Query(default=None),
    db: Session = Depends(get_db),
    cache: SchedulingCache = Depends(get_cache),
):
    validate_duration(duration)
    ensure_database_ready()

    try:
        settings = load_clinic_settings(db, cache)
        weekly = load_weekly_availability(db, cache, practitioner_id)
        appointments = load_day_appointments(db, practitioner_id, slot_date)
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc

    schedule = build_day_schedule(
        practitioner_id,
        slot_date,
        policy=build_policy(settings),
        availability={practitioner_id: weekly} if weekly is not None else {},
        appointments=appointments,
        duration_minutes=duration,
        exclude_appointment_id=str(exclude_appointment_id) if exclude_appointment_id is not None else None,
    )

    return DaySlotsResponse(
        practitioner_id=schedule.practitioner_id,
        date=schedule.date,
        duration_minutes=schedule.duration_minutes,
        clinic_closed=schedule.clinic_closed,
        closed_reason=schedule.closed_reason,
        slots=[
            SlotResponse(start=slot.start, end=slot.end, available=bool(slot.available), occupied=slot.occupied)
            for slot in schedule.slots
        ],
    )


@router.get('/{practitioner_id}', response_model=WeeklyAvailability)
def get_practitioner_availability(
    practitioner_id: str,
    db: Session = Depends(get_db),
    cache: SchedulingCache = Depends(get_cache),
):
    ensure_database_ready()

    try:
        weekly = load_weekly_availability(db, cache, practitioner_id)
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc

    return weekly or WeeklyAvailability()


@router.put('/{practitioner_id}', response_model=WeeklyAvailability)
def replace_practitioner_availability(
    practitioner_id: str,
    data: WeeklyAvailability,
    db: Session = Depends(get_db),
    cache: SchedulingCache = Depends(get_cache),
):
    for day_name in WEEKDAY_NAMES:
        overlaps = data.overlapping_windows(day_name)
        if overlaps:
            first, second = overlaps[0]
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=(
                    f'Time windows on {day_name} overlap: '
                    f'{first.start}-{first.end} and {second.start}-{second.end}.'
                ),
            )

    ensure_database_ready()

    try:
        save_weekly_availability(db, practitioner_id, data)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc

    cache.invalidate(availability_key(practitioner_id))
    logger.info('Saved weekly availability for practitioner %s', practitioner_id)
    return data


@router.post('/{practitioner_id}/apply-template/{template_name}', response_model=WeeklyAvailability)
def apply_availability_template(
    practitioner_id: str,
    template_name: str,
    db: Session = Depends(get_db),
    cache: SchedulingCache = Depends(get_cache),
):
    try:
        weekly = WeeklyAvailability.from_template(template_name)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Availability template not found.',
        ) from exc

    return replace_practitioner_availability(practitioner_id, weekly, db=db, cache=cache)
