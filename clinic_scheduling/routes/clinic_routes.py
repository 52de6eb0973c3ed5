import logging
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from clinic_scheduling.core.cache import SchedulingCache
from clinic_scheduling.models.clinic_settings import ClinicOperatingDay, ClosedDate
from clinic_scheduling.routes.dependencies import (
    DATABASE_UNAVAILABLE_DETAIL,
    clinic_settings_key,
    ensure_database_ready,
    get_cache,
    get_db,
    load_clinic_settings,
)
from clinic_scheduling.scheduling.clinic_calendar import CLOSED_DATE_TYPES, ClinicSettings, OperatingDay
from clinic_scheduling.scheduling.clinic_calendar import ClosedDate as ClosedDateRecord
from clinic_scheduling.scheduling.times import normalize_weekday

router = APIRouter(tags=['clinic'])

logger = logging.getLogger(__name__)


class CreateClosedDateRequest(BaseModel):
    date: date
    reason: str | None = None
    type: str = 'other'

    @field_validator('reason')
    @classmethod
    def validate_reason(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip()
        return normalized or None

    @field_validator('type')
    @classmethod
    def validate_type(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in CLOSED_DATE_TYPES:
            raise ValueError('Invalid closed date type.')
        return normalized


@router.get('/settings', response_model=ClinicSettings)
def get_clinic_settings(
    db: Session = Depends(get_db),
    cache: SchedulingCache = Depends(get_cache),
):
    ensure_database_ready()

    try:
        return load_clinic_settings(db, cache)
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc


@router.put('/settings/operating-hours/{weekday}', response_model=OperatingDay)
def update_operating_day(
    weekday: str,
    data: OperatingDay,
    db: Session = Depends(get_db),
    cache: SchedulingCache = Depends(get_cache),
):
    try:
        day_name = normalize_weekday(weekday)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Unknown weekday.',
        ) from exc

    if data.start and data.end and data.end <= data.start:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Closing time must be after opening time.',
        )

    ensure_database_ready()

    try:
        operating_day = db.get(ClinicOperatingDay, day_name)
        if operating_day is None:
            operating_day = ClinicOperatingDay(weekday=day_name)
            db.add(operating_day)

        operating_day.enabled = data.enabled
        operating_day.start = data.start
        operating_day.end = data.end
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc

    cache.invalidate(clinic_settings_key())
    logger.info('Clinic operating hours for %s set to enabled=%s', day_name, data.enabled)
    return data


@router.post('/settings/closed-dates', response_model=ClosedDateRecord, status_code=status.HTTP_201_CREATED)
def add_closed_date(
    data: CreateClosedDateRequest,
    db: Session = Depends(get_db),
    cache: SchedulingCache = Depends(get_cache),
):
    ensure_database_ready()

    try:
        existing = db.query(ClosedDate).filter(ClosedDate.date == data.date).first()
        if existing:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail='This date is already marked as closed.',
            )

        closed_date = ClosedDate(date=data.date, reason=data.reason, type=data.type)
        db.add(closed_date)
        db.commit()
        db.refresh(closed_date)
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail='This date is already marked as closed.',
        ) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc

    cache.invalidate(clinic_settings_key())
    logger.info('Clinic closed on %s (%s)', closed_date.date, closed_date.type)
    return ClosedDateRecord(
        id=closed_date.id,
        date=closed_date.date,
        reason=closed_date.reason,
        type=closed_date.type,
    )


@router.delete('/settings/closed-dates/{closed_date_id}', status_code=status.HTTP_204_NO_CONTENT)
def remove_closed_date(
    closed_date_id: int,
    db: Session = Depends(get_db),
    cache: SchedulingCache = Depends(get_cache),
):
    ensure_database_ready()

    try:
        closed_date = db.get(ClosedDate, closed_date_id)
        if closed_date is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail='Closed date not found.',
            )

        db.delete(closed_date)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc

    cache.invalidate(clinic_settings_key())
    logger.info('Removed clinic closed date %s', closed_date_id)
