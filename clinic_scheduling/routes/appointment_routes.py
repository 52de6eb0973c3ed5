import logging
from datetime import date, datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field, field_validator, model_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinic_scheduling.core.cache import SchedulingCache
from clinic_scheduling.models.appointment import Appointment
from clinic_scheduling.routes.dependencies import (
    DATABASE_UNAVAILABLE_DETAIL,
    build_policy,
    ensure_database_ready,
    get_cache,
    get_db,
    load_clinic_settings,
    load_day_appointments,
    load_weekly_availability,
)
from clinic_scheduling.scheduling.availability import AvailabilityResolver, fits_open_intervals
from clinic_scheduling.scheduling.booking import CLINIC_CLOSED_MESSAGE, NON_CONTIGUOUS_MESSAGE, chain_is_contiguous
from clinic_scheduling.scheduling.conflicts import find_conflicts
from clinic_scheduling.scheduling.models import (
    PRIORITIES,
    STATUS_CANCELLED,
    STATUS_SCHEDULED,
    TimeWindow,
    can_transition,
    normalize_status,
)
from clinic_scheduling.scheduling.times import add_minutes, minutes_between, normalize_hhmm

router = APIRouter(tags=['appointments'])

logger = logging.getLogger(__name__)

MAX_APPOINTMENT_NOTES_LENGTH = 600


def _normalize_notes(value: str | None) -> str | None:
    if value is None:
        return None

    normalized = value.strip()
    if not normalized:
        return None

    if len(normalized) > MAX_APPOINTMENT_NOTES_LENGTH:
        raise ValueError(f'Notes must be {MAX_APPOINTMENT_NOTES_LENGTH} characters or fewer.')

    return normalized


class CreateAppointmentRequest(BaseModel):
    patient_id: str
    practitioner_id: str
    date: date
    start_time: str
    end_time: str | None = None
    duration: int | None = None
    additional_slots: list[TimeWindow] = []
    priority: str = 'normal'
    notes: str | None = None

    @field_validator('patient_id', 'practitioner_id')
    @classmethod
    def validate_identifier(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Identifier is required.')
        return normalized

    @field_validator('start_time', 'end_time')
    @classmethod
    def validate_time(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return normalize_hhmm(value)

    @field_validator('priority')
    @classmethod
    def validate_priority(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in PRIORITIES:
            raise ValueError('Invalid priority.')
        return normalized

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        return _normalize_notes(value)

    @model_validator(mode='after')
    def resolve_end_time(self) -> 'CreateAppointmentRequest':
        if self.end_time is None:
            if not self.duration or self.duration <= 0:
                raise ValueError('Either end_time or a positive duration is required.')
            self.end_time = add_minutes(self.date, self.start_time, self.duration)

        if self.end_time <= self.start_time:
            raise ValueError('Appointment end time must be after its start time.')

        span = minutes_between(self.date, self.start_time, self.end_time)
        if self.duration is None:
            self.duration = span
        elif self.duration != span:
            raise ValueError('Duration must match the time between start_time and end_time.')
        return self


class RescheduleAppointmentRequest(BaseModel):
    practitioner_id: str | None = None
    appointment_date: date | None = Field(default=None, alias='date')
    start_time: str | None = None
    end_time: str | None = None
    additional_slots: list[TimeWindow] | None = None
    notes: str | None = None

    class Config:
        populate_by_name = True

    @field_validator('start_time', 'end_time')
    @classmethod
    def validate_time(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return normalize_hhmm(value)

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        return _normalize_notes(value)


class UpdateStatusRequest(BaseModel):
    status: str

    @field_validator('status')
    @classmethod
    def validate_status(cls, value: str) -> str:
        return normalize_status(value)


class AppointmentResponse(BaseModel):
    id: int
    patient_id: str | None = None
    practitioner_id: str
    date: date
    start_time: str
    end_time: str
    duration: int | None = None
    additional_slots: list[TimeWindow] = []
    status: str
    priority: str
    notes: str | None = None
    deleted: bool = False

    class Config:
        from_attributes = True

    @field_validator('additional_slots', mode='before')
    @classmethod
    def default_additional_slots(cls, value):
        return value or []


def get_active_appointment(db: Session, appointment_id: int) -> Appointment:
    appointment = db.query(Appointment).filter(
        Appointment.id == appointment_id,
        Appointment.deleted.is_not(True),
    ).first()

    if not appointment:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Appointment not found.',
        )

    return appointment


def validate_appointment_write(
    db: Session,
    cache: SchedulingCache,
    *,
    practitioner_id: str,
    appointment_date: date,
    start_time: str,
    end_time: str,
    additional_slots: list[TimeWindow],
    exclude_appointment_id: int | None = None,
) -> None:
    """Re-check a booking against the stored state before it is written.

    Runs after any client-side slot check, inside the request that writes.
    """
    policy = build_policy(load_clinic_settings(db, cache))
    closure = policy.closure_reason(appointment_date)
    if closure is not None:
        logger.warning('Rejected booking for %s on %s: clinic closed', practitioner_id, appointment_date)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=closure.reason or CLINIC_CLOSED_MESSAGE,
        )

    weekly = load_weekly_availability(db, cache, practitioner_id)
    resolver = AvailabilityResolver(policy, {practitioner_id: weekly} if weekly is not None else {})
    open_intervals = resolver.get_open_intervals(practitioner_id, appointment_date)

    chain = [TimeWindow(start=start_time, end=end_time), *additional_slots]
    for window in chain:
        if not fits_open_intervals(open_intervals, window.start, window.end):
            if open_intervals:
                windows = ', '.join(f'{interval.start}-{interval.end}' for interval in open_intervals)
                detail = f'The practitioner is only available {windows} on this day.'
            else:
                detail = 'The practitioner is not available on this day.'
            logger.warning(
                'Rejected booking for %s on %s: %s-%s outside availability',
                practitioner_id,
                appointment_date,
                window.start,
                window.end,
            )
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)

    if not chain_is_contiguous(chain):
        logger.warning('Rejected booking for %s on %s: non-contiguous slots', practitioner_id, appointment_date)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=NON_CONTIGUOUS_MESSAGE)

    conflicts = find_conflicts(
        appointment_date,
        start_time,
        end_time,
        load_day_appointments(db, practitioner_id, appointment_date),
        str(exclude_appointment_id) if exclude_appointment_id is not None else None,
        practitioner_id=practitioner_id,
        additional_slots=additional_slots,
    )
    if conflicts:
        logger.warning(
            'Rejected booking for %s on %s %s-%s: conflicts with %s',
            practitioner_id,
            appointment_date,
            start_time,
            end_time,
            [conflict.id for conflict in conflicts],
        )
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail='This time is already booked.',
        )


@router.get('', response_model=list[AppointmentResponse])
def list_appointments(
    practitioner_id: str | None = Query(default=None),
    appointment_date: date | None = Query(default=None, alias='date'),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        query = db.query(Appointment).filter(Appointment.deleted.is_not(True))
        if practitioner_id:
            query = query.filter(Appointment.practitioner_id == practitioner_id)
        if appointment_date:
            query = query.filter(Appointment.date == appointment_date)

        return query.order_by(Appointment.date.asc(), Appointment.start_time.asc()).all()
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc


@router.get('/{appointment_id}', response_model=AppointmentResponse)
def get_appointment(appointment_id: int, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        return get_active_appointment(db, appointment_id)
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc


@router.post('', response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def create_appointment(
    data: CreateAppointmentRequest,
    db: Session = Depends(get_db),
    cache: SchedulingCache = Depends(get_cache),
):
    ensure_database_ready()

    try:
        validate_appointment_write(
            db,
            cache,
            practitioner_id=data.practitioner_id,
            appointment_date=data.date,
            start_time=data.start_time,
            end_time=data.end_time,
            additional_slots=data.additional_slots,
        )

        appointment = Appointment(
            patient_id=data.patient_id,
            practitioner_id=data.practitioner_id,
            date=data.date,
            start_time=data.start_time,
            end_time=data.end_time,
            duration=data.duration,
            additional_slots=[window.model_dump() for window in data.additional_slots],
            status=STATUS_SCHEDULED,
            priority=data.priority,
            notes=data.notes,
            deleted=False,
        )
        db.add(appointment)
        db.commit()
        db.refresh(appointment)
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc

    logger.info(
        'Booked appointment %s for practitioner %s on %s %s-%s',
        appointment.id,
        appointment.practitioner_id,
        appointment.date,
        appointment.start_time,
        appointment.end_time,
    )
    return appointment


@router.patch('/{appointment_id}', response_model=AppointmentResponse)
def reschedule_appointment(
    appointment_id: int,
    data: RescheduleAppointmentRequest,
    db: Session = Depends(get_db),
    cache: SchedulingCache = Depends(get_cache),
):
    ensure_database_ready()

    try:
        appointment = get_active_appointment(db, appointment_id)

        practitioner_id = data.practitioner_id or appointment.practitioner_id
        appointment_date = data.appointment_date or appointment.date
        start_time = data.start_time or appointment.start_time
        end_time = data.end_time or appointment.end_time
        additional_slots = (
            data.additional_slots
            if data.additional_slots is not None
            else [TimeWindow.model_validate(slot) for slot in appointment.additional_slots or []]
        )

        if end_time <= start_time:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail='Appointment end time must be after its start time.',
            )

        if appointment.status != STATUS_CANCELLED:
            validate_appointment_write(
                db,
                cache,
                practitioner_id=practitioner_id,
                appointment_date=appointment_date,
                start_time=start_time,
                end_time=end_time,
                additional_slots=additional_slots,
                exclude_appointment_id=appointment.id,
            )

        appointment.practitioner_id = practitioner_id
        appointment.date = appointment_date
        appointment.start_time = start_time
        appointment.end_time = end_time
        appointment.duration = minutes_between(appointment_date, start_time, end_time)
        appointment.additional_slots = [window.model_dump() for window in additional_slots]
        if data.notes is not None:
            appointment.notes = data.notes

        db.commit()
        db.refresh(appointment)
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc

    logger.info('Rescheduled appointment %s to %s %s-%s', appointment.id, appointment.date, start_time, end_time)
    return appointment


@router.patch('/{appointment_id}/status', response_model=AppointmentResponse)
def update_appointment_status(
    appointment_id: int,
    data: UpdateStatusRequest,
    db: Session = Depends(get_db),
    cache: SchedulingCache = Depends(get_cache),
):
    ensure_database_ready()

    try:
        appointment = get_active_appointment(db, appointment_id)
        current_status = appointment.status or STATUS_SCHEDULED

        if not can_transition(current_status, data.status):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f'Cannot change status from {current_status} to {data.status}.',
            )

        # A reinstated appointment takes its time back only if nobody else has.
        if current_status == STATUS_CANCELLED:
            validate_appointment_write(
                db,
                cache,
                practitioner_id=appointment.practitioner_id,
                appointment_date=appointment.date,
                start_time=appointment.start_time,
                end_time=appointment.end_time,
                additional_slots=[TimeWindow.model_validate(slot) for slot in appointment.additional_slots or []],
                exclude_appointment_id=appointment.id,
            )

        appointment.status = data.status
        db.commit()
        db.refresh(appointment)
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc

    logger.info('Appointment %s moved from %s to %s', appointment.id, current_status, data.status)
    return appointment


@router.delete('/{appointment_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_appointment(appointment_id: int, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        appointment = get_active_appointment(db, appointment_id)
        appointment.deleted = True
        appointment.deleted_at = datetime.now()
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc

    logger.info('Soft-deleted appointment %s', appointment_id)
