"""Records exchanged between the scheduling components."""

from datetime import date
from typing import Any

from pydantic import BaseModel, field_validator, model_validator
from pydantic.alias_generators import to_camel

from clinic_scheduling.scheduling.times import normalize_hhmm

STATUS_SCHEDULED = 'scheduled'
STATUS_CONFIRMED = 'confirmed'
STATUS_IN_PROGRESS = 'in_progress'
STATUS_COMPLETED = 'completed'
STATUS_CANCELLED = 'cancelled'
STATUS_NO_SHOW = 'no_show'

APPOINTMENT_STATUSES = (
    STATUS_SCHEDULED,
    STATUS_CONFIRMED,
    STATUS_IN_PROGRESS,
    STATUS_COMPLETED,
    STATUS_CANCELLED,
    STATUS_NO_SHOW,
)

STATUS_TRANSITIONS = {
    STATUS_SCHEDULED: (STATUS_CONFIRMED, STATUS_CANCELLED, STATUS_NO_SHOW),
    STATUS_CONFIRMED: (STATUS_IN_PROGRESS, STATUS_CANCELLED, STATUS_NO_SHOW),
    STATUS_IN_PROGRESS: (STATUS_COMPLETED, STATUS_CANCELLED),
    STATUS_COMPLETED: (),
    STATUS_CANCELLED: (STATUS_SCHEDULED,),
    STATUS_NO_SHOW: (STATUS_SCHEDULED,),
}

PRIORITIES = ('low', 'normal', 'high', 'urgent')


def normalize_status(value: str) -> str:
    normalized = value.strip().lower()
    if normalized not in APPOINTMENT_STATUSES:
        raise ValueError(f'Invalid appointment status "{value}".')
    return normalized


def can_transition(current: str, target: str) -> bool:
    return normalize_status(target) in STATUS_TRANSITIONS[normalize_status(current)]


class TimeWindow(BaseModel):
    """A half-open [start, end) window within one day, in HH:MM form."""

    start: str
    end: str

    class Config:
        frozen = True

    @field_validator('start', 'end', mode='before')
    @classmethod
    def validate_hhmm(cls, value: Any) -> str:
        return normalize_hhmm(value)

    @model_validator(mode='after')
    def validate_order(self) -> 'TimeWindow':
        # Normalized HH:MM strings sort chronologically.
        if self.end <= self.start:
            raise ValueError(f'Window end {self.end} must be after start {self.start}.')
        return self

    def as_window(self) -> 'TimeWindow':
        return TimeWindow(start=self.start, end=self.end)


class TimeSlot(TimeWindow):
    """A bookable unit. ``available`` stays None until conflicts are annotated."""

    available: bool | None = None
    occupied: bool = False
    appointment_ids: tuple[str, ...] = ()


class AppointmentRecord(BaseModel):
    id: str | None = None
    patient_id: str | None = None
    practitioner_id: str
    date: date
    start_time: str
    end_time: str
    duration: int | None = None
    additional_slots: list[TimeWindow] = []
    status: str = STATUS_SCHEDULED
    priority: str = 'normal'
    deleted: bool = False

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        frozen = True

    @field_validator('id', 'patient_id', 'practitioner_id', mode='before')
    @classmethod
    def coerce_identifier(cls, value: Any) -> Any:
        if isinstance(value, int):
            return str(value)
        return value

    @field_validator('start_time', 'end_time', mode='before')
    @classmethod
    def validate_times(cls, value: Any) -> str:
        return normalize_hhmm(value)

    @field_validator('additional_slots', mode='before')
    @classmethod
    def default_additional_slots(cls, value: Any) -> Any:
        return value or []

    @field_validator('status')
    @classmethod
    def validate_status(cls, value: str) -> str:
        return normalize_status(value)

    @property
    def primary_window(self) -> TimeWindow:
        return TimeWindow(start=self.start_time, end=self.end_time)

    def occupied_intervals(self) -> list[TimeWindow]:
        return [self.primary_window, *self.additional_slots]

    @property
    def blocks_time(self) -> bool:
        return not self.deleted and self.status != STATUS_CANCELLED
