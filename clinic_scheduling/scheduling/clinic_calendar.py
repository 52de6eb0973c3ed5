"""Clinic-wide opening rules: operating weekdays and explicit closed dates."""

import logging
from datetime import date, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, field_validator
from pydantic.alias_generators import to_camel

from clinic_scheduling.scheduling.times import WEEKDAY_NAMES, normalize_hhmm, normalize_weekday, weekday_name

logger = logging.getLogger(__name__)

CLOSED_DATE_TYPES = ('holiday', 'maintenance', 'other')


class UnknownClinicState(str, Enum):
    """What to assume while the clinic settings have not been loaded."""

    OPEN = 'open'
    CLOSED = 'closed'


class OperatingDay(BaseModel):
    enabled: bool = True
    start: str | None = None
    end: str | None = None

    @field_validator('start', 'end', mode='before')
    @classmethod
    def validate_hhmm(cls, value: Any) -> str | None:
        if value in (None, ''):
            return None
        return normalize_hhmm(value)


class ClosedDate(BaseModel):
    id: str | None = None
    date: date
    reason: str | None = None
    type: str = 'other'

    @field_validator('id', mode='before')
    @classmethod
    def coerce_identifier(cls, value: Any) -> Any:
        if isinstance(value, int):
            return str(value)
        return value

    @field_validator('date', mode='before')
    @classmethod
    def calendar_date(cls, value: Any) -> Any:
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, str) and 'T' in value:
            return value.split('T', 1)[0]
        return value

    @field_validator('type')
    @classmethod
    def validate_type(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in CLOSED_DATE_TYPES:
            raise ValueError('Invalid closed date type.')
        return normalized


class ClinicSettings(BaseModel):
    operating_hours: dict[str, OperatingDay] = {}
    closed_dates: list[ClosedDate] = []

    class Config:
        alias_generator = to_camel
        populate_by_name = True

    @field_validator('operating_hours', mode='before')
    @classmethod
    def normalize_weekdays(cls, value: Any) -> Any:
        if not value:
            return {}
        return {normalize_weekday(day): hours for day, hours in value.items()}

    @classmethod
    def all_week_open(cls) -> 'ClinicSettings':
        return cls(operating_hours={day: OperatingDay(enabled=True) for day in WEEKDAY_NAMES})


class ClosureReason(BaseModel):
    kind: str
    reason: str | None = None


class ClinicCalendarPolicy:
    """Answers whether the clinic is closed on a given calendar date.

    A clinic closure always wins over practitioner configuration. When
    ``settings`` is None the policy falls back to ``unknown_state``, which
    defaults to open so that a slow settings fetch never blocks booking.
    """

    def __init__(
        self,
        settings: ClinicSettings | None,
        unknown_state: UnknownClinicState = UnknownClinicState.OPEN,
    ) -> None:
        self.settings = settings
        self.unknown_state = UnknownClinicState(unknown_state)
        self._closed_dates = (
            {closed.date: closed for closed in settings.closed_dates} if settings is not None else {}
        )

    def is_clinic_closed(self, on_date: date) -> bool:
        return self.closure_reason(on_date) is not None

    def closure_reason(self, on_date: date) -> ClosureReason | None:
        if self.settings is None:
            if self.unknown_state is UnknownClinicState.CLOSED:
                return ClosureReason(kind='settings_unavailable')
            return None

        day_name = weekday_name(on_date)
        day_hours = self.settings.operating_hours.get(day_name)
        if day_hours is not None and not day_hours.enabled:
            return ClosureReason(kind='weekday_closed', reason=f'The clinic is closed on {day_name}.')

        closed = self._closed_dates.get(on_date)
        if closed is not None:
            logger.debug('Clinic closed on %s (%s)', on_date, closed.type)
            return ClosureReason(kind=closed.type, reason=closed.reason)

        return None
