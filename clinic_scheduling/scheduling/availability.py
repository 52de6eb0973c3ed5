"""Practitioner weekly availability and the resolver that turns it into open intervals."""

import logging
from collections.abc import Iterable, Mapping
from datetime import date
from typing import Any

from pydantic import BaseModel

from clinic_scheduling.scheduling.clinic_calendar import ClinicCalendarPolicy
from clinic_scheduling.scheduling.models import TimeWindow
from clinic_scheduling.scheduling.times import (
    WORKING_WEEKDAYS,
    combine,
    normalize_weekday,
    weekday_name,
    weekday_name_from_number,
)

logger = logging.getLogger(__name__)

MORNING_WINDOW = TimeWindow(start='09:00', end='12:00')
AFTERNOON_WINDOW = TimeWindow(start='14:00', end='18:00')
DEFAULT_DAY_WINDOWS = (MORNING_WINDOW, AFTERNOON_WINDOW)


class DayAvailability(BaseModel):
    enabled: bool = False
    slots: list[TimeWindow] = []

    class Config:
        frozen = True

    def sorted_slots(self) -> list[TimeWindow]:
        return sorted(self.slots, key=lambda window: (window.start, window.end))


class WeeklyAvailability(BaseModel):
    """One practitioner's recurring week, keyed by weekday name.

    Edits never mutate in place; each returns a new ``WeeklyAvailability``.
    """

    monday: DayAvailability = DayAvailability()
    tuesday: DayAvailability = DayAvailability()
    wednesday: DayAvailability = DayAvailability()
    thursday: DayAvailability = DayAvailability()
    friday: DayAvailability = DayAvailability()
    saturday: DayAvailability = DayAvailability()
    sunday: DayAvailability = DayAvailability()

    class Config:
        frozen = True

    @classmethod
    def from_template(cls, name: str) -> 'WeeklyAvailability':
        try:
            return AVAILABILITY_TEMPLATES[name.strip().lower()]
        except KeyError as exc:
            raise ValueError(f'Unknown availability template "{name}".') from exc

    @classmethod
    def from_day_records(cls, records: Iterable[Any]) -> 'WeeklyAvailability':
        """Build a week from per-weekday records ``{weekday: 1..7, timeSlots: [...]}``.

        Records may be mappings (camelCase or snake_case keys) or objects with
        ``weekday``/``time_slots`` attributes. A record without an explicit
        ``enabled`` flag is enabled when it has at least one window.
        """
        days: dict[str, DayAvailability] = {}
        for record in records:
            if isinstance(record, Mapping):
                weekday = record['weekday']
                raw_slots = record.get('timeSlots', record.get('time_slots')) or []
                enabled = record.get('enabled')
            else:
                weekday = record.weekday
                raw_slots = record.time_slots or []
                enabled = getattr(record, 'enabled', None)

            windows = [TimeWindow.model_validate(slot) for slot in raw_slots]
            days[weekday_name_from_number(int(weekday))] = DayAvailability(
                enabled=bool(windows) if enabled is None else bool(enabled),
                slots=windows,
            )

        return cls(**days)

    def day(self, name: str) -> DayAvailability:
        return getattr(self, normalize_weekday(name))

    def _with_day(self, name: str, day: DayAvailability) -> 'WeeklyAvailability':
        return self.model_copy(update={normalize_weekday(name): day})

    def set_day_enabled(self, name: str, enabled: bool) -> 'WeeklyAvailability':
        current = self.day(name)
        return self._with_day(name, DayAvailability(enabled=enabled, slots=current.slots))

    def toggle_day(self, name: str) -> 'WeeklyAvailability':
        current = self.day(name)
        enabling = not current.enabled
        slots = list(DEFAULT_DAY_WINDOWS) if enabling and not current.slots else current.slots
        return self._with_day(name, DayAvailability(enabled=enabling, slots=slots))

    def add_window(self, name: str, window: TimeWindow | None = None) -> 'WeeklyAvailability':
        current = self.day(name)
        new_window = window or MORNING_WINDOW
        return self._with_day(name, DayAvailability(enabled=current.enabled, slots=[*current.slots, new_window]))

    def update_window(
        self,
        name: str,
        index: int,
        start: str | None = None,
        end: str | None = None,
    ) -> 'WeeklyAvailability':
        current = self.day(name)
        if not 0 <= index < len(current.slots):
            raise IndexError(f'No window {index} on {name}.')

        existing = current.slots[index]
        replacement = TimeWindow(start=start or existing.start, end=end or existing.end)
        slots = [replacement if position == index else slot for position, slot in enumerate(current.slots)]
        return self._with_day(name, DayAvailability(enabled=current.enabled, slots=slots))

    def remove_window(self, name: str, index: int) -> 'WeeklyAvailability':
        current = self.day(name)
        if not 0 <= index < len(current.slots):
            raise IndexError(f'No window {index} on {name}.')

        slots = [slot for position, slot in enumerate(current.slots) if position != index]
        return self._with_day(name, DayAvailability(enabled=current.enabled, slots=slots))

    def copy_day_to_weekdays(self, source: str) -> 'WeeklyAvailability':
        source_day = self.day(source)
        updates = {
            day_name: DayAvailability(enabled=source_day.enabled, slots=list(source_day.slots))
            for day_name in WORKING_WEEKDAYS
            if day_name != normalize_weekday(source)
        }
        return self.model_copy(update=updates)

    def overlapping_windows(self, name: str) -> list[tuple[TimeWindow, TimeWindow]]:
        ordered = self.day(name).sorted_slots()
        overlaps = []
        for position, window in enumerate(ordered):
            for other in ordered[position + 1:]:
                if other.start >= window.end:
                    break
                overlaps.append((window, other))
        return overlaps


def _template(**overrides: DayAvailability) -> WeeklyAvailability:
    days = {day_name: DayAvailability(enabled=True, slots=list(DEFAULT_DAY_WINDOWS)) for day_name in WORKING_WEEKDAYS}
    days.update(overrides)
    return WeeklyAvailability(**days)


AVAILABILITY_TEMPLATES = {
    'default': _template(),
    'short_friday': _template(
        friday=DayAvailability(enabled=True, slots=[MORNING_WINDOW, TimeWindow(start='14:00', end='17:00')]),
    ),
}


def fits_open_intervals(intervals: Iterable[TimeWindow], start: str, end: str) -> bool:
    """True when ``[start, end)`` lies entirely inside one of ``intervals``."""
    proposed = TimeWindow(start=start, end=end)
    return any(window.start <= proposed.start and proposed.end <= window.end for window in intervals)


class AvailabilityResolver:
    def __init__(
        self,
        policy: ClinicCalendarPolicy,
        availability: Mapping[str, WeeklyAvailability],
    ) -> None:
        self.policy = policy
        self.availability = availability

    def get_open_intervals(self, practitioner_id: str, on_date: date) -> list[TimeWindow]:
        if self.policy.is_clinic_closed(on_date):
            return []

        weekly = self.availability.get(str(practitioner_id))
        if weekly is None:
            logger.debug('No availability configured for practitioner %s', practitioner_id)
            return []

        day = weekly.day(weekday_name(on_date))
        if not day.enabled:
            return []

        return sorted(day.slots, key=lambda window: combine(on_date, window.start))
