from collections.abc import Iterable
from datetime import date, timedelta

from clinic_scheduling.scheduling.models import TimeSlot, TimeWindow
from clinic_scheduling.scheduling.times import ANCHOR_DATE, combine, format_hhmm

DEFAULT_GRANULARITY_MINUTES = 30


def iterate_window_slots(window: TimeWindow, granularity_minutes: int, on_date: date) -> Iterable[TimeSlot]:
    step = timedelta(minutes=granularity_minutes)
    current = combine(on_date, window.start)
    window_end = combine(on_date, window.end)

    while current + step <= window_end:
        yield TimeSlot(start=format_hhmm(current), end=format_hhmm(current + step))
        current += step


def generate_slots(
    open_intervals: Iterable[TimeWindow],
    granularity_minutes: int = DEFAULT_GRANULARITY_MINUTES,
    on_date: date | None = None,
) -> list[TimeSlot]:
    """Slice open intervals into fixed-size slots.

    Slots from successive intervals are concatenated in the order the
    intervals are given. A trailing remainder shorter than the granularity is
    dropped rather than clipped. The returned slots carry ``available=None``;
    see ``annotate_conflicts`` for occupancy.
    """
    if granularity_minutes <= 0:
        raise ValueError('Slot granularity must be a positive number of minutes.')

    anchor = on_date or ANCHOR_DATE
    slots: list[TimeSlot] = []
    seen_starts: set[str] = set()

    for window in open_intervals:
        for slot in iterate_window_slots(window, granularity_minutes, anchor):
            if slot.start in seen_starts:
                continue
            seen_starts.add(slot.start)
            slots.append(slot)

    return slots


def index_slots(slots: Iterable[TimeSlot]) -> dict[str, TimeSlot]:
    return {slot.start: slot for slot in slots}
