"""Validation of multi-slot bookings and the slot selection state machine."""

import logging
from collections.abc import Iterable, Mapping, Sequence
from enum import Enum

from pydantic import BaseModel

from clinic_scheduling.scheduling.models import TimeSlot, TimeWindow
from clinic_scheduling.scheduling.slots import DEFAULT_GRANULARITY_MINUTES, index_slots

logger = logging.getLogger(__name__)

CLINIC_CLOSED_MESSAGE = 'The clinic is closed on this date.'
NON_CONTIGUOUS_MESSAGE = 'Selected slots must be contiguous.'
EMPTY_SELECTION_MESSAGE = 'Select at least one slot.'


class BookingError(str, Enum):
    CLINIC_CLOSED = 'clinic_closed'
    SLOT_UNAVAILABLE = 'slot_unavailable'
    NON_CONTIGUOUS = 'non_contiguous'


class BookingValidation(BaseModel):
    valid: bool
    error: BookingError | None = None
    reason: str | None = None

    @classmethod
    def ok(cls) -> 'BookingValidation':
        return cls(valid=True)

    @classmethod
    def failed(cls, error: BookingError, reason: str) -> 'BookingValidation':
        return cls(valid=False, error=error, reason=reason)


def build_chain(primary_slot: TimeWindow, additional_slots: Iterable[TimeWindow]) -> list[TimeWindow]:
    return [primary_slot, *additional_slots]


def chain_is_contiguous(chain: Sequence[TimeWindow]) -> bool:
    return all(current.end == following.start for current, following in zip(chain, chain[1:]))


def _lookup(slot_index: Mapping[str, TimeSlot], member: TimeWindow) -> TimeSlot | None:
    indexed = slot_index.get(member.start)
    if indexed is None or indexed.end != member.end:
        return None
    return indexed


def validate_contiguous(
    primary_slot: TimeWindow,
    additional_slots: Sequence[TimeWindow],
    slot_index: Mapping[str, TimeSlot],
) -> bool:
    """True when the chain is made of indexed, free slots that follow each other.

    ``slot_index`` maps a slot start to the annotated slot, as produced by
    ``index_slots``. When validating an edit, the index must already have been
    annotated with that appointment excluded. Never raises.
    """
    chain = build_chain(primary_slot, additional_slots)
    indexed_chain = [_lookup(slot_index, member) for member in chain]

    for indexed in indexed_chain:
        if indexed is None or indexed.available is False:
            return False

    return chain_is_contiguous(indexed_chain)


def validate_booking(
    primary_slot: TimeWindow | None,
    additional_slots: Sequence[TimeWindow],
    available_slots: Iterable[TimeSlot],
    *,
    clinic_closed: bool = False,
    closed_reason: str | None = None,
) -> BookingValidation:
    """Check a proposed selection against the computed slots for its day.

    Failures are reported in a fixed order (clinic closed, slot unavailable,
    non-contiguous) so callers can surface the one the user has to fix first.
    """
    if clinic_closed:
        return BookingValidation.failed(BookingError.CLINIC_CLOSED, closed_reason or CLINIC_CLOSED_MESSAGE)

    if primary_slot is None:
        return BookingValidation.failed(BookingError.SLOT_UNAVAILABLE, EMPTY_SELECTION_MESSAGE)

    slot_index = index_slots(available_slots)
    for member in build_chain(primary_slot, additional_slots):
        indexed = _lookup(slot_index, member)
        if indexed is None or indexed.available is False:
            logger.debug('Slot %s-%s is not bookable', member.start, member.end)
            return BookingValidation.failed(
                BookingError.SLOT_UNAVAILABLE,
                f'The slot {member.start}-{member.end} is not available.',
            )

    if not validate_contiguous(primary_slot, additional_slots, slot_index):
        return BookingValidation.failed(BookingError.NON_CONTIGUOUS, NON_CONTIGUOUS_MESSAGE)

    return BookingValidation.ok()


class SlotSelection:
    """The slots a user has picked for one appointment.

    The first pick becomes the primary slot. Further picks are accepted only
    when they start where the current tail ends. Removing the primary promotes
    the next pick; removing any other pick drops just that pick, which may
    leave a gap that ``validate`` will then report.
    """

    def __init__(self, duration_minutes: int = DEFAULT_GRANULARITY_MINUTES) -> None:
        self.duration_minutes = duration_minutes
        self.primary: TimeWindow | None = None
        self.additional: list[TimeWindow] = []

    @property
    def chain(self) -> list[TimeWindow]:
        if self.primary is None:
            return []
        return build_chain(self.primary, self.additional)

    @property
    def tail(self) -> TimeWindow | None:
        chain = self.chain
        return chain[-1] if chain else None

    def is_selected(self, start: str) -> bool:
        return any(member.start == start for member in self.chain)

    def select(self, slot: TimeSlot | TimeWindow) -> bool:
        if self.is_selected(slot.start):
            return self.remove(slot.start)

        if getattr(slot, 'available', None) is False:
            return False

        window = slot.as_window()
        if self.primary is None:
            self.primary = window
            return True

        if self.tail.end != window.start:
            return False

        self.additional.append(window)
        return True

    def remove(self, start: str) -> bool:
        if self.primary is None:
            return False

        if self.primary.start == start:
            if self.additional:
                self.primary = self.additional.pop(0)
            else:
                self.primary = None
            return True

        remaining = [member for member in self.additional if member.start != start]
        if len(remaining) == len(self.additional):
            return False
        self.additional = remaining
        return True

    def clear(self) -> None:
        self.primary = None
        self.additional = []

    def change_duration(self, duration_minutes: int) -> bool:
        """Switch slot duration; any existing picks are discarded on change."""
        if duration_minutes == self.duration_minutes:
            return False
        self.duration_minutes = duration_minutes
        had_selection = self.primary is not None
        self.clear()
        return had_selection

    def as_booking(self) -> tuple[TimeWindow, list[TimeWindow]] | None:
        if self.primary is None:
            return None
        return self.primary, list(self.additional)

    def validate(
        self,
        available_slots: Iterable[TimeSlot],
        *,
        clinic_closed: bool = False,
        closed_reason: str | None = None,
    ) -> BookingValidation:
        return validate_booking(
            self.primary,
            self.additional,
            available_slots,
            clinic_closed=clinic_closed,
            closed_reason=closed_reason,
        )
