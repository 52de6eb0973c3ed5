import pytest

from clinic_scheduling.scheduling.booking import (
    NON_CONTIGUOUS_MESSAGE,
    BookingError,
    SlotSelection,
    chain_is_contiguous,
    validate_booking,
    validate_contiguous,
)
from clinic_scheduling.scheduling.models import TimeSlot, TimeWindow
from clinic_scheduling.scheduling.slots import index_slots


def window(start: str, end: str) -> TimeWindow:
    return TimeWindow(start=start, end=end)


def free_slots(*bounds: tuple[str, str], occupied: tuple[str, ...] = ()) -> list[TimeSlot]:
    return [
        TimeSlot(start=start, end=end, available=start not in occupied, occupied=start in occupied)
        for start, end in bounds
    ]


MORNING = free_slots(
    ('09:00', '09:30'),
    ('09:30', '10:00'),
    ('10:00', '10:30'),
    ('10:30', '11:00'),
)


@pytest.mark.parametrize(
    ('chain', 'contiguous'),
    [
        ([window('09:00', '09:30'), window('09:30', '10:00'), window('10:00', '10:30')], True),
        ([window('09:00', '09:30'), window('10:00', '10:30')], False),
        ([window('09:00', '09:30'), window('09:15', '09:45')], False),
        ([window('09:00', '09:30')], True),
    ],
)
def test_chain_is_contiguous(chain: list[TimeWindow], contiguous: bool) -> None:
    assert chain_is_contiguous(chain) is contiguous


def test_validate_contiguous_requires_indexed_free_members() -> None:
    index = index_slots(free_slots(('09:00', '09:30'), ('09:30', '10:00'), occupied=('09:30',)))

    assert validate_contiguous(window('09:00', '09:30'), [], index) is True
    assert validate_contiguous(window('09:00', '09:30'), [window('09:30', '10:00')], index) is False
    assert validate_contiguous(window('08:00', '08:30'), [], index) is False


def test_validate_booking_accepts_contiguous_free_chain() -> None:
    result = validate_booking(window('09:00', '09:30'), [window('09:30', '10:00')], MORNING)

    assert result.valid is True
    assert result.error is None


def test_validate_booking_reports_closed_clinic_first() -> None:
    result = validate_booking(
        window('09:00', '09:30'),
        [window('10:00', '10:30')],
        MORNING,
        clinic_closed=True,
        closed_reason='Public holiday',
    )

    assert result.valid is False
    assert result.error is BookingError.CLINIC_CLOSED
    assert result.reason == 'Public holiday'


def test_validate_booking_reports_unavailable_member() -> None:
    slots = free_slots(('09:00', '09:30'), ('09:30', '10:00'), occupied=('09:30',))

    result = validate_booking(window('09:00', '09:30'), [window('09:30', '10:00')], slots)

    assert result.error is BookingError.SLOT_UNAVAILABLE
    assert result.reason == 'The slot 09:30-10:00 is not available.'


def test_validate_booking_reports_gap() -> None:
    result = validate_booking(window('09:00', '09:30'), [window('10:00', '10:30')], MORNING)

    assert result.error is BookingError.NON_CONTIGUOUS
    assert result.reason == NON_CONTIGUOUS_MESSAGE


def test_validate_booking_rejects_empty_selection() -> None:
    result = validate_booking(None, [], MORNING)

    assert result.valid is False
    assert result.error is BookingError.SLOT_UNAVAILABLE


def test_selection_builds_a_chain_from_adjacent_picks() -> None:
    selection = SlotSelection()

    assert selection.select(MORNING[0]) is True
    assert selection.select(MORNING[1]) is True
    assert selection.select(MORNING[3]) is False

    assert selection.primary == window('09:00', '09:30')
    assert selection.additional == [window('09:30', '10:00')]
    assert selection.validate(MORNING).valid is True


def test_selection_rejects_occupied_slot() -> None:
    slots = free_slots(('09:00', '09:30'), occupied=('09:00',))
    selection = SlotSelection()

    assert selection.select(slots[0]) is False
    assert selection.as_booking() is None


def test_selecting_a_picked_slot_removes_it() -> None:
    selection = SlotSelection()
    selection.select(MORNING[0])
    selection.select(MORNING[1])
    selection.select(MORNING[2])

    selection.select(MORNING[1])

    assert selection.chain == [window('09:00', '09:30'), window('10:00', '10:30')]
    assert selection.validate(MORNING).error is BookingError.NON_CONTIGUOUS


def test_removing_primary_promotes_next_pick() -> None:
    selection = SlotSelection()
    selection.select(MORNING[0])
    selection.select(MORNING[1])

    assert selection.remove('09:00') is True

    assert selection.primary == window('09:30', '10:00')
    assert selection.additional == []
    assert selection.remove('11:00') is False


def test_changing_duration_clears_existing_picks() -> None:
    selection = SlotSelection(duration_minutes=30)
    selection.select(MORNING[0])
    selection.select(MORNING[1])

    assert selection.change_duration(60) is True

    assert selection.duration_minutes == 60
    assert selection.primary is None
    assert selection.chain == []
    assert selection.change_duration(60) is False


def test_changing_duration_without_picks_reports_nothing_cleared() -> None:
    selection = SlotSelection(duration_minutes=30)

    assert selection.change_duration(45) is False
    assert selection.duration_minutes == 45
