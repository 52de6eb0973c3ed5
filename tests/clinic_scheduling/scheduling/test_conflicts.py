from datetime import date, datetime

import pytest

from clinic_scheduling.scheduling.conflicts import (
    annotate_conflicts,
    blocking_appointments,
    find_conflicts,
    has_conflict,
    intervals_overlap,
    windows_overlap,
)
from clinic_scheduling.scheduling.models import AppointmentRecord, TimeSlot, TimeWindow
from clinic_scheduling.scheduling.slots import generate_slots

WEDNESDAY = date(2024, 1, 10)


def appointment(
    appointment_id: str,
    start: str,
    end: str,
    *,
    status: str = 'confirmed',
    practitioner_id: str = '7',
    on_date: date = WEDNESDAY,
    additional_slots: list[TimeWindow] | None = None,
    deleted: bool = False,
) -> AppointmentRecord:
    return AppointmentRecord(
        id=appointment_id,
        practitioner_id=practitioner_id,
        date=on_date,
        start_time=start,
        end_time=end,
        status=status,
        additional_slots=additional_slots or [],
        deleted=deleted,
    )


@pytest.mark.parametrize(
    ('first', 'second', 'overlaps'),
    [
        (('09:00', '09:30'), ('09:30', '10:00'), False),
        (('09:00', '09:30'), ('09:15', '09:45'), True),
        (('09:00', '10:00'), ('09:15', '09:30'), True),
        (('09:00', '09:30'), ('08:00', '09:00'), False),
    ],
)
def test_windows_overlap_is_half_open_and_symmetric(first, second, overlaps: bool) -> None:
    a = TimeWindow(start=first[0], end=first[1])
    b = TimeWindow(start=second[0], end=second[1])

    assert windows_overlap(a, b, WEDNESDAY) is overlaps
    assert windows_overlap(b, a, WEDNESDAY) is overlaps


def test_intervals_overlap_compares_datetimes() -> None:
    assert intervals_overlap(
        datetime(2024, 1, 10, 9, 0),
        datetime(2024, 1, 10, 9, 30),
        datetime(2024, 1, 10, 9, 29),
        datetime(2024, 1, 10, 10, 0),
    )


def test_blocking_appointments_skips_cancelled_deleted_and_excluded() -> None:
    appointments = [
        appointment('1', '09:00', '09:30'),
        appointment('2', '09:30', '10:00', status='cancelled'),
        appointment('3', '10:00', '10:30', deleted=True),
        appointment('4', '10:30', '11:00'),
        appointment('5', '11:00', '11:30', practitioner_id='8'),
        appointment('6', '11:30', '12:00', on_date=date(2024, 1, 11)),
    ]

    blocking = blocking_appointments(
        appointments,
        on_date=WEDNESDAY,
        practitioner_id='7',
        exclude_appointment_id='4',
    )

    assert [item.id for item in blocking] == ['1']


def test_blocking_appointments_accepts_plain_mappings() -> None:
    blocking = blocking_appointments(
        [
            {
                'id': 1,
                'practitionerId': '7',
                'date': '2024-01-10',
                'startTime': '09:00',
                'endTime': '09:30',
                'status': 'scheduled',
            }
        ]
    )

    assert blocking[0].id == '1'


def test_annotate_conflicts_marks_overlapping_slots() -> None:
    slots = generate_slots([TimeWindow(start='09:00', end='11:00')], 30, WEDNESDAY)

    annotated = annotate_conflicts(slots, [appointment('1', '09:15', '09:45')], on_date=WEDNESDAY)

    assert [(slot.start, slot.available) for slot in annotated] == [
        ('09:00', False),
        ('09:30', False),
        ('10:00', True),
        ('10:30', True),
    ]
    assert annotated[0].appointment_ids == ('1',)
    # The input slots are left untouched.
    assert slots[0].available is None


def test_annotate_conflicts_honors_additional_slots() -> None:
    slots = generate_slots([TimeWindow(start='09:00', end='11:00')], 30, WEDNESDAY)
    booked = appointment('1', '09:00', '09:30', additional_slots=[TimeWindow(start='09:30', end='10:00')])

    annotated = annotate_conflicts(slots, [booked], on_date=WEDNESDAY)

    assert [slot.occupied for slot in annotated] == [True, True, False, False]


def test_annotate_conflicts_hides_occupants_outside_visible_ids() -> None:
    slots = [TimeSlot(start='09:00', end='09:30')]

    annotated = annotate_conflicts(
        slots,
        [appointment('1', '09:00', '09:30')],
        on_date=WEDNESDAY,
        visible_appointment_ids={'2'},
    )

    assert annotated[0].occupied is True
    assert annotated[0].available is False
    assert annotated[0].appointment_ids == ()


def test_editing_an_appointment_does_not_conflict_with_itself() -> None:
    existing = [appointment('A', '09:00', '09:30')]

    assert has_conflict(WEDNESDAY, '09:00', '09:30', existing) is True
    assert has_conflict(WEDNESDAY, '09:00', '09:30', existing, exclude_appointment_id='A') is False

    annotated = annotate_conflicts(
        [TimeSlot(start='09:00', end='09:30')],
        existing,
        on_date=WEDNESDAY,
        exclude_appointment_id='A',
    )
    assert annotated[0].available is True


def test_find_conflicts_checks_every_proposed_interval() -> None:
    existing = [appointment('1', '10:00', '10:30'), appointment('2', '12:00', '12:30')]

    conflicts = find_conflicts(
        WEDNESDAY,
        '09:00',
        '09:30',
        existing,
        practitioner_id='7',
        additional_slots=[TimeWindow(start='09:30', end='10:00'), TimeWindow(start='10:00', end='10:30')],
    )

    assert [item.id for item in conflicts] == ['1']


def test_find_conflicts_ignores_other_practitioners() -> None:
    existing = [appointment('1', '09:00', '09:30', practitioner_id='8')]

    assert find_conflicts(WEDNESDAY, '09:00', '09:30', existing, practitioner_id='7') == []
