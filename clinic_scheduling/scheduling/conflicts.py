"""Overlap detection between candidate intervals and existing appointments.

Every check in this module uses the same half-open rule: ``[a_start, a_end)``
and ``[b_start, b_end)`` overlap iff ``a_start < b_end and a_end > b_start``.
Intervals that merely touch (``a_end == b_start``) do not conflict.

An appointment blocks time unless it is cancelled, soft-deleted, or the
appointment currently being edited (``exclude_appointment_id``). Callers that
are not allowed to see some appointments should still pass the full list and
restrict ``visible_appointment_ids`` instead; hidden appointments then mark a
slot occupied without revealing which appointment holds it.
"""

import logging
from collections.abc import Collection, Iterable
from datetime import date, datetime

from clinic_scheduling.scheduling.models import AppointmentRecord, TimeSlot, TimeWindow
from clinic_scheduling.scheduling.times import ANCHOR_DATE, combine

logger = logging.getLogger(__name__)


def intervals_overlap(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    return a_start < b_end and a_end > b_start


def windows_overlap(first: TimeWindow, second: TimeWindow, on_date: date | None = None) -> bool:
    anchor = on_date or ANCHOR_DATE
    return intervals_overlap(
        combine(anchor, first.start),
        combine(anchor, first.end),
        combine(anchor, second.start),
        combine(anchor, second.end),
    )


def blocking_appointments(
    existing_appointments: Iterable[AppointmentRecord],
    *,
    on_date: date | None = None,
    practitioner_id: str | None = None,
    exclude_appointment_id: str | None = None,
) -> list[AppointmentRecord]:
    excluded = str(exclude_appointment_id) if exclude_appointment_id is not None else None
    blocking = []

    for appointment in existing_appointments:
        if not isinstance(appointment, AppointmentRecord):
            appointment = AppointmentRecord.model_validate(appointment)
        if not appointment.blocks_time:
            continue
        if excluded is not None and appointment.id == excluded:
            continue
        if practitioner_id is not None and appointment.practitioner_id != str(practitioner_id):
            continue
        if on_date is not None and appointment.date != on_date:
            continue
        blocking.append(appointment)

    return blocking


def _appointment_overlaps(appointment: AppointmentRecord, window: TimeWindow, on_date: date) -> bool:
    return any(windows_overlap(interval, window, on_date) for interval in appointment.occupied_intervals())


def annotate_conflicts(
    slots: Iterable[TimeSlot],
    existing_appointments: Iterable[AppointmentRecord],
    *,
    on_date: date | None = None,
    practitioner_id: str | None = None,
    exclude_appointment_id: str | None = None,
    visible_appointment_ids: Collection[str] | None = None,
) -> list[TimeSlot]:
    """Return copies of ``slots`` with ``available``/``occupied`` set."""
    blocking = blocking_appointments(
        existing_appointments,
        on_date=on_date,
        practitioner_id=practitioner_id,
        exclude_appointment_id=exclude_appointment_id,
    )
    anchor = on_date or ANCHOR_DATE
    visible = None if visible_appointment_ids is None else {str(item) for item in visible_appointment_ids}

    annotated = []
    for slot in slots:
        occupants = [
            appointment for appointment in blocking
            if _appointment_overlaps(appointment, slot, anchor)
        ]
        revealed = tuple(
            appointment.id for appointment in occupants
            if appointment.id is not None and (visible is None or appointment.id in visible)
        )
        annotated.append(
            slot.model_copy(update={
                'available': not occupants,
                'occupied': bool(occupants),
                'appointment_ids': revealed,
            })
        )

    return annotated


def find_conflicts(
    on_date: date,
    start: str,
    end: str,
    existing_appointments: Iterable[AppointmentRecord],
    exclude_appointment_id: str | None = None,
    *,
    practitioner_id: str | None = None,
    additional_slots: Iterable[TimeWindow] = (),
) -> list[AppointmentRecord]:
    proposed = [TimeWindow(start=start, end=end), *additional_slots]
    blocking = blocking_appointments(
        existing_appointments,
        on_date=on_date,
        practitioner_id=practitioner_id,
        exclude_appointment_id=exclude_appointment_id,
    )

    conflicts = [
        appointment for appointment in blocking
        if any(_appointment_overlaps(appointment, window, on_date) for window in proposed)
    ]
    if conflicts:
        logger.debug(
            'Interval %s-%s on %s conflicts with %s',
            start,
            end,
            on_date,
            [appointment.id for appointment in conflicts],
        )
    return conflicts


def has_conflict(
    on_date: date,
    start: str,
    end: str,
    existing_appointments: Iterable[AppointmentRecord],
    exclude_appointment_id: str | None = None,
    *,
    practitioner_id: str | None = None,
    additional_slots: Iterable[TimeWindow] = (),
) -> bool:
    return bool(
        find_conflicts(
            on_date,
            start,
            end,
            existing_appointments,
            exclude_appointment_id,
            practitioner_id=practitioner_id,
            additional_slots=additional_slots,
        )
    )
