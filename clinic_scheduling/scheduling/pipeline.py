"""Resolve, generate and annotate the slots of one practitioner-day in a single pass."""

from collections.abc import Collection, Iterable, Mapping, Sequence
from datetime import date

from pydantic import BaseModel

from clinic_scheduling.scheduling.availability import AvailabilityResolver, WeeklyAvailability, fits_open_intervals
from clinic_scheduling.scheduling.booking import BookingValidation, validate_booking
from clinic_scheduling.scheduling.clinic_calendar import ClinicCalendarPolicy
from clinic_scheduling.scheduling.conflicts import annotate_conflicts
from clinic_scheduling.scheduling.models import AppointmentRecord, TimeSlot, TimeWindow
from clinic_scheduling.scheduling.slots import DEFAULT_GRANULARITY_MINUTES, generate_slots


class DaySchedule(BaseModel):
    practitioner_id: str
    date: date
    duration_minutes: int
    clinic_closed: bool = False
    closed_reason: str | None = None
    open_intervals: list[TimeWindow] = []
    slots: list[TimeSlot] = []

    def available_slots(self) -> list[TimeSlot]:
        return [slot for slot in self.slots if slot.available]

    def fits_availability(self, start: str, end: str) -> bool:
        return fits_open_intervals(self.open_intervals, start, end)

    def validate_selection(
        self,
        primary_slot: TimeWindow | None,
        additional_slots: Sequence[TimeWindow] = (),
    ) -> BookingValidation:
        return validate_booking(
            primary_slot,
            additional_slots,
            self.slots,
            clinic_closed=self.clinic_closed,
            closed_reason=self.closed_reason,
        )


def build_day_schedule(
    practitioner_id: str,
    on_date: date,
    *,
    policy: ClinicCalendarPolicy,
    availability: Mapping[str, WeeklyAvailability],
    appointments: Iterable[AppointmentRecord],
    duration_minutes: int = DEFAULT_GRANULARITY_MINUTES,
    exclude_appointment_id: str | None = None,
    visible_appointment_ids: Collection[str] | None = None,
) -> DaySchedule:
    """Run the full slot pipeline for ``practitioner_id`` on ``on_date``.

    ``appointments`` should be the unfiltered set for the practitioner; use
    ``visible_appointment_ids`` to limit which occupants are revealed.
    """
    closure = policy.closure_reason(on_date)
    if closure is not None:
        return DaySchedule(
            practitioner_id=str(practitioner_id),
            date=on_date,
            duration_minutes=duration_minutes,
            clinic_closed=True,
            closed_reason=closure.reason,
        )

    resolver = AvailabilityResolver(policy, availability)
    open_intervals = resolver.get_open_intervals(practitioner_id, on_date)
    slots = annotate_conflicts(
        generate_slots(open_intervals, duration_minutes, on_date),
        appointments,
        on_date=on_date,
        practitioner_id=practitioner_id,
        exclude_appointment_id=exclude_appointment_id,
        visible_appointment_ids=visible_appointment_ids,
    )

    return DaySchedule(
        practitioner_id=str(practitioner_id),
        date=on_date,
        duration_minutes=duration_minutes,
        open_intervals=open_intervals,
        slots=slots,
    )
