from datetime import date

import pytest

from clinic_scheduling.scheduling.ledger import AppointmentLedger, ConfirmedEntry, ProvisionalEntry
from clinic_scheduling.scheduling.models import AppointmentRecord

WEDNESDAY = date(2024, 1, 10)


def record(appointment_id: str | None, start: str = '09:00', end: str = '09:30', **kwargs) -> AppointmentRecord:
    return AppointmentRecord(
        id=appointment_id,
        practitioner_id='7',
        date=WEDNESDAY,
        start_time=start,
        end_time=end,
        **kwargs,
    )


class StoreUnavailable(Exception):
    pass


def test_create_publishes_provisional_then_confirmed_entry() -> None:
    ledger = AppointmentLedger()
    published = []
    ledger.subscribe(lambda entries: published.append([entry.kind for entry in entries]))

    saved = ledger.create(record(None), lambda draft: draft.model_copy(update={'id': '41'}))

    assert saved.id == '41'
    assert published == [['provisional'], ['confirmed']]
    assert isinstance(ledger.get('41'), ConfirmedEntry)


def test_failed_create_is_rolled_back() -> None:
    ledger = AppointmentLedger([record('1')])

    def submit(draft: AppointmentRecord) -> AppointmentRecord:
        raise StoreUnavailable()

    with pytest.raises(StoreUnavailable):
        ledger.create(record(None, '10:00', '10:30'), submit)

    assert [item.id for item in ledger.records()] == ['1']


def test_begin_update_shows_change_until_rolled_back() -> None:
    ledger = AppointmentLedger([record('1')])

    tag = ledger.begin_update('1', {'start_time': '11:00', 'end_time': '11:30'})

    entry = ledger.get('1')
    assert isinstance(entry, ProvisionalEntry)
    assert entry.record.start_time == '11:00'
    assert entry.previous.start_time == '09:00'
    assert ledger.is_pending(tag) is True

    ledger.rollback(tag)

    assert ledger.records()[0].start_time == '09:00'
    assert ledger.is_pending(tag) is False


def test_update_confirms_with_store_record() -> None:
    ledger = AppointmentLedger([record('1'), record('2', '10:00', '10:30')])

    ledger.update(
        '1',
        {'status': 'confirmed'},
        lambda appointment_id, changes: record(appointment_id, status='confirmed'),
    )

    assert [(item.id, item.status) for item in ledger.records()] == [('1', 'confirmed'), ('2', 'scheduled')]


def test_delete_hides_record_while_pending_and_restores_on_failure() -> None:
    ledger = AppointmentLedger([record('1')])

    tag = ledger.begin_delete('1')
    assert ledger.records() == []

    ledger.rollback(tag)
    assert [item.id for item in ledger.records()] == ['1']

    ledger.delete('1', lambda appointment_id: None)
    assert ledger.entries() == []


def test_second_change_waits_for_pending_change() -> None:
    ledger = AppointmentLedger([record('1')])
    ledger.begin_delete('1')

    with pytest.raises(ValueError):
        ledger.begin_update('1', {'status': 'confirmed'})


def test_unknown_appointment_cannot_be_changed() -> None:
    ledger = AppointmentLedger()

    with pytest.raises(KeyError):
        ledger.begin_delete('99')


def test_confirmed_records_require_an_id() -> None:
    with pytest.raises(ValueError):
        AppointmentLedger([record(None)])


def test_store_record_without_id_rolls_back_create() -> None:
    ledger = AppointmentLedger([record('1')])

    with pytest.raises(ValueError):
        ledger.create(record(None, '10:00', '10:30'), lambda draft: draft)

    assert [entry.kind for entry in ledger.entries()] == ['confirmed']
    assert [item.id for item in ledger.records()] == ['1']


def test_rejected_confirm_keeps_tag_pending() -> None:
    ledger = AppointmentLedger()
    tag = ledger.begin_create(record(None))

    with pytest.raises(ValueError):
        ledger.confirm(tag, record(None))

    assert ledger.is_pending(tag) is True

    ledger.rollback(tag)
    assert ledger.entries() == []


def test_pending_update_blocks_delete() -> None:
    ledger = AppointmentLedger([record('1')])
    ledger.begin_update('1', {'status': 'confirmed'})

    with pytest.raises(ValueError):
        ledger.begin_delete('1')
