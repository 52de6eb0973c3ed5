"""Optimistic local view of appointments kept in step with the authoritative store.

Each write runs in two phases. Phase one publishes a ``ProvisionalEntry``
straight away. Phase two waits for the store: success replaces the entry with
a ``ConfirmedEntry`` carrying the store's record, and failure restores the
snapshot taken before phase one.
"""

import logging
import uuid
from collections.abc import Callable, Iterable
from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field

from clinic_scheduling.scheduling.models import AppointmentRecord

logger = logging.getLogger(__name__)


class ProvisionalEntry(BaseModel):
    kind: Literal['provisional'] = 'provisional'
    tag: str
    operation: Literal['create', 'update', 'delete']
    record: AppointmentRecord | None = None
    previous: AppointmentRecord | None = None


class ConfirmedEntry(BaseModel):
    kind: Literal['confirmed'] = 'confirmed'
    record: AppointmentRecord


LedgerEntry = Annotated[ProvisionalEntry | ConfirmedEntry, Field(discriminator='kind')]


class AppointmentLedger:
    def __init__(self, records: Iterable[AppointmentRecord] = ()) -> None:
        self._entries: dict[str, LedgerEntry] = {}
        self._pending: dict[str, str] = {}
        self._listeners: list[Callable[[list[LedgerEntry]], None]] = []
        for record in records:
            self._entries[self._require_id(record)] = ConfirmedEntry(record=record)

    @staticmethod
    def _require_id(record: AppointmentRecord) -> str:
        if record.id is None:
            raise ValueError('Confirmed appointments must carry an id.')
        return record.id

    def subscribe(self, listener: Callable[[list[LedgerEntry]], None]) -> None:
        self._listeners.append(listener)

    def _publish(self) -> None:
        snapshot = self.entries()
        for listener in self._listeners:
            listener(snapshot)

    def entries(self) -> list[LedgerEntry]:
        return list(self._entries.values())

    def records(self) -> list[AppointmentRecord]:
        """Records as the user should currently see them, pending deletes hidden."""
        return [entry.record for entry in self._entries.values() if entry.record is not None]

    def get(self, appointment_id: str) -> LedgerEntry | None:
        return self._entries.get(str(appointment_id))

    def is_pending(self, tag: str) -> bool:
        return tag in self._pending

    def _confirmed_record(self, appointment_id: str) -> AppointmentRecord:
        entry = self._entries.get(str(appointment_id))
        if entry is not None and entry.kind == 'provisional':
            raise ValueError(f'Appointment {appointment_id} already has a pending change.')
        if entry is None or entry.record is None:
            raise KeyError(f'Unknown appointment {appointment_id}.')
        return entry.record

    def _replace_key(self, old_key: str, new_key: str, entry: LedgerEntry) -> None:
        # Rebuild the dict so the entry keeps its position.
        self._entries = {
            (new_key if key == old_key else key): (entry if key == old_key else value)
            for key, value in self._entries.items()
        }

    def begin_create(self, record: AppointmentRecord) -> str:
        tag = uuid.uuid4().hex
        self._entries[tag] = ProvisionalEntry(tag=tag, operation='create', record=record)
        self._pending[tag] = tag
        self._publish()
        return tag

    def begin_update(self, appointment_id: str, changes: dict[str, Any]) -> str:
        key = str(appointment_id)
        previous = self._confirmed_record(key)
        merged = AppointmentRecord.model_validate({**previous.model_dump(), **changes, 'id': key})
        tag = uuid.uuid4().hex
        self._entries[key] = ProvisionalEntry(tag=tag, operation='update', record=merged, previous=previous)
        self._pending[tag] = key
        self._publish()
        return tag

    def begin_delete(self, appointment_id: str) -> str:
        key = str(appointment_id)
        previous = self._confirmed_record(key)
        tag = uuid.uuid4().hex
        self._entries[key] = ProvisionalEntry(tag=tag, operation='delete', previous=previous)
        self._pending[tag] = key
        self._publish()
        return tag

    def confirm(self, tag: str, record: AppointmentRecord | None = None) -> None:
        key = self._pending[tag]
        entry = self._entries[key]

        # The tag stays pending until the authoritative record is accepted.
        if entry.operation == 'delete':
            del self._pending[tag]
            del self._entries[key]
        else:
            authoritative = record or entry.record
            new_key = self._require_id(authoritative)
            del self._pending[tag]
            self._replace_key(key, new_key, ConfirmedEntry(record=authoritative))

        self._publish()

    def rollback(self, tag: str) -> None:
        key = self._pending.pop(tag)
        entry = self._entries[key]

        if entry.operation == 'create':
            del self._entries[key]
        else:
            self._entries[key] = ConfirmedEntry(record=entry.previous)

        logger.info('Rolled back provisional %s of appointment %s', entry.operation, key)
        self._publish()

    def create(
        self,
        record: AppointmentRecord,
        submit: Callable[[AppointmentRecord], AppointmentRecord],
    ) -> AppointmentRecord:
        tag = self.begin_create(record)
        try:
            saved = submit(record)
            self.confirm(tag, saved)
        except Exception:
            if self.is_pending(tag):
                self.rollback(tag)
            raise
        return saved

    def update(
        self,
        appointment_id: str,
        changes: dict[str, Any],
        submit: Callable[[str, dict[str, Any]], AppointmentRecord],
    ) -> AppointmentRecord:
        tag = self.begin_update(appointment_id, changes)
        try:
            saved = submit(str(appointment_id), changes)
            self.confirm(tag, saved)
        except Exception:
            if self.is_pending(tag):
                self.rollback(tag)
            raise
        return saved

    def delete(self, appointment_id: str, submit: Callable[[str], None]) -> None:
        tag = self.begin_delete(appointment_id)
        try:
            submit(str(appointment_id))
            self.confirm(tag)
        except Exception:
            if self.is_pending(tag):
                self.rollback(tag)
            raise
