from __future__ import annotations

import threading
import uuid
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, List, Optional, Protocol, Tuple

from .models import CollectionRef, Record


class RecordNotFoundError(LookupError):
    pass


class RecordStore(Protocol):
    def collection(self, name: str) -> CollectionRef:  # pragma: no cover - interface method
        ...

    def find_by_id(self, collection: CollectionRef, record_id: str) -> Record:  # pragma: no cover - interface method
        ...

    def schema_field_names(self, collection: CollectionRef) -> List[str]:  # pragma: no cover - interface method
        ...

    def save(self, record: Record) -> Record:  # pragma: no cover - interface method
        ...


def format_timestamp(moment: datetime) -> str:
    moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%d %H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def new_record_id() -> str:
    return uuid.uuid4().hex[:15]


class MemoryRecordStore:
    """Dict-backed record store, used for wiring the guard without a database."""

    def __init__(
        self,
        collections: Iterable[CollectionRef] | None = None,
        *,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.collections: Dict[str, CollectionRef] = {}
        self._records: Dict[Tuple[str, str], Record] = {}
        self._lock = threading.Lock()
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        for collection in collections or []:
            self.add_collection(collection)

    def add_collection(self, collection: CollectionRef) -> CollectionRef:
        self.collections[collection.name] = collection
        return collection

    def collection(self, name: str) -> CollectionRef:
        try:
            return self.collections[name]
        except KeyError as exc:
            raise RecordNotFoundError(f"Unknown collection: {name}") from exc

    def schema_field_names(self, collection: CollectionRef) -> List[str]:
        known = self.collections.get(collection.name, collection)
        return list(known.fields)

    def create(self, collection_name: str, data: Dict) -> Record:
        collection = self.collection(collection_name)
        record = Record.from_payload(collection, data)
        stamp = format_timestamp(self.clock())
        record.id = record.id or new_record_id()
        record.created = stamp
        record.updated = stamp
        with self._lock:
            self._records[(collection.id, record.id)] = record.copy()
        return record

    def find_by_id(self, collection: CollectionRef, record_id: str) -> Record:
        with self._lock:
            record = self._records.get((collection.id, record_id))
        if record is None:
            raise RecordNotFoundError(f"Record {record_id} not found in collection {collection.name}")
        return record.copy()

    def save(self, record: Record) -> Record:
        if record.collection is None or not record.id:
            raise ValueError("Cannot save a record without collection and id")
        key = (record.collection.id, record.id)
        with self._lock:
            if key not in self._records:
                raise RecordNotFoundError(f"Record {record.id} not found in collection {record.collection.name}")
            record.updated = format_timestamp(self.clock())
            self._records[key] = record.copy()
        return record

    def __len__(self) -> int:
        return len(self._records)

    def dump(self, collection_name: str) -> List[Dict]:
        collection = self.collection(collection_name)
        with self._lock:
            records = [r for (cid, _), r in self._records.items() if cid == collection.id]
        return [record.to_payload() for record in records]
