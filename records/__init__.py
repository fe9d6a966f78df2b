"""Record models and the in-memory record store used by the update guard."""

from .models import (
    SYSTEM_FIELDS,
    SYSTEM_FIELD_UPDATED,
    CollectionRef,
    Record,
    UpdateContext,
    is_system_field,
)
from .store import MemoryRecordStore, RecordNotFoundError, RecordStore

__all__ = [
    "SYSTEM_FIELDS",
    "SYSTEM_FIELD_UPDATED",
    "CollectionRef",
    "Record",
    "UpdateContext",
    "is_system_field",
    "MemoryRecordStore",
    "RecordNotFoundError",
    "RecordStore",
]
