from __future__ import annotations

import copy
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any, Callable, Dict, Iterable, Mapping, Optional, Tuple

if TYPE_CHECKING:  # pragma: no cover
    from .store import RecordStore

SYSTEM_FIELD_ID = "id"
SYSTEM_FIELD_CREATED = "created"
SYSTEM_FIELD_UPDATED = "updated"
SYSTEM_FIELD_COLLECTION_ID = "collectionId"
SYSTEM_FIELD_COLLECTION_NAME = "collectionName"
SYSTEM_FIELD_EXPAND = "expand"

SYSTEM_FIELDS = frozenset(
    {
        SYSTEM_FIELD_ID,
        SYSTEM_FIELD_CREATED,
        SYSTEM_FIELD_UPDATED,
        SYSTEM_FIELD_COLLECTION_ID,
        SYSTEM_FIELD_COLLECTION_NAME,
        SYSTEM_FIELD_EXPAND,
    }
)


def is_system_field(name: str) -> bool:
    return name in SYSTEM_FIELDS


@dataclass(frozen=True)
class CollectionRef:
    id: str
    name: str
    fields: Tuple[str, ...] = ()

    @classmethod
    def define(cls, name: str, fields: Iterable[str], *, collection_id: str | None = None) -> "CollectionRef":
        return cls(id=collection_id or f"col_{name}", name=name, fields=tuple(fields))


@dataclass
class Record:
    collection: Optional[CollectionRef]
    id: str = ""
    created: Optional[str] = None
    updated: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)
    expand: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, collection: CollectionRef, payload: Mapping[str, Any]) -> "Record":
        data = {key: value for key, value in payload.items() if not is_system_field(key)}
        return cls(
            collection=collection,
            id=payload.get(SYSTEM_FIELD_ID, "") or "",
            created=payload.get(SYSTEM_FIELD_CREATED),
            updated=payload.get(SYSTEM_FIELD_UPDATED),
            data=copy.deepcopy(data),
            expand=copy.deepcopy(dict(payload.get(SYSTEM_FIELD_EXPAND) or {})),
        )

    def get(self, name: str, default: Any = None) -> Any:
        if name == SYSTEM_FIELD_ID:
            return self.id
        if name == SYSTEM_FIELD_CREATED:
            return self.created
        if name == SYSTEM_FIELD_UPDATED:
            return self.updated
        if name == SYSTEM_FIELD_COLLECTION_ID:
            return self.collection.id if self.collection else None
        if name == SYSTEM_FIELD_COLLECTION_NAME:
            return self.collection.name if self.collection else None
        if name == SYSTEM_FIELD_EXPAND:
            return self.expand
        return self.data.get(name, default)

    def set(self, name: str, value: Any) -> None:
        if name == SYSTEM_FIELD_ID:
            self.id = value
        elif name == SYSTEM_FIELD_CREATED:
            self.created = value
        elif name == SYSTEM_FIELD_UPDATED:
            self.updated = value
        elif name == SYSTEM_FIELD_EXPAND:
            self.expand = dict(value or {})
        elif name in (SYSTEM_FIELD_COLLECTION_ID, SYSTEM_FIELD_COLLECTION_NAME):
            raise ValueError(f"{name} is derived from the collection and cannot be set")
        else:
            self.data[name] = value

    def copy(self) -> "Record":
        return replace(self, data=copy.deepcopy(self.data), expand=copy.deepcopy(self.expand))

    def merged(self, changes: Mapping[str, Any]) -> "Record":
        """Return the full proposed state: this record with ``changes`` applied."""

        proposed = self.copy()
        for name, value in changes.items():
            proposed.set(name, copy.deepcopy(value))
        return proposed

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            SYSTEM_FIELD_ID: self.id,
            SYSTEM_FIELD_CREATED: self.created,
            SYSTEM_FIELD_UPDATED: self.updated,
            SYSTEM_FIELD_COLLECTION_ID: self.get(SYSTEM_FIELD_COLLECTION_ID),
            SYSTEM_FIELD_COLLECTION_NAME: self.get(SYSTEM_FIELD_COLLECTION_NAME),
        }
        payload.update(copy.deepcopy(self.data))
        if self.expand:
            payload[SYSTEM_FIELD_EXPAND] = copy.deepcopy(self.expand)
        return payload


@dataclass
class UpdateContext:
    """A single update event: the proposed record plus the rest of the chain."""

    record: Optional[Record]
    store: Optional["RecordStore"] = None
    proceed: Optional[Callable[[], None]] = None

    def next(self) -> None:
        if self.proceed is not None:
            self.proceed()
            return
        if self.store is None or self.record is None:
            raise RuntimeError("Update context has nothing to continue with")
        self.store.save(self.record)
