"""
Document store boundary.

The services only ever talk to a ``DocumentStore``: documents addressed by
slash-separated paths (``connectEvents/e1/comments/c1``), ordered/limited
queries over one collection (or every collection with the same id), and
all-or-nothing write batches. Backends translate their native failures into
``StoreError`` so callers can classify them uniformly.
"""
from __future__ import annotations

import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from ubconnect.errors import StoreError, StoreErrorCode


class _ServerTimestamp:
    """Sentinel resolved to the write time by the backend."""

    def __repr__(self) -> str:
        return "SERVER_TIMESTAMP"

    # Backends compare by identity, so copies must stay the same object
    def __copy__(self) -> "_ServerTimestamp":
        return self

    def __deepcopy__(self, memo) -> "_ServerTimestamp":
        return self


SERVER_TIMESTAMP = _ServerTimestamp()


def doc_path(*segments: str) -> str:
    return "/".join(segments)


def parent_collection(path: str) -> str:
    return path.rsplit("/", 1)[0]


def collection_id(collection_path: str) -> str:
    return collection_path.rsplit("/", 1)[-1]


def new_document_id() -> str:
    return uuid.uuid4().hex[:20]


@dataclass(frozen=True)
class StoredDoc:
    id: str
    path: str
    data: Dict[str, Any]

    @property
    def parent_id(self) -> Optional[str]:
        """Id of the document owning this doc's collection (``connectEvents/{this}/rsvps/x``)."""
        segments = self.path.split("/")
        return segments[-3] if len(segments) >= 4 else None


@dataclass(frozen=True)
class Query:
    collection: str
    where_equals: Mapping[str, Any] = field(default_factory=dict)
    where_in: Optional[Tuple[str, Sequence[Any]]] = None
    where_prefix: Optional[Tuple[str, str]] = None
    order_by: Optional[str] = None
    descending: bool = False
    limit: Optional[int] = None
    # Path of the last document of the previous page
    start_after: Optional[str] = None
    # Match every collection whose id equals ``collection``
    collection_group: bool = False


class WriteBatch(ABC):
    """Buffered writes applied together by ``commit``."""

    def __init__(self):
        self._ops: List[Tuple[str, str, Optional[Dict[str, Any]]]] = []

    def set(self, path: str, fields: Mapping[str, Any]) -> "WriteBatch":
        self._ops.append(("set", path, dict(fields)))
        return self

    def update(self, path: str, fields: Mapping[str, Any]) -> "WriteBatch":
        self._ops.append(("update", path, dict(fields)))
        return self

    def delete(self, path: str) -> "WriteBatch":
        self._ops.append(("delete", path, None))
        return self

    def __len__(self) -> int:
        return len(self._ops)

    @abstractmethod
    async def commit(self) -> None:
        """Apply every buffered write, or none of them."""


class DocumentStore(ABC):

    @abstractmethod
    async def get(self, path: str) -> Optional[StoredDoc]:
        """Return the document, or None when it does not exist."""

    @abstractmethod
    async def set(self, path: str, fields: Mapping[str, Any]) -> None:
        """Create or replace the document."""

    @abstractmethod
    async def update(self, path: str, fields: Mapping[str, Any]) -> None:
        """Merge fields into an existing document; not-found StoreError if absent."""

    @abstractmethod
    async def delete(self, path: str) -> None:
        """Delete the document; deleting an absent document is a no-op."""

    @abstractmethod
    async def query(self, query: Query) -> List[StoredDoc]:
        ...

    @abstractmethod
    def batch(self) -> WriteBatch:
        ...

    async def count(self, query: Query) -> int:
        return len(await self.query(query))

    def new_id(self, collection_path: str) -> str:
        return new_document_id()


# ---------------------------------------------------------------------------
# In-process query evaluation shared by the memory and SQL backends
# ---------------------------------------------------------------------------

_MISSING = object()


def resolve_server_timestamps(fields: Mapping[str, Any], now: datetime) -> Dict[str, Any]:
    resolved: Dict[str, Any] = {}
    for key, value in fields.items():
        if value is SERVER_TIMESTAMP:
            resolved[key] = now
        elif isinstance(value, Mapping):
            resolved[key] = resolve_server_timestamps(value, now)
        else:
            resolved[key] = value
    return resolved


def _sort_key(value: Any) -> Tuple[int, Any]:
    # Cross-type ordering follows Firestore: null < bool < number < timestamp < string
    if value is None:
        return (0, 0)
    if isinstance(value, bool):
        return (1, value)
    if isinstance(value, (int, float)):
        return (2, value)
    if isinstance(value, datetime):
        return (3, value.timestamp())
    if isinstance(value, str):
        return (4, value)
    return (5, repr(value))


def _matches(doc: StoredDoc, query: Query) -> bool:
    data = doc.data
    for name, expected in query.where_equals.items():
        value = data.get(name, _MISSING)
        if value is _MISSING or value != expected:
            return False
    if query.where_in is not None:
        name, values = query.where_in
        value = data.get(name, _MISSING)
        if value is _MISSING or value not in list(values):
            return False
    if query.where_prefix is not None:
        name, prefix = query.where_prefix
        value = data.get(name)
        if not isinstance(value, str) or not value.startswith(prefix):
            return False
    return True


def evaluate_query(docs: Iterable[StoredDoc], query: Query) -> List[StoredDoc]:
    """Filter, order, page and limit ``docs`` with Firestore semantics."""
    results = [doc for doc in docs if _matches(doc, query)]

    order_field = query.order_by or (query.where_prefix[0] if query.where_prefix else None)
    if order_field:
        # Documents without the ordered field are not returned
        results = [doc for doc in results if order_field in doc.data]
        results.sort(
            key=lambda doc: (_sort_key(doc.data[order_field]), doc.path),
            reverse=query.descending,
        )
    else:
        results.sort(key=lambda doc: doc.path)

    if query.start_after:
        positions = [i for i, doc in enumerate(results) if doc.path == query.start_after]
        if not positions:
            raise StoreError(StoreErrorCode.NOT_FOUND, f"cursor document {query.start_after} not found")
        results = results[positions[0] + 1:]

    if query.limit is not None:
        results = results[:query.limit]
    return results


def in_collection(path: str, query: Query) -> bool:
    parent = parent_collection(path)
    if query.collection_group:
        return collection_id(parent) == query.collection
    return parent == query.collection
