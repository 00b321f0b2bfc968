import copy
from typing import Any, Callable, Dict, List, Mapping, Optional

from ubconnect.errors import StoreError, StoreErrorCode
from ubconnect.schemas.base import utc_now
from ubconnect.store.base import (
    DocumentStore, Query, StoredDoc, WriteBatch,
    evaluate_query, in_collection, resolve_server_timestamps,
)
from ubconnect.utils.logger import get_logger

logger = get_logger(__name__)

# guard(op, path) may raise StoreError to simulate rules or outages
Guard = Callable[[str, str], None]


class MemoryWriteBatch(WriteBatch):

    def __init__(self, store: "MemoryDocumentStore"):
        super().__init__()
        self._store = store

    async def commit(self) -> None:
        # Stage on a copy so a failing op leaves the store untouched
        staged = copy.deepcopy(self._store._docs)
        now = utc_now()
        for op, path, fields in self._ops:
            self._store._check(op, path)
            self._store._apply(staged, op, path, fields, now)
        self._store._docs = staged
        logger.debug(f"Committed batch of {len(self._ops)} writes")


class MemoryDocumentStore(DocumentStore):
    """Process-local store used by tests and local development."""

    def __init__(self, guard: Optional[Guard] = None):
        self._docs: Dict[str, Dict[str, Any]] = {}
        self.guard = guard

    def _check(self, op: str, path: str) -> None:
        if self.guard is not None:
            self.guard(op, path)

    @staticmethod
    def _apply(docs: Dict[str, Dict[str, Any]], op: str, path: str,
               fields: Optional[Mapping[str, Any]], now) -> None:
        if op == "set":
            docs[path] = resolve_server_timestamps(fields, now)
        elif op == "update":
            if path not in docs:
                raise StoreError(StoreErrorCode.NOT_FOUND, f"no document to update: {path}")
            docs[path].update(resolve_server_timestamps(fields, now))
        elif op == "delete":
            docs.pop(path, None)

    def _doc(self, path: str) -> StoredDoc:
        return StoredDoc(id=path.rsplit("/", 1)[-1], path=path, data=copy.deepcopy(self._docs[path]))

    async def get(self, path: str) -> Optional[StoredDoc]:
        self._check("get", path)
        if path not in self._docs:
            return None
        return self._doc(path)

    async def set(self, path: str, fields: Mapping[str, Any]) -> None:
        self._check("set", path)
        self._apply(self._docs, "set", path, copy.deepcopy(dict(fields)), utc_now())

    async def update(self, path: str, fields: Mapping[str, Any]) -> None:
        self._check("update", path)
        self._apply(self._docs, "update", path, copy.deepcopy(dict(fields)), utc_now())

    async def delete(self, path: str) -> None:
        self._check("delete", path)
        self._apply(self._docs, "delete", path, None, utc_now())

    async def query(self, query: Query) -> List[StoredDoc]:
        self._check("query", query.collection)
        candidates = [self._doc(path) for path in self._docs if in_collection(path, query)]
        return evaluate_query(candidates, query)

    def batch(self) -> MemoryWriteBatch:
        return MemoryWriteBatch(self)

    def raw(self, path: str) -> Optional[Dict[str, Any]]:
        """Stored fields exactly as written, for inspection in tests."""
        data = self._docs.get(path)
        return copy.deepcopy(data) if data is not None else None
