"""
Firestore-backed document store (production).

Wraps the firebase-admin async client. Every RPC carries an explicit
timeout and every google.api_core failure is re-raised as ``StoreError``.
"""
from typing import Any, Dict, List, Mapping, Optional

from firebase_admin import firestore_async
from google.api_core import exceptions as google_exceptions
from google.cloud import firestore
from google.cloud.firestore_v1.base_query import FieldFilter

from ubconnect.config import settings
from ubconnect.errors import StoreError, StoreErrorCode
from ubconnect.store.base import SERVER_TIMESTAMP, DocumentStore, Query, StoredDoc, WriteBatch
from ubconnect.utils.logger import get_logger

logger = get_logger(__name__)

# Upper bound for prefix range queries
PREFIX_UPPER_BOUND = "\uf8ff"

_ERROR_CODES = (
    (google_exceptions.PermissionDenied, StoreErrorCode.PERMISSION_DENIED),
    (google_exceptions.Unauthenticated, StoreErrorCode.UNAUTHENTICATED),
    (google_exceptions.FailedPrecondition, StoreErrorCode.FAILED_PRECONDITION),
    (google_exceptions.NotFound, StoreErrorCode.NOT_FOUND),
    (google_exceptions.AlreadyExists, StoreErrorCode.ALREADY_EXISTS),
    (google_exceptions.DeadlineExceeded, StoreErrorCode.DEADLINE_EXCEEDED),
    (google_exceptions.ServiceUnavailable, StoreErrorCode.UNAVAILABLE),
)


def translate_error(error: google_exceptions.GoogleAPICallError) -> StoreError:
    for error_type, code in _ERROR_CODES:
        if isinstance(error, error_type):
            return StoreError(code, error.message or str(error))
    return StoreError(StoreErrorCode.UNKNOWN, str(error))


def _to_native(fields: Mapping[str, Any]) -> Dict[str, Any]:
    native: Dict[str, Any] = {}
    for key, value in fields.items():
        if value is SERVER_TIMESTAMP:
            native[key] = firestore.SERVER_TIMESTAMP
        elif isinstance(value, Mapping):
            native[key] = _to_native(value)
        else:
            native[key] = value
    return native


def _to_stored_doc(snapshot) -> StoredDoc:
    return StoredDoc(id=snapshot.id, path=snapshot.reference.path, data=snapshot.to_dict() or {})


class FirestoreWriteBatch(WriteBatch):

    def __init__(self, store: "FirestoreDocumentStore"):
        super().__init__()
        self._store = store

    async def commit(self) -> None:
        client = self._store.client
        batch = client.batch()
        for op, path, fields in self._ops:
            ref = client.document(path)
            if op == "set":
                batch.set(ref, _to_native(fields))
            elif op == "update":
                batch.update(ref, _to_native(fields))
            else:
                batch.delete(ref)
        try:
            await batch.commit(timeout=self._store.timeout)
        except google_exceptions.GoogleAPICallError as e:
            logger.error(f"Batch commit of {len(self._ops)} writes failed: {e}")
            raise translate_error(e)


class FirestoreDocumentStore(DocumentStore):

    def __init__(self, client=None, timeout: Optional[float] = None):
        # Requires firebase_admin.initialize_app() to have run when no client is given
        self.client = client or firestore_async.client()
        self.timeout = timeout if timeout is not None else settings.STORE_TIMEOUT_SECONDS

    async def get(self, path: str) -> Optional[StoredDoc]:
        try:
            snapshot = await self.client.document(path).get(timeout=self.timeout)
        except google_exceptions.GoogleAPICallError as e:
            raise translate_error(e)
        return _to_stored_doc(snapshot) if snapshot.exists else None

    async def set(self, path: str, fields: Mapping[str, Any]) -> None:
        try:
            await self.client.document(path).set(_to_native(fields), timeout=self.timeout)
        except google_exceptions.GoogleAPICallError as e:
            raise translate_error(e)

    async def update(self, path: str, fields: Mapping[str, Any]) -> None:
        try:
            await self.client.document(path).update(_to_native(fields), timeout=self.timeout)
        except google_exceptions.GoogleAPICallError as e:
            raise translate_error(e)

    async def delete(self, path: str) -> None:
        try:
            await self.client.document(path).delete(timeout=self.timeout)
        except google_exceptions.GoogleAPICallError as e:
            raise translate_error(e)

    async def _build(self, query: Query):
        if query.collection_group:
            native = self.client.collection_group(query.collection)
        else:
            native = self.client.collection(query.collection)
        for name, value in query.where_equals.items():
            native = native.where(filter=FieldFilter(name, "==", value))
        if query.where_in is not None:
            name, values = query.where_in
            native = native.where(filter=FieldFilter(name, "in", list(values)))
        if query.where_prefix is not None:
            name, prefix = query.where_prefix
            native = native.where(filter=FieldFilter(name, ">=", prefix))
            native = native.where(filter=FieldFilter(name, "<=", prefix + PREFIX_UPPER_BOUND))
        if query.order_by:
            direction = firestore.Query.DESCENDING if query.descending else firestore.Query.ASCENDING
            native = native.order_by(query.order_by, direction=direction)
        if query.start_after:
            cursor = await self.client.document(query.start_after).get(timeout=self.timeout)
            if not cursor.exists:
                raise StoreError(StoreErrorCode.NOT_FOUND, f"cursor document {query.start_after} not found")
            native = native.start_after(cursor)
        if query.limit is not None:
            native = native.limit(query.limit)
        return native

    async def query(self, query: Query) -> List[StoredDoc]:
        try:
            native = await self._build(query)
            snapshots = await native.get(timeout=self.timeout)
        except google_exceptions.GoogleAPICallError as e:
            logger.warning(f"Query on {query.collection} failed: {e}")
            raise translate_error(e)
        return [_to_stored_doc(snapshot) for snapshot in snapshots]

    async def count(self, query: Query) -> int:
        try:
            native = await self._build(query)
            results = await native.count(alias="total").get(timeout=self.timeout)
        except google_exceptions.GoogleAPICallError as e:
            logger.warning(f"Count on {query.collection} failed: {e}")
            raise translate_error(e)
        for result in results:
            for aggregation in result:
                if aggregation.alias == "total":
                    return int(aggregation.value)
        return 0

    def new_id(self, collection_path: str) -> str:
        return self.client.collection(collection_path).document().id

    def batch(self) -> FirestoreWriteBatch:
        return FirestoreWriteBatch(self)
