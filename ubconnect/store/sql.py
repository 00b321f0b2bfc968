"""
SQL-backed document store.

Documents live in a single ``documents`` table (see ``ubconnect.models``),
one JSON ``data`` column per row. Filtering by collection happens in SQL;
field filters, ordering and cursors are evaluated in Python with the same
semantics as the other backends.
"""
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from ubconnect.errors import StoreError, StoreErrorCode
from ubconnect.models import StoredDocument
from ubconnect.schemas.base import to_datetime, utc_now
from ubconnect.store.base import (
    DocumentStore, Query, StoredDoc, WriteBatch,
    collection_id, evaluate_query, parent_collection, resolve_server_timestamps,
)
from ubconnect.utils.logger import get_logger

logger = get_logger(__name__)

_DATETIME_KEY = "__datetime__"


def encode_value(value: Any) -> Any:
    """Make a field value JSON-safe; datetimes are tagged so they read back as datetimes."""
    if isinstance(value, datetime):
        return {_DATETIME_KEY: to_datetime(value).isoformat()}
    if isinstance(value, Mapping):
        return {key: encode_value(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [encode_value(item) for item in value]
    return value


def decode_value(value: Any) -> Any:
    if isinstance(value, dict):
        if set(value) == {_DATETIME_KEY}:
            return to_datetime(value[_DATETIME_KEY])
        return {key: decode_value(item) for key, item in value.items()}
    if isinstance(value, list):
        return [decode_value(item) for item in value]
    return value


def _translate(error: SQLAlchemyError) -> StoreError:
    if isinstance(error, OperationalError):
        return StoreError(StoreErrorCode.UNAVAILABLE, str(error.orig or error))
    if isinstance(error, IntegrityError):
        return StoreError(StoreErrorCode.ALREADY_EXISTS, str(error.orig or error))
    return StoreError(StoreErrorCode.UNKNOWN, str(error))


def _to_stored_doc(row: StoredDocument) -> StoredDoc:
    return StoredDoc(id=row.doc_id, path=row.path, data=decode_value(row.data or {}))


def _write(session: Session, op: str, path: str, fields: Optional[Mapping[str, Any]], now: datetime) -> None:
    row = session.get(StoredDocument, path)
    if op == "delete":
        if row is not None:
            session.delete(row)
        return

    resolved = encode_value(resolve_server_timestamps(fields, now))
    if op == "update":
        if row is None:
            raise StoreError(StoreErrorCode.NOT_FOUND, f"no document to update: {path}")
        # Assign a new dict so the JSON column registers the change
        row.data = {**row.data, **resolved}
        return

    if row is None:
        parent = parent_collection(path)
        session.add(StoredDocument(
            path=path,
            collection=parent,
            collection_id=collection_id(parent),
            doc_id=path.rsplit("/", 1)[-1],
            data=resolved,
        ))
    else:
        row.data = resolved


class SqlWriteBatch(WriteBatch):

    def __init__(self, store: "SqlDocumentStore"):
        super().__init__()
        self._store = store

    async def commit(self) -> None:
        now = utc_now()
        with self._store.session_factory() as session:
            try:
                for op, path, fields in self._ops:
                    _write(session, op, path, fields, now)
                    session.flush()
                session.commit()
            except StoreError:
                session.rollback()
                raise
            except SQLAlchemyError as e:
                session.rollback()
                logger.error(f"Batch commit failed: {e}")
                raise _translate(e)
        logger.debug(f"Committed batch of {len(self._ops)} writes")


class SqlDocumentStore(DocumentStore):
    """Document store over a SQLAlchemy session factory."""

    def __init__(self, session_factory):
        self.session_factory = session_factory

    def _run_write(self, op: str, path: str, fields: Optional[Mapping[str, Any]] = None) -> None:
        with self.session_factory() as session:
            try:
                _write(session, op, path, fields, utc_now())
                session.commit()
            except StoreError:
                session.rollback()
                raise
            except SQLAlchemyError as e:
                session.rollback()
                logger.error(f"Error writing {path}: {e}")
                raise _translate(e)

    async def get(self, path: str) -> Optional[StoredDoc]:
        with self.session_factory() as session:
            try:
                row = session.get(StoredDocument, path)
            except SQLAlchemyError as e:
                logger.error(f"Error reading {path}: {e}")
                raise _translate(e)
            return _to_stored_doc(row) if row is not None else None

    async def set(self, path: str, fields: Mapping[str, Any]) -> None:
        self._run_write("set", path, fields)

    async def update(self, path: str, fields: Mapping[str, Any]) -> None:
        self._run_write("update", path, fields)

    async def delete(self, path: str) -> None:
        self._run_write("delete", path)

    async def query(self, query: Query) -> List[StoredDoc]:
        column = StoredDocument.collection_id if query.collection_group else StoredDocument.collection
        with self.session_factory() as session:
            try:
                rows = session.execute(select(StoredDocument).where(column == query.collection)).scalars().all()
            except SQLAlchemyError as e:
                logger.error(f"Error querying {query.collection}: {e}")
                raise _translate(e)
            docs = [_to_stored_doc(row) for row in rows]
        return evaluate_query(docs, query)

    def batch(self) -> SqlWriteBatch:
        return SqlWriteBatch(self)
