from ubconnect.store.base import (
    SERVER_TIMESTAMP, DocumentStore, Query, StoredDoc, WriteBatch, doc_path,
)
from ubconnect.store.memory import MemoryDocumentStore

__all__ = [
    "SERVER_TIMESTAMP", "DocumentStore", "Query", "StoredDoc", "WriteBatch", "doc_path",
    "MemoryDocumentStore",
]
