from sqlalchemy import Column, String, DateTime, JSON, Index
from sqlalchemy.sql import func
from ubconnect.database import Base


class StoredDocument(Base):
    """One document of the SQL-backed document store, addressed by its full path."""
    __tablename__ = "documents"

    path = Column(String(512), primary_key=True)
    # Parent collection path, e.g. "connectEvents/e1/comments"
    collection = Column(String(512), nullable=False, index=True)
    # Last segment of the collection path, for collection-group queries
    collection_id = Column(String(128), nullable=False, index=True)
    doc_id = Column(String(256), nullable=False)
    data = Column(JSON, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index("ix_documents_collection_doc_id", "collection", "doc_id"),
    )

    def __repr__(self):
        return f"<StoredDocument path={self.path}>"
