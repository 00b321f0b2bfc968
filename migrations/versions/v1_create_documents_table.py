"""Create documents table

Revision ID: v1
Revises:
Create Date: 2026-10-19 00:00:00

Backing table for the SQL document store: one row per document, keyed by path
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'v1'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "documents",
        sa.Column("path", sa.String(512), nullable=False),
        sa.Column("collection", sa.String(512), nullable=False),
        sa.Column("collection_id", sa.String(128), nullable=False),
        sa.Column("doc_id", sa.String(256), nullable=False),
        sa.Column("data", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now(), nullable=True),
        sa.PrimaryKeyConstraint("path"),
    )
    op.create_index(op.f("ix_documents_collection"), "documents", ["collection"], unique=False)
    op.create_index(op.f("ix_documents_collection_id"), "documents", ["collection_id"], unique=False)
    op.create_index("ix_documents_collection_doc_id", "documents", ["collection", "doc_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_documents_collection_doc_id", table_name="documents")
    op.drop_index(op.f("ix_documents_collection_id"), table_name="documents")
    op.drop_index(op.f("ix_documents_collection"), table_name="documents")
    op.drop_table("documents")
