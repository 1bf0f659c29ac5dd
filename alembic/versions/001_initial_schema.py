"""Initial schema - stored_document content store.

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "stored_document",
        sa.Column("content_identifier", sa.LargeBinary(), primary_key=True),
        sa.Column("data", sa.LargeBinary(), nullable=False),
        sa.Column("mime_type", sa.String(255), nullable=False),
        sa.Column("file_name", sa.String(1024), nullable=False),
        sa.Column("owner", sa.String(255), nullable=False),
        sa.Column("stored_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "octet_length(content_identifier) = 32",
            name="ck_stored_document_identifier_length",
        ),
    )
    op.create_index(
        "ix_stored_document_owner_stored_at",
        "stored_document",
        ["owner", "stored_at", "content_identifier"],
    )


def downgrade() -> None:
    op.drop_index("ix_stored_document_owner_stored_at", table_name="stored_document")
    op.drop_table("stored_document")
