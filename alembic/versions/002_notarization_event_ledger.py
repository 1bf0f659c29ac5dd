"""Append-only notarization_event ledger table with NOTIFY trigger.

Revision ID: 002
Revises: 001
Create Date: 2026-10-19

"""

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "002"
down_revision: str | None = "001"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "notarization_event",
        sa.Column("id", sa.BigInteger(), sa.Identity(start=1), primary_key=True),
        sa.Column("sender", sa.String(255), nullable=False),
        sa.Column("recipient", sa.String(255), nullable=False),
        sa.Column("content_identifier", sa.LargeBinary(), nullable=False),
        sa.Column("reference", sa.Text(), nullable=False, server_default=""),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column("tx_ref", sa.String(255), nullable=False),
        sa.CheckConstraint(
            "octet_length(content_identifier) = 32",
            name="ck_notarization_event_identifier_length",
        ),
    )
    op.create_index("ix_notarization_event_recipient", "notarization_event", [sa.text("lower(recipient)")])

    # rows are facts: reject updates and deletes
    op.execute(
        """
        CREATE FUNCTION notarization_event_immutable() RETURNS trigger AS $$
        BEGIN
            RAISE EXCEPTION 'notarization_event is append-only';
        END;
        $$ LANGUAGE plpgsql
        """
    )
    op.execute(
        """
        CREATE TRIGGER notarization_event_no_change
        BEFORE UPDATE OR DELETE ON notarization_event
        FOR EACH ROW EXECUTE FUNCTION notarization_event_immutable()
        """
    )
    op.execute(
        """
        CREATE FUNCTION notarization_event_notify() RETURNS trigger AS $$
        BEGIN
            PERFORM pg_notify('notarization_event', NEW.id::text);
            RETURN NEW;
        END;
        $$ LANGUAGE plpgsql
        """
    )
    op.execute(
        """
        CREATE TRIGGER notarization_event_appended
        AFTER INSERT ON notarization_event
        FOR EACH ROW EXECUTE FUNCTION notarization_event_notify()
        """
    )


def downgrade() -> None:
    op.execute("DROP TRIGGER IF EXISTS notarization_event_appended ON notarization_event")
    op.execute("DROP TRIGGER IF EXISTS notarization_event_no_change ON notarization_event")
    op.execute("DROP FUNCTION IF EXISTS notarization_event_notify()")
    op.execute("DROP FUNCTION IF EXISTS notarization_event_immutable()")
    op.drop_index("ix_notarization_event_recipient", table_name="notarization_event")
    op.drop_table("notarization_event")
