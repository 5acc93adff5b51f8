"""001: create reconciliation_entries

One row per account (or auxiliary document) touched by a transaction that
stopped after some partitions committed. Rows sharing a reference form one
reconciliation record.

Revision ID: 001
Revises:
Create Date: 2026-10-17
"""
from typing import Sequence, Union
from alembic import op

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE reconciliation_entries (
            id              BIGSERIAL PRIMARY KEY,
            reference       VARCHAR(32)  NOT NULL,
            transaction_id  VARCHAR(64)  NOT NULL,
            op              VARCHAR(64)  NOT NULL,
            partition_id    VARCHAR(64)  NOT NULL,
            account_id      BIGINT,
            delta           BIGINT       NOT NULL DEFAULT 0,
            committed       BOOLEAN      NOT NULL,
            reason          TEXT         NOT NULL DEFAULT '',
            resolved        BOOLEAN      NOT NULL DEFAULT FALSE,
            created_at      TIMESTAMPTZ  NOT NULL DEFAULT NOW()
        );
    """)
    op.execute("CREATE INDEX idx_reconciliation_reference ON reconciliation_entries (reference);")
    op.execute("""
        CREATE INDEX idx_reconciliation_unresolved ON reconciliation_entries (created_at)
        WHERE resolved = FALSE;
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS reconciliation_entries;")
