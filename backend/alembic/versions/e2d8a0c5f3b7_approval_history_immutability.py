"""approval_history_immutability

Revision ID: e2d8a0c5f3b7
Revises: 7b1e4c2a9d10
Create Date: 2026-10-12 09:35:00.000000

Append-only history at the DB level:
- Revoke UPDATE and DELETE on approval_history and audit_logs from PUBLIC
- Grant SELECT and INSERT only

approval_items stays mutable; its status/level/version columns are the
current projection of the history rows.
"""
from typing import Sequence, Union

from alembic import op


# revision identifiers, used by Alembic.
revision: str = 'e2d8a0c5f3b7'
down_revision: Union[str, None] = '7b1e4c2a9d10'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

_APPEND_ONLY = ("approval_history", "audit_logs")


def upgrade() -> None:
    for table in _APPEND_ONLY:
        op.execute(f"REVOKE UPDATE, DELETE ON {table} FROM PUBLIC;")
        op.execute(f"GRANT SELECT, INSERT ON {table} TO PUBLIC;")


def downgrade() -> None:
    # Restore full DML access (only for disaster-recovery; normally never run)
    for table in _APPEND_ONLY:
        op.execute(f"GRANT UPDATE, DELETE ON {table} TO PUBLIC;")
