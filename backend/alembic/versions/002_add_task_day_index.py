"""Index tasks by owner and day key for duplicate checks and day queries

Revision ID: 002
Revises: 001
Create Date: 2026-10-12

"""
from typing import Sequence, Union

from alembic import op
from sqlalchemy import text

revision: str = '002'
down_revision: Union[str, None] = '001'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    conn = op.get_bind()

    indexes = {row[1] for row in conn.execute(text("PRAGMA index_list(tasks)")).fetchall()}

    if "idx_tasks_created_at" not in indexes:
        conn.execute(text("CREATE INDEX idx_tasks_created_at ON tasks (created_at)"))
    if "idx_tasks_user_created_at" not in indexes:
        conn.execute(text("CREATE INDEX idx_tasks_user_created_at ON tasks (user_id, created_at)"))


def downgrade() -> None:
    conn = op.get_bind()
    conn.execute(text("DROP INDEX IF EXISTS idx_tasks_user_created_at"))
    conn.execute(text("DROP INDEX IF EXISTS idx_tasks_created_at"))
