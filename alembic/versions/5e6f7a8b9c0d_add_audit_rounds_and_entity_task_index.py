"""Add audit rounds and the entity-level pending task index

Revision ID: 5e6f7a8b9c0d
Revises: 0a1b2c3d4e5f
Create Date: 2026-10-18
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "5e6f7a8b9c0d"
down_revision: Union[str, Sequence[str], None] = "0a1b2c3d4e5f"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.add_column("cases", sa.Column("audit_round", sa.Integer(), nullable=False, server_default="1"))
    op.add_column("documents", sa.Column("audit_round", sa.Integer(), nullable=False, server_default="1"))
    op.add_column("events", sa.Column("audit_round", sa.Integer(), nullable=True))
    # Existing case events belong to the first round.
    op.execute("UPDATE events SET audit_round = 1 WHERE case_id IS NOT NULL")

    op.create_index(
        "uq_tasks_pending_entity_level",
        "tasks",
        ["type", "entity_id"],
        unique=True,
        sqlite_where=sa.text("status = 'PENDING' AND case_id IS NULL"),
        postgresql_where=sa.text("status = 'PENDING' AND case_id IS NULL"),
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index("uq_tasks_pending_entity_level", table_name="tasks")
    op.drop_column("events", "audit_round")
    op.drop_column("documents", "audit_round")
    op.drop_column("cases", "audit_round")
