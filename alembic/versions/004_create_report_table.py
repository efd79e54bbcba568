"""Create report table

Revision ID: 004
Revises: 003
Create Date: 2026-10-17

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

revision: str = "004"
down_revision: str | None = "003"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "report",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=256), nullable=False),
        sa.Column("date", sa.DateTime(), nullable=False),
        sa.Column("sensor_data", sa.JSON(), nullable=False),
        sa.Column("calculation_data", sa.JSON(), nullable=False),
        sa.Column("selected_crop", sa.JSON(), nullable=False),
        sa.Column("crop_recommendations", sa.JSON(), nullable=False),
        sa.Column("fertilizer_recommendation", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["user.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_report_user_id"), "report", ["user_id"], unique=False)


def downgrade() -> None:
    op.drop_index(op.f("ix_report_user_id"), table_name="report")
    op.drop_table("report")
