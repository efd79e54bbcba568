"""Create otp table

Revision ID: 002
Revises: 001
Create Date: 2026-10-17

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

revision: str = "002"
down_revision: str | None = "001"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "otp",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column(
            "purpose",
            sa.Enum("EMAIL_VERIFICATION", "PASSWORD_RESET", "PHONE_VERIFICATION", name="otp_purpose"),
            nullable=False,
        ),
        sa.Column("code_hash", sa.String(length=64), nullable=False),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.Column("is_used", sa.Boolean(), nullable=False, server_default="0"),
        sa.Column("used_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["user.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_otp_user_id"), "otp", ["user_id"], unique=False)
    op.create_index(op.f("ix_otp_expires_at"), "otp", ["expires_at"], unique=False)
    # At most one unused code per (user, purpose)
    op.create_index(
        "uq_otp_active_user_purpose",
        "otp",
        ["user_id", "purpose"],
        unique=True,
        sqlite_where=sa.text("is_used = 0"),
        postgresql_where=sa.text("is_used = false"),
    )


def downgrade() -> None:
    op.drop_index("uq_otp_active_user_purpose", table_name="otp")
    op.drop_index(op.f("ix_otp_expires_at"), table_name="otp")
    op.drop_index(op.f("ix_otp_user_id"), table_name="otp")
    op.drop_table("otp")
    sa.Enum(name="otp_purpose").drop(op.get_bind(), checkfirst=True)
