"""Users with email verification, password reset and token version columns.

Revision ID: 001
Revises:
Create Date: 2025-03-01

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("token_version", sa.Integer(), server_default="0", nullable=False),
        sa.Column("is_email_verified", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("email_verification_code", sa.String(6), nullable=True),
        sa.Column("email_verification_expiry", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reset_password_token", sa.String(64), nullable=True),
        sa.Column("reset_password_expiry", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_login", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "(email_verification_code IS NULL) = (email_verification_expiry IS NULL)",
            name="ck_users_email_verification_pair",
        ),
        sa.CheckConstraint(
            "(reset_password_token IS NULL) = (reset_password_expiry IS NULL)",
            name="ck_users_reset_password_pair",
        ),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_reset_password_token", "users", ["reset_password_token"])


def downgrade() -> None:
    op.drop_index("ix_users_reset_password_token", table_name="users")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
