"""initial schema: users, creators, auth_sessions, tips

Revision ID: 0001
Revises:
Create Date: 2026-10-19 09:00:00
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

TIP_STATUSES = (
    "initiated",
    "awaiting_provider",
    "settled",
    "failed_initiation",
    "error_initiation",
)
PAYMENT_PROVIDERS = ("flutterwave", "direct")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(128), primary_key=True),
        sa.Column("username", sa.String(100), nullable=True),
        sa.Column("full_name", sa.String(200), nullable=True),
        sa.Column("email", sa.String(320), nullable=True),
        sa.Column("phone_number", sa.String(20), nullable=True),
        sa.Column("is_creator", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
    )

    op.create_table(
        "creators",
        sa.Column("id", sa.String(128), primary_key=True),
        sa.Column(
            "user_id",
            sa.String(128),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        sa.Column("tip_handle", sa.String(100), nullable=False, unique=True),
        sa.Column("full_name", sa.String(200), nullable=True),
        sa.Column("bio", sa.Text(), nullable=True),
        sa.Column("category", sa.String(50), nullable=False, server_default="Other"),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("featured", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("total_tips", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "total_amount_received",
            sa.Numeric(14, 2),
            nullable=False,
            server_default="0",
        ),
        *_timestamps(),
    )

    op.create_table(
        "auth_sessions",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "user_id",
            sa.String(128),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_auth_sessions_user_id", "auth_sessions", ["user_id"])

    op.create_table(
        "tips",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("tx_ref", sa.String(64), nullable=False, unique=True),
        sa.Column("from_user_id", sa.String(128), nullable=False),
        sa.Column("from_username", sa.String(200), nullable=False),
        sa.Column("to_creator_id", sa.String(128), nullable=False),
        sa.Column("to_creator_handle", sa.String(100), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("platform_fee", sa.Numeric(12, 2), nullable=False),
        sa.Column("creator_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False, server_default="KES"),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("mpesa_phone", sa.String(20), nullable=True),
        sa.Column(
            "payment_provider",
            sa.Enum(*PAYMENT_PROVIDERS, name="payment_provider", native_enum=False),
            nullable=False,
        ),
        sa.Column(
            "status",
            sa.Enum(*TIP_STATUSES, name="tip_status", native_enum=False),
            nullable=False,
        ),
        sa.Column("settled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("provider_response", postgresql.JSONB(), nullable=True),
        sa.Column("provider_error", postgresql.JSONB(), nullable=True),
        sa.Column("last_error", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_tips_from_user_created", "tips", ["from_user_id", "created_at"])
    op.create_index("ix_tips_to_creator_created", "tips", ["to_creator_id", "created_at"])


def downgrade() -> None:
    op.drop_index("ix_tips_to_creator_created", table_name="tips")
    op.drop_index("ix_tips_from_user_created", table_name="tips")
    op.drop_table("tips")
    op.drop_index("ix_auth_sessions_user_id", table_name="auth_sessions")
    op.drop_table("auth_sessions")
    op.drop_table("creators")
    op.drop_table("users")
