"""Create accounts, sessions, connection and notification tables

Revision ID: 001
Revises: None
Create Date: 2026-10-17 00:00:00.000000+00:00

What:  Initial schema: accounts, account_sessions, connection_requests and
       notifications, with their constraints and query indexes.

Enum-valued columns are stored as VARCHAR (non-native enums), so adding a
notification type later needs no ALTER TYPE.

Rollback: downgrade() drops all four tables (destructive).
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "accounts",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("email", sa.String(255), nullable=False, comment="Lower-cased email address"),
        sa.Column("display_name", sa.String(100), nullable=False),
        sa.Column("role", sa.String(20), nullable=False),
        sa.Column("bio", sa.Text(), nullable=True),
        sa.Column("specializations", sa.JSON(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("is_verified", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("connections_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.PrimaryKeyConstraint("id", name="pk_accounts"),
        sa.UniqueConstraint("email", name="uq_accounts_email"),
    )
    op.create_index("idx_accounts_role_active", "accounts", ["role", "is_active", "is_verified"])

    op.create_table(
        "account_sessions",
        sa.Column("token", sa.String(128), nullable=False),
        sa.Column("account_id", sa.Uuid(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("token", name="pk_account_sessions"),
        sa.ForeignKeyConstraint(["account_id"], ["accounts.id"], name="fk_sessions_account"),
    )
    op.create_index("ix_account_sessions_account_id", "account_sessions", ["account_id"])

    op.create_table(
        "connection_requests",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("requester_id", sa.Uuid(), nullable=False),
        sa.Column("recipient_id", sa.Uuid(), nullable=False),
        sa.Column(
            "pair_key",
            sa.String(80),
            nullable=False,
            comment="Unordered pair '<low-id>:<high-id>'",
        ),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("message", sa.String(200), nullable=False, server_default=sa.text("''")),
        sa.Column("accepted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_interaction_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.PrimaryKeyConstraint("id", name="pk_connection_requests"),
        sa.ForeignKeyConstraint(["requester_id"], ["accounts.id"], name="fk_connections_requester"),
        sa.ForeignKeyConstraint(["recipient_id"], ["accounts.id"], name="fk_connections_recipient"),
        sa.UniqueConstraint("pair_key", name="uq_connection_requests_pair_key"),
        sa.CheckConstraint("requester_id <> recipient_id", name="ck_connection_not_self"),
    )
    op.create_index(
        "idx_connections_recipient_status", "connection_requests", ["recipient_id", "status"]
    )
    op.create_index(
        "idx_connections_requester_status", "connection_requests", ["requester_id", "status"]
    )
    op.create_index(
        "idx_connections_status_created", "connection_requests", ["status", "created_at"]
    )

    op.create_table(
        "notifications",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("recipient_id", sa.Uuid(), nullable=False),
        sa.Column("sender_id", sa.Uuid(), nullable=True),
        sa.Column("type", sa.String(40), nullable=False),
        sa.Column("title", sa.String(100), nullable=False),
        sa.Column("message", sa.String(300), nullable=False),
        sa.Column("related_entity_id", sa.Uuid(), nullable=True),
        sa.Column("related_entity_type", sa.String(20), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("priority", sa.String(20), nullable=False),
        sa.Column(
            "action_data",
            sa.JSON().with_variant(postgresql.JSONB(), "postgresql"),
            nullable=False,
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.PrimaryKeyConstraint("id", name="pk_notifications"),
        sa.ForeignKeyConstraint(["recipient_id"], ["accounts.id"], name="fk_notifications_recipient"),
        sa.ForeignKeyConstraint(["sender_id"], ["accounts.id"], name="fk_notifications_sender"),
    )
    op.create_index(
        "idx_notifications_recipient_read",
        "notifications",
        ["recipient_id", "is_read", "created_at"],
    )
    op.create_index(
        "idx_notifications_recipient_type",
        "notifications",
        ["recipient_id", "type", "created_at"],
    )
    op.create_index("idx_notifications_sender_type", "notifications", ["sender_id", "type"])


def downgrade() -> None:
    op.drop_index("idx_notifications_sender_type", table_name="notifications")
    op.drop_index("idx_notifications_recipient_type", table_name="notifications")
    op.drop_index("idx_notifications_recipient_read", table_name="notifications")
    op.drop_table("notifications")

    op.drop_index("idx_connections_status_created", table_name="connection_requests")
    op.drop_index("idx_connections_requester_status", table_name="connection_requests")
    op.drop_index("idx_connections_recipient_status", table_name="connection_requests")
    op.drop_table("connection_requests")

    op.drop_index("ix_account_sessions_account_id", table_name="account_sessions")
    op.drop_table("account_sessions")

    op.drop_index("idx_accounts_role_active", table_name="accounts")
    op.drop_table("accounts")
