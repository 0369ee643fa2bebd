"""Control plane tables: users, user_limits, instances, messages.

- users: operators and clients (role ADMIN|CLIENT)
- user_limits: one ceilings row per user, ceilings >= 1
- instances: gateway instances keyed by unique name, lifecycle state
- messages: append-only send audit; no FK to instances so records
  outlive the instance and keep counting against the daily quota
"""

from __future__ import annotations
from alembic import op
import sqlalchemy as sa

revision = "0001_control_plane"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade():
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(50), nullable=False),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("role", sa.String(16), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_users__role_active", "users", ["role", "is_active"])

    op.create_table(
        "user_limits",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column("user_id", sa.Uuid(as_uuid=True), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True),
        sa.Column("max_instances", sa.Integer(), nullable=False),
        sa.Column("max_messages_per_day", sa.Integer(), nullable=False),
        sa.Column("max_contacts", sa.Integer(), nullable=False),
        sa.Column("max_groups", sa.Integer(), nullable=False),
        sa.Column("can_use_webhooks", sa.Boolean(), nullable=False),
        sa.Column("can_use_integrations", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("max_instances >= 1", name="chk_user_limits_max_instances"),
        sa.CheckConstraint("max_messages_per_day >= 1", name="chk_user_limits_max_messages"),
        sa.CheckConstraint("max_contacts >= 1", name="chk_user_limits_max_contacts"),
        sa.CheckConstraint("max_groups >= 1", name="chk_user_limits_max_groups"),
    )

    op.create_table(
        "instances",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column("owner_id", sa.Uuid(as_uuid=True), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(50), nullable=False, unique=True),
        sa.Column("state", sa.String(16), nullable=False),
        sa.Column("phone_number", sa.String(32), nullable=True),
        sa.Column("pairing_token", sa.String(255), nullable=True),
        sa.Column("integration", sa.String(32), nullable=False),
        sa.Column("settings", sa.JSON(), nullable=False),
        sa.Column("status_failures", sa.Integer(), nullable=False),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("state_changed_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_instances__owner", "instances", ["owner_id"])
    op.create_index("ix_instances__state", "instances", ["state"])

    op.create_table(
        "messages",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column("instance_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("user_id", sa.Uuid(as_uuid=True), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("to_number", sa.String(64), nullable=False),
        sa.Column("from_number", sa.String(64), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("type", sa.String(16), nullable=False),
        sa.Column("media_url", sa.Text(), nullable=True),
        sa.Column("gateway_message_id", sa.String(128), nullable=True),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_messages__user_timestamp", "messages", ["user_id", "timestamp"])
    op.create_index("ix_messages__instance", "messages", ["instance_id"])


def downgrade():
    op.drop_index("ix_messages__instance", table_name="messages")
    op.drop_index("ix_messages__user_timestamp", table_name="messages")
    op.drop_table("messages")
    op.drop_index("ix_instances__state", table_name="instances")
    op.drop_index("ix_instances__owner", table_name="instances")
    op.drop_table("instances")
    op.drop_table("user_limits")
    op.drop_index("ix_users__role_active", table_name="users")
    op.drop_table("users")
