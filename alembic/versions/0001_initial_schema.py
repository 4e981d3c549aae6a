"""Create push administration tables"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None

_NOW = sa.text("timezone('utc', now())")


def upgrade() -> None:
    op.create_table(
        "tenants",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=_NOW, nullable=False),
    )

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenants.id", ondelete="CASCADE"), nullable=True),
        sa.Column("subscription", sa.Text(), nullable=False),
        sa.Column("endpoint", sa.Text(), nullable=False),
        sa.Column("device_type", sa.String(length=20), nullable=True),
        sa.Column("browser", sa.String(length=20), nullable=True),
        sa.Column("user_agent", sa.String(length=255), nullable=True),
        sa.Column("engagement_score", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=_NOW, nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=_NOW, nullable=False),
    )
    op.create_unique_constraint("uq_users_endpoint", "users", ["endpoint"])
    op.create_index("ix_users_tenant_id", "users", ["tenant_id"], unique=False)
    op.create_index("ix_users_device_type", "users", ["device_type"], unique=False)
    op.create_index("ix_users_browser", "users", ["browser"], unique=False)
    op.create_index("ix_users_created_at", "users", ["created_at"], unique=False)

    op.create_table(
        "user_segments",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenants.id", ondelete="CASCADE"), nullable=True),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), server_default=sa.text("''"), nullable=False),
        sa.Column("filter_conditions", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("is_dynamic", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=_NOW, nullable=False),
        sa.UniqueConstraint("tenant_id", "name", name="uq_user_segments_tenant_name"),
    )
    op.create_index("ix_user_segments_tenant_id", "user_segments", ["tenant_id"], unique=False)

    op.create_table(
        "step_sequences",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenants.id", ondelete="CASCADE"), nullable=True),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), server_default=sa.text("''"), nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=_NOW, nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=_NOW, nullable=False),
    )
    op.create_index("ix_step_sequences_tenant_id", "step_sequences", ["tenant_id"], unique=False)

    op.create_table(
        "step_notifications",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column(
            "sequence_id",
            sa.Integer(),
            sa.ForeignKey("step_sequences.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("step_order", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(length=100), nullable=False),
        sa.Column("body", sa.String(length=500), nullable=False),
        sa.Column("url", sa.Text(), server_default=sa.text("''"), nullable=False),
        sa.Column("delay_type", sa.String(length=20), nullable=False),
        sa.Column("delay_value", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("scheduled_time", sa.String(length=8), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=_NOW, nullable=False),
        sa.UniqueConstraint("sequence_id", "step_order", name="uq_step_notifications_sequence_order"),
        sa.CheckConstraint("step_order >= 1", name="ck_step_notifications_step_order_positive"),
    )
    op.create_index("ix_step_notifications_sequence_id", "step_notifications", ["sequence_id"], unique=False)

    op.create_table(
        "user_step_progress",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "sequence_id",
            sa.Integer(),
            sa.ForeignKey("step_sequences.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("current_step", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("next_notification_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=_NOW, nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=_NOW, nullable=False),
        sa.UniqueConstraint("user_id", "sequence_id", name="uq_user_step_progress_user_sequence"),
        sa.CheckConstraint("current_step >= 0", name="ck_user_step_progress_current_step"),
    )
    op.create_index("ix_user_step_progress_user_id", "user_step_progress", ["user_id"], unique=False)
    op.create_index("ix_user_step_progress_sequence_id", "user_step_progress", ["sequence_id"], unique=False)
    op.create_index("ix_user_step_progress_completed", "user_step_progress", ["completed"], unique=False)
    op.create_index(
        "ix_user_step_progress_next_notification_at",
        "user_step_progress",
        ["next_notification_at"],
        unique=False,
    )

    op.create_table(
        "step_notification_logs",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "sequence_id",
            sa.Integer(),
            sa.ForeignKey("step_sequences.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "step_notification_id",
            sa.Integer(),
            sa.ForeignKey("step_notifications.id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column("step_order", sa.Integer(), nullable=False),
        sa.Column("success", sa.Boolean(), nullable=False),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("sent_at", sa.DateTime(timezone=True), server_default=_NOW, nullable=False),
    )
    op.create_index("ix_step_notification_logs_user_id", "step_notification_logs", ["user_id"], unique=False)
    op.create_index(
        "ix_step_notification_logs_sequence_id", "step_notification_logs", ["sequence_id"], unique=False
    )

    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenants.id", ondelete="CASCADE"), nullable=True),
        sa.Column("title", sa.String(length=100), nullable=False),
        sa.Column("body", sa.String(length=500), nullable=False),
        sa.Column("url", sa.Text(), server_default=sa.text("''"), nullable=False),
        sa.Column("send_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("target_type", sa.String(length=20), server_default=sa.text("'all'"), nullable=False),
        sa.Column(
            "target_segment_id",
            sa.Integer(),
            sa.ForeignKey("user_segments.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("target_filter", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("target_user_count", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("sent", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("status", sa.String(length=20), server_default=sa.text("'scheduled'"), nullable=False),
        sa.Column("success_count", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("failure_count", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_by", sa.String(length=200), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=_NOW, nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=_NOW, nullable=False),
    )
    op.create_index("ix_notifications_tenant_id", "notifications", ["tenant_id"], unique=False)
    op.create_index("ix_notifications_send_at", "notifications", ["send_at"], unique=False)
    op.create_index("ix_notifications_sent", "notifications", ["sent"], unique=False)

    op.create_table(
        "notification_events",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("notification_id", sa.Integer(), nullable=False),
        sa.Column(
            "notification_type", sa.String(length=20), server_default=sa.text("'scheduled'"), nullable=False
        ),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("event_type", sa.String(length=20), nullable=False),
        sa.Column(
            "metadata",
            postgresql.JSONB(astext_type=sa.Text()),
            server_default=sa.text("'{}'::jsonb"),
            nullable=False,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=_NOW, nullable=False),
    )
    op.create_index(
        "ix_notification_events_notification_id", "notification_events", ["notification_id"], unique=False
    )
    op.create_index("ix_notification_events_user_id", "notification_events", ["user_id"], unique=False)
    op.create_index("ix_notification_events_event_type", "notification_events", ["event_type"], unique=False)

    op.create_table(
        "notification_stats",
        sa.Column("notification_id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column(
            "notification_type", sa.String(length=20), server_default=sa.text("'scheduled'"), nullable=False
        ),
        sa.Column("tenant_id", sa.Integer(), nullable=True),
        sa.Column("total_sent", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("total_delivered", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("total_opened", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("total_clicked", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("total_dismissed", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("open_rate", sa.Float(), server_default=sa.text("0"), nullable=False),
        sa.Column("ctr", sa.Float(), server_default=sa.text("0"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=_NOW, nullable=False),
    )
    op.create_index("ix_notification_stats_tenant_id", "notification_stats", ["tenant_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_notification_stats_tenant_id", table_name="notification_stats")
    op.drop_table("notification_stats")

    op.drop_index("ix_notification_events_event_type", table_name="notification_events")
    op.drop_index("ix_notification_events_user_id", table_name="notification_events")
    op.drop_index("ix_notification_events_notification_id", table_name="notification_events")
    op.drop_table("notification_events")

    op.drop_index("ix_notifications_sent", table_name="notifications")
    op.drop_index("ix_notifications_send_at", table_name="notifications")
    op.drop_index("ix_notifications_tenant_id", table_name="notifications")
    op.drop_table("notifications")

    op.drop_index("ix_step_notification_logs_sequence_id", table_name="step_notification_logs")
    op.drop_index("ix_step_notification_logs_user_id", table_name="step_notification_logs")
    op.drop_table("step_notification_logs")

    op.drop_index("ix_user_step_progress_next_notification_at", table_name="user_step_progress")
    op.drop_index("ix_user_step_progress_completed", table_name="user_step_progress")
    op.drop_index("ix_user_step_progress_sequence_id", table_name="user_step_progress")
    op.drop_index("ix_user_step_progress_user_id", table_name="user_step_progress")
    op.drop_table("user_step_progress")

    op.drop_index("ix_step_notifications_sequence_id", table_name="step_notifications")
    op.drop_table("step_notifications")

    op.drop_index("ix_step_sequences_tenant_id", table_name="step_sequences")
    op.drop_table("step_sequences")

    op.drop_index("ix_user_segments_tenant_id", table_name="user_segments")
    op.drop_table("user_segments")

    op.drop_index("ix_users_created_at", table_name="users")
    op.drop_index("ix_users_browser", table_name="users")
    op.drop_index("ix_users_device_type", table_name="users")
    op.drop_index("ix_users_tenant_id", table_name="users")
    op.drop_constraint("uq_users_endpoint", "users", type_="unique")
    op.drop_table("users")

    op.drop_table("tenants")
