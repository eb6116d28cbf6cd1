"""Initial schema — profiles, connections, syncs, references, events, trips, moderation.

Revision ID: 001_initial
Revises: None
Create Date: 2026-10-17

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now(),
    )


def _updated_at() -> sa.Column:
    return sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True)


def upgrade() -> None:
    # ─── Members ─────────────────────────────────────────────────
    op.create_table(
        "profiles",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column("display_name", sa.String(120), nullable=True),
        sa.Column("email_confirmed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_verified_organizer", sa.Boolean, nullable=False, server_default="false"),
        _created_at(),
    )

    op.create_table(
        "admins",
        sa.Column("user_id", sa.Uuid(as_uuid=True), primary_key=True),
        _created_at(),
    )

    # ─── Connections and syncs ───────────────────────────────────
    op.create_table(
        "connections",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column("requester_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("target_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("blocked_by", sa.Uuid(as_uuid=True), nullable=True),
        sa.Column("connect_context", sa.String(40), nullable=True),
        sa.Column("connect_reason", sa.Text, nullable=True),
        sa.Column("connect_reason_role", sa.String(40), nullable=True),
        sa.Column("connect_note", sa.Text, nullable=True),
        sa.Column("trip_id", sa.Uuid(as_uuid=True), nullable=True),
        _created_at(),
        _updated_at(),
    )
    op.create_index(
        "ix_connections_requester_target", "connections", ["requester_id", "target_id"],
    )

    op.create_table(
        "connection_syncs",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column(
            "connection_id", sa.Uuid(as_uuid=True),
            sa.ForeignKey("connections.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("requester_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("recipient_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("sync_type", sa.String(30), nullable=False, server_default="training"),
        sa.Column("scheduled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("note", sa.Text, nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        _updated_at(),
    )
    op.create_index(
        "ix_connection_syncs_connection_id", "connection_syncs", ["connection_id"],
    )

    op.create_table(
        "syncs",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column(
            "connection_id", sa.Uuid(as_uuid=True),
            sa.ForeignKey("connections.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("completed_by", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column(
            "completed_at", sa.DateTime(timezone=True), nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column("note", sa.Text, nullable=True),
        sa.UniqueConstraint("connection_id", "completed_by", name="uq_syncs_connection_member"),
    )

    # ─── References ──────────────────────────────────────────────
    op.create_table(
        "references",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column(
            "connection_id", sa.Uuid(as_uuid=True),
            sa.ForeignKey("connections.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("author_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("recipient_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("context", sa.String(20), nullable=False, server_default="connection"),
        sa.Column("entity_type", sa.String(20), nullable=False, server_default="connection"),
        sa.Column("entity_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column(
            "sync_id", sa.Uuid(as_uuid=True),
            sa.ForeignKey("syncs.id", ondelete="SET NULL"), nullable=True,
        ),
        sa.Column("sentiment", sa.String(20), nullable=False),
        sa.Column("rating", sa.Integer, nullable=True),
        sa.Column("body", sa.Text, nullable=False),
        sa.Column("edit_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("last_edited_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reply_text", sa.Text, nullable=True),
        sa.Column("replied_by", sa.Uuid(as_uuid=True), nullable=True),
        sa.Column("replied_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        _updated_at(),
        sa.UniqueConstraint(
            "entity_type", "entity_id", "author_id", name="uq_references_entity_author",
        ),
    )
    op.create_index("ix_references_connection_id", "references", ["connection_id"])
    op.create_index("ix_references_recipient_id", "references", ["recipient_id"])

    # ─── Notifications ───────────────────────────────────────────
    op.create_table(
        "notifications",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column("user_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("actor_id", sa.Uuid(as_uuid=True), nullable=True),
        sa.Column("kind", sa.String(40), nullable=False),
        sa.Column("title", sa.Text, nullable=False),
        sa.Column("body", sa.Text, nullable=True),
        sa.Column("link_url", sa.Text, nullable=True),
        sa.Column("metadata", sa.JSON, nullable=False, server_default=sa.text("'{}'")),
        sa.Column("is_read", sa.Boolean, nullable=False, server_default="false"),
        _created_at(),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"])

    # ─── Events ──────────────────────────────────────────────────
    op.create_table(
        "events",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column("host_user_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("title", sa.Text, nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("event_type", sa.String(40), nullable=False, server_default="Social"),
        sa.Column("styles", sa.JSON, nullable=False, server_default=sa.text("'[]'")),
        sa.Column("visibility", sa.String(20), nullable=False, server_default="public"),
        sa.Column("city", sa.String(120), nullable=False),
        sa.Column("country", sa.String(120), nullable=False),
        sa.Column("venue_name", sa.Text, nullable=True),
        sa.Column("venue_address", sa.Text, nullable=True),
        sa.Column("starts_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("ends_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("capacity", sa.Integer, nullable=True),
        sa.Column("cover_url", sa.Text, nullable=True),
        sa.Column("cover_status", sa.String(20), nullable=False, server_default="approved"),
        sa.Column("cover_reviewed_by", sa.Uuid(as_uuid=True), nullable=True),
        sa.Column("cover_reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cover_review_note", sa.Text, nullable=True),
        sa.Column("links", sa.JSON, nullable=False, server_default=sa.text("'[]'")),
        sa.Column("status", sa.String(20), nullable=False, server_default="published"),
        sa.Column("hidden_by_admin", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("hidden_reason", sa.Text, nullable=True),
        sa.Column("hidden_by", sa.Uuid(as_uuid=True), nullable=True),
        sa.Column("hidden_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        _updated_at(),
    )
    op.create_index("ix_events_host_user_id", "events", ["host_user_id"])

    op.create_table(
        "event_members",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column(
            "event_id", sa.Uuid(as_uuid=True),
            sa.ForeignKey("events.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("user_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("member_role", sa.String(20), nullable=False, server_default="guest"),
        sa.Column("status", sa.String(20), nullable=False),
        _created_at(),
        _updated_at(),
        sa.UniqueConstraint("event_id", "user_id", name="uq_event_members_event_user"),
    )
    op.create_index("ix_event_members_user_id", "event_members", ["user_id"])

    op.create_table(
        "event_requests",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column(
            "event_id", sa.Uuid(as_uuid=True),
            sa.ForeignKey("events.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("requester_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("note", sa.Text, nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("decided_by", sa.Uuid(as_uuid=True), nullable=True),
        sa.Column("decided_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        _updated_at(),
        sa.UniqueConstraint(
            "event_id", "requester_id", name="uq_event_requests_event_requester",
        ),
    )

    op.create_table(
        "event_feedback",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column(
            "event_id", sa.Uuid(as_uuid=True),
            sa.ForeignKey("events.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("author_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("happened_as_described", sa.Boolean, nullable=False),
        sa.Column("quality", sa.Integer, nullable=False),
        sa.Column("note", sa.Text, nullable=True),
        sa.Column("visibility", sa.String(20), nullable=False, server_default="private"),
        _created_at(),
        _updated_at(),
        sa.UniqueConstraint("event_id", "author_id", name="uq_event_feedback_event_author"),
    )

    op.create_table(
        "event_reports",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column(
            "event_id", sa.Uuid(as_uuid=True),
            sa.ForeignKey("events.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("reporter_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("reason", sa.Text, nullable=False),
        sa.Column("note", sa.Text, nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="open"),
        _created_at(),
    )

    op.create_table(
        "event_edit_logs",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column(
            "event_id", sa.Uuid(as_uuid=True),
            sa.ForeignKey("events.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("editor_id", sa.Uuid(as_uuid=True), nullable=False),
        _created_at(),
    )
    op.create_index("ix_event_edit_logs_editor_id", "event_edit_logs", ["editor_id"])

    # ─── Moderation ──────────────────────────────────────────────
    op.create_table(
        "reports",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column("reporter_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("target_user_id", sa.Uuid(as_uuid=True), nullable=True),
        sa.Column("context", sa.String(40), nullable=False, server_default="connection"),
        sa.Column("context_id", sa.String(64), nullable=True),
        sa.Column("reason", sa.Text, nullable=False),
        sa.Column("note", sa.Text, nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="open"),
        _created_at(),
        _updated_at(),
    )

    op.create_table(
        "moderation_logs",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column("report_id", sa.Uuid(as_uuid=True), nullable=True),
        sa.Column("actor_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("target_user_id", sa.Uuid(as_uuid=True), nullable=True),
        sa.Column("action", sa.String(40), nullable=False),
        sa.Column("reason", sa.Text, nullable=True),
        sa.Column("note", sa.Text, nullable=True),
        sa.Column("metadata", sa.JSON, nullable=False, server_default=sa.text("'{}'")),
        _created_at(),
    )

    # ─── Trips and threads ───────────────────────────────────────
    op.create_table(
        "trips",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column("user_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("destination_city", sa.String(120), nullable=False),
        sa.Column("destination_country", sa.String(120), nullable=False),
        sa.Column("start_date", sa.Date, nullable=False),
        sa.Column("end_date", sa.Date, nullable=False),
        sa.Column("purpose", sa.String(60), nullable=True),
        sa.Column("styles", sa.JSON, nullable=False, server_default=sa.text("'[]'")),
        sa.Column("looking_for", sa.JSON, nullable=False, server_default=sa.text("'[]'")),
        sa.Column("note", sa.Text, nullable=True),
        sa.Column("status", sa.String(20), nullable=True, server_default="active"),
        _created_at(),
    )
    op.create_index("ix_trips_user_id", "trips", ["user_id"])

    op.create_table(
        "trip_requests",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column(
            "trip_id", sa.Uuid(as_uuid=True),
            sa.ForeignKey("trips.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("requester_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("note", sa.Text, nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("decided_by", sa.Uuid(as_uuid=True), nullable=True),
        sa.Column("decided_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        _updated_at(),
        sa.UniqueConstraint("trip_id", "requester_id", name="uq_trip_requests_trip_requester"),
    )

    op.create_table(
        "threads",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column("thread_type", sa.String(20), nullable=False),
        sa.Column(
            "trip_id", sa.Uuid(as_uuid=True),
            sa.ForeignKey("trips.id", ondelete="CASCADE"), nullable=True, unique=True,
        ),
        sa.Column("connection_id", sa.Uuid(as_uuid=True), nullable=True),
        sa.Column("created_by", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column(
            "last_message_at", sa.DateTime(timezone=True), nullable=False,
            server_default=sa.func.now(),
        ),
        _created_at(),
        _updated_at(),
    )

    op.create_table(
        "thread_participants",
        sa.Column(
            "thread_id", sa.Uuid(as_uuid=True),
            sa.ForeignKey("threads.id", ondelete="CASCADE"), primary_key=True,
        ),
        sa.Column("user_id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column("role", sa.String(20), nullable=False, server_default="member"),
        sa.Column("last_read_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "joined_at", sa.DateTime(timezone=True), nullable=False,
            server_default=sa.func.now(),
        ),
    )


def downgrade() -> None:
    for table in (
        "thread_participants", "threads", "trip_requests", "trips",
        "moderation_logs", "reports",
        "event_edit_logs", "event_reports", "event_feedback", "event_requests",
        "event_members", "events",
        "notifications", "references", "syncs", "connection_syncs", "connections",
        "admins", "profiles",
    ):
        op.drop_table(table)
