"""Thread messages and daily message limits; one thread per connection.

Revision ID: 002_thread_messages
Revises: 001_initial
Create Date: 2026-10-17

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "002_thread_messages"
down_revision: Union[str, None] = "001_initial"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_foreign_key(
        "fk_threads_connection_id", "threads", "connections",
        ["connection_id"], ["id"], ondelete="CASCADE",
    )
    op.create_index("ux_threads_connection", "threads", ["connection_id"], unique=True)

    op.create_table(
        "thread_messages",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column(
            "thread_id", sa.Uuid(as_uuid=True),
            sa.ForeignKey("threads.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("sender_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), nullable=False,
            server_default=sa.func.now(),
        ),
        sa.CheckConstraint(
            "char_length(trim(body)) between 1 and 1000", name="thread_messages_body_chk",
        ),
    )
    op.create_index(
        "ix_thread_messages_thread_created", "thread_messages", ["thread_id", "created_at"],
    )
    op.create_index(
        "ix_thread_messages_sender_created", "thread_messages", ["sender_id", "created_at"],
    )

    op.create_table(
        "message_limits",
        sa.Column("user_id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column("date_key", sa.Date(), primary_key=True),
        sa.Column("sent_count", sa.Integer(), nullable=False, server_default="0"),
    )


def downgrade() -> None:
    op.drop_table("message_limits")
    op.drop_index("ix_thread_messages_sender_created", table_name="thread_messages")
    op.drop_index("ix_thread_messages_thread_created", table_name="thread_messages")
    op.drop_table("thread_messages")
    op.drop_index("ux_threads_connection", table_name="threads")
    op.drop_constraint("fk_threads_connection_id", "threads", type_="foreignkey")
