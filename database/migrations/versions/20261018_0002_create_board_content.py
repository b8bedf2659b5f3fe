"""create announcements, parliament and activity log

Revision ID: 20261018_0002
Revises: 20261018_0001
Create Date: 2026-10-18 00:10:00.000000

"""
from alembic import op
import sqlalchemy as sa

revision = "20261018_0002"
down_revision = "20261018_0001"
branch_labels = None
depends_on = None


announcement_type_enum = sa.Enum("news", "birthday", name="announcement_type")
subject_status_enum = sa.Enum("pending", "approved", "rejected", name="parliament_subject_status")


def upgrade() -> None:
    op.create_table(
        "announcements",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("text", sa.Text(), nullable=False),
        sa.Column("type", announcement_type_enum, nullable=False, server_default="news"),
        sa.Column("start_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("end_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        "parliament_dates",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("meeting_date", sa.Date(), nullable=False),
        sa.Column("is_open", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_by_id", sa.String(length=36), nullable=True),
        sa.Column("created_by_name", sa.String(length=200), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        "parliament_subjects",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("created_by_id", sa.String(length=36), nullable=False),
        sa.Column("created_by_name", sa.String(length=200), nullable=False, server_default=""),
        sa.Column("status", subject_status_enum, nullable=False, server_default="pending"),
        sa.Column("status_reason", sa.Text(), nullable=True),
        sa.Column("date_id", sa.String(length=36), nullable=False),
        sa.Column("date_title", sa.String(length=200), nullable=False, server_default=""),
        sa.Column("notes_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_parliament_subjects_created_by_id", "parliament_subjects", ["created_by_id"])
    op.create_index("ix_parliament_subjects_status", "parliament_subjects", ["status"])
    op.create_index("ix_parliament_subjects_date_id", "parliament_subjects", ["date_id"])

    op.create_table(
        "parliament_notes",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("subject_id", sa.String(length=36), nullable=False),
        sa.Column("parent_id", sa.String(length=36), nullable=True),
        sa.Column("text", sa.Text(), nullable=False),
        sa.Column("created_by_id", sa.String(length=36), nullable=False),
        sa.Column("created_by_name", sa.String(length=200), nullable=False, server_default=""),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("edited_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_parliament_notes_subject_id", "parliament_notes", ["subject_id"])
    op.create_index("ix_parliament_notes_parent_id", "parliament_notes", ["parent_id"])

    op.create_table(
        "activity_logs",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=True),
        sa.Column("action", sa.String(length=100), nullable=False),
        sa.Column("entity_type", sa.String(length=100), nullable=True),
        sa.Column("entity_id", sa.String(length=100), nullable=True),
        sa.Column("details", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_activity_logs_user_id", "activity_logs", ["user_id"])


def downgrade() -> None:
    op.drop_index("ix_activity_logs_user_id", table_name="activity_logs")
    op.drop_table("activity_logs")
    op.drop_index("ix_parliament_notes_parent_id", table_name="parliament_notes")
    op.drop_index("ix_parliament_notes_subject_id", table_name="parliament_notes")
    op.drop_table("parliament_notes")
    op.drop_index("ix_parliament_subjects_date_id", table_name="parliament_subjects")
    op.drop_index("ix_parliament_subjects_status", table_name="parliament_subjects")
    op.drop_index("ix_parliament_subjects_created_by_id", table_name="parliament_subjects")
    op.drop_table("parliament_subjects")
    op.drop_table("parliament_dates")
    op.drop_table("announcements")
    bind = op.get_bind()
    subject_status_enum.drop(bind, checkfirst=True)
    announcement_type_enum.drop(bind, checkfirst=True)
