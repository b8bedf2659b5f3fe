"""create users, classes, lessons and timetable entries

Revision ID: 20261018_0001
Revises: None
Create Date: 2026-10-18 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

revision = "20261018_0001"
down_revision = None
branch_labels = None
depends_on = None


user_role_enum = sa.Enum("admin", "teacher", "student", "kiosk", name="user_role")


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("username", sa.String(length=100), nullable=False),
        sa.Column("username_lower", sa.String(length=100), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("hashed_password", sa.String(length=255), nullable=False),
        sa.Column("first_name", sa.String(length=100), nullable=False, server_default=""),
        sa.Column("last_name", sa.String(length=100), nullable=False, server_default=""),
        sa.Column("role", user_role_enum, nullable=False),
        sa.Column("birthday", sa.String(length=10), nullable=True),
        sa.Column("class_ref", sa.String(length=36), nullable=True),
        sa.Column("class_name", sa.String(length=200), nullable=True),
        sa.Column("classes", sa.JSON(), nullable=False),
        sa.Column("advisor_id", sa.String(length=36), nullable=True),
        sa.Column("advisor_name", sa.String(length=200), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_users_username_lower", "users", ["username_lower"])
    op.create_index("ix_users_advisor_id", "users", ["advisor_id"])

    op.create_table(
        "classes",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("class_id", sa.String(length=50), nullable=False),
        sa.Column("class_id_lower", sa.String(length=50), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("location", sa.String(length=200), nullable=False, server_default=""),
        sa.Column("teacher_id", sa.String(length=36), nullable=True),
        sa.Column("student_ids", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_classes_class_id_lower", "classes", ["class_id_lower"])
    op.create_index("ix_classes_teacher_id", "classes", ["teacher_id"])

    op.create_table(
        "lessons",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("is_student_teacher", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("teacher_user_id", sa.String(length=36), nullable=True),
        sa.Column("teacher_username", sa.String(length=100), nullable=True),
        sa.Column("teacher_first_name", sa.String(length=100), nullable=True),
        sa.Column("teacher_last_name", sa.String(length=100), nullable=True),
        sa.Column("student_user_id", sa.String(length=36), nullable=True),
        sa.Column("student_username", sa.String(length=100), nullable=True),
        sa.Column("student_first_name", sa.String(length=100), nullable=True),
        sa.Column("student_last_name", sa.String(length=100), nullable=True),
        sa.Column("student_user_ids", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_lessons_name", "lessons", ["name"])
    op.create_index("ix_lessons_teacher_user_id", "lessons", ["teacher_user_id"])

    op.create_table(
        "timetable_entries",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("class_ref", sa.String(length=50), nullable=False),
        sa.Column("lesson_id", sa.String(length=36), nullable=False),
        sa.Column("day", sa.Integer(), nullable=False),
        sa.Column("start_minutes", sa.Integer(), nullable=False),
        sa.Column("end_minutes", sa.Integer(), nullable=False),
        sa.Column("created_by_id", sa.String(length=36), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_timetable_entries_class_ref", "timetable_entries", ["class_ref"])
    op.create_index("ix_timetable_entries_lesson_id", "timetable_entries", ["lesson_id"])


def downgrade() -> None:
    op.drop_index("ix_timetable_entries_lesson_id", table_name="timetable_entries")
    op.drop_index("ix_timetable_entries_class_ref", table_name="timetable_entries")
    op.drop_table("timetable_entries")
    op.drop_index("ix_lessons_teacher_user_id", table_name="lessons")
    op.drop_index("ix_lessons_name", table_name="lessons")
    op.drop_table("lessons")
    op.drop_index("ix_classes_teacher_id", table_name="classes")
    op.drop_index("ix_classes_class_id_lower", table_name="classes")
    op.drop_table("classes")
    op.drop_index("ix_users_advisor_id", table_name="users")
    op.drop_index("ix_users_username_lower", table_name="users")
    op.drop_table("users")
    user_role_enum.drop(op.get_bind(), checkfirst=True)
