import uuid
from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from schoolboard.db.base import Base


class Lesson(Base):
    __tablename__ = "lessons"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    is_student_teacher: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    teacher_user_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)
    teacher_username: Mapped[str | None] = mapped_column(String(100), nullable=True)
    teacher_first_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    teacher_last_name: Mapped[str | None] = mapped_column(String(100), nullable=True)

    student_user_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    student_username: Mapped[str | None] = mapped_column(String(100), nullable=True)
    student_first_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    student_last_name: Mapped[str | None] = mapped_column(String(100), nullable=True)

    student_user_ids: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), onupdate=func.now())
