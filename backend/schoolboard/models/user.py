import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import JSON, DateTime, Enum as SAEnum, String
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from schoolboard.db.base import Base


class UserRole(str, Enum):
    admin = "admin"
    teacher = "teacher"
    student = "student"
    kiosk = "kiosk"


class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    username: Mapped[str] = mapped_column(String(100), nullable=False)
    username_lower: Mapped[str] = mapped_column(String(100), index=True, nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    last_name: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    role: Mapped[UserRole] = mapped_column(SAEnum(UserRole, name="user_role"), nullable=False)
    birthday: Mapped[str | None] = mapped_column(String(10), nullable=True)

    # Legacy membership-by-attribute fields; newer data keeps rosters on lessons.
    class_ref: Mapped[str | None] = mapped_column(String(36), nullable=True)
    class_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    classes: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    advisor_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)
    advisor_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    is_active: Mapped[bool] = mapped_column(nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), onupdate=func.now())

    @property
    def full_name(self) -> str:
        return " ".join(f"{self.first_name or ''} {self.last_name or ''}".split())

    @property
    def label(self) -> str:
        full = self.full_name
        if full and self.username:
            return f"{full} ({self.username})"
        return full or self.username or ""
