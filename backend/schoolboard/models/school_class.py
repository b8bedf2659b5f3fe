import uuid
from datetime import datetime

from sqlalchemy import JSON, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from schoolboard.db.base import Base


class SchoolClass(Base):
    __tablename__ = "classes"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    # Human-facing business id (e.g. CLS-7Q2K); uniqueness is checked by query, not by the schema.
    class_id: Mapped[str] = mapped_column(String(50), nullable=False)
    class_id_lower: Mapped[str] = mapped_column(String(50), index=True, nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    location: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    teacher_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)
    student_ids: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), onupdate=func.now())

    @property
    def label(self) -> str:
        head = (self.name or self.class_id or self.id).strip()
        return " · ".join(part for part in (head, (self.location or "").strip()) if part)
