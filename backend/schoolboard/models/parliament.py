import uuid
from datetime import date, datetime
from enum import Enum

from sqlalchemy import Boolean, Date, DateTime, Enum as SAEnum, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from schoolboard.db.base import Base


class SubjectStatus(str, Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


class ParliamentDate(Base):
    __tablename__ = "parliament_dates"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    meeting_date: Mapped[date] = mapped_column(Date, nullable=False)
    is_open: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_by_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    created_by_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class ParliamentSubject(Base):
    __tablename__ = "parliament_subjects"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    created_by_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    created_by_name: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    status: Mapped[SubjectStatus] = mapped_column(
        SAEnum(SubjectStatus, name="parliament_subject_status"),
        nullable=False,
        default=SubjectStatus.pending,
        index=True,
    )
    status_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    date_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    date_title: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    notes_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), onupdate=func.now())


class ParliamentNote(Base):
    __tablename__ = "parliament_notes"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    subject_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    # Replies point at their root note; roots have no parent.
    parent_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)
    text: Mapped[str] = mapped_column(Text, nullable=False)
    created_by_id: Mapped[str] = mapped_column(String(36), nullable=False)
    created_by_name: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    edited_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
