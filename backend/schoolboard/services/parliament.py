"""Parliament: meeting dates, proposed subjects and their discussion notes.

Subjects move ``pending -> approved | rejected``. Notes are one level deep:
a reply to a reply is attached to the root note.
"""
from __future__ import annotations

from datetime import date, datetime, timezone
import logging

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from schoolboard.core.exceptions import ResourceNotFoundError, ValidationFailedError
from schoolboard.models.parliament import ParliamentDate, ParliamentNote, ParliamentSubject, SubjectStatus
from schoolboard.models.user import User, UserRole

logger = logging.getLogger(__name__)


def _display_name(user: User) -> str:
    return user.full_name or user.username


def _required(value: str | None, field: str) -> str:
    text = (value or "").strip()
    if not text:
        raise ValidationFailedError(f"{field} is required", details={"field": field})
    return text


# -- dates ---------------------------------------------------------------


def get_date(db: Session, date_id: str) -> ParliamentDate:
    record = db.get(ParliamentDate, date_id)
    if record is None:
        raise ResourceNotFoundError("Parliament date", date_id)
    return record


def list_dates(db: Session, *, open_only: bool = False) -> list[ParliamentDate]:
    query = select(ParliamentDate)
    if open_only:
        query = query.where(ParliamentDate.is_open.is_(True))
    return list(db.execute(query.order_by(ParliamentDate.meeting_date.asc())).scalars())


def create_date(db: Session, *, title: str, meeting_date: date, creator: User) -> ParliamentDate:
    record = ParliamentDate(
        title=_required(title, "title"),
        meeting_date=meeting_date,
        is_open=True,
        created_by_id=creator.id,
        created_by_name=_display_name(creator),
    )
    db.add(record)
    db.flush()
    return record


def set_date_open(db: Session, date_id: str, is_open: bool) -> ParliamentDate:
    record = get_date(db, date_id)
    record.is_open = is_open
    db.flush()
    return record


def delete_date_cascade(db: Session, date_id: str) -> dict[str, int]:
    """Delete a date together with its subjects and their notes."""
    record = get_date(db, date_id)
    subject_ids = list(db.execute(select(ParliamentSubject.id).where(ParliamentSubject.date_id == date_id)).scalars())
    notes_deleted = 0
    if subject_ids:
        notes_deleted = db.execute(
            delete(ParliamentNote).where(ParliamentNote.subject_id.in_(subject_ids))
        ).rowcount or 0
        db.execute(delete(ParliamentSubject).where(ParliamentSubject.id.in_(subject_ids)))
    db.delete(record)
    db.flush()
    logger.info(
        "Deleted parliament date %s with %d subject(s) and %d note(s)", date_id, len(subject_ids), notes_deleted
    )
    return {"subjects": len(subject_ids), "notes": notes_deleted}


# -- subjects ------------------------------------------------------------


def get_subject(db: Session, subject_id: str) -> ParliamentSubject:
    subject = db.get(ParliamentSubject, subject_id)
    if subject is None:
        raise ResourceNotFoundError("Parliament subject", subject_id)
    return subject


def list_subjects(
    db: Session,
    *,
    status: SubjectStatus | None = None,
    date_id: str | None = None,
    created_by_id: str | None = None,
) -> list[ParliamentSubject]:
    query = select(ParliamentSubject)
    if status is not None:
        query = query.where(ParliamentSubject.status == status)
    if date_id:
        query = query.where(ParliamentSubject.date_id == date_id)
    if created_by_id:
        query = query.where(ParliamentSubject.created_by_id == created_by_id)
    return list(db.execute(query.order_by(ParliamentSubject.created_at.desc())).scalars())


def submit_subject(db: Session, *, title: str, description: str, date_id: str, author: User) -> ParliamentSubject:
    meeting = get_date(db, date_id)
    if not meeting.is_open:
        raise ValidationFailedError("This parliament date is closed for submissions", details={"date_id": date_id})
    subject = ParliamentSubject(
        title=_required(title, "title"),
        description=(description or "").strip(),
        created_by_id=author.id,
        created_by_name=_display_name(author),
        status=SubjectStatus.pending,
        date_id=meeting.id,
        date_title=meeting.title,
        notes_count=0,
    )
    db.add(subject)
    db.flush()
    return subject


def can_edit_subject(subject: ParliamentSubject, user: User) -> bool:
    if user.role == UserRole.admin:
        return True
    return subject.created_by_id == user.id and subject.status == SubjectStatus.pending


def update_subject(db: Session, subject: ParliamentSubject, changes: dict) -> ParliamentSubject:
    if changes.get("title") is not None:
        subject.title = _required(changes["title"], "title")
    if changes.get("description") is not None:
        subject.description = changes["description"].strip()
    if changes.get("date_id") and changes["date_id"] != subject.date_id:
        meeting = get_date(db, changes["date_id"])
        subject.date_id = meeting.id
        subject.date_title = meeting.title
    db.flush()
    return subject


def moderate_subject(
    db: Session,
    subject: ParliamentSubject,
    status: SubjectStatus,
    reason: str | None = None,
) -> ParliamentSubject:
    if status == SubjectStatus.pending:
        raise ValidationFailedError("Subjects can only be approved or rejected")
    if subject.status != SubjectStatus.pending:
        raise ValidationFailedError(
            f"Subject is already {subject.status.value}",
            details={"subject_id": subject.id, "status": subject.status.value},
        )
    subject.status = status
    if status == SubjectStatus.rejected:
        subject.status_reason = (reason or "").strip() or None
    else:
        subject.status_reason = None
    db.flush()
    return subject


def delete_subject(db: Session, subject: ParliamentSubject) -> None:
    db.execute(delete(ParliamentNote).where(ParliamentNote.subject_id == subject.id))
    db.delete(subject)
    db.flush()


# -- notes ---------------------------------------------------------------


def get_note(db: Session, subject: ParliamentSubject, note_id: str) -> ParliamentNote:
    note = db.get(ParliamentNote, note_id)
    if note is None or note.subject_id != subject.id:
        raise ResourceNotFoundError("Parliament note", note_id)
    return note


def _refresh_notes_count(db: Session, subject: ParliamentSubject) -> None:
    subject.notes_count = db.execute(
        select(func.count()).select_from(ParliamentNote).where(ParliamentNote.subject_id == subject.id)
    ).scalar_one()


def list_thread(db: Session, subject: ParliamentSubject) -> list[dict]:
    notes = list(
        db.execute(
            select(ParliamentNote)
            .where(ParliamentNote.subject_id == subject.id)
            .order_by(ParliamentNote.created_at.asc())
        ).scalars()
    )
    replies: dict[str, list[ParliamentNote]] = {}
    for note in notes:
        if note.parent_id:
            replies.setdefault(note.parent_id, []).append(note)
    return [{"note": note, "replies": replies.get(note.id, [])} for note in notes if not note.parent_id]


def add_note(
    db: Session,
    subject: ParliamentSubject,
    *,
    text: str,
    author: User,
    parent_id: str | None = None,
) -> ParliamentNote:
    root_id = None
    if parent_id:
        parent = get_note(db, subject, parent_id)
        root_id = parent.parent_id or parent.id
    note = ParliamentNote(
        subject_id=subject.id,
        parent_id=root_id,
        text=_required(text, "text"),
        created_by_id=author.id,
        created_by_name=_display_name(author),
    )
    db.add(note)
    db.flush()
    _refresh_notes_count(db, subject)
    db.flush()
    return note


def can_edit_note(note: ParliamentNote, user: User) -> bool:
    return user.role == UserRole.admin or note.created_by_id == user.id


def edit_note(db: Session, note: ParliamentNote, text: str) -> ParliamentNote:
    note.text = _required(text, "text")
    note.edited_at = datetime.now(timezone.utc)
    db.flush()
    return note


def delete_note(db: Session, subject: ParliamentSubject, note: ParliamentNote) -> int:
    """Delete a note; a root note takes its replies with it. Returns rows removed."""
    removed = 1
    if note.parent_id is None:
        removed += db.execute(delete(ParliamentNote).where(ParliamentNote.parent_id == note.id)).rowcount or 0
    db.delete(note)
    db.flush()
    _refresh_notes_count(db, subject)
    db.flush()
    return removed
