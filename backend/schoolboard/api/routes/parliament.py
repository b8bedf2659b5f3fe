from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from schoolboard.api.deps import forbid, get_current_user, get_db, require_roles
from schoolboard.models.parliament import SubjectStatus
from schoolboard.models.user import User, UserRole
from schoolboard.schemas.parliament import (
    CascadeDeleteOut,
    NoteCreate,
    NoteOut,
    NoteUpdate,
    ParliamentDateCreate,
    ParliamentDateOpen,
    ParliamentDateOut,
    SubjectCreate,
    SubjectModerate,
    SubjectOut,
    SubjectUpdate,
    ThreadOut,
)
from schoolboard.services import parliament as parliament_service
from schoolboard.services.audit import log_activity

router = APIRouter()


@router.get("/parliament/dates", response_model=list[ParliamentDateOut])
def list_dates(
    open_only: bool = Query(default=False),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[ParliamentDateOut]:
    return parliament_service.list_dates(db, open_only=open_only)


@router.post("/parliament/dates", response_model=ParliamentDateOut, status_code=status.HTTP_201_CREATED)
def create_date(
    payload: ParliamentDateCreate,
    current_user: User = Depends(require_roles(UserRole.admin)),
    db: Session = Depends(get_db),
) -> ParliamentDateOut:
    record = parliament_service.create_date(
        db, title=payload.title, meeting_date=payload.meeting_date, creator=current_user
    )
    log_activity(db, user=current_user, action="parliament.date.create", entity_type="parliament_date", entity_id=record.id)
    db.commit()
    db.refresh(record)
    return record


@router.put("/parliament/dates/{date_id}/open", response_model=ParliamentDateOut)
def set_date_open(
    date_id: str,
    payload: ParliamentDateOpen,
    current_user: User = Depends(require_roles(UserRole.admin)),
    db: Session = Depends(get_db),
) -> ParliamentDateOut:
    record = parliament_service.set_date_open(db, date_id, payload.is_open)
    log_activity(
        db,
        user=current_user,
        action="parliament.date.open" if payload.is_open else "parliament.date.close",
        entity_type="parliament_date",
        entity_id=record.id,
    )
    db.commit()
    db.refresh(record)
    return record


@router.delete("/parliament/dates/{date_id}", response_model=CascadeDeleteOut)
def delete_date(
    date_id: str,
    current_user: User = Depends(require_roles(UserRole.admin)),
    db: Session = Depends(get_db),
) -> CascadeDeleteOut:
    removed = parliament_service.delete_date_cascade(db, date_id)
    log_activity(
        db,
        user=current_user,
        action="parliament.date.delete",
        entity_type="parliament_date",
        entity_id=date_id,
        details=removed,
    )
    db.commit()
    return CascadeDeleteOut(**removed)


@router.get("/parliament/subjects", response_model=list[SubjectOut])
def list_subjects(
    subject_status: SubjectStatus | None = Query(default=None, alias="status"),
    date_id: str | None = Query(default=None),
    mine: bool = Query(default=False),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[SubjectOut]:
    if current_user.role != UserRole.admin and not mine and subject_status != SubjectStatus.approved:
        # Pending and rejected proposals are visible to admins and their authors only.
        subject_status = SubjectStatus.approved
    return parliament_service.list_subjects(
        db,
        status=subject_status,
        date_id=date_id,
        created_by_id=current_user.id if mine else None,
    )


@router.post("/parliament/subjects", response_model=SubjectOut, status_code=status.HTTP_201_CREATED)
def submit_subject(
    payload: SubjectCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> SubjectOut:
    subject = parliament_service.submit_subject(
        db, title=payload.title, description=payload.description, date_id=payload.date_id, author=current_user
    )
    db.commit()
    db.refresh(subject)
    return subject


@router.put("/parliament/subjects/{subject_id}", response_model=SubjectOut)
def update_subject(
    subject_id: str,
    payload: SubjectUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> SubjectOut:
    subject = parliament_service.get_subject(db, subject_id)
    if not parliament_service.can_edit_subject(subject, current_user):
        raise forbid("Only the author can edit a pending subject")
    parliament_service.update_subject(db, subject, payload.model_dump(exclude_unset=True))
    db.commit()
    db.refresh(subject)
    return subject


@router.post("/parliament/subjects/{subject_id}/moderate", response_model=SubjectOut)
def moderate_subject(
    subject_id: str,
    payload: SubjectModerate,
    current_user: User = Depends(require_roles(UserRole.admin)),
    db: Session = Depends(get_db),
) -> SubjectOut:
    subject = parliament_service.get_subject(db, subject_id)
    parliament_service.moderate_subject(db, subject, payload.status, payload.reason)
    log_activity(
        db,
        user=current_user,
        action=f"parliament.subject.{payload.status.value}",
        entity_type="parliament_subject",
        entity_id=subject.id,
        details={"reason": subject.status_reason},
    )
    db.commit()
    db.refresh(subject)
    return subject


@router.delete("/parliament/subjects/{subject_id}")
def delete_subject(
    subject_id: str,
    current_user: User = Depends(require_roles(UserRole.admin)),
    db: Session = Depends(get_db),
) -> dict:
    subject = parliament_service.get_subject(db, subject_id)
    parliament_service.delete_subject(db, subject)
    log_activity(
        db, user=current_user, action="parliament.subject.delete", entity_type="parliament_subject", entity_id=subject_id
    )
    db.commit()
    return {"id": subject_id, "deleted": True}


@router.get("/parliament/subjects/{subject_id}/notes", response_model=list[ThreadOut])
def list_notes(
    subject_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[ThreadOut]:
    subject = parliament_service.get_subject(db, subject_id)
    return parliament_service.list_thread(db, subject)


@router.post("/parliament/subjects/{subject_id}/notes", response_model=NoteOut, status_code=status.HTTP_201_CREATED)
def add_note(
    subject_id: str,
    payload: NoteCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> NoteOut:
    subject = parliament_service.get_subject(db, subject_id)
    note = parliament_service.add_note(
        db, subject, text=payload.text, author=current_user, parent_id=payload.parent_id
    )
    db.commit()
    db.refresh(note)
    return note


@router.put("/parliament/subjects/{subject_id}/notes/{note_id}", response_model=NoteOut)
def edit_note(
    subject_id: str,
    note_id: str,
    payload: NoteUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> NoteOut:
    subject = parliament_service.get_subject(db, subject_id)
    note = parliament_service.get_note(db, subject, note_id)
    if not parliament_service.can_edit_note(note, current_user):
        raise forbid("Only the author or an admin can edit this note")
    parliament_service.edit_note(db, note, payload.text)
    db.commit()
    db.refresh(note)
    return note


@router.delete("/parliament/subjects/{subject_id}/notes/{note_id}")
def delete_note(
    subject_id: str,
    note_id: str,
    current_user: User = Depends(require_roles(UserRole.admin)),
    db: Session = Depends(get_db),
) -> dict:
    subject = parliament_service.get_subject(db, subject_id)
    note = parliament_service.get_note(db, subject, note_id)
    removed = parliament_service.delete_note(db, subject, note)
    log_activity(
        db,
        user=current_user,
        action="parliament.note.delete",
        entity_type="parliament_note",
        entity_id=note_id,
        details={"removed": removed},
    )
    db.commit()
    return {"id": note_id, "removed": removed, "notes_count": subject.notes_count}
