from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from schoolboard.api.deps import get_db, require_roles
from schoolboard.models.announcement import Announcement, AnnouncementType
from schoolboard.models.user import User, UserRole
from schoolboard.schemas.announcement import AnnouncementCreate, AnnouncementOut, AnnouncementUpdate
from schoolboard.services import announcements as announcement_service
from schoolboard.services.audit import log_activity
from schoolboard.services.live import publish_change

router = APIRouter()


@router.get("/announcements", response_model=list[AnnouncementOut])
def list_announcements(
    announcement_type: AnnouncementType | None = Query(default=None, alias="type"),
    current_user: User = Depends(require_roles(UserRole.admin)),
    db: Session = Depends(get_db),
) -> list[AnnouncementOut]:
    query = select(Announcement).order_by(Announcement.created_at.desc())
    if announcement_type is not None:
        query = query.where(Announcement.type == announcement_type)
    return list(db.execute(query).scalars())


@router.post("/announcements", response_model=AnnouncementOut, status_code=status.HTTP_201_CREATED)
def create_announcement(
    payload: AnnouncementCreate,
    current_user: User = Depends(require_roles(UserRole.admin)),
    db: Session = Depends(get_db),
) -> AnnouncementOut:
    announcement = announcement_service.create_announcement(db, **payload.model_dump())
    log_activity(
        db,
        user=current_user,
        action="announcement.create",
        entity_type="announcement",
        entity_id=announcement.id,
        details={"type": announcement.type.value},
    )
    db.commit()
    db.refresh(announcement)
    publish_change(db, "announcements")
    return announcement


@router.put("/announcements/{announcement_id}", response_model=AnnouncementOut)
def update_announcement(
    announcement_id: str,
    payload: AnnouncementUpdate,
    current_user: User = Depends(require_roles(UserRole.admin)),
    db: Session = Depends(get_db),
) -> AnnouncementOut:
    changes = payload.model_dump(exclude_unset=True)
    announcement = announcement_service.update_announcement(db, announcement_id, changes)
    log_activity(
        db,
        user=current_user,
        action="announcement.update",
        entity_type="announcement",
        entity_id=announcement.id,
        details={"fields": sorted(changes)},
    )
    db.commit()
    db.refresh(announcement)
    publish_change(db, "announcements")
    return announcement


@router.delete("/announcements/{announcement_id}")
def delete_announcement(
    announcement_id: str,
    current_user: User = Depends(require_roles(UserRole.admin)),
    db: Session = Depends(get_db),
) -> dict:
    announcement_service.delete_announcement(db, announcement_id)
    log_activity(
        db,
        user=current_user,
        action="announcement.delete",
        entity_type="announcement",
        entity_id=announcement_id,
    )
    db.commit()
    publish_change(db, "announcements")
    return {"id": announcement_id, "deleted": True}
