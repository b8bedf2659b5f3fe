from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from schoolboard.api.deps import get_db, require_roles
from schoolboard.core.exceptions import ResourceNotFoundError, ValidationFailedError
from schoolboard.models.lesson import Lesson
from schoolboard.models.user import User, UserRole
from schoolboard.schemas.timetable import (
    CellClick,
    SaveResultOut,
    SchedulerSessionOut,
    SessionClassSelect,
    SessionLessonSelect,
    StagingStatusOut,
)
from schoolboard.services.class_resolver import class_refs_for, find_class
from schoolboard.services.live import publish_change
from schoolboard.services.slots import find_slot
from schoolboard.services.staging import TimetableStagingEngine, staging_sessions
from schoolboard.services.timetable import SqlTimetableStore, lesson_names

router = APIRouter()

scheduler_roles = require_roles(UserRole.admin, UserRole.teacher)


def _engine(db: Session, user: User) -> TimetableStagingEngine:
    return staging_sessions.checkout(user.id, SqlTimetableStore(db, actor=user))


def _session_out(db: Session, engine: TimetableStagingEngine) -> SchedulerSessionOut:
    names = lesson_names(db)
    class_label = None
    if engine.selected_class:
        school_class = find_class(db, engine.selected_class)
        class_label = school_class.label if school_class is not None else engine.selected_class
    return SchedulerSessionOut(
        class_id=engine.selected_class,
        class_label=class_label,
        lesson_id=engine.selected_lesson,
        lesson_name=names.get(engine.selected_lesson or ""),
        placed_count=engine.placed_count,
        has_pending=engine.has_pending,
        pending_adds=len(engine.pending_adds),
        pending_deletes=len(engine.pending_deletes),
        pending_replaces=len(engine.pending_replaces),
        status=StagingStatusOut.model_validate(engine.status),
        rows=engine.grid(names),
    )


@router.get("/scheduler/session", response_model=SchedulerSessionOut)
def get_session(current_user: User = Depends(scheduler_roles), db: Session = Depends(get_db)) -> SchedulerSessionOut:
    engine = _engine(db, current_user)
    # Pick up entries committed by other operators; staged changes are kept.
    engine.refresh()
    return _session_out(db, engine)


@router.put("/scheduler/session/class", response_model=SchedulerSessionOut)
def select_class(
    payload: SessionClassSelect,
    current_user: User = Depends(scheduler_roles),
    db: Session = Depends(get_db),
) -> SchedulerSessionOut:
    engine = _engine(db, current_user)
    if not payload.class_id:
        engine.select_class(None)
        return _session_out(db, engine)
    school_class = find_class(db, payload.class_id)
    if school_class is None:
        raise ResourceNotFoundError("Class", payload.class_id)
    engine.select_class(school_class.id, class_refs_for(school_class))
    return _session_out(db, engine)


@router.put("/scheduler/session/lesson", response_model=SchedulerSessionOut)
def select_lesson(
    payload: SessionLessonSelect,
    current_user: User = Depends(scheduler_roles),
    db: Session = Depends(get_db),
) -> SchedulerSessionOut:
    engine = _engine(db, current_user)
    if payload.lesson_id and db.get(Lesson, payload.lesson_id) is None:
        raise ResourceNotFoundError("Lesson", payload.lesson_id)
    engine.select_lesson(payload.lesson_id)
    return _session_out(db, engine)


@router.post("/scheduler/session/click", response_model=SchedulerSessionOut)
def click_cell(
    payload: CellClick,
    current_user: User = Depends(scheduler_roles),
    db: Session = Depends(get_db),
) -> SchedulerSessionOut:
    engine = _engine(db, current_user)
    # Decide the click against what is committed now, not when the session was opened.
    engine.refresh()
    if find_slot(payload.sm, payload.em, engine.slots) is None or payload.day not in engine.days:
        raise ValidationFailedError(
            "Cell is not on the week grid",
            details={"day": payload.day, "sm": payload.sm, "em": payload.em},
        )
    engine.click_cell(payload.day, payload.sm, payload.em)
    return _session_out(db, engine)


@router.post("/scheduler/session/save", response_model=SaveResultOut)
def save_session(current_user: User = Depends(scheduler_roles), db: Session = Depends(get_db)) -> SaveResultOut:
    engine = _engine(db, current_user)
    batch = engine.save(actor_id=current_user.id)
    if batch is not None:
        publish_change(db, "timetable_entries")
    return SaveResultOut(
        created=len(batch.creates) if batch else 0,
        deleted=len(batch.deletes) if batch else 0,
        updated=len(batch.updates) if batch else 0,
        session=_session_out(db, engine),
    )


@router.post("/scheduler/session/cancel", response_model=SchedulerSessionOut)
def cancel_session(current_user: User = Depends(scheduler_roles), db: Session = Depends(get_db)) -> SchedulerSessionOut:
    engine = _engine(db, current_user)
    engine.cancel()
    return _session_out(db, engine)


@router.delete("/scheduler/session")
def discard_session(current_user: User = Depends(scheduler_roles)) -> dict:
    staging_sessions.discard(current_user.id)
    return {"discarded": True}
