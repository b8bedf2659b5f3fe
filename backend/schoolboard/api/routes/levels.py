from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from schoolboard.api.deps import get_db, require_roles
from schoolboard.models.user import User, UserRole
from schoolboard.schemas.level import (
    BaseGroupOut,
    LevelGroupOut,
    LevelLessonOut,
    MoveAllRequest,
    MoveOut,
    MoveStudentRequest,
    ParsedNameOut,
)
from schoolboard.services import levels as level_service
from schoolboard.services.audit import log_activity
from schoolboard.services.lesson_names import parse_lesson_name
from schoolboard.services.live import publish_change

router = APIRouter()


@router.get("/levels", response_model=list[BaseGroupOut])
def list_level_groups(
    current_user: User = Depends(require_roles(UserRole.admin)),
    db: Session = Depends(get_db),
) -> list[BaseGroupOut]:
    return [
        BaseGroupOut(
            base=group.base,
            levels=[
                LevelGroupOut(
                    key=level.key,
                    level=level.level,
                    lessons=[
                        LevelLessonOut(
                            id=lesson.id,
                            name=lesson.name,
                            group=parse_lesson_name(lesson.name).group,
                            student_user_ids=list(lesson.student_user_ids or []),
                        )
                        for lesson in level.lessons
                    ],
                )
                for level in group.levels
            ],
        )
        for group in level_service.level_groups(db)
    ]


@router.get("/levels/parse", response_model=ParsedNameOut)
def parse_name(
    name: str = Query(min_length=1, max_length=200),
    current_user: User = Depends(require_roles(UserRole.admin)),
) -> ParsedNameOut:
    parsed = parse_lesson_name(name)
    return ParsedNameOut(base=parsed.base, level=parsed.level, group=parsed.group)


@router.post("/levels/move", response_model=MoveOut)
def move_student(
    payload: MoveStudentRequest,
    current_user: User = Depends(require_roles(UserRole.admin)),
    db: Session = Depends(get_db),
) -> MoveOut:
    result = level_service.move_student(db, payload.student_id, payload.from_lesson_id, **payload.as_kwargs())
    log_activity(
        db,
        user=current_user,
        action="levels.move",
        entity_type="lesson",
        entity_id=result.to_lesson.id,
        details={"from": result.from_lesson.id, "moved": result.moved},
    )
    db.commit()
    publish_change(db, "lessons")
    return MoveOut(from_lesson_id=result.from_lesson.id, to_lesson_id=result.to_lesson.id, moved=result.moved)


@router.post("/levels/move-all", response_model=MoveOut)
def move_all_students(
    payload: MoveAllRequest,
    current_user: User = Depends(require_roles(UserRole.admin)),
    db: Session = Depends(get_db),
) -> MoveOut:
    result = level_service.move_all_students(db, payload.from_lesson_id, **payload.as_kwargs())
    log_activity(
        db,
        user=current_user,
        action="levels.move_all",
        entity_type="lesson",
        entity_id=result.to_lesson.id,
        details={"from": result.from_lesson.id, "moved": len(result.moved)},
    )
    db.commit()
    publish_change(db, "lessons")
    return MoveOut(from_lesson_id=result.from_lesson.id, to_lesson_id=result.to_lesson.id, moved=result.moved)
