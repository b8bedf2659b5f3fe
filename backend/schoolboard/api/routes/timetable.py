from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from schoolboard.api.deps import forbid, get_current_user, get_db, require_roles
from schoolboard.models.user import User, UserRole
from schoolboard.schemas.timetable import SlotTableOut, TimeSlotOut, TimetableEntryOut, WeekPlanOut
from schoolboard.services.accounts import get_user
from schoolboard.services.class_resolver import class_refs_for, find_class, resolve_class_labels
from schoolboard.services.slots import DAY_LABELS, day_order, default_slots
from schoolboard.services.timetable import entries_for_class, lesson_names, student_lessons, teacher_lessons, week_plan

router = APIRouter()


@router.get("/timetable/slots", response_model=SlotTableOut)
def get_slot_table(current_user: User = Depends(get_current_user)) -> SlotTableOut:
    days = day_order()
    return SlotTableOut(
        days=days,
        day_labels={day: DAY_LABELS[day] for day in days},
        slots=[TimeSlotOut.model_validate(slot) for slot in default_slots()],
    )


@router.get("/timetable/entries", response_model=list[TimetableEntryOut])
def list_class_entries(
    class_ref: str = Query(min_length=1, max_length=50),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[TimetableEntryOut]:
    school_class = find_class(db, class_ref)
    refs = class_refs_for(school_class) if school_class is not None else [class_ref]
    entries = entries_for_class(db, refs)
    names = lesson_names(db, [entry.lesson_id for entry in entries])
    labels = resolve_class_labels(db, [entry.class_ref for entry in entries])
    return [
        TimetableEntryOut(
            id=entry.id,
            class_ref=entry.class_ref,
            class_label=labels.get(entry.class_ref, entry.class_ref),
            lesson_id=entry.lesson_id,
            lesson_name=names.get(entry.lesson_id, ""),
            day=entry.day,
            start_minutes=entry.start_minutes,
            end_minutes=entry.end_minutes,
        )
        for entry in entries
    ]


@router.get("/timetable/teachers/me", response_model=WeekPlanOut)
def my_teaching_timetable(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> WeekPlanOut:
    # Student-teachers see the lessons they lead here as well.
    lessons = teacher_lessons(db, current_user)
    plan = week_plan(db, lessons)
    return WeekPlanOut(**plan, lesson_ids=[lesson.id for lesson in lessons])


@router.get("/timetable/students/{student_id}/plan", response_model=WeekPlanOut)
def student_plan(
    student_id: str,
    current_user: User = Depends(require_roles(UserRole.admin, UserRole.teacher, UserRole.student)),
    db: Session = Depends(get_db),
) -> WeekPlanOut:
    student = get_user(db, student_id)
    allowed = (
        current_user.role == UserRole.admin
        or current_user.id == student.id
        or (current_user.role == UserRole.teacher and student.advisor_id == current_user.id)
    )
    if not allowed:
        raise forbid("Only the student's advisor can view this plan")
    lessons = student_lessons(db, student.id)
    plan = week_plan(db, lessons)
    return WeekPlanOut(**plan, lesson_ids=[lesson.id for lesson in lessons])
