from pydantic import BaseModel, Field, model_validator

from schoolboard.services.staging import CellState, StatusKind


class TimeSlotOut(BaseModel):
    start: str
    end: str
    sm: int
    em: int

    model_config = {"from_attributes": True}


class SlotTableOut(BaseModel):
    days: list[int]
    day_labels: dict[int, str]
    slots: list[TimeSlotOut]


class TimetableEntryOut(BaseModel):
    id: str
    class_ref: str
    class_label: str
    lesson_id: str
    lesson_name: str
    day: int
    start_minutes: int
    end_minutes: int


class PlanLessonOut(BaseModel):
    lesson_id: str
    name: str
    class_label: str | None = None


class PlanCellOut(BaseModel):
    day: int
    conflict: bool
    lessons: list[PlanLessonOut]


class PlanRowOut(BaseModel):
    start: str
    end: str
    sm: int
    em: int
    cells: list[PlanCellOut]


class WeekPlanOut(BaseModel):
    days: list[int]
    rows: list[PlanRowOut]
    conflicts: int
    lesson_ids: list[str] = Field(default_factory=list)


class SessionClassSelect(BaseModel):
    class_id: str | None = None


class SessionLessonSelect(BaseModel):
    lesson_id: str | None = None


class CellClick(BaseModel):
    day: int = Field(ge=0, le=6)
    sm: int = Field(ge=0, lt=24 * 60)
    em: int = Field(gt=0, le=24 * 60)

    @model_validator(mode="after")
    def validate_interval(self) -> "CellClick":
        if self.em <= self.sm:
            raise ValueError("em must be after sm")
        return self


class GridCellOut(BaseModel):
    day: int
    state: CellState
    lesson_id: str | None = None
    from_lesson_id: str | None = None
    pending: bool
    text: str


class GridRowOut(BaseModel):
    start: str
    end: str
    sm: int
    em: int
    cells: list[GridCellOut]


class StagingStatusOut(BaseModel):
    kind: StatusKind
    message: str | None = None

    model_config = {"from_attributes": True}


class SchedulerSessionOut(BaseModel):
    class_id: str | None = None
    class_label: str | None = None
    lesson_id: str | None = None
    lesson_name: str | None = None
    placed_count: int
    has_pending: bool
    pending_adds: int
    pending_deletes: int
    pending_replaces: int
    status: StagingStatusOut
    rows: list[GridRowOut]


class SaveResultOut(BaseModel):
    created: int
    deleted: int
    updated: int
    session: SchedulerSessionOut
