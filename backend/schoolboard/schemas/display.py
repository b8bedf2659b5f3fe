from datetime import date

from pydantic import BaseModel, Field


class StudentRefOut(BaseModel):
    id: str
    label: str


class LiveItemOut(BaseModel):
    entry_id: str
    class_ref: str
    class_label: str
    lesson_id: str
    lesson_name: str
    teacher_name: str
    start_minutes: int
    end_minutes: int
    students: list[StudentRefOut] = Field(default_factory=list)
    roster_source: str


class SpotlightOut(BaseModel):
    order: list[str]
    expanded: str | None = None
    rotate_seconds: float


class HappeningNowOut(BaseModel):
    day: int
    minutes: int
    clock_source: str
    items: list[LiveItemOut]
    spotlight: SpotlightOut


class WeekGridItemOut(BaseModel):
    entry_id: str
    lesson_id: str
    lesson_name: str
    teacher_name: str
    class_label: str


class WeekGridCellOut(BaseModel):
    day: int
    is_now: bool
    items: list[WeekGridItemOut]


class WeekGridRowOut(BaseModel):
    start: str
    end: str
    sm: int
    em: int
    is_now: bool
    cells: list[WeekGridCellOut]


class WeekGridOut(BaseModel):
    day: int
    minutes: int
    days: list[int]
    rows: list[WeekGridRowOut]


class TickerOut(BaseModel):
    lines: list[str]


class BirthdayOut(BaseModel):
    user_id: str
    name: str
    day: int
    birthday: date

    model_config = {"from_attributes": True}


class BirthdayBannerOut(BaseModel):
    people: list[BirthdayOut]
    announcements: list[str]
