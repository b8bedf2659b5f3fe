from datetime import datetime

from pydantic import BaseModel, Field, field_validator, model_validator


class LessonCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    is_student_teacher: bool = False
    teacher_username: str | None = Field(default=None, max_length=100)
    student_username: str | None = Field(default=None, max_length=100)

    @field_validator("name")
    @classmethod
    def normalize_name(cls, value: str) -> str:
        trimmed = value.strip()
        if not trimmed:
            raise ValueError("Lesson name cannot be empty")
        return trimmed

    @model_validator(mode="after")
    def validate_owner(self) -> "LessonCreate":
        if self.is_student_teacher:
            if not (self.student_username or "").strip():
                raise ValueError("student_username is required for a student-teacher lesson")
            self.teacher_username = None
        else:
            self.student_username = None
        return self


class LessonUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    is_student_teacher: bool | None = None
    teacher_username: str | None = Field(default=None, max_length=100)
    student_username: str | None = Field(default=None, max_length=100)


class LessonOut(BaseModel):
    id: str
    name: str
    label: str = ""
    is_student_teacher: bool
    teacher_user_id: str | None = None
    teacher_username: str | None = None
    teacher_first_name: str | None = None
    teacher_last_name: str | None = None
    student_user_id: str | None = None
    student_username: str | None = None
    student_first_name: str | None = None
    student_last_name: str | None = None
    student_user_ids: list[str] = Field(default_factory=list)
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class RosterAdd(BaseModel):
    student_id: str = Field(min_length=1, max_length=36)
    allow_same_subject: bool = False


class RosterBulkAdd(BaseModel):
    student_ids: list[str] = Field(min_length=1, max_length=500)
    allow_same_subject: bool = False
