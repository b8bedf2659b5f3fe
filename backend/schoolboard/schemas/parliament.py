from datetime import date, datetime

from pydantic import BaseModel, Field, field_validator

from schoolboard.models.parliament import SubjectStatus


class ParliamentDateCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    meeting_date: date

    @field_validator("title")
    @classmethod
    def normalize_title(cls, value: str) -> str:
        return value.strip()


class ParliamentDateOpen(BaseModel):
    is_open: bool


class ParliamentDateOut(BaseModel):
    id: str
    title: str
    meeting_date: date
    is_open: bool
    created_by_id: str | None = None
    created_by_name: str | None = None
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class SubjectCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: str = Field(default="", max_length=5000)
    date_id: str = Field(min_length=1, max_length=36)


class SubjectUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=5000)
    date_id: str | None = Field(default=None, min_length=1, max_length=36)


class SubjectModerate(BaseModel):
    status: SubjectStatus
    reason: str | None = Field(default=None, max_length=2000)


class SubjectOut(BaseModel):
    id: str
    title: str
    description: str
    created_by_id: str
    created_by_name: str
    status: SubjectStatus
    status_reason: str | None = None
    date_id: str
    date_title: str
    notes_count: int
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class NoteCreate(BaseModel):
    text: str = Field(min_length=1, max_length=5000)
    parent_id: str | None = None


class NoteUpdate(BaseModel):
    text: str = Field(min_length=1, max_length=5000)


class NoteOut(BaseModel):
    id: str
    subject_id: str
    parent_id: str | None = None
    text: str
    created_by_id: str
    created_by_name: str
    created_at: datetime | None = None
    edited_at: datetime | None = None

    model_config = {"from_attributes": True}


class ThreadOut(BaseModel):
    note: NoteOut
    replies: list[NoteOut] = Field(default_factory=list)


class CascadeDeleteOut(BaseModel):
    subjects: int
    notes: int
