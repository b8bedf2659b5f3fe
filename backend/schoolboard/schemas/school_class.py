from datetime import datetime

from pydantic import BaseModel, Field, field_validator


class SchoolClassBase(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    location: str = Field(default="", max_length=200)
    teacher_id: str | None = None

    @field_validator("name", "location")
    @classmethod
    def normalize_text(cls, value: str) -> str:
        return value.strip()


class SchoolClassCreate(SchoolClassBase):
    class_id: str | None = Field(default=None, min_length=1, max_length=50)


class SchoolClassUpdate(BaseModel):
    class_id: str | None = Field(default=None, min_length=1, max_length=50)
    name: str | None = Field(default=None, min_length=1, max_length=200)
    location: str | None = Field(default=None, max_length=200)
    teacher_id: str | None = None


class SchoolClassOut(SchoolClassBase):
    id: str
    class_id: str
    label: str
    student_ids: list[str] = Field(default_factory=list)
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class ClassRosterSet(BaseModel):
    student_ids: str = Field(default="", max_length=20000, description="Comma separated student ids")


class ClassRosterToggleOut(BaseModel):
    student_id: str
    enrolled: bool
    student_ids: list[str]
