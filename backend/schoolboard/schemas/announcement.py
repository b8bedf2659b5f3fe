from datetime import datetime

from pydantic import BaseModel, Field, field_validator, model_validator

from schoolboard.models.announcement import AnnouncementType


class AnnouncementBase(BaseModel):
    text: str = Field(min_length=1, max_length=1000)
    type: AnnouncementType = AnnouncementType.news
    start_at: datetime | None = None
    end_at: datetime | None = None

    @field_validator("text")
    @classmethod
    def normalize_text(cls, value: str) -> str:
        trimmed = value.strip()
        if not trimmed:
            raise ValueError("Announcement text cannot be empty")
        return trimmed

    @model_validator(mode="after")
    def validate_window(self) -> "AnnouncementBase":
        if self.start_at and self.end_at and self.end_at < self.start_at:
            raise ValueError("end_at must not be before start_at")
        return self


class AnnouncementCreate(AnnouncementBase):
    pass


class AnnouncementUpdate(BaseModel):
    text: str | None = Field(default=None, min_length=1, max_length=1000)
    type: AnnouncementType | None = None
    start_at: datetime | None = None
    end_at: datetime | None = None


class AnnouncementOut(AnnouncementBase):
    id: str
    created_at: datetime | None = None

    model_config = {"from_attributes": True}
