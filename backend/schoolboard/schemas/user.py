from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from schoolboard.models.user import UserRole

BIRTHDAY_PATTERN = r"^\d{2}-\d{2}-\d{4}$"


def _strip(value: str | None) -> str | None:
    if value is None:
        return None
    return value.strip()


class UserBase(BaseModel):
    username: str = Field(min_length=1, max_length=100)
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(default="", max_length=100)
    role: UserRole
    birthday: str | None = Field(default=None, pattern=BIRTHDAY_PATTERN)
    class_ref: str | None = Field(default=None, max_length=36)
    class_name: str | None = Field(default=None, max_length=200)
    classes: list[str] = Field(default_factory=list, max_length=50)

    @field_validator("username", "first_name", "last_name")
    @classmethod
    def normalize_text(cls, value: str) -> str:
        return value.strip()

    @field_validator("username")
    @classmethod
    def validate_username(cls, value: str) -> str:
        if not value or any(char.isspace() for char in value):
            raise ValueError("Username cannot be empty or contain spaces")
        return value


class UserCreate(UserBase):
    password: str = Field(min_length=6, max_length=128)


class UserUpdate(BaseModel):
    username: str | None = Field(default=None, min_length=1, max_length=100)
    password: str | None = Field(default=None, min_length=6, max_length=128)
    first_name: str | None = Field(default=None, min_length=1, max_length=100)
    last_name: str | None = Field(default=None, max_length=100)
    role: UserRole | None = None
    birthday: str | None = Field(default=None, pattern=BIRTHDAY_PATTERN)
    class_ref: str | None = Field(default=None, max_length=36)
    class_name: str | None = Field(default=None, max_length=200)
    classes: list[str] | None = Field(default=None, max_length=50)
    is_active: bool | None = None

    @field_validator("username", "first_name", "last_name")
    @classmethod
    def normalize_text(cls, value: str | None) -> str | None:
        return _strip(value)

    @field_validator("username")
    @classmethod
    def validate_username(cls, value: str | None) -> str | None:
        if value is not None and (not value or any(char.isspace() for char in value)):
            raise ValueError("Username cannot be empty or contain spaces")
        return value


class UserOut(BaseModel):
    id: str
    username: str
    email: str
    first_name: str
    last_name: str
    role: UserRole
    birthday: str | None = None
    class_ref: str | None = None
    class_name: str | None = None
    classes: list[str] = Field(default_factory=list)
    advisor_id: str | None = None
    advisor_name: str | None = None
    is_active: bool
    label: str
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class UserLogin(BaseModel):
    username: str = Field(min_length=1, max_length=100)
    password: str = Field(min_length=1, max_length=128)

    @field_validator("username")
    @classmethod
    def normalize_username(cls, value: str) -> str:
        return value.strip()


class Token(BaseModel):
    access_token: str
    token_type: str
    user: UserOut


class AdvisorAssign(BaseModel):
    student_ids: list[str] = Field(min_length=1, max_length=500)
    teacher_id: str | None = None


class BatchSummaryOut(BaseModel):
    updated: list[str] = Field(default_factory=list)
    skipped: list[dict] = Field(default_factory=list)

    model_config = {"from_attributes": True}


class AdvisorSet(BaseModel):
    teacher_id: str | None = None
