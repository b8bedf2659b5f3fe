from pydantic import BaseModel, Field, model_validator


class LevelLessonOut(BaseModel):
    id: str
    name: str
    group: str | None = None
    student_user_ids: list[str] = Field(default_factory=list)


class LevelGroupOut(BaseModel):
    key: int | str
    level: int | None = None
    lessons: list[LevelLessonOut]


class BaseGroupOut(BaseModel):
    base: str
    levels: list[LevelGroupOut]


class ParsedNameOut(BaseModel):
    base: str
    level: int | None = None
    group: str | None = None


class MoveTarget(BaseModel):
    to_lesson_id: str | None = None
    level: int | None = Field(default=None, ge=0, le=99)
    group: str | None = Field(default=None, max_length=50)
    step: int | None = None

    @model_validator(mode="after")
    def validate_target(self) -> "MoveTarget":
        if self.step is not None and self.step not in (-1, 1):
            raise ValueError("step must be -1 (previous level) or 1 (next level)")
        if not self.to_lesson_id and self.level is None and self.step is None and not self.group:
            raise ValueError("Provide to_lesson_id, level, group or step")
        return self

    def as_kwargs(self) -> dict:
        return {"to_lesson_id": self.to_lesson_id, "level": self.level, "group": self.group, "step": self.step}


class MoveStudentRequest(MoveTarget):
    student_id: str = Field(min_length=1, max_length=36)
    from_lesson_id: str = Field(min_length=1, max_length=36)


class MoveAllRequest(MoveTarget):
    from_lesson_id: str = Field(min_length=1, max_length=36)


class MoveOut(BaseModel):
    from_lesson_id: str
    to_lesson_id: str
    moved: list[str]
