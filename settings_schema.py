from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from errors import InvalidInput, ValidationError


class ConfigSchema(BaseModel):
    db_path: str = "prvault.db"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    recent_bodyweight_limit: int = Field(12, ge=1)
    streak_max_days: int = Field(365, ge=1)
    plate_increment: float = Field(1.25, gt=0)
    keyring_service: str = "prvault"


class StatsSchema(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = ""
    bodyweight: Optional[float] = Field(None, ge=0)
    bench: Optional[float] = Field(None, ge=0)
    squat: Optional[float] = Field(None, ge=0)
    deadlift: Optional[float] = Field(None, ge=0)
    preferences: dict = Field(default_factory=dict)


class ExerciseSchema(BaseModel):
    name: str = Field(min_length=1)
    sets: int = Field(ge=1)
    reps: int = Field(ge=1)


class UserSettingsSchema(BaseModel):
    theme: Literal["dark", "light"] = "dark"
    accent: Literal["original", "darkblue", "pink", "bloodred", "lime"] = "original"
    notifications: bool = True


def validate_config(data: dict) -> dict:
    try:
        return ConfigSchema(**data).model_dump()
    except PydanticValidationError as e:
        raise ValueError(str(e))


def validate_stats(data: dict) -> dict:
    try:
        return StatsSchema(**data).model_dump()
    except PydanticValidationError as e:
        raise InvalidInput(str(e))


def validate_exercises(exercises: list) -> list[dict]:
    if not exercises:
        raise ValidationError("at least one exercise required")
    out = []
    for ex in exercises:
        if not isinstance(ex, dict):
            raise ValidationError("exercise must be a mapping")
        try:
            item = ExerciseSchema(**ex)
        except PydanticValidationError as e:
            raise ValidationError(str(e))
        if not item.name.strip():
            raise ValidationError("exercise name required")
        out.append(item.model_dump())
    return out


def validate_user_settings(data: dict) -> dict:
    try:
        return UserSettingsSchema(**data).model_dump()
    except PydanticValidationError as e:
        raise ValidationError(str(e))
