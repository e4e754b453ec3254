from datetime import datetime, timedelta, timezone
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationInfo, field_validator, model_validator
from pydantic.alias_generators import to_camel

from liftlog.enums import ExerciseSource

BODYWEIGHT = "BW"


def normalize_weight(value: Any) -> str | None:
    """Return ``"BW"`` or numeric text; blank means no weight."""
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError("weight must be numeric text or 'BW'")
    if isinstance(value, (int, float)):
        return f"{value:g}"
    text = str(value).strip()
    if not text:
        return None
    if text.upper() == BODYWEIGHT:
        return BODYWEIGHT
    try:
        float(text)
    except ValueError as exc:
        raise ValueError(f"weight must be numeric text or 'BW', got {text!r}") from exc
    return text


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class CandidateExercise(BaseModel):
    canonical_name: str
    variations: tuple[str, ...] = Field(default=(), validate_default=True)
    last_weight: str | None = None
    last_sets: int | None = Field(default=None, ge=0)
    last_reps: int | None = Field(default=None, ge=0)
    last_effective_reps_max: int | None = Field(default=None, ge=0)
    last_effective_reps_target: int | None = Field(default=None, ge=0)
    use_effective_reps: bool = False
    usage_count: int = Field(default=0, ge=0)
    updated_at: datetime | None = None
    source: ExerciseSource
    category: str | None = None
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True, extra="ignore")

    @model_validator(mode="before")
    @classmethod
    def _accept_name_alias(cls, data: Any) -> Any:
        # older payloads key the record by "name"
        if isinstance(data, dict) and "name" in data and "canonicalName" not in data and "canonical_name" not in data:
            data = dict(data)
            data["canonicalName"] = data.pop("name")
        return data

    @field_validator("canonical_name")
    @classmethod
    def _require_name(cls, value: str) -> str:
        text = " ".join(str(value).split())
        if not text:
            raise ValueError("canonical name must not be blank")
        return text

    @field_validator("variations", mode="before")
    @classmethod
    def _coerce_variations(cls, value: Any) -> Any:
        if value is None:
            return ()
        if isinstance(value, str):
            return (value,)
        return value

    @field_validator("variations")
    @classmethod
    def _normalize_variations(cls, value: tuple[str, ...], info: ValidationInfo) -> tuple[str, ...]:
        canonical = info.data.get("canonical_name")
        seen: set[str] = set()
        result: list[str] = []
        for item in value:
            text = " ".join(str(item or "").split())
            if not text or text.lower() in seen:
                continue
            seen.add(text.lower())
            result.append(text)
        if canonical and canonical.lower() not in seen:
            result.insert(0, canonical)
        return tuple(result)

    @field_validator("last_weight", mode="before")
    @classmethod
    def _normalize_weight(cls, value: Any) -> str | None:
        return normalize_weight(value)

    @field_validator("use_effective_reps", mode="before")
    @classmethod
    def _null_is_false(cls, value: Any) -> Any:
        return False if value is None else value

    @field_validator("updated_at")
    @classmethod
    def _updated_at_utc(cls, value: datetime | None) -> datetime | None:
        return _as_utc(value) if value is not None else None


class Suggestion(CandidateExercise):
    """A candidate projected through the variation that matched the query."""

    source_name: str
    score: int = 0


class Snapshot(BaseModel):
    exercises: tuple[CandidateExercise, ...] = ()
    fetched_at: datetime
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    @field_validator("fetched_at")
    @classmethod
    def _fetched_at_utc(cls, value: datetime) -> datetime:
        return _as_utc(value)

    @property
    def count(self) -> int:
        return len(self.exercises)

    def age(self, now: datetime) -> timedelta:
        return _as_utc(now) - self.fetched_at


class CandidatePayload(BaseModel):
    exercises: list[Any] = Field(default_factory=list)
    fetched_at: datetime | None = Field(default=None, validation_alias=AliasChoices("fetchedAt", "lastUpdated", "fetched_at"))
    count: int | None = None
    model_config = ConfigDict(extra="ignore")

    @field_validator("fetched_at", mode="before")
    @classmethod
    def _tolerate_bad_timestamp(cls, value: Any) -> Any:
        if isinstance(value, datetime):
            return value
        if isinstance(value, str) and value.strip():
            try:
                return datetime.fromisoformat(value.strip())
            except ValueError:
                return None
        return None

    @field_validator("count", mode="before")
    @classmethod
    def _tolerate_bad_count(cls, value: Any) -> Any:
        return value if isinstance(value, int) and not isinstance(value, bool) else None


class FetchErrorInfo(BaseModel):
    message: str
    status_code: int | None = None
    occurred_at: datetime
    model_config = ConfigDict(frozen=True)
