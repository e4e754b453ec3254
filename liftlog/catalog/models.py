from collections import Counter
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from liftlog.schemas import normalize_weight


@dataclass(frozen=True)
class CommonExercise:
    name: str
    category: str
    aliases: tuple[str, ...]

    @property
    def variations(self) -> tuple[str, ...]:
        return self.aliases or (self.name,)


class UserExercisePattern(BaseModel):
    canonical_name: str
    variations: list[str] = Field(default_factory=list)
    last_weight: str | None = None
    last_sets: int | None = None
    last_reps: int | None = None
    last_effective_reps_max: int | None = None
    last_effective_reps_target: int | None = None
    use_effective_reps: bool = False
    usage_count: int = Field(default=0, ge=0)
    updated_at: datetime | None = None
    model_config = ConfigDict(extra="ignore")

    def matches(self, name: str) -> bool:
        needle = name.lower()
        if self.canonical_name.lower() == needle:
            return True
        return any(variation.lower() == needle for variation in self.variations)


class PatternUpdate(BaseModel):
    """Body of a "track exercise" call after a workout is saved."""

    weight: str | None = None
    sets: int | None = Field(default=None, ge=0)
    reps: int | None = Field(default=None, ge=0)
    reps_per_set: list[int] | None = None
    effective_reps_max: int | None = Field(default=None, ge=0)
    effective_reps_target: int | None = Field(default=None, ge=0)
    use_effective_reps: bool = False
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    @field_validator("weight", mode="before")
    @classmethod
    def _normalize_weight(cls, value: Any) -> str | None:
        return normalize_weight(value)

    @model_validator(mode="after")
    def _derive_reps(self) -> "PatternUpdate":
        if self.reps_per_set:
            counts = Counter(self.reps_per_set)
            # most frequent rep count; the smaller count wins a tie
            self.reps = min(counts, key=lambda reps: (-counts[reps], reps))
        return self
