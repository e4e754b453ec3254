import asyncio
from collections import defaultdict
from datetime import datetime, timezone
from typing import Callable, Protocol

from loguru import logger

from .loader import load_common_catalog
from .models import CommonExercise, PatternUpdate, UserExercisePattern


class ExercisePatternRepository(Protocol):
    async def list_patterns(self, user_id: str) -> list[UserExercisePattern]: ...

    async def list_common(self) -> list[CommonExercise]: ...

    async def upsert_pattern(self, user_id: str, exercise_name: str, update: PatternUpdate) -> UserExercisePattern: ...


class InMemoryPatternRepository:
    """Pattern store kept in process memory; the relational store is external."""

    def __init__(
        self,
        common: list[CommonExercise] | tuple[CommonExercise, ...] | None = None,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._common = list(common) if common is not None else list(load_common_catalog())
        self._patterns: dict[str, list[UserExercisePattern]] = defaultdict(list)
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._lock = asyncio.Lock()

    async def list_patterns(self, user_id: str) -> list[UserExercisePattern]:
        return [pattern.model_copy(deep=True) for pattern in self._patterns.get(str(user_id), [])]

    async def list_common(self) -> list[CommonExercise]:
        return list(self._common)

    async def upsert_pattern(self, user_id: str, exercise_name: str, update: PatternUpdate) -> UserExercisePattern:
        async with self._lock:
            patterns = self._patterns[str(user_id)]
            pattern = next((item for item in patterns if item.matches(exercise_name)), None)
            if pattern is None:
                pattern = UserExercisePattern(canonical_name=exercise_name, variations=[exercise_name])
                patterns.append(pattern)
                logger.debug(f"exercise_pattern_created user={user_id} name={exercise_name!r}")
            elif not any(variation.lower() == exercise_name.lower() for variation in pattern.variations):
                pattern.variations.append(exercise_name)

            pattern.last_weight = update.weight
            pattern.last_sets = update.sets
            pattern.last_reps = update.reps
            pattern.last_effective_reps_max = update.effective_reps_max
            pattern.last_effective_reps_target = update.effective_reps_target
            pattern.use_effective_reps = update.use_effective_reps
            pattern.usage_count += 1
            pattern.updated_at = self._clock()
            return pattern.model_copy(deep=True)


__all__ = ["ExercisePatternRepository", "InMemoryPatternRepository"]
