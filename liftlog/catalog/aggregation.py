from datetime import datetime, timezone
from typing import Any, Iterable

from liftlog.enums import ExerciseSource

from .models import CommonExercise, PatternUpdate, UserExercisePattern
from .repository import ExercisePatternRepository


def _user_candidate(pattern: UserExercisePattern) -> dict[str, Any]:
    return {
        "canonicalName": pattern.canonical_name,
        "variations": list(pattern.variations) or [pattern.canonical_name],
        "lastWeight": pattern.last_weight,
        "lastSets": pattern.last_sets,
        "lastReps": pattern.last_reps,
        "lastEffectiveRepsMax": pattern.last_effective_reps_max,
        "lastEffectiveRepsTarget": pattern.last_effective_reps_target,
        "useEffectiveReps": pattern.use_effective_reps,
        "usageCount": pattern.usage_count,
        "updatedAt": pattern.updated_at.isoformat() if pattern.updated_at else None,
        "source": ExerciseSource.user.value,
    }


def _common_candidate(entry: CommonExercise) -> dict[str, Any]:
    return {
        "canonicalName": entry.name,
        "variations": list(entry.variations),
        "category": entry.category,
        "lastWeight": None,
        "lastSets": None,
        "lastReps": None,
        "lastEffectiveRepsMax": None,
        "lastEffectiveRepsTarget": None,
        "useEffectiveReps": False,
        "usageCount": 0,
        "updatedAt": None,
        "source": ExerciseSource.common.value,
    }


def _recency(pattern: UserExercisePattern) -> float:
    return pattern.updated_at.timestamp() if pattern.updated_at else float("-inf")


def build_candidate_payload(
    user_patterns: Iterable[UserExercisePattern],
    common_exercises: Iterable[CommonExercise],
    *,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Merge a user's exercise history with the shared catalog.

    Catalog entries whose name matches any of the user's variations
    (case-insensitively) are left out, so every logical exercise appears once
    and as a ``user`` entry when the user has logged it.
    """
    patterns = sorted(user_patterns, key=lambda p: (p.usage_count, _recency(p)), reverse=True)
    user_exercises = [_user_candidate(pattern) for pattern in patterns]
    known = {variation.lower() for item in user_exercises for variation in item["variations"]}
    known.update(pattern.canonical_name.lower() for pattern in patterns)

    common = sorted(common_exercises, key=lambda entry: entry.name)
    common_candidates = [_common_candidate(entry) for entry in common if entry.name.lower() not in known]

    exercises = user_exercises + common_candidates
    fetched_at = now or datetime.now(timezone.utc)
    return {
        "exercises": exercises,
        "fetchedAt": fetched_at.isoformat(),
        "count": len(exercises),
    }


async def collect_candidates(
    repository: ExercisePatternRepository, user_id: str, *, now: datetime | None = None
) -> dict[str, Any]:
    patterns = await repository.list_patterns(user_id)
    common = await repository.list_common()
    return build_candidate_payload(patterns, common, now=now)


def prepare_pattern_update(exercise_name: Any, exercise_data: dict[str, Any] | None) -> tuple[str, PatternUpdate]:
    if not isinstance(exercise_name, str) or not exercise_name.strip():
        raise ValueError("Exercise name is required")
    name = " ".join(exercise_name.split())
    return name, PatternUpdate.model_validate(exercise_data or {})


__all__ = ["build_candidate_payload", "collect_candidates", "prepare_pattern_update"]
