"""Tiered match scoring for exercise autocomplete.

A variation scores 1000 for an exact (case-insensitive) match, 500 plus a
length bonus when it starts with the query, and 100 plus a length bonus when
it merely contains it. Entries from the user's own history get a boost of
``1000 + usage_count * 10`` so they always outrank catalog entries.
"""

from collections.abc import Iterable

from liftlog.enums import ExerciseSource
from liftlog.exceptions import InvalidSearchLimitError
from liftlog.schemas import CandidateExercise, Snapshot, Suggestion

DEFAULT_LIMIT = 8

EXACT_SCORE = 1000
PREFIX_SCORE = 500
SUBSTRING_SCORE = 100
LENGTH_BONUS_BASE = 100
USER_BOOST = 1000
USAGE_WEIGHT = 10


def score_variation(variation: str, query: str) -> int:
    """Score one variation against an already lower-cased query; 0 means no match."""
    candidate = variation.lower()
    if candidate == query:
        return EXACT_SCORE
    bonus = LENGTH_BONUS_BASE - len(variation)
    if candidate.startswith(query):
        return max(PREFIX_SCORE, PREFIX_SCORE + bonus)
    if query in candidate:
        return max(SUBSTRING_SCORE, SUBSTRING_SCORE + bonus)
    return 0


def provenance_boost(exercise: CandidateExercise) -> int:
    if exercise.source == ExerciseSource.user:
        return USER_BOOST + exercise.usage_count * USAGE_WEIGHT
    return 0


def score_exercise(exercise: CandidateExercise, query: str) -> tuple[str, int] | None:
    for variation in exercise.variations:
        base = score_variation(variation, query)
        if base:
            return variation, base + provenance_boost(exercise)
    return None


def _project(exercise: CandidateExercise, variation: str, score: int) -> Suggestion:
    data = exercise.model_dump()
    data["canonical_name"] = variation
    return Suggestion(**data, source_name=exercise.canonical_name, score=score)


def rank_exercises(query: str, exercises: Iterable[CandidateExercise], limit: int = DEFAULT_LIMIT) -> list[Suggestion]:
    if limit < 0:
        raise InvalidSearchLimitError(limit)
    if not query or limit == 0:
        return []
    needle = query.lower()

    matches: list[tuple[int, CandidateExercise, str]] = []
    for exercise in exercises:
        scored = score_exercise(exercise, needle)
        if scored is None:
            continue
        variation, score = scored
        matches.append((score, exercise, variation))

    # sorted() is stable, so equal scores keep snapshot order
    matches.sort(key=lambda item: item[0], reverse=True)
    return [_project(exercise, variation, score) for score, exercise, variation in matches[:limit]]


def search_exercises(query: str, snapshot: Snapshot | None, limit: int = DEFAULT_LIMIT) -> list[Suggestion]:
    if snapshot is None:
        if limit < 0:
            raise InvalidSearchLimitError(limit)
        return []
    return rank_exercises(query, snapshot.exercises, limit)


__all__ = [
    "DEFAULT_LIMIT",
    "provenance_boost",
    "rank_exercises",
    "score_exercise",
    "score_variation",
    "search_exercises",
]
