from datetime import datetime, timezone
from typing import Any, Callable

from loguru import logger
from pydantic import ValidationError

from liftlog.exceptions import CandidateSourceError
from liftlog.schemas import CandidateExercise, CandidatePayload, Snapshot
from liftlog.services.internal.api_client import APIClient, APIClientHTTPError, APIClientTransportError


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _claim_variations(exercise: CandidateExercise, claimed: set[str]) -> CandidateExercise:
    canonical_key = exercise.canonical_name.lower()
    kept: list[str] = []
    for variation in exercise.variations:
        key = variation.lower()
        if key in claimed and key != canonical_key:
            logger.warning(f"candidate_alias_collision alias={variation!r} dropped_from={exercise.canonical_name!r}")
            continue
        kept.append(variation)
    if len(kept) == len(exercise.variations):
        return exercise
    return exercise.model_copy(update={"variations": tuple(kept)})


def parse_candidate_payload(payload: Any, *, clock: Callable[[], datetime] = _utcnow) -> Snapshot:
    """Validate a Candidate Source response and build an immutable snapshot.

    Malformed records are dropped one by one; a record repeating an earlier
    canonical name is dropped, and an alias already used by an earlier record
    is removed from the later one, so each logical exercise appears once.
    """
    try:
        envelope = CandidatePayload.model_validate(payload)
    except ValidationError as exc:
        raise CandidateSourceError("Malformed candidate payload", details=str(exc)) from exc

    if envelope.count is not None and envelope.count != len(envelope.exercises):
        logger.warning(f"candidate_count_mismatch declared={envelope.count} received={len(envelope.exercises)}")

    exercises: list[CandidateExercise] = []
    names: set[str] = set()
    claimed: set[str] = set()
    for index, raw in enumerate(envelope.exercises):
        try:
            exercise = CandidateExercise.model_validate(raw)
        except ValidationError as exc:
            logger.warning(f"candidate_record_dropped index={index} errors={exc.error_count()}")
            continue
        name_key = exercise.canonical_name.lower()
        if name_key in names:
            logger.warning(f"candidate_duplicate_dropped name={exercise.canonical_name!r}")
            continue
        exercise = _claim_variations(exercise, claimed)
        names.add(name_key)
        claimed.update(variation.lower() for variation in exercise.variations)
        exercises.append(exercise)

    fetched_at = envelope.fetched_at or clock()
    return Snapshot(exercises=tuple(exercises), fetched_at=fetched_at)


class SuggestionService(APIClient):
    async def get_snapshot(self, user_id: str | int) -> Snapshot:
        url = self._build_url("api/v1/exercises/all/")
        try:
            status, data = await self._api_request("get", url, params={"user": str(user_id)})
        except (APIClientHTTPError, APIClientTransportError) as exc:
            logger.error(f"Candidate fetch failed for user={user_id}: {exc}")
            raise

        if data is None:
            logger.warning(f"Candidate fetch for user={user_id} returned no JSON body. HTTP={status}")
            raise CandidateSourceError("Empty candidate response", status_code=status)
        snapshot = parse_candidate_payload(data)
        logger.debug(f"Candidate snapshot fetched for user={user_id} count={snapshot.count}")
        return snapshot

    async def track_exercise(self, user_id: str | int, exercise_name: str, exercise_data: dict[str, Any]) -> None:
        url = self._build_url("api/v1/exercises/track/")
        payload = {"user": str(user_id), "exerciseName": exercise_name, "exerciseData": exercise_data}
        status, response = await self._api_request("post", url, payload)
        if status not in {200, 201}:
            logger.error(f"Failed to track exercise {exercise_name!r} for user={user_id}. HTTP={status}: {response}")
            raise CandidateSourceError(f"Failed to track exercise, received status {status}", status_code=status)


__all__ = ["SuggestionService", "parse_candidate_payload"]
