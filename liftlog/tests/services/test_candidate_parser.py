from datetime import datetime, timezone

import pytest

from liftlog.enums import ExerciseSource
from liftlog.exceptions import CandidateSourceError
from liftlog.services import parse_candidate_payload
from liftlog.tests.conftest import T0


def _record(name, variations=None, source="common", **extra):
    data = {"canonicalName": name, "variations": variations or [name], "source": source}
    data.update(extra)
    return data


def test_parses_envelope_and_records():
    payload = {
        "exercises": [
            _record("Bench Press", ["Bench Press", "BP"], "user", usageCount=5, lastWeight="80", lastSets=3, lastReps=8),
            _record("Squat", category="legs"),
        ],
        "fetchedAt": "2026-03-01T12:00:00Z",
        "count": 2,
    }
    snapshot = parse_candidate_payload(payload)

    assert snapshot.fetched_at == T0
    assert snapshot.count == 2
    bench, squat = snapshot.exercises
    assert bench.source == ExerciseSource.user
    assert bench.variations == ("Bench Press", "BP")
    assert bench.usage_count == 5
    assert bench.last_weight == "80"
    assert squat.category == "legs"


def test_last_updated_alias_and_clock_fallback():
    snapshot = parse_candidate_payload({"exercises": [], "lastUpdated": "2026-03-01T12:00:00+00:00"})
    assert snapshot.fetched_at == T0

    later = datetime(2026, 4, 1, tzinfo=timezone.utc)
    snapshot = parse_candidate_payload({"exercises": [], "fetchedAt": "yesterday"}, clock=lambda: later)
    assert snapshot.fetched_at == later


def test_malformed_records_are_dropped_individually():
    payload = {
        "exercises": [
            {"variations": ["No Name"], "source": "common"},
            _record("Heavy Row", lastWeight="heavy"),
            _record("Negative", usageCount=-1),
            _record("Unknown Source", source="friend"),
            "not a record",
            _record("Deadlift"),
        ],
        "count": 6,
    }
    snapshot = parse_candidate_payload(payload, clock=lambda: T0)
    assert [item.canonical_name for item in snapshot.exercises] == ["Deadlift"]


def test_name_key_and_null_fields_are_accepted():
    payload = {
        "exercises": [
            {
                "name": "Pull-ups",
                "variations": None,
                "source": "user",
                "lastWeight": "bw",
                "useEffectiveReps": None,
                "usageCount": 2,
            }
        ]
    }
    exercise = parse_candidate_payload(payload, clock=lambda: T0).exercises[0]
    assert exercise.canonical_name == "Pull-ups"
    assert exercise.variations == ("Pull-ups",)
    assert exercise.last_weight == "BW"
    assert exercise.use_effective_reps is False


def test_duplicate_names_and_alias_collisions():
    payload = {
        "exercises": [
            _record("Bench Press", ["Bench Press", "BP"], "user", usageCount=3),
            _record("bench press", ["bench press"], "common"),
            _record("Bent Press", ["Bent Press", "bp"], "user"),
        ]
    }
    snapshot = parse_candidate_payload(payload, clock=lambda: T0)
    assert [item.canonical_name for item in snapshot.exercises] == ["Bench Press", "Bent Press"]
    assert snapshot.exercises[1].variations == ("Bent Press",)


@pytest.mark.parametrize("payload", [[], "exercises", {"exercises": "nope"}])
def test_invalid_envelope_raises(payload):
    with pytest.raises(CandidateSourceError):
        parse_candidate_payload(payload)


def test_canonical_name_survives_case_only_alias_collision():
    payload = {
        "exercises": [
            _record("Bench Press", ["Bench Press", "Bench"], "user"),
            _record("BENCH", ["bench", "Flat Bench"], "common"),
        ]
    }
    snapshot = parse_candidate_payload(payload, clock=lambda: T0)
    later = snapshot.exercises[1]
    assert later.canonical_name == "BENCH"
    assert later.variations == ("bench", "Flat Bench")
