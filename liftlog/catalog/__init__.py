from .aggregation import build_candidate_payload, collect_candidates, prepare_pattern_update
from .loader import load_common_catalog, parse_catalog_lines
from .models import CommonExercise, PatternUpdate, UserExercisePattern
from .repository import ExercisePatternRepository, InMemoryPatternRepository

__all__ = [
    "CommonExercise",
    "ExercisePatternRepository",
    "InMemoryPatternRepository",
    "PatternUpdate",
    "UserExercisePattern",
    "build_candidate_payload",
    "collect_candidates",
    "load_common_catalog",
    "parse_catalog_lines",
    "prepare_pattern_update",
]
