from .formatting import format_last_used
from .freshness import CandidateSource, FreshnessController
from .ranking import DEFAULT_LIMIT, rank_exercises, score_exercise, score_variation, search_exercises
from .session import SuggestionSession

__all__ = [
    "DEFAULT_LIMIT",
    "CandidateSource",
    "FreshnessController",
    "SuggestionSession",
    "format_last_used",
    "rank_exercises",
    "score_exercise",
    "score_variation",
    "search_exercises",
]
