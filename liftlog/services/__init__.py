from liftlog.services.internal import SuggestionService, parse_candidate_payload

__all__ = [
    "SuggestionService",
    "parse_candidate_payload",
]
