from liftlog.services.internal.api_client import APIClient, APIClientHTTPError, APIClientTransportError
from liftlog.services.internal.suggestion_service import SuggestionService, parse_candidate_payload

__all__ = [
    "APIClient",
    "APIClientHTTPError",
    "APIClientTransportError",
    "SuggestionService",
    "parse_candidate_payload",
]
