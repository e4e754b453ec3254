class SuggestionServiceError(Exception):
    def __init__(self, message: str, code: int = 500, details: str = ""):
        self.message = message
        self.code = code
        self.details = details
        super().__init__(self.message)

    def __str__(self):
        return f"Error {self.code}: {self.message} - {self.details}"


class CandidateSourceError(SuggestionServiceError):
    """Fetching the candidate snapshot failed (transport error or non-2xx status)."""

    def __init__(self, message: str, *, status_code: int | None = None, details: str = "") -> None:
        super().__init__(message, code=status_code or 503, details=details)
        self.status_code = status_code


class SnapshotDecodeError(Exception):
    def __init__(self, user_id: str, reason: str):
        super().__init__(f"Persisted snapshot for user {user_id} is unreadable: {reason}")
        self.user_id = user_id
        self.reason = reason


class InvalidSearchLimitError(ValueError):
    def __init__(self, limit: int):
        super().__init__(f"Search limit must be >= 0, got {limit}")
        self.limit = limit