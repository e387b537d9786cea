from datetime import datetime
from typing import Optional


class StatsException(Exception):
    """Base exception for all profile-statistics errors."""
    pass

class EntityNotFoundException(StatsException):
    """Raised when the requested developer profile does not exist."""
    def __init__(self, entity_id: str, message: str = "GitHub user not found."):
        self.entity_id = entity_id
        super().__init__(f"{message} Please check the username '{entity_id}'.")

class RateLimitExceededException(StatsException):
    """Raised when the GitHub API call budget is exhausted mid-call."""
    def __init__(self, reset_at: Optional[datetime], message: str = "GitHub API rate limit exceeded."):
        self.reset_at = reset_at
        reset_text = reset_at.astimezone().strftime("%H:%M:%S") if reset_at else "unknown"
        super().__init__(f"{message} Limit resets at {reset_text}. Consider adding a personal access token.")

class UnknownTransportException(StatsException):
    """Raised for any other failure talking to the remote API."""
    pass
