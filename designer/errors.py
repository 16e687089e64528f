"""Exceptions raised by the badge designer."""

from typing import List, Optional


class BadgeDesignerError(Exception):
    """Base class for designer errors."""


class ValidationError(BadgeDesignerError):
    """A template or element change was rejected; nothing was modified."""

    def __init__(self, message: str, issues: Optional[List] = None):
        super().__init__(message)
        self.message = message
        self.issues = list(issues or [])


class BatchCapExceeded(ValidationError):
    """Too many badges requested for one batch export."""

    def __init__(self, requested: int, limit: int):
        super().__init__(
            f"You can only print up to {limit} badges at a time "
            f"({requested} selected). Please select fewer registrations."
        )
        self.requested = requested
        self.limit = limit


class ExternalServiceError(BadgeDesignerError):
    """The backend could not be reached or answered with a failure."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status = status
