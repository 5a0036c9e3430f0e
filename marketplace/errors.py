"""Domain exceptions. Each one knows the HTTP status it maps to."""

from typing import Any, Optional


class MarketplaceError(Exception):
    """Base class for errors that are safe to show to the client."""

    status_code = 500

    def __init__(self, message: str, details: Optional[Any] = None) -> None:
        self.message = message
        self.details = details
        super().__init__(message)


class Unauthenticated(MarketplaceError):
    status_code = 401

    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(message)


class Forbidden(MarketplaceError):
    status_code = 403

    def __init__(self, message: str = "Forbidden") -> None:
        super().__init__(message)


class NotFound(MarketplaceError):
    status_code = 404


class ValidationFailed(MarketplaceError):
    status_code = 400

    @classmethod
    def for_field(cls, field: str, message: str) -> "ValidationFailed":
        return cls("Invalid data", details=[{"field": field, "message": message}])


class ConflictError(MarketplaceError):
    # Duplicate submissions are reported as bad input (400)
    status_code = 400


class InvalidState(MarketplaceError):
    status_code = 409


class ExternalServiceError(MarketplaceError):
    status_code = 503

    def __init__(self, message: str = "AI service is unavailable, please try again") -> None:
        super().__init__(message)
