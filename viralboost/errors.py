"""
Application error types.

Every error carries the HTTP status it maps to; the handler registered in
``viralboost.main`` renders them as ``{"error": "<reason>"}``.
"""


class ViralBoostError(Exception):
    """Base exception for errors surfaced to HTTP callers."""

    status_code = 500

    def __init__(self, message: str, recoverable: bool = True):
        super().__init__(message)
        self.message = message
        self.recoverable = recoverable


class ValidationFailed(ViralBoostError):
    """A required field is missing or invalid. Nothing was mutated."""

    status_code = 400


class AccessDenied(ViralBoostError):
    """Wrong or missing admin key."""

    status_code = 403

    def __init__(self, message: str = "Access denied"):
        super().__init__(message, recoverable=False)


class NotFound(ViralBoostError):
    status_code = 404


class Conflict(ViralBoostError):
    """The resource already exists."""

    status_code = 409


class StoreError(ViralBoostError):
    """The storage backend failed to read or record a change."""

    def __init__(self, message: str, operation: str = "unknown", recoverable: bool = True):
        super().__init__(message, recoverable=recoverable)
        self.operation = operation


class UpstreamError(ViralBoostError):
    """A payment or AI collaborator call failed or timed out."""

    def __init__(self, message: str, service: str, recoverable: bool = True):
        super().__init__(message, recoverable=recoverable)
        self.service = service
