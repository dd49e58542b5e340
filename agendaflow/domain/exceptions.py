"""
Domain-specific exception hierarchy for the scheduling engine.
"""

from typing import Optional


class AgendaError(Exception):
    """Base class for all application-level errors."""


class ConfigurationError(AgendaError):
    """Raised when availability configuration cannot be parsed."""


class ValidationError(AgendaError):
    """Raised when a transition or submission is missing required data."""


class InvalidTransitionError(AgendaError):
    """Raised when the requested status is not reachable from the current one."""


class AuthorizationError(AgendaError):
    """Raised when the acting user lacks reviewer authority."""


class ConflictError(AgendaError):
    """Raised when another actor already resolved the same request or slot."""


class BackendError(AgendaError):
    """Raised when the backend rejects a call or returns unusable data."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        code: Optional[str] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.code = code


class TransientBackendError(BackendError):
    """Raised on network failures and 5xx responses; safe to retry later."""
