"""Exceptions for accounts app."""


class UnauthorizedError(Exception):
    """Raised when a bearer token does not identify an active session."""


class SessionLimitExceededError(Exception):
    """Raised when user exceeds maximum concurrent sessions."""
