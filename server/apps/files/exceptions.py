"""Exceptions for files app.

Every failure the engine reports to callers derives from
``FileEngineError``; the operation facade maps each class to a status
code and a caller-facing message.
"""


class FileEngineError(Exception):
    """Base class for errors reported by the file engine."""


class RequestValidationError(FileEngineError):
    """Raised when a request is malformed or misses required fields."""

    def __init__(self, message: str, errors: dict[str, list[str]] | None = None) -> None:
        """Initialize RequestValidationError.

        Args:
            message: Summary shown to the caller.
            errors: Optional per-field error messages.
        """
        self.errors = errors or {}
        super().__init__(message)


class PermissionDeniedError(FileEngineError):
    """Raised when the caller's role lacks a capability."""


class NotFoundError(FileEngineError):
    """Raised when a namespace, tag, group, file or slug does not exist."""


class ConflictError(FileEngineError):
    """Raised on ambiguous name matches and taken public slugs."""


class ContentIntegrityError(FileEngineError):
    """Raised when uploaded bytes do not match the supplied checksum."""

    def __init__(self, expected: str, actual: str) -> None:
        """Initialize ContentIntegrityError.

        Args:
            expected: Checksum supplied by the caller.
            actual: Checksum computed from the received bytes.
        """
        self.expected = expected
        self.actual = actual
        super().__init__(
            f'Checksum mismatch: expected {expected}, got {actual}',
        )


class UpstreamFetchError(FileEngineError):
    """Raised when a remote URL cannot be fetched within the limits."""


class FetchCancelledError(UpstreamFetchError):
    """Raised when the caller aborted an in-flight URL fetch."""


class AllocationExhaustedError(FileEngineError):
    """Raised when no free identifier was found within the retry bound."""

    def __init__(self, attempts: int) -> None:
        """Initialize AllocationExhaustedError.

        Args:
            attempts: Number of identifiers tried.
        """
        self.attempts = attempts
        super().__init__(
            f'No free local name found after {attempts} attempts',
        )


class InternalError(FileEngineError):
    """Raised when storage or database I/O fails."""
