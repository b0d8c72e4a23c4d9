"""Exceptions surfaced by the screen time engine."""

from __future__ import annotations


class ScreenTimeError(Exception):
    """Base exception for screen time errors."""

    code = "NATIVE_ERROR"


class PermissionDeniedError(ScreenTimeError):
    """Raised when usage access has not been granted."""

    code = "PERMISSION_DENIED"

    def __init__(self) -> None:
        super().__init__("Usage access permission is not granted.")


class InvalidArgumentError(ScreenTimeError):
    """Raised when a caller passes a missing or malformed argument."""

    code = "INVALID_ARGUMENT"


class SourceUnavailableError(ScreenTimeError):
    """Raised by an event source that cannot be queried right now."""

    code = "SOURCE_UNAVAILABLE"


class UnexpectedFailure(ScreenTimeError):
    """Wraps any other exception raised while answering a query."""

    code = "NATIVE_ERROR"

    def __init__(self, cause: BaseException) -> None:
        super().__init__(f"An unexpected error occurred: {cause}")
        self.cause = cause


class MethodNotImplementedError(ScreenTimeError):
    """Raised for method names the channel does not know."""

    code = "NOT_IMPLEMENTED"

    def __init__(self, method: str) -> None:
        super().__init__(f"Method not implemented: {method}")
