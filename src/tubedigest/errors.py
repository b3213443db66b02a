from __future__ import annotations

from enum import StrEnum


class ErrorCode(StrEnum):
    INVALID_INPUT = "INVALID_INPUT"
    AUTH_FAILED = "AUTH_FAILED"
    RATE_LIMITED = "RATE_LIMITED"
    SERVICE_ERROR = "SERVICE_ERROR"
    TIMEOUT = "TIMEOUT"


class SummaryError(Exception):
    """Raised for every expected failure of a summary request.

    The message channel catches it and serialises it into an error response,
    so the UI side always receives data rather than a fault.
    """

    code: ErrorCode = ErrorCode.SERVICE_ERROR

    def __init__(
        self,
        message: str,
        suggestion: str,
        recoverable: bool = False,
        *,
        code: ErrorCode | None = None,
    ) -> None:
        super().__init__(message)
        if code is not None:
            self.code = code
        self.message = message
        self.suggestion = suggestion
        self.recoverable = recoverable


class InputError(SummaryError):
    code = ErrorCode.INVALID_INPUT

    def __init__(self, message: str, suggestion: str = "Check the request fields.") -> None:
        super().__init__(message, suggestion, recoverable=False)


class AuthError(SummaryError):
    code = ErrorCode.AUTH_FAILED

    def __init__(
        self,
        message: str,
        suggestion: str = "The generation credential is invalid or expired. Update the API key.",
    ) -> None:
        super().__init__(message, suggestion, recoverable=False)


class RateLimitError(SummaryError):
    code = ErrorCode.RATE_LIMITED

    def __init__(self, message: str, retry_after: float | None = None) -> None:
        if retry_after is not None:
            suggestion = f"Rate limit exceeded. Retry after {retry_after:g} seconds."
        else:
            suggestion = "Rate limit exceeded. Please try again later."
        super().__init__(message, suggestion, recoverable=True)
        self.retry_after = retry_after


class ServiceError(SummaryError):
    code = ErrorCode.SERVICE_ERROR

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        suggestion: str = "The summary service may be temporarily unavailable. Try again later.",
    ) -> None:
        super().__init__(message, suggestion, recoverable=True)
        self.status_code = status_code


class GenerationTimeout(SummaryError):
    code = ErrorCode.TIMEOUT

    def __init__(self, timeout_seconds: float) -> None:
        super().__init__(
            f"Summary generation timed out after {timeout_seconds:g} seconds",
            "The service took too long to respond. Try again.",
            recoverable=True,
        )
        self.timeout_seconds = timeout_seconds
