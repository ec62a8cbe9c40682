"""Custom exception classes for relay communication."""

from typing import Optional


class RelayError(Exception):
    """
    Base exception class for all relay-related errors.
    """
    pass


class RelayUnavailableError(RelayError):
    """
    Raised when the relay is unreachable or a call exceeds its deadline.
    """
    pass


class RelayResponseError(RelayError):
    """
    Raised when the relay answers with an HTTP error status or a body
    that cannot be parsed.
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RelayRejectedError(RelayError):
    """
    Raised when the relay reports ``success: false`` for an operation.
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code
