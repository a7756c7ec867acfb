"""BondMonitorError — base exception class for all bond monitor errors."""

from __future__ import annotations


class BondMonitorError(Exception):
    """Base error for all bond monitor operations.

    Attributes:
        message: Human-readable error description.
        status_code: Suggested HTTP status code.
        code: Machine-readable error code string.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int = 500,
        code: str = "error",
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code


class ConfigError(BondMonitorError):
    """Configuration file is missing, unreadable or invalid."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="config")
