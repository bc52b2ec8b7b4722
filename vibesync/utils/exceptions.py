"""
Exception handling utilities.

Defines the sync error hierarchy and categorizes exceptions by handling
strategy (retry the unit of work, or escalate).
"""

from enum import Enum

from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError


class SyncError(Exception):
    """Base exception for the indexer."""
    pass


class ConfigurationError(SyncError):
    """Raised when configuration is unusable. Fatal at startup."""
    pass


class TransientNetworkError(SyncError):
    """Raised when the chain node is unreachable or times out. Retryable."""
    pass


class RangeTooLargeError(TransientNetworkError):
    """Raised when the node refuses a log query because it spans too much."""
    pass


class InvalidRangeError(SyncError):
    """Raised for an impossible block range. Fatal for that call."""

    def __init__(self, from_block: int, to_block: int) -> None:
        self.from_block = from_block
        self.to_block = to_block
        super().__init__(f"Invalid block range {from_block} -> {to_block}")


class DecodeFailure(str, Enum):
    """Why a raw log could not become a domain event."""

    UNRECOGNIZED = "unrecognized"
    MALFORMED = "malformed"


class DecodeError(SyncError):
    """Raised when a raw log entry is not one of the indexed events."""

    def __init__(self, reason: DecodeFailure, detail: str = "") -> None:
        self.reason = reason
        self.detail = detail
        super().__init__(f"{reason.value}: {detail}" if detail else reason.value)


class AmountPrecisionError(SyncError):
    """
    Raised when a fixed-point amount cannot be represented exactly.

    This is a programming error (wrong decimals or context), never a
    runtime-tolerable condition.
    """
    pass


class StoreConsistencyError(SyncError):
    """Raised when a row rejected as a duplicate cannot be read back."""
    pass


class WindowRetryExhaustedError(SyncError):
    """Raised when a backfill window keeps failing after all attempts."""

    def __init__(self, from_block: int, to_block: int, attempts: int) -> None:
        self.from_block = from_block
        self.to_block = to_block
        self.attempts = attempts
        super().__init__(
            f"Window {from_block}-{to_block} failed after {attempts} attempts"
        )


# Exception categories based on handling strategy

# Retry the whole unit of work (window or event) after backoff
RETRYABLE = (
    TransientNetworkError,
    OperationalError,  # Connection dropped, serialization failure
    DBAPIError,        # Driver-level failures
)


def is_retryable(exc: BaseException) -> bool:
    """
    Check if the failed operation can be retried safely.

    Args:
        exc: Exception to check

    Returns:
        True if retrying the unit of work is safe
    """
    if isinstance(exc, IntegrityError):
        return False
    return isinstance(exc, RETRYABLE)

