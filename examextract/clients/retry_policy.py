"""Error classification and retry decisions for model calls."""

from dataclasses import dataclass
from enum import Enum

from openai import (
    APIConnectionError,
    APIStatusError,
    AuthenticationError,
    NotFoundError,
    PermissionDeniedError,
)

TRANSIENT_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


class ErrorKind(Enum):
    TRANSIENT = "transient"  # rate limit, temporary unavailability
    FATAL = "fatal"  # rejected credential, unknown model
    PERMANENT = "permanent"  # anything else; fails this unit only


@dataclass(frozen=True)
class RetryDecision:
    retry: bool
    delay: float


def classify_error(error: BaseException) -> ErrorKind:
    """Sort an exception from the model client into an ErrorKind."""
    if isinstance(error, (AuthenticationError, PermissionDeniedError, NotFoundError)):
        return ErrorKind.FATAL
    if isinstance(error, APIStatusError):
        if error.status_code in TRANSIENT_STATUS_CODES:
            return ErrorKind.TRANSIENT
        return ErrorKind.PERMANENT
    if isinstance(error, APIConnectionError):
        return ErrorKind.TRANSIENT
    return ErrorKind.PERMANENT


def retry_decision(
    attempt: int,
    error_kind: ErrorKind,
    *,
    max_attempts: int = 3,
    base_delay: float = 1.0,
) -> RetryDecision:
    """
    Decide whether a failed attempt should be retried and after how long.

    Args:
        attempt: 1-based number of the attempt that just failed.
        error_kind: Classification of the failure.
        max_attempts: Total attempts allowed, including the first.
        base_delay: Delay in seconds before the first retry.

    Returns:
        RetryDecision. The delay doubles with each attempt (base, 2*base,
        4*base, ...) and is 0 when no retry follows.
    """
    if error_kind is not ErrorKind.TRANSIENT or attempt >= max_attempts:
        return RetryDecision(retry=False, delay=0.0)
    return RetryDecision(retry=True, delay=base_delay * 2 ** (attempt - 1))
