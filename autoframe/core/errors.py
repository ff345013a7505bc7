"""Error classification for provider failures.

Every failure leaving the orchestrator is a ``ClassifiedError`` with an
explicit ``kind``. ``classify`` is a pure function of the raw error text and
status code; it performs no I/O.

Rules, in priority order:
    1. quota / rate-limit markers or HTTP 429 -> QUOTA_EXCEEDED
       (``retryDelay":"<N>s"`` parsed, else the default delay)
    2. empty result markers -> NO_RESULT
    3. explicit non-429 status -> preserved; 5xx -> UNKNOWN, other -> FATAL
    4. anything else -> UNKNOWN

Examples:
    >>> err = classify(Exception('429 RESOURCE_EXHAUSTED {"retryDelay":"45s"}'))
    >>> err.kind, err.retry_delay_seconds
    (<ErrorKind.QUOTA_EXCEEDED: 'quotaExceeded'>, 45)

Tests:
    - tests/unit/test_errors.py
"""

from __future__ import annotations

import re
from enum import Enum

DEFAULT_RETRY_DELAY_SECONDS = 60

QUOTA_MARKERS = ("resource_exhausted", "quota", "rate limit", "too many requests")
NO_RESULT_MARKERS = ("no image", "no usable image", "empty response")
TRANSIENT_STATUSES = frozenset({500, 502, 503, 504})

_RETRY_DELAY_RE = re.compile(r"retryDelay\\?[\"']\s*:\s*\\?[\"'](\d+)(?:\.\d+)?s", re.IGNORECASE)
_STATUS_IN_TEXT_RE = re.compile(r"^\s*(\d{3})\b")


class ErrorKind(str, Enum):
    """Failure categories."""

    MISSING_CREDENTIAL = "missingCredential"
    INVALID_REQUEST = "invalidRequest"
    QUOTA_EXCEEDED = "quotaExceeded"
    NO_RESULT = "noResult"
    FATAL = "fatal"
    UNKNOWN = "unknown"


# Kinds that let auto mode try the secondary provider
FALLBACK_KINDS = frozenset({ErrorKind.QUOTA_EXCEEDED, ErrorKind.NO_RESULT})


class ClassifiedError(Exception):
    """A provider failure with an explicit kind.

    Attributes:
        kind: Failure category
        message: Human-readable message (raw provider text where available)
        retry_delay_seconds: Suggested wait for quota errors
        http_status: Upstream HTTP status, if one was known
        combined: True when both providers failed in one attempt
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        retry_delay_seconds: int | None = None,
        http_status: int | None = None,
        combined: bool = False,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.retry_delay_seconds = retry_delay_seconds
        self.http_status = http_status
        self.combined = combined

    @property
    def response_status(self) -> int:
        """HTTP status to report to API callers."""
        if self.kind == ErrorKind.INVALID_REQUEST:
            return 400
        if self.kind == ErrorKind.QUOTA_EXCEEDED:
            return 429
        if self.kind == ErrorKind.NO_RESULT or self.combined:
            return 502
        return 500

    def __repr__(self) -> str:
        return (
            f"ClassifiedError(kind={self.kind.value!r}, message={self.message!r}, "
            f"retry_delay_seconds={self.retry_delay_seconds!r}, http_status={self.http_status!r})"
        )


def extract_status(error: BaseException) -> int | None:
    """Pull an HTTP status code off an exception, if it carries one."""
    for attr in ("status_code", "code", "http_status"):
        value = getattr(error, attr, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    response = getattr(error, "response", None)
    if response is not None:
        value = getattr(response, "status_code", None)
        if isinstance(value, int):
            return value
    return None


def extract_message(error: BaseException) -> str:
    """Raw message text of an exception."""
    if error.args and isinstance(error.args[0], str) and error.args[0]:
        return error.args[0]
    return str(error) or type(error).__name__


def parse_retry_delay(text: str) -> int | None:
    """Parse an embedded ``retryDelay":"<N>s"`` token.

    Examples:
        >>> parse_retry_delay('{"retryDelay":"45s"}')
        45
        >>> parse_retry_delay("nothing here") is None
        True
    """
    match = _RETRY_DELAY_RE.search(text)
    if match:
        return int(match.group(1))
    return None


def classify_message(
    message: str,
    status: int | None = None,
    default_retry_delay: int = DEFAULT_RETRY_DELAY_SECONDS,
) -> ClassifiedError:
    """Classify a raw message and optional status code."""
    if status is None:
        match = _STATUS_IN_TEXT_RE.match(message)
        if match:
            status = int(match.group(1))

    lowered = message.lower()

    if status == 429 or any(marker in lowered for marker in QUOTA_MARKERS):
        delay = parse_retry_delay(message)
        return ClassifiedError(
            ErrorKind.QUOTA_EXCEEDED,
            message,
            retry_delay_seconds=delay if delay is not None else default_retry_delay,
            http_status=429,
        )

    if any(marker in lowered for marker in NO_RESULT_MARKERS):
        return ClassifiedError(ErrorKind.NO_RESULT, message, http_status=status)

    if status is not None:
        kind = ErrorKind.UNKNOWN if status in TRANSIENT_STATUSES else ErrorKind.FATAL
        return ClassifiedError(kind, message, http_status=status)

    return ClassifiedError(ErrorKind.UNKNOWN, message)


def classify(
    error: BaseException | str,
    default_retry_delay: int = DEFAULT_RETRY_DELAY_SECONDS,
) -> ClassifiedError:
    """Classify a raw provider failure.

    Args:
        error: The exception raised by a provider (or its message).
        default_retry_delay: Delay used for quota errors without a retryDelay.

    Returns:
        ClassifiedError: The classified failure. Already-classified errors
        are returned unchanged.
    """
    if isinstance(error, ClassifiedError):
        return error
    if isinstance(error, str):
        return classify_message(error, default_retry_delay=default_retry_delay)

    # Imported here to keep this module free of provider imports at load time
    from autoframe.core.providers.base import NoImageError

    message = extract_message(error)
    status = extract_status(error)
    if isinstance(error, NoImageError):
        return ClassifiedError(ErrorKind.NO_RESULT, message, http_status=status)
    return classify_message(message, status, default_retry_delay)


def combined_failure(primary: ClassifiedError, secondary: ClassifiedError) -> ClassifiedError:
    """Both providers failed within one attempt."""
    return ClassifiedError(
        ErrorKind.FATAL,
        f"{primary.message}; secondary failed ({secondary.message})",
        http_status=secondary.http_status or primary.http_status,
        combined=True,
    )
