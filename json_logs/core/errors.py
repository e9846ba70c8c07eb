"""
Error Contract
--------------
Errors raised by the interceptor itself are typed. Each carries a stable
`error_code` string so callers can tell a sink problem from a misconfiguration.

Failures raised by the wrapped handler are NOT wrapped: they are recorded in
the log record and, when configured, re-raised as the original exception.
"""

from enum import Enum


class ErrorCode(str, Enum):
    # Sink errors
    SINK_OPEN_FAILED = "sink_open_failed"
    SINK_WRITE_FAILED = "sink_write_failed"
    FORMATTER_FAILED = "formatter_failed"

    # Configuration errors
    FORMATTER_MISSING = "formatter_missing"

    # Application-side misuse
    TIMELINE_UNAVAILABLE = "timeline_unavailable"


class JsonLogsError(Exception):
    """Base exception for all errors raised by the interceptor."""

    def __init__(self, code: ErrorCode, detail: str = "", *, internal: str = ""):
        self.code = code
        self.detail = detail or code.value.replace("_", " ").capitalize()
        self.internal = internal  # underlying cause, written to the diagnostic log
        super().__init__(self.detail)


class SinkError(JsonLogsError):
    """A record could not be written. Never swallowed: dropping a record silently is worse."""


class ConfigurationError(JsonLogsError):
    """The settings describe something the interceptor cannot do."""
