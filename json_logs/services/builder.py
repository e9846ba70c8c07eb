"""
Record Builder
--------------
Pure assembly. Everything is measured by the caller; this module only puts
the pieces in their place. No I/O, no clock reads.
"""

import traceback
from typing import Optional

from json_logs.models.schemas import Event, ExceptionInfo, LogRecord


def describe_exception(exc: BaseException) -> ExceptionInfo:
    """Class name, message and one line per traceback frame (raise site first)."""
    cls = type(exc)
    name = cls.__qualname__
    if cls.__module__ not in ("builtins", "__main__"):
        name = f"{cls.__module__}.{name}"

    frames = reversed(traceback.extract_tb(exc.__traceback__))
    return ExceptionInfo(
        class_=name,
        message=str(exc),
        backtrace=[f"{frame.filename}:{frame.lineno}:in {frame.name}" for frame in frames],
    )


def build_record(
    *,
    started_at: float,
    duration: float,
    request_method: str,
    request: str,
    query_string: str,
    status: Optional[int],
    origin: str,
    pid: int,
    stdout: str,
    stderr: str,
    events: Optional[list[Event]] = None,
    exception: Optional[ExceptionInfo] = None,
) -> LogRecord:
    """
    `status` is None when no response was produced; the record says 500.
    `events` is None when the timeline was never used; an empty list is
    kept as an (empty) events field.
    """
    return LogRecord(
        ts=int(started_at),
        duration=duration,
        request_method=request_method,
        request=request,
        query_string=query_string,
        status=500 if status is None else status,
        from_=origin,
        pid=pid,
        stdout=stdout,
        stderr=stderr,
        events=events,
        exception=exception,
    )
