"""
Request Interceptor
-------------------
Owns one request's lifecycle:

    start → capture output + attach timeline → run handler → release capture
          → build record → emit → (re-raise) → respond

The framework adapters in json_logs.api.middleware drive start()/complete()
around their own calling conventions. process() is the same lifecycle for a
plain callable that returns a (status, headers, body) tuple.
"""

import logging
import os
import time
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Optional

from json_logs.core.config import JsonLogsSettings, get_settings
from json_logs.core.logging import get_logger, log_lifecycle_event, set_log_level
from json_logs.models.schemas import ExceptionInfo, FailureResponse, LogRecord
from json_logs.services.builder import build_record, describe_exception
from json_logs.services.capture import OutputCapture
from json_logs.services.sink import Formatter, RecordSink
from json_logs.services.timeline import EventTimeline

logger = get_logger(__name__)

TIMELINE_KEY = "timeline"
FAILURE_HEADERS = {"Content-Type": "application/json"}

Response = tuple[int, Any, Any]


def failure_body() -> bytes:
    return FailureResponse().model_dump_json().encode("utf-8")


def failure_response() -> Response:
    return 500, dict(FAILURE_HEADERS), [failure_body()]


@dataclass
class RequestContext:
    method: str = ""
    path: str = ""
    query_string: str = ""
    state: dict[str, Any] = field(default_factory=dict)

    @property
    def timeline(self) -> Optional[EventTimeline]:
        return self.state.get(TIMELINE_KEY)


class RequestCycle:
    """
    Per-request state. Used as a context manager around the handler call:
    the capture scope is opened on enter and released on every exit path,
    and an Exception from the handler is stored instead of propagated.
    """

    def __init__(self, method: str, path: str, query_string: str):
        self.method = method
        self.path = path
        self.query_string = query_string
        self.started_at = time.time()
        self.started = time.monotonic()
        self.pid = os.getpid()
        self.timeline = EventTimeline(self.started)
        self.status: Optional[int] = None
        self.failure: Optional[Exception] = None
        self.exception_info: Optional[ExceptionInfo] = None
        self.capture = OutputCapture()

    def __enter__(self) -> "RequestCycle":
        self.capture.__enter__()
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.capture.__exit__(exc_type, exc, tb)
        if exc is None or not isinstance(exc, Exception):
            return False
        self.failure = exc
        self.exception_info = describe_exception(exc)
        log_lifecycle_event(
            logger, "handler_failed", logging.DEBUG,
            method=self.method,
            path=self.path,
            error_class=self.exception_info.class_,
        )
        return True

    @property
    def responded(self) -> bool:
        return self.status is not None

    def duration(self) -> float:
        return round(max(time.monotonic() - self.started, 0.0), 3)


class RequestInterceptor:
    def __init__(
        self,
        settings: Optional[JsonLogsSettings] = None,
        *,
        formatter: Optional[Formatter] = None,
        sink: Optional[RecordSink] = None,
    ):
        self.settings = settings or get_settings()
        set_log_level(self.settings.log_level)
        self.sink = sink or RecordSink(
            self.settings.sink,
            pretty_print=self.settings.pretty_print,
            formatter=formatter,
            formatter_options=self.settings.formatter_options,
            auto_flush=self.settings.auto_flush,
        )

    def start(self, method: str, path: str, query_string: str) -> RequestCycle:
        return RequestCycle(method, path, query_string)

    def complete(self, cycle: RequestCycle) -> LogRecord:
        """Build and emit the record, then re-raise the handler failure if configured."""
        record = build_record(
            started_at=cycle.started_at,
            duration=cycle.duration(),
            request_method=cycle.method,
            request=cycle.path,
            query_string=cycle.query_string,
            # A handler that raised produced no response, even if one was started
            status=None if cycle.failure is not None else cycle.status,
            origin=self.settings.origin,
            pid=cycle.pid,
            stdout=cycle.capture.stdout,
            stderr=cycle.capture.stderr,
            events=cycle.timeline.events if cycle.timeline.used else None,
            exception=cycle.exception_info,
        )
        self.sink.emit(record)

        if cycle.failure is not None and self.settings.reraise_failures:
            raise cycle.failure
        return record

    def process(
        self,
        handler: Callable[[RequestContext], Optional[Response]],
        request: RequestContext,
    ) -> Response:
        cycle = self.start(request.method, request.path, request.query_string)
        request = replace(request, state={**request.state, TIMELINE_KEY: cycle.timeline})

        response = None
        with cycle:
            response = handler(request)
            if response is not None:
                cycle.status = int(response[0])

        self.complete(cycle)
        return response if response is not None else failure_response()

    def close(self) -> None:
        self.sink.close()
