"""
Framework Adapters
------------------
Thin wrappers. All lifecycle logic lives in RequestInterceptor; these only
translate the ASGI / WSGI calling conventions into start()/complete().

ASGI (FastAPI / Starlette):

    app.add_middleware(JsonLogsMiddleware, settings=JsonLogsSettings(...))

    @app.get("/users")
    async def users(timeline: EventTimeline = Depends(get_timeline)):
        timeline.log("cache", "miss")

WSGI:

    application = JsonLogsWSGIMiddleware(application)
    # handler: environ["json_logs.timeline"].log("cache", "miss")
"""

from typing import Any, Callable, Iterable, Optional

from fastapi import Request
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from json_logs.core.config import JsonLogsSettings
from json_logs.core.errors import ErrorCode, JsonLogsError
from json_logs.services.interceptor import (
    FAILURE_HEADERS,
    TIMELINE_KEY,
    RequestInterceptor,
    failure_body,
)
from json_logs.services.sink import Formatter, RecordSink
from json_logs.services.timeline import EventTimeline

WSGI_TIMELINE_KEY = "json_logs.timeline"


# ── ASGI ──────────────────────────────────────────────────────────────────────

class JsonLogsMiddleware:
    def __init__(
        self,
        app: ASGIApp,
        settings: Optional[JsonLogsSettings] = None,
        *,
        formatter: Optional[Formatter] = None,
        sink: Optional[RecordSink] = None,
    ):
        self.app = app
        self.interceptor = RequestInterceptor(settings, formatter=formatter, sink=sink)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        cycle = self.interceptor.start(
            scope.get("method", ""),
            scope.get("path", ""),
            scope.get("query_string", b"").decode("latin-1"),
        )
        scope = {**scope, "state": {**scope.get("state", {}), TIMELINE_KEY: cycle.timeline}}

        async def send_wrapper(message: Message) -> None:
            if message["type"] == "http.response.start":
                cycle.status = message["status"]
            await send(message)

        with cycle:
            await self.app(scope, receive, send_wrapper)

        self.interceptor.complete(cycle)

        if not cycle.responded:
            body = failure_body()
            headers = [(k.lower().encode("latin-1"), v.encode("latin-1")) for k, v in FAILURE_HEADERS.items()]
            headers.append((b"content-length", str(len(body)).encode("latin-1")))
            await send({"type": "http.response.start", "status": 500, "headers": headers})
            await send({"type": "http.response.body", "body": body})


def get_timeline(request: Request) -> EventTimeline:
    """FastAPI dependency: the timeline of the request being handled."""
    timeline = getattr(request.state, TIMELINE_KEY, None)
    if timeline is None:
        raise JsonLogsError(
            ErrorCode.TIMELINE_UNAVAILABLE,
            "No event timeline on this request. Is JsonLogsMiddleware installed?",
        )
    return timeline


# ── WSGI ──────────────────────────────────────────────────────────────────────

class JsonLogsWSGIMiddleware:
    def __init__(
        self,
        app: Callable[..., Iterable[bytes]],
        settings: Optional[JsonLogsSettings] = None,
        *,
        formatter: Optional[Formatter] = None,
        sink: Optional[RecordSink] = None,
    ):
        self.app = app
        self.interceptor = RequestInterceptor(settings, formatter=formatter, sink=sink)

    def __call__(self, environ: dict[str, Any], start_response: Callable) -> Iterable[bytes]:
        cycle = self.interceptor.start(
            environ.get("REQUEST_METHOD", ""),
            environ.get("PATH_INFO", ""),
            environ.get("QUERY_STRING", ""),
        )
        environ = {**environ, WSGI_TIMELINE_KEY: cycle.timeline}
        started: list[int] = []

        def capture_start_response(status: str, headers, exc_info=None):
            started.append(int(status.split(" ", 1)[0]))
            return start_response(status, headers, exc_info)

        body: Optional[list[bytes]] = None
        with cycle:
            # The body is consumed here so output printed while streaming is captured
            iterable = self.app(environ, capture_start_response)
            try:
                body = list(iterable)
            finally:
                close = getattr(iterable, "close", None)
                if close is not None:
                    close()
            if started:
                cycle.status = started[-1]

        self.interceptor.complete(cycle)

        if body is None or not cycle.responded:
            exc_info = None
            if cycle.failure is not None:
                exc_info = (type(cycle.failure), cycle.failure, cycle.failure.__traceback__)
            payload = failure_body()
            start_response(
                "500 Internal Server Error",
                [*FAILURE_HEADERS.items(), ("Content-Length", str(len(payload)))],
                exc_info,
            )
            return [payload]
        return body
