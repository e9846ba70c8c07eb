"""
Output Capture
--------------
Recovers what a single request printed to stdout / stderr.

Swapping sys.stdout for a buffer on every request is a race: two concurrent
requests overwrite and restore each other's streams. Instead each process
stream is wrapped ONCE in a proxy, and the proxy looks up the destination
buffer in a context variable. Every asyncio task and every thread has its own
context, so a capture bound in one request is invisible to all others.

    with OutputCapture() as captured:
        handler()
    captured.stdout, captured.stderr

Code running in a thread started with contextvars.copy_context() (Starlette's
threadpool for sync endpoints does this) writes into the request that
started it. Plain threads with a fresh context write to the real stream.
"""

import io
import sys
import threading
from contextvars import ContextVar, Token
from typing import Any, Optional, TextIO

from json_logs.core.logging import get_logger, log_lifecycle_event

logger = get_logger(__name__)

_STREAMS = ("stdout", "stderr")

_buffers: dict[str, ContextVar[Optional[io.StringIO]]] = {
    name: ContextVar(f"json_logs_{name}", default=None) for name in _STREAMS
}

_install_lock = threading.Lock()


class _ContextStream:
    """Stands in for sys.stdout / sys.stderr. Routes writes by context."""

    def __init__(self, name: str, wrapped: TextIO):
        self._name = name
        self._wrapped = wrapped

    @property
    def wrapped(self) -> TextIO:
        return self._wrapped

    def _target(self) -> Any:
        buffer = _buffers[self._name].get()
        return self._wrapped if buffer is None else buffer

    def write(self, text: str) -> int:
        return self._target().write(text)

    def writelines(self, lines) -> None:
        self._target().writelines(lines)

    def flush(self) -> None:
        self._target().flush()

    def isatty(self) -> bool:
        if _buffers[self._name].get() is not None:
            return False
        return self._wrapped.isatty()

    def __getattr__(self, attr: str) -> Any:
        # encoding, fileno, buffer, ... come from the real stream
        return getattr(self._wrapped, attr)


def _install() -> None:
    """Wrap the process streams, unless they already are wrapped."""
    with _install_lock:
        for name in _STREAMS:
            current = getattr(sys, name)
            if not isinstance(current, _ContextStream):
                setattr(sys, name, _ContextStream(name, current))
                log_lifecycle_event(logger, "capture_proxy_installed", stream=name)


def ambient_stream(name: str) -> TextIO:
    """The real process stream beneath the proxy."""
    current = getattr(sys, name)
    if isinstance(current, _ContextStream):
        return current.wrapped
    return current


class OutputCapture:
    """
    Scoped capture of stdout / stderr for the current execution context.
    Release on exit is unconditional; nothing is suppressed.
    """

    def __init__(self):
        self._out = io.StringIO()
        self._err = io.StringIO()
        self._tokens: list[tuple[str, Token]] = []

    def __enter__(self) -> "OutputCapture":
        _install()
        self._tokens = [
            ("stdout", _buffers["stdout"].set(self._out)),
            ("stderr", _buffers["stderr"].set(self._err)),
        ]
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        while self._tokens:
            name, token = self._tokens.pop()
            _buffers[name].reset(token)
        return False

    @property
    def active(self) -> bool:
        return bool(self._tokens)

    @property
    def stdout(self) -> str:
        return self._out.getvalue()

    @property
    def stderr(self) -> str:
        return self._err.getvalue()
