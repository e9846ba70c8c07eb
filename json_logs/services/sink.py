"""
Record Sink
-----------
Writes one record per request to a file path (append mode), a caller's
writable handle, or standard output.

Two output modes:
  - raw     one JSON object per line (default)
  - pretty  the JSON is parsed back into plain dicts/lists and handed to a
            Formatter together with the configured options; whatever the
            formatter writes is its own business

Write failures are fatal and surfaced as SinkError. A record that silently
goes missing is worse than a request that fails loudly.
"""

import json
import logging
import os
import threading
from pathlib import Path
from typing import Any, Optional, Protocol, TextIO, Union, runtime_checkable

from json_logs.core.errors import ConfigurationError, ErrorCode, SinkError
from json_logs.core.logging import get_logger, log_lifecycle_event
from json_logs.models.schemas import LogRecord
from json_logs.services.capture import ambient_stream

logger = get_logger(__name__)

# One lock per destination, shared by every sink writing there
_locks: dict[Any, threading.Lock] = {}
_locks_guard = threading.Lock()


def _destination_lock(target: Any) -> threading.Lock:
    if target is None:
        key: Any = ("stdout",)
    elif isinstance(target, (str, Path)):
        key = ("path", os.path.abspath(target))
    else:
        key = ("handle", id(target))
    with _locks_guard:
        return _locks.setdefault(key, threading.Lock())


@runtime_checkable
class Formatter(Protocol):
    """Renders a parsed record as human-readable text."""

    def format(self, record: dict[str, Any], stream: TextIO, options: dict[str, Any]) -> None:
        ...


class RecordSink:
    def __init__(
        self,
        target: Union[str, Path, TextIO, None] = None,
        *,
        pretty_print: bool = False,
        formatter: Optional[Formatter] = None,
        formatter_options: Optional[dict[str, Any]] = None,
        auto_flush: bool = True,
    ):
        if pretty_print and formatter is None:
            raise ConfigurationError(
                ErrorCode.FORMATTER_MISSING,
                "pretty_print is enabled but no formatter was supplied.",
            )

        self.pretty_print = pretty_print
        self.formatter = formatter
        self.formatter_options = dict(formatter_options or {})
        self.auto_flush = auto_flush
        self._lock = _destination_lock(target)
        self._owned = False

        if isinstance(target, (str, Path)):
            try:
                self._stream: Optional[TextIO] = open(target, "a", encoding="utf-8")
            except OSError as exc:
                self._fail(ErrorCode.SINK_OPEN_FAILED, f"Cannot open log file {target}.", exc)
            self._owned = True
        else:
            self._stream = target

    @property
    def stream(self) -> TextIO:
        # Resolved per write: the real stdout, never a request's capture
        return self._stream if self._stream is not None else ambient_stream("stdout")

    def emit(self, record: LogRecord) -> None:
        """Serialize, write and (optionally) flush as one atomic step."""
        serialized = record.to_json()
        with self._lock:
            stream = self.stream
            if self.pretty_print:
                self._format(serialized, stream)
            else:
                self._write(stream, serialized + "\n")

    def _format(self, serialized: str, stream: TextIO) -> None:
        try:
            self.formatter.format(json.loads(serialized), stream, dict(self.formatter_options))
        except Exception as exc:
            self._fail(ErrorCode.FORMATTER_FAILED, "Formatter failed to render the record.", exc)
        self._flush(stream)

    def _write(self, stream: TextIO, text: str) -> None:
        try:
            stream.write(text)
        except (OSError, ValueError) as exc:
            self._fail(ErrorCode.SINK_WRITE_FAILED, "Could not write the record.", exc)
        self._flush(stream)

    def _flush(self, stream: TextIO) -> None:
        if not self.auto_flush:
            return
        try:
            stream.flush()
        except (OSError, ValueError) as exc:
            self._fail(ErrorCode.SINK_WRITE_FAILED, "Could not flush the record.", exc)

    def _fail(self, code: ErrorCode, detail: str, exc: Exception) -> None:
        error = SinkError(code, detail, internal=f"{type(exc).__name__}: {exc}")
        log_lifecycle_event(
            logger, code.value, logging.ERROR,
            detail=error.detail,
            internal=error.internal,
        )
        raise error from exc

    def close(self) -> None:
        """Close a file this sink opened. A caller's handle is left alone."""
        if self._owned:
            self._stream.close()
