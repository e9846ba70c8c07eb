"""
Pydantic Models — Log Record / Events / Failure Response
---------------------------------------------------------
These models serve double duty:
  1. The in-memory shape of one request's record (LogRecord)
  2. The wire shape written to the sink (LogRecord.to_dict / to_json)

Records are frozen once built. Optional sections (events, exception) are
omitted from the output entirely when absent, never written as null.
"""

import json
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


# ── Timeline ──────────────────────────────────────────────────────────────────

class Event(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: str
    value: Any = None
    time: float = Field(..., ge=0, description="Seconds since request start, 3 dp.")


# ── Failure ───────────────────────────────────────────────────────────────────

class ExceptionInfo(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    class_: str = Field(..., alias="class")
    message: str
    backtrace: list[str] = Field(default_factory=list)


# ── Record Root ───────────────────────────────────────────────────────────────

class LogRecord(BaseModel):
    """
    One record per request cycle.
    Field order here is the field order on the wire.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    ts: int
    duration: float = Field(..., ge=0)
    request_method: str
    request: str
    query_string: str
    status: int
    from_: str = Field(..., alias="from")
    pid: int
    stdout: str
    stderr: str
    events: Optional[list[Event]] = None
    exception: Optional[ExceptionInfo] = None

    def to_dict(self) -> dict[str, Any]:
        omit = {name for name in ("events", "exception") if getattr(self, name) is None}
        return self.model_dump(by_alias=True, exclude=omit)

    def to_json(self) -> str:
        # Event values are arbitrary; anything not JSON-native is stringified
        return json.dumps(self.to_dict(), default=str)


# ── Synthesized Response ──────────────────────────────────────────────────────

class FailureResponse(BaseModel):
    status: int = 500
    message: str = "Something went wrong..."
