"""
Event Timeline
--------------
The only interface application code sees. A handler pulls the timeline off
the request (request.state.timeline, environ["json_logs.timeline"], or the
get_timeline dependency) and logs whatever it finds interesting:

    timeline.log("db_query", {"table": "users", "rows": 3})

Each event is stamped with the seconds elapsed since the request started.
One timeline belongs to one request execution, so insertion order is
chronological order.
"""

import time
from typing import Any, Callable, Optional

from json_logs.models.schemas import Event


class EventTimeline:
    def __init__(
        self,
        started: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._clock = clock
        self._started = clock() if started is None else started
        self._events: list[Event] = []
        self._used = False

    def log(self, type: str, value: Any = None) -> Event:
        """Append an event of type `type` and value `value`."""
        elapsed = max(self._clock() - self._started, 0.0)
        event = Event(type=type, value=value, time=round(elapsed, 3))
        self._used = True
        self._events.append(event)
        return event

    @property
    def events(self) -> list[Event]:
        return list(self._events)

    @property
    def used(self) -> bool:
        return self._used

    def __len__(self) -> int:
        return len(self._events)
