"""
User activity monitor used to tell engagement from idle presence
"""
import logging
from typing import Optional

from ...core.clock import Clock, now_ms
from .elements import EventSource

logger = logging.getLogger(__name__)

ACTIVITY_EVENTS = ("mousemove", "keydown", "touchstart", "wheel")


class ActivityMonitor:
    """Tracks the last moment the user moved, typed, touched or scrolled"""

    def __init__(self, clock: Clock = now_ms):
        self.clock = clock
        self.last_active_at = clock()
        self._source: Optional[EventSource] = None

    def record_activity(self, event: Optional[str] = None) -> None:
        self.last_active_at = self.clock()

    def idle_duration_ms(self) -> float:
        return self.clock() - self.last_active_at

    def attach(self, source: EventSource) -> None:
        """Register activity listeners; re-attaching moves them to the new source"""
        self.detach()
        for event in ACTIVITY_EVENTS:
            source.add_listener(event, self.record_activity)
        self._source = source

    def detach(self) -> None:
        if self._source is None:
            return
        for event in ACTIVITY_EVENTS:
            self._source.remove_listener(event, self.record_activity)
        self._source = None

    @property
    def attached(self) -> bool:
        return self._source is not None

    def __enter__(self) -> "ActivityMonitor":
        return self

    def __exit__(self, *exc_info) -> None:
        self.detach()
