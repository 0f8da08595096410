"""
Scoped tracking of a single mounted material
"""
import logging
from typing import Callable, Optional

from ...core.clock import Clock, now_ms
from ...models.learning import Material
from ..api_client import LearningApiClient
from .activity_monitor import ActivityMonitor
from .elements import EventSource
from .heartbeat_emitter import ContentElement, HeartbeatEmitter
from .progress_estimator import ProgressEstimator
from .visibility_tracker import VisibilityTracker

logger = logging.getLogger(__name__)


class MaterialTracker:
    """
    Owns every piece of tracking state for one material

    Construct when the material is mounted, start() to attach listeners and
    the timer, stop() on unmount. stop() always runs in full, even if the
    hosting code raised, when used as an async context manager.

    A shared ActivityMonitor may be passed in; its owner attaches and
    detaches it, so idle time carries over from one material to the next.
    Without one, the tracker creates its own and attaches it to events.
    """

    def __init__(
        self,
        api: LearningApiClient,
        material: Material,
        element_provider: Callable[[], Optional[ContentElement]],
        events: Optional[EventSource] = None,
        activity: Optional[ActivityMonitor] = None,
        heartbeat_sec: Optional[float] = None,
        quiz_in_progress: Callable[[], bool] = lambda: False,
        clock: Clock = now_ms,
    ):
        self.material = material
        self.events = events
        self.owns_activity = activity is None
        self.activity = activity if activity is not None else ActivityMonitor(clock=clock)
        self.visibility = VisibilityTracker()
        self.estimator = ProgressEstimator(clock=clock)
        self.emitter = HeartbeatEmitter(
            api=api,
            material=material,
            estimator=self.estimator,
            activity=self.activity,
            visibility=self.visibility,
            element_provider=element_provider,
            heartbeat_sec=heartbeat_sec,
            quiz_in_progress=quiz_in_progress,
        )
        self.active = False

    @property
    def sample(self):
        return self.estimator.sample

    def start(self) -> None:
        if self.active:
            return
        self.visibility.connect()
        if self.owns_activity and self.events is not None:
            self.activity.attach(self.events)
        self.emitter.start()
        self.active = True
        logger.info(f"Tracking {self.material.kind.value} material {self.material.id}")

    def stop(self) -> None:
        try:
            self.emitter.stop()
        finally:
            if self.owns_activity:
                self.activity.detach()
            self.visibility.disconnect()
            self.active = False

    async def __aenter__(self) -> "MaterialTracker":
        self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.stop()
        await self.emitter.drain()


class TrackingSlot:
    """Holds at most one active tracker; the old one stops before the new one starts"""

    def __init__(self):
        self.current: Optional[MaterialTracker] = None

    def replace(self, tracker: Optional[MaterialTracker]) -> Optional[MaterialTracker]:
        previous = self.current
        self.current = None
        if previous is not None:
            previous.stop()
        if tracker is not None:
            tracker.start()
            self.current = tracker
        return previous

    def clear(self) -> Optional[MaterialTracker]:
        return self.replace(None)
