"""
Periodic progress heartbeats for the material currently on screen
"""
import asyncio
import logging
from typing import Callable, Optional, Set, Union

from ...core.config import settings, heartbeat_interval_ms, heartbeat_clamp_sec
from ...core.exceptions import LearningClientException, ValidationException
from ...models.learning import HeartbeatPayload, Material, MaterialKind
from ..api_client import LearningApiClient
from .activity_monitor import ActivityMonitor
from .elements import MediaPlayback, ScrollableContent
from .progress_estimator import ProgressEstimator
from .visibility_tracker import VisibilityTracker

logger = logging.getLogger(__name__)

TRACKED_KINDS = (MaterialKind.HTML, MaterialKind.VIDEO)

ContentElement = Union[ScrollableContent, MediaPlayback]


class HeartbeatEmitter:
    """
    Sends one progress delta per interval while the learner is engaged

    A tick emits only when the content element exists, is visible, the user
    has not been idle past the threshold, and no inline quiz is running.
    Sends are fire-and-forget: the tick never waits for the network.
    """

    def __init__(
        self,
        api: LearningApiClient,
        material: Material,
        estimator: ProgressEstimator,
        activity: ActivityMonitor,
        visibility: VisibilityTracker,
        element_provider: Callable[[], Optional[ContentElement]],
        heartbeat_sec: Optional[float] = None,
        idle_threshold_ms: Optional[int] = None,
        quiz_in_progress: Callable[[], bool] = lambda: False,
    ):
        if material.kind not in TRACKED_KINDS:
            raise ValidationException(
                f"{material.kind.value} materials do not report heartbeats",
                details={"material_id": material.id}
            )
        self.api = api
        self.material = material
        self.estimator = estimator
        self.activity = activity
        self.visibility = visibility
        self.element_provider = element_provider
        self.heartbeat_sec = settings.HEARTBEAT_SEC if heartbeat_sec is None else heartbeat_sec
        self.idle_threshold_ms = settings.IDLE_THRESHOLD_MS if idle_threshold_ms is None else idle_threshold_ms
        self.quiz_in_progress = quiz_in_progress
        self._timer: Optional[asyncio.Task] = None
        self._pending: Set[asyncio.Task] = set()

    @property
    def interval_ms(self) -> int:
        return heartbeat_interval_ms(self.heartbeat_sec)

    @property
    def clamp_sec(self) -> float:
        return heartbeat_clamp_sec(self.heartbeat_sec)

    @property
    def running(self) -> bool:
        return self._timer is not None and not self._timer.done()

    def start(self) -> None:
        """Start the interval timer; a running emitter keeps its single timer"""
        if self.running:
            return
        self._timer = asyncio.get_running_loop().create_task(self._run())
        logger.debug(f"Heartbeat started for {self.material.kind.value} {self.material.id} every {self.interval_ms}ms")

    def stop(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
            logger.debug(f"Heartbeat stopped for material {self.material.id}")

    @property
    def has_pending(self) -> bool:
        return bool(self._pending)

    async def drain(self) -> None:
        """Wait for in-flight sends to settle"""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_ms / 1000)
            self.tick()

    def _gate(self, element: Optional[ContentElement]) -> bool:
        if element is None:
            return False
        if not self.visibility.is_visible:
            logger.debug(f"Skipping beat for {self.material.id}: not visible")
            return False
        if self.activity.idle_duration_ms() > self.idle_threshold_ms:
            logger.debug(f"Skipping beat for {self.material.id}: user idle")
            return False
        if self.quiz_in_progress():
            logger.debug(f"Skipping beat for {self.material.id}: quiz in progress")
            return False
        return True

    def build_payload(self, element: ContentElement) -> Optional[HeartbeatPayload]:
        """Compute this tick's delta, or None when nothing should be reported"""
        if self.material.kind == MaterialKind.HTML:
            depth = self.estimator.html_depth(element)
            elapsed = self.estimator.elapsed_seconds()
            if elapsed <= 0:
                return None
            return HeartbeatPayload(
                kind=MaterialKind.HTML,
                delta_sec=min(elapsed, self.clamp_sec),
                scroll_depth=depth,
            )

        video = self.estimator.video_delta(element)
        if video is None:
            return None
        return HeartbeatPayload(
            kind=MaterialKind.VIDEO,
            delta_sec=min(video.delta_sec, self.clamp_sec),
            position_sec=video.position_sec,
            duration_sec=video.duration_sec,
        )

    def tick(self) -> Optional[HeartbeatPayload]:
        """Evaluate gating and, if satisfied, fire one heartbeat"""
        element = self.element_provider()
        if not self._gate(element):
            return None
        payload = self.build_payload(element)
        if payload is None:
            return None
        task = asyncio.get_running_loop().create_task(self._send(payload))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return payload

    async def _send(self, payload: HeartbeatPayload) -> None:
        try:
            await self.api.send_heartbeat(self.material.id, payload)
        except LearningClientException as e:
            # Progress crediting is best-effort; the window is simply lost
            logger.warning(f"Heartbeat for material {self.material.id} failed: {e.message}")
