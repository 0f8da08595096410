"""
Viewport visibility of the tracked content element
"""
from ...core.config import settings


class VisibilityTracker:
    """
    Latest intersection state of one element with a single threshold

    The host forwards intersection ratios (0..1) as the element moves in and
    out of the viewport. Only the most recent observation is kept; the
    heartbeat samples is_visible at tick time.
    """

    def __init__(self, threshold: float = None):
        self.threshold = settings.VISIBILITY_THRESHOLD if threshold is None else threshold
        self.ratio = 0.0
        self.connected = True

    def observe(self, ratio: float) -> None:
        if not self.connected:
            return
        self.ratio = min(1.0, max(0.0, float(ratio)))

    @property
    def is_visible(self) -> bool:
        return self.connected and self.ratio >= self.threshold

    def connect(self) -> None:
        self.connected = True

    def disconnect(self) -> None:
        self.connected = False
        self.ratio = 0.0
