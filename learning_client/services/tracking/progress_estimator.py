"""
Progress estimation from scroll and playback signals
"""
import math
from dataclasses import dataclass
from typing import NamedTuple, Optional

from ...core.clock import Clock, now_ms
from .elements import MediaPlayback, ScrollableContent


@dataclass
class ProgressSample:
    """Per-material watermarks, alive only while the material is tracked"""
    last_beat_at: float
    max_depth: float = 0.0
    last_position: int = 0


class VideoDelta(NamedTuple):
    delta_sec: int
    position_sec: int
    duration_sec: int


def clamp01(value: float) -> float:
    return min(1.0, max(0.0, value))


def scroll_depth(content: ScrollableContent) -> float:
    """Fraction of the document that has been inside the viewport"""
    return clamp01((content.scroll_top + content.client_height) / max(1, content.scroll_height))


class ProgressEstimator:
    """Turns raw signals into bounded, monotonic progress contributions"""

    def __init__(self, clock: Clock = now_ms, sample: Optional[ProgressSample] = None):
        self.clock = clock
        self.sample = sample or ProgressSample(last_beat_at=clock())

    def html_depth(self, content: Optional[ScrollableContent]) -> Optional[float]:
        """Update and return the scroll-depth watermark, None without content"""
        if content is None:
            return None
        depth = max(self.sample.max_depth, scroll_depth(content))
        self.sample.max_depth = depth
        return depth

    def elapsed_seconds(self) -> int:
        """
        Whole seconds since the last beat

        A positive result moves last_beat_at to now right away, before any
        network call, so a failed send loses that window instead of
        double-counting it later.
        """
        now = self.clock()
        elapsed = max(0, math.floor((now - self.sample.last_beat_at) / 1000))
        if elapsed > 0:
            self.sample.last_beat_at = now
        return elapsed

    def video_delta(self, playback: Optional[MediaPlayback]) -> Optional[VideoDelta]:
        """Forward-only played seconds since the previous counted tick"""
        if playback is None or not playback.is_playing:
            return None
        position = math.floor(playback.current_time)
        # NaN before metadata loads, inf for live streams
        raw_duration = playback.duration if playback.duration and math.isfinite(playback.duration) else 0
        duration = max(1, math.floor(raw_duration))
        # Seeking backward gives zero credit and lowers the watermark
        delta = max(0, position - self.sample.last_position)
        self.sample.last_position = position
        return VideoDelta(delta, position, duration)
