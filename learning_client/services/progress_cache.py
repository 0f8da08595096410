"""
Per-topic progress cache and auto-advance to the next topic
"""
import json
import math
import logging
import aiofiles
from enum import Enum
from pathlib import Path
from typing import Dict, Optional, Sequence

from ..core.config import settings
from ..models.learning import Topic, TopicProgress
from .estimates import average_progress, remaining_minutes

logger = logging.getLogger(__name__)

COMPLETE_PERCENT = 100


class TopicState(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETE = "complete"


def topic_state(percent: float) -> TopicState:
    if percent >= COMPLETE_PERCENT:
        return TopicState.COMPLETE
    if percent > 0:
        return TopicState.IN_PROGRESS
    return TopicState.NOT_STARTED


def _clamp_percent(percent: float) -> float:
    return min(100.0, max(0.0, float(percent)))


class TopicProgressCache:
    """
    Local reflection of topic progress for progress bars

    Percentages only ever go up within a session: every update keeps the
    maximum of the cached value and the new one.
    """

    def __init__(self):
        self.percent_by_topic: Dict[str, float] = {}
        self.remaining_by_topic: Dict[str, int] = {}  # minutes
        self.eta_by_topic: Dict[str, int] = {}  # minutes
        self.time_spent_by_topic: Dict[str, float] = {}

    def get(self, topic_id: str) -> float:
        return self.percent_by_topic.get(topic_id, 0.0)

    def merge(self, topic_id: str, percent: float) -> float:
        merged = max(self.get(topic_id), _clamp_percent(percent))
        self.percent_by_topic[topic_id] = merged
        return merged

    def record_scroll(self, topic_id: str, percent: float) -> float:
        """Locally observed scroll percent of the topic pane"""
        return self.merge(topic_id, percent)

    def apply(self, topic_id: str, progress: TopicProgress) -> float:
        """Merge a server progress response into the cache"""
        merged = self.merge(topic_id, progress.percent)
        if progress.remaining_seconds is not None:
            self.remaining_by_topic[topic_id] = remaining_minutes(progress.remaining_seconds, 0, merged)
        if progress.estimated_seconds is not None:
            self.eta_by_topic[topic_id] = max(1, math.ceil(progress.estimated_seconds / 60))
        if progress.time_spent_sec is not None:
            self.time_spent_by_topic[topic_id] = progress.time_spent_sec
        return merged

    def set_eta(self, topic_id: str, minutes: int) -> None:
        self.eta_by_topic[topic_id] = minutes

    def remaining_minutes(self, topic_id: str) -> int:
        if topic_id in self.remaining_by_topic:
            return self.remaining_by_topic[topic_id]
        return remaining_minutes(None, self.eta_by_topic.get(topic_id, 0), self.get(topic_id))

    def state(self, topic_id: str) -> TopicState:
        return topic_state(self.get(topic_id))

    def average(self) -> float:
        return average_progress(self.percent_by_topic.values())

    def seed(self, values: Dict[str, float]) -> None:
        """Fill topics with no known progress yet, e.g. from the legacy store"""
        for topic_id, percent in values.items():
            if topic_id not in self.percent_by_topic:
                try:
                    self.percent_by_topic[topic_id] = _clamp_percent(percent)
                except (TypeError, ValueError):
                    continue


class AutoAdvance:
    """
    Decides when finishing a topic should move the learner on

    Fires once when the current topic goes from below 100% to 100%, unless
    the learner picked that topic by hand; that flag is consumed on first use.
    """

    def __init__(self):
        self.prev_topic_id: Optional[str] = None
        self.prev_percent: float = 0.0
        self.user_clicked_topic_id: Optional[str] = None

    def mark_user_selected(self, topic_id: str) -> None:
        self.user_clicked_topic_id = topic_id

    def jump_to(self, topic_id: str, percent: float) -> None:
        """Record an advance so arriving on the next topic is not itself a transition"""
        self.prev_topic_id = topic_id
        self.prev_percent = percent

    def observe(self, topic_id: str, percent: float, topics: Sequence[Topic]) -> Optional[Topic]:
        """
        Feed the current topic's percent

        Returns:
            The topic to advance to, or None
        """
        if self.prev_topic_id != topic_id:
            self.jump_to(topic_id, percent)
            return None

        just_completed = percent >= COMPLETE_PERCENT and self.prev_percent < COMPLETE_PERCENT
        self.prev_percent = percent
        if not just_completed:
            return None

        if self.user_clicked_topic_id == topic_id:
            self.user_clicked_topic_id = None
            logger.debug(f"Topic {topic_id} completed after manual selection, staying")
            return None

        ids = [t.id for t in topics]
        if topic_id not in ids:
            return None
        idx = ids.index(topic_id)
        if idx + 1 >= len(topics):
            return None
        return topics[idx + 1]


class LegacyProgressStore:
    """
    Client-local progress keyed by course, kept only as a display fallback

    Stored as one JSON object {"previewProgress:<courseId>": {topicId: percent}}.
    Never authoritative; the server owns durable progress.
    """

    FILE_NAME = "preview_progress.json"

    def __init__(self, directory: Optional[str] = None):
        directory = directory if directory is not None else settings.LEGACY_PROGRESS_DIR
        self.path: Optional[Path] = Path(directory) / self.FILE_NAME if directory else None

    @property
    def enabled(self) -> bool:
        return self.path is not None

    @staticmethod
    def key(course_id: str) -> str:
        return f"previewProgress:{course_id}"

    async def _read_all(self) -> Dict[str, Dict[str, float]]:
        if not self.path or not self.path.exists():
            return {}
        try:
            async with aiofiles.open(self.path, "r") as f:
                data = json.loads(await f.read())
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable legacy progress file {self.path}: {str(e)}")
            return {}
        return data if isinstance(data, dict) else {}

    async def load(self, course_id: str) -> Dict[str, float]:
        saved = (await self._read_all()).get(self.key(course_id))
        return saved if isinstance(saved, dict) else {}

    async def save(self, course_id: str, percent_by_topic: Dict[str, float]) -> None:
        if not self.path:
            return
        data = await self._read_all()
        data[self.key(course_id)] = dict(percent_by_topic)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(self.path, "w") as f:
                await f.write(json.dumps(data))
        except OSError as e:
            logger.warning(f"Could not write legacy progress file {self.path}: {str(e)}")
