"""
Course study session: topics, materials, progress and heartbeat tracking
"""
import asyncio
import logging
from typing import Callable, Dict, List, Optional

from ..core.clock import Clock, now_ms
from ..core.config import settings, resolve_heartbeat_sec
from ..core.exceptions import LearningClientException, QuizException
from ..models.learning import CourseDetail, Material, MaterialKind, Topic
from ..models.quiz import Exam, ExamType, Question, SubmittedAttempt
from .api_client import LearningApiClient
from .estimates import eta_minutes
from .progress_cache import AutoAdvance, LegacyProgressStore, TopicProgressCache
from .quiz_session import InlineQuizSession
from .tracking.activity_monitor import ActivityMonitor
from .tracking.elements import EventSource, ScrollableContent
from .tracking.heartbeat_emitter import TRACKED_KINDS, ContentElement
from .tracking.material_tracker import MaterialTracker, TrackingSlot

logger = logging.getLogger(__name__)


def pane_scroll_percent(content: ScrollableContent) -> int:
    """Scroll position of the topic pane as a whole percent; unscrollable panes count as read"""
    total = content.scroll_height - content.client_height
    if total <= 0:
        return 100
    return min(100, round(content.scroll_top / total * 100))


class CourseSession:
    """
    Everything the course view needs while a learner studies one course

    The hosting view calls open(), forwards topic clicks to select_topic()
    and mounts the visible material with track(). Only one material is
    tracked at a time; switching topics stops tracking before anything new
    is loaded. User activity is watched on the view's events for the whole
    session, so idle time carries over when the tracked material changes.
    """

    def __init__(
        self,
        api: LearningApiClient,
        course_id: str,
        legacy_store: Optional[LegacyProgressStore] = None,
        heartbeat_sec: Optional[float] = None,
        poll_sec: Optional[float] = None,
        events: Optional[EventSource] = None,
        clock: Clock = now_ms,
    ):
        self.api = api
        self.course_id = course_id
        self.clock = clock
        self.heartbeat_sec = settings.HEARTBEAT_SEC if heartbeat_sec is None else heartbeat_sec
        self.poll_sec = settings.COURSE_PROGRESS_POLL_SEC if poll_sec is None else poll_sec
        self.legacy_store = legacy_store or LegacyProgressStore()

        self.cache = TopicProgressCache()
        self.auto_advance = AutoAdvance()
        self.quiz = InlineQuizSession(api, clock=clock)
        self.slot = TrackingSlot()
        self.events = events if events is not None else EventSource()
        self.activity = ActivityMonitor(clock=clock)

        self.detail: Optional[CourseDetail] = None
        self.topics: List[Topic] = []
        self.materials_by_topic: Dict[str, List[Material]] = {}
        self.current_topic_id: Optional[str] = None
        self.overall_progress: int = 0
        self.course_exam: Optional[Exam] = None
        self.course_exam_attempt_id: Optional[str] = None

        self._retired: List[MaterialTracker] = []
        self._poller: Optional[asyncio.Task] = None

    # ----- Loading -----

    async def load_settings(self) -> float:
        """Pick up learning.progress.heartbeatSec; non-admins keep the default"""
        try:
            server_settings = await self.api.get_settings()
        except LearningClientException as e:
            logger.debug(f"Server settings unavailable ({e.message}), heartbeat stays at {self.heartbeat_sec}s")
            return self.heartbeat_sec
        self.heartbeat_sec = resolve_heartbeat_sec(server_settings, self.heartbeat_sec)
        return self.heartbeat_sec

    async def open(self, topic_id: Optional[str] = None) -> Optional[CourseDetail]:
        """
        Load the course and its starting topic

        Args:
            topic_id: Topic requested by the caller; ignored if not in the course

        Returns:
            Course detail, or None when the course could not be loaded
        """
        self.activity.attach(self.events)
        await self.load_settings()
        try:
            self.detail = await self.api.get_course_detail(self.course_id)
        except LearningClientException as e:
            logger.error(f"Could not load course {self.course_id}: {e.message}")
            self.detail = None
            self.topics = []
            return None

        self.topics = self.detail.sorted_topics()
        ids = [t.id for t in self.topics]
        initial = topic_id if topic_id in ids else (ids[0] if ids else None)
        self.current_topic_id = initial
        if initial:
            await self._load_topic(initial)
            self.auto_advance.jump_to(initial, self.cache.get(initial))

        await self._estimate_all()
        await self.refresh_course_progress()
        self.cache.seed(await self.legacy_store.load(self.course_id))
        await self.quiz.fetch_my_attempts()
        await self.load_course_exam()
        self.start_polling()
        logger.info(f"Opened course {self.course_id} with {len(self.topics)} topics")
        return self.detail

    async def load_materials_for(self, topic_id: str) -> List[Material]:
        if topic_id in self.materials_by_topic:
            return self.materials_by_topic[topic_id]
        try:
            result = await self.api.get_topic_materials(topic_id)
        except LearningClientException as e:
            logger.warning(f"Could not load materials for topic {topic_id}: {e.message}")
            self.materials_by_topic[topic_id] = []
            return []
        self.materials_by_topic[topic_id] = list(result.materials)
        self.cache.set_eta(topic_id, eta_minutes(result.eta_seconds, result.materials))
        return self.materials_by_topic[topic_id]

    async def refresh_topic_progress(self, topic_id: str) -> float:
        """Fetch and merge server progress; keeps the cached value on failure"""
        try:
            progress = await self.api.get_topic_progress(topic_id)
        except LearningClientException as e:
            logger.warning(f"Could not load progress for topic {topic_id}: {e.message}")
            legacy = await self.legacy_store.load(self.course_id)
            if topic_id in legacy:
                self.cache.seed({topic_id: legacy[topic_id]})
            return self.cache.get(topic_id)
        return self.cache.apply(topic_id, progress)

    async def refresh_course_progress(self) -> int:
        try:
            progress = await self.api.get_course_progress(self.course_id)
        except LearningClientException as e:
            logger.warning(f"Could not load course progress for {self.course_id}: {e.message}")
            return self.overall_progress
        self.overall_progress = round(progress.percent)
        return self.overall_progress

    async def _load_topic(self, topic_id: str) -> None:
        await self.load_materials_for(topic_id)
        await self.quiz.load_quiz_for(topic_id)
        await self.refresh_topic_progress(topic_id)

    async def _estimate_all(self) -> None:
        """ETA for every topic; topics whose materials fail to load get 0"""
        async def estimate(topic: Topic) -> None:
            try:
                result = await self.api.get_topic_materials(topic.id)
            except LearningClientException:
                self.cache.set_eta(topic.id, 0)
                return
            self.materials_by_topic.setdefault(topic.id, list(result.materials))
            self.cache.set_eta(topic.id, eta_minutes(result.eta_seconds, result.materials))

        await asyncio.gather(*(estimate(t) for t in self.topics))

    # ----- Current topic -----

    @property
    def current_topic(self) -> Optional[Topic]:
        return next((t for t in self.topics if t.id == self.current_topic_id), None)

    @property
    def current_materials(self) -> List[Material]:
        if not self.current_topic_id:
            return []
        return self.materials_by_topic.get(self.current_topic_id, [])

    @property
    def current_video(self) -> Optional[Material]:
        return next((m for m in self.current_materials if m.kind == MaterialKind.VIDEO and m.url), None)

    @property
    def current_htmls(self) -> List[Material]:
        return [m for m in self.current_materials if m.kind == MaterialKind.HTML and m.content_html]

    @property
    def current_docs(self) -> List[Material]:
        return [
            m for m in self.current_materials
            if m.kind not in (MaterialKind.VIDEO, MaterialKind.HTML) and m.url
        ]

    async def select_topic(self, topic_id: str) -> None:
        """The learner picked a topic from the outline"""
        self.auto_advance.mark_user_selected(topic_id)
        self._stop_tracking()
        self.current_topic_id = topic_id
        await self._load_topic(topic_id)
        self.auto_advance.observe(topic_id, self.cache.get(topic_id), self.topics)

    async def refresh_current_topic(self) -> Optional[Topic]:
        """Refresh the current topic's progress and advance if it just completed"""
        if not self.current_topic_id:
            return None
        await self.refresh_topic_progress(self.current_topic_id)
        return await self._check_advance()

    async def record_scroll(self, content: ScrollableContent) -> Optional[Topic]:
        """Scroll of the topic pane, kept locally and in the legacy store"""
        if not self.current_topic_id:
            return None
        self.cache.record_scroll(self.current_topic_id, pane_scroll_percent(content))
        await self.legacy_store.save(self.course_id, self.cache.percent_by_topic)
        return await self._check_advance()

    async def complete_material(self, material: Material) -> Optional[Topic]:
        """Mark a material done, e.g. a PDF or link the learner has opened"""
        try:
            await self.api.complete_material(material.id)
        except LearningClientException as e:
            logger.warning(f"Could not complete material {material.id}: {e.message}")
            return None
        return await self.refresh_current_topic()

    async def _check_advance(self) -> Optional[Topic]:
        topic_id = self.current_topic_id
        next_topic = self.auto_advance.observe(topic_id, self.cache.get(topic_id), self.topics)
        if next_topic is None:
            return None
        self._stop_tracking()
        await self._load_topic(next_topic.id)
        self.current_topic_id = next_topic.id
        self.auto_advance.jump_to(next_topic.id, self.cache.get(next_topic.id))
        logger.info(f"Topic {topic_id} completed. Moved to next topic {next_topic.id}")
        return next_topic

    # ----- Tracking -----

    def track(
        self,
        material: Material,
        element_provider: Callable[[], Optional[ContentElement]],
    ) -> Optional[MaterialTracker]:
        """Mount a material; the previously tracked one is stopped first"""
        if material.kind not in TRACKED_KINDS:
            self._stop_tracking()
            return None
        tracker = MaterialTracker(
            api=self.api,
            material=material,
            element_provider=element_provider,
            activity=self.activity,
            heartbeat_sec=self.heartbeat_sec,
            quiz_in_progress=lambda: self.quiz.in_progress,
            clock=self.clock,
        )
        self._retire(self.slot.replace(tracker))
        return tracker

    @property
    def tracker(self) -> Optional[MaterialTracker]:
        return self.slot.current

    def _stop_tracking(self) -> None:
        self._retire(self.slot.clear())

    def _retire(self, tracker: Optional[MaterialTracker]) -> None:
        self._retired = [t for t in self._retired if t.emitter.has_pending]
        if tracker is not None:
            self._retired.append(tracker)

    # ----- Quiz -----

    async def start_quiz(self) -> List[Question]:
        quiz = self.quiz.quiz_by_topic.get(self.current_topic_id) if self.current_topic_id else None
        return await self.quiz.start(quiz)

    async def submit_quiz(self) -> Optional[SubmittedAttempt]:
        return await self.quiz.submit()

    async def load_course_exam(self) -> Optional[Exam]:
        """
        Find the course-level exam and the learner's latest submitted attempt

        Either lookup failing leaves its value as None; the course view then
        simply hides the exam entry or its results link.
        """
        try:
            exams = await self.api.list_public_exams(course_id=self.course_id, exam_type=ExamType.course)
            self.course_exam = exams[0] if exams else None
        except LearningClientException as e:
            logger.warning(f"Could not load course exam for {self.course_id}: {e.message}")
            self.course_exam = None

        try:
            courses = await self.api.list_my_courses()
        except LearningClientException as e:
            logger.warning(f"Could not load enrollments: {e.message}")
            self.course_exam_attempt_id = None
            return self.course_exam

        enrolled = next((c for c in courses if c.course_id == self.course_id), None)
        result = enrolled.exam_result if enrolled else None
        self.course_exam_attempt_id = result.attempt_id if result else None
        return self.course_exam

    async def start_course_exam(self) -> str:
        """
        Start an attempt at the course exam

        Returns:
            Id of the new attempt, for the exam-taking view

        Raises:
            QuizException: If the course has no exam or the attempt could not start
        """
        if self.course_exam is None:
            raise QuizException(f"Course {self.course_id} has no exam", details={"course_id": self.course_id})
        try:
            attempt = await self.api.start_attempt(self.course_exam.id)
        except LearningClientException as e:
            logger.error(f"Could not start course exam {self.course_exam.id}: {e.message}")
            raise QuizException("Could not start course exam", details={"exam_id": self.course_exam.id, "error": e.message})
        logger.info(f"Started course exam {self.course_exam.id}, attempt {attempt.id}")
        return attempt.id

    # ----- Lifecycle -----

    def start_polling(self) -> None:
        if self._poller is None or self._poller.done():
            self._poller = asyncio.get_running_loop().create_task(self._poll())

    async def _poll(self) -> None:
        while True:
            await asyncio.sleep(self.poll_sec)
            await self.refresh_course_progress()
            await self.refresh_current_topic()

    async def close(self) -> None:
        """Stop polling and tracking, then let in-flight heartbeats settle"""
        if self._poller is not None:
            self._poller.cancel()
            self._poller = None
        self._stop_tracking()
        self.activity.detach()
        retired, self._retired = self._retired, []
        for tracker in retired:
            await tracker.emitter.drain()
