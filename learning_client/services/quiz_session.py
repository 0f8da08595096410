"""
Inline topic quiz: start an attempt, save answers, submit, review
"""
import logging
import math
from typing import Dict, List, Optional

from ..core.clock import Clock, now_ms
from ..core.exceptions import LearningClientException, QuizException
from ..models.quiz import Attempt, AttemptStatus, Exam, ExamType, Question, SubmittedAttempt
from .api_client import LearningApiClient

logger = logging.getLogger(__name__)


class InlineQuizSession:
    """
    Quiz taken inside the course view

    While an attempt is open, in_progress is True and progress heartbeats
    are suspended so reading time is not credited during assessment.
    """

    def __init__(self, api: LearningApiClient, clock: Clock = now_ms):
        self.api = api
        self.clock = clock
        self.quiz_by_topic: Dict[str, Optional[Exam]] = {}
        self.submitted_by_exam: Dict[str, SubmittedAttempt] = {}
        self.attempt_id: Optional[str] = None
        self.exam_id: Optional[str] = None
        self.questions: List[Question] = []
        self._last_answer_at: Optional[float] = None

    @property
    def in_progress(self) -> bool:
        return self.attempt_id is not None

    async def load_quiz_for(self, topic_id: str) -> Optional[Exam]:
        """Fetch the active quiz of a topic; failures leave the previous value"""
        try:
            exams = await self.api.list_public_exams(topic_id=topic_id, exam_type=ExamType.quiz)
        except LearningClientException as e:
            logger.warning(f"Could not load quiz for topic {topic_id}: {e.message}")
            return self.quiz_by_topic.get(topic_id)
        quiz = exams[0] if exams else None
        self.quiz_by_topic[topic_id] = quiz
        return quiz

    async def fetch_my_attempts(self) -> Dict[str, SubmittedAttempt]:
        """Latest submitted attempt per exam"""
        try:
            attempts = await self.api.list_my_attempts()
        except LearningClientException as e:
            logger.warning(f"Could not load attempts: {e.message}")
            self.submitted_by_exam = {}
            return self.submitted_by_exam

        latest: Dict[str, Attempt] = {}
        for attempt in attempts:
            if attempt.status != AttemptStatus.submitted or not attempt.exam_id:
                continue
            current = latest.get(attempt.exam_id)
            if current is None or _submitted_after(attempt, current):
                latest[attempt.exam_id] = attempt
        self.submitted_by_exam = {
            exam_id: SubmittedAttempt.from_attempt(attempt) for exam_id, attempt in latest.items()
        }
        return self.submitted_by_exam

    async def start(self, exam: Optional[Exam]) -> List[Question]:
        """
        Open an attempt and load its questions

        Raises:
            QuizException: If there is no quiz or the backend refuses the attempt
        """
        if exam is None:
            raise QuizException("No quiz for this topic")
        try:
            attempt = await self.api.start_attempt(exam.id)
        except LearningClientException as e:
            logger.error(f"Could not start quiz {exam.id}: {e.message}")
            raise QuizException("Could not start quiz", details={"exam_id": exam.id, "error": e.message})

        self.attempt_id = attempt.id
        self.exam_id = exam.id
        self.questions = []
        self._last_answer_at = self.clock()
        logger.info(f"Quiz {exam.id} started, attempt {attempt.id}")

        try:
            self.questions = await self.api.get_exam_questions(exam.id)
        except LearningClientException as e:
            logger.warning(f"Could not load questions for quiz {exam.id}: {e.message}")
        return self.questions

    async def select_option(self, question_id: str, option_id: str) -> None:
        """Autosave a multiple-choice answer; failures are only logged"""
        if not self.in_progress:
            return
        now = self.clock()
        spent = max(0, math.floor((now - (self._last_answer_at or now)) / 1000))
        self._last_answer_at = now
        try:
            await self.api.save_answer(
                self.attempt_id,
                question_id,
                selected_option_id=option_id,
                time_spent_sec=spent,
            )
        except LearningClientException as e:
            logger.warning(f"Could not save answer for question {question_id}: {e.message}")

    async def submit(self) -> Optional[SubmittedAttempt]:
        """
        Submit the open attempt and close it

        Raises:
            QuizException: If the backend rejects the submission; the attempt stays open
        """
        if not self.in_progress:
            return None
        try:
            attempt = await self.api.submit_attempt(self.attempt_id)
        except LearningClientException as e:
            logger.error(f"Submitting attempt {self.attempt_id} failed: {e.message}")
            raise QuizException("Submit failed", details={"attempt_id": self.attempt_id, "error": e.message})

        result = SubmittedAttempt.from_attempt(attempt)
        if self.exam_id:
            self.submitted_by_exam[self.exam_id] = result
        logger.info(f"Attempt {attempt.id} submitted with score {result.score_percent:.0f}%")
        self.close()
        return result

    def close(self) -> None:
        """Forget the open attempt without submitting it"""
        self.attempt_id = None
        self.exam_id = None
        self.questions = []
        self._last_answer_at = None

    async def review(self, attempt_id: str) -> Attempt:
        """Load an attempt with its answers for the correct-answers view"""
        try:
            return await self.api.get_attempt(attempt_id)
        except LearningClientException as e:
            raise QuizException("Could not load answers", details={"attempt_id": attempt_id, "error": e.message})


def _submitted_after(candidate: Attempt, current: Attempt) -> bool:
    if candidate.submitted_at is None:
        return False
    if current.submitted_at is None:
        return True
    return candidate.submitted_at > current.submitted_at
