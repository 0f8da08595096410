"""
Quiz, exam and attempt data models
"""
from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from enum import Enum

PASSING_SCORE_PERCENT = 70


class ExamType(str, Enum):
    quiz = "QUIZ"
    course = "COURSE"
    custom = "CUSTOM"


class AttemptStatus(str, Enum):
    in_progress = "IN_PROGRESS"
    submitted = "SUBMITTED"


class Exam(BaseModel):
    id: str
    name: Optional[str] = None
    type: Optional[ExamType] = None
    topic_id: Optional[str] = Field(default=None, alias="topicId")
    course_id: Optional[str] = Field(default=None, alias="courseId")
    time_limit_minutes: Optional[int] = Field(default=None, alias="timeLimitMinutes")

    class Config:
        populate_by_name = True
        extra = 'ignore'


class QuestionOption(BaseModel):
    id: str
    text: Optional[str] = None

    class Config:
        extra = 'ignore'


class Question(BaseModel):
    id: str
    stem: Optional[str] = None
    options: List[QuestionOption] = []  # empty for constructed response
    order: Optional[int] = None

    class Config:
        extra = 'ignore'

    @property
    def is_multiple_choice(self) -> bool:
        return bool(self.options)


class AttemptAnswer(BaseModel):
    question_id: str = Field(alias="questionId")
    selected_option_id: Optional[str] = Field(default=None, alias="selectedOptionId")
    is_correct: Optional[bool] = Field(default=None, alias="isCorrect")
    flagged: bool = False
    time_spent_sec: Optional[int] = Field(default=None, alias="timeSpentSec")

    class Config:
        populate_by_name = True
        extra = 'ignore'


class Attempt(BaseModel):
    """Single exam attempt by the current user"""
    id: str
    exam_id: Optional[str] = Field(default=None, alias="examId")
    status: AttemptStatus = AttemptStatus.in_progress
    score_percent: Optional[float] = Field(default=None, alias="scorePercent")
    started_at: Optional[datetime] = Field(default=None, alias="startedAt")
    submitted_at: Optional[datetime] = Field(default=None, alias="submittedAt")
    answers: List[AttemptAnswer] = []

    class Config:
        populate_by_name = True
        extra = 'ignore'


class SubmittedAttempt(BaseModel):
    """Lightweight summary shown as the quiz result"""
    id: str
    score_percent: float = 0.0
    submitted_at: Optional[datetime] = None

    @property
    def is_passed(self) -> bool:
        return self.score_percent >= PASSING_SCORE_PERCENT

    @classmethod
    def from_attempt(cls, attempt: Attempt) -> "SubmittedAttempt":
        return cls(
            id=attempt.id,
            score_percent=attempt.score_percent or 0.0,
            submitted_at=attempt.submitted_at
        )
