"""
Learning content and progress models
"""
from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from enum import Enum


class MaterialKind(str, Enum):
    VIDEO = "VIDEO"
    HTML = "HTML"
    PDF = "PDF"
    IMAGE = "IMAGE"
    LINK = "LINK"


class Material(BaseModel):
    """A single piece of learning content within a topic"""
    id: str
    kind: MaterialKind
    title: Optional[str] = None
    url: Optional[str] = None
    image_url: Optional[str] = Field(default=None, alias="imageUrl")
    content_html: Optional[str] = Field(default=None, alias="contentHtml")
    estimated_seconds: Optional[int] = Field(default=None, alias="estimatedSeconds")

    class Config:
        populate_by_name = True
        frozen = True
        extra = 'ignore'


class Topic(BaseModel):
    id: str
    name: Optional[str] = None
    module_id: Optional[str] = Field(default=None, alias="moduleId")
    module_number: Optional[int] = Field(default=None, alias="moduleNumber")
    order: Optional[int] = None
    level: Optional[str] = None

    class Config:
        populate_by_name = True
        extra = 'ignore'

    @property
    def sort_key(self):
        return (self.module_number or 0, self.order or 0)


class Module(BaseModel):
    id: str
    name: Optional[str] = None
    order: Optional[int] = None
    topics: List[Topic] = []

    class Config:
        populate_by_name = True
        extra = 'ignore'


class Course(BaseModel):
    id: str
    name: Optional[str] = None
    level: Optional[str] = None
    description: Optional[str] = None
    duration_hours: Optional[float] = Field(default=None, alias="durationHours")

    class Config:
        populate_by_name = True
        extra = 'ignore'


class CourseDetail(BaseModel):
    """Course with its topics and modules, as returned by /courses/{id}/detail"""
    course: Optional[Course] = None
    topics: List[Topic] = []
    modules: List[Module] = []

    class Config:
        extra = 'ignore'

    def sorted_topics(self) -> List[Topic]:
        """Topics in study order: module number first, then topic order"""
        return sorted(self.topics, key=lambda t: t.sort_key)


class TopicMaterials(BaseModel):
    materials: List[Material] = []
    eta_seconds: Optional[float] = Field(default=None, alias="etaSeconds")

    class Config:
        populate_by_name = True
        extra = 'ignore'


class TopicProgress(BaseModel):
    """Server-tracked progress of one topic"""
    percent: float = 0
    remaining_seconds: Optional[float] = Field(default=None, alias="remainingSeconds")
    estimated_seconds: Optional[float] = Field(default=None, alias="estimatedSeconds")
    time_spent_sec: Optional[float] = Field(default=None, alias="timeSpentSec")
    gate_satisfied: Optional[bool] = Field(default=None, alias="gateSatisfied")

    class Config:
        populate_by_name = True
        extra = 'ignore'


class CourseProgress(BaseModel):
    percent: float = 0
    time_spent_sec: Optional[float] = Field(default=None, alias="timeSpentSec")
    estimated_seconds: Optional[float] = Field(default=None, alias="estimatedSeconds")
    remaining_seconds: Optional[float] = Field(default=None, alias="remainingSeconds")

    class Config:
        populate_by_name = True
        extra = 'ignore'


class HeartbeatPayload(BaseModel):
    """Body of POST /api/learning/progress/materials/{id}/heartbeat"""
    kind: MaterialKind
    delta_sec: float = Field(ge=0, alias="deltaSec")
    scroll_depth: Optional[float] = Field(default=None, ge=0, le=1, alias="scrollDepth")
    position_sec: Optional[int] = Field(default=None, ge=0, alias="positionSec")
    duration_sec: Optional[int] = Field(default=None, gt=0, alias="durationSec")

    class Config:
        populate_by_name = True
        use_enum_values = True

    def to_wire(self) -> dict:
        """camelCase JSON body without absent optional fields"""
        return self.dict(by_alias=True, exclude_none=True)


class CourseExamResult(BaseModel):
    """Latest submitted course exam attempt of an enrollment"""
    attempt_id: str = Field(alias="attemptId")
    score_percent: Optional[float] = Field(default=None, alias="scorePercent")
    submitted_at: Optional[datetime] = Field(default=None, alias="submittedAt")
    passed: bool = False

    class Config:
        populate_by_name = True
        extra = 'ignore'


class EnrolledCourse(BaseModel):
    """One entry of GET /api/learning/me/courses"""
    course_id: Optional[str] = Field(default=None, alias="courseId")
    name: Optional[str] = None
    level: Optional[str] = None
    active: Optional[bool] = None
    description: Optional[str] = None
    enrollment_status: Optional[str] = Field(default=None, alias="enrollmentStatus")
    enrolled_at: Optional[datetime] = Field(default=None, alias="enrolledAt")
    progress_percent: float = Field(default=0, alias="progressPercent")
    time_spent_sec: float = Field(default=0, alias="timeSpentSec")
    last_updated: Optional[datetime] = Field(default=None, alias="lastUpdated")
    exam_result: Optional[CourseExamResult] = Field(default=None, alias="examResult")

    class Config:
        populate_by_name = True
        extra = 'ignore'
