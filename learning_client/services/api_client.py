"""
REST client for the learning platform backend
"""
import logging
from typing import Any, Callable, Dict, List, Optional, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from ..core.config import settings
from ..core.exceptions import (
    ApiException,
    AuthenticationException,
    ResourceNotFoundException,
    ValidationException,
)
from ..models.learning import (
    CourseDetail,
    CourseProgress,
    EnrolledCourse,
    HeartbeatPayload,
    TopicMaterials,
    TopicProgress,
)
from ..models.quiz import Attempt, Exam, ExamType, Question

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class LearningApiClient:
    """Async client for the /api/learning, /api/exams and /api/settings endpoints"""

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        on_unauthorized: Optional[Callable[[], None]] = None,
    ):
        """
        Initialize the client

        Args:
            base_url: Backend base URL (defaults to API_URL)
            token: Bearer token attached to every request
            timeout: Request timeout in seconds
            transport: Optional httpx transport, used to mount an in-process app
            on_unauthorized: Called whenever the backend answers 401
        """
        self.base_url = base_url or settings.API_URL
        self.token = token if token is not None else settings.API_TOKEN
        self.on_unauthorized = on_unauthorized
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout or settings.REQUEST_TIMEOUT,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self.client.aclose()

    async def __aenter__(self) -> "LearningApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    def _headers(self) -> Dict[str, str]:
        if self.token:
            return {"Authorization": f"Bearer {self.token}"}
        return {}

    async def _request(
        self,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """
        Send a request and return the decoded JSON body

        Raises:
            AuthenticationException: On 401
            ResourceNotFoundException: On 404
            ApiException: On transport errors and any other non-2xx status
        """
        if self.client.is_closed:
            raise ApiException(
                f"Client is closed, cannot reach {path}",
                details={"method": method}
            )
        try:
            response = await self.client.request(
                method, path, json=json, params=params, headers=self._headers()
            )
        except httpx.HTTPError as e:
            logger.debug(f"{method} {path} failed: {str(e)}")
            raise ApiException(
                f"Request to {path} failed",
                details={"method": method, "error": str(e)}
            )

        status = response.status_code
        if status == 401:
            logger.warning(f"Unauthorized response for {method} {path}")
            if self.on_unauthorized:
                self.on_unauthorized()
            raise AuthenticationException("Not authenticated", status_code=status, details={"path": path})
        if status == 404:
            raise ResourceNotFoundException("Resource not found", status_code=status, details={"path": path})
        if status >= 400:
            raise ApiException(
                f"Backend returned {status} for {path}",
                status_code=status,
                details={"method": method, "body": response.text[:500]}
            )

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise ValidationException(
                f"Response from {path} is not JSON",
                details={"error": str(e)}
            )

    @staticmethod
    def _parse(model: Type[ModelT], data: Any, path: str) -> ModelT:
        if not isinstance(data, dict):
            raise ValidationException(f"Unexpected payload from {path}", details={"payload": repr(data)[:200]})
        try:
            return model(**data)
        except ValidationError as e:
            raise ValidationException(
                f"Malformed payload from {path}",
                details={"errors": e.errors()}
            )

    @staticmethod
    def _field(data: Any, key: str) -> Any:
        return data.get(key) if isinstance(data, dict) else None

    # ----- Progress -----

    async def send_heartbeat(self, material_id: str, payload: HeartbeatPayload) -> Dict[str, Any]:
        """Report a progress delta for a material"""
        path = f"/api/learning/progress/materials/{material_id}/heartbeat"
        return await self._request("POST", path, json=payload.to_wire())

    async def complete_material(self, material_id: str) -> Dict[str, Any]:
        """Mark a material as fully consumed"""
        path = f"/api/learning/progress/materials/{material_id}/complete"
        return await self._request("POST", path, json={})

    async def get_topic_progress(self, topic_id: str) -> TopicProgress:
        path = f"/api/learning/topics/{topic_id}/progress"
        return self._parse(TopicProgress, await self._request("GET", path), path)

    async def get_course_progress(self, course_id: str) -> CourseProgress:
        path = f"/api/learning/courses/{course_id}/progress"
        return self._parse(CourseProgress, await self._request("GET", path), path)

    # ----- Content -----

    async def get_topic_materials(self, topic_id: str) -> TopicMaterials:
        path = f"/api/learning/topics/{topic_id}/materials"
        return self._parse(TopicMaterials, await self._request("GET", path), path)

    async def get_course_detail(self, course_id: str) -> CourseDetail:
        path = f"/api/learning/courses/{course_id}/detail"
        return self._parse(CourseDetail, await self._request("GET", path), path)

    async def list_my_courses(self) -> List[EnrolledCourse]:
        """Courses the current user is enrolled in, with progress and course exam result"""
        path = "/api/learning/me/courses"
        data = await self._request("GET", path)
        return [self._parse(EnrolledCourse, item, path) for item in self._field(data, "courses") or []]

    async def get_settings(self) -> Dict[str, Any]:
        """
        Fetch server settings

        Non-admin users get 403 here; callers keep their current settings.
        """
        data = await self._request("GET", "/api/settings")
        settings_map = data.get("settings") if isinstance(data, dict) else None
        return settings_map if isinstance(settings_map, dict) else {}

    # ----- Exams -----

    async def list_public_exams(
        self,
        topic_id: Optional[str] = None,
        course_id: Optional[str] = None,
        exam_type: Optional[ExamType] = None,
    ) -> List[Exam]:
        params = {}
        if topic_id:
            params["topicId"] = topic_id
        if course_id:
            params["courseId"] = course_id
        if exam_type:
            params["type"] = exam_type.value
        path = "/api/exams/public"
        data = await self._request("GET", path, params=params)
        return [self._parse(Exam, item, path) for item in self._field(data, "exams") or []]

    async def start_attempt(self, exam_id: str) -> Attempt:
        path = f"/api/exams/{exam_id}/attempts"
        data = await self._request("POST", path, json={})
        return self._parse(Attempt, self._field(data, "attempt"), path)

    async def get_exam_questions(self, exam_id: str) -> List[Question]:
        path = f"/api/exams/{exam_id}/questions"
        data = await self._request("GET", path)
        return [self._parse(Question, item, path) for item in self._field(data, "questions") or []]

    async def save_answer(
        self,
        attempt_id: str,
        question_id: str,
        selected_option_id: Optional[str] = None,
        time_spent_sec: Optional[int] = None,
    ) -> Dict[str, Any]:
        body: Dict[str, Any] = {"questionId": question_id}
        if selected_option_id is not None:
            body["selectedOptionId"] = selected_option_id
        if time_spent_sec is not None:
            body["timeSpentSec"] = time_spent_sec
        return await self._request("POST", f"/api/exams/attempts/{attempt_id}/answers", json=body)

    async def submit_attempt(self, attempt_id: str) -> Attempt:
        path = f"/api/exams/attempts/{attempt_id}/submit"
        data = await self._request("POST", path, json={})
        return self._parse(Attempt, self._field(data, "attempt"), path)

    async def list_my_attempts(self) -> List[Attempt]:
        path = "/api/exams/attempts/me"
        data = await self._request("GET", path)
        return [self._parse(Attempt, item, path) for item in self._field(data, "attempts") or []]

    async def get_attempt(self, attempt_id: str) -> Attempt:
        path = f"/api/exams/attempts/{attempt_id}"
        data = await self._request("GET", path)
        return self._parse(Attempt, self._field(data, "attempt"), path)
