"""
Shared fixtures: a fake learning backend served in-process, a controllable clock
"""
from typing import Any, Dict, List, Optional, Set, Tuple

import httpx
import pytest
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from learning_client.services.api_client import LearningApiClient

TEST_TOKEN = "test-token"


class FakeClock:
    """Millisecond clock that only moves when told to"""

    def __init__(self, start: float = 1_700_000_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms

    def advance_sec(self, seconds: float) -> None:
        self.advance(seconds * 1000)


class FakeBackend:
    """In-memory stand-in for the REST backend, mirroring its JSON shapes"""

    def __init__(self):
        self.requests: List[Tuple[str, str]] = []
        self.heartbeats: List[Tuple[str, Dict[str, Any]]] = []
        self.heartbeat_status = 200
        self.completed: List[str] = []
        self.course_detail: Dict[str, Any] = {"course": {"id": "c1", "name": "Level I"}, "topics": [], "modules": []}
        self.course_progress: Dict[str, Any] = {"percent": 0}
        self.topic_progress: Dict[str, Dict[str, Any]] = {}
        self.materials: Dict[str, Dict[str, Any]] = {}
        self.failing_paths: Set[str] = set()
        self.settings: Optional[Dict[str, Any]] = None  # None answers 403 like for non-admins
        self.exams: List[Dict[str, Any]] = []
        self.questions: Dict[str, List[Dict[str, Any]]] = {}
        self.attempts: Dict[str, Dict[str, Any]] = {}
        self.answers: List[Dict[str, Any]] = []
        self.correct_options: Set[str] = set()
        self.my_courses: List[Dict[str, Any]] = []
        self.app = self._build_app()

    def add_topics(self, *topics: Dict[str, Any]) -> None:
        self.course_detail["topics"].extend(topics)

    def _build_app(self) -> FastAPI:
        app = FastAPI()
        backend = self

        @app.middleware("http")
        async def record(request: Request, call_next):
            backend.requests.append((request.method, request.url.path))
            if request.headers.get("authorization") != f"Bearer {TEST_TOKEN}":
                return JSONResponse({"error": "Unauthorized"}, status_code=401)
            if request.url.path in backend.failing_paths:
                return JSONResponse({"error": "boom"}, status_code=500)
            return await call_next(request)

        @app.post("/api/learning/progress/materials/{material_id}/heartbeat")
        async def heartbeat(material_id: str, request: Request):
            body = await request.json()
            backend.heartbeats.append((material_id, body))
            if backend.heartbeat_status >= 400:
                return JSONResponse({"error": "unavailable"}, status_code=backend.heartbeat_status)
            return {"progress": {"materialId": material_id}}

        @app.post("/api/learning/progress/materials/{material_id}/complete")
        async def complete(material_id: str):
            backend.completed.append(material_id)
            return {"progress": {"materialId": material_id, "percent": 100}}

        @app.get("/api/learning/topics/{topic_id}/progress")
        async def topic_progress(topic_id: str):
            return backend.topic_progress.get(topic_id, {"percent": 0, "timeSpentSec": 0})

        @app.get("/api/learning/topics/{topic_id}/materials")
        async def topic_materials(topic_id: str):
            return backend.materials.get(topic_id, {"materials": [], "etaSeconds": 0})

        @app.get("/api/learning/courses/{course_id}/progress")
        async def course_progress(course_id: str):
            return backend.course_progress

        @app.get("/api/learning/courses/{course_id}/detail")
        async def course_detail(course_id: str):
            if backend.course_detail is None:
                return JSONResponse({"error": "Not found"}, status_code=404)
            return backend.course_detail

        @app.get("/api/learning/me/courses")
        async def my_courses():
            return {"courses": backend.my_courses}

        @app.get("/api/settings")
        async def get_settings():
            if backend.settings is None:
                return JSONResponse({"error": "Forbidden"}, status_code=403)
            return {"settings": backend.settings}

        @app.get("/api/exams/public")
        async def public_exams(
            topicId: Optional[str] = None,
            courseId: Optional[str] = None,
            type: Optional[str] = None,
        ):
            exams = [
                e for e in backend.exams
                if (topicId is None or e.get("topicId") == topicId)
                and (courseId is None or e.get("courseId") == courseId)
                and (type is None or e.get("type") == type)
            ]
            return {"exams": exams}

        @app.post("/api/exams/{exam_id}/attempts")
        async def start_attempt(exam_id: str):
            attempt_id = f"att-{len(backend.attempts) + 1}"
            attempt = {"id": attempt_id, "examId": exam_id, "status": "IN_PROGRESS"}
            backend.attempts[attempt_id] = attempt
            return JSONResponse({"attempt": attempt}, status_code=201)

        @app.get("/api/exams/{exam_id}/questions")
        async def exam_questions(exam_id: str):
            return {"questions": backend.questions.get(exam_id, [])}

        @app.post("/api/exams/attempts/{attempt_id}/answers")
        async def save_answer(attempt_id: str, request: Request):
            body = await request.json()
            body["attemptId"] = attempt_id
            backend.answers.append(body)
            return {"answer": body}

        @app.post("/api/exams/attempts/{attempt_id}/submit")
        async def submit(attempt_id: str):
            attempt = backend.attempts.get(attempt_id)
            if attempt is None:
                return JSONResponse({"error": "Attempt not found"}, status_code=404)
            mine = [a for a in backend.answers if a["attemptId"] == attempt_id]
            correct = [a for a in mine if a.get("selectedOptionId") in backend.correct_options]
            attempt.update({
                "status": "SUBMITTED",
                "scorePercent": len(correct) / max(1, len(mine)) * 100,
                "submittedAt": "2026-01-01T10:00:00Z",
            })
            return {"attempt": attempt}

        @app.get("/api/exams/attempts/me")
        async def my_attempts():
            return {"attempts": list(backend.attempts.values())}

        @app.get("/api/exams/attempts/{attempt_id}")
        async def get_attempt(attempt_id: str):
            attempt = backend.attempts.get(attempt_id)
            if attempt is None:
                return JSONResponse({"error": "Attempt not found"}, status_code=404)
            answers = [a for a in backend.answers if a["attemptId"] == attempt_id]
            return {"attempt": {**attempt, "answers": answers}}

        return app


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
async def api(backend):
    client = LearningApiClient(
        base_url="http://testserver",
        token=TEST_TOKEN,
        transport=httpx.ASGITransport(app=backend.app),
    )
    yield client
    await client.aclose()
