"""Pytest configuration and shared fixtures.

- FakeClock: 벽시계(datetime)와 monotonic 값을 함께 움직이는 테스트용 시계
- 인메모리 저장소 + 고정 시계 엔진
- ASGI transport로 붙는 httpx 클라이언트 (Mongo/lifespan 없이 API 호출)
"""

from datetime import datetime, timedelta, timezone

import httpx
import pytest

from pomodoro.api.deps import get_lifecycle_engine, get_study_log_store
from pomodoro.core.security import create_access_token
from pomodoro.crud.sessions import InMemorySessionStore
from pomodoro.crud.study_logs import InMemoryStudyLogStore, StudyLogRecorder
from pomodoro.main import app
from pomodoro.services.lifecycle import SessionLifecycleEngine

T0 = datetime(2025, 3, 10, 9, 0, 0, tzinfo=timezone.utc)
USER_ID = "user-1"
OTHER_USER_ID = "user-2"


class FakeClock:
    def __init__(self, start: datetime = T0):
        self.current = start
        self.mono = 1000.0

    def __call__(self) -> datetime:
        return self.current

    def monotonic(self) -> float:
        return self.mono

    def advance(self, seconds: float) -> None:
        self.current += timedelta(seconds=seconds)
        self.mono += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> InMemorySessionStore:
    return InMemorySessionStore()


@pytest.fixture
def study_logs() -> InMemoryStudyLogStore:
    return InMemoryStudyLogStore()


@pytest.fixture
def engine(store, study_logs, clock) -> SessionLifecycleEngine:
    return SessionLifecycleEngine(store, clock=clock, listeners=[StudyLogRecorder(study_logs)])


@pytest.fixture
def api_app(engine, study_logs):
    app.dependency_overrides[get_lifecycle_engine] = lambda: engine
    app.dependency_overrides[get_study_log_store] = lambda: study_logs
    yield app
    app.dependency_overrides.clear()


def auth_headers(user_id: str = USER_ID) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user_id)}"}


@pytest.fixture
async def http(api_app):
    transport = httpx.ASGITransport(app=api_app)
    async with httpx.AsyncClient(
        transport=transport, base_url="http://test", headers=auth_headers()
    ) as client:
        yield client
