# 파일 위치: backend/pomodoro/schemas/session.py

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator

from pomodoro.models.session import EndReason, SessionInDB, SessionStatus


def _strip_to_none(v):
    """
    Optional[str] 입력에서:
    - None은 그대로
    - "   " -> None
    - 그 외는 strip된 문자열
    """
    if v is None:
        return None
    if not isinstance(v, str):
        return v
    s = v.strip()
    return s or None


# --- API 요청(Request) 스키마 ---

class SessionStart(BaseModel):
    """
    [요청] POST /pomodoro/start
    label이 비어 있으면 기본값("Pomodoro Session")으로 대체되고,
    duration_minutes가 없으면 설정의 기본 뽀모도로 길이(25분)를 사용합니다.
    user_id는 인증 토큰에서 가져오므로 클라이언트가 보낼 필요가 없습니다.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    label: Optional[str] = None
    duration_minutes: Optional[float] = None
    task_id: Optional[str] = None

    @field_validator("label", "task_id", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        return _strip_to_none(v)


class SessionAction(BaseModel):
    """
    [요청] POST /pomodoro/pause | /resume | /stop
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    session_id: str


# --- API 응답(Response) 스키마 ---

class SessionRead(BaseModel):
    """
    [응답] 세션 + 서버가 방금 계산한 remaining_seconds.
    클라이언트는 자체 경과 시간을 믿지 말고 이 값으로 화면을 다시 맞춥니다.
    """
    id: str
    user_id: str
    label: str
    task_id: Optional[str] = None
    status: SessionStatus
    planned_duration_seconds: int
    started_at: datetime
    paused_at: Optional[datetime] = None
    total_paused_seconds: int
    ended_at: Optional[datetime] = None
    completed: bool
    end_reason: Optional[EndReason] = None
    remaining_seconds: int
    active_seconds: int
    server_time: datetime

    @classmethod
    def from_session(cls, session: SessionInDB, now: datetime) -> "SessionRead":
        return cls(
            id=session.id,
            user_id=session.user_id,
            label=session.label,
            task_id=session.task_id,
            status=session.status,
            planned_duration_seconds=session.planned_duration_seconds,
            started_at=session.started_at,
            paused_at=session.paused_at,
            total_paused_seconds=session.total_paused_seconds,
            ended_at=session.ended_at,
            completed=session.completed,
            end_reason=session.end_reason,
            remaining_seconds=session.remaining_seconds(now),
            active_seconds=session.active_seconds(now),
            server_time=now,
        )


class CurrentSessionRead(BaseModel):
    """
    [응답] GET /pomodoro/current
    진행 중인 세션이 없으면 session=null
    """
    session: Optional[SessionRead] = None


class TodayStatsRead(BaseModel):
    """
    [응답] GET /pomodoro/stats/today
    로컬 자정 이후 완료된 세션 기준
    """
    date: str
    completed_count: int
    focused_seconds: int
    total_completed: int
