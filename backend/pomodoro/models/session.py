# 파일 위치: backend/pomodoro/models/session.py

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from pomodoro.core import timekeeping

DEFAULT_LABEL = "Pomodoro Session"


class SessionStatus(str, Enum):
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"


class EndReason(str, Enum):
    STOPPED = "stopped"  # 사용자가 stop 호출
    EXPIRED = "expired"  # 남은 시간이 0이 되어 자동 종료


class SessionInDB(BaseModel):
    """
    MongoDB의 'sessions' 컬렉션에 저장되는 세션 문서.
    저장소가 소유하는 유일한 Session 타입이며, 다른 계층은 이 모델에서
    파생된 SessionRead만 사용합니다.

    상태는 저장하지 않고 필드 조합에서 유도합니다.
    - running:   paused_at 없음, ended_at 없음
    - paused:    paused_at 있음, ended_at 없음
    - completed: ended_at 있음 (이후 불변)
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str = Field(..., alias="_id")  # MongoDB의 '_id'를 'id'로 매핑
    user_id: str
    label: str = DEFAULT_LABEL
    task_id: Optional[str] = None  # 외부 할 일과 연결 (없을 수 있음)

    planned_duration_seconds: int  # 생성 후 변경 불가
    started_at: datetime
    paused_at: Optional[datetime] = None
    total_paused_seconds: int = 0
    ended_at: Optional[datetime] = None
    completed: bool = False
    end_reason: Optional[EndReason] = None

    # compare-and-set 저장용 버전 (전이마다 +1)
    version: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def status(self) -> SessionStatus:
        if self.completed:
            return SessionStatus.COMPLETED
        if self.paused_at is not None:
            return SessionStatus.PAUSED
        return SessionStatus.RUNNING

    @property
    def is_active(self) -> bool:
        return not self.completed

    def remaining_seconds(self, now: datetime) -> int:
        if self.completed:
            return 0
        return timekeeping.remaining_seconds(
            self.started_at,
            self.paused_at,
            self.total_paused_seconds,
            self.planned_duration_seconds,
            now,
        )

    def active_seconds(self, now: Optional[datetime] = None) -> int:
        """
        집중한 시간(초). 완료된 세션은 ended_at 기준으로 고정됩니다.
        """
        point = self.ended_at if self.completed else now
        used = timekeeping.active_seconds(
            self.started_at, self.paused_at, self.total_paused_seconds, point
        )
        return min(used, self.planned_duration_seconds)

    def is_expired(self, now: datetime) -> bool:
        """running 상태에서 남은 시간이 0 → 자동 종료 대상"""
        return self.status == SessionStatus.RUNNING and self.remaining_seconds(now) == 0

    def to_document(self) -> dict:
        doc = self.model_dump(by_alias=True, mode="python")
        # Enum은 BSON으로 바로 직렬화되지 않으므로 값으로 저장
        if isinstance(doc.get("end_reason"), Enum):
            doc["end_reason"] = doc["end_reason"].value
        return doc
