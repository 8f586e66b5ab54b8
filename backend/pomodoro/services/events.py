# backend/pomodoro/services/events.py

from dataclasses import dataclass
from datetime import datetime

from pomodoro.models.session import EndReason, SessionInDB


@dataclass(frozen=True)
class SessionCompleted:
    """
    세션이 completed로 확정된 뒤 한 번 발행되는 이벤트.
    휴식 스케줄러/학습 로그/알림은 모두 이 이벤트만 보고 동작하며
    세션 레코드를 직접 건드리지 않습니다.
    """

    session_id: str
    user_id: str
    label: str
    active_seconds: int
    ended_at: datetime
    reason: EndReason

    @classmethod
    def from_session(cls, session: SessionInDB) -> "SessionCompleted":
        return cls(
            session_id=session.id,
            user_id=session.user_id,
            label=session.label,
            active_seconds=session.active_seconds(),
            ended_at=session.ended_at,
            reason=EndReason(session.end_reason),
        )

    @classmethod
    def from_read(cls, read) -> "SessionCompleted":
        """클라이언트 쪽: API 응답(SessionRead)에서 생성"""
        return cls(
            session_id=read.id,
            user_id=read.user_id,
            label=read.label,
            active_seconds=read.active_seconds,
            ended_at=read.ended_at,
            reason=EndReason(read.end_reason or EndReason.STOPPED),
        )
