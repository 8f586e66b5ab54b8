# backend/pomodoro/services/notifications.py
#
# "세션 종료" 신호. 소리/토스트 재생은 외부 계층 책임이고,
# 코어는 신호만 보냅니다.

import logging
from abc import ABC, abstractmethod

from pomodoro.models.session import EndReason
from pomodoro.services.events import SessionCompleted

logger = logging.getLogger(__name__)


class SessionNotifier(ABC):

    @abstractmethod
    async def session_ended(self, event: SessionCompleted) -> None:
        pass

    async def __call__(self, event: SessionCompleted) -> None:
        await self.session_ended(event)


class LoggingNotifier(SessionNotifier):
    """기본 구현: 로그만 남김"""

    async def session_ended(self, event: SessionCompleted) -> None:
        if event.reason == EndReason.EXPIRED:
            logger.info(
                "Session ended naturally (session=%s, user=%s, label=%r)",
                event.session_id,
                event.user_id,
                event.label,
            )
        else:
            logger.info(
                "Session stopped (session=%s, user=%s, focused=%ss)",
                event.session_id,
                event.user_id,
                event.active_seconds,
            )
