# backend/pomodoro/services/breaks.py
#
# 휴식 스케줄러.
# - next_break(): 완료 세션 수 -> 짧은/긴 휴식 결정 (순수 함수)
# - BreakScheduler: SessionCompleted 이벤트를 받아 로컬 휴식 카운트다운을 돌림.
#   서버에 저장하지 않으며 (재시작 시 유실), 세션 레코드를 절대 수정하지 않습니다.

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional

from pomodoro.services.events import SessionCompleted

logger = logging.getLogger(__name__)


class BreakKind(str, Enum):
    SHORT = "short"
    LONG = "long"


@dataclass(frozen=True)
class BreakPolicy:
    short_minutes: float = 5
    long_minutes: float = 15
    long_every: int = 3

    def __post_init__(self):
        if self.short_minutes <= 0 or self.long_minutes <= 0:
            raise ValueError("Break durations must be positive")
        if self.long_every < 1:
            raise ValueError("long_every must be >= 1")

    @classmethod
    def from_settings(cls, settings) -> "BreakPolicy":
        return cls(
            short_minutes=settings.SHORT_BREAK_MINUTES,
            long_minutes=settings.LONG_BREAK_MINUTES,
            long_every=settings.LONG_BREAK_EVERY,
        )


@dataclass(frozen=True)
class BreakPlan:
    kind: BreakKind
    duration_seconds: int


def next_break(completed_count: int, policy: BreakPolicy = BreakPolicy()) -> BreakPlan:
    """
    completed_count: 방금 끝난 세션까지 포함한 완료 세션 수.
    N번째마다(count % N == 0) 긴 휴식, 나머지는 짧은 휴식.
    """
    if completed_count > 0 and completed_count % policy.long_every == 0:
        return BreakPlan(BreakKind.LONG, int(round(policy.long_minutes * 60)))
    return BreakPlan(BreakKind.SHORT, int(round(policy.short_minutes * 60)))


class BreakScheduler:
    """
    완료 이벤트 -> 휴식 결정 -> 카운트다운 -> 만료 시 on_break_over 콜백.

    카운트다운 자체는 주입받은 countdown_factory가 만듭니다
    (클라이언트에서는 pomodoro.client.timers.Countdown).
    on_break_over는 "대기 중인 다음 세션이 있으면 시작, 없으면 idle"을 결정합니다.
    """

    def __init__(
        self,
        countdown_factory: Callable,
        policy: BreakPolicy = BreakPolicy(),
        on_break_over: Optional[Callable[[BreakPlan], Awaitable[None]]] = None,
        completed_count: int = 0,
    ):
        self.policy = policy
        self._countdown_factory = countdown_factory
        self._on_break_over = on_break_over
        self.consecutive_completed_count = completed_count
        self.current: Optional[BreakPlan] = None
        self._countdown = None

    @property
    def is_active(self) -> bool:
        return self._countdown is not None and self._countdown.is_running

    @property
    def remaining_seconds(self) -> int:
        if self._countdown is None:
            return 0
        return self._countdown.remaining_seconds

    def peek(self) -> BreakPlan:
        """다음 세션이 끝났을 때 적용될 휴식"""
        return next_break(self.consecutive_completed_count + 1, self.policy)

    async def on_session_completed(self, event: SessionCompleted) -> BreakPlan:
        self.consecutive_completed_count += 1
        plan = next_break(self.consecutive_completed_count, self.policy)
        logger.info(
            "Break scheduled (kind=%s, seconds=%s, after=%s)",
            plan.kind.value,
            plan.duration_seconds,
            event.session_id,
        )
        self.start(plan)
        return plan

    def start(self, plan: BreakPlan) -> None:
        self.cancel()
        self.current = plan
        self._countdown = self._countdown_factory(plan.duration_seconds, self._expired)
        self._countdown.start()

    def pause(self) -> None:
        if self._countdown is not None:
            self._countdown.pause()

    def resume(self) -> None:
        if self._countdown is not None and self._countdown.remaining_seconds > 0:
            self._countdown.start()

    def skip(self) -> None:
        """휴식 건너뛰기: 카운트다운 취소, 다음 세션 자동 시작 없음"""
        if self.current is not None:
            logger.info("Break skipped (kind=%s)", self.current.kind.value)
        self.cancel()

    def cancel(self) -> None:
        if self._countdown is not None:
            self._countdown.cancel()
        self._countdown = None
        self.current = None

    async def _expired(self) -> None:
        plan = self.current
        self._countdown = None
        self.current = None
        if plan is not None and self._on_break_over is not None:
            await self._on_break_over(plan)
