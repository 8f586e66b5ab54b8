# backend/pomodoro/services/lifecycle.py
#
# 뽀모도로 세션 상태 머신.
#
#   (none) --start--> running --pause--> paused --resume--> running
#   running/paused --stop--> completed (이후 모든 명령은 InvalidState)
#
# 남은 시간은 매 응답마다 저장된 타임스탬프로 다시 계산해서 돌려줍니다.
# 실패는 호출자에게 그대로 전달하고, 자동 재시도는 하지 않습니다.

import logging
from datetime import datetime
from typing import Awaitable, Callable, Iterable, List, Optional

from pomodoro.core import timekeeping
from pomodoro.core.errors import InvalidState, StaleSession, ValidationError
from pomodoro.crud.sessions import SessionStore
from pomodoro.models.session import DEFAULT_LABEL, EndReason, SessionInDB, SessionStatus
from pomodoro.schemas.session import SessionRead, TodayStatsRead
from pomodoro.services.events import SessionCompleted

logger = logging.getLogger(__name__)

Listener = Callable[[SessionCompleted], Awaitable[None]]

MAX_DURATION_MINUTES = 24 * 60
MAX_LABEL_LENGTH = 200


class SessionLifecycleEngine:

    def __init__(
        self,
        store: SessionStore,
        clock: Callable[[], datetime] = timekeeping.utcnow,
        listeners: Iterable[Listener] = (),
        default_duration_minutes: float = 25,
        history_limit_max: int = 500,
        local_timezone: str = "UTC",
    ):
        self.store = store
        self._clock = clock
        self._listeners: List[Listener] = list(listeners)
        self.default_duration_minutes = default_duration_minutes
        self.history_limit_max = history_limit_max
        self.local_timezone = local_timezone

    def now(self) -> datetime:
        return timekeeping.ensure_aware_utc(self._clock())

    # ------------------------------------------------------------------
    # 명령
    # ------------------------------------------------------------------
    async def start(
        self,
        user_id: str,
        label: Optional[str] = None,
        duration_minutes: Optional[float] = None,
        task_id: Optional[str] = None,
    ) -> SessionRead:
        label = self._normalize_label(label)
        planned = self._planned_seconds(duration_minutes)
        now = self.now()

        session = await self.store.create_active(user_id, label, planned, now, task_id=task_id)
        logger.info(
            "Session started (session=%s, user=%s, planned=%ss)", session.id, user_id, planned
        )
        return SessionRead.from_session(session, now)

    async def pause(self, user_id: str, session_id: str) -> SessionRead:
        now = self.now()
        session = await self.store.find_by_id(user_id, session_id)
        self._ensure_not_completed(session, "pause")

        if session.status == SessionStatus.PAUSED:
            return SessionRead.from_session(session, now)
        await self._reject_if_expired(session, now)

        saved = await self._save(session.model_copy(update={"paused_at": now, "updated_at": now}))
        logger.info("Session paused (session=%s, user=%s)", session_id, user_id)
        return SessionRead.from_session(saved, now)

    async def resume(self, user_id: str, session_id: str) -> SessionRead:
        now = self.now()
        session = await self.store.find_by_id(user_id, session_id)
        self._ensure_not_completed(session, "resume")

        if session.status == SessionStatus.RUNNING:
            await self._reject_if_expired(session, now)
            return SessionRead.from_session(session, now)

        saved = await self._save(self._fold_pause(session, now))
        logger.info(
            "Session resumed (session=%s, user=%s, paused_total=%ss)",
            session_id,
            user_id,
            saved.total_paused_seconds,
        )
        return SessionRead.from_session(saved, now)

    async def stop(self, user_id: str, session_id: str) -> SessionRead:
        """
        running/paused -> completed.
        남은 시간이 이미 0이어도 받아들이며 (자연 만료 확정), 이때 end_reason은 expired.
        """
        now = self.now()
        session = await self.store.find_by_id(user_id, session_id)
        self._ensure_not_completed(session, "stop")

        reason = EndReason.EXPIRED if session.remaining_seconds(now) == 0 else EndReason.STOPPED
        saved = await self._finalize(session, now, reason)
        return SessionRead.from_session(saved, now)

    # ------------------------------------------------------------------
    # 조회 (만료된 running 세션은 조회 시점에 자동 확정)
    # ------------------------------------------------------------------
    async def current(self, user_id: str) -> Optional[SessionRead]:
        now = self.now()
        session = await self.store.find_active_or_none(user_id)
        if session is None:
            return None
        session = await self._expire_if_due(session, now)
        if session.completed:
            return None
        return SessionRead.from_session(session, now)

    async def history(self, user_id: str, limit: int = 100) -> List[SessionRead]:
        now = self.now()
        safe_limit = max(1, min(limit, self.history_limit_max))
        sessions = await self.store.list_recent(user_id, safe_limit)

        result = []
        for session in sessions:
            if session.is_active:
                session = await self._expire_if_due(session, now)
            result.append(SessionRead.from_session(session, now))
        return result

    async def today_stats(self, user_id: str) -> TodayStatsRead:
        now = self.now()
        start, end = timekeeping.local_day_bounds(now, self.local_timezone)
        done = await self.store.list_completed_between(user_id, start, end)
        total = await self.store.count_completed(user_id)
        return TodayStatsRead(
            date=timekeeping.local_date(now, self.local_timezone).isoformat(),
            completed_count=len(done),
            focused_seconds=sum(s.active_seconds() for s in done),
            total_completed=total,
        )

    # ------------------------------------------------------------------
    # 내부
    # ------------------------------------------------------------------
    def _normalize_label(self, label: Optional[str]) -> str:
        # 빈 label은 거부하지 않고 기본값으로 대체
        if label is None or not label.strip():
            return DEFAULT_LABEL
        label = label.strip()
        if len(label) > MAX_LABEL_LENGTH:
            raise ValidationError(f"label must be at most {MAX_LABEL_LENGTH} characters")
        return label

    def _planned_seconds(self, duration_minutes: Optional[float]) -> int:
        if duration_minutes is None:
            duration_minutes = self.default_duration_minutes
        if duration_minutes <= 0:
            raise ValidationError("duration_minutes must be positive")
        if duration_minutes > MAX_DURATION_MINUTES:
            raise ValidationError("duration_minutes must be at most 24 hours")
        seconds = int(round(duration_minutes * 60))
        if seconds <= 0:
            raise ValidationError("duration_minutes must be at least one second")
        return seconds

    @staticmethod
    def _ensure_not_completed(session: SessionInDB, command: str) -> None:
        if session.completed:
            logger.warning(
                "Rejected %s on completed session (session=%s)", command, session.id
            )
            raise InvalidState(f"Cannot {command} a completed session")

    @staticmethod
    def _fold_pause(session: SessionInDB, now: datetime) -> SessionInDB:
        """현재 일시정지 구간을 total_paused_seconds에 합치고 paused_at 해제"""
        if session.paused_at is None:
            return session
        paused_for = timekeeping.elapsed_pause_seconds(session.paused_at, now)
        return session.model_copy(
            update={
                "total_paused_seconds": session.total_paused_seconds + paused_for,
                "paused_at": None,
                "updated_at": now,
            }
        )

    async def _save(self, session: SessionInDB) -> SessionInDB:
        try:
            return await self.store.save(session)
        except StaleSession:
            # 다른 요청이 먼저 확정(stop)했으면 completed 규칙대로 InvalidState
            latest = await self.store.find_by_id(session.user_id, session.id)
            if latest.completed:
                raise InvalidState("Session already completed")
            raise

    async def _finalize(
        self,
        session: SessionInDB,
        now: datetime,
        reason: EndReason,
        ended_at: Optional[datetime] = None,
    ) -> SessionInDB:
        folded = self._fold_pause(session, now)
        saved = await self._save(
            folded.model_copy(
                update={
                    "ended_at": ended_at or now,
                    "completed": True,
                    "end_reason": reason,
                    "updated_at": now,
                }
            )
        )
        logger.info(
            "Session completed (session=%s, user=%s, reason=%s)",
            saved.id,
            saved.user_id,
            reason.value,
        )
        await self._publish(SessionCompleted.from_session(saved))
        return saved

    async def _expire_if_due(self, session: SessionInDB, now: datetime) -> SessionInDB:
        if not session.is_expired(now):
            return session
        ended_at = timekeeping.expires_at(
            session.started_at, session.total_paused_seconds, session.planned_duration_seconds
        )
        try:
            return await self._finalize(session, now, EndReason.EXPIRED, ended_at=ended_at)
        except InvalidState:
            # 동시에 다른 요청이 먼저 확정한 경우: 저장된 값을 그대로 사용
            return await self.store.find_by_id(session.user_id, session.id)

    async def _reject_if_expired(self, session: SessionInDB, now: datetime) -> None:
        if session.is_expired(now):
            await self._expire_if_due(session, now)
            raise InvalidState("Session time is already up")

    async def _publish(self, event: SessionCompleted) -> None:
        for listener in self._listeners:
            try:
                await listener(event)
            except Exception:
                # 리스너 실패가 이미 저장된 전이를 되돌리지는 않음
                logger.exception("SessionCompleted listener failed (session=%s)", event.session_id)
