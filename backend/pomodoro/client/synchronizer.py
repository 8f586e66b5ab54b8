# backend/pomodoro/client/synchronizer.py
#
# 로컬 카운트다운 표시와 서버 상태를 맞추는 클라이언트 측 동기화기.
#
# 규칙
# - 모든 명령(start/pause/resume/stop) 응답의 remaining_seconds로 로컬 카운트다운을 다시 맞춤
# - 최초 로드 시 active 세션은 복원하되 로컬 틱은 시작하지 않음
#   (새로고침과 긴 네트워크 끊김을 구분할 수 없으므로 사용자가 직접 resume)
# - pause/resume 실패 시 상태를 "unknown"으로 두고, 서버 상태를 다시 받아오기 전엔 틱 재개 금지
# - 세션 카운트다운과 휴식 카운트다운은 동시에 돌지 않음

import asyncio
import logging
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Deque, Optional

import httpx

from pomodoro.client.api import PomodoroClient
from pomodoro.client.timers import Countdown
from pomodoro.core.config import settings
from pomodoro.core.errors import InvalidState, PomodoroError
from pomodoro.schemas.session import SessionRead
from pomodoro.services.breaks import BreakPlan, BreakPolicy, BreakScheduler
from pomodoro.services.events import SessionCompleted

logger = logging.getLogger(__name__)

# 명령 실패로 간주하는 예외 (서버 에러 + 네트워크 에러)
CommandErrors = (PomodoroError, httpx.HTTPError)


class SyncState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    BREAK = "break"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class QueuedSession:
    label: Optional[str] = None
    duration_minutes: Optional[float] = None
    task_id: Optional[str] = None


def default_countdown_factory(seconds: int, on_expire) -> Countdown:
    return Countdown(seconds, on_expire=on_expire)


class TimerSynchronizer:
    def __init__(
        self,
        api: PomodoroClient,
        break_policy: Optional[BreakPolicy] = None,
        countdown_factory: Callable[..., Countdown] = default_countdown_factory,
        on_session_ended: Optional[Callable[[SessionRead], Awaitable[None]]] = None,
    ):
        self.api = api
        self.session: Optional[SessionRead] = None
        self.state = SyncState.IDLE
        self.queue: Deque[QueuedSession] = deque()
        self._countdown_factory = countdown_factory
        self._countdown: Optional[Countdown] = None
        self._on_session_ended = on_session_ended
        # 같은 클라이언트에서 나가는 명령은 한 번에 하나씩
        self._lock = asyncio.Lock()
        self.breaks = BreakScheduler(
            countdown_factory=countdown_factory,
            policy=break_policy or BreakPolicy.from_settings(settings),
            on_break_over=self._on_break_over,
        )

    # ------------------------------------------------------------------
    # 표시값
    # ------------------------------------------------------------------
    @property
    def remaining_seconds(self) -> int:
        if self.state == SyncState.BREAK:
            return self.breaks.remaining_seconds
        if self._countdown is None:
            return 0
        return self._countdown.remaining_seconds

    @property
    def is_ticking(self) -> bool:
        if self.state == SyncState.BREAK:
            return self.breaks.is_active
        return self._countdown is not None and self._countdown.is_running

    def enqueue(
        self,
        label: Optional[str] = None,
        duration_minutes: Optional[float] = None,
        task_id: Optional[str] = None,
    ) -> None:
        """휴식이 끝나면 자동으로 시작할 세션 예약"""
        self.queue.append(QueuedSession(label, duration_minutes, task_id))

    # ------------------------------------------------------------------
    # 로드 / 재동기화
    # ------------------------------------------------------------------
    async def load(self, limit: int = 100) -> Optional[SessionRead]:
        async with self._lock:
            history = await self.api.history(limit)
            self.breaks.consecutive_completed_count = sum(1 for s in history if s.completed)
            active = next((s for s in history if not s.completed), None)
            self._show(active, ticking=False)
            return active

    async def refresh(self) -> Optional[SessionRead]:
        async with self._lock:
            return await self._refresh()

    # ------------------------------------------------------------------
    # 명령
    # ------------------------------------------------------------------
    async def start(
        self,
        label: Optional[str] = None,
        duration_minutes: Optional[float] = None,
        task_id: Optional[str] = None,
    ) -> SessionRead:
        async with self._lock:
            # 실패하면 휴식 카운트다운과 표시 상태는 그대로 둠
            read = await self.api.start(label, duration_minutes, task_id)
            self.breaks.cancel()
            self._show(read, ticking=True)
            return read

    async def pause(self) -> Optional[SessionRead]:
        async with self._lock:
            if self.state == SyncState.BREAK:
                self.breaks.pause()
                return None
            if self.session is None:
                return None

            self._stop_ticking()
            try:
                read = await self.api.pause(self.session.id)
            except CommandErrors:
                self._mark_unknown()
                raise
            self._show(read, ticking=False)
            return read

    async def resume(self) -> Optional[SessionRead]:
        async with self._lock:
            if self.state == SyncState.BREAK:
                self.breaks.resume()
                return None
            if self.state == SyncState.UNKNOWN:
                await self._refresh()
            if self.session is None:
                return None

            try:
                read = await self.api.resume(self.session.id)
            except CommandErrors:
                self._mark_unknown()
                raise
            self._show(read, ticking=True)
            return read

    async def stop(self) -> Optional[SessionRead]:
        async with self._lock:
            if self.session is None:
                return None
            self._stop_ticking()
            try:
                read = await self.api.stop(self.session.id)
            except CommandErrors:
                self._mark_unknown()
                raise
            await self._complete(read)
            return read

    async def skip_break(self) -> None:
        if self.state != SyncState.BREAK:
            return
        plan = self.breaks.current
        self.breaks.skip()
        await self._on_break_over(plan)

    # ------------------------------------------------------------------
    # 내부
    # ------------------------------------------------------------------
    def _show(self, read: Optional[SessionRead], ticking: bool) -> None:
        if read is None or read.completed:
            self._stop_ticking()
            self._countdown = None
            self.session = None
            self.state = SyncState.IDLE
            return

        same_session = (
            self._countdown is not None and self.session is not None and self.session.id == read.id
        )
        if not same_session:
            self._stop_ticking()
            self._countdown = self._countdown_factory(read.remaining_seconds, self._session_expired)
        self.session = read

        # 같은 세션이면 카운트다운을 새로 만들지 않고 서버 값으로 다시 맞춤
        self._countdown.reset(read.remaining_seconds)
        if ticking and read.status == "running" and read.remaining_seconds > 0:
            self._countdown.start()
            self.state = SyncState.RUNNING
        else:
            self._countdown.pause()
            self.state = SyncState.PAUSED

    async def _refresh(self) -> Optional[SessionRead]:
        read = await self.api.current()
        self._show(read, ticking=False)
        return read

    def _stop_ticking(self) -> None:
        if self._countdown is not None:
            self._countdown.pause()

    def _mark_unknown(self) -> None:
        self._stop_ticking()
        self.state = SyncState.UNKNOWN
        logger.warning("Session state unknown; refresh required before ticking")

    async def _complete(self, read: SessionRead) -> None:
        self.session = None
        self._countdown = None
        self.state = SyncState.IDLE
        if self._on_session_ended is not None:
            await self._on_session_ended(read)
        await self.breaks.on_session_completed(SessionCompleted.from_read(read))
        self.state = SyncState.BREAK

    async def _session_expired(self) -> None:
        """로컬 카운트다운 0 도달 -> 서버에 stop (자연 만료 확정)"""
        async with self._lock:
            if self.session is None or self.state != SyncState.RUNNING:
                return
            session_id = self.session.id
            try:
                read = await self._finalize_expired(session_id)
            except CommandErrors:
                logger.exception("Failed to finalize expired session (session=%s)", session_id)
                self._mark_unknown()
                return
            if read is not None:
                await self._complete(read)

    async def _finalize_expired(self, session_id: str) -> Optional[SessionRead]:
        try:
            return await self.api.stop(session_id)
        except InvalidState:
            # 서버가 이미 만료 처리함 (다른 탭의 조회 시 자동 확정 등)
            read = await self._find_finalized(session_id)
        if read is None:
            await self._refresh()
        return read

    async def _find_finalized(self, session_id: str, limit: int = 10) -> Optional[SessionRead]:
        for read in await self.api.history(limit):
            if read.id == session_id and read.completed:
                return read
        return None

    async def _on_break_over(self, plan: Optional[BreakPlan]) -> None:
        self.state = SyncState.IDLE
        if not self.queue:
            return
        nxt = self.queue.popleft()
        try:
            await self.start(nxt.label, nxt.duration_minutes, nxt.task_id)
        except CommandErrors:
            logger.exception("Failed to start queued session (label=%r)", nxt.label)
