# backend/pomodoro/client/timers.py
#
# 클라이언트 로컬 카운트다운.
# 표시용일 뿐 기준값이 아니며, 매 틱마다 마감 시각(monotonic)에서 다시 계산합니다.
# 탭 백그라운드/슬립으로 틱이 한참 멈췄다가 돌아와도 "1초씩 감소"를 가정하지 않습니다.

import asyncio
import logging
import math
import time
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class TimerHandle:
    """
    start()가 돌려주는 취소 가능한 핸들.
    pause/stop 시 cancel()로 대기 중인 틱을 확실히 제거합니다.
    """

    def __init__(self, task: asyncio.Task):
        self._task = task

    @property
    def active(self) -> bool:
        return not self._task.done()

    def owns_current_task(self) -> bool:
        return self._task is asyncio.current_task()

    def cancel(self) -> None:
        if not self._task.done():
            self._task.cancel()


class Countdown:
    def __init__(
        self,
        total_seconds: int,
        on_expire: Optional[Callable[[], Awaitable[None]]] = None,
        on_tick: Optional[Callable[[int], None]] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        interval: float = 1.0,
    ):
        self._remaining = max(0, int(total_seconds))
        self._deadline: Optional[float] = None
        self._handle: Optional[TimerHandle] = None
        self._on_expire = on_expire
        self._on_tick = on_tick
        self._clock = clock
        self._sleep = sleep
        self._interval = interval

    @property
    def is_running(self) -> bool:
        return self._deadline is not None

    @property
    def remaining_seconds(self) -> int:
        if self._deadline is None:
            return self._remaining
        return max(0, math.ceil(self._deadline - self._clock()))

    def start(self) -> Optional[TimerHandle]:
        if self.is_running:
            return self._handle
        if self._remaining <= 0:
            return None
        self._deadline = self._clock() + self._remaining
        self._handle = TimerHandle(asyncio.get_running_loop().create_task(self._run()))
        return self._handle

    def pause(self) -> None:
        if self._deadline is not None:
            self._remaining = self.remaining_seconds
        self._deadline = None
        self._cancel_handle()

    def cancel(self) -> None:
        self._deadline = None
        self._remaining = 0
        self._cancel_handle()

    def reset(self, seconds: int) -> None:
        """서버가 계산한 남은 시간으로 다시 맞춤 (실행 여부는 유지)"""
        seconds = max(0, int(seconds))
        if self._deadline is not None:
            self._deadline = self._clock() + seconds
        self._remaining = seconds

    async def tick(self) -> int:
        """
        한 번의 틱. 남은 시간이 0이면 멈추고 on_expire를 호출합니다.
        """
        if self._deadline is None:
            return self._remaining
        remaining = self.remaining_seconds
        if self._on_tick is not None:
            self._on_tick(remaining)
        if remaining > 0:
            return remaining

        self._deadline = None
        self._remaining = 0
        # on_expire 안에서 새 카운트다운을 만들 수 있으므로 핸들은 먼저 떼어냄
        handle, self._handle = self._handle, None
        if handle is not None and not handle.owns_current_task():
            handle.cancel()
        if self._on_expire is not None:
            await self._on_expire()
        return 0

    async def _run(self) -> None:
        while self._deadline is not None:
            await self._sleep(self._interval)
            await self.tick()

    def _cancel_handle(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
        self._handle = None
