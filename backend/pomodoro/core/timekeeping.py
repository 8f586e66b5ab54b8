# backend/pomodoro/core/timekeeping.py
#
# 남은 시간 계산은 항상 저장된 타임스탬프에서 다시 유도합니다.
# 클라이언트의 로컬 카운트다운은 표시용일 뿐 기준값이 아닙니다.
# 이 모듈은 순수 함수만 포함합니다 (I/O 없음, now는 항상 인자로 받음).

import math
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Tuple
from zoneinfo import ZoneInfo


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_aware_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """
    naive datetime은 UTC로 간주해서 tzinfo를 붙임.
    (Mongo에서 읽은 datetime은 tz_aware 설정이 없으면 naive로 옴)
    """
    if dt is None:
        return dt
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _seconds_between(start: datetime, end: datetime) -> float:
    return (ensure_aware_utc(end) - ensure_aware_utc(start)).total_seconds()


def elapsed_pause_seconds(paused_at: datetime, now: datetime) -> int:
    """
    현재 일시정지 구간의 길이 (초, 내림).
    resume/stop 시점에 total_paused_seconds에 더해지는 값입니다.
    시계가 뒤로 간 경우에도 음수는 반환하지 않습니다.
    """
    return max(0, math.floor(_seconds_between(paused_at, now)))


def active_seconds(
    started_at: datetime,
    paused_at: Optional[datetime],
    total_paused_seconds: int,
    now: datetime,
) -> int:
    """
    실제로 집중한 시간 (초, 내림) = 전체 경과 - 누적 일시정지 - 현재 일시정지.
    일시정지 중이면 (now - paused_at)이 상쇄되므로 paused_at 시점에서 한 번만 내림합니다.
    """
    point = paused_at if paused_at is not None else now
    elapsed = _seconds_between(started_at, point) - total_paused_seconds
    return max(0, math.floor(elapsed))


def remaining_seconds(
    started_at: datetime,
    paused_at: Optional[datetime],
    total_paused_seconds: int,
    planned_duration_seconds: int,
    now: datetime,
) -> int:
    """
    remaining = max(planned - floor(now - started_at - total_paused - current_pause), 0)
    """
    used = active_seconds(started_at, paused_at, total_paused_seconds, now)
    return max(planned_duration_seconds - used, 0)


def expires_at(
    started_at: datetime,
    total_paused_seconds: int,
    planned_duration_seconds: int,
) -> datetime:
    """
    running 상태 세션이 0초에 도달하는 벽시계 시각.
    paused 상태에서는 의미가 없으므로 호출하는 쪽에서 상태를 확인해야 합니다.
    """
    return ensure_aware_utc(started_at) + timedelta(
        seconds=total_paused_seconds + planned_duration_seconds
    )


def local_day_bounds(now: datetime, tz_name: str = "UTC") -> Tuple[datetime, datetime]:
    """
    now가 속한 "로컬 날짜"의 [자정, 다음 자정) 구간을 UTC로 반환.
    """
    return day_bounds(local_date(now, tz_name), tz_name)


def local_date(now: datetime, tz_name: str = "UTC") -> date:
    return ensure_aware_utc(now).astimezone(ZoneInfo(tz_name)).date()


def day_bounds(day: date, tz_name: str = "UTC") -> Tuple[datetime, datetime]:
    tz = ZoneInfo(tz_name)
    start_local = datetime.combine(day, time.min, tzinfo=tz)
    end_local = datetime.combine(day + timedelta(days=1), time.min, tzinfo=tz)
    return start_local.astimezone(timezone.utc), end_local.astimezone(timezone.utc)
