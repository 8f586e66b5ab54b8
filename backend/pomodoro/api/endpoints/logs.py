# backend/pomodoro/api/endpoints/logs.py
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from pomodoro.api.deps import get_current_user_id, get_study_log_store
from pomodoro.core import timekeeping
from pomodoro.core.config import settings
from pomodoro.crud.study_logs import StudyLogStore
from pomodoro.schemas.study_log import StudyLogRead

router = APIRouter(prefix="/logs", tags=["StudyLogs"])


def _today() -> date:
    return timekeeping.local_date(timekeeping.utcnow(), settings.LOCAL_TIMEZONE)


# --------------------------------------------------------------------------
# GET /logs/daily?date=YYYY-MM-DD
# 설명: 하루 집계 (date 생략 시 오늘). 기록이 없으면 0으로 채운 로그
# --------------------------------------------------------------------------
@router.get("/daily", response_model=StudyLogRead)
async def read_daily(
    day: Optional[date] = Query(None, alias="date"),
    user_id: str = Depends(get_current_user_id),
    store: StudyLogStore = Depends(get_study_log_store),
):
    return await store.get_day(user_id, day or _today())


@router.get("/weekly", response_model=List[StudyLogRead])
async def read_weekly(
    user_id: str = Depends(get_current_user_id),
    store: StudyLogStore = Depends(get_study_log_store),
):
    return await store.get_week(user_id, _today())


@router.get("/monthly", response_model=List[StudyLogRead])
async def read_monthly(
    user_id: str = Depends(get_current_user_id),
    store: StudyLogStore = Depends(get_study_log_store),
):
    return await store.get_month(user_id, _today())
