# backend/pomodoro/api/endpoints/pomodoro.py
from typing import List

from fastapi import APIRouter, Depends, Query, status

from pomodoro.api.deps import get_current_user_id, get_lifecycle_engine
from pomodoro.core.config import settings
from pomodoro.schemas.session import (
    CurrentSessionRead,
    SessionAction,
    SessionRead,
    SessionStart,
    TodayStatsRead,
)
from pomodoro.services.lifecycle import SessionLifecycleEngine

router = APIRouter(prefix="/pomodoro", tags=["Pomodoro"])

# 에러(NotFound/InvalidState/ValidationError)는 main.py의 예외 핸들러가 HTTP로 변환


# --------------------------------------------------------------------------
# POST /pomodoro/start
# 설명: running 상태의 새 세션 생성. 이미 진행 중인 세션이 있으면 409
# --------------------------------------------------------------------------
@router.post("/start", response_model=SessionRead, status_code=status.HTTP_201_CREATED)
async def start_session(
    payload: SessionStart,
    user_id: str = Depends(get_current_user_id),
    engine: SessionLifecycleEngine = Depends(get_lifecycle_engine),
):
    return await engine.start(
        user_id,
        label=payload.label,
        duration_minutes=payload.duration_minutes,
        task_id=payload.task_id,
    )


@router.post("/pause", response_model=SessionRead)
async def pause_session(
    payload: SessionAction,
    user_id: str = Depends(get_current_user_id),
    engine: SessionLifecycleEngine = Depends(get_lifecycle_engine),
):
    return await engine.pause(user_id, payload.session_id)


@router.post("/resume", response_model=SessionRead)
async def resume_session(
    payload: SessionAction,
    user_id: str = Depends(get_current_user_id),
    engine: SessionLifecycleEngine = Depends(get_lifecycle_engine),
):
    return await engine.resume(user_id, payload.session_id)


@router.post("/stop", response_model=SessionRead)
async def stop_session(
    payload: SessionAction,
    user_id: str = Depends(get_current_user_id),
    engine: SessionLifecycleEngine = Depends(get_lifecycle_engine),
):
    return await engine.stop(user_id, payload.session_id)


# --------------------------------------------------------------------------
# GET /pomodoro/history?limit=
# 설명: 최신순 세션 목록 (시간이 다 된 running 세션은 이 시점에 자동 완료)
# --------------------------------------------------------------------------
@router.get("/history", response_model=List[SessionRead])
async def read_history(
    limit: int = Query(settings.HISTORY_LIMIT, ge=1, le=settings.HISTORY_LIMIT_MAX),
    user_id: str = Depends(get_current_user_id),
    engine: SessionLifecycleEngine = Depends(get_lifecycle_engine),
):
    return await engine.history(user_id, limit)


@router.get("/current", response_model=CurrentSessionRead)
async def read_current(
    user_id: str = Depends(get_current_user_id),
    engine: SessionLifecycleEngine = Depends(get_lifecycle_engine),
):
    return CurrentSessionRead(session=await engine.current(user_id))


@router.get("/stats/today", response_model=TodayStatsRead)
async def read_today_stats(
    user_id: str = Depends(get_current_user_id),
    engine: SessionLifecycleEngine = Depends(get_lifecycle_engine),
):
    return await engine.today_stats(user_id)
