# 파일 위치: backend/pomodoro/schemas/study_log.py

import datetime as dt
from typing import List, Optional

from pydantic import BaseModel


class StudyLogEntry(BaseModel):
    label: str
    session_id: str
    duration_seconds: int  # 실제 집중 시간 (일시정지 제외)
    completed_at: dt.datetime


class StudyLogRead(BaseModel):
    """
    [응답] GET /logs/daily, /logs/weekly, /logs/monthly
    하루 단위 집계. 기록이 없는 날은 total_minutes=0 인 빈 로그를 돌려줍니다.
    """
    user_id: Optional[str] = None
    date: dt.date
    total_minutes: int = 0
    sessions_completed: int = 0
    entries: List[StudyLogEntry] = []
