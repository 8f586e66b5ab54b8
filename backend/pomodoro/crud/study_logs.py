# backend/pomodoro/crud/study_logs.py
#
# 일별 학습 로그 (유저 + 로컬 날짜 당 1개 문서).
# 세션이 완료될 때 SessionCompleted 이벤트를 받아 누적합니다.

import logging
from abc import ABC, abstractmethod
from datetime import date, timedelta
from typing import Dict, List, Tuple

from pymongo import ASCENDING

from pomodoro.core import timekeeping
from pomodoro.schemas.study_log import StudyLogEntry, StudyLogRead
from pomodoro.services.events import SessionCompleted

logger = logging.getLogger(__name__)


def _minutes(total_seconds: int) -> int:
    return int(round(total_seconds / 60))


class StudyLogStore(ABC):

    @abstractmethod
    async def add_entry(self, user_id: str, day: date, entry: StudyLogEntry) -> None:
        pass

    @abstractmethod
    async def list_range(self, user_id: str, start: date, end: date) -> List[StudyLogRead]:
        """[start, end] 구간의 로그, 날짜 오름차순. 기록 없는 날은 제외."""

    async def get_day(self, user_id: str, day: date) -> StudyLogRead:
        logs = await self.list_range(user_id, day, day)
        if logs:
            return logs[0]
        return StudyLogRead(user_id=user_id, date=day)

    async def get_week(self, user_id: str, today: date) -> List[StudyLogRead]:
        """오늘 포함 최근 7일"""
        return await self.list_range(user_id, today - timedelta(days=6), today)

    async def get_month(self, user_id: str, today: date) -> List[StudyLogRead]:
        return await self.list_range(user_id, today.replace(day=1), today)


class MongoStudyLogStore(StudyLogStore):
    """
    study_logs 컬렉션. date는 "YYYY-MM-DD" 문자열로 저장 (정렬/범위 조회 가능).
    """

    def __init__(self, collection):
        self._col = collection

    @classmethod
    def from_db(cls, db) -> "MongoStudyLogStore":
        return cls(db["study_logs"])

    async def ensure_indexes(self) -> None:
        await self._col.create_index(
            [("user_id", ASCENDING), ("date", ASCENDING)], unique=True
        )

    async def add_entry(self, user_id, day, entry):
        await self._col.update_one(
            {"user_id": user_id, "date": day.isoformat()},
            {
                "$inc": {"total_seconds": entry.duration_seconds, "sessions_completed": 1},
                "$push": {"entries": entry.model_dump()},
            },
            upsert=True,
        )

    async def list_range(self, user_id, start, end):
        cursor = self._col.find(
            {"user_id": user_id, "date": {"$gte": start.isoformat(), "$lte": end.isoformat()}}
        ).sort("date", ASCENDING)
        return [self._serialize(doc) async for doc in cursor]

    @staticmethod
    def _serialize(doc) -> StudyLogRead:
        return StudyLogRead(
            user_id=doc["user_id"],
            date=date.fromisoformat(doc["date"]),
            total_minutes=_minutes(doc.get("total_seconds", 0)),
            sessions_completed=doc.get("sessions_completed", 0),
            entries=doc.get("entries", []),
        )


class InMemoryStudyLogStore(StudyLogStore):

    def __init__(self):
        self._logs: Dict[Tuple[str, date], dict] = {}

    async def add_entry(self, user_id, day, entry):
        log = self._logs.setdefault(
            (user_id, day), {"total_seconds": 0, "sessions_completed": 0, "entries": []}
        )
        log["total_seconds"] += entry.duration_seconds
        log["sessions_completed"] += 1
        log["entries"].append(entry)

    async def list_range(self, user_id, start, end):
        result = []
        for (owner, day), log in sorted(self._logs.items(), key=lambda kv: kv[0][1]):
            if owner != user_id or not (start <= day <= end):
                continue
            result.append(
                StudyLogRead(
                    user_id=owner,
                    date=day,
                    total_minutes=_minutes(log["total_seconds"]),
                    sessions_completed=log["sessions_completed"],
                    entries=list(log["entries"]),
                )
            )
        return result


class StudyLogRecorder:
    """
    SessionCompleted 리스너.
    세션이 끝난 로컬 날짜의 로그에 실제 집중 시간을 더합니다.
    """

    def __init__(self, store: StudyLogStore, local_timezone: str = "UTC"):
        self.store = store
        self.local_timezone = local_timezone

    async def __call__(self, event: SessionCompleted) -> None:
        day = timekeeping.local_date(event.ended_at, self.local_timezone)
        entry = StudyLogEntry(
            label=event.label,
            session_id=event.session_id,
            duration_seconds=event.active_seconds,
            completed_at=event.ended_at,
        )
        await self.store.add_entry(event.user_id, day, entry)
        logger.debug("Study log updated (user=%s, date=%s)", event.user_id, day)
