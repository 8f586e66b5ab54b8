# backend/pomodoro/crud/sessions.py
#
# Session 저장소.
# - 모든 조회/변경은 (user_id, session_id) 범위로 제한합니다.
#   다른 유저의 세션은 "없는 세션"과 똑같이 NotFound 처리 (존재 여부 유출 방지)
# - 저장은 version 기반 compare-and-set. 읽은 뒤 다른 요청이 먼저 바꿨으면 StaleSession.
# - 정책: 유저당 active(running/paused) 세션은 1개만 허용 (저장소에서 강제)

import asyncio
import logging
import uuid
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, List, Optional

from pymongo import ASCENDING, DESCENDING
from pymongo.errors import DuplicateKeyError

from pomodoro.core.errors import ActiveSessionExists, NotFound, StaleSession
from pomodoro.core.timekeeping import ensure_aware_utc
from pomodoro.models.session import SessionInDB

logger = logging.getLogger(__name__)

ACTIVE_INDEX_NAME = "one_active_session_per_user"


class SessionStore(ABC):
    """세션 저장소 계약. 엔진은 이 인터페이스에만 의존합니다."""

    @abstractmethod
    async def create_active(
        self,
        user_id: str,
        label: str,
        planned_duration_seconds: int,
        now: datetime,
        task_id: Optional[str] = None,
    ) -> SessionInDB:
        """running 상태 세션 생성. 이미 active 세션이 있으면 ActiveSessionExists."""

    @abstractmethod
    async def find_active(self, user_id: str) -> SessionInDB:
        """유저의 유일한 active 세션. 없으면 NotFound."""

    @abstractmethod
    async def find_by_id(self, user_id: str, session_id: str) -> SessionInDB:
        """없거나 다른 유저 소유면 NotFound."""

    @abstractmethod
    async def save(self, session: SessionInDB) -> SessionInDB:
        """
        session.version 이 저장된 version과 같을 때만 기록하고
        version+1 된 세션을 반환합니다.
        """

    @abstractmethod
    async def list_recent(self, user_id: str, limit: int) -> List[SessionInDB]:
        """최신(started_at) 순"""

    @abstractmethod
    async def list_completed_between(
        self, user_id: str, start: datetime, end: datetime
    ) -> List[SessionInDB]:
        """ended_at 이 [start, end) 에 있는 완료 세션"""

    @abstractmethod
    async def count_completed(self, user_id: str) -> int:
        pass

    async def find_active_or_none(self, user_id: str) -> Optional[SessionInDB]:
        try:
            return await self.find_active(user_id)
        except NotFound:
            return None


def _new_session_id() -> str:
    # events 컬렉션과 동일하게 _id는 uuid 문자열로 통일
    return str(uuid.uuid4())


def _build_session(
    user_id: str,
    label: str,
    planned_duration_seconds: int,
    now: datetime,
    task_id: Optional[str],
) -> SessionInDB:
    return SessionInDB(
        id=_new_session_id(),
        user_id=user_id,
        label=label,
        task_id=task_id,
        planned_duration_seconds=planned_duration_seconds,
        started_at=now,
        created_at=now,
        updated_at=now,
    )


def serialize_session(doc) -> SessionInDB:
    """
    Mongo document(dict) -> SessionInDB
    """
    return SessionInDB(
        id=str(doc["_id"]),
        user_id=doc["user_id"],
        label=doc.get("label") or "Pomodoro Session",
        task_id=doc.get("task_id"),
        planned_duration_seconds=int(doc["planned_duration_seconds"]),
        started_at=ensure_aware_utc(doc["started_at"]),
        paused_at=ensure_aware_utc(doc.get("paused_at")),
        total_paused_seconds=int(doc.get("total_paused_seconds", 0)),
        ended_at=ensure_aware_utc(doc.get("ended_at")),
        completed=bool(doc.get("completed", False)),
        end_reason=doc.get("end_reason"),
        version=int(doc.get("version", 0)),
        created_at=ensure_aware_utc(doc.get("created_at")),
        updated_at=ensure_aware_utc(doc.get("updated_at")),
    )


# --------------------------------------------------------------------------
# MongoDB (Motor)
# --------------------------------------------------------------------------
class MongoSessionStore(SessionStore):

    def __init__(self, collection):
        self._col = collection

    @classmethod
    def from_db(cls, db) -> "MongoSessionStore":
        return cls(db["sessions"])

    async def ensure_indexes(self) -> None:
        """
        앱 시작 시 1회.
        partial unique index로 유저당 completed=false 문서를 1개로 제한합니다.
        """
        await self._col.create_index(
            [("user_id", ASCENDING)],
            name=ACTIVE_INDEX_NAME,
            unique=True,
            partialFilterExpression={"completed": False},
        )
        await self._col.create_index([("user_id", ASCENDING), ("started_at", DESCENDING)])
        await self._col.create_index([("user_id", ASCENDING), ("ended_at", ASCENDING)])

    async def create_active(self, user_id, label, planned_duration_seconds, now, task_id=None):
        session = _build_session(user_id, label, planned_duration_seconds, now, task_id)
        try:
            await self._col.insert_one(session.to_document())
        except DuplicateKeyError:
            raise ActiveSessionExists()
        return session

    async def find_active(self, user_id):
        doc = await self._col.find_one({"user_id": user_id, "completed": False})
        if not doc:
            raise NotFound("No active session")
        return serialize_session(doc)

    async def find_by_id(self, user_id, session_id):
        doc = await self._col.find_one({"_id": session_id, "user_id": user_id})
        if not doc:
            raise NotFound()
        return serialize_session(doc)

    async def save(self, session):
        updated = session.model_copy(update={"version": session.version + 1})
        result = await self._col.replace_one(
            {"_id": session.id, "user_id": session.user_id, "version": session.version},
            updated.to_document(),
        )
        if result.matched_count == 1:
            return updated

        # 매칭 실패: 세션이 없어졌는지, 누가 먼저 바꿨는지 구분
        await self.find_by_id(session.user_id, session.id)
        logger.warning(
            "Stale write rejected (session=%s, version=%s)", session.id, session.version
        )
        raise StaleSession()

    async def list_recent(self, user_id, limit):
        cursor = self._col.find({"user_id": user_id}).sort("started_at", DESCENDING).limit(limit)
        docs = await cursor.to_list(length=limit)
        return [serialize_session(d) for d in docs]

    async def list_completed_between(self, user_id, start, end):
        cursor = self._col.find(
            {
                "user_id": user_id,
                "completed": True,
                "ended_at": {"$gte": start, "$lt": end},
            }
        ).sort("ended_at", ASCENDING)
        return [serialize_session(d) async for d in cursor]

    async def count_completed(self, user_id):
        return await self._col.count_documents({"user_id": user_id, "completed": True})


# --------------------------------------------------------------------------
# In-memory (개발/테스트용)
# --------------------------------------------------------------------------
class InMemorySessionStore(SessionStore):
    """
    프로세스 메모리에 보관하는 저장소.
    Warning: 재시작하면 모든 세션이 사라집니다. 운영에서는 MongoSessionStore 사용.

    SessionInDB가 frozen 모델이라 인스턴스를 그대로 보관해도
    호출자가 저장된 값을 바꿀 수 없습니다.
    """

    def __init__(self):
        self._sessions: Dict[str, SessionInDB] = {}
        self._lock = asyncio.Lock()

    async def create_active(self, user_id, label, planned_duration_seconds, now, task_id=None):
        async with self._lock:
            if any(s.user_id == user_id and s.is_active for s in self._sessions.values()):
                raise ActiveSessionExists()
            session = _build_session(user_id, label, planned_duration_seconds, now, task_id)
            self._sessions[session.id] = session
            return session

    async def find_active(self, user_id):
        for s in self._sessions.values():
            if s.user_id == user_id and s.is_active:
                return s
        raise NotFound("No active session")

    async def find_by_id(self, user_id, session_id):
        s = self._sessions.get(session_id)
        if s is None or s.user_id != user_id:
            raise NotFound()
        return s

    async def save(self, session):
        async with self._lock:
            current = await self.find_by_id(session.user_id, session.id)
            if current.version != session.version:
                logger.warning(
                    "Stale write rejected (session=%s, version=%s)", session.id, session.version
                )
                raise StaleSession()
            updated = session.model_copy(update={"version": session.version + 1})
            self._sessions[session.id] = updated
            return updated

    async def list_recent(self, user_id, limit):
        mine = [s for s in self._sessions.values() if s.user_id == user_id]
        mine.sort(key=lambda s: s.started_at, reverse=True)
        return mine[:limit]

    async def list_completed_between(self, user_id, start, end):
        done = [
            s
            for s in self._sessions.values()
            if s.user_id == user_id and s.completed and start <= s.ended_at < end
        ]
        done.sort(key=lambda s: s.ended_at)
        return done

    async def count_completed(self, user_id):
        return sum(1 for s in self._sessions.values() if s.user_id == user_id and s.completed)
