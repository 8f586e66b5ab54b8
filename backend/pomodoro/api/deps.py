from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError

from pomodoro.core.config import settings
from pomodoro.core.security import decode_subject
from pomodoro.crud.sessions import InMemorySessionStore, MongoSessionStore, SessionStore
from pomodoro.crud.study_logs import (
    InMemoryStudyLogStore,
    MongoStudyLogStore,
    StudyLogRecorder,
    StudyLogStore,
)
from pomodoro.db import mongo
from pomodoro.services.lifecycle import SessionLifecycleEngine
from pomodoro.services.notifications import LoggingNotifier

# 토큰 발급은 외부 인증 서비스. 스와거 문서에 토큰 입력창만 보여주기 위한 설정
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token")

# SESSION_STORE=memory 일 때 프로세스 전체에서 공유
_memory_sessions = InMemorySessionStore()
_memory_study_logs = InMemoryStudyLogStore()


async def get_current_user_id(token: str = Depends(oauth2_scheme)) -> str:
    """
    JWT 토큰을 검증하고 user_id (sub)를 반환합니다.
    클라이언트가 보낸 user_id는 절대 신뢰하지 않습니다.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        return decode_subject(token)
    except (JWTError, ValueError):
        raise credentials_exception


def get_session_store() -> SessionStore:
    if settings.SESSION_STORE == "memory":
        return _memory_sessions
    return MongoSessionStore.from_db(mongo.get_db())


def get_study_log_store() -> StudyLogStore:
    if settings.SESSION_STORE == "memory":
        return _memory_study_logs
    return MongoStudyLogStore.from_db(mongo.get_db())


def get_lifecycle_engine(
    store: SessionStore = Depends(get_session_store),
    study_logs: StudyLogStore = Depends(get_study_log_store),
) -> SessionLifecycleEngine:
    return SessionLifecycleEngine(
        store,
        listeners=[
            LoggingNotifier(),
            StudyLogRecorder(study_logs, settings.LOCAL_TIMEZONE),
        ],
        default_duration_minutes=settings.DEFAULT_POMODORO_MINUTES,
        history_limit_max=settings.HISTORY_LIMIT_MAX,
        local_timezone=settings.LOCAL_TIMEZONE,
    )
