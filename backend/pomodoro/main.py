# main.py
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from pomodoro.api.endpoints import health, logs
from pomodoro.api.endpoints import pomodoro as pomodoro_routes
from pomodoro.core.config import settings
from pomodoro.core.errors import PomodoroError
from pomodoro.core.logging import configure_logging
from pomodoro.crud.sessions import MongoSessionStore
from pomodoro.crud.study_logs import MongoStudyLogStore
from pomodoro.db import mongo

logger = logging.getLogger(__name__)


# [수명 주기 관리] DB 연결 및 해제
@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup 로직
    configure_logging(settings.LOG_LEVEL)
    logger.info("Starting Pomodoro backend (env=%s, store=%s)", settings.ENVIRONMENT, settings.SESSION_STORE)

    if settings.SESSION_STORE == "mongo":
        await mongo.connect_to_mongo()
        db = mongo.get_db()
        # 유저당 active 세션 1개 제약은 인덱스로 강제
        await MongoSessionStore.from_db(db).ensure_indexes()
        await MongoStudyLogStore.from_db(db).ensure_indexes()
    yield
    # Shutdown 로직
    if settings.SESSION_STORE == "mongo":
        await mongo.close_mongo_connection()


app = FastAPI(title="Pomodoro Backend", lifespan=lifespan)


# --- 도메인 에러 -> HTTP 응답 ---
# NotFound 404, InvalidState 409, ValidationError 422
@app.exception_handler(PomodoroError)
async def pomodoro_error_handler(request: Request, exc: PomodoroError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


# --- 미들웨어 설정 ---
# CORS: 프론트엔드 접근 허용
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
async def read_root():
    return {"message": "Backend is running!"}


app.include_router(health.router)
app.include_router(pomodoro_routes.router)
app.include_router(logs.router)
