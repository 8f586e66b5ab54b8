# backend/pomodoro/core/config.py

from typing import List

from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # --- 저장소 ---
    MONGO_URI: str = "mongodb://localhost:27017"
    MONGO_DB_NAME: str = "pomodoro"
    # "mongo" | "memory" (memory는 개발/테스트 전용, 재시작 시 데이터 유실)
    SESSION_STORE: str = "mongo"

    # --- 인증 (토큰 발급은 외부 서비스 책임, 여기서는 검증만) ---
    JWT_SECRET_KEY: str = "super-secret-key"
    JWT_ALGORITHM: str = "HS256"

    # --- 실행 환경 ---
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"
    # "오늘" 통계의 자정 기준 (IANA 타임존 이름)
    LOCAL_TIMEZONE: str = "UTC"
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    # --- 뽀모도로 정책 ---
    DEFAULT_POMODORO_MINUTES: int = 25
    SHORT_BREAK_MINUTES: int = 5
    LONG_BREAK_MINUTES: int = 15
    LONG_BREAK_EVERY: int = 3
    HISTORY_LIMIT: int = 100
    HISTORY_LIMIT_MAX: int = 500

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"


settings = Settings()
