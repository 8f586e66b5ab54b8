from datetime import datetime, timedelta, timezone
from typing import Any, Union

from jose import jwt

from pomodoro.core.config import settings

ACCESS_TOKEN_EXPIRE_MINUTES = 60 * 24  # 1일


def create_access_token(
    subject: Union[str, Any],
    expires_minutes: int = ACCESS_TOKEN_EXPIRE_MINUTES,
) -> str:
    """
    Access Token 생성.
    실제 로그인/발급은 외부 인증 서비스 몫이고, 이 함수는 개발용 토큰과 테스트에 사용합니다.
    """
    expire = datetime.now(timezone.utc) + timedelta(minutes=expires_minutes)
    to_encode = {"exp": expire, "sub": str(subject), "type": "access"}
    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_subject(token: str) -> str:
    """
    토큰을 검증하고 sub(user_id)를 반환. 실패 시 JWTError / ValueError.
    """
    payload = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    user_id = payload.get("sub")
    if not user_id:
        raise ValueError("token has no subject")
    return user_id
