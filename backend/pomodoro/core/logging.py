# backend/pomodoro/core/logging.py

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """
    앱 시작 시(lifespan) 한 번 호출.
    uvicorn이 이미 root 핸들러를 붙였으면 레벨만 맞춥니다.
    """
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
    root.setLevel(level.upper())

    # motor/pymongo 디버그 로그는 너무 시끄러움
    logging.getLogger("pymongo").setLevel(logging.WARNING)
