# backend/pomodoro/core/errors.py
#
# 도메인 에러 분류. 저장소/엔진은 HTTPException을 직접 던지지 않고
# 아래 예외만 던지며, HTTP 상태코드 변환은 main.py의 핸들러가 담당합니다.


class PomodoroError(Exception):
    """모든 도메인 에러의 베이스"""

    status_code = 400

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message or self.__class__.__name__


class NotFound(PomodoroError):
    """
    세션이 없거나 다른 유저 소유인 경우.
    존재 여부가 유출되지 않도록 두 경우를 구분하지 않습니다.
    """

    status_code = 404

    def __init__(self, message: str = "Session not found"):
        super().__init__(message)


class InvalidState(PomodoroError):
    """현재 상태에서 허용되지 않는 전이 (예: completed 세션 pause)"""

    status_code = 409


class ActiveSessionExists(InvalidState):
    """유저당 진행 중(running/paused) 세션은 1개만 허용"""

    def __init__(self, message: str = "An active session already exists"):
        super().__init__(message)


class StaleSession(InvalidState):
    """
    compare-and-set 저장 실패.
    읽은 이후 다른 요청이 같은 세션을 먼저 변경했습니다.
    """

    def __init__(self, message: str = "Session changed concurrently"):
        super().__init__(message)


class ValidationError(PomodoroError):
    status_code = 422
