# backend/pomodoro/client/api.py
#
# /pomodoro REST API용 비동기 클라이언트 (httpx).
# 서버의 에러 응답(404/409/422)은 서버와 같은 도메인 예외로 되돌려 던집니다.

import logging
from typing import List, Optional

import httpx

from pomodoro.core.errors import InvalidState, NotFound, PomodoroError, ValidationError
from pomodoro.schemas.session import SessionRead, TodayStatsRead

logger = logging.getLogger(__name__)

_ERRORS_BY_STATUS = {
    404: NotFound,
    409: InvalidState,
    422: ValidationError,
}


def _error_message(response: httpx.Response) -> str:
    try:
        detail = response.json().get("detail")
    except ValueError:
        return response.text
    if isinstance(detail, str):
        return detail
    # FastAPI 요청 검증 에러는 list 형태
    return str(detail)


class PomodoroClient:
    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        token: Optional[str] = None,
        http: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
    ):
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self._owns_http = http is None
        self._http = http or httpx.AsyncClient(base_url=base_url, timeout=timeout)
        self._headers = headers

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    async def __aenter__(self) -> "PomodoroClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    # --- 명령 ---
    async def start(
        self,
        label: Optional[str] = None,
        duration_minutes: Optional[float] = None,
        task_id: Optional[str] = None,
    ) -> SessionRead:
        payload = {"label": label, "duration_minutes": duration_minutes, "task_id": task_id}
        data = await self._request("POST", "/pomodoro/start", json=payload)
        return SessionRead.model_validate(data)

    async def pause(self, session_id: str) -> SessionRead:
        return await self._action("pause", session_id)

    async def resume(self, session_id: str) -> SessionRead:
        return await self._action("resume", session_id)

    async def stop(self, session_id: str) -> SessionRead:
        return await self._action("stop", session_id)

    # --- 조회 ---
    async def history(self, limit: int = 100) -> List[SessionRead]:
        data = await self._request("GET", "/pomodoro/history", params={"limit": limit})
        return [SessionRead.model_validate(item) for item in data]

    async def current(self) -> Optional[SessionRead]:
        data = await self._request("GET", "/pomodoro/current")
        if data.get("session") is None:
            return None
        return SessionRead.model_validate(data["session"])

    async def today_stats(self) -> TodayStatsRead:
        data = await self._request("GET", "/pomodoro/stats/today")
        return TodayStatsRead.model_validate(data)

    # --- 내부 ---
    async def _action(self, action: str, session_id: str) -> SessionRead:
        data = await self._request("POST", f"/pomodoro/{action}", json={"session_id": session_id})
        return SessionRead.model_validate(data)

    async def _request(self, method: str, url: str, **kwargs):
        response = await self._http.request(method, url, headers=self._headers, **kwargs)
        if response.is_success:
            return response.json()

        message = _error_message(response)
        error_cls = _ERRORS_BY_STATUS.get(response.status_code)
        logger.warning("%s %s failed (%s): %s", method, url, response.status_code, message)
        if error_cls is not None:
            raise error_cls(message)
        if response.status_code == 401:
            raise PomodoroError("Not authenticated")
        response.raise_for_status()
