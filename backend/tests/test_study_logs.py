from datetime import date, datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from conftest import OTHER_USER_ID, USER_ID
from pomodoro.crud.study_logs import InMemoryStudyLogStore, MongoStudyLogStore, StudyLogRecorder
from pomodoro.models.session import EndReason
from pomodoro.schemas.study_log import StudyLogEntry
from pomodoro.services.events import SessionCompleted
from pomodoro.services.lifecycle import SessionLifecycleEngine
from pomodoro.services.notifications import LoggingNotifier


def _event(ended_at, seconds=1500, session_id="s-1", user_id=USER_ID, reason=EndReason.EXPIRED):
    return SessionCompleted(
        session_id=session_id,
        user_id=user_id,
        label="Math",
        active_seconds=seconds,
        ended_at=ended_at,
        reason=reason,
    )


async def test_recorder_accumulates_per_day(study_logs):
    recorder = StudyLogRecorder(study_logs)
    ended = datetime(2025, 3, 10, 10, 0, tzinfo=timezone.utc)

    await recorder(_event(ended, seconds=1500, session_id="a"))
    await recorder(_event(ended, seconds=610, session_id="b"))

    log = await study_logs.get_day(USER_ID, date(2025, 3, 10))
    assert log.sessions_completed == 2
    assert log.total_minutes == 35
    assert [e.session_id for e in log.entries] == ["a", "b"]


async def test_recorder_uses_local_date_of_end(study_logs):
    recorder = StudyLogRecorder(study_logs, local_timezone="Asia/Seoul")

    # 16:00 UTC == 다음날 01:00 KST
    await recorder(_event(datetime(2025, 3, 10, 16, 0, tzinfo=timezone.utc)))

    assert (await study_logs.get_day(USER_ID, date(2025, 3, 10))).sessions_completed == 0
    assert (await study_logs.get_day(USER_ID, date(2025, 3, 11))).sessions_completed == 1


async def test_week_and_month_ranges_are_owner_scoped():
    store = InMemoryStudyLogStore()
    entry = StudyLogEntry(
        label="Math",
        session_id="s",
        duration_seconds=600,
        completed_at=datetime(2025, 3, 1, tzinfo=timezone.utc),
    )
    for day in (date(2025, 2, 28), date(2025, 3, 1), date(2025, 3, 9)):
        await store.add_entry(USER_ID, day, entry)
    await store.add_entry(OTHER_USER_ID, date(2025, 3, 9), entry)

    week = await store.get_week(USER_ID, date(2025, 3, 10))
    month = await store.get_month(USER_ID, date(2025, 3, 10))

    assert [log.date for log in week] == [date(2025, 3, 9)]
    assert [log.date for log in month] == [date(2025, 3, 1), date(2025, 3, 9)]


async def test_mongo_add_entry_upserts_daily_document():
    col = MagicMock()
    col.update_one = AsyncMock()
    store = MongoStudyLogStore(col)
    entry = StudyLogEntry(
        label="Math",
        session_id="s-1",
        duration_seconds=1500,
        completed_at=datetime(2025, 3, 10, 9, 25, tzinfo=timezone.utc),
    )

    await store.add_entry(USER_ID, date(2025, 3, 10), entry)

    flt, update = col.update_one.await_args.args
    assert flt == {"user_id": USER_ID, "date": "2025-03-10"}
    assert update["$inc"] == {"total_seconds": 1500, "sessions_completed": 1}
    assert col.update_one.await_args.kwargs["upsert"] is True


@pytest.mark.parametrize("reason", [EndReason.EXPIRED, EndReason.STOPPED])
async def test_logging_notifier_reports_end(reason, caplog):
    caplog.set_level("INFO", logger="pomodoro.services.notifications")

    await LoggingNotifier()(_event(datetime(2025, 3, 10, tzinfo=timezone.utc), reason=reason))

    assert "s-1" in caplog.text


async def test_failing_listener_does_not_undo_completion(store, clock):
    broken = AsyncMock(side_effect=RuntimeError("boom"))
    engine = SessionLifecycleEngine(store, clock=clock, listeners=[broken])
    started = await engine.start(USER_ID)

    stopped = await engine.stop(USER_ID, started.id)

    broken.assert_awaited_once()
    assert stopped.completed
    assert (await store.find_by_id(USER_ID, started.id)).completed
