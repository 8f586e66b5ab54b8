"""Session lifecycle engine tests.

Covers:
- start/pause/resume/stop transitions and remaining time in every response
- pause/resume idempotence and exact paused-time accounting
- completed sessions are immutable
- owner isolation, single active session, stale writes
- natural expiry on reads
"""

from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from conftest import OTHER_USER_ID, T0, USER_ID
from pomodoro.core.errors import ActiveSessionExists, InvalidState, NotFound, ValidationError
from pomodoro.crud.sessions import InMemorySessionStore
from pomodoro.models.session import EndReason, SessionStatus
from pomodoro.services.events import SessionCompleted
from pomodoro.services.lifecycle import SessionLifecycleEngine


class TestStart:

    async def test_start_returns_full_duration(self, engine):
        read = await engine.start(USER_ID, label="Math", duration_minutes=25)

        assert read.status == SessionStatus.RUNNING
        assert read.remaining_seconds == 1500
        assert read.planned_duration_seconds == 1500
        assert read.label == "Math"
        assert read.started_at == T0

    async def test_defaults_label_and_duration(self, engine):
        read = await engine.start(USER_ID, label="   ")

        assert read.label == "Pomodoro Session"
        assert read.planned_duration_seconds == 25 * 60

    @pytest.mark.parametrize("minutes", [0, -5, 24 * 60 + 1])
    async def test_rejects_bad_duration(self, engine, minutes):
        with pytest.raises(ValidationError):
            await engine.start(USER_ID, duration_minutes=minutes)

    async def test_second_active_session_is_rejected(self, engine):
        await engine.start(USER_ID)

        with pytest.raises(ActiveSessionExists):
            await engine.start(USER_ID)

    async def test_other_owner_can_start_concurrently(self, engine):
        await engine.start(USER_ID)
        other = await engine.start(OTHER_USER_ID)

        assert other.user_id == OTHER_USER_ID

    async def test_can_start_again_after_stop(self, engine):
        first = await engine.start(USER_ID)
        await engine.stop(USER_ID, first.id)

        second = await engine.start(USER_ID)

        assert second.id != first.id


class TestPauseResume:

    async def test_pause_then_resume_accounts_paused_time(self, engine, clock):
        started = await engine.start(USER_ID, label="Math", duration_minutes=25)

        clock.advance(100)
        paused = await engine.pause(USER_ID, started.id)
        clock.advance(60)
        resumed = await engine.resume(USER_ID, started.id)

        assert paused.status == SessionStatus.PAUSED
        assert paused.remaining_seconds == 1400
        assert resumed.status == SessionStatus.RUNNING
        assert resumed.total_paused_seconds == 60
        assert resumed.remaining_seconds == 1400
        assert resumed.paused_at is None

    async def test_paused_remaining_is_stable_with_fractional_timestamps(self, engine, clock):
        started = await engine.start(USER_ID)
        clock.advance(10.6)
        await engine.pause(USER_ID, started.id)

        seen = []
        for step in (0, 0.9, 0.2, 0.8):
            clock.advance(step)
            seen.append((await engine.current(USER_ID)).remaining_seconds)

        assert seen == [1490] * 4
        history = await engine.history(USER_ID)
        assert history[0].remaining_seconds == 1490

    @pytest.mark.parametrize("k", [1, 37, 600])
    async def test_round_trip_adds_exactly_k_seconds(self, engine, clock, k):
        started = await engine.start(USER_ID)
        clock.advance(42)
        before = await engine.pause(USER_ID, started.id)

        clock.advance(k)
        after = await engine.resume(USER_ID, started.id)

        assert after.total_paused_seconds == before.total_paused_seconds + k
        assert after.remaining_seconds == before.remaining_seconds

    async def test_pause_twice_is_idempotent(self, engine, store, clock):
        started = await engine.start(USER_ID)
        clock.advance(10)
        first = await engine.pause(USER_ID, started.id)

        clock.advance(30)
        second = await engine.pause(USER_ID, started.id)
        stored = await store.find_by_id(USER_ID, started.id)

        assert second.paused_at == first.paused_at
        assert second.total_paused_seconds == first.total_paused_seconds
        assert stored.paused_at == first.paused_at
        assert stored.total_paused_seconds == 0

    async def test_resume_while_running_is_noop(self, engine, store, clock):
        started = await engine.start(USER_ID)
        before = await store.find_by_id(USER_ID, started.id)
        clock.advance(5)

        read = await engine.resume(USER_ID, started.id)

        assert read.status == SessionStatus.RUNNING
        assert read.remaining_seconds == 1495
        assert await store.find_by_id(USER_ID, started.id) == before

    async def test_several_pause_cycles_accumulate(self, engine, clock):
        started = await engine.start(USER_ID)
        for _ in range(3):
            clock.advance(10)
            await engine.pause(USER_ID, started.id)
            clock.advance(20)
            read = await engine.resume(USER_ID, started.id)

        assert read.total_paused_seconds == 60
        assert read.remaining_seconds == 1500 - 30

    async def test_pause_after_time_is_up_finalizes_as_expired(self, engine, store, clock):
        started = await engine.start(USER_ID, duration_minutes=1)
        clock.advance(90)

        with pytest.raises(InvalidState):
            await engine.pause(USER_ID, started.id)

        stored = await store.find_by_id(USER_ID, started.id)
        assert stored.completed
        assert stored.end_reason == EndReason.EXPIRED
        assert stored.ended_at == T0 + timedelta(seconds=60)


class TestStop:

    async def test_stop_running_session(self, engine, clock):
        started = await engine.start(USER_ID)
        clock.advance(300)

        read = await engine.stop(USER_ID, started.id)

        assert read.status == SessionStatus.COMPLETED
        assert read.completed
        assert read.ended_at == T0 + timedelta(seconds=300)
        assert read.remaining_seconds == 0
        assert read.active_seconds == 300
        assert read.end_reason == EndReason.STOPPED

    async def test_stop_while_paused_folds_current_pause(self, engine, clock):
        started = await engine.start(USER_ID)
        clock.advance(100)
        await engine.pause(USER_ID, started.id)
        clock.advance(45)

        read = await engine.stop(USER_ID, started.id)

        assert read.total_paused_seconds == 45
        assert read.paused_at is None
        assert read.active_seconds == 100

    async def test_stop_after_natural_expiry_is_accepted(self, engine, clock):
        started = await engine.start(USER_ID, duration_minutes=1)
        clock.advance(65)

        read = await engine.stop(USER_ID, started.id)

        assert read.completed
        assert read.end_reason == EndReason.EXPIRED
        assert read.active_seconds == 60

    @pytest.mark.parametrize("command", ["pause", "resume", "stop"])
    async def test_completed_session_is_immutable(self, engine, store, clock, command):
        started = await engine.start(USER_ID)
        clock.advance(10)
        await engine.stop(USER_ID, started.id)
        before = await store.find_by_id(USER_ID, started.id)

        clock.advance(10)
        with pytest.raises(InvalidState):
            await getattr(engine, command)(USER_ID, started.id)

        assert await store.find_by_id(USER_ID, started.id) == before

    async def test_stop_publishes_completion_event(self, store, clock):
        listener = AsyncMock()
        engine = SessionLifecycleEngine(store, clock=clock, listeners=[listener])
        started = await engine.start(USER_ID, label="Essay")
        clock.advance(120)

        await engine.stop(USER_ID, started.id)

        listener.assert_awaited_once()
        event = listener.await_args.args[0]
        assert isinstance(event, SessionCompleted)
        assert event.session_id == started.id
        assert event.label == "Essay"
        assert event.active_seconds == 120
        assert event.reason == EndReason.STOPPED

    async def test_failing_listener_does_not_undo_stop(self, store, clock):
        engine = SessionLifecycleEngine(
            store, clock=clock, listeners=[AsyncMock(side_effect=RuntimeError("boom"))]
        )
        started = await engine.start(USER_ID)

        read = await engine.stop(USER_ID, started.id)

        assert read.completed
        assert (await store.find_by_id(USER_ID, started.id)).completed


class TestOwnershipAndOrdering:

    @pytest.mark.parametrize("command", ["pause", "resume", "stop"])
    async def test_foreign_session_is_not_found(self, engine, command):
        started = await engine.start(USER_ID)

        with pytest.raises(NotFound):
            await getattr(engine, command)(OTHER_USER_ID, started.id)

    async def test_unknown_session_is_not_found(self, engine):
        with pytest.raises(NotFound):
            await engine.pause(USER_ID, "does-not-exist")

    async def test_pause_after_persisted_stop_fails(self, engine):
        started = await engine.start(USER_ID)
        await engine.stop(USER_ID, started.id)

        with pytest.raises(InvalidState):
            await engine.pause(USER_ID, started.id)

    async def test_pause_racing_a_stop_is_rejected(self, clock):
        class InterleavingStore(InMemorySessionStore):
            """다음 find_by_id 한 번은 stop 이전 스냅샷을 돌려줌"""

            stale = None

            async def find_by_id(self, user_id, session_id):
                if self.stale is not None:
                    snapshot, self.stale = self.stale, None
                    return snapshot
                return await super().find_by_id(user_id, session_id)

        store = InterleavingStore()
        engine = SessionLifecycleEngine(store, clock=clock)
        started = await engine.start(USER_ID)
        snapshot = await store.find_by_id(USER_ID, started.id)
        await engine.stop(USER_ID, started.id)

        store.stale = snapshot
        with pytest.raises(InvalidState, match="already completed"):
            await engine.pause(USER_ID, started.id)

        stored = await store.find_by_id(USER_ID, started.id)
        assert stored.completed
        assert stored.paused_at is None


class TestReads:

    async def test_current_returns_active_session(self, engine, clock):
        started = await engine.start(USER_ID)
        clock.advance(30)

        current = await engine.current(USER_ID)

        assert current.id == started.id
        assert current.remaining_seconds == 1470

    async def test_current_is_none_without_active_session(self, engine):
        assert await engine.current(USER_ID) is None

    async def test_expired_session_is_finalized_on_read(self, store, clock):
        listener = AsyncMock()
        engine = SessionLifecycleEngine(store, clock=clock, listeners=[listener])
        started = await engine.start(USER_ID, duration_minutes=1)
        clock.advance(65)

        assert await engine.current(USER_ID) is None

        stored = await store.find_by_id(USER_ID, started.id)
        assert stored.completed
        assert stored.end_reason == EndReason.EXPIRED
        assert stored.ended_at == T0 + timedelta(seconds=60)
        assert listener.await_args.args[0].reason == EndReason.EXPIRED

    async def test_paused_session_never_expires_on_read(self, engine, clock):
        started = await engine.start(USER_ID, duration_minutes=1)
        clock.advance(30)
        await engine.pause(USER_ID, started.id)
        clock.advance(3600)

        current = await engine.current(USER_ID)

        assert current.status == SessionStatus.PAUSED
        assert current.remaining_seconds == 30

    async def test_history_is_newest_first_and_limited(self, engine, clock):
        ids = []
        for minute in range(3):
            read = await engine.start(USER_ID, label=f"s{minute}")
            clock.advance(60)
            await engine.stop(USER_ID, read.id)
            ids.append(read.id)

        history = await engine.history(USER_ID, limit=2)

        assert [s.id for s in history] == [ids[2], ids[1]]

    async def test_history_is_scoped_per_owner(self, engine):
        await engine.start(USER_ID)

        assert await engine.history(OTHER_USER_ID) == []

    async def test_today_stats_counts_completed_sessions(self, engine, clock):
        for _ in range(2):
            read = await engine.start(USER_ID)
            clock.advance(600)
            await engine.stop(USER_ID, read.id)
        await engine.start(USER_ID)

        stats = await engine.today_stats(USER_ID)

        assert stats.date == "2025-03-10"
        assert stats.completed_count == 2
        assert stats.focused_seconds == 1200
        assert stats.total_completed == 2
