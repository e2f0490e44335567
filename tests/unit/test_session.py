"""Unit tests for the scheduling session."""
import asyncio
from datetime import date

import pytest

from cpm_scheduler.cpm.models import ConstraintType, Dependency, Task
from cpm_scheduler.session import RecalcDebouncer, SchedulingSession, SessionError


def run(coro):
    return asyncio.run(coro)


class TestSchedulingSession:
    """Test command processing and state handling."""

    def test_initialize_and_recalculate(self, scenario_tasks, calendar, today):
        async def scenario():
            session = SchedulingSession()
            count = await session.initialize(scenario_tasks, calendar)
            result = await session.recalculate(today)
            await session.dispose()
            return count, result, session

        count, result, session = run(scenario())
        assert count == 5
        assert result.get_task('E').start == date(2024, 1, 23)
        # Disposal drops the cached result
        assert session.last_result is None

    def test_commands_apply_in_order(self, scenario_tasks, calendar, today):
        async def scenario():
            session = SchedulingSession()
            await session.initialize(scenario_tasks, calendar)
            # Submitted together; the recalculation must see both edits
            _, _, result = await asyncio.gather(
                session.update_task('B', {'duration': 10}),
                session.add_task(Task(id='F', duration=1, dependencies=(Dependency('E'),))),
                session.recalculate(today),
            )
            await session.dispose()
            return result

        result = run(scenario())
        assert result.get_task('B').end == date(2024, 1, 15)
        assert result.get_task('F').start == date(2024, 1, 31)

    def test_update_task_accepts_host_names(self, scenario_tasks, calendar):
        async def scenario():
            session = SchedulingSession()
            await session.initialize(scenario_tasks, calendar)
            updated = await session.update_task('C', {
                'constraintType': 'SNET',
                'constraintDate': '2024-02-01',
                'lateStart': '2024-01-01',
                'bogus': 1,
            })
            await session.dispose()
            return updated

        updated = run(scenario())
        assert updated.constraint_type is ConstraintType.SNET
        assert updated.constraint_date == date(2024, 2, 1)
        assert updated.dependencies == (Dependency('B'),)

    def test_errors_reach_caller_and_queue_continues(self, scenario_tasks, calendar, today):
        async def scenario():
            session = SchedulingSession()
            with pytest.raises(SessionError, match="not initialized"):
                await session.recalculate(today)

            await session.initialize(scenario_tasks, calendar)
            with pytest.raises(SessionError, match="not found"):
                await session.delete_task('missing')
            with pytest.raises(SessionError, match="already exists"):
                await session.add_task(Task(id='A'))
            with pytest.raises(SessionError, match="Invalid update"):
                await session.update_task('A', {'duration': -3})

            await session.delete_task('D')
            status = await session.status()
            await session.dispose()
            return status

        status = run(scenario())
        assert status['initialized']
        assert status['task_count'] == 4

    def test_sync_and_calendar_update(self, scenario_tasks, calendar, today):
        async def scenario():
            session = SchedulingSession()
            await session.initialize([], calendar)
            await session.sync_tasks(scenario_tasks)
            await session.update_calendar({'workingDays': [1, 2, 3, 4, 5],
                                           'exceptions': {'2024-01-03': 'Holiday'}})
            result = await session.recalculate(today)
            await session.dispose()
            return result

        result = run(scenario())
        assert result.get_task('B').end == date(2024, 1, 9)

    def test_disposed_session_rejects_commands(self, calendar):
        async def scenario():
            session = SchedulingSession()
            await session.initialize([], calendar)
            await session.dispose()
            with pytest.raises(SessionError, match="disposed"):
                await session.status()

        run(scenario())


class TestRecalcDebouncer:
    """Test coalescing of edit notifications."""

    def test_burst_runs_once(self, scenario_tasks, calendar, today):
        async def scenario():
            session = SchedulingSession()
            await session.initialize(scenario_tasks, calendar)
            debouncer = RecalcDebouncer(session, today, delay_ms=20)
            for _ in range(5):
                debouncer.notify()
            result = await debouncer.flush()
            await session.dispose()
            return debouncer.runs, result

        runs, result = run(scenario())
        assert runs == 1
        assert result.stats.project_duration_days == 17

    def test_flush_without_pending(self, calendar, today):
        async def scenario():
            session = SchedulingSession()
            debouncer = RecalcDebouncer(session, today, delay_ms=0)
            return await debouncer.flush()

        assert run(scenario()) is None

    def test_failed_run_is_recorded_on_next_notify(self, today):
        async def scenario():
            session = SchedulingSession()
            debouncer = RecalcDebouncer(session, today, delay_ms=0)
            debouncer.notify()
            await asyncio.sleep(0.05)
            # The first run failed on the uninitialized session
            debouncer.notify()
            recorded = debouncer.last_error
            with pytest.raises(SessionError, match="not initialized"):
                await debouncer.flush()
            await session.dispose()
            return recorded

        assert isinstance(run(scenario()), SessionError)
