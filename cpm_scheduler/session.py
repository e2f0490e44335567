"""
Scheduling Session.

Holds the project state for an interactive host (task list + calendar) and
serializes every command through a single asyncio queue consumer, so edits
and recalculations are applied strictly in arrival order.

Usage:
    session = SchedulingSession()
    await session.initialize(tasks, calendar)
    await session.update_task('B', {'duration': 8})
    result = await session.recalculate(today=date(2024, 1, 1))
    await session.dispose()
"""

import asyncio
from datetime import date
from typing import Any, Optional

from pydantic import ValidationError

from .config.settings import settings
from .cpm.calendar import WorkCalendar, as_calendar
from .cpm.engine import CPMEngine
from .cpm.models import CalculationResult, Task
from .schemas.project import TaskPayload
from .utils.logger import configure_logging

logger = configure_logging(__name__)


class SessionError(Exception):
    """Raised when a session command cannot be applied."""


# Keys accepted by update_task: snake_case field names and their camelCase aliases
_UPDATABLE_FIELDS = {
    (info.alias or name): name
    for name, info in TaskPayload.model_fields.items()
    if name != 'id'
}
_UPDATABLE_FIELDS.update({name: name for name in TaskPayload.model_fields if name != 'id'})


class SchedulingSession:
    """
    Stateful CPM session with single-consumer command processing.

    Every public coroutine enqueues a command and waits for the consumer to
    apply it. Failures are raised to the caller that submitted the command;
    the queue keeps running.
    """

    def __init__(self):
        self._queue: asyncio.Queue = asyncio.Queue()
        self._worker: Optional[asyncio.Task] = None
        self._closing = False

        self._tasks: dict[str, Task] = {}
        self._calendar: Optional[WorkCalendar] = None
        self._initialized = False

        self.last_result: Optional[CalculationResult] = None
        self.commands_processed = 0

    # ----- public commands -----

    async def initialize(self, tasks: list[Task], calendar: WorkCalendar) -> int:
        """Load the full task list and calendar; returns the task count."""
        return await self._submit('initialize', list(tasks), calendar)

    async def add_task(self, task: Task) -> None:
        await self._submit('add_task', task)

    async def update_task(self, task_id: str, changes: dict[str, Any]) -> Task:
        """
        Apply field changes to one task.

        Keys may use either field names or the host's camelCase names.
        Unknown keys (including computed fields such as lateStart) are ignored.

        Returns:
            The updated task
        """
        return await self._submit('update_task', task_id, dict(changes))

    async def delete_task(self, task_id: str) -> None:
        await self._submit('delete_task', task_id)

    async def sync_tasks(self, tasks: list[Task]) -> int:
        """Replace the task list wholesale; returns the task count."""
        return await self._submit('sync_tasks', list(tasks))

    async def update_calendar(self, calendar: WorkCalendar) -> None:
        await self._submit('update_calendar', calendar)

    async def recalculate(self, today: date, project_start: Optional[date] = None) -> CalculationResult:
        """Run the engine on the current state; the result is kept as last_result."""
        return await self._submit('recalculate', today, project_start)

    async def status(self) -> dict[str, Any]:
        return await self._submit('status')

    async def dispose(self) -> None:
        """Drop all state and stop the consumer once queued commands are done."""
        await self._submit('dispose')
        if self._worker is not None:
            await self._worker
            self._worker = None

    # ----- queue plumbing -----

    async def _submit(self, command: str, *args):
        if self._closing:
            raise SessionError("Session has been disposed")
        if command == 'dispose':
            self._closing = True

        if self._worker is None:
            self._worker = asyncio.create_task(self._consume())

        future = asyncio.get_running_loop().create_future()
        await self._queue.put((command, args, future))
        return await future

    async def _consume(self) -> None:
        while True:
            command, args, future = await self._queue.get()
            try:
                result = getattr(self, f'_do_{command}')(*args)
            except Exception as e:
                logger.debug("Command %s failed: %s", command, e)
                if not future.cancelled():
                    future.set_exception(e)
            else:
                if not future.cancelled():
                    future.set_result(result)
            finally:
                self.commands_processed += 1
                self._queue.task_done()

            if command == 'dispose':
                break

    # ----- command handlers (run on the consumer only) -----

    def _require_initialized(self) -> None:
        if not self._initialized:
            raise SessionError("Session not initialized")

    def _require_task(self, task_id: str) -> Task:
        task = self._tasks.get(task_id)
        if task is None:
            raise SessionError(f"Task {task_id} not found")
        return task

    def _load(self, tasks: list[Task]) -> int:
        loaded: dict[str, Task] = {}
        for task in tasks:
            if task.id in loaded:
                raise SessionError(f"Duplicate task id: {task.id}")
            loaded[task.id] = task
        self._tasks = loaded
        return len(loaded)

    def _do_initialize(self, tasks: list[Task], calendar: WorkCalendar) -> int:
        count = self._load(tasks)
        self._calendar = as_calendar(calendar)
        self._initialized = True
        self.last_result = None
        logger.info("Session initialized with %d tasks", count)
        return count

    def _do_add_task(self, task: Task) -> None:
        self._require_initialized()
        if task.id in self._tasks:
            raise SessionError(f"Task {task.id} already exists")
        self._tasks[task.id] = task

    def _do_update_task(self, task_id: str, changes: dict[str, Any]) -> Task:
        self._require_initialized()
        task = self._require_task(task_id)

        values = TaskPayload.from_task(task).model_dump()
        for key, value in changes.items():
            field_name = _UPDATABLE_FIELDS.get(key)
            if field_name is None:
                logger.debug("Ignoring unknown field %r for task %s", key, task_id)
                continue
            values[field_name] = value

        try:
            updated = TaskPayload.model_validate(values).to_task()
        except ValidationError as e:
            raise SessionError(f"Invalid update for task {task_id}: {e}") from e

        self._tasks[task_id] = updated
        return updated

    def _do_delete_task(self, task_id: str) -> None:
        self._require_initialized()
        self._require_task(task_id)
        del self._tasks[task_id]

    def _do_sync_tasks(self, tasks: list[Task]) -> int:
        self._require_initialized()
        return self._load(tasks)

    def _do_update_calendar(self, calendar: WorkCalendar) -> None:
        self._require_initialized()
        self._calendar = as_calendar(calendar)

    def _do_recalculate(self, today: date, project_start: Optional[date]) -> CalculationResult:
        self._require_initialized()
        result = CPMEngine(self._calendar).calculate(self._tasks.values(), today, project_start)
        self.last_result = result
        return result

    def _do_status(self) -> dict[str, Any]:
        return {
            'initialized': self._initialized,
            'task_count': len(self._tasks),
            'pending_commands': self._queue.qsize(),
            'commands_processed': self.commands_processed,
            'has_result': self.last_result is not None,
        }

    def _do_dispose(self) -> None:
        self._tasks = {}
        self._calendar = None
        self._initialized = False
        self.last_result = None
        logger.info("Session disposed")


class RecalcDebouncer:
    """
    Coalesces bursts of edit notifications into a single recalculation.

    Each notify() restarts the quiet window; when it expires without further
    notifications, the session is recalculated once.
    """

    def __init__(self, session: SchedulingSession, today: date,
                 delay_ms: Optional[int] = None):
        self.session = session
        self.today = today
        self.delay = (settings.RECALC_DEBOUNCE_MS if delay_ms is None else delay_ms) / 1000
        self._pending: Optional[asyncio.Task] = None
        self.runs = 0
        self.last_error: Optional[BaseException] = None

    def notify(self) -> None:
        """Record an edit; (re)starts the quiet window."""
        pending = self._pending
        if pending is not None:
            if not pending.done():
                pending.cancel()
            elif not pending.cancelled() and pending.exception() is not None:
                self.last_error = pending.exception()
                logger.warning("Debounced recalculation failed: %s", self.last_error)
        self._pending = asyncio.create_task(self._fire())

    async def _fire(self) -> CalculationResult:
        await asyncio.sleep(self.delay)
        self.runs += 1
        return await self.session.recalculate(self.today)

    async def flush(self) -> Optional[CalculationResult]:
        """Wait for the pending recalculation, if any, and return its result."""
        pending, self._pending = self._pending, None
        if pending is None or pending.cancelled():
            return None
        return await pending
