"""
CPM (Critical Path Method) Engine.

Implements forward and backward pass calculations with full calendar support.
Each call to calculate() works on its own snapshot of the input and returns a
fresh CalculationResult; nothing is cached between calls.
"""

import logging
import time
from datetime import date
from typing import Iterable, Optional

from .calendar import WorkCalendar
from .constraints import ConstraintResolver
from .models import (
    AnnotatedTask,
    CalculationError,
    CalculationResult,
    CalculationStats,
    DependencyEdge,
    LinkType,
    ScheduleWarning,
    Task,
    TaskDates,
    WarningKind,
    duration_offset,
)
from .network import TaskNetwork
from .rollup import roll_up_summaries

logger = logging.getLogger(__name__)


class CPMEngine:
    """
    CPM calculation engine.

    Performs forward pass (early dates), backward pass (late dates),
    float calculation, critical path identification, and summary roll-up.
    """

    def __init__(self, calendar: WorkCalendar):
        """
        Initialize CPM engine.

        Args:
            calendar: Project calendar used for every date calculation
        """
        self.calendar = calendar
        self.resolver = ConstraintResolver(calendar)

    def calculate(self, tasks: Iterable[Task], today: date,
                  project_start: Optional[date] = None) -> CalculationResult:
        """
        Execute full CPM calculation.

        Args:
            tasks: Flat task collection (leaf, summary, and blank rows)
            today: Status date; anchors in-progress work and, when
                   project_start is not given, tasks without predecessors
            project_start: Explicit project anchor date

        Returns:
            CalculationResult with all calculated values and warnings

        Raises:
            CalculationError: for structurally unschedulable input
        """
        started = time.perf_counter()

        network = TaskNetwork.build(tasks)
        self._check_calendar(network)
        anchor = self.resolver.add_work_days(project_start or today, 0)

        dates: dict[str, TaskDates] = {}
        constraint_warnings = self.forward_pass(network, dates, anchor, today)
        self.backward_pass(network, dates)
        self.calculate_float(network, dates)
        summaries = roll_up_summaries(network, dates, self.calendar)

        constraint_warnings.sort(key=lambda w: network.get_position(w.task_ids[0]))
        result = self._build_result(network, dates, summaries,
                                    warnings=network.warnings + constraint_warnings)

        logger.debug(
            "CPM calculated %d tasks (%d dependencies, %d critical, %d warnings) in %.1f ms",
            result.stats.task_count, len(network.dependencies), result.stats.critical_count,
            len(result.warnings), (time.perf_counter() - started) * 1000,
        )
        return result

    def _check_calendar(self, network: TaskNetwork) -> None:
        """Reject a calendar without work days when work has to be placed on it."""
        if self.calendar.has_working_days():
            return
        working_tasks = [
            tid for tid in network.get_leaf_ids()
            if network.tasks[tid].get_effective_duration() > 0
        ]
        if working_tasks:
            raise CalculationError(
                f"Calendar has no working days but {len(working_tasks)} task(s) "
                f"have non-zero duration (first: {working_tasks[0]})"
            )

    def forward_pass(self, network: TaskNetwork, dates: dict[str, TaskDates],
                     anchor: date, today: date) -> list[ScheduleWarning]:
        """
        Calculate early start and early finish for all schedulable tasks.

        Processes tasks in topological order. For each task:
        - Completed tasks: use actual dates
        - In-progress tasks: early_start = actual_start, finish from remaining work
        - Manual tasks: keep the user-entered start
        - Otherwise: max of predecessor-driven dates, then the constraint

        Returns:
            Constraint warnings raised while scheduling
        """
        warnings = []

        for task_id in network.topological_sort():
            task = network.tasks[task_id]
            record = TaskDates(duration=task.get_effective_duration())
            dates[task_id] = record
            record.critical_eligible = task_id not in network.ghost_ids

            if task.is_completed():
                record.early_start = task.actual_start or task.actual_finish
                record.early_finish = task.actual_finish
                record.duration = self.calendar.count_work_days(record.early_start, record.early_finish)
                record.critical_eligible = False
                continue

            if task.is_in_progress():
                record.early_start = task.actual_start
                if task.remaining_duration is not None:
                    resume = self.resolver.add_work_days(max(today, task.actual_start), 0)
                    record.early_finish = self.resolver.finish_from_start(resume, record.duration)
                else:
                    record.early_finish = self.resolver.finish_from_start(task.actual_start, record.duration)
                continue

            if task.is_manual():
                record.early_start = self.calendar.roll_forward(task.start or anchor)
                record.early_finish = self.resolver.finish_from_start(record.early_start, record.duration)
                continue

            natural_start = None
            for edge in network.get_predecessors(task_id):
                driven = self._get_driven_early_start(edge, dates[edge.predecessor_id], record.duration)
                if natural_start is None or driven > natural_start:
                    natural_start = driven
            if natural_start is None:
                natural_start = anchor

            outcome = self.resolver.resolve_early(task, natural_start, record.duration)
            record.early_start = outcome.early_start
            record.early_finish = outcome.early_finish

            if outcome.invalid:
                warnings.append(ScheduleWarning(
                    kind=WarningKind.INVALID_CONSTRAINT,
                    task_ids=(task_id,),
                    message=f"Task {task_id} has constraint {task.constraint_type.value} "
                            f"without a date; scheduled as soon as possible",
                ))
            if outcome.conflict:
                record.constraint_conflict = True
                warnings.append(ScheduleWarning(
                    kind=WarningKind.CONSTRAINT_CONFLICT,
                    task_ids=(task_id,),
                    message=f"Task {task_id} violates {task.constraint_type.value} "
                            f"{task.constraint_date.isoformat()}",
                ))

        return warnings

    def _get_driven_early_start(self, edge: DependencyEdge, pred: TaskDates,
                                succ_duration: int) -> date:
        """
        Calculate the early start driven by a predecessor relationship.

        Handles FS, SS, FF, SF relationship types with lag. End dates are
        inclusive, so FS starts the work day after the predecessor finishes.
        """
        lag = edge.lag

        if edge.link_type is LinkType.START_TO_START:
            return self.resolver.add_work_days(pred.early_start, lag)

        if edge.link_type is LinkType.FINISH_TO_FINISH:
            # Successor finishes no earlier than predecessor finish + lag
            return self.resolver.add_work_days(pred.early_finish, lag - duration_offset(succ_duration))

        if edge.link_type is LinkType.START_TO_FINISH:
            # Successor finishes no earlier than predecessor start + lag
            return self.resolver.add_work_days(pred.early_start, lag - duration_offset(succ_duration))

        return self.resolver.add_work_days(pred.early_finish, 1 + lag)

    def backward_pass(self, network: TaskNetwork, dates: dict[str, TaskDates]) -> None:
        """
        Calculate late start and late finish for all schedulable tasks.

        Processes tasks in reverse topological order. Tasks without successors
        finish by the project end (latest early finish).
        """
        if not dates:
            return
        project_end = max(record.early_finish for record in dates.values())

        for task_id in network.reverse_topological_sort():
            task = network.tasks[task_id]
            record = dates[task_id]

            if task.is_completed():
                record.late_start = record.early_start
                record.late_finish = record.early_finish
                continue

            late_finish = project_end
            for edge in network.get_successors(task_id):
                driven = self._get_driven_late_finish(edge, dates[edge.successor_id], record.duration)
                if driven < late_finish:
                    late_finish = driven

            # Apply no-later-than and must-finish-on caps
            if not task.is_in_progress() and not task.is_manual():
                cap = self.resolver.late_finish_cap(task, record.duration)
                if cap is not None and cap < late_finish:
                    late_finish = cap

            record.late_finish = late_finish
            record.late_start = self.resolver.start_from_finish(late_finish, record.duration)

    def _get_driven_late_finish(self, edge: DependencyEdge, succ: TaskDates,
                                pred_duration: int) -> date:
        """
        Calculate the late finish driven by a successor relationship.

        This is the reverse of _get_driven_early_start.
        """
        lag = edge.lag

        if edge.link_type is LinkType.START_TO_START:
            # Predecessor starts by successor late start - lag
            return self.resolver.add_work_days(succ.late_start, duration_offset(pred_duration) - lag)

        if edge.link_type is LinkType.FINISH_TO_FINISH:
            return self.resolver.add_work_days(succ.late_finish, -lag)

        if edge.link_type is LinkType.START_TO_FINISH:
            # Predecessor starts by successor late finish - lag
            return self.resolver.add_work_days(succ.late_finish, duration_offset(pred_duration) - lag)

        return self.resolver.add_work_days(succ.late_start, -1 - lag)

    def calculate_float(self, network: TaskNetwork, dates: dict[str, TaskDates]) -> None:
        """
        Calculate total float, free float, and critical flags.

        Total Float = Late Start - Early Start (in work days; finish-based for
        in-progress tasks, whose early start is an actual date)
        Free Float = slack to the nearest successor, clamped to [0, total float]
        """
        for task_id, record in dates.items():
            task = network.tasks[task_id]
            if task.is_completed():
                continue

            if task.is_in_progress():
                record.total_float = self.calendar.work_days_between(record.early_finish, record.late_finish)
            else:
                record.total_float = self.calendar.work_days_between(record.early_start, record.late_start)

            record.is_critical = record.critical_eligible and record.total_float <= 0

            successors = network.get_successors(task_id)
            if not successors:
                record.free_float = record.total_float
                continue

            min_free_float = min(
                self._get_free_float(edge, record, dates[edge.successor_id])
                for edge in successors
            )
            record.free_float = min(max(min_free_float, 0), max(record.total_float, 0))

    def _get_free_float(self, edge: DependencyEdge, pred: TaskDates, succ: TaskDates) -> int:
        """Work days the predecessor can slip before delaying this successor."""
        between = self.calendar.work_days_between
        lag = edge.lag

        if edge.link_type is LinkType.START_TO_START:
            return between(pred.early_start, succ.early_start) - lag
        if edge.link_type is LinkType.FINISH_TO_FINISH:
            return between(pred.early_finish, succ.early_finish) - lag
        if edge.link_type is LinkType.START_TO_FINISH:
            return between(pred.early_start, succ.early_finish) - lag
        return between(pred.early_finish, succ.early_start) - 1 - lag

    def _build_result(self, network: TaskNetwork, dates: dict[str, TaskDates],
                      summaries: dict[str, TaskDates],
                      warnings: list[ScheduleWarning]) -> CalculationResult:
        """Compile annotated tasks (in input order) and stats."""
        annotated = []

        for task_id in network.order:
            if task_id in network.blank_rows:
                # Spacer rows pass through untouched
                annotated.append(AnnotatedTask(task=network.blank_rows[task_id]))
                continue

            task = network.tasks[task_id]
            record = summaries.get(task_id) or dates.get(task_id)

            if record is None:
                # Circular tasks are never scheduled
                annotated.append(AnnotatedTask(
                    task=task,
                    duration=max(task.duration, 0),
                    is_summary=network.is_summary(task_id),
                    is_circular=task_id in network.circular_ids,
                    has_ghost_links=task_id in network.ghost_ids,
                ))
                continue

            annotated.append(AnnotatedTask(
                task=task,
                start=record.early_start,
                end=record.early_finish,
                duration=record.duration,
                early_start=record.early_start,
                early_finish=record.early_finish,
                late_start=record.late_start,
                late_finish=record.late_finish,
                total_float=record.total_float,
                free_float=record.free_float,
                is_critical=record.is_critical,
                is_summary=network.is_summary(task_id),
                has_ghost_links=task_id in network.ghost_ids,
                constraint_conflict=record.constraint_conflict,
                start_variance=self._variance(task.actual_start or record.early_start, task.baseline_start),
                finish_variance=self._variance(task.actual_finish or record.early_finish, task.baseline_finish),
            ))

        return CalculationResult(
            tasks=tuple(annotated),
            stats=self._build_stats(network, dates),
            warnings=tuple(warnings),
        )

    def _variance(self, current: Optional[date], baseline: Optional[date]) -> Optional[int]:
        """Work days current is ahead of baseline (negative when it is behind)."""
        if current is None or baseline is None:
            return None
        return self.calendar.work_days_between(current, baseline)

    def _build_stats(self, network: TaskNetwork, dates: dict[str, TaskDates]) -> CalculationStats:
        """Aggregate statistics over scheduled leaf tasks."""
        task_count = len(network.order)
        if not dates:
            return CalculationStats(task_count=task_count)

        project_start = min(record.early_start for record in dates.values())
        project_finish = max(record.early_finish for record in dates.values())

        return CalculationStats(
            task_count=task_count,
            critical_count=sum(1 for record in dates.values() if record.is_critical),
            project_duration_days=self.calendar.count_work_days(project_start, project_finish),
            project_start=project_start,
            project_finish=project_finish,
        )
