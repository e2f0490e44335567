"""
Data models for CPM calculations.

Defines dataclasses for tasks, dependencies, warnings, and calculation results.
Input tasks are immutable values; the engine never edits them and returns
fresh annotated copies in every result.
"""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Optional


class LinkType(str, Enum):
    """Dependency link types."""
    FINISH_TO_START = 'FS'
    START_TO_START = 'SS'
    FINISH_TO_FINISH = 'FF'
    START_TO_FINISH = 'SF'


class ConstraintType(str, Enum):
    """Scheduling constraint types."""
    ASAP = 'asap'    # as soon as possible
    SNET = 'snet'    # start no earlier than
    SNLT = 'snlt'    # start no later than
    FNET = 'fnet'    # finish no earlier than
    FNLT = 'fnlt'    # finish no later than
    MFO = 'mfo'      # must finish on

    @property
    def requires_date(self) -> bool:
        return self is not ConstraintType.ASAP


class SchedulingMode(str, Enum):
    AUTO = 'auto'
    MANUAL = 'manual'


class RowType(str, Enum):
    TASK = 'task'
    BLANK = 'blank'


class WarningKind(str, Enum):
    """Kinds of per-task anomalies reported alongside a result."""
    GHOST_LINK = 'ghost-link'
    CIRCULAR_DEPENDENCY = 'circular-dependency'
    CONSTRAINT_CONFLICT = 'constraint-conflict'
    SUMMARY_LINK = 'summary-link'
    INVALID_PARENT = 'invalid-parent'
    INVALID_CONSTRAINT = 'invalid-constraint'


class CalculationError(Exception):
    """Raised when the input is structurally unschedulable (no result produced)."""


def duration_offset(duration: int) -> int:
    """Work days from start to the inclusive end date (0 for milestones)."""
    return max(duration - 1, 0)


@dataclass(frozen=True)
class Dependency:
    """A predecessor link declared on the successor task."""

    predecessor_id: str
    link_type: LinkType = LinkType.FINISH_TO_START
    lag: int = 0


@dataclass(frozen=True)
class Task:
    """Represents a schedule task/activity (input only, never edited by the engine)."""

    id: str
    name: str = ''
    parent_id: Optional[str] = None
    sort_key: str = ''
    row_type: RowType = RowType.TASK

    duration: int = 0
    constraint_type: ConstraintType = ConstraintType.ASAP
    constraint_date: Optional[date] = None
    dependencies: tuple[Dependency, ...] = ()

    # Manual mode keeps the user-entered start
    scheduling_mode: SchedulingMode = SchedulingMode.AUTO
    start: Optional[date] = None

    # Actuals (for completed/in-progress tasks)
    actual_start: Optional[date] = None
    actual_finish: Optional[date] = None
    remaining_duration: Optional[int] = None

    # Baseline snapshot, compared against current dates for variance
    baseline_start: Optional[date] = None
    baseline_finish: Optional[date] = None
    baseline_duration: Optional[int] = None

    def is_blank(self) -> bool:
        return self.row_type is RowType.BLANK

    def is_milestone(self) -> bool:
        """Check if task is a milestone (zero duration)."""
        return self.duration <= 0

    def is_completed(self) -> bool:
        """Check if task has a recorded actual finish."""
        return self.actual_finish is not None

    def is_in_progress(self) -> bool:
        """Check if task has started but not finished."""
        return self.actual_start is not None and self.actual_finish is None

    def is_manual(self) -> bool:
        return self.scheduling_mode is SchedulingMode.MANUAL

    def get_effective_duration(self) -> int:
        """Get duration to use for calculations (remaining if in progress)."""
        if self.is_in_progress() and self.remaining_duration is not None:
            return max(self.remaining_duration, 0)
        return max(self.duration, 0)


@dataclass(frozen=True)
class DependencyEdge:
    """A validated predecessor -> successor edge in the computation graph."""

    predecessor_id: str
    successor_id: str
    link_type: LinkType
    lag: int


@dataclass
class TaskDates:
    """Working record for one task while a calculation is running."""

    early_start: Optional[date] = None
    early_finish: Optional[date] = None
    late_start: Optional[date] = None
    late_finish: Optional[date] = None
    duration: int = 0
    total_float: Optional[int] = None
    free_float: Optional[int] = None
    is_critical: bool = False
    critical_eligible: bool = True
    constraint_conflict: bool = False


@dataclass(frozen=True)
class ScheduleWarning:
    """A recoverable anomaly attached to specific task ids."""

    kind: WarningKind
    task_ids: tuple[str, ...]
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {
            'kind': self.kind.value,
            'taskIds': list(self.task_ids),
            'message': self.message,
        }


@dataclass(frozen=True)
class AnnotatedTask:
    """A task together with everything the engine computed for it."""

    task: Task
    start: Optional[date] = None
    end: Optional[date] = None
    duration: int = 0
    early_start: Optional[date] = None
    early_finish: Optional[date] = None
    late_start: Optional[date] = None
    late_finish: Optional[date] = None
    total_float: Optional[int] = None
    free_float: Optional[int] = None
    is_critical: bool = False
    is_summary: bool = False
    is_circular: bool = False
    has_ghost_links: bool = False
    constraint_conflict: bool = False
    # Work days ahead of baseline (negative when behind)
    start_variance: Optional[int] = None
    finish_variance: Optional[int] = None

    @property
    def id(self) -> str:
        return self.task.id

    def to_dict(self) -> dict[str, Any]:
        """Serialize computed fields in the host's camelCase format."""
        def iso(value: Optional[date]) -> Optional[str]:
            return value.isoformat() if value else None

        return {
            'id': self.task.id,
            'name': self.task.name,
            'parentId': self.task.parent_id,
            'sortKey': self.task.sort_key,
            'rowType': self.task.row_type.value,
            'start': iso(self.start),
            'end': iso(self.end),
            'duration': self.duration,
            'earlyStart': iso(self.early_start),
            'earlyFinish': iso(self.early_finish),
            'lateStart': iso(self.late_start),
            'lateFinish': iso(self.late_finish),
            'totalFloat': self.total_float,
            'freeFloat': self.free_float,
            'isCritical': self.is_critical,
            'isSummary': self.is_summary,
            'isCircular': self.is_circular,
            'hasGhostLinks': self.has_ghost_links,
            'constraintConflict': self.constraint_conflict,
            'startVariance': self.start_variance,
            'finishVariance': self.finish_variance,
        }


@dataclass(frozen=True)
class CalculationStats:
    """Aggregate statistics of a calculation."""

    task_count: int = 0
    critical_count: int = 0
    project_duration_days: int = 0
    project_start: Optional[date] = None
    project_finish: Optional[date] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            'taskCount': self.task_count,
            'criticalCount': self.critical_count,
            'projectDurationDays': self.project_duration_days,
            'projectStartDate': self.project_start.isoformat() if self.project_start else None,
            'projectFinishDate': self.project_finish.isoformat() if self.project_finish else None,
        }


@dataclass(frozen=True)
class CalculationResult:
    """Read-only snapshot returned by every calculation."""

    tasks: tuple[AnnotatedTask, ...]
    stats: CalculationStats
    warnings: tuple[ScheduleWarning, ...] = field(default_factory=tuple)

    def get_task(self, task_id: str) -> Optional[AnnotatedTask]:
        """Get an annotated task by ID."""
        for annotated in self.tasks:
            if annotated.task.id == task_id:
                return annotated
        return None

    def get_critical_tasks(self) -> list[AnnotatedTask]:
        """Critical leaf tasks in early-start order."""
        critical = [t for t in self.tasks if t.is_critical and not t.is_summary]
        return sorted(critical, key=lambda t: (t.early_start or date.max, t.early_finish or date.max))

    def get_warnings(self, kind: WarningKind) -> list[ScheduleWarning]:
        return [w for w in self.warnings if w.kind is kind]

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready mapping of the whole result."""
        return {
            'tasks': [t.to_dict() for t in self.tasks],
            'stats': self.stats.to_dict(),
            'warnings': [w.to_dict() for w in self.warnings],
        }
