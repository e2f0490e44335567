"""
Project payload schemas.

Input format: the task and calendar JSON produced by the host application.
Field names use the host's camelCase spelling via aliases.
"""

from datetime import date
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from cpm_scheduler.config.settings import settings
from cpm_scheduler.cpm.calendar import CalendarException, WorkCalendar, host_day_to_weekday
from cpm_scheduler.cpm.models import (
    ConstraintType,
    Dependency,
    LinkType,
    RowType,
    SchedulingMode,
    Task,
)


def _blank_to_none(value):
    """Host rows store unset dates and enums as empty strings."""
    if isinstance(value, str) and not value.strip():
        return None
    return value


class DependencyPayload(BaseModel):
    """A predecessor link as stored on the successor task."""
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(description="Predecessor task id")
    type: LinkType = Field(default=LinkType.FINISH_TO_START, description="Link type: FS, SS, FF, SF")
    lag: int = Field(default=0, description="Lag in working days (may be negative)")

    @field_validator('type', mode='before')
    @classmethod
    def _normalize_type(cls, value):
        value = _blank_to_none(value)
        if value is None:
            return LinkType.FINISH_TO_START
        return value.upper() if isinstance(value, str) else value

    def to_dependency(self) -> Dependency:
        return Dependency(predecessor_id=self.id, link_type=self.type, lag=self.lag)


class TaskPayload(BaseModel):
    """
    A task row.

    Computed fields sent back by the host (lateStart, totalFloat, ...) are
    ignored; the engine always recomputes them.
    """
    model_config = ConfigDict(populate_by_name=True, extra='ignore')

    id: str = Field(description="Unique task id, stable across edits")
    name: str = Field(default='', description="Display name")
    parent_id: Optional[str] = Field(default=None, alias='parentId', description="Parent task id (None = root)")
    sort_key: str = Field(default='', alias='sortKey', description="Sibling ordering key")
    row_type: RowType = Field(default=RowType.TASK, alias='rowType', description="task or blank (spacer)")

    duration: int = Field(default=0, ge=0, description="Duration in work days (0 = milestone)")
    constraint_type: ConstraintType = Field(default=ConstraintType.ASAP, alias='constraintType',
                                            description="asap, snet, snlt, fnet, fnlt, mfo")
    constraint_date: Optional[date] = Field(default=None, alias='constraintDate')
    dependencies: list[DependencyPayload] = Field(default_factory=list)

    scheduling_mode: SchedulingMode = Field(default=SchedulingMode.AUTO, alias='schedulingMode',
                                            description="Auto or Manual")
    start: Optional[date] = Field(default=None, description="User-entered start (manual mode only)")

    actual_start: Optional[date] = Field(default=None, alias='actualStart')
    actual_finish: Optional[date] = Field(default=None, alias='actualFinish')
    remaining_duration: Optional[int] = Field(default=None, ge=0, alias='remainingDuration')

    baseline_start: Optional[date] = Field(default=None, alias='baselineStart')
    baseline_finish: Optional[date] = Field(default=None, alias='baselineFinish')
    baseline_duration: Optional[int] = Field(default=None, ge=0, alias='baselineDuration')

    @field_validator('parent_id', 'constraint_date', 'start', 'actual_start', 'actual_finish',
                     'baseline_start', 'baseline_finish', mode='before')
    @classmethod
    def _empty_is_none(cls, value):
        return _blank_to_none(value)

    @field_validator('constraint_type', 'scheduling_mode', 'row_type', mode='before')
    @classmethod
    def _normalize_enum(cls, value, info):
        value = _blank_to_none(value)
        if value is None:
            return cls.model_fields[info.field_name].default
        return value.lower() if isinstance(value, str) else value

    def to_task(self) -> Task:
        """Convert to the engine's immutable Task."""
        return Task(
            id=self.id,
            name=self.name,
            parent_id=self.parent_id,
            sort_key=self.sort_key,
            row_type=self.row_type,
            duration=self.duration,
            constraint_type=self.constraint_type,
            constraint_date=self.constraint_date,
            dependencies=tuple(dep.to_dependency() for dep in self.dependencies),
            scheduling_mode=self.scheduling_mode,
            start=self.start,
            actual_start=self.actual_start,
            actual_finish=self.actual_finish,
            remaining_duration=self.remaining_duration,
            baseline_start=self.baseline_start,
            baseline_finish=self.baseline_finish,
            baseline_duration=self.baseline_duration,
        )

    @classmethod
    def from_task(cls, task: Task) -> 'TaskPayload':
        """Build a payload from an engine Task."""
        return cls(
            id=task.id,
            name=task.name,
            parent_id=task.parent_id,
            sort_key=task.sort_key,
            row_type=task.row_type,
            duration=max(task.duration, 0),
            constraint_type=task.constraint_type,
            constraint_date=task.constraint_date,
            dependencies=[
                DependencyPayload(id=dep.predecessor_id, type=dep.link_type, lag=dep.lag)
                for dep in task.dependencies
            ],
            scheduling_mode=task.scheduling_mode,
            start=task.start,
            actual_start=task.actual_start,
            actual_finish=task.actual_finish,
            remaining_duration=task.remaining_duration,
            baseline_start=task.baseline_start,
            baseline_finish=task.baseline_finish,
            baseline_duration=task.baseline_duration,
        )


class CalendarExceptionPayload(BaseModel):
    """Override for a single date."""
    working: bool = Field(default=False, description="True adds a work day, False is a holiday")
    description: str = Field(default='')


class CalendarPayload(BaseModel):
    """Project calendar (working days use 0=Sunday ... 6=Saturday)."""
    model_config = ConfigDict(populate_by_name=True)

    working_days: list[int] = Field(default_factory=lambda: list(settings.DEFAULT_WORKING_DAYS),
                                    alias='workingDays')
    exceptions: dict[date, Union[CalendarExceptionPayload, str]] = Field(default_factory=dict)

    @field_validator('working_days')
    @classmethod
    def _check_days(cls, value: list[int]) -> list[int]:
        bad = [day for day in value if day < 0 or day > 6]
        if bad:
            raise ValueError(f"working days must be 0-6 (0=Sunday), got {bad}")
        return value

    def to_calendar(self) -> WorkCalendar:
        """Convert to the engine's WorkCalendar."""
        exceptions = {}
        for exc_date, value in self.exceptions.items():
            if isinstance(value, str):
                exceptions[exc_date] = CalendarException(working=False, description=value)
            else:
                exceptions[exc_date] = CalendarException(working=value.working,
                                                         description=value.description)
        return WorkCalendar(
            working_weekdays=frozenset(host_day_to_weekday(day) for day in self.working_days),
            exceptions=exceptions,
        )


class ProjectPayload(BaseModel):
    """A whole project: tasks, calendar, and optional anchor dates."""
    model_config = ConfigDict(populate_by_name=True)

    tasks: list[TaskPayload] = Field(default_factory=list)
    calendar: CalendarPayload = Field(default_factory=CalendarPayload)
    today: Optional[date] = Field(default=None, description="Status date")
    project_start: Optional[date] = Field(default=None, alias='projectStart')

    def to_engine_input(self) -> tuple[list[Task], WorkCalendar]:
        """Tasks and calendar ready for CPMEngine."""
        return [payload.to_task() for payload in self.tasks], self.calendar.to_calendar()
