"""
Constraint Resolver.

Reconciles a task's dependency-driven (natural) dates with its scheduling
constraint. Every constraint either moves the computed dates
deterministically or raises the task's conflict flag.
"""

from dataclasses import dataclass
from datetime import date
from typing import Optional

from .calendar import WorkCalendar
from .models import CalculationError, ConstraintType, Task, duration_offset


# Constraint dates for these types are deadlines, so they roll back to a work day
NO_LATER_THAN = (ConstraintType.SNLT, ConstraintType.FNLT, ConstraintType.MFO)


@dataclass(frozen=True)
class ConstraintOutcome:
    """Early dates after applying a constraint."""

    early_start: date
    early_finish: date
    conflict: bool = False
    invalid: bool = False


class ConstraintResolver:
    """Applies scheduling constraints using the project calendar."""

    def __init__(self, calendar: WorkCalendar):
        self.calendar = calendar
        # Milestone-only networks may run on a calendar without work days
        self.strict = calendar.has_working_days()

    def add_work_days(self, start: date, days: int) -> date:
        """
        Calendar stepping used by the passes.

        Raises:
            CalculationError: if the calendar runs out of work days
        """
        if not self.strict:
            return self.calendar.add_work_days(start, days)
        result = self.calendar.try_add_work_days(start, days)
        if result is None:
            raise CalculationError(
                f"Calendar runs out of work days {days:+d} work day(s) from {start.isoformat()}"
            )
        return result

    def finish_from_start(self, start: date, duration: int) -> date:
        """Inclusive finish date for a task starting on start."""
        return self.add_work_days(start, duration_offset(duration))

    def start_from_finish(self, finish: date, duration: int) -> date:
        """Start date for a task finishing (inclusively) on finish."""
        return self.add_work_days(finish, -duration_offset(duration))

    def constraint_date(self, task: Task) -> Optional[date]:
        """The task's constraint date moved onto a work day, or None if unconstrained."""
        if task.constraint_type is ConstraintType.ASAP or task.constraint_date is None:
            return None
        if task.constraint_type in NO_LATER_THAN:
            return self.calendar.roll_backward(task.constraint_date)
        return self.calendar.roll_forward(task.constraint_date)

    def is_invalid(self, task: Task) -> bool:
        """A constraint type that needs a date but has none."""
        return task.constraint_type.requires_date and task.constraint_date is None

    def resolve_early(self, task: Task, natural_start: date, duration: int) -> ConstraintOutcome:
        """
        Apply the task's constraint to its natural early start.

        Args:
            task: Task being scheduled
            natural_start: Earliest start allowed by predecessors (or the anchor)
            duration: Effective duration in work days

        Returns:
            ConstraintOutcome with the effective early dates and flags
        """
        natural_finish = self.finish_from_start(natural_start, duration)

        if self.is_invalid(task):
            return ConstraintOutcome(natural_start, natural_finish, invalid=True)

        ctype = task.constraint_type
        cdate = self.constraint_date(task)

        if ctype is ConstraintType.SNET:
            if cdate > natural_start:
                return ConstraintOutcome(cdate, self.finish_from_start(cdate, duration))
            return ConstraintOutcome(natural_start, natural_finish)

        if ctype is ConstraintType.FNET:
            if cdate > natural_finish:
                return ConstraintOutcome(self.start_from_finish(cdate, duration), cdate)
            return ConstraintOutcome(natural_start, natural_finish)

        if ctype is ConstraintType.SNLT:
            # Soft deadline: dates stand, violation is flagged
            return ConstraintOutcome(natural_start, natural_finish,
                                     conflict=natural_start > cdate)

        if ctype is ConstraintType.FNLT:
            return ConstraintOutcome(natural_start, natural_finish,
                                     conflict=natural_finish > cdate)

        if ctype is ConstraintType.MFO:
            # Pinned finish wins even when predecessors push later
            return ConstraintOutcome(self.start_from_finish(cdate, duration), cdate,
                                     conflict=natural_finish > cdate)

        return ConstraintOutcome(natural_start, natural_finish)

    def late_finish_cap(self, task: Task, duration: int) -> Optional[date]:
        """
        Upper bound on late finish imposed by the constraint, if any.

        snlt caps late start at the date, so late finish is capped at the
        date plus the duration offset.
        """
        cdate = self.constraint_date(task)
        if cdate is None:
            return None
        if task.constraint_type in (ConstraintType.FNLT, ConstraintType.MFO):
            return cdate
        if task.constraint_type is ConstraintType.SNLT:
            return self.finish_from_start(cdate, duration)
        return None
