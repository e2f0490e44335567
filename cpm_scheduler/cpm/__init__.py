"""
CPM (Critical Path Method) scheduling core.

This package provides:
- Working-day calendar arithmetic
- Task network construction with ghost-link and cycle containment
- Constraint resolution
- Forward/backward pass CPM calculations, float, and critical path
- Summary task roll-up
"""

from .models import (
    AnnotatedTask,
    CalculationError,
    CalculationResult,
    CalculationStats,
    ConstraintType,
    Dependency,
    DependencyEdge,
    LinkType,
    RowType,
    ScheduleWarning,
    SchedulingMode,
    Task,
    WarningKind,
)
from .calendar import CalendarException, WorkCalendar
from .network import TaskNetwork
from .constraints import ConstraintResolver
from .engine import CPMEngine

__all__ = [
    'AnnotatedTask',
    'CalculationError',
    'CalculationResult',
    'CalculationStats',
    'ConstraintType',
    'Dependency',
    'DependencyEdge',
    'LinkType',
    'RowType',
    'ScheduleWarning',
    'SchedulingMode',
    'Task',
    'WarningKind',
    'CalendarException',
    'WorkCalendar',
    'TaskNetwork',
    'ConstraintResolver',
    'CPMEngine',
]
