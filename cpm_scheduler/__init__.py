"""
CPM Scheduler.

Critical Path Method scheduling engine for construction project task lists.
"""

from .cpm import (
    AnnotatedTask,
    CalculationError,
    CalculationResult,
    CPMEngine,
    Dependency,
    Task,
    WorkCalendar,
)

__version__ = '0.1.0'

__all__ = [
    'AnnotatedTask',
    'CalculationError',
    'CalculationResult',
    'CPMEngine',
    'Dependency',
    'Task',
    'WorkCalendar',
]
