"""
Host data contract schemas.

Pydantic models for the camelCase JSON the host (UI and persistence layer)
exchanges with the engine.
"""

from .project import (
    CalendarExceptionPayload,
    CalendarPayload,
    DependencyPayload,
    ProjectPayload,
    TaskPayload,
)

__all__ = [
    'CalendarExceptionPayload',
    'CalendarPayload',
    'DependencyPayload',
    'ProjectPayload',
    'TaskPayload',
]
