"""Pytest configuration and fixtures."""
from datetime import date
from typing import List

import pytest

from cpm_scheduler.cpm import CPMEngine, Dependency, LinkType, Task, WorkCalendar


# 2024-01-01 is a Monday
MONDAY = date(2024, 1, 1)


@pytest.fixture
def calendar() -> WorkCalendar:
    """Mon-Fri calendar without exceptions."""
    return WorkCalendar()


@pytest.fixture
def engine(calendar) -> CPMEngine:
    return CPMEngine(calendar)


@pytest.fixture
def today() -> date:
    return MONDAY


@pytest.fixture
def scenario_tasks() -> List[Task]:
    """
    Five-task network:
        A (milestone) -> B (5d) -> C (10d) -> E (milestone)
                                   C -SS+2-> D (3d) -> E
    """
    return [
        Task(id='A', name='Start', duration=0),
        Task(id='B', name='Design', duration=5, dependencies=(Dependency('A'),)),
        Task(id='C', name='Build', duration=10, dependencies=(Dependency('B'),)),
        Task(id='D', name='Inspect', duration=3,
             dependencies=(Dependency('C', LinkType.START_TO_START, 2),)),
        Task(id='E', name='Finish', duration=0,
             dependencies=(Dependency('C'), Dependency('D'))),
    ]


@pytest.fixture
def scenario_payload() -> dict:
    """The five-task network in the host's JSON format."""
    return {
        'today': '2024-01-01',
        'calendar': {'workingDays': [1, 2, 3, 4, 5], 'exceptions': {}},
        'tasks': [
            {'id': 'A', 'name': 'Start', 'duration': 0, 'dependencies': []},
            {'id': 'B', 'name': 'Design', 'duration': 5,
             'dependencies': [{'id': 'A', 'type': 'FS', 'lag': 0}]},
            {'id': 'C', 'name': 'Build', 'duration': 10,
             'dependencies': [{'id': 'B', 'type': 'FS', 'lag': 0}]},
            {'id': 'D', 'name': 'Inspect', 'duration': 3,
             'dependencies': [{'id': 'C', 'type': 'SS', 'lag': 2}]},
            {'id': 'E', 'name': 'Finish', 'duration': 0,
             'dependencies': [{'id': 'C', 'type': 'FS', 'lag': 0},
                              {'id': 'D', 'type': 'FS', 'lag': 0}]},
        ],
    }
