"""
Unit tests for host payload schemas.

Tests camelCase parsing, normalization and conversion to engine types.
"""

from datetime import date

import pytest
from pydantic import ValidationError

from cpm_scheduler.cpm.models import ConstraintType, LinkType, RowType, SchedulingMode, Task
from cpm_scheduler.schemas import CalendarPayload, DependencyPayload, ProjectPayload, TaskPayload


class TestTaskPayload:
    """Test task row parsing."""

    def test_camel_case_fields(self):
        payload = TaskPayload.model_validate({
            'id': 'T1',
            'name': 'Pour slab',
            'parentId': 'P',
            'sortKey': 'a0',
            'duration': 4,
            'constraintType': 'snet',
            'constraintDate': '2024-01-10',
            'schedulingMode': 'Auto',
            'actualStart': '2024-01-02',
            'remainingDuration': 2,
            'dependencies': [{'id': 'T0', 'type': 'SS', 'lag': 1}],
        })
        task = payload.to_task()
        assert task.parent_id == 'P'
        assert task.constraint_type is ConstraintType.SNET
        assert task.constraint_date == date(2024, 1, 10)
        assert task.actual_start == date(2024, 1, 2)
        assert task.remaining_duration == 2
        assert task.dependencies[0].link_type is LinkType.START_TO_START
        assert task.dependencies[0].lag == 1

    @pytest.mark.parametrize("raw,expected", [
        ('SNET', ConstraintType.SNET),
        ('Fnlt', ConstraintType.FNLT),
        ('', ConstraintType.ASAP),
        (None, ConstraintType.ASAP),
    ])
    def test_constraint_type_case_insensitive(self, raw, expected):
        payload = TaskPayload.model_validate({'id': 'T', 'constraintType': raw})
        assert payload.constraint_type is expected

    def test_blank_strings_are_unset(self):
        payload = TaskPayload.model_validate({
            'id': 'T', 'start': '', 'constraintDate': '', 'actualFinish': '', 'parentId': '',
        })
        assert payload.start is None
        assert payload.constraint_date is None
        assert payload.actual_finish is None
        assert payload.parent_id is None

    def test_baseline_fields(self):
        task = TaskPayload.model_validate({
            'id': 'T', 'baselineStart': '2024-01-03', 'baselineFinish': '', 'baselineDuration': 4,
        }).to_task()
        assert task.baseline_start == date(2024, 1, 3)
        assert task.baseline_finish is None
        assert task.baseline_duration == 4
        assert TaskPayload.from_task(task).to_task() == task

    def test_computed_fields_ignored(self):
        payload = TaskPayload.model_validate({'id': 'T', 'lateStart': '2024-01-01', 'totalFloat': 3})
        assert not hasattr(payload, 'lateStart')

    def test_manual_and_blank_rows(self):
        payload = TaskPayload.model_validate({'id': 'T', 'schedulingMode': 'Manual', 'rowType': 'blank'})
        assert payload.scheduling_mode is SchedulingMode.MANUAL
        assert payload.row_type is RowType.BLANK

    def test_negative_duration_rejected(self):
        with pytest.raises(ValidationError):
            TaskPayload.model_validate({'id': 'T', 'duration': -1})

    def test_dependency_type_default(self):
        assert DependencyPayload.model_validate({'id': 'A', 'type': 'ff'}).type is LinkType.FINISH_TO_FINISH
        assert DependencyPayload.model_validate({'id': 'A'}).type is LinkType.FINISH_TO_START

    def test_from_task(self, scenario_tasks):
        payload = TaskPayload.from_task(scenario_tasks[3])
        assert payload.dependencies[0].type is LinkType.START_TO_START
        assert payload.to_task() == scenario_tasks[3]


class TestCalendarPayload:
    """Test calendar parsing."""

    def test_exceptions(self):
        calendar = CalendarPayload.model_validate({
            'workingDays': [1, 2, 3, 4, 5],
            'exceptions': {
                '2024-01-03': 'Holiday',
                '2024-01-06': {'working': True, 'description': 'Make-up day'},
            },
        }).to_calendar()
        assert not calendar.is_working_day(date(2024, 1, 3))
        assert calendar.is_working_day(date(2024, 1, 6))

    def test_defaults(self):
        calendar = CalendarPayload().to_calendar()
        assert calendar.working_weekdays == frozenset({0, 1, 2, 3, 4})

    def test_invalid_working_day(self):
        with pytest.raises(ValidationError):
            CalendarPayload.model_validate({'workingDays': [1, 7]})


class TestProjectPayload:
    """Test whole-project conversion."""

    def test_to_engine_input(self, scenario_payload):
        project = ProjectPayload.model_validate(scenario_payload)
        tasks, calendar = project.to_engine_input()
        assert [t.id for t in tasks] == ['A', 'B', 'C', 'D', 'E']
        assert all(isinstance(t, Task) for t in tasks)
        assert project.today == date(2024, 1, 1)
        assert project.project_start is None
        assert calendar.is_working_day(date(2024, 1, 1))
