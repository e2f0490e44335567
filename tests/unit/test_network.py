"""Unit tests for task network construction and validation."""
import pytest

from cpm_scheduler.cpm.models import (
    CalculationError,
    Dependency,
    RowType,
    Task,
    WarningKind,
)
from cpm_scheduler.cpm.network import TaskNetwork


def kinds(network):
    return [w.kind for w in network.warnings]


class TestNetworkBuild:
    """Test building a network from a flat task list."""

    def test_build_scenario(self, scenario_tasks):
        network = TaskNetwork.build(scenario_tasks)
        assert len(network) == 5
        assert len(network.dependencies) == 5
        assert network.get_start_tasks() == ['A']
        assert network.get_end_tasks() == ['E']
        assert network.warnings == []

    def test_topological_order(self, scenario_tasks):
        # Reverse the input so ordering has to come from the links
        network = TaskNetwork.build(list(reversed(scenario_tasks)))
        order = network.topological_sort()
        position = {tid: i for i, tid in enumerate(order)}
        for edge in network.dependencies:
            assert position[edge.predecessor_id] < position[edge.successor_id]
        assert network.reverse_topological_sort() == list(reversed(order))

    def test_duplicate_id_raises(self):
        with pytest.raises(CalculationError, match="Duplicate"):
            TaskNetwork.build([Task(id='A'), Task(id='A')])

    def test_blank_rows_kept_out_of_graph(self):
        network = TaskNetwork.build([
            Task(id='A', duration=1),
            Task(id='gap', row_type=RowType.BLANK),
            Task(id='B', duration=1, dependencies=(Dependency('A'),)),
        ])
        assert 'gap' in network.blank_rows
        assert 'gap' not in network
        assert network.get_leaf_ids() == ['A', 'B']
        assert network.get_position('B') == 2

    def test_statistics(self, scenario_tasks):
        stats = TaskNetwork.build(scenario_tasks).get_statistics()
        assert stats['leaf_tasks'] == 5
        assert stats['total_dependencies'] == 5
        assert stats['circular_tasks'] == 0


class TestHierarchy:
    """Test parent/child resolution."""

    def test_summary_detection(self):
        network = TaskNetwork.build([
            Task(id='P'),
            Task(id='P1', parent_id='P'),
            Task(id='X', parent_id='P1', duration=2),
            Task(id='Y', parent_id='P', duration=3),
        ])
        assert network.summary_ids == {'P', 'P1'}
        assert network.get_leaf_ids() == ['X', 'Y']
        assert network.get_depth('P') == 0
        assert network.get_depth('X') == 2
        assert network.get_descendant_leaves('P') == ['X', 'Y']

    def test_missing_parent_is_root(self):
        network = TaskNetwork.build([Task(id='A', parent_id='nope', duration=1)])
        assert network.parent_of['A'] is None
        assert kinds(network) == [WarningKind.INVALID_PARENT]

    def test_parent_loop_is_root(self):
        network = TaskNetwork.build([
            Task(id='A', parent_id='B', duration=1),
            Task(id='B', parent_id='A', duration=1),
        ])
        assert network.summary_ids == set()
        assert network.get_leaf_ids() == ['A', 'B']
        assert kinds(network) == [WarningKind.INVALID_PARENT, WarningKind.INVALID_PARENT]

    def test_links_to_summary_ignored(self):
        network = TaskNetwork.build([
            Task(id='P'),
            Task(id='X', parent_id='P', duration=2),
            Task(id='Z', duration=1, dependencies=(Dependency('P'),)),
        ])
        assert network.dependencies == []
        assert network.warnings[0].kind is WarningKind.SUMMARY_LINK
        assert network.warnings[0].task_ids == ('Z', 'P')


class TestAnomalies:
    """Test ghost links and cycles."""

    def test_ghost_link(self):
        network = TaskNetwork.build([
            Task(id='A', duration=1, dependencies=(Dependency('deleted'),)),
        ])
        assert network.ghost_ids == {'A'}
        assert network.dependencies == []
        warning = network.warnings[0]
        assert warning.kind is WarningKind.GHOST_LINK
        assert warning.task_ids == ('A',)
        assert 'deleted' in warning.message

    def test_cycle_detected_and_cut(self):
        network = TaskNetwork.build([
            Task(id='X', duration=1, dependencies=(Dependency('Y'),)),
            Task(id='Y', duration=1, dependencies=(Dependency('X'),)),
            Task(id='Z', duration=1, dependencies=(Dependency('Y'),)),
        ])
        assert network.cycles == [['X', 'Y']]
        assert network.circular_ids == {'X', 'Y'}
        assert network.dependencies == []
        assert network.topological_sort() == ['Z']
        assert network.warnings[0].task_ids == ('X', 'Y')

    def test_self_loop_is_cycle(self):
        network = TaskNetwork.build([
            Task(id='A', duration=1, dependencies=(Dependency('A'),)),
            Task(id='B', duration=1),
        ])
        assert network.circular_ids == {'A'}
        assert kinds(network) == [WarningKind.CIRCULAR_DEPENDENCY]
        assert network.get_schedulable_ids() == ['B']

    def test_long_chain_does_not_recurse(self):
        tasks = [Task(id='t0', duration=1)]
        for i in range(1, 5000):
            tasks.append(Task(id=f't{i}', duration=1, dependencies=(Dependency(f't{i - 1}'),)))
        network = TaskNetwork.build(tasks)
        assert network.cycles == []
        assert network.topological_sort()[-1] == 't4999'
