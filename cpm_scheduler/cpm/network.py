"""
Task Network for CPM calculations.

Builds the leaf-task dependency graph from a flat task collection,
validates hierarchy and link references, contains circular dependencies,
and provides topological ordering for the passes.
"""

from collections import defaultdict, deque
from typing import Iterable, Optional

from .models import (
    CalculationError,
    DependencyEdge,
    ScheduleWarning,
    Task,
    WarningKind,
)


class TaskNetwork:
    """
    Task dependency network for CPM calculations.

    Only leaf tasks take part in the graph. Problems with individual tasks
    (ghost links, cycles, links to summaries, broken parents) are recorded
    as warnings; the rest of the network stays schedulable.
    """

    def __init__(self):
        self.tasks: dict[str, Task] = {}
        self.blank_rows: dict[str, Task] = {}
        self.order: list[str] = []
        self.dependencies: list[DependencyEdge] = []
        self._successors: dict[str, list[DependencyEdge]] = defaultdict(list)
        self._predecessors: dict[str, list[DependencyEdge]] = defaultdict(list)
        self._position: dict[str, int] = {}
        self._self_loops: set[str] = set()

        # Hierarchy
        self.parent_of: dict[str, Optional[str]] = {}
        self.children: dict[str, list[str]] = defaultdict(list)
        self.summary_ids: set[str] = set()
        self._depths: dict[str, int] = {}

        # Per-task anomalies
        self.ghost_ids: set[str] = set()
        self.circular_ids: set[str] = set()
        self.cycles: list[list[str]] = []
        self.warnings: list[ScheduleWarning] = []

    @classmethod
    def build(cls, tasks: Iterable[Task]) -> 'TaskNetwork':
        """
        Build and validate a network from a flat task collection.

        Raises:
            CalculationError: if two rows share an id
        """
        network = cls()
        for task in tasks:
            network.add_task(task)
        network._resolve_hierarchy()
        network._collect_edges()
        network._contain_cycles()
        return network

    def add_task(self, task: Task) -> None:
        """Add a task (or blank row) to the network."""
        if task.id in self._position:
            raise CalculationError(f"Duplicate task id {task.id!r}")
        self._position[task.id] = len(self.order)
        self.order.append(task.id)
        if task.is_blank():
            self.blank_rows[task.id] = task
        else:
            self.tasks[task.id] = task

    def add_dependency_safe(self, edge: DependencyEdge) -> bool:
        """
        Add an edge only if both ends are leaf tasks.

        Returns True if added, False if skipped.
        """
        if not self.is_leaf(edge.predecessor_id) or not self.is_leaf(edge.successor_id):
            return False
        self.dependencies.append(edge)
        self._successors[edge.predecessor_id].append(edge)
        self._predecessors[edge.successor_id].append(edge)
        return True

    # ------------------------------------------------------------------
    # Hierarchy
    # ------------------------------------------------------------------

    def _resolve_hierarchy(self) -> None:
        """Determine effective parents, children, and summary tasks."""
        raw_parent = {tid: task.parent_id for tid, task in self.tasks.items()}

        for tid in self.order:
            if tid not in self.tasks:
                continue
            parent_id = raw_parent[tid]
            if parent_id is None:
                self.parent_of[tid] = None
                continue

            if parent_id not in self.tasks:
                self.parent_of[tid] = None
                self._warn(WarningKind.INVALID_PARENT, [tid],
                           f"Task {tid} references missing parent {parent_id}; treated as root-level")
                continue

            if self._in_parent_loop(tid, raw_parent):
                self.parent_of[tid] = None
                self._warn(WarningKind.INVALID_PARENT, [tid],
                           f"Task {tid} is part of a parent loop; treated as root-level")
                continue

            self.parent_of[tid] = parent_id

        for tid in self.order:
            parent_id = self.parent_of.get(tid)
            if parent_id is not None:
                self.children[parent_id].append(tid)
        self.summary_ids = {pid for pid, kids in self.children.items() if kids}

    @staticmethod
    def _in_parent_loop(task_id: str, raw_parent: dict[str, Optional[str]]) -> bool:
        """True when following parent links from task_id leads back to it."""
        seen = set()
        current = raw_parent.get(task_id)
        while current is not None and current in raw_parent:
            if current == task_id:
                return True
            if current in seen:
                return False
            seen.add(current)
            current = raw_parent[current]
        return False

    def get_position(self, task_id: str) -> int:
        """Input position of a task or blank row."""
        return self._position[task_id]

    def is_summary(self, task_id: str) -> bool:
        return task_id in self.summary_ids

    def is_leaf(self, task_id: str) -> bool:
        return task_id in self.tasks and task_id not in self.summary_ids

    def get_leaf_ids(self) -> list[str]:
        """Leaf task IDs in input order."""
        return [tid for tid in self.order if self.is_leaf(tid)]

    def get_depth(self, task_id: str) -> int:
        """Hierarchy depth (0 = root level)."""
        if task_id in self._depths:
            return self._depths[task_id]
        chain = []
        current = task_id
        while current is not None and current not in self._depths:
            chain.append(current)
            current = self.parent_of.get(current)
        depth = self._depths[current] + 1 if current is not None else 0
        for tid in reversed(chain):
            self._depths[tid] = depth
            depth += 1
        return self._depths[task_id]

    def get_descendant_leaves(self, task_id: str) -> list[str]:
        """All leaf descendants of a task, in input order."""
        result = []
        stack = list(reversed(self.children.get(task_id, [])))
        while stack:
            current = stack.pop()
            kids = self.children.get(current)
            if kids:
                stack.extend(reversed(kids))
            else:
                result.append(current)
        return sorted(result, key=self._position.__getitem__)

    # ------------------------------------------------------------------
    # Dependencies
    # ------------------------------------------------------------------

    def _collect_edges(self) -> None:
        """Materialize leaf-to-leaf edges from each task's dependency list."""
        for tid in self.order:
            task = self.tasks.get(tid)
            if task is None or not task.dependencies:
                continue

            if self.is_summary(tid):
                self._warn(WarningKind.SUMMARY_LINK, [tid],
                           f"Dependencies on summary task {tid} are ignored")
                continue

            for dep in task.dependencies:
                pred_id = dep.predecessor_id
                if pred_id not in self.tasks:
                    self.ghost_ids.add(tid)
                    self._warn(WarningKind.GHOST_LINK, [tid],
                               f"Task {tid} depends on missing task {pred_id}")
                    continue
                if self.is_summary(pred_id):
                    self._warn(WarningKind.SUMMARY_LINK, [tid, pred_id],
                               f"Task {tid} depends on summary task {pred_id}; link ignored")
                    continue
                if pred_id == tid:
                    self._self_loops.add(tid)
                    continue
                self.add_dependency_safe(DependencyEdge(
                    predecessor_id=pred_id,
                    successor_id=tid,
                    link_type=dep.link_type,
                    lag=dep.lag,
                ))

    def _contain_cycles(self) -> None:
        """Flag tasks on cycles and cut every edge touching them."""
        self.cycles = self._find_cycles()
        for cycle in self.cycles:
            self.circular_ids.update(cycle)
            self._warn(WarningKind.CIRCULAR_DEPENDENCY, cycle,
                       f"Circular dependency among {len(cycle)} task(s): {' -> '.join(cycle)}")

        if not self.circular_ids:
            return

        kept = [
            edge for edge in self.dependencies
            if edge.predecessor_id not in self.circular_ids
            and edge.successor_id not in self.circular_ids
        ]
        self.dependencies = []
        self._successors = defaultdict(list)
        self._predecessors = defaultdict(list)
        for edge in kept:
            self.add_dependency_safe(edge)

    def _find_cycles(self) -> list[list[str]]:
        """
        Find circular dependencies (Tarjan's strongly connected components).

        Iterative DFS with an explicit recursion stack so deep chains do not
        hit the interpreter recursion limit. Each returned cycle lists its
        task IDs in input order.
        """
        index_of: dict[str, int] = {}
        lowlink: dict[str, int] = {}
        on_stack: set[str] = set()
        stack: list[str] = []
        cycles = []
        counter = 0

        for root in self.get_leaf_ids():
            if root in index_of:
                continue

            index_of[root] = lowlink[root] = counter
            counter += 1
            stack.append(root)
            on_stack.add(root)
            work = [(root, iter(self._successors.get(root, [])))]

            while work:
                node, edges = work[-1]
                descended = False
                for edge in edges:
                    succ = edge.successor_id
                    if succ not in index_of:
                        index_of[succ] = lowlink[succ] = counter
                        counter += 1
                        stack.append(succ)
                        on_stack.add(succ)
                        work.append((succ, iter(self._successors.get(succ, []))))
                        descended = True
                        break
                    if succ in on_stack:
                        lowlink[node] = min(lowlink[node], index_of[succ])
                if descended:
                    continue

                work.pop()
                if work:
                    parent = work[-1][0]
                    lowlink[parent] = min(lowlink[parent], lowlink[node])

                if lowlink[node] == index_of[node]:
                    component = []
                    while True:
                        member = stack.pop()
                        on_stack.discard(member)
                        component.append(member)
                        if member == node:
                            break
                    if len(component) > 1 or node in self._self_loops:
                        cycles.append(sorted(component, key=self._position.__getitem__))

        cycles.sort(key=lambda cycle: self._position[cycle[0]])
        return cycles

    def get_successors(self, task_id: str) -> list[DependencyEdge]:
        """Get edges where task_id is the predecessor."""
        return self._successors.get(task_id, [])

    def get_predecessors(self, task_id: str) -> list[DependencyEdge]:
        """Get edges where task_id is the successor."""
        return self._predecessors.get(task_id, [])

    def get_start_tasks(self) -> list[str]:
        """Get schedulable task IDs with no predecessors."""
        return [tid for tid in self.get_schedulable_ids() if not self._predecessors.get(tid)]

    def get_end_tasks(self) -> list[str]:
        """Get schedulable task IDs with no successors."""
        return [tid for tid in self.get_schedulable_ids() if not self._successors.get(tid)]

    def get_schedulable_ids(self) -> list[str]:
        """Leaf task IDs that are not on a cycle, in input order."""
        return [tid for tid in self.get_leaf_ids() if tid not in self.circular_ids]

    def topological_sort(self) -> list[str]:
        """
        Return schedulable task IDs in topological order (predecessors first).

        Uses Kahn's algorithm seeded in input order, so the result is stable.
        Circular tasks are excluded.
        """
        schedulable = self.get_schedulable_ids()
        in_degree = {tid: len(self._predecessors.get(tid, [])) for tid in schedulable}

        queue = deque(tid for tid in schedulable if in_degree[tid] == 0)
        result = []

        while queue:
            task_id = queue.popleft()
            result.append(task_id)

            for edge in self._successors.get(task_id, []):
                in_degree[edge.successor_id] -= 1
                if in_degree[edge.successor_id] == 0:
                    queue.append(edge.successor_id)

        if len(result) != len(schedulable):
            # Cycles are cut before ordering, so this means the graph was edited afterwards
            ordered = set(result)
            remaining = [tid for tid in schedulable if tid not in ordered]
            raise CalculationError(f"Unordered tasks after cycle containment: {remaining[:5]}")

        return result

    def reverse_topological_sort(self) -> list[str]:
        """Return task IDs in reverse topological order (successors before predecessors)."""
        return list(reversed(self.topological_sort()))

    def _warn(self, kind: WarningKind, task_ids: list[str], message: str) -> None:
        self.warnings.append(ScheduleWarning(kind=kind, task_ids=tuple(task_ids), message=message))

    def get_statistics(self) -> dict:
        """Get network statistics."""
        return {
            'total_tasks': len(self.tasks),
            'blank_rows': len(self.blank_rows),
            'summary_tasks': len(self.summary_ids),
            'leaf_tasks': len(self.get_leaf_ids()),
            'total_dependencies': len(self.dependencies),
            'start_tasks': len(self.get_start_tasks()),
            'end_tasks': len(self.get_end_tasks()),
            'circular_tasks': len(self.circular_ids),
            'ghost_linked_tasks': len(self.ghost_ids),
        }

    def __len__(self) -> int:
        return len(self.tasks)

    def __contains__(self, task_id: str) -> bool:
        return task_id in self.tasks

    def __repr__(self) -> str:
        return f"TaskNetwork({len(self.tasks)} tasks, {len(self.dependencies)} dependencies)"
