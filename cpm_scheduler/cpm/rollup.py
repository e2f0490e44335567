"""
Hierarchy Roll-up.

Derives summary task dates from their descendants, independent of the
dependency graph.
"""

from .calendar import WorkCalendar
from .models import TaskDates
from .network import TaskNetwork


def roll_up_summaries(network: TaskNetwork, dates: dict[str, TaskDates],
                      calendar: WorkCalendar) -> dict[str, TaskDates]:
    """
    Compute summary (parent) task dates bottom-up.

    Each summary spans its descendants: start = earliest early start,
    finish = latest early finish, duration = inclusive work days between
    them. Late dates span the descendants' late dates; float is the lowest
    float among critical-eligible descendants; a summary is critical when
    any descendant is.

    Args:
        network: Network providing the hierarchy
        dates: Working records for scheduled leaf tasks
        calendar: Project calendar for the duration count

    Returns:
        Dict mapping summary task_id to its rolled-up TaskDates
    """
    summaries: dict[str, TaskDates] = {}

    # Deepest summaries first so child summaries are ready for their parents
    ordered = sorted(network.summary_ids, key=lambda tid: (-network.get_depth(tid), network.get_position(tid)))

    for summary_id in ordered:
        rolled = TaskDates(critical_eligible=False)
        floats = []

        for child_id in network.children[summary_id]:
            child = summaries.get(child_id) or dates.get(child_id)
            if child is None or child.early_start is None:
                continue

            if rolled.early_start is None or child.early_start < rolled.early_start:
                rolled.early_start = child.early_start
            if rolled.early_finish is None or child.early_finish > rolled.early_finish:
                rolled.early_finish = child.early_finish
            if child.late_start is not None and (rolled.late_start is None or child.late_start < rolled.late_start):
                rolled.late_start = child.late_start
            if child.late_finish is not None and (rolled.late_finish is None or child.late_finish > rolled.late_finish):
                rolled.late_finish = child.late_finish

            if child.critical_eligible:
                rolled.critical_eligible = True
                if child.total_float is not None:
                    floats.append(child.total_float)
            rolled.is_critical = rolled.is_critical or child.is_critical

        if rolled.early_start is not None:
            rolled.duration = calendar.count_work_days(rolled.early_start, rolled.early_finish)
        if floats:
            rolled.total_float = min(floats)
            rolled.free_float = 0

        summaries[summary_id] = rolled

    return summaries
