"""
Conflict detection for one user's day.

Every pair of events is checked for a time overlap, or failing that a buffer
violation, and independently for a dependency that would start before the task
it depends on has ended.
"""
from dataclasses import dataclass
from datetime import timedelta
from typing import Dict, List, Set, Tuple

import task_store
from models import DEFAULT_BUFFER_MIN, DEFAULT_DURATION_MIN

OVERLAP = 'overlap'
BUFFER = 'buffer'
DEPENDENCY = 'dependency'
CONFLICT_TYPES = (OVERLAP, BUFFER, DEPENDENCY)


def duration_minutes(task) -> int:
    duration = task.duration_min
    return duration if duration and duration > 0 else DEFAULT_DURATION_MIN


def buffer_before(task) -> int:
    value = task.buffer_before_min
    return DEFAULT_BUFFER_MIN if value is None else max(value, 0)


def buffer_after(task) -> int:
    value = task.buffer_after_min
    return DEFAULT_BUFFER_MIN if value is None else max(value, 0)


def effective_end(task):
    if task.scheduled_end:
        return task.scheduled_end
    return task.scheduled_date + timedelta(minutes=duration_minutes(task))


class ConflictGraph:
    """Adjacency list of conflicting event ids."""

    def __init__(self):
        self._adjacency: Dict[str, Set[str]] = {}

    def add_edge(self, source, target, directed=False):
        self._adjacency.setdefault(source, set()).add(target)
        if directed:
            self._adjacency.setdefault(target, set())
        else:
            self._adjacency.setdefault(target, set()).add(source)

    def neighbors(self, node) -> Set[str]:
        return set(self._adjacency.get(node, ()))

    def has_edge(self, source, target) -> bool:
        return target in self._adjacency.get(source, ())

    def nodes(self):
        return list(self._adjacency)

    def to_dict(self):
        return {node: sorted(targets) for node, targets in self._adjacency.items()}

    def __contains__(self, node):
        return node in self._adjacency

    def __len__(self):
        return len(self._adjacency)


@dataclass
class Conflict:
    first: object
    second: object
    type: str

    @property
    def ids(self) -> Tuple[str, str]:
        return self.first.id, self.second.id

    def to_dict(self):
        return {
            'type': self.type,
            'ids': list(self.ids),
            'task1': self.first.to_dict(),
            'task2': self.second.to_dict(),
        }


def find_conflicts(events) -> Tuple[List[Conflict], ConflictGraph]:
    """Scan every pair of `events` in their given order."""
    conflicts = []
    graph = ConflictGraph()
    scheduled = [ev for ev in events if ev.scheduled_date]

    for i, first in enumerate(scheduled):
        start1 = first.scheduled_date
        end1 = effective_end(first)
        for second in scheduled[i + 1:]:
            start2 = second.scheduled_date
            end2 = effective_end(second)

            if start2 < end1 and end2 > start1:
                conflicts.append(Conflict(first, second, OVERLAP))
                graph.add_edge(first.id, second.id)
            elif start2 - timedelta(minutes=buffer_before(second)) < end1 + timedelta(minutes=buffer_after(first)):
                conflicts.append(Conflict(first, second, BUFFER))
                graph.add_edge(first.id, second.id)

            if second.id in first.dependency_list() and start1 < end2:
                conflicts.append(Conflict(first, second, DEPENDENCY))
                graph.add_edge(first.id, second.id, directed=True)

    return conflicts, graph


def detect_conflicts(user_id, day_value):
    """Load the user's events for `day_value` and find their conflicts."""
    events = task_store.get_events_by_date(user_id, day_value)
    return find_conflicts(events)
