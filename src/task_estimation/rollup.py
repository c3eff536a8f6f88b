"""
Parent/subtask roll-up over a flat arena of tasks.

Tasks reference their parent by id only. TaskTree indexes them by id and
by parent id and walks the tree explicitly to resolve:
- effective estimates (sum of subtasks unless the parent overrides)
- tracked seconds and person-hours (own closed entries + all descendants)
"""

from __future__ import annotations

from dataclasses import replace
import logging
from typing import Dict, Iterable, List, Optional, Set

from .schema import Task, TimeEntry

logger = logging.getLogger(__name__)


class TaskTree:
    """Read-only index of tasks keyed by id and by parent id."""

    def __init__(
        self,
        tasks: Iterable[Task],
        time_entries: Optional[Iterable[TimeEntry]] = None,
    ) -> None:
        self._tasks: Dict[str, Task] = {}
        self._order: List[str] = []
        self._children: Dict[str, List[str]] = {}
        self._entries: Dict[str, List[TimeEntry]] = {}

        for index, task in enumerate(tasks):
            key = task.task_id if task.task_id is not None else f"__anon_{index}"
            if key in self._tasks:
                logger.warning("Duplicate task id %r; keeping the first occurrence.", key)
                continue
            self._tasks[key] = task
            self._order.append(key)
            self._entries[key] = list(task.time_entries)

        for key in self._order:
            parent = self._tasks[key].parent_id
            if parent is not None and parent in self._tasks and parent != key:
                self._children.setdefault(parent, []).append(key)

        if time_entries is not None:
            attached_ids = {
                id(entry) for entries in self._entries.values() for entry in entries
            }
            dropped = 0
            for entry in time_entries:
                if id(entry) in attached_ids:
                    continue
                if entry.task_id in self._entries:
                    self._entries[entry.task_id].append(entry)
                else:
                    dropped += 1
            if dropped:
                logger.debug("Ignored %d time entries with unknown task ids.", dropped)

    def __len__(self) -> int:
        return len(self._order)

    def get(self, task_id: str) -> Optional[Task]:
        return self._tasks.get(task_id)

    def children(self, task_id: str) -> List[Task]:
        return [self._tasks[key] for key in self._children.get(task_id, [])]

    def entries(self, task_id: str) -> List[TimeEntry]:
        return list(self._entries.get(task_id, []))

    # --- Estimates --------------------------------------------------------

    def subtask_estimate(self, task_id: str) -> Optional[int]:
        """Sum of children's effective estimates, None if no children or zero."""
        return self._subtask_estimate(task_id, set())

    def effective_estimate(self, task_id: str) -> Optional[int]:
        """
        The estimate analytics should use for this task.

        An explicit override wins; otherwise the subtask sum when positive;
        otherwise the task's own estimate.
        """
        return self._effective_estimate(task_id, set())

    def _subtask_estimate(self, task_id: str, visited: Set[str]) -> Optional[int]:
        child_ids = self._children.get(task_id)
        if not child_ids:
            return None
        total = 0
        for child_id in child_ids:
            total += self._effective_estimate(child_id, visited) or 0
        return total if total > 0 else None

    def _effective_estimate(self, task_id: str, visited: Set[str]) -> Optional[int]:
        task = self._tasks.get(task_id)
        if task is None or task_id in visited:
            return None
        visited = visited | {task_id}

        if task.has_custom_estimate:
            return task.estimated_seconds
        from_subtasks = self._subtask_estimate(task_id, visited)
        if from_subtasks is not None:
            return from_subtasks
        return task.estimated_seconds

    # --- Tracked time -----------------------------------------------------

    def tracked_seconds(self, task_id: str) -> float:
        return sum(
            entry.duration_seconds or 0.0
            for key in self._subtree(task_id)
            for entry in self._entries.get(key, [])
        )

    def tracked_person_hours(self, task_id: str) -> float:
        return sum(
            entry.person_hours
            for key in self._subtree(task_id)
            for entry in self._entries.get(key, [])
        )

    def _subtree(self, task_id: str) -> List[str]:
        if task_id not in self._tasks:
            return []
        seen: Set[str] = set()
        stack = [task_id]
        order: List[str] = []
        while stack:
            key = stack.pop()
            if key in seen:
                continue
            seen.add(key)
            order.append(key)
            stack.extend(self._children.get(key, []))
        return order

    # --- Resolution -------------------------------------------------------

    def resolve(self) -> List[Task]:
        """
        Return copies of every task with roll-up values populated.

        Input order is preserved and the original Task objects are untouched.
        """
        resolved: List[Task] = []
        for key in self._order:
            task = self._tasks[key]
            resolved.append(
                replace(
                    task,
                    time_entries=list(self._entries.get(key, [])),
                    effective_estimate=self.effective_estimate(key),
                    tracked_seconds=self.tracked_seconds(key),
                    tracked_person_hours=self.tracked_person_hours(key),
                )
            )
        return resolved


def resolve_tasks(
    tasks: Iterable[Task],
    time_entries: Optional[Iterable[TimeEntry]] = None,
) -> List[Task]:
    """Shortcut for TaskTree(tasks, time_entries).resolve()."""
    return TaskTree(tasks, time_entries).resolve()
