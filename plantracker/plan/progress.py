"""Leaf-only progress counting.

A task with subtasks contributes only its leaf subtasks (internal nodes are
skipped); a task without subtasks counts as a single unit. The same rule
drives per-section stats and the per-plan progress stored in state.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from plantracker.plan.keys import ACTIVITY_BUCKET, make_key


@dataclass(frozen=True)
class Stats:
    completed: int = 0
    total: int = 0

    def __add__(self, other: "Stats") -> "Stats":
        return Stats(self.completed + other.completed, self.total + other.total)

    def to_dict(self) -> dict[str, int]:
        return {"completed": self.completed, "total": self.total}


def _get(obj: Any, name: str) -> Any:
    if isinstance(obj, Mapping):
        return obj.get(name)
    return getattr(obj, name, None)


def count_leaves(nodes: Iterable[Any] | None) -> Stats:
    """Count (completed, total) over the leaves of a subtask tree."""
    completed = total = 0
    for node in nodes or []:
        children = _get(node, "children") or []
        if children:
            sub = count_leaves(children)
            completed += sub.completed
            total += sub.total
        else:
            total += 1
            if _get(node, "completed"):
                completed += 1
    return Stats(completed, total)


def _unit(completed: Any, subtasks: Any) -> Stats:
    if subtasks:
        return count_leaves(subtasks)
    return Stats(1 if completed else 0, 1)


def compute_stats(tasks: Iterable[Any]) -> Stats:
    """Stats for a task list (``SectionTask`` views or plain dicts)."""
    stats = Stats()
    for task in tasks:
        stats = stats + _unit(_get(task, "completed"), _get(task, "subtasks"))
    return stats


def plan_progress(category_id: str, plan: Mapping[str, Any] | None) -> Stats:
    """Progress for a whole plan, counting every problem and activity."""
    if not plan:
        return Stats()
    metas: Mapping[str, Any] = plan.get("tasks") or {}
    stats = Stats()
    for wk in (plan.get("raw") or {}).get("schedule") or []:
        week = wk.get("week")
        for day in wk.get("days") or []:
            day_raw = str(day.get("day", ""))
            for pattern in day.get("patterns") or []:
                for problem in pattern.get("problems") or []:
                    key = make_key(category_id, week, day_raw, pattern.get("name") or "pattern", problem)
                    meta = metas.get(key) or {}
                    stats = stats + _unit(meta.get("completed"), meta.get("subtasks"))
            for activity in day.get("activities") or []:
                key = make_key(category_id, week, day_raw, ACTIVITY_BUCKET, activity)
                meta = metas.get(key) or {}
                stats = stats + _unit(meta.get("completed"), meta.get("subtasks"))
    return stats
