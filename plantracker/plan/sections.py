"""Project a raw plan plus its task metadata into per-day sections.

One ``Section`` is produced per ``(week, day)`` entry, in schedule order.
Each pattern in a day becomes a synthetic parent task whose subtasks are the
pattern's problems; every problem keeps its own metadata entry, so toggling
or renaming a problem "subtask" lands on that problem's key. Routing is
resolved here, once, into the ``ref`` carried by every task and subtask view.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any

from plantracker.plan.keys import (
    ACTIVITY_BUCKET,
    PATTERN_BUCKET,
    PatternRef,
    ProblemRef,
    Ref,
    SubtaskRef,
    TaskRef,
    encode_subtask_id,
    make_key,
)
from plantracker.plan.progress import Stats, compute_stats

logger = logging.getLogger("plantracker.plan.sections")

NO_START_DATE = "No start date"

_LEADING_INT_RE = re.compile(r"\s*(\d+)")


@dataclass
class SubtaskView:
    id: str
    title: str
    completed: bool
    ref: SubtaskRef | ProblemRef
    notes: str | None = None
    children: list["SubtaskView"] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "completed": self.completed,
            "notes": self.notes,
            "children": [c.to_dict() for c in self.children],
        }


@dataclass
class SectionTask:
    key: str
    title: str
    completed: bool
    ref: TaskRef | PatternRef
    notes: str | None = None
    subtasks: list[SubtaskView] = field(default_factory=list)
    is_pattern_parent: bool = False
    title_override: str | None = None
    tags: list[str] = field(default_factory=list)
    # tags found on the problems of a pattern parent
    child_tags: list[str] = field(default_factory=list)

    @property
    def display_title(self) -> str:
        return self.title_override or self.title

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "title": self.title,
            "titleOverride": self.title_override,
            "completed": self.completed,
            "notes": self.notes,
            "tags": list(self.tags),
            "isPatternParent": self.is_pattern_parent,
            "subtasks": [s.to_dict() for s in self.subtasks],
        }


@dataclass
class Section:
    id: str
    title: str
    day_label: str
    date_label: str
    date_start: date | None
    date_end: date | None
    tags: list[str]
    tasks: list[SectionTask]
    stats: Stats
    week: int
    day_raw: str
    start_day: int = 1
    end_day: int = 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "dayLabel": self.day_label,
            "dateLabel": self.date_label,
            "dateStart": self.date_start.isoformat() if self.date_start else None,
            "dateEnd": self.date_end.isoformat() if self.date_end else None,
            "tags": list(self.tags),
            "tasks": [t.to_dict() for t in self.tasks],
            "stats": self.stats.to_dict(),
            "week": self.week,
            "dayRaw": self.day_raw,
        }


# ------------------------------------------------------------------
# Day ranges and dates
# ------------------------------------------------------------------

def parse_day_range(s: Any) -> tuple[int, int]:
    """``"5"`` -> (5, 5), ``"3-4"`` -> (3, 4); unparseable input falls back to day 1.

    Each ``-`` separated token contributes its leading digits, so ``"3a"``
    and ``"3.5"`` both read as 3.
    """
    parts = []
    for token in str(s).split("-"):
        m = _LEADING_INT_RE.match(token)
        if m:
            parts.append(int(m.group(1)))
    if not parts:
        return 1, 1
    if len(parts) == 1:
        return parts[0], parts[0]
    return parts[0], parts[1]


def parse_start_date(value: Any) -> date | None:
    if not value:
        return None
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        logger.warning("Ignoring invalid plan start date %r", value)
        return None


def format_date(d: date) -> str:
    """Medium date, e.g. ``Jan 3, 2024``."""
    return f"{d:%b} {d.day}, {d.year}"


def format_date_range(start: date | None, end: date | None) -> str:
    if start is None or end is None:
        return NO_START_DATE
    if start == end:
        return format_date(start)
    return f"{format_date(start)} - {format_date(end)}"


def day_label(start_day: int, end_day: int) -> str:
    if start_day == end_day:
        return f"Day {start_day}"
    return f"Days {start_day}-{end_day}"


# ------------------------------------------------------------------
# Task views
# ------------------------------------------------------------------

def _wrap_own(key: str, nodes: list[dict[str, Any]] | None) -> list[SubtaskView]:
    views = []
    for node in nodes or []:
        ref = SubtaskRef(key=key, subtask_id=node["id"])
        views.append(SubtaskView(
            id=encode_subtask_id(ref),
            title=node.get("title", ""),
            completed=bool(node.get("completed")),
            notes=node.get("notes"),
            children=_wrap_own(key, node.get("children")),
            ref=ref,
        ))
    return views


def _wrap_problem(problem_key: str, nodes: list[dict[str, Any]] | None) -> list[SubtaskView]:
    views = []
    for node in nodes or []:
        ref = ProblemRef(problem_key=problem_key, subtask_id=node["id"])
        views.append(SubtaskView(
            id=encode_subtask_id(ref),
            title=node.get("title", ""),
            completed=bool(node.get("completed")),
            notes=node.get("notes"),
            children=_wrap_problem(problem_key, node.get("children")),
            ref=ref,
        ))
    return views


def _pattern_task(
    category_id: str,
    week: int,
    day_raw: str,
    pattern: Mapping[str, Any],
    metas: Mapping[str, Any],
) -> SectionTask:
    name = pattern.get("name") or PATTERN_BUCKET
    parent_key = make_key(category_id, week, day_raw, PATTERN_BUCKET, name)
    parent_meta = metas.get(parent_key) or {}

    problems: list[SubtaskView] = []
    child_tags: list[str] = []
    for problem in pattern.get("problems") or []:
        problem_key = make_key(category_id, week, day_raw, name, problem)
        meta = metas.get(problem_key) or {}
        for tag in meta.get("tags") or []:
            if tag not in child_tags:
                child_tags.append(tag)
        ref = ProblemRef(problem_key=problem_key)
        problems.append(SubtaskView(
            id=encode_subtask_id(ref),
            title=meta.get("titleOverride") or problem,
            completed=bool(meta.get("completed")),
            notes=meta.get("notes"),
            children=_wrap_problem(problem_key, meta.get("subtasks")),
            ref=ref,
        ))

    if problems:
        completed = all(p.completed for p in problems)
    else:
        completed = bool(parent_meta.get("completed"))

    return SectionTask(
        key=parent_key,
        title=name,
        completed=completed,
        notes=parent_meta.get("notes"),
        subtasks=problems,
        is_pattern_parent=True,
        title_override=parent_meta.get("titleOverride"),
        tags=list(parent_meta.get("tags") or []),
        child_tags=child_tags,
        ref=PatternRef(
            key=parent_key,
            week=week,
            day=day_raw,
            pattern_name=name,
            problem_keys=tuple(p.ref.problem_key for p in problems),
        ),
    )


def _activity_task(category_id: str, week: int, day_raw: str, activity: str, metas: Mapping[str, Any]) -> SectionTask:
    key = make_key(category_id, week, day_raw, ACTIVITY_BUCKET, activity)
    meta = metas.get(key) or {}
    return SectionTask(
        key=key,
        title=activity,
        completed=bool(meta.get("completed")),
        notes=meta.get("notes"),
        subtasks=_wrap_own(key, meta.get("subtasks")),
        title_override=meta.get("titleOverride"),
        tags=list(meta.get("tags") or []),
        ref=TaskRef(key=key),
    )


def build_sections(category_id: str, plan: Mapping[str, Any] | None) -> list[Section]:
    """Derive one section per schedule day from a plan state dict."""
    if not plan:
        return []
    start = parse_start_date(plan.get("startDate"))
    metas: Mapping[str, Any] = plan.get("tasks") or {}
    sections: list[Section] = []

    for wk in (plan.get("raw") or {}).get("schedule") or []:
        week = wk.get("week")
        for day in wk.get("days") or []:
            day_raw = str(day.get("day", ""))
            start_day, end_day = parse_day_range(day_raw)
            date_start = start + timedelta(days=start_day - 1) if start else None
            date_end = start + timedelta(days=end_day - 1) if start else None

            tags: list[str] = []
            tasks: list[SectionTask] = []
            for pattern in day.get("patterns") or []:
                name = pattern.get("name")
                if name and name not in tags:
                    tags.append(name)
                tasks.append(_pattern_task(category_id, week, day_raw, pattern, metas))
            for activity in day.get("activities") or []:
                tasks.append(_activity_task(category_id, week, day_raw, activity, metas))

            sections.append(Section(
                id=f"{week}-{day_raw}",
                title=wk.get("topic") or f"Week {week}",
                day_label=day_label(start_day, end_day),
                date_label=format_date_range(date_start, date_end),
                date_start=date_start,
                date_end=date_end,
                tags=tags,
                tasks=tasks,
                stats=compute_stats(tasks),
                week=week,
                day_raw=day_raw,
                start_day=start_day,
                end_day=end_day,
            ))
    return sections


def find_task(sections: list[Section], key: str) -> SectionTask | None:
    for section in sections:
        for task in section.tasks:
            if task.key == key:
                return task
    return None


def resolve_task_ref(category_id: str, plan: Mapping[str, Any] | None, key: str) -> Ref:
    """Look up the routing reference for a task key; unknown keys route directly."""
    task = find_task(build_sections(category_id, plan), key)
    return task.ref if task else TaskRef(key=key)
