"""Filter sections by tag/text and regroup them by calendar period.

Two grouping strategies share one entry point, ``prepare_sections``:

``all``
    every section of the plan, bucketed by week / month / quarter /
    half-year / year (``group_all_by_period``).
``current``
    only the sections overlapping the period that contains *today*, merged
    into a single section (``filter_to_current_period``).
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import replace
from datetime import date, timedelta
from typing import Any

from plantracker.plan.progress import compute_stats
from plantracker.plan.sections import (
    NO_START_DATE,
    Section,
    SectionTask,
    day_label,
    format_date,
    format_date_range,
)

logger = logging.getLogger("plantracker.plan.periods")

VIEW_MODES = ("day", "week", "month", "quarter", "half", "year")
UNDATED_KEY = "undated"


# ------------------------------------------------------------------
# Filtering
# ------------------------------------------------------------------

def _matches_tag(task: SectionTask, section: Section, tag: str) -> bool:
    if not tag:
        return True
    if tag in task.tags or tag in section.tags:
        return True
    return task.is_pattern_parent and tag in task.child_tags


def _matches_query(task: SectionTask, q: str) -> bool:
    if not q:
        return True
    if q in task.display_title.lower():
        return True
    if q in (task.notes or "").lower():
        return True
    return any(q in s.title.lower() for s in task.subtasks)


def filter_sections(sections: list[Section], tag: str = "", query: str = "") -> list[Section]:
    """Apply tag and free-text filters to each section; stats follow the visible tasks."""
    q = (query or "").strip().lower()
    out = []
    for sec in sections:
        tasks = [t for t in sec.tasks if _matches_tag(t, sec, tag) and _matches_query(t, q)]
        out.append(replace(sec, tasks=tasks, stats=compute_stats(tasks)))
    return out


# ------------------------------------------------------------------
# Period arithmetic
# ------------------------------------------------------------------

def period_bounds(mode: str, today: date) -> tuple[date, date]:
    """Inclusive first/last day of the period containing ``today``. Weeks start on Monday."""
    if mode == "day":
        return today, today
    if mode == "week":
        start = today - timedelta(days=today.weekday())
        return start, start + timedelta(days=6)
    if mode == "month":
        first_month, months = today.month, 1
    elif mode == "quarter":
        first_month, months = 3 * ((today.month - 1) // 3) + 1, 3
    elif mode == "half":
        first_month, months = (1 if today.month <= 6 else 7), 6
    elif mode == "year":
        first_month, months = 1, 12
    else:
        raise ValueError(f"Unknown view mode: {mode!r}")
    start = date(today.year, first_month, 1)
    next_month = first_month + months
    if next_month > 12:
        end = date(today.year + 1, next_month - 12, 1) - timedelta(days=1)
    else:
        end = date(today.year, next_month, 1) - timedelta(days=1)
    return start, end


def period_label(mode: str, today: date) -> str:
    if mode == "day":
        return format_date(today)
    if mode == "week":
        start, end = period_bounds(mode, today)
        return f"{format_date(start)} - {format_date(end)}"
    if mode == "month":
        return f"{today:%B} {today.year}"
    if mode == "quarter":
        return f"Q{(today.month - 1) // 3 + 1} {today.year}"
    if mode == "half":
        return f"H{1 if today.month <= 6 else 2} {today.year}"
    if mode == "year":
        return str(today.year)
    raise ValueError(f"Unknown view mode: {mode!r}")


def _bucket_key(section: Section, mode: str) -> int | str:
    if mode == "week":
        return section.week
    d = section.date_start
    if d is None:
        return UNDATED_KEY
    if mode == "month":
        return f"{d.year}-{d.month:02d}"
    if mode == "quarter":
        return f"{d.year}-Q{(d.month - 1) // 3 + 1}"
    if mode == "half":
        return f"{d.year}-H{1 if d.month <= 6 else 2}"
    if mode == "year":
        return str(d.year)
    raise ValueError(f"Unknown view mode: {mode!r}")


def _bucket_title(key: int | str, mode: str, first: Section) -> str:
    if mode == "week":
        return first.title
    if key == UNDATED_KEY:
        return NO_START_DATE
    return period_label(mode, first.date_start)


def _chronological(members: list[Section]) -> list[Section]:
    indexed = list(enumerate(members))
    indexed.sort(key=lambda p: (p[1].date_start is None, p[1].date_start or date.min, p[0]))
    return [s for _, s in indexed]


def _merge(members: list[Section], *, id: str, title: str, label: str | None = None) -> Section:
    """Concatenate tasks and union tags; the chronologically first member gives week/day."""
    ordered = _chronological(members)
    first = ordered[0]
    tasks = [t for s in members for t in s.tasks]
    tags: list[str] = []
    for s in members:
        for t in s.tags:
            if t not in tags:
                tags.append(t)
    starts = [s.date_start for s in members if s.date_start]
    ends = [s.date_end for s in members if s.date_end]
    date_start = min(starts) if starts else None
    date_end = max(ends) if ends else None
    start_day = min(s.start_day for s in members)
    end_day = max(s.end_day for s in members)
    return Section(
        id=id,
        title=title,
        day_label=label or day_label(start_day, end_day),
        date_label=format_date_range(date_start, date_end),
        date_start=date_start,
        date_end=date_end,
        tags=tags,
        tasks=tasks,
        stats=compute_stats(tasks),
        week=first.week,
        day_raw=first.day_raw,
        start_day=start_day,
        end_day=end_day,
    )


def _sort_key(key: int | str) -> tuple[int, Any]:
    return (0, key) if isinstance(key, int) else (1, str(key))


def group_all_by_period(sections: list[Section], mode: str) -> list[Section]:
    """Bucket every section by calendar period; ``day`` returns the input unchanged."""
    if mode == "day":
        return list(sections)
    if mode not in VIEW_MODES:
        raise ValueError(f"Unknown view mode: {mode!r}")

    buckets: dict[int | str, list[Section]] = {}
    for sec in sections:
        buckets.setdefault(_bucket_key(sec, mode), []).append(sec)

    grouped = []
    for key in sorted(buckets, key=_sort_key):
        members = buckets[key]
        first = _chronological(members)[0]
        grouped.append(_merge(members, id=f"{mode}-{key}", title=_bucket_title(key, mode, first)))
    return grouped


def filter_to_current_period(sections: list[Section], mode: str, today: date) -> list[Section]:
    """Keep the sections overlapping today's period; merge them unless in ``day`` mode.

    Undated sections are always kept (a plan without a start date shows everything).
    """
    if not sections:
        return []
    if all(s.date_start is None or s.date_end is None for s in sections):
        visible = list(sections)
    else:
        start, end = period_bounds(mode, today)
        visible = [
            s for s in sections
            if s.date_start is None or s.date_end is None or (s.date_start <= end and start <= s.date_end)
        ]
    if mode == "day" or not visible:
        return visible
    merged = _merge(visible, id="merged", title=f"This {mode}", label="All tasks")
    return [replace(merged, date_label=period_label(mode, today))]


def prepare_sections(
    sections: list[Section],
    mode: str = "day",
    tag: str = "",
    query: str = "",
    strategy: str = "all",
    today: date | None = None,
) -> list[Section]:
    """Filter, regroup with the chosen strategy, then drop empty sections under an active filter."""
    if mode not in VIEW_MODES:
        raise ValueError(f"Unknown view mode: {mode!r}")
    filtered = filter_sections(sections, tag, query)
    if strategy == "current":
        result = filter_to_current_period(filtered, mode, today or date.today())
    elif strategy == "all":
        result = group_all_by_period(filtered, mode)
    else:
        raise ValueError(f"Unknown grouping strategy: {strategy!r}")

    if tag or (query or "").strip():
        result = [s for s in result if s.tasks]
    return result


def available_tags(plan: Mapping[str, Any] | None) -> list[str]:
    """Pattern names plus every tag set on a task, sorted case-insensitively."""
    if not plan:
        return []
    tags: set[str] = set()
    for wk in (plan.get("raw") or {}).get("schedule") or []:
        for day in wk.get("days") or []:
            for pattern in day.get("patterns") or []:
                if pattern.get("name"):
                    tags.add(pattern["name"])
    for meta in (plan.get("tasks") or {}).values():
        tags.update(meta.get("tags") or [])
    return sorted(tags, key=lambda t: (t.lower(), t))
