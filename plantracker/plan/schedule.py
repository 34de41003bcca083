"""Immutable edits to a raw plan's schedule, plus import-shape checks."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from plantracker.plan.keys import ACTIVITY_BUCKET, parse_key, slugify

logger = logging.getLogger("plantracker.plan.schedule")

DEFAULT_PATTERN = "General"
DEFAULT_IMPORT_TITLE = "Imported Plan"
TASK_KINDS = ("activity", "problem")


def _valid_day(day: Any) -> bool:
    if not isinstance(day, Mapping):
        return False
    patterns = day.get("patterns")
    if patterns is not None and (
        not isinstance(patterns, list) or not all(isinstance(p, Mapping) for p in patterns)
    ):
        return False
    activities = day.get("activities")
    return activities is None or isinstance(activities, list)


def _valid_week(wk: Any) -> bool:
    if not isinstance(wk, Mapping):
        return False
    week = wk.get("week")
    if not isinstance(week, int) or isinstance(week, bool):
        return False
    days = wk.get("days")
    return isinstance(days, list) and all(_valid_day(d) for d in days)


def normalize_plan_input(data: Any) -> dict[str, Any] | None:
    """Return a plan dict if ``data`` looks like one, else ``None``.

    Accepts a plan object or a list whose first element is a plan. The
    ``schedule`` must be a non-empty list of weeks, each with an integer
    ``week`` and a ``days`` list of objects.
    """
    if isinstance(data, list):
        if not data:
            return None
        data = data[0]
    if not isinstance(data, Mapping):
        return None
    schedule = data.get("schedule")
    if not isinstance(schedule, list) or not schedule:
        return None
    if not all(_valid_week(wk) for wk in schedule):
        logger.debug("Rejected plan with a malformed schedule entry")
        return None
    title = data.get("title")
    if not isinstance(title, str) or not title.strip():
        title = DEFAULT_IMPORT_TITLE
    return {**data, "title": title, "schedule": schedule}


def _new_day(day: str, kind: str, title: str, pattern_name: str) -> dict[str, Any]:
    if kind == "activity":
        return {"day": day, "activities": [title]}
    return {"day": day, "patterns": [{"name": pattern_name, "problems": [title]}]}


def _add_to_day(d: Mapping[str, Any], kind: str, title: str, pattern_name: str) -> dict[str, Any]:
    if kind == "activity":
        return {**d, "activities": [*(d.get("activities") or []), title]}
    patterns = [dict(p) for p in d.get("patterns") or []]
    for i, p in enumerate(patterns):
        if p.get("name") == pattern_name:
            patterns[i] = {**p, "problems": [*(p.get("problems") or []), title]}
            break
    else:
        patterns.append({"name": pattern_name, "problems": [title]})
    return {**d, "patterns": patterns}


def add_task(
    raw: Mapping[str, Any],
    week: int,
    day: str,
    kind: str,
    title: str,
    pattern_name: str | None = None,
) -> dict[str, Any]:
    """Append an activity or a problem, creating the week/day/pattern as needed."""
    if kind not in TASK_KINDS:
        raise ValueError(f"Unknown task kind: {kind!r}")
    name = (pattern_name or "").strip() or DEFAULT_PATTERN
    day = str(day)

    found_week = False
    schedule = []
    for w in raw.get("schedule") or []:
        if w.get("week") != week:
            schedule.append(w)
            continue
        found_week = True
        found_day = False
        days = []
        for d in w.get("days") or []:
            if str(d.get("day")) == day and not found_day:
                days.append(_add_to_day(d, kind, title, name))
                found_day = True
            else:
                days.append(d)
        if not found_day:
            days.append(_new_day(day, kind, title, name))
        schedule.append({**w, "days": days})

    if not found_week:
        schedule.append({"week": week, "days": [_new_day(day, kind, title, name)]})
    return {**raw, "schedule": schedule}


def _has_items(d: Mapping[str, Any]) -> bool:
    return bool(d.get("activities")) or bool(d.get("patterns"))


def _rewrite_day(
    raw: Mapping[str, Any],
    week: int,
    day: str,
    edit: Any,
) -> dict[str, Any]:
    """Apply ``edit`` to the matching day, then drop it (and its week) if left empty."""
    schedule = []
    for w in raw.get("schedule") or []:
        if w.get("week") != week:
            schedule.append(w)
            continue
        days = []
        for d in w.get("days") or []:
            if str(d.get("day")) != day:
                days.append(d)
                continue
            edited = {
                k: v for k, v in edit(d).items()
                if k not in ("activities", "patterns") or v
            }
            if _has_items(edited):
                days.append(edited)
        if days:
            schedule.append({**w, "days": days})
    return {**raw, "schedule": schedule}


def remove_item(raw: Mapping[str, Any], key: str) -> dict[str, Any]:
    """Remove the activity or problem a task key points at."""
    parsed = parse_key(key)
    if parsed is None:
        logger.debug("Not a task key, nothing removed: %s", key)
        return dict(raw)

    def edit(d: Mapping[str, Any]) -> dict[str, Any]:
        out = dict(d)
        if parsed.bucket_slug == ACTIVITY_BUCKET:
            out["activities"] = [a for a in d.get("activities") or [] if slugify(a) != parsed.title_slug]
        else:
            patterns = []
            for p in d.get("patterns") or []:
                if slugify(p.get("name") or "") == parsed.bucket_slug:
                    p = {**p, "problems": [pr for pr in p.get("problems") or [] if slugify(pr) != parsed.title_slug]}
                if p.get("problems"):
                    patterns.append(p)
            out["patterns"] = patterns
        return out

    return _rewrite_day(raw, parsed.week, parsed.day, edit)


def remove_pattern(raw: Mapping[str, Any], week: int, day: str, pattern_name: str) -> dict[str, Any]:
    def edit(d: Mapping[str, Any]) -> dict[str, Any]:
        return {**d, "patterns": [p for p in d.get("patterns") or [] if p.get("name") != pattern_name]}

    return _rewrite_day(raw, week, str(day), edit)
