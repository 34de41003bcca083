"""Pure state transitions for the tracker.

State shape::

    {
        "started":  {category_id: bool},
        "progress": {category_id: {"completed": int, "total": int}},
        "plans":    {category_id: {"title", "startDate", "raw", "tasks"}},
    }

Every function takes a snapshot and returns a new one; the input is never
mutated. Operations on an unknown category or task return the snapshot
unchanged. Plan progress is recomputed after each change that can affect
completion or plan structure.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable, Mapping
from typing import Any

from plantracker.plan import schedule, subtasks
from plantracker.plan.progress import Stats, plan_progress

logger = logging.getLogger("plantracker.tracker")

State = dict[str, Any]

AD_HOC_TITLE = "Ad-hoc Plan"


def empty_state() -> State:
    return {"started": {}, "progress": {}, "plans": {}}


def normalize_state(data: Any) -> State:
    """Coerce loaded data into the state shape, dropping anything unexpected."""
    if not isinstance(data, Mapping):
        return empty_state()
    return {
        "started": dict(data.get("started") or {}),
        "progress": dict(data.get("progress") or {}),
        "plans": dict(data.get("plans") or {}),
    }


def new_subtask_id() -> str:
    return uuid.uuid4().hex[:12]


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------

def _with_plan(state: State, category_id: str, plan: dict[str, Any], *, recount: bool = True) -> State:
    plans = {**state["plans"], category_id: plan}
    out = {**state, "plans": plans}
    if recount:
        out["progress"] = {**state["progress"], category_id: plan_progress(category_id, plan).to_dict()}
    return out


def _with_meta(state: State, category_id: str, key: str, meta: dict[str, Any], *, recount: bool = True) -> State:
    plan = state["plans"][category_id]
    tasks = {**(plan.get("tasks") or {}), key: meta}
    return _with_plan(state, category_id, {**plan, "tasks": tasks}, recount=recount)


def _meta(state: State, category_id: str, key: str) -> dict[str, Any]:
    return dict((state["plans"][category_id].get("tasks") or {}).get(key) or {})


def _set_completed(meta: dict[str, Any], value: bool) -> dict[str, Any]:
    out = {**meta, "completed": value}
    if "subtasks" in meta:
        out["subtasks"] = subtasks.mark_all(meta["subtasks"], value)
    return out


def _with_subtasks(meta: dict[str, Any], subs: list[dict[str, Any]]) -> dict[str, Any]:
    """Store a new tree; a task with subtasks is complete iff all of them are."""
    out = {**meta, "subtasks": subs}
    if subs:
        out["completed"] = all(bool(s.get("completed")) for s in subs)
    return out


# ------------------------------------------------------------------
# Plan-level transitions
# ------------------------------------------------------------------

def start(state: State, category_id: str) -> State:
    if state["started"].get(category_id):
        return state
    progress = dict(state["progress"])
    progress.setdefault(category_id, {"completed": 0, "total": 0})
    return {**state, "started": {**state["started"], category_id: True}, "progress": progress}


def set_progress(state: State, category_id: str, stats: Stats) -> State:
    return {**state, "progress": {**state["progress"], category_id: stats.to_dict()}}


def import_plan(state: State, category_id: str, raw: Mapping[str, Any], start_date: str | None = None) -> State:
    """Replace a category's plan structure, keeping any existing task metadata."""
    existing = state["plans"].get(category_id) or {}
    plan = {
        "title": raw.get("title"),
        "startDate": start_date or raw.get("startDate") or existing.get("startDate"),
        "raw": dict(raw),
        "tasks": dict(existing.get("tasks") or {}),
    }
    logger.info("Imported plan %r into %s", plan["title"], category_id)
    return _with_plan(state, category_id, plan)


def set_start_date(state: State, category_id: str, start_date: str | None) -> State:
    plan = state["plans"].get(category_id)
    if plan is None:
        return state
    return _with_plan(state, category_id, {**plan, "startDate": start_date}, recount=False)


def add_task(
    state: State,
    category_id: str,
    week: int,
    day: str,
    kind: str,
    title: str,
    pattern_name: str | None = None,
) -> State:
    base = state["plans"].get(category_id) or {
        "title": AD_HOC_TITLE,
        "startDate": None,
        "raw": {"title": AD_HOC_TITLE, "schedule": []},
        "tasks": {},
    }
    raw = schedule.add_task(base.get("raw") or {}, week, day, kind, title, pattern_name)
    return _with_plan(state, category_id, {**base, "raw": raw})


def remove_task(state: State, category_id: str, key: str) -> State:
    """Drop a task's metadata and its entry in the plan schedule."""
    plan = state["plans"].get(category_id)
    if plan is None:
        return state
    tasks = {k: v for k, v in (plan.get("tasks") or {}).items() if k != key}
    raw = schedule.remove_item(plan.get("raw") or {}, key)
    return _with_plan(state, category_id, {**plan, "raw": raw, "tasks": tasks})


def remove_pattern(
    state: State,
    category_id: str,
    parent_key: str,
    week: int,
    day: str,
    pattern_name: str,
    problem_keys: Iterable[str] = (),
) -> State:
    plan = state["plans"].get(category_id)
    if plan is None:
        return state
    dropped = {parent_key, *problem_keys}
    tasks = {k: v for k, v in (plan.get("tasks") or {}).items() if k not in dropped}
    raw = schedule.remove_pattern(plan.get("raw") or {}, week, day, pattern_name)
    return _with_plan(state, category_id, {**plan, "raw": raw, "tasks": tasks})


# ------------------------------------------------------------------
# Task-level transitions
# ------------------------------------------------------------------

def toggle_task(state: State, category_id: str, key: str) -> State:
    """Flip a task; its whole subtask tree follows the new value."""
    if category_id not in state["plans"]:
        return state
    meta = _meta(state, category_id, key)
    return _with_meta(state, category_id, key, _set_completed(meta, not meta.get("completed")))


def toggle_pattern(state: State, category_id: str, parent_key: str, problem_keys: Iterable[str]) -> State:
    """Toggle a pattern parent by setting every problem to the same new value.

    The parent's own completion is derived from its problems, so the new value
    is the negation of "all problems complete".
    """
    if category_id not in state["plans"]:
        return state
    keys = list(problem_keys)
    if not keys:
        return toggle_task(state, category_id, parent_key)
    value = not all(_meta(state, category_id, k).get("completed") for k in keys)
    plan = state["plans"][category_id]
    tasks = dict(plan.get("tasks") or {})
    for k in keys:
        tasks[k] = _set_completed(dict(tasks.get(k) or {}), value)
    return _with_plan(state, category_id, {**plan, "tasks": tasks})


def set_task_notes(state: State, category_id: str, key: str, notes: str) -> State:
    if category_id not in state["plans"]:
        return state
    meta = {**_meta(state, category_id, key), "notes": notes}
    return _with_meta(state, category_id, key, meta, recount=False)


def rename_task(state: State, category_id: str, key: str, title: str) -> State:
    if category_id not in state["plans"]:
        return state
    meta = {**_meta(state, category_id, key), "titleOverride": title}
    return _with_meta(state, category_id, key, meta, recount=False)


def set_task_tags(state: State, category_id: str, key: str, tags: Iterable[str]) -> State:
    if category_id not in state["plans"]:
        return state
    clean: list[str] = []
    for tag in tags:
        tag = str(tag).strip()
        if tag and tag not in clean:
            clean.append(tag)
    meta = {**_meta(state, category_id, key), "tags": clean}
    return _with_meta(state, category_id, key, meta, recount=False)


# ------------------------------------------------------------------
# Subtask transitions
# ------------------------------------------------------------------

def add_subtask(
    state: State,
    category_id: str,
    key: str,
    title: str,
    notes: str | None = None,
    parent_id: str | None = None,
    subtask_id: str | None = None,
) -> State:
    """Insert a new incomplete node; an unknown ``parent_id`` appends at the root."""
    if category_id not in state["plans"]:
        return state
    node: dict[str, Any] = {"id": subtask_id or new_subtask_id(), "title": title, "completed": False}
    if notes is not None:
        node["notes"] = notes
    meta = _meta(state, category_id, key)
    subs = subtasks.insert(meta.get("subtasks"), node, parent_id)
    return _with_meta(state, category_id, key, _with_subtasks(meta, subs))


def _edit_tree(state: State, category_id: str, key: str, subtask_id: str, op: Any, *, recount: bool) -> State:
    if category_id not in state["plans"]:
        return state
    meta = _meta(state, category_id, key)
    tree = meta.get("subtasks")
    if not tree or subtasks.find(tree, subtask_id) is None:
        return state
    subs = op(tree)
    if recount:
        return _with_meta(state, category_id, key, _with_subtasks(meta, subs))
    return _with_meta(state, category_id, key, {**meta, "subtasks": subs}, recount=False)


def toggle_subtask(state: State, category_id: str, key: str, subtask_id: str) -> State:
    return _edit_tree(state, category_id, key, subtask_id,
                      lambda tree: subtasks.toggle(tree, subtask_id), recount=True)


def remove_subtask(state: State, category_id: str, key: str, subtask_id: str) -> State:
    return _edit_tree(state, category_id, key, subtask_id,
                      lambda tree: subtasks.remove(tree, subtask_id), recount=True)


def set_subtask_notes(state: State, category_id: str, key: str, subtask_id: str, notes: str) -> State:
    return _edit_tree(state, category_id, key, subtask_id,
                      lambda tree: subtasks.set_notes(tree, subtask_id, notes), recount=False)


def rename_subtask(state: State, category_id: str, key: str, subtask_id: str, title: str) -> State:
    return _edit_tree(state, category_id, key, subtask_id,
                      lambda tree: subtasks.rename(tree, subtask_id, title), recount=False)
