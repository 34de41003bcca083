"""FastAPI router for categories, tracker state, sections and task edits."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse

from plantracker.common.config import load_config
from plantracker.plan.periods import VIEW_MODES
from plantracker.plan.schedule import TASK_KINDS
from plantracker.storage import categories as category_ops
from plantracker.storage.files import FileStore
from plantracker.tracker.store import TrackerStore

logger = logging.getLogger("plantracker.api.routes")

REPO_DIR = Path(__file__).resolve().parent.parent.parent
CONFIG_PATH = REPO_DIR / "config" / "config.yaml"

router = APIRouter(tags=["tracker"])


def _cfg() -> dict[str, Any]:
    return load_config(CONFIG_PATH)


def _get_files(cfg: dict[str, Any] | None = None) -> FileStore:
    cfg = cfg or _cfg()
    return FileStore(cfg["data_dir"], cfg.get("seed_plan"))


def _require_user(user_id: Any) -> str:
    user_id = str(user_id or "").strip()
    if not user_id:
        raise HTTPException(400, "userId required")
    return user_id


async def _body(request: Request) -> dict[str, Any]:
    if not request.headers.get("content-type", "").startswith("application/json"):
        return {}
    try:
        body = await request.json()
    except ValueError:
        raise HTTPException(400, "Invalid JSON body")
    if not isinstance(body, dict):
        raise HTTPException(400, "JSON object expected")
    return body


def _open_tracker(user_id: str, *, autosave: bool = True) -> tuple[TrackerStore, FileStore]:
    """Load a user's state into a fresh container; autosave persists every change."""
    cfg = _cfg()
    files = _get_files(cfg)
    tracker = TrackerStore(files.load_state(user_id), strategy=cfg["grouping"])
    if autosave:
        tracker.subscribe(files.persist_subscriber(user_id))
    return tracker, files


def _require_plan(tracker: TrackerStore, category_id: str) -> None:
    if tracker.get_plan(category_id) is None:
        raise HTTPException(404, "Plan not found")


def _ok(tracker: TrackerStore, category_id: str) -> JSONResponse:
    return JSONResponse({"ok": True, "progress": tracker.get_progress(category_id).to_dict()})


# ------------------------------------------------------------------
# Health
# ------------------------------------------------------------------

@router.get("/health")
async def health() -> JSONResponse:
    return JSONResponse({"ok": True})


# ------------------------------------------------------------------
# Categories
# ------------------------------------------------------------------

@router.get("/categories")
async def list_categories(userId: str = "") -> JSONResponse:
    user_id = _require_user(userId)
    return JSONResponse(_get_files().load_categories(user_id))


@router.put("/categories")
async def save_categories(request: Request) -> JSONResponse:
    body = await _body(request)
    user_id = _require_user(body.get("userId"))
    cats = body.get("categories")
    if not isinstance(cats, list):
        raise HTTPException(400, "userId and categories[] required")
    _get_files().save_categories(user_id, cats)
    return JSONResponse({"ok": True})


@router.post("/categories")
async def add_category(request: Request) -> JSONResponse:
    body = await _body(request)
    user_id = _require_user(body.get("userId"))
    files = _get_files()
    current = files.load_categories(user_id)
    updated = category_ops.add_category(current, body.get("name", ""), body.get("color"))
    if updated is current:
        raise HTTPException(409, "Category name missing or already exists")
    files.save_categories(user_id, updated)
    return JSONResponse(updated[0], status_code=201)


@router.post("/categories/import")
async def import_categories(request: Request) -> JSONResponse:
    body = await _body(request)
    user_id = _require_user(body.get("userId"))
    files = _get_files()
    updated, imported, skipped = category_ops.import_categories(
        files.load_categories(user_id), body.get("items")
    )
    if imported:
        files.save_categories(user_id, updated)
    return JSONResponse({"imported": imported, "skipped": skipped})


@router.delete("/categories/{category_id}")
async def delete_category(category_id: str, userId: str = "") -> JSONResponse:
    user_id = _require_user(userId)
    files = _get_files()
    current = files.load_categories(user_id)
    updated = category_ops.remove_category(current, category_id)
    if len(updated) == len(current):
        raise HTTPException(404, "Category not found")
    files.save_categories(user_id, updated)
    return JSONResponse({"ok": True})


# ------------------------------------------------------------------
# Combined tracker state
# ------------------------------------------------------------------

@router.get("/tasks/state")
async def get_state(userId: str = "") -> JSONResponse:
    user_id = _require_user(userId)
    return JSONResponse(_get_files().load_state(user_id))


@router.put("/tasks/state")
async def put_state(request: Request) -> JSONResponse:
    body = await _body(request)
    user_id = _require_user(body.get("userId"))
    state = body.get("state")
    if not isinstance(state, dict):
        raise HTTPException(400, "userId and state required")
    tracker = TrackerStore(state)
    _get_files().save_state(user_id, tracker.state)
    return JSONResponse({"ok": True})


# ------------------------------------------------------------------
# Plans
# ------------------------------------------------------------------

@router.post("/plans/{category_id}/import")
async def import_plan(category_id: str, request: Request) -> JSONResponse:
    body = await _body(request)
    user_id = _require_user(body.get("userId"))
    tracker, files = _open_tracker(user_id, autosave=False)
    try:
        tracker.import_plan(category_id, body.get("plan"), body.get("startDate"))
    except ValueError as exc:
        raise HTTPException(400, str(exc))
    try:
        files.save_state(user_id, tracker.state)
    except OSError as exc:
        logger.error("Import save failed for user %s: %s", user_id, exc)
        raise HTTPException(500, "Failed to save imported plan")
    plan = tracker.get_plan(category_id)
    return JSONResponse({"ok": True, "title": plan["title"], "progress": tracker.get_progress(category_id).to_dict()})


@router.get("/plans/{category_id}/sections")
async def get_sections(
    category_id: str,
    userId: str = "",
    mode: str = "day",
    tag: str = "",
    q: str = "",
    strategy: str = "",
) -> JSONResponse:
    user_id = _require_user(userId)
    if mode not in VIEW_MODES:
        raise HTTPException(400, f"mode must be one of {', '.join(VIEW_MODES)}")
    if strategy and strategy not in ("all", "current"):
        raise HTTPException(400, "strategy must be 'all' or 'current'")
    tracker, _ = _open_tracker(user_id, autosave=False)
    _require_plan(tracker, category_id)
    sections = tracker.sections(category_id, mode=mode, tag=tag, query=q, strategy=strategy or None)
    return JSONResponse([s.to_dict() for s in sections])


@router.get("/plans/{category_id}/tags")
async def get_tags(category_id: str, userId: str = "") -> JSONResponse:
    user_id = _require_user(userId)
    tracker, _ = _open_tracker(user_id, autosave=False)
    _require_plan(tracker, category_id)
    return JSONResponse(tracker.tags(category_id))


@router.put("/plans/{category_id}/start")
async def start_plan(category_id: str, request: Request) -> JSONResponse:
    body = await _body(request)
    user_id = _require_user(body.get("userId"))
    tracker, _ = _open_tracker(user_id)
    _require_plan(tracker, category_id)
    tracker.start(category_id)
    if "startDate" in body:
        tracker.set_start_date(category_id, body.get("startDate"))
    return _ok(tracker, category_id)


# ------------------------------------------------------------------
# Tasks
# ------------------------------------------------------------------

@router.post("/plans/{category_id}/tasks")
async def add_task(category_id: str, request: Request) -> JSONResponse:
    body = await _body(request)
    user_id = _require_user(body.get("userId"))
    title = str(body.get("title") or "").strip()
    day = str(body.get("day") or "").strip()
    kind = body.get("kind", "activity")
    try:
        week = int(body.get("week"))
    except (TypeError, ValueError):
        raise HTTPException(400, "week must be an integer")
    if not title or not day or week < 1 or kind not in TASK_KINDS:
        raise HTTPException(400, "week >= 1, day, title and kind (activity|problem) required")
    tracker, _ = _open_tracker(user_id)
    tracker.add_task(category_id, week, day, kind, title, body.get("patternName"))
    return JSONResponse({"ok": True, "progress": tracker.get_progress(category_id).to_dict()}, status_code=201)


@router.delete("/plans/{category_id}/tasks/{key}")
async def remove_task(category_id: str, key: str, userId: str = "") -> JSONResponse:
    user_id = _require_user(userId)
    tracker, _ = _open_tracker(user_id)
    _require_plan(tracker, category_id)
    tracker.remove(category_id, tracker.task_ref(category_id, key))
    return _ok(tracker, category_id)


@router.post("/plans/{category_id}/tasks/{key}/toggle")
async def toggle_task(category_id: str, key: str, request: Request) -> JSONResponse:
    body = await _body(request)
    user_id = _require_user(body.get("userId") or request.query_params.get("userId"))
    tracker, _ = _open_tracker(user_id)
    _require_plan(tracker, category_id)
    tracker.toggle(category_id, tracker.task_ref(category_id, key))
    return _ok(tracker, category_id)


@router.put("/plans/{category_id}/tasks/{key}")
async def update_task(category_id: str, key: str, request: Request) -> JSONResponse:
    body = await _body(request)
    user_id = _require_user(body.get("userId"))
    tracker, _ = _open_tracker(user_id)
    _require_plan(tracker, category_id)
    ref = tracker.task_ref(category_id, key)
    if "title" in body:
        title = str(body["title"] or "").strip()
        if not title:
            raise HTTPException(400, "title must not be empty")
        tracker.rename(category_id, ref, title)
    if "notes" in body:
        tracker.set_notes(category_id, ref, str(body["notes"] or ""))
    if "tags" in body:
        if not isinstance(body["tags"], list):
            raise HTTPException(400, "tags must be a list")
        tracker.set_task_tags(category_id, key, body["tags"])
    return _ok(tracker, category_id)


# ------------------------------------------------------------------
# Subtasks
# ------------------------------------------------------------------

@router.post("/plans/{category_id}/tasks/{key}/subtasks")
async def add_subtask(category_id: str, key: str, request: Request) -> JSONResponse:
    body = await _body(request)
    user_id = _require_user(body.get("userId"))
    title = str(body.get("title") or "").strip()
    if not title:
        raise HTTPException(400, "title required")
    tracker, _ = _open_tracker(user_id)
    _require_plan(tracker, category_id)
    ref = tracker.child_ref(category_id, key, body.get("parentId"))
    tracker.add_subtask(category_id, ref, title, body.get("notes"))
    return JSONResponse({"ok": True, "progress": tracker.get_progress(category_id).to_dict()}, status_code=201)


@router.post("/plans/{category_id}/tasks/{key}/subtasks/{sub_id}/toggle")
async def toggle_subtask(category_id: str, key: str, sub_id: str, request: Request) -> JSONResponse:
    body = await _body(request)
    user_id = _require_user(body.get("userId") or request.query_params.get("userId"))
    tracker, _ = _open_tracker(user_id)
    _require_plan(tracker, category_id)
    tracker.toggle(category_id, tracker.subtask_ref(key, sub_id))
    return _ok(tracker, category_id)


@router.put("/plans/{category_id}/tasks/{key}/subtasks/{sub_id}")
async def update_subtask(category_id: str, key: str, sub_id: str, request: Request) -> JSONResponse:
    body = await _body(request)
    user_id = _require_user(body.get("userId"))
    tracker, _ = _open_tracker(user_id)
    _require_plan(tracker, category_id)
    ref = tracker.subtask_ref(key, sub_id)
    if "title" in body:
        title = str(body["title"] or "").strip()
        if not title:
            raise HTTPException(400, "title must not be empty")
        tracker.rename(category_id, ref, title)
    if "notes" in body:
        tracker.set_notes(category_id, ref, str(body["notes"] or ""))
    return _ok(tracker, category_id)


@router.delete("/plans/{category_id}/tasks/{key}/subtasks/{sub_id}")
async def remove_subtask(category_id: str, key: str, sub_id: str, userId: str = "") -> JSONResponse:
    user_id = _require_user(userId)
    tracker, _ = _open_tracker(user_id)
    _require_plan(tracker, category_id)
    tracker.remove(category_id, tracker.subtask_ref(key, sub_id))
    return _ok(tracker, category_id)
