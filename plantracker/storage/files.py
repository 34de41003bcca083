"""JSON-file persistence for categories and tracker state.

Three documents live under ``data_dir``, each keyed by user id:

``categories.json``  ``{user_id: [{id, name, color?}]}``
``plans.json``       ``{user_id: {category_id: {title, startDate, raw}}}``
``tasks.json``       ``{user_id: {started, progress, tasks: {category_id: {key: meta}}}}``

Plan structure and task metadata are stored apart and recombined on load.
Users with no plans are seeded from the configured seed plan.
"""

from __future__ import annotations

import logging
from datetime import date, timedelta
from pathlib import Path
from typing import Any

from plantracker.common.state import load_json, save_json
from plantracker.plan.schedule import normalize_plan_input
from plantracker.tracker.reducer import State, empty_state

logger = logging.getLogger("plantracker.storage")

SEED_CATEGORY_ID = "sde3-backend-prep"
SEED_CATEGORY_NAME = "SDE3 Backend Prep"
SEED_CATEGORY_COLOR = "#2563eb"


def tomorrow_iso(today: date | None = None) -> str:
    return ((today or date.today()) + timedelta(days=1)).isoformat()


class FileStore:
    """Per-user categories and tracker state backed by JSON files."""

    def __init__(self, data_dir: str | Path, seed_plan: str | Path | None = None) -> None:
        self._dir = Path(data_dir)
        self._dir.mkdir(parents=True, exist_ok=True)
        self._seed_path = Path(seed_plan) if seed_plan else None

    @property
    def data_dir(self) -> Path:
        return self._dir

    def _path(self, name: str) -> Path:
        return self._dir / name

    # ------------------------------------------------------------------
    # Seeding
    # ------------------------------------------------------------------

    def load_seed_plan(self) -> dict[str, Any] | None:
        """Read the seed plan; a ``{"plans": [...]}`` wrapper is unwrapped to its first plan."""
        if not self._seed_path or not self._seed_path.is_file():
            return None
        data = load_json(self._seed_path, None)
        if isinstance(data, dict) and isinstance(data.get("plans"), list) and data["plans"]:
            data = data["plans"][0]
        return normalize_plan_input(data)

    def _seed_category(self) -> dict[str, Any]:
        return {"id": SEED_CATEGORY_ID, "name": SEED_CATEGORY_NAME, "color": SEED_CATEGORY_COLOR}

    def _seed_plans(self, user_id: str, seed: dict[str, Any]) -> dict[str, Any]:
        plans_by_user = load_json(self._path("plans.json"), {})
        user_plans = dict(plans_by_user.get(user_id) or {})
        if SEED_CATEGORY_ID not in user_plans:
            user_plans[SEED_CATEGORY_ID] = {
                "title": seed.get("title") or SEED_CATEGORY_NAME,
                "startDate": tomorrow_iso(),
                "raw": seed,
            }
            plans_by_user[user_id] = user_plans
            save_json(self._path("plans.json"), plans_by_user)
            logger.info("Seeded default plan for user %s", user_id)
        return user_plans

    def _ensure_seed_category(self, user_id: str) -> None:
        cats_by_user = load_json(self._path("categories.json"), {})
        current = cats_by_user.get(user_id) if isinstance(cats_by_user.get(user_id), list) else []
        if any(c.get("id") == SEED_CATEGORY_ID for c in current):
            return
        cats_by_user[user_id] = [self._seed_category(), *current]
        save_json(self._path("categories.json"), cats_by_user)

    # ------------------------------------------------------------------
    # Categories
    # ------------------------------------------------------------------

    def load_categories(self, user_id: str) -> list[dict[str, Any]]:
        cats_by_user = load_json(self._path("categories.json"), {})
        items = cats_by_user.get(user_id)
        items = items if isinstance(items, list) else []
        if not items:
            seed = self.load_seed_plan()
            if seed:
                items = [self._seed_category()]
                cats_by_user[user_id] = items
                save_json(self._path("categories.json"), cats_by_user)
                self._seed_plans(user_id, seed)
        return items

    def save_categories(self, user_id: str, categories: list[dict[str, Any]]) -> None:
        cats_by_user = load_json(self._path("categories.json"), {})
        cats_by_user[user_id] = list(categories)
        save_json(self._path("categories.json"), cats_by_user)

    # ------------------------------------------------------------------
    # Tracker state
    # ------------------------------------------------------------------

    def load_state(self, user_id: str) -> State:
        tasks_by_user = load_json(self._path("tasks.json"), {})
        plans_by_user = load_json(self._path("plans.json"), {})
        user_state = tasks_by_user.get(user_id) or {}
        user_plans = plans_by_user.get(user_id) or {}

        if not user_plans:
            seed = self.load_seed_plan()
            if seed:
                user_plans = self._seed_plans(user_id, seed)
                self._ensure_seed_category(user_id)

        task_metas = user_state.get("tasks") or {}
        state = empty_state()
        state["started"] = dict(user_state.get("started") or {})
        state["progress"] = dict(user_state.get("progress") or {})
        for category_id, plan in user_plans.items():
            state["plans"][category_id] = {
                "title": plan.get("title"),
                "startDate": plan.get("startDate"),
                "raw": plan.get("raw"),
                "tasks": dict(task_metas.get(category_id) or {}),
            }
        return state

    def save_state(self, user_id: str, state: State) -> None:
        plans = state.get("plans") or {}
        plans_by_user = load_json(self._path("plans.json"), {})
        tasks_by_user = load_json(self._path("tasks.json"), {})
        plans_by_user[user_id] = {
            category_id: {"title": plan.get("title"), "startDate": plan.get("startDate"), "raw": plan.get("raw")}
            for category_id, plan in plans.items()
        }
        tasks_by_user[user_id] = {
            "started": state.get("started") or {},
            "progress": state.get("progress") or {},
            "tasks": {category_id: plan.get("tasks") or {} for category_id, plan in plans.items()},
        }
        save_json(self._path("plans.json"), plans_by_user)
        save_json(self._path("tasks.json"), tasks_by_user)
        logger.debug("Saved state for user %s (%d plans)", user_id, len(plans))

    def persist_subscriber(self, user_id: str):
        """Subscriber for ``TrackerStore`` that saves every new snapshot, best effort."""

        def _save(state: State) -> None:
            try:
                self.save_state(user_id, state)
            except OSError as exc:
                logger.warning("Background save failed for user %s: %s", user_id, exc)

        return _save
