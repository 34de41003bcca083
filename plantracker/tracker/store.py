"""In-memory state container with subscriber notification.

``TrackerStore`` owns the current snapshot. Each operation applies a pure
transition from ``reducer``/``routing`` synchronously, swaps the snapshot,
then notifies subscribers (persistence is one of them). A failing
subscriber is logged and never undoes or blocks the in-memory change.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from datetime import date
from typing import Any

from plantracker.plan.keys import PatternRef, ProblemRef, Ref, decode_subtask_id
from plantracker.plan.periods import available_tags, prepare_sections
from plantracker.plan.progress import Stats
from plantracker.plan.schedule import normalize_plan_input
from plantracker.plan.sections import Section, build_sections, resolve_task_ref
from plantracker.tracker import reducer, routing
from plantracker.tracker.reducer import State

logger = logging.getLogger("plantracker.tracker.store")

Subscriber = Callable[[State], None]


class TrackerStore:
    """Holds one user's tracker state and applies task operations to it."""

    def __init__(self, state: Any = None, *, strategy: str = "all") -> None:
        self._state: State = reducer.normalize_state(state)
        self._subscribers: list[Subscriber] = []
        self.strategy = strategy

    @property
    def state(self) -> State:
        return self._state

    def subscribe(self, fn: Subscriber) -> Callable[[], None]:
        """Register a callback; returns a function that unregisters it."""
        self._subscribers.append(fn)

        def unsubscribe() -> None:
            if fn in self._subscribers:
                self._subscribers.remove(fn)

        return unsubscribe

    def _commit(self, new_state: State) -> State:
        if new_state is self._state:
            return new_state
        self._state = new_state
        for fn in list(self._subscribers):
            try:
                fn(new_state)
            except Exception:
                logger.exception("State subscriber %r failed", fn)
        return new_state

    def replace(self, state: Any) -> State:
        return self._commit(reducer.normalize_state(state))

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_plan(self, category_id: str) -> dict[str, Any] | None:
        return self._state["plans"].get(category_id)

    def is_started(self, category_id: str) -> bool:
        return bool(self._state["started"].get(category_id))

    def get_progress(self, category_id: str) -> Stats:
        p = self._state["progress"].get(category_id) or {}
        return Stats(p.get("completed", 0), p.get("total", 0))

    def sections(
        self,
        category_id: str,
        mode: str = "day",
        tag: str = "",
        query: str = "",
        strategy: str | None = None,
        today: date | None = None,
    ) -> list[Section]:
        built = build_sections(category_id, self.get_plan(category_id))
        return prepare_sections(built, mode, tag, query, strategy or self.strategy, today)

    def tags(self, category_id: str) -> list[str]:
        return available_tags(self.get_plan(category_id))

    def task_ref(self, category_id: str, key: str) -> Ref:
        return resolve_task_ref(category_id, self.get_plan(category_id), key)

    def subtask_ref(self, key: str, subtask_id: str) -> Ref:
        return decode_subtask_id(key, subtask_id)

    def child_ref(self, category_id: str, key: str, parent_id: str | None = None) -> Ref:
        """Where a new child of task ``key`` is added.

        Under a pattern parent only problem ids can hold nested nodes; any
        other ``parent_id`` adds a new problem to the pattern.
        """
        ref = self.task_ref(category_id, key)
        if not parent_id:
            return ref
        parent = decode_subtask_id(key, str(parent_id))
        if isinstance(ref, PatternRef) and not isinstance(parent, ProblemRef):
            return ref
        return parent

    # ------------------------------------------------------------------
    # Plan operations
    # ------------------------------------------------------------------

    def start(self, category_id: str) -> State:
        return self._commit(reducer.start(self._state, category_id))

    def import_plan(self, category_id: str, data: Any, start_date: str | None = None) -> State:
        """Validate and import a plan; raises ``ValueError`` on an invalid shape."""
        raw = normalize_plan_input(data)
        if raw is None:
            raise ValueError("Invalid plan JSON: expected an object or array with a non-empty schedule of weeks and days")
        return self._commit(reducer.import_plan(self._state, category_id, raw, start_date))

    def set_start_date(self, category_id: str, start_date: str | None) -> State:
        return self._commit(reducer.set_start_date(self._state, category_id, start_date))

    def add_task(
        self,
        category_id: str,
        week: int,
        day: str,
        kind: str,
        title: str,
        pattern_name: str | None = None,
    ) -> State:
        return self._commit(reducer.add_task(self._state, category_id, week, day, kind, title, pattern_name))

    def set_task_tags(self, category_id: str, key: str, tags: Iterable[str]) -> State:
        return self._commit(reducer.set_task_tags(self._state, category_id, key, tags))

    # ------------------------------------------------------------------
    # Ref-routed operations
    # ------------------------------------------------------------------

    def toggle(self, category_id: str, ref: Ref) -> State:
        return self._commit(routing.toggle_ref(self._state, category_id, ref))

    def remove(self, category_id: str, ref: Ref) -> State:
        return self._commit(routing.remove_ref(self._state, category_id, ref))

    def rename(self, category_id: str, ref: Ref, title: str) -> State:
        return self._commit(routing.rename_ref(self._state, category_id, ref, title))

    def set_notes(self, category_id: str, ref: Ref, notes: str) -> State:
        return self._commit(routing.set_notes_ref(self._state, category_id, ref, notes))

    def add_subtask(
        self,
        category_id: str,
        ref: Ref,
        title: str,
        notes: str | None = None,
        subtask_id: str | None = None,
    ) -> State:
        return self._commit(routing.add_subtask_ref(self._state, category_id, ref, title, notes, subtask_id))
