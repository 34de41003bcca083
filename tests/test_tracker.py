from __future__ import annotations

import copy
import logging

import pytest

from plantracker.plan.keys import PatternRef, ProblemRef, SubtaskRef, TaskRef, make_key
from plantracker.plan.progress import Stats
from plantracker.tracker import reducer, routing
from plantracker.tracker.store import TrackerStore

from tests.conftest import CATEGORY, SAMPLE_PLAN, make_plan_state, make_state

READ_DOCS = make_key(CATEGORY, 1, "1", "activity", "Read docs")
TWO_SUM = make_key(CATEGORY, 1, "1", "Two Pointers", "Two Sum")
THREE_SUM = make_key(CATEGORY, 1, "1", "Two Pointers", "3Sum")
PARENT = make_key(CATEGORY, 1, "1", "pattern", "Two Pointers")


def _tasks(state):
    return state["plans"][CATEGORY]["tasks"]


class TestReducer:
    def test_start_is_idempotent(self) -> None:
        state = reducer.start(reducer.empty_state(), CATEGORY)
        assert state["started"] == {CATEGORY: True}
        assert state["progress"][CATEGORY] == {"completed": 0, "total": 0}
        assert reducer.start(state, CATEGORY) is state

    def test_normalize_state(self) -> None:
        assert reducer.normalize_state(None) == reducer.empty_state()
        assert reducer.normalize_state({"plans": {"a": {}}, "junk": 1}) == {"started": {}, "progress": {}, "plans": {"a": {}}}

    def test_import_keeps_task_metadata(self) -> None:
        state = make_state(make_plan_state(tasks={READ_DOCS: {"completed": True}}, start_date="2024-01-01"))
        out = reducer.import_plan(state, CATEGORY, copy.deepcopy(SAMPLE_PLAN))
        assert _tasks(out)[READ_DOCS]["completed"] is True
        assert out["plans"][CATEGORY]["startDate"] == "2024-01-01"
        assert out["progress"][CATEGORY] == {"completed": 1, "total": 5}

    def test_import_start_date_precedence(self) -> None:
        raw = {**SAMPLE_PLAN, "startDate": "2024-02-01"}
        state = make_state(make_plan_state(start_date="2024-01-01"))
        assert reducer.import_plan(state, CATEGORY, raw)["plans"][CATEGORY]["startDate"] == "2024-02-01"
        assert reducer.import_plan(state, CATEGORY, raw, "2024-03-01")["plans"][CATEGORY]["startDate"] == "2024-03-01"

    def test_inputs_are_not_mutated(self) -> None:
        state = make_state()
        snapshot = copy.deepcopy(state)
        reducer.toggle_task(state, CATEGORY, READ_DOCS)
        reducer.add_subtask(state, CATEGORY, READ_DOCS, "x")
        reducer.remove_task(state, CATEGORY, READ_DOCS)
        assert state == snapshot

    def test_unknown_category_returns_same_state(self) -> None:
        state = make_state()
        for out in (
            reducer.toggle_task(state, "nope", READ_DOCS),
            reducer.add_subtask(state, "nope", READ_DOCS, "x"),
            reducer.set_task_notes(state, "nope", READ_DOCS, "n"),
            reducer.remove_task(state, "nope", READ_DOCS),
            reducer.set_start_date(state, "nope", "2024-01-01"),
        ):
            assert out is state

    def test_toggle_task_cascades_to_subtasks(self) -> None:
        state = reducer.add_subtask(make_state(), CATEGORY, READ_DOCS, "a", subtask_id="a")
        state = reducer.add_subtask(state, CATEGORY, READ_DOCS, "b", subtask_id="b", parent_id="a")
        state = reducer.toggle_task(state, CATEGORY, READ_DOCS)
        meta = _tasks(state)[READ_DOCS]
        assert meta["completed"] is True
        assert meta["subtasks"][0]["completed"] is True
        assert meta["subtasks"][0]["children"][0]["completed"] is True

    def test_subtask_completion_drives_task(self) -> None:
        state = reducer.add_subtask(make_state(), CATEGORY, READ_DOCS, "a", subtask_id="a")
        state = reducer.add_subtask(state, CATEGORY, READ_DOCS, "b", subtask_id="b")
        state = reducer.toggle_subtask(state, CATEGORY, READ_DOCS, "a")
        assert _tasks(state)[READ_DOCS]["completed"] is False
        assert state["progress"][CATEGORY] == {"completed": 1, "total": 6}
        state = reducer.toggle_subtask(state, CATEGORY, READ_DOCS, "b")
        assert _tasks(state)[READ_DOCS]["completed"] is True
        state = reducer.remove_subtask(state, CATEGORY, READ_DOCS, "b")
        assert _tasks(state)[READ_DOCS]["subtasks"] == [{"id": "a", "title": "a", "completed": True}]
        assert _tasks(state)[READ_DOCS]["completed"] is True

    def test_unknown_parent_appends_at_root(self) -> None:
        state = reducer.add_subtask(make_state(), CATEGORY, READ_DOCS, "a", subtask_id="a")
        state = reducer.add_subtask(state, CATEGORY, READ_DOCS, "orphan", parent_id="missing", subtask_id="o")
        assert [s["id"] for s in _tasks(state)[READ_DOCS]["subtasks"]] == ["a", "o"]

    def test_unknown_subtask_is_noop(self) -> None:
        state = reducer.add_subtask(make_state(), CATEGORY, READ_DOCS, "a", subtask_id="a")
        assert reducer.toggle_subtask(state, CATEGORY, READ_DOCS, "zzz") is state
        assert reducer.rename_subtask(state, CATEGORY, TWO_SUM, "a", "x") is state

    def test_notes_rename_tags(self) -> None:
        state = reducer.set_task_notes(make_state(), CATEGORY, READ_DOCS, "chapter 3")
        state = reducer.rename_task(state, CATEGORY, READ_DOCS, "Read the docs")
        state = reducer.set_task_tags(state, CATEGORY, READ_DOCS, [" reading ", "", "reading", "docs"])
        assert _tasks(state)[READ_DOCS] == {"notes": "chapter 3", "titleOverride": "Read the docs", "tags": ["reading", "docs"]}

    def test_add_task_creates_ad_hoc_plan(self) -> None:
        state = reducer.add_task(reducer.empty_state(), "new", 1, "1", "activity", "Warm up")
        plan = state["plans"]["new"]
        assert plan["title"] == "Ad-hoc Plan"
        assert plan["raw"]["schedule"] == [{"week": 1, "days": [{"day": "1", "activities": ["Warm up"]}]}]
        assert state["progress"]["new"] == {"completed": 0, "total": 1}

    def test_remove_task_drops_meta_and_schedule_entry(self) -> None:
        state = make_state(make_plan_state(tasks={READ_DOCS: {"completed": True}}))
        out = reducer.remove_task(state, CATEGORY, READ_DOCS)
        assert READ_DOCS not in _tasks(out)
        assert "activities" not in out["plans"][CATEGORY]["raw"]["schedule"][0]["days"][0]
        assert out["progress"][CATEGORY] == {"completed": 0, "total": 4}

    def test_set_start_date_does_not_touch_progress(self) -> None:
        state = make_state()
        out = reducer.set_start_date(state, CATEGORY, "2024-05-01")
        assert out["plans"][CATEGORY]["startDate"] == "2024-05-01"
        assert out["progress"] == state["progress"]


class TestRouting:
    def _pattern_ref(self) -> PatternRef:
        return PatternRef(key=PARENT, week=1, day="1", pattern_name="Two Pointers", problem_keys=(TWO_SUM, THREE_SUM))

    def test_toggle_pattern_parent_sets_every_problem(self) -> None:
        state = routing.toggle_ref(make_state(), CATEGORY, self._pattern_ref())
        assert _tasks(state)[TWO_SUM]["completed"] is True
        assert _tasks(state)[THREE_SUM]["completed"] is True
        state = routing.toggle_ref(state, CATEGORY, self._pattern_ref())
        assert _tasks(state)[TWO_SUM]["completed"] is False

    def test_toggle_pattern_partially_done_completes_all(self) -> None:
        state = make_state(make_plan_state(tasks={TWO_SUM: {"completed": True}}))
        state = routing.toggle_ref(state, CATEGORY, self._pattern_ref())
        assert _tasks(state)[THREE_SUM]["completed"] is True
        assert _tasks(state)[TWO_SUM]["completed"] is True

    def test_problem_ref_lands_on_problem_key(self) -> None:
        state = routing.toggle_ref(make_state(), CATEGORY, ProblemRef(problem_key=TWO_SUM))
        assert _tasks(state)[TWO_SUM]["completed"] is True
        state = routing.rename_ref(state, CATEGORY, ProblemRef(problem_key=TWO_SUM), "Two Sum II")
        assert _tasks(state)[TWO_SUM]["titleOverride"] == "Two Sum II"
        assert PARENT not in _tasks(state)

    def test_nested_problem_subtask(self) -> None:
        state = routing.add_subtask_ref(make_state(), CATEGORY, ProblemRef(problem_key=TWO_SUM), "hash map", subtask_id="h")
        state = routing.add_subtask_ref(state, CATEGORY, ProblemRef(problem_key=TWO_SUM, subtask_id="h"), "edge cases", subtask_id="e")
        assert _tasks(state)[TWO_SUM]["subtasks"][0]["children"][0]["id"] == "e"
        state = routing.set_notes_ref(state, CATEGORY, ProblemRef(problem_key=TWO_SUM, subtask_id="e"), "negatives")
        assert _tasks(state)[TWO_SUM]["subtasks"][0]["children"][0]["notes"] == "negatives"
        state = routing.toggle_ref(state, CATEGORY, ProblemRef(problem_key=TWO_SUM, subtask_id="e"))
        assert _tasks(state)[TWO_SUM]["completed"] is True
        state = routing.remove_ref(state, CATEGORY, ProblemRef(problem_key=TWO_SUM, subtask_id="h"))
        assert _tasks(state)[TWO_SUM]["subtasks"] == []

    def test_add_under_pattern_adds_problem(self) -> None:
        state = routing.add_subtask_ref(make_state(), CATEGORY, self._pattern_ref(), "4Sum")
        problems = state["plans"][CATEGORY]["raw"]["schedule"][0]["days"][0]["patterns"][0]["problems"]
        assert problems == ["Two Sum", "3Sum", "4Sum"]

    def test_add_under_pattern_keeps_notes(self) -> None:
        state = routing.add_subtask_ref(make_state(), CATEGORY, self._pattern_ref(), "4Sum", notes="sort first")
        four_sum = make_key(CATEGORY, 1, "1", "Two Pointers", "4Sum")
        assert _tasks(state)[four_sum] == {"notes": "sort first"}

    def test_remove_pattern_parent(self) -> None:
        state = make_state(make_plan_state(tasks={TWO_SUM: {"completed": True}, READ_DOCS: {"notes": "keep"}}))
        out = routing.remove_ref(state, CATEGORY, self._pattern_ref())
        assert TWO_SUM not in _tasks(out)
        assert _tasks(out)[READ_DOCS] == {"notes": "keep"}
        assert "patterns" not in out["plans"][CATEGORY]["raw"]["schedule"][0]["days"][0]

    def test_own_subtask_ref(self) -> None:
        state = routing.add_subtask_ref(make_state(), CATEGORY, TaskRef(key=READ_DOCS), "ch1", subtask_id="c")
        state = routing.rename_ref(state, CATEGORY, SubtaskRef(key=READ_DOCS, subtask_id="c"), "Chapter 1")
        assert _tasks(state)[READ_DOCS]["subtasks"][0]["title"] == "Chapter 1"


class TestTrackerStore:
    def _store(self, **kwargs) -> TrackerStore:
        return TrackerStore(make_state(make_plan_state(start_date="2024-01-01")), **kwargs)

    def test_subscribers_receive_new_state(self) -> None:
        store = self._store()
        seen = []
        unsubscribe = store.subscribe(seen.append)
        store.toggle(CATEGORY, TaskRef(key=READ_DOCS))
        assert seen == [store.state]
        unsubscribe()
        store.toggle(CATEGORY, TaskRef(key=READ_DOCS))
        assert len(seen) == 1

    def test_unchanged_state_does_not_notify(self) -> None:
        store = self._store()
        seen = []
        store.subscribe(seen.append)
        store.toggle("unknown", TaskRef(key=READ_DOCS))
        assert seen == []

    def test_failing_subscriber_is_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        store = self._store()

        def boom(_state) -> None:
            raise OSError("disk full")

        seen = []
        store.subscribe(boom)
        store.subscribe(seen.append)
        with caplog.at_level(logging.ERROR, logger="plantracker.tracker.store"):
            store.toggle(CATEGORY, TaskRef(key=READ_DOCS))
        assert store.get_progress(CATEGORY) == Stats(1, 5)
        assert len(seen) == 1
        assert "subscriber" in caplog.text

    def test_import_rejects_invalid_plan(self) -> None:
        store = TrackerStore()
        with pytest.raises(ValueError, match="Invalid plan JSON"):
            store.import_plan(CATEGORY, {"title": "no schedule"})
        assert store.get_plan(CATEGORY) is None

    def test_sections_and_refs_end_to_end(self) -> None:
        store = self._store()
        parent = store.sections(CATEGORY)[0].tasks[0]
        store.toggle(CATEGORY, store.task_ref(CATEGORY, parent.key))
        assert store.sections(CATEGORY)[0].tasks[0].completed is True

        problem_id = parent.subtasks[0].id
        store.toggle(CATEGORY, store.subtask_ref(parent.key, problem_id))
        refreshed = store.sections(CATEGORY)[0].tasks[0]
        assert refreshed.subtasks[0].completed is False
        assert refreshed.completed is False

    def test_child_ref_under_pattern_parent(self) -> None:
        store = self._store()
        pattern = store.task_ref(CATEGORY, PARENT)
        assert isinstance(pattern, PatternRef)
        assert store.child_ref(CATEGORY, PARENT) == pattern
        assert store.child_ref(CATEGORY, PARENT, "missing") == pattern
        assert store.child_ref(CATEGORY, PARENT, f"k|{TWO_SUM}") == ProblemRef(problem_key=TWO_SUM)
        assert store.child_ref(CATEGORY, PARENT, f"k|{TWO_SUM}#s1") == ProblemRef(problem_key=TWO_SUM, subtask_id="s1")

    def test_child_ref_under_activity(self) -> None:
        store = self._store()
        assert store.child_ref(CATEGORY, READ_DOCS) == TaskRef(key=READ_DOCS)
        assert store.child_ref(CATEGORY, READ_DOCS, "missing") == SubtaskRef(key=READ_DOCS, subtask_id="missing")

    def test_orphan_under_pattern_becomes_problem(self) -> None:
        store = self._store()
        store.add_subtask(CATEGORY, store.child_ref(CATEGORY, PARENT, "missing"), "Orphan")
        parent = store.sections(CATEGORY)[0].tasks[0]
        assert [s.title for s in parent.subtasks] == ["Two Sum", "3Sum", "Orphan"]
        assert store.get_progress(CATEGORY) == Stats(0, 6)

    def test_strategy_default_and_override(self) -> None:
        from datetime import date

        store = self._store(strategy="current")
        today = date(2024, 1, 8)
        assert [s.id for s in store.sections(CATEGORY, today=today)] == ["2-8"]
        assert len(store.sections(CATEGORY, strategy="all", today=today)) == 3

    def test_tags_and_start(self) -> None:
        store = self._store()
        store.set_task_tags(CATEGORY, READ_DOCS, ["docs"])
        assert store.tags(CATEGORY) == ["docs", "Two Pointers"]
        assert store.is_started(CATEGORY) is False
        store.start(CATEGORY)
        assert store.is_started(CATEGORY) is True
