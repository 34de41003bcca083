from __future__ import annotations

from plantracker.plan.keys import make_key
from plantracker.plan.progress import Stats, compute_stats, count_leaves, plan_progress

from tests.conftest import CATEGORY, make_plan_state


def leaf(completed: bool = False) -> dict:
    return {"id": "x", "title": "x", "completed": completed}


class TestComputeStats:
    def test_task_without_subtasks_counts_once(self) -> None:
        assert compute_stats([{"completed": False}]) == Stats(0, 1)
        assert compute_stats([{"completed": True}]) == Stats(1, 1)

    def test_only_leaf_subtasks_count(self) -> None:
        task = {
            "completed": False,
            "subtasks": [
                # internal node marked complete contributes nothing itself
                {"id": "p", "completed": True, "children": [leaf(True), leaf(False)]},
                leaf(True),
            ],
        }
        assert compute_stats([task]) == Stats(2, 3)

    def test_task_with_subtasks_ignores_own_flag(self) -> None:
        assert compute_stats([{"completed": True, "subtasks": [leaf(False)]}]) == Stats(0, 1)

    def test_n_leaves_k_completed(self) -> None:
        subs = [leaf(i < 3) for i in range(7)]
        assert compute_stats([{"completed": False, "subtasks": subs}]) == Stats(3, 7)

    def test_mixed_tasks(self) -> None:
        tasks = [
            {"completed": True},
            {"completed": False, "subtasks": [leaf(True), leaf(True)]},
        ]
        assert compute_stats(tasks) == Stats(3, 3)

    def test_empty(self) -> None:
        assert compute_stats([]) == Stats(0, 0)

    def test_count_leaves_deep(self) -> None:
        deep = [{"id": "a", "children": [{"id": "b", "children": [{"id": "c", "completed": True}]}]}]
        assert count_leaves(deep) == Stats(1, 1)


class TestPlanProgress:
    def test_counts_problems_and_activities(self) -> None:
        # 2 problems + 1 activity on day 1, 1 activity on day 3-4, 1 in week 2
        assert plan_progress(CATEGORY, make_plan_state()) == Stats(0, 5)

    def test_uses_task_metadata(self) -> None:
        two_sum = make_key(CATEGORY, 1, "1", "Two Pointers", "Two Sum")
        read = make_key(CATEGORY, 1, "1", "activity", "Read docs")
        tasks = {
            two_sum: {"completed": True},
            read: {"completed": False, "subtasks": [leaf(True), leaf(False), leaf(False)]},
        }
        assert plan_progress(CATEGORY, make_plan_state(tasks=tasks)) == Stats(2, 7)

    def test_missing_plan(self) -> None:
        assert plan_progress(CATEGORY, None) == Stats()

    def test_stats_to_dict(self) -> None:
        assert Stats(1, 2).to_dict() == {"completed": 1, "total": 2}

    def test_integer_day_and_missing_week_do_not_raise(self) -> None:
        raw = {"title": "x", "schedule": [
            {"week": 1, "days": [{"day": 2, "activities": ["Read"]}]},
            {"days": [{"day": "1", "activities": ["Loose"]}]},
        ]}
        done = make_key(CATEGORY, 1, "2", "activity", "Read")
        assert plan_progress(CATEGORY, make_plan_state(raw, tasks={done: {"completed": True}})) == Stats(1, 2)
