"""Dispatch view-level actions to the metadata entry a reference points at."""

from __future__ import annotations

from plantracker.plan.keys import PatternRef, ProblemRef, Ref, SubtaskRef, TaskRef, make_key
from plantracker.tracker import reducer
from plantracker.tracker.reducer import State


def toggle_ref(state: State, category_id: str, ref: Ref) -> State:
    if isinstance(ref, PatternRef):
        return reducer.toggle_pattern(state, category_id, ref.key, ref.problem_keys)
    if isinstance(ref, SubtaskRef):
        return reducer.toggle_subtask(state, category_id, ref.key, ref.subtask_id)
    if isinstance(ref, ProblemRef):
        if ref.subtask_id is None:
            return reducer.toggle_task(state, category_id, ref.problem_key)
        return reducer.toggle_subtask(state, category_id, ref.problem_key, ref.subtask_id)
    return reducer.toggle_task(state, category_id, ref.key)


def remove_ref(state: State, category_id: str, ref: Ref) -> State:
    if isinstance(ref, PatternRef):
        return reducer.remove_pattern(
            state, category_id, ref.key, ref.week, ref.day, ref.pattern_name, ref.problem_keys
        )
    if isinstance(ref, SubtaskRef):
        return reducer.remove_subtask(state, category_id, ref.key, ref.subtask_id)
    if isinstance(ref, ProblemRef):
        if ref.subtask_id is None:
            return reducer.remove_task(state, category_id, ref.problem_key)
        return reducer.remove_subtask(state, category_id, ref.problem_key, ref.subtask_id)
    return reducer.remove_task(state, category_id, ref.key)


def rename_ref(state: State, category_id: str, ref: Ref, title: str) -> State:
    if isinstance(ref, SubtaskRef):
        return reducer.rename_subtask(state, category_id, ref.key, ref.subtask_id, title)
    if isinstance(ref, ProblemRef):
        if ref.subtask_id is None:
            return reducer.rename_task(state, category_id, ref.problem_key, title)
        return reducer.rename_subtask(state, category_id, ref.problem_key, ref.subtask_id, title)
    return reducer.rename_task(state, category_id, ref.key, title)


def set_notes_ref(state: State, category_id: str, ref: Ref, notes: str) -> State:
    if isinstance(ref, SubtaskRef):
        return reducer.set_subtask_notes(state, category_id, ref.key, ref.subtask_id, notes)
    if isinstance(ref, ProblemRef):
        if ref.subtask_id is None:
            return reducer.set_task_notes(state, category_id, ref.problem_key, notes)
        return reducer.set_subtask_notes(state, category_id, ref.problem_key, ref.subtask_id, notes)
    return reducer.set_task_notes(state, category_id, ref.key, notes)


def add_subtask_ref(
    state: State,
    category_id: str,
    ref: Ref,
    title: str,
    notes: str | None = None,
    subtask_id: str | None = None,
) -> State:
    """Add a child under whatever ``ref`` names.

    Under a pattern parent the new child is a new problem in that pattern.
    """
    if isinstance(ref, PatternRef):
        out = reducer.add_task(state, category_id, ref.week, ref.day, "problem", title, ref.pattern_name)
        if notes:
            problem_key = make_key(category_id, ref.week, ref.day, ref.pattern_name, title)
            out = reducer.set_task_notes(out, category_id, problem_key, notes)
        return out
    if isinstance(ref, SubtaskRef):
        return reducer.add_subtask(state, category_id, ref.key, title, notes, ref.subtask_id, subtask_id)
    if isinstance(ref, ProblemRef):
        return reducer.add_subtask(state, category_id, ref.problem_key, title, notes, ref.subtask_id, subtask_id)
    if isinstance(ref, TaskRef):
        return reducer.add_subtask(state, category_id, ref.key, title, notes, None, subtask_id)
    raise TypeError(f"Unsupported reference: {ref!r}")
