"""Command-line interface for inspecting a plan file.

Usage:
    python3 -m plantracker.cli sections plan.json
    python3 -m plantracker.cli sections plan.json --start-date 2024-01-01 --mode week
    python3 -m plantracker.cli sections plan.json --tag "Two Pointers" --query sum
    python3 -m plantracker.cli progress plan.json
    python3 -m plantracker.cli tags plan.json
    python3 -m plantracker.cli validate plan.json
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any

from plantracker.common.config import load_config, setup_logging
from plantracker.plan.periods import VIEW_MODES
from plantracker.plan.schedule import normalize_plan_input
from plantracker.tracker.store import TrackerStore


def _load_tracker(args: argparse.Namespace, cfg: dict) -> TrackerStore:
    try:
        data = json.loads(Path(args.plan).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        sys.exit(f"Cannot read plan {args.plan}: {exc}")
    tracker = TrackerStore(strategy=args.strategy or cfg.get("grouping", "all"))
    try:
        tracker.import_plan(args.category, data, args.start_date)
    except ValueError as exc:
        sys.exit(str(exc))
    return tracker


def _print_subtasks(nodes: list[Any], depth: int) -> None:
    for node in nodes:
        mark = "x" if node.completed else " "
        print(f"{'  ' * depth}- [{mark}] {node.title}")
        _print_subtasks(node.children, depth + 1)


def cmd_sections(args: argparse.Namespace, cfg: dict) -> None:
    tracker = _load_tracker(args, cfg)
    sections = tracker.sections(args.category, mode=args.mode, tag=args.tag, query=args.query)
    if not sections:
        print("No tasks match your filters." if args.tag or args.query else "No tasks in this plan.")
        return
    for sec in sections:
        heading = sec.day_label if args.mode == "day" else sec.title
        print(f"{heading}  ({sec.day_label} · {sec.date_label})  {sec.stats.completed}/{sec.stats.total} done")
        if sec.tags:
            print(f"  tags: {', '.join(sec.tags)}")
        for task in sec.tasks:
            mark = "x" if task.completed else " "
            print(f"  [{mark}] {task.display_title}")
            _print_subtasks(task.subtasks, 3)
        print()


def cmd_progress(args: argparse.Namespace, cfg: dict) -> None:
    tracker = _load_tracker(args, cfg)
    p = tracker.get_progress(args.category)
    pct = (100.0 * p.completed / p.total) if p.total else 0.0
    print(f"{p.completed}/{p.total} tasks done ({pct:.0f}%)")


def cmd_tags(args: argparse.Namespace, cfg: dict) -> None:
    tracker = _load_tracker(args, cfg)
    for tag in tracker.tags(args.category):
        print(tag)


def cmd_validate(args: argparse.Namespace, cfg: dict) -> None:
    try:
        data = json.loads(Path(args.plan).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        sys.exit(f"Invalid JSON: {exc}")
    plan = normalize_plan_input(data)
    if plan is None:
        sys.exit("Invalid Plan JSON: expected an object or array with non-empty schedule")
    days = sum(len(w.get("days") or []) for w in plan["schedule"])
    print(f"OK: {plan['title']!r}, {len(plan['schedule'])} week(s), {days} day(s)")


def main() -> None:
    parser = argparse.ArgumentParser(prog="plantracker", description="Inspect a study plan")
    parser.add_argument("--config", type=str, default=None, help="Path to config.yaml")
    parser.add_argument("--verbose", action="store_true", help="Enable logging to stderr and log file")

    sub = parser.add_subparsers(dest="command", required=True)

    def plan_parser(name: str, help_text: str) -> argparse.ArgumentParser:
        p = sub.add_parser(name, help=help_text)
        p.add_argument("plan", help="Plan JSON file")
        p.add_argument("--category", default="plan", help="Category id used in task keys")
        p.add_argument("--start-date", default=None, help="Plan start date (YYYY-MM-DD)")
        p.add_argument("--strategy", choices=["all", "current"], default=None)
        return p

    p_sections = plan_parser("sections", "Print sections with tasks and stats")
    p_sections.add_argument("--mode", choices=VIEW_MODES, default="day")
    p_sections.add_argument("--tag", default="")
    p_sections.add_argument("--query", default="")

    plan_parser("progress", "Overall plan progress")
    plan_parser("tags", "Tags available for filtering")
    sub.add_parser("validate", help="Check a plan file's shape").add_argument("plan")

    args = parser.parse_args()
    cfg = load_config(args.config) if args.config else {}
    if args.verbose and cfg:
        setup_logging(cfg)
    if not hasattr(args, "strategy"):
        args.strategy = None

    dispatch = {
        "sections": cmd_sections,
        "progress": cmd_progress,
        "tags": cmd_tags,
        "validate": cmd_validate,
    }
    dispatch[args.command](args, cfg)


if __name__ == "__main__":
    main()
