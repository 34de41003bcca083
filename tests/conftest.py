"""Shared fixtures: sample plans, plan states and an API client on a temp data dir."""

from __future__ import annotations

import copy
import json
from pathlib import Path
from typing import Any
from unittest.mock import patch

import httpx
import pytest
import pytest_asyncio

REPO_DIR = Path(__file__).resolve().parent.parent

CATEGORY = "cat"

SAMPLE_PLAN: dict[str, Any] = {
    "title": "Test Plan",
    "schedule": [
        {
            "week": 1,
            "topic": "Arrays",
            "days": [
                {
                    "day": "1",
                    "patterns": [{"name": "Two Pointers", "problems": ["Two Sum", "3Sum"]}],
                    "activities": ["Read docs"],
                },
                {"day": "3-4", "activities": ["Practice"]},
            ],
        },
        {
            "week": 2,
            "days": [
                {"day": "8", "activities": ["Mock interview"]},
            ],
        },
    ],
}


def make_plan_state(raw: dict[str, Any] | None = None, start_date: str | None = None,
                    tasks: dict[str, Any] | None = None) -> dict[str, Any]:
    raw = copy.deepcopy(raw if raw is not None else SAMPLE_PLAN)
    return {"title": raw.get("title"), "startDate": start_date, "raw": raw, "tasks": tasks or {}}


def make_state(plan_state: dict[str, Any] | None = None, category_id: str = CATEGORY) -> dict[str, Any]:
    return {
        "started": {},
        "progress": {},
        "plans": {category_id: plan_state or make_plan_state()},
    }


@pytest.fixture()
def sample_plan() -> dict[str, Any]:
    return copy.deepcopy(SAMPLE_PLAN)


@pytest.fixture()
def config_file(tmp_path: Path) -> Path:
    """A config.yaml pointing at a temp data dir, with a small seed plan."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    seed = tmp_path / "seed.json"
    seed.write_text(json.dumps({"plans": [SAMPLE_PLAN]}), encoding="utf-8")
    config_content = f"""
data_dir: {tmp_path}/data
seed_plan: {seed}
log_dir: {tmp_path}/logs
log_level: INFO
grouping: all
"""
    path = config_dir / "config.yaml"
    path.write_text(config_content, encoding="utf-8")
    return path


@pytest_asyncio.fixture()
async def client(config_file: Path):
    """Async httpx client bound to the FastAPI app with a temp data dir."""
    with patch("plantracker.api.routes.CONFIG_PATH", config_file):
        from plantracker.api.app import create_app

        transport = httpx.ASGITransport(app=create_app())
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
            yield c
