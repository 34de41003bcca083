"""Category list operations (pure; the caller persists the result)."""

from __future__ import annotations

import uuid
from typing import Any

Category = dict[str, Any]


def _new_id() -> str:
    return str(uuid.uuid4())


def add_category(categories: list[Category], name: str, color: str | None = None) -> list[Category]:
    """Prepend a category unless the name is blank or already used (case-insensitive)."""
    trimmed = (name or "").strip()
    if not trimmed:
        return categories
    if any(c.get("name", "").lower() == trimmed.lower() for c in categories):
        return categories
    cat: Category = {"id": _new_id(), "name": trimmed}
    if color:
        cat["color"] = color
    return [cat, *categories]


def remove_category(categories: list[Category], category_id: str) -> list[Category]:
    return [c for c in categories if c.get("id") != category_id]


def _normalize(item: Any) -> Category | None:
    if isinstance(item, str):
        return {"name": item}
    if isinstance(item, dict) and isinstance(item.get("name"), str):
        return {"name": item["name"], "id": item.get("id"), "color": item.get("color")}
    return None


def import_categories(categories: list[Category], data: Any) -> tuple[list[Category], int, int]:
    """Merge names/objects (or a list of them) into ``categories``.

    Returns ``(new_list, imported, skipped)``. Blank or duplicate names are
    skipped; new entries are placed first.
    """
    items = data if isinstance(data, list) else [data]
    normalized = [n for n in (_normalize(i) for i in items) if n]
    if not normalized:
        return categories, 0, 0

    existing = {c.get("name", "").lower() for c in categories}
    to_add: list[Category] = []
    skipped = 0
    for item in normalized:
        name = item["name"].strip()
        if not name or name.lower() in existing:
            skipped += 1
            continue
        existing.add(name.lower())
        cat: Category = {"id": str(item.get("id") or _new_id()), "name": name}
        if item.get("color"):
            cat["color"] = item["color"]
        to_add.append(cat)
    return [*to_add, *categories], len(to_add), skipped
