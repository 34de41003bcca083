"""Pure operations over nested subtask trees.

A tree is a list of node dicts ``{id, title, completed?, notes?, children?}``.
Every function returns a new list and leaves its input untouched. Lookups
are depth-first in listed order; with duplicate ids the first match wins.

Completion rule, re-applied after every structural or completion change:
a node with children is completed iff all of its children are; leaves keep
whatever value was set on them explicitly.
"""

from __future__ import annotations

from typing import Any

Node = dict[str, Any]


def _kids(node: Node) -> list[Node]:
    return node.get("children") or []


def _with_children(node: Node, children: list[Node] | None) -> Node:
    out = dict(node)
    if children is None:
        out.pop("children", None)
    else:
        out["children"] = children
    return out


def find(tree: list[Node] | None, target_id: str) -> Node | None:
    for node in tree or []:
        if node.get("id") == target_id:
            return node
        found = find(node.get("children"), target_id)
        if found is not None:
            return found
    return None


def propagate(tree: list[Node] | None) -> list[Node]:
    """Recompute parent completion bottom-up over the whole tree."""
    out: list[Node] = []
    for node in tree or []:
        if "children" not in node:
            out.append(dict(node))
            continue
        children = propagate(node["children"])
        fixed = _with_children(node, children)
        if children:
            fixed["completed"] = all(bool(c.get("completed")) for c in children)
        out.append(fixed)
    return out


def mark_all(tree: list[Node] | None, value: bool) -> list[Node]:
    """Set ``completed`` on every node of the tree."""
    out = []
    for node in tree or []:
        fixed = dict(node)
        fixed["completed"] = value
        if "children" in node:
            fixed["children"] = mark_all(node["children"], value)
        out.append(fixed)
    return out


def _insert_under(tree: list[Node], parent_id: str, new_node: Node) -> tuple[list[Node], bool]:
    out: list[Node] = []
    found = False
    for node in tree:
        if not found and node.get("id") == parent_id:
            out.append(_with_children(node, [*_kids(node), new_node]))
            found = True
        elif not found and "children" in node:
            children, found = _insert_under(node["children"], parent_id, new_node)
            out.append(_with_children(node, children))
        else:
            out.append(node)
    return out, found


def insert(tree: list[Node] | None, new_node: Node, parent_id: str | None = None) -> list[Node]:
    """Append ``new_node`` under ``parent_id``, or as a root when no node matches."""
    tree = list(tree or [])
    if parent_id:
        updated, found = _insert_under(tree, parent_id, new_node)
        if found:
            return propagate(updated)
    return propagate([*tree, new_node])


def _apply_toggle(tree: list[Node], target_id: str, value: bool, cascade: bool) -> tuple[list[Node], bool]:
    out: list[Node] = []
    done = False
    for node in tree:
        if not done and node.get("id") == target_id:
            fixed = dict(node)
            fixed["completed"] = value
            if cascade:
                fixed["children"] = mark_all(node["children"], value)
            out.append(fixed)
            done = True
        elif not done and "children" in node:
            children, done = _apply_toggle(node["children"], target_id, value, cascade)
            out.append(_with_children(node, children))
        else:
            out.append(node)
    return out, done


def toggle(tree: list[Node] | None, target_id: str) -> list[Node]:
    """Flip a node; a node with children forces its whole subtree to the new value."""
    tree = list(tree or [])
    target = find(tree, target_id)
    if target is None:
        return tree
    value = not target.get("completed")
    toggled, _ = _apply_toggle(tree, target_id, value, cascade=bool(_kids(target)))
    return propagate(toggled)


def _remove(tree: list[Node], target_id: str) -> list[Node]:
    out = []
    for node in tree:
        if node.get("id") == target_id:
            continue
        if "children" in node:
            node = _with_children(node, _remove(node["children"], target_id))
        out.append(node)
    return out


def remove(tree: list[Node] | None, target_id: str) -> list[Node]:
    tree = list(tree or [])
    if find(tree, target_id) is None:
        return tree
    return propagate(_remove(tree, target_id))


def _set_field(tree: list[Node], target_id: str, field: str, value: Any) -> tuple[list[Node], bool]:
    out: list[Node] = []
    done = False
    for node in tree:
        if not done and node.get("id") == target_id:
            fixed = dict(node)
            fixed[field] = value
            out.append(fixed)
            done = True
        elif not done and "children" in node:
            children, done = _set_field(node["children"], target_id, field, value)
            out.append(_with_children(node, children))
        else:
            out.append(node)
    return out, done


def set_notes(tree: list[Node] | None, target_id: str, notes: str) -> list[Node]:
    updated, _ = _set_field(list(tree or []), target_id, "notes", notes)
    return updated


def rename(tree: list[Node] | None, target_id: str, title: str) -> list[Node]:
    updated, _ = _set_field(list(tree or []), target_id, "title", title)
    return updated
