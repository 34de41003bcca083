"""Task keys and subtask routing references.

A task key is the only link between the immutable plan structure and the
mutable per-task metadata map::

    {category_id}__w{week}__d{day}__{slug(bucket)}__{slug(title)}

``day`` is embedded as-is (``"3-4"`` stays ``"3-4"``) so the day range can be
read back from the key.

Subtask views produced by the section builder carry a typed reference
(``TaskRef``, ``PatternRef``, ``SubtaskRef`` or ``ProblemRef``) saying which
metadata entry a mutation should land on. For JSON clients the same routing
is encoded in the view id: ``k|{problem_key}`` for a problem shown under a
pattern, ``k|{problem_key}#{sub_id}`` for a node inside that problem's tree.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Union

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")

KEY_SEP = "__"
PROBLEM_PREFIX = "k|"
NESTED_SEP = "#"

ACTIVITY_BUCKET = "activity"
PATTERN_BUCKET = "pattern"


def slugify(s: str) -> str:
    """Lowercase and collapse every run of non ``[a-z0-9]`` characters to ``-``."""
    return _NON_ALNUM_RE.sub("-", str(s).lower()).strip("-")


def make_key(category_id: str, week: int, day: str, bucket: str, title: str) -> str:
    return f"{category_id}{KEY_SEP}w{week}{KEY_SEP}d{day}{KEY_SEP}{slugify(bucket)}{KEY_SEP}{slugify(title)}"


@dataclass(frozen=True)
class ParsedKey:
    week: int
    day: str
    bucket_slug: str
    title_slug: str


def parse_key(key: str) -> ParsedKey | None:
    """Split a task key into its plan coordinates.

    Only the last four segments are read, so category ids containing ``__``
    still parse. Returns ``None`` for strings that are not task keys.
    """
    parts = key.split(KEY_SEP)
    if len(parts) < 5:
        return None
    w_part, d_part, bucket_slug, title_slug = parts[-4:]
    if not w_part.startswith("w") or not d_part.startswith("d"):
        return None
    try:
        week = int(w_part[1:])
    except ValueError:
        return None
    return ParsedKey(week=week, day=d_part[1:], bucket_slug=bucket_slug, title_slug=title_slug)


# ------------------------------------------------------------------
# Routing references
# ------------------------------------------------------------------

@dataclass(frozen=True)
class TaskRef:
    """A plain task (an activity or a problem addressed directly)."""

    key: str


@dataclass(frozen=True)
class PatternRef:
    """The synthetic parent task wrapping a pattern's problems."""

    key: str
    week: int
    day: str
    pattern_name: str
    problem_keys: tuple[str, ...] = ()


@dataclass(frozen=True)
class SubtaskRef:
    """A node inside a task's own subtask tree."""

    key: str
    subtask_id: str


@dataclass(frozen=True)
class ProblemRef:
    """A problem under a pattern parent, or a node in that problem's tree."""

    problem_key: str
    subtask_id: str | None = None


Ref = Union[TaskRef, PatternRef, SubtaskRef, ProblemRef]


def encode_subtask_id(ref: SubtaskRef | ProblemRef) -> str:
    if isinstance(ref, SubtaskRef):
        return ref.subtask_id
    if ref.subtask_id is None:
        return f"{PROBLEM_PREFIX}{ref.problem_key}"
    return f"{PROBLEM_PREFIX}{ref.problem_key}{NESTED_SEP}{ref.subtask_id}"


def decode_subtask_id(owner_key: str, sub_id: str) -> SubtaskRef | ProblemRef:
    """Turn a view id back into a reference.

    Ids without the ``k|`` prefix belong to the owning task's own tree.
    Encoded ids are split on the first ``#``.
    """
    if not sub_id.startswith(PROBLEM_PREFIX):
        return SubtaskRef(key=owner_key, subtask_id=sub_id)
    body = sub_id[len(PROBLEM_PREFIX):]
    problem_key, sep, rest = body.partition(NESTED_SEP)
    return ProblemRef(problem_key=problem_key, subtask_id=rest if sep else None)
