"""JSON document files used as the persistence backend.

Each file holds one top-level object keyed by user id. Reads are lenient
(missing or corrupt files yield the caller's default), writes are atomic.
"""

from __future__ import annotations

import copy
import json
import logging
from pathlib import Path
from typing import Any

logger = logging.getLogger("plantracker.state")


def load_json(path: Path | str, default: Any) -> Any:
    """Load a JSON document. Returns a copy of ``default`` if missing or corrupt."""
    path = Path(path)
    if not path.exists():
        return copy.deepcopy(default)
    try:
        with open(path, encoding="utf-8") as fh:
            return json.load(fh)
    except (json.JSONDecodeError, OSError) as exc:
        logger.warning("Corrupt data file %s, resetting: %s", path, exc)
        return copy.deepcopy(default)


def save_json(path: Path | str, data: Any) -> None:
    """Atomically write a JSON document."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(".tmp")
    with open(tmp, "w", encoding="utf-8") as fh:
        json.dump(data, fh, indent=2, ensure_ascii=False)
    tmp.replace(path)
