"""Load and validate plantracker configuration from config.yaml."""

from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger("plantracker")

_DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent.parent.parent / "config" / "config.yaml"

GROUPING_STRATEGIES = ("all", "current")

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

_DEFAULTS: dict[str, Any] = {
    "data_dir": "data",
    "seed_plan": None,
    "log_dir": "logs",
    "log_level": "INFO",
    "log_file": "plantracker.log",
    "log_max_bytes": 5_000_000,
    "log_backups": 3,
    "grouping": "all",
    "cors_origins": ["http://localhost:5173", "http://127.0.0.1:5173"],
}

# env var -> (config key, converter)
_ENV_KEYS: dict[str, tuple[str, Any]] = {
    "PLANTRACKER_DATA_DIR": ("data_dir", str),
    "PLANTRACKER_SEED_PLAN": ("seed_plan", str),
    "PLANTRACKER_LOG_DIR": ("log_dir", str),
    "PLANTRACKER_LOG_LEVEL": ("log_level", str),
    "PLANTRACKER_GROUPING": ("grouping", str),
    "PLANTRACKER_CORS_ORIGINS": ("cors_origins", lambda v: [o.strip() for o in v.split(",") if o.strip()]),
}


def load_config(config_path: Path | str | None = None) -> dict[str, Any]:
    """Load configuration from a YAML file, then apply ``PLANTRACKER_*`` env overrides.

    Relative paths resolve against the directory above the config file
    (the repository root for the bundled ``config/config.yaml``).
    """
    path = Path(config_path) if config_path else _DEFAULT_CONFIG_PATH
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path, encoding="utf-8") as fh:
        loaded = yaml.safe_load(fh) or {}
    if not isinstance(loaded, dict):
        raise ValueError(f"Config file {path} must contain a mapping")

    cfg: dict[str, Any] = {**_DEFAULTS, **loaded}
    _apply_env(cfg, os.environ)
    _resolve_paths(cfg, path.parent.parent)
    _validate(cfg)
    return cfg


def _apply_env(cfg: dict[str, Any], environ: Any) -> None:
    for env_key, (cfg_key, convert) in _ENV_KEYS.items():
        raw = environ.get(env_key)
        if raw is not None and raw != "":
            cfg[cfg_key] = convert(raw)


def _resolve_paths(cfg: dict[str, Any], base: Path) -> None:
    for key in ("data_dir", "log_dir", "seed_plan"):
        val = cfg.get(key)
        if not val:
            continue
        p = Path(os.path.expanduser(str(val)))
        cfg[key] = str(p if p.is_absolute() else base / p)


def _validate(cfg: dict[str, Any]) -> None:
    """Reject unknown strategies and bad logging settings; warn about a missing seed plan."""
    if cfg["grouping"] not in GROUPING_STRATEGIES:
        raise ValueError(
            f"Unknown grouping strategy {cfg['grouping']!r}, expected one of {GROUPING_STRATEGIES}"
        )

    level = str(cfg.get("log_level", "INFO")).upper()
    if not isinstance(getattr(logging, level, None), int):
        raise ValueError(f"Invalid log_level: {cfg.get('log_level')!r}")
    cfg["log_level"] = level

    for key in ("log_max_bytes", "log_backups"):
        if not isinstance(cfg.get(key), int) or cfg[key] < 0:
            raise ValueError(f"{key} must be a non-negative integer, got {cfg.get(key)!r}")

    seed = cfg.get("seed_plan")
    if seed and not Path(seed).is_file():
        logger.warning("Seed plan not found at %s; new users will start empty", seed)


def setup_logging(cfg: dict[str, Any]) -> logging.Logger:
    """Attach stderr and rotating-file handlers to the ``plantracker`` logger.

    Calling it again replaces the handlers it added before instead of
    stacking duplicates.
    """
    log_dir = Path(cfg["log_dir"])
    log_dir.mkdir(parents=True, exist_ok=True)

    app_logger = logging.getLogger("plantracker")
    app_logger.setLevel(cfg.get("log_level", "INFO"))
    for handler in [h for h in app_logger.handlers if getattr(h, "_plantracker", False)]:
        app_logger.removeHandler(handler)
        handler.close()

    fmt = logging.Formatter(LOG_FORMAT)
    handlers: list[logging.Handler] = [
        logging.StreamHandler(),
        RotatingFileHandler(
            log_dir / cfg.get("log_file", "plantracker.log"),
            maxBytes=cfg.get("log_max_bytes", 5_000_000),
            backupCount=cfg.get("log_backups", 3),
            encoding="utf-8",
        ),
    ]
    for handler in handlers:
        handler.setFormatter(fmt)
        handler._plantracker = True  # type: ignore[attr-defined]
        app_logger.addHandler(handler)
    return app_logger
