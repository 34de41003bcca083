#!/usr/bin/env python3
"""plantracker HTTP API.

Run with:
    python3 -m uvicorn plantracker.api.app:app --host 0.0.0.0 --port 8787
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from plantracker.api import routes
from plantracker.common.config import load_config

logger = logging.getLogger("plantracker.api")


def _cors_origins() -> list[str]:
    try:
        cfg: dict[str, Any] = load_config(routes.CONFIG_PATH)
    except (FileNotFoundError, ValueError) as exc:
        logger.warning("Config unavailable, using default CORS origins: %s", exc)
        return ["http://localhost:5173"]
    return list(cfg.get("cors_origins") or [])


def create_app() -> FastAPI:
    application = FastAPI(title="plantracker", version="1.0.0")
    application.add_middleware(
        CORSMiddleware,
        allow_origins=_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    application.include_router(routes.router)
    return application


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "plantracker.api.app:app",
        host="0.0.0.0",
        port=8787,
        reload=False,
        log_level="info",
    )
