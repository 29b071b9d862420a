from __future__ import annotations

import asyncio
import logging
import os
from typing import List

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.rule_engine.config import load_config
from src.rule_engine.routers import health, proms, rules
from src.rule_engine.services.rules_sync import rules_sync_loop
from src.rule_engine.state import get_state, init_state

openapi_tags = [
    {"name": "Health", "description": "Service health and liveness."},
    {"name": "Proms", "description": "Prometheus instances whose rule files this service manages."},
    {"name": "Rules", "description": "Alerting rules and rendered Prometheus rule files."},
]

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Prometheus Rule Engine API",
    description=(
        "Stores Prometheus alerting rules per Prometheus instance in MongoDB, renders them as "
        "'ruleengine' rule groups and optionally keeps on-disk rule files in sync, reloading "
        "Prometheus when a file changes."
    ),
    version="0.1.0",
    openapi_tags=openapi_tags,
)

init_state(app, load_config())


@app.on_event("startup")
async def _on_startup() -> None:
    """Startup hook: connect to Mongo, validate connectivity, ensure indexes, and start the sync loop."""
    state = get_state(app)

    # Connect + verify early so a misconfigured Mongo doesn't silently break the sync loop.
    state.mongo.connect_app()
    if not state.mongo.ping():
        raise RuntimeError("Mongo connectivity check failed during startup. Verify RULE_ENGINE_MONGO_URI.")

    state.mongo.init_indexes()

    if state.config.rules_sync_enabled:
        app.state._rules_sync_shutdown = asyncio.Event()
        state.rules_sync_task = asyncio.create_task(rules_sync_loop(state, app.state._rules_sync_shutdown))
    else:
        logger.info("Rules sync disabled (RULES_SYNC_ENABLED=false)")


@app.on_event("shutdown")
async def _on_shutdown() -> None:
    """Shutdown hook: stop the sync loop and close Mongo connections."""
    state = get_state(app)

    sync_shutdown = getattr(app.state, "_rules_sync_shutdown", None)
    if sync_shutdown is not None:
        sync_shutdown.set()
    sync_task = state.rules_sync_task
    if sync_task is not None:
        try:
            await asyncio.wait_for(sync_task, timeout=5.0)
        except Exception:
            logger.exception("Error stopping rules sync task")

    state.mongo.close()


def _env_cors_origins() -> List[str]:
    # Comma-separated list, e.g. for an admin UI.
    raw = os.getenv("CORS_ALLOW_ORIGINS") or ""
    return [p.strip() for p in raw.split(",") if p.strip()]


allowed_origins: List[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]
allowed_origins.extend(_env_cors_origins())

# De-dupe while preserving order
_seen = set()
allowed_origins = [o for o in allowed_origins if not (o in _seen or _seen.add(o))]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(proms.router)
app.include_router(rules.router)
