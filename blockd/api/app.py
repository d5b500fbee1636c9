"""
FastAPI application — local API the Blockd browser extension talks to.
Runs on http://127.0.0.1:8766 by default.

The service graph (store, scheduler, tab directory, rule installer, service)
lives on app.state so that each call to create_app() produces a fully
independent instance with no shared module-level globals.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from ..browser.rule_installer import PolledRuleInstaller
from ..browser.tabs import ExtensionTabDirectory
from ..config import config
from ..core.clock import AsyncioScheduler, Clock, SystemClock
from ..core.store import SqliteStore
from ..service import BlockdService

logger = logging.getLogger(__name__)

VERSION = "0.1.0"


# ---------------------------------------------------------------------------
# Background tick loop
# ---------------------------------------------------------------------------

async def _tick_loop(service: BlockdService, interval_s: float) -> None:
    while True:
        await asyncio.sleep(interval_s)
        try:
            service.tick()
        except Exception:
            logger.exception("Periodic tick failed")


# ---------------------------------------------------------------------------
# Lifespan — initialises and tears down all per-app state
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    store = SqliteStore(app.state.store_path)
    scheduler = AsyncioScheduler(asyncio.get_running_loop())
    app.state.scheduler = scheduler
    app.state.tabs = ExtensionTabDirectory()
    app.state.installer = PolledRuleInstaller()
    app.state.service = BlockdService(
        app.state.clock,
        scheduler,
        store,
        app.state.tabs,
        app.state.installer,
        block_page_url=config.block_page_url,
        challenge_ttl_s=config.challenge_ttl_s,
        usage_retention_days=config.usage_retention_days,
    )
    app.state.service.start()

    tick_task = asyncio.create_task(_tick_loop(app.state.service, config.flush_interval_s))

    yield

    tick_task.cancel()
    try:
        await tick_task
    except asyncio.CancelledError:
        pass
    app.state.service.shutdown()
    scheduler.cancel_all()


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------

def create_app(store_path: Optional[Path] = None, clock: Optional[Clock] = None) -> FastAPI:
    app = FastAPI(
        title="Blockd",
        description="Local site blocking and browsing time engine",
        version=VERSION,
        lifespan=lifespan,
    )
    app.state.store_path = store_path or config.data_dir / config.store_db
    app.state.clock = clock or SystemClock()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["null"],
        allow_origin_regex=r"^(chrome|moz)-extension://.*$",
        allow_methods=["*"],
        allow_headers=["*"],
    )

    from .routers import commands, events, rules, settings, tabs, usage

    app.include_router(commands.router)
    app.include_router(events.router)
    app.include_router(rules.router)
    app.include_router(tabs.router)
    app.include_router(usage.router)
    app.include_router(settings.router)

    @app.get("/health")
    def health(request: Request):
        service = getattr(request.app.state, "service", None)
        if service is None:
            return {"status": "starting", "version": VERSION}
        return {
            "status": "ok",
            "version": VERSION,
            "activeRules": len(service.rules.current),
            "focusActive": service.focus.is_active(),
        }

    return app


app = create_app()
