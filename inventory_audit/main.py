"""Inventory Audit - FastAPI application."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from inventory_audit.api.routes import register_exception_handlers, router
from inventory_audit.config import get_settings
from inventory_audit.services.broadcaster import EventBroadcaster
from inventory_audit.services.history import HistoryStore, create_history_store
from inventory_audit.services.item_processor import ItemProcessor, create_item_processor
from inventory_audit.services.job_store import JobStore
from inventory_audit.services.notifier import Notifier
from inventory_audit.services.runner import JobRunner

logger = logging.getLogger(__name__)


def build_runner(
    processor: Optional[ItemProcessor] = None,
    history: Optional[HistoryStore] = None,
    notifier: Optional[Notifier] = None,
) -> JobRunner:
    """Wire store, broadcaster, notifier, history and processor into a runner."""
    settings = get_settings()
    store = JobStore(retention_seconds=settings.job_retention_seconds)
    broadcaster = EventBroadcaster(store)
    if notifier is None:
        notifier = Notifier(
            default_target=settings.notify_webhook_url,
            timeout=settings.notify_timeout_seconds,
        )
    notifier.broadcaster = broadcaster
    return JobRunner(
        store=store,
        broadcaster=broadcaster,
        processor=processor or create_item_processor(),
        notifier=notifier,
        history=history or create_history_store(),
    )


def create_app(
    processor: Optional[ItemProcessor] = None,
    history: Optional[HistoryStore] = None,
    notifier: Optional[Notifier] = None,
) -> FastAPI:
    """Build the application; collaborators can be swapped in for tests."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup and shutdown logic."""
        settings = get_settings()
        logging.basicConfig(level=settings.log_level)
        logger.info(f"Starting Inventory Audit on port {settings.port}")

        runner = build_runner(processor=processor, history=history, notifier=notifier)
        app.state.runner = runner
        app.state.history = runner.history
        logger.info(f"Job retention window: {settings.job_retention_seconds}s")

        yield

        # Shutdown
        logger.info("Shutting down Inventory Audit")
        await runner.shutdown()
        runner.store.close()
        if runner.notifier is not None:
            await runner.notifier.drain()

    app = FastAPI(
        title="Inventory Audit API",
        description="Batch ban check and inventory valuation with live progress",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)
    app.include_router(router)
    return app


app = create_app()


if __name__ == "__main__":
    settings = get_settings()
    uvicorn.run("inventory_audit.main:app", host=settings.host, port=settings.port)
