"""FastAPI dependencies for Inventory Audit API."""

from fastapi import HTTPException, Request

from inventory_audit.config import Settings, get_settings
from inventory_audit.services.history import HistoryStore
from inventory_audit.services.runner import JobRunner


def get_settings_dep() -> Settings:
    """Dependency for application settings."""
    return get_settings()


def get_runner(request: Request) -> JobRunner:
    """Dependency for the job runner built during application start-up."""
    runner = getattr(request.app.state, "runner", None)
    if runner is None:
        raise HTTPException(status_code=503, detail="Job runner not initialized")
    return runner


def get_history(request: Request) -> HistoryStore:
    """Dependency for the history store built during application start-up."""
    history = getattr(request.app.state, "history", None)
    if history is None:
        raise HTTPException(status_code=503, detail="History store not initialized")
    return history
