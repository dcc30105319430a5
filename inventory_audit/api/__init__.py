"""HTTP API for Inventory Audit."""

from inventory_audit.api.routes import register_exception_handlers, router

__all__ = ["router", "register_exception_handlers"]
