"""Inventory Audit - batch ban check and valuation service."""

__version__ = "0.1.0"
