"""Gem metadata mirror: webhook ingestion and dependency snapshots."""

__version__ = "0.1.0"
