"""Execution-log ingestion and analytics engine."""

__version__ = "1.0.0"
