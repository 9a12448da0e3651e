"""Reusable FastAPI dependencies."""

from .database import get_db_session, get_db_session_factory
from .reconciliation import get_gateway_registry, get_reconciliation_service

__all__ = [
    "get_db_session",
    "get_db_session_factory",
    "get_gateway_registry",
    "get_reconciliation_service",
]
