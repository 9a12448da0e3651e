"""Payout reconciliation dependency providers."""

from functools import lru_cache

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backoffice.core.config import get_settings
from backoffice.modules.gateways import GatewayRegistry
from backoffice.modules.transactions.service import ReconciliationService

from .database import get_db_session_factory


@lru_cache()
def get_gateway_registry() -> GatewayRegistry:
    return GatewayRegistry.from_settings(get_settings())


def get_reconciliation_service(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_db_session_factory),
    registry: GatewayRegistry = Depends(get_gateway_registry),
) -> ReconciliationService:
    return ReconciliationService.from_settings(session_factory, registry, get_settings())


__all__ = [
    "get_gateway_registry",
    "get_reconciliation_service",
]
