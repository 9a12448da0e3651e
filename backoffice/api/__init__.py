from fastapi import APIRouter

from backoffice.interfaces.http.routers import transactions, wallets, webhooks


def create_api_router(prefix: str = "") -> APIRouter:
    router = APIRouter(prefix=prefix)
    router.include_router(transactions.router, prefix="/transactions", tags=["transactions"])
    router.include_router(wallets.router, prefix="/wallets", tags=["wallets"])
    router.include_router(webhooks.router, prefix="/webhooks", tags=["webhooks"])
    return router


__all__ = [
    "create_api_router",
]
