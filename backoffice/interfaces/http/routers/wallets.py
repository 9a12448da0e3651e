"""Read-only wallet views for auditing payouts."""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.core.security import AdminIdentity, get_current_admin
from backoffice.interfaces.http.deps import get_db_session
from backoffice.modules.wallets import WalletService
from backoffice.schemas import LedgerEntryResponse, LedgerResponse, WalletResponse

router = APIRouter()


@router.get("/{user_id}", response_model=WalletResponse)
async def get_wallet(
    user_id: str,
    admin: AdminIdentity = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db_session),
):
    snapshot = await WalletService.with_session(db).get_snapshot(user_id)
    if snapshot is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Wallet not found")
    return WalletResponse.model_validate(snapshot)


@router.get("/{user_id}/ledger", response_model=LedgerResponse)
async def get_ledger(
    user_id: str,
    transaction_id: Optional[str] = None,
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    admin: AdminIdentity = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db_session),
):
    entries = await WalletService.with_session(db).list_entries(
        user_id, limit=limit, offset=offset, transaction_id=transaction_id
    )
    return LedgerResponse(
        user_id=user_id,
        entries=[
            LedgerEntryResponse(
                id=entry.id,
                transaction_id=entry.transaction_id,
                entry_type=entry.entry_type.value,
                amount=entry.amount,
                balance_after=entry.balance_after,
                description=entry.description,
                created_at=entry.created_at,
            )
            for entry in entries
        ],
    )
