"""Admin endpoints for reviewing and settling deposit/withdraw requests."""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from backoffice.core.security import AdminIdentity, get_current_admin
from backoffice.interfaces.http.deps import get_reconciliation_service
from backoffice.modules.transactions import (
    PayeeDetails,
    Transaction,
    TransactionCreateInput,
    TransactionNotFoundError,
    ValidationError,
)
from backoffice.modules.transactions.service import ReconciliationService
from backoffice.schemas import (
    PayeeSchema,
    PendingCountResponse,
    ReconcileResponse,
    TransactionActionResponse,
    TransactionCreate,
    TransactionListResponse,
    TransactionResponse,
    TransactionStatusUpdate,
)

router = APIRouter()

APPROVE_ACTIONS = {"completed", "approved"}


def _to_schema(transaction: Transaction) -> TransactionResponse:
    return TransactionResponse(
        id=transaction.id,
        reference=transaction.reference,
        user_id=transaction.user_id,
        type=transaction.type.value,
        amount=transaction.amount,
        payment_method=transaction.payment_method,
        status=transaction.status.value,
        gateway=transaction.gateway,
        gateway_reference=transaction.gateway_reference,
        gateway_response=transaction.gateway_response,
        remarks=transaction.remarks,
        payee=PayeeSchema.model_validate(transaction.payee),
        processing_started_at=transaction.processing_started_at,
        created_at=transaction.created_at,
        updated_at=transaction.updated_at,
    )


@router.get("/", response_model=TransactionListResponse)
async def list_transactions(
    type: Optional[str] = None,
    status_filter: Optional[str] = Query(default=None, alias="status"),
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    admin: AdminIdentity = Depends(get_current_admin),
    service: ReconciliationService = Depends(get_reconciliation_service),
):
    try:
        items = await service.list_transactions(type=type, status=status_filter, limit=limit, offset=offset)
        total = await service.count_transactions(type=type, status=status_filter)
    except ValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return TransactionListResponse(total=total, transactions=[_to_schema(item) for item in items])


@router.get("/count", response_model=PendingCountResponse)
async def count_pending(
    admin: AdminIdentity = Depends(get_current_admin),
    service: ReconciliationService = Depends(get_reconciliation_service),
):
    return PendingCountResponse(pending=await service.count_pending())


@router.post("/", response_model=TransactionResponse, status_code=status.HTTP_201_CREATED)
async def create_transaction(
    payload: TransactionCreate,
    admin: AdminIdentity = Depends(get_current_admin),
    service: ReconciliationService = Depends(get_reconciliation_service),
):
    try:
        transaction = await service.create_request(
            TransactionCreateInput(
                user_id=payload.user_id,
                type=payload.type,
                amount=payload.amount,
                payment_method=payload.payment_method,
                reference=payload.reference,
                payee=PayeeDetails(**payload.payee.model_dump()),
            )
        )
    except ValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return _to_schema(transaction)


@router.post("/reconcile", response_model=ReconcileResponse)
async def reconcile(
    admin: AdminIdentity = Depends(get_current_admin),
    service: ReconciliationService = Depends(get_reconciliation_service),
):
    report = await service.expire_stale()
    return ReconcileResponse(
        expired=report.expired,
        awaiting_callback=report.awaiting_callback,
        replayed=report.replayed,
    )


@router.get("/{transaction_id}", response_model=TransactionResponse)
async def get_transaction(
    transaction_id: str,
    admin: AdminIdentity = Depends(get_current_admin),
    service: ReconciliationService = Depends(get_reconciliation_service),
):
    try:
        transaction = await service.get_transaction(transaction_id)
    except TransactionNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Transaction not found") from exc
    return _to_schema(transaction)


@router.put("/{transaction_id}/status", response_model=TransactionActionResponse)
async def update_status(
    transaction_id: str,
    payload: TransactionStatusUpdate,
    admin: AdminIdentity = Depends(get_current_admin),
    service: ReconciliationService = Depends(get_reconciliation_service),
):
    try:
        if payload.status in APPROVE_ACTIONS:
            result = await service.approve(transaction_id, gateway=payload.gateway)
            transaction, message = result.transaction, result.message
        else:
            transaction = await service.reject(transaction_id, remarks=payload.remarks)
            message = "Transaction rejected"
    except TransactionNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Transaction not found") from exc
    except ValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return TransactionActionResponse(message=message, transaction=_to_schema(transaction))
