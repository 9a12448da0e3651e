"""Payment provider callback endpoints."""
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status

from backoffice.interfaces.http.deps import get_reconciliation_service
from backoffice.modules.gateways import RawCallback, SignatureError
from backoffice.modules.transactions.service import ReconciliationService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/{gateway}")
async def receive_callback(
    gateway: str,
    request: Request,
    service: ReconciliationService = Depends(get_reconciliation_service),
):
    raw = RawCallback(
        body=await request.body(),
        headers=dict(request.headers),
        content_type=request.headers.get("content-type", ""),
    )
    try:
        ack = await service.handle_callback(gateway, raw)
    except SignatureError as exc:
        client = request.client.host if request.client else "unknown"
        logger.warning("Rejected %s callback from %s: %s", gateway, client, exc)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid callback signature") from exc
    return Response(content=ack.content, media_type=ack.media_type)
