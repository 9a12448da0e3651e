"""Payout reconciliation workflow.

Every step that touches a transaction row and a wallet balance runs in its
own database transaction and holds the row lock (``SELECT ... FOR UPDATE``)
only for that step. Provider calls happen between steps with no lock held:

    approve:   lock -> route, debit, ``processing``, order number -> commit
               provider call (no lock)
               lock -> store acceptance            (accepted)
               lock -> ``failed`` + one refund     (error / timeout / anything else)
    callback:  verify -> record payload -> commit
               lock -> ``completed`` | ``failed`` + one refund | no-op
"""

from __future__ import annotations

import json
import logging
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backoffice.core.config import Settings
from backoffice.db.models import PaymentTransaction as TransactionModel
from backoffice.infrastructure.database.repositories.callback_repository import SqlCallbackRepository
from backoffice.infrastructure.database.repositories.transaction_repository import SqlTransactionRepository
from backoffice.modules.gateways.base import Acknowledgement, CallbackStatus, PayoutRequest, RawCallback
from backoffice.modules.gateways.exceptions import GatewayError
from backoffice.modules.gateways.registry import GatewayRegistry
from backoffice.modules.gateways.routing import select_gateway
from backoffice.modules.wallets.service import WalletService

from .exceptions import ConsistencyError, InvalidTransitionError, TransactionNotFoundError, ValidationError
from .models import (
    ApprovalResult,
    PayeeDetails,
    SweepReport,
    Transaction,
    TransactionCreateInput,
    TransactionStatus,
    TransactionType,
    ensure_transition,
)
from .repository import TransactionRepository

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _money(value: Any) -> Decimal:
    return Decimal(str(value)).quantize(CENT)


def _dump(response: Any) -> Optional[str]:
    if response is None:
        return None
    if isinstance(response, str):
        return response
    return json.dumps(response, default=str, ensure_ascii=False)


class ReconciliationService:
    """Owns every status change of a payment transaction."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        gateways: GatewayRegistry,
        *,
        currency: str = "INR",
        processing_timeout: timedelta = timedelta(minutes=30),
        replay_batch_size: int = 100,
        max_callback_attempts: int = 5,
    ) -> None:
        self._session_factory = session_factory
        self._gateways = gateways
        self._currency = currency
        self._processing_timeout = processing_timeout
        self._replay_batch_size = replay_batch_size
        self._max_callback_attempts = max_callback_attempts

    @classmethod
    def from_settings(
        cls,
        session_factory: async_sessionmaker[AsyncSession],
        gateways: GatewayRegistry,
        settings: Settings,
    ) -> "ReconciliationService":
        return cls(
            session_factory,
            gateways,
            currency=settings.currency,
            processing_timeout=timedelta(minutes=settings.reconciliation.processing_timeout_minutes),
            replay_batch_size=settings.reconciliation.replay_batch_size,
            max_callback_attempts=settings.reconciliation.max_callback_attempts,
        )

    # -- intake and queries -------------------------------------------------

    async def create_request(self, payload: TransactionCreateInput) -> Transaction:
        tx_type = TransactionType.parse(payload.type)
        try:
            amount = _money(payload.amount)
        except (InvalidOperation, ValueError) as exc:
            raise ValidationError(f"Invalid amount: {payload.amount!r}") from exc
        if amount <= 0:
            raise ValidationError("Amount must be greater than zero")
        payee = payload.payee or PayeeDetails()

        try:
            async with self._session_factory() as session, session.begin():
                model = await SqlTransactionRepository(session).create(
                    reference=payload.reference or f"TX{uuid.uuid4().hex[:16].upper()}",
                    user_id=payload.user_id,
                    type=tx_type.value,
                    amount=amount,
                    payment_method=payload.payment_method,
                    status=TransactionStatus.PENDING.value,
                    account_name=payee.account_name,
                    account_number=payee.account_number,
                    ifsc_code=payee.ifsc_code,
                    bank_code=payee.bank_code,
                    upi_id=payee.upi_id,
                )
                transaction = self._to_domain(model)
        except IntegrityError as exc:
            raise ValidationError(f"Reference {payload.reference!r} already exists") from exc
        logger.info("Recorded %s request %s for user %s", tx_type.value, transaction.id, transaction.user_id)
        return transaction

    async def get_transaction(self, transaction_id: str) -> Transaction:
        async with self._session_factory() as session:
            model = await SqlTransactionRepository(session).get(transaction_id)
            if model is None:
                raise TransactionNotFoundError(transaction_id)
            return self._to_domain(model)

    async def list_transactions(
        self,
        *,
        type: Optional[str] = None,
        status: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Transaction]:
        """Newest first. A missing filter matches every row."""
        filters = self._filters(type, status)
        async with self._session_factory() as session:
            rows = await SqlTransactionRepository(session).list_transactions(**filters, limit=limit, offset=offset)
            return [self._to_domain(row) for row in rows]

    async def count_transactions(self, *, type: Optional[str] = None, status: Optional[str] = None) -> int:
        filters = self._filters(type, status)
        async with self._session_factory() as session:
            return await SqlTransactionRepository(session).count_transactions(**filters)

    async def count_pending(self) -> int:
        async with self._session_factory() as session:
            return await SqlTransactionRepository(session).count_by_status(TransactionStatus.PENDING.value)

    # -- admin transitions --------------------------------------------------

    async def reject(self, transaction_id: str, remarks: Optional[str] = None) -> Transaction:
        async with self._session_factory() as session, session.begin():
            repository = SqlTransactionRepository(session)
            model = await self._lock(repository, transaction_id)
            current = TransactionStatus(model.status)
            if current is TransactionStatus.REJECTED:
                logger.info("Transaction %s already rejected", transaction_id)
                return self._to_domain(model)
            ensure_transition(current, TransactionStatus.REJECTED)
            model = await repository.update(
                model,
                status=TransactionStatus.REJECTED.value,
                remarks=remarks or "Rejected by admin",
            )
            transaction = self._to_domain(model)
        logger.info("Transaction %s rejected", transaction_id)
        return transaction

    async def approve(self, transaction_id: str, gateway: Optional[str] = None) -> ApprovalResult:
        async with self._session_factory() as session, session.begin():
            repository = SqlTransactionRepository(session)
            wallets = WalletService.with_session(session, self._currency)
            model = await self._lock(repository, transaction_id)
            current = TransactionStatus(model.status)
            if current is not TransactionStatus.PENDING:
                raise InvalidTransitionError(f"Transaction {transaction_id} is already {current.value}")
            ensure_transition(current, TransactionStatus.PROCESSING)

            tx_type = TransactionType.parse(model.type)
            payee = self._payee(model)
            route = select_gateway(tx_type, model.payment_method, payee, gateway, self._gateways.available())
            adapter = self._gateways.get(route)
            amount = _money(model.amount)
            started_at = _now()

            if tx_type is TransactionType.DEPOSIT:
                # settled in this step: processing -> completed without a commit in between
                ensure_transition(TransactionStatus.PROCESSING, TransactionStatus.COMPLETED)
                await wallets.credit(
                    user_id=model.user_id,
                    transaction_id=model.id,
                    amount=amount,
                    description="Bank deposit credited",
                )
                model = await repository.update(
                    model,
                    status=TransactionStatus.COMPLETED.value,
                    gateway=route,
                    processing_started_at=started_at,
                    remarks="Bank deposit credited",
                )
                logger.info("Deposit %s credited %s to user %s", model.id, amount, model.user_id)
                return ApprovalResult(self._to_domain(model), f"{amount} credited to wallet")

            if not adapter.external:
                ensure_transition(TransactionStatus.PROCESSING, TransactionStatus.COMPLETED)
                await wallets.debit(
                    user_id=model.user_id,
                    transaction_id=model.id,
                    amount=amount,
                    description="Bank withdraw debited",
                )
                model = await repository.update(
                    model,
                    status=TransactionStatus.COMPLETED.value,
                    gateway=route,
                    processing_started_at=started_at,
                    remarks="Bank withdraw debited",
                )
                logger.info("Manual bank withdrawal %s debited %s", model.id, amount)
                return ApprovalResult(self._to_domain(model), f"{amount} withdrawn from wallet")

            request = PayoutRequest(
                transaction_id=model.id,
                reference=model.reference,
                order_number=adapter.order_number(model.reference),
                amount=amount,
                payee=payee,
            )
            adapter.validate(request)
            await wallets.debit(
                user_id=model.user_id,
                transaction_id=model.id,
                amount=amount,
                description=f"Withdrawal via {route}",
            )
            await repository.update(
                model,
                status=TransactionStatus.PROCESSING.value,
                gateway=route,
                gateway_reference=request.order_number,
                processing_started_at=started_at,
                remarks=f"Payout queued for {route}",
            )
        logger.info("Transaction %s processing via %s, order %s", transaction_id, route, request.order_number)

        try:
            acceptance = await adapter.initiate(request)
        except GatewayError as exc:
            logger.error("Gateway %s rejected payout %s: %s", route, transaction_id, exc)
            return await self._fail_after_initiate(transaction_id, f"{route} payout failed: {exc}", exc.response)
        except Exception as exc:
            logger.exception("Unexpected error calling %s for %s", route, transaction_id)
            return await self._fail_after_initiate(transaction_id, f"{route} payout error: {exc}", str(exc))

        if not acceptance.accepted:
            return await self._fail_after_initiate(
                transaction_id, f"{route} did not accept the payout", acceptance.response
            )
        transaction = await self._record_acceptance(transaction_id, route, acceptance.response)
        return ApprovalResult(transaction, f"Payout sent to {route}, awaiting confirmation")

    async def _fail_after_initiate(self, transaction_id: str, reason: str, response: Any) -> ApprovalResult:
        try:
            transaction = await self.fail_payout(transaction_id, reason, response)
        except ConsistencyError as exc:
            # a callback settled it while the call was in flight
            logger.warning("Not failing %s after provider error: %s", transaction_id, exc)
            return ApprovalResult(await self.get_transaction(transaction_id), str(exc))
        return ApprovalResult(transaction, f"Payout failed, {transaction.amount} refunded to wallet")

    async def _record_acceptance(self, transaction_id: str, route: str, response: Any) -> Transaction:
        async with self._session_factory() as session, session.begin():
            repository = SqlTransactionRepository(session)
            model = await self._lock(repository, transaction_id)
            if model.status == TransactionStatus.PROCESSING.value:
                model = await repository.update(
                    model,
                    gateway_response=_dump(response),
                    remarks=f"Payout sent to {route}",
                )
            else:
                logger.info(
                    "Transaction %s already %s when %s acceptance arrived", transaction_id, model.status, route
                )
            return self._to_domain(model)

    # -- terminal transitions -----------------------------------------------

    async def complete_payout(
        self, transaction_id: str, response: Any = None, remarks: Optional[str] = None
    ) -> Transaction:
        async with self._session_factory() as session, session.begin():
            repository = SqlTransactionRepository(session)
            model = await self._lock(repository, transaction_id)
            model = await self._complete_locked(session, repository, model, response, remarks)
            return self._to_domain(model)

    async def fail_payout(self, transaction_id: str, reason: str, response: Any = None) -> Transaction:
        async with self._session_factory() as session, session.begin():
            repository = SqlTransactionRepository(session)
            model = await self._lock(repository, transaction_id)
            model = await self._fail_locked(session, repository, model, reason, response)
            return self._to_domain(model)

    async def _complete_locked(
        self,
        session: AsyncSession,
        repository: TransactionRepository,
        model: TransactionModel,
        response: Any,
        remarks: Optional[str],
    ) -> TransactionModel:
        current = TransactionStatus(model.status)
        if current is TransactionStatus.COMPLETED:
            return model
        if current is not TransactionStatus.PROCESSING:
            raise ConsistencyError(f"Transaction {model.id} is {current.value}, cannot complete")
        ensure_transition(current, TransactionStatus.COMPLETED)
        if model.type == TransactionType.DEPOSIT.value:
            await WalletService.with_session(session, self._currency).credit(
                user_id=model.user_id,
                transaction_id=model.id,
                amount=_money(model.amount),
            )
        model = await repository.update(
            model,
            status=TransactionStatus.COMPLETED.value,
            gateway_response=_dump(response) or model.gateway_response,
            remarks=remarks or "Gateway payout successful",
        )
        logger.info("Transaction %s completed", model.id)
        return model

    async def _fail_locked(
        self,
        session: AsyncSession,
        repository: TransactionRepository,
        model: TransactionModel,
        reason: str,
        response: Any,
    ) -> TransactionModel:
        current = TransactionStatus(model.status)
        if current is TransactionStatus.FAILED:
            return model
        if current is not TransactionStatus.PROCESSING:
            raise ConsistencyError(f"Transaction {model.id} is {current.value}, cannot fail")
        ensure_transition(current, TransactionStatus.FAILED)
        if model.type == TransactionType.WITHDRAW.value:
            await WalletService.with_session(session, self._currency).refund(
                user_id=model.user_id,
                transaction_id=model.id,
                amount=_money(model.amount),
                reason=reason[:255],
            )
        model = await repository.update(
            model,
            status=TransactionStatus.FAILED.value,
            gateway_response=_dump(response) or model.gateway_response,
            remarks=reason[:255],
        )
        logger.warning("Transaction %s failed and refunded: %s", model.id, reason)
        return model

    # -- webhooks -----------------------------------------------------------

    async def handle_callback(self, gateway: str, raw: RawCallback) -> Acknowledgement:
        """Verify, record, then apply a provider callback. Raises SignatureError before recording."""
        adapter = self._gateways.for_callback(gateway)
        status = adapter.verify_callback(raw)

        async with self._session_factory() as session, session.begin():
            record = await SqlCallbackRepository(session).record(
                gateway=status.gateway,
                order_reference=status.order_reference,
                status=status.status.value,
                amount=status.amount,
                payload=_dump(status.payload),
            )
            callback_id = record.id
        logger.info(
            "Recorded %s callback %s for order %s status=%s",
            gateway, callback_id, status.order_reference, status.status.value,
        )

        await self._process_callback(callback_id, status)
        return adapter.acknowledge()

    async def apply_callback(self, status: CallbackStatus) -> str:
        """Apply a verified callback outcome. Raises ConsistencyError when it cannot apply."""
        async with self._session_factory() as session, session.begin():
            return await self._apply_callback(session, status)

    async def _process_callback(self, callback_id: int, status: CallbackStatus) -> Optional[str]:
        try:
            async with self._session_factory() as session, session.begin():
                outcome = await self._apply_callback(session, status)
                await SqlCallbackRepository(session).mark_processed(
                    callback_id, outcome=outcome, processed_at=_now()
                )
            return outcome
        except ConsistencyError as exc:
            logger.warning("Ignoring %s callback %s: %s", status.gateway, callback_id, exc)
            async with self._session_factory() as session, session.begin():
                await SqlCallbackRepository(session).mark_processed(
                    callback_id, outcome="ignored", processed_at=_now()
                )
            return "ignored"
        except Exception as exc:
            logger.exception("Processing of %s callback %s deferred", status.gateway, callback_id)
            await self._record_callback_failure(callback_id, status, exc)
            return None

    async def _record_callback_failure(self, callback_id: int, status: CallbackStatus, exc: Exception) -> None:
        async with self._session_factory() as session, session.begin():
            repository = SqlCallbackRepository(session)
            attempts = await repository.record_failure(callback_id, error=repr(exc)[:1000])
            if attempts < self._max_callback_attempts:
                return
            # out of the replay queue; the row keeps the payload and last error
            await repository.mark_processed(callback_id, outcome="error", processed_at=_now())
        logger.error(
            "Gave up on %s callback %s for order %s after %s attempts, manual review needed",
            status.gateway, callback_id, status.order_reference, attempts,
        )

    async def _apply_callback(self, session: AsyncSession, status: CallbackStatus) -> str:
        repository = SqlTransactionRepository(session)
        model = await repository.get_by_gateway_reference(status.order_reference, for_update=True)
        if model is None:
            raise ConsistencyError(f"No transaction for order {status.order_reference}")
        if model.gateway != status.gateway:
            raise ConsistencyError(f"Order {status.order_reference} belongs to {model.gateway}, not {status.gateway}")
        if status.amount is not None and _money(status.amount) != _money(model.amount):
            raise ConsistencyError(
                f"Callback amount {status.amount} does not match transaction amount {model.amount}"
            )

        current = TransactionStatus(model.status)
        if status.status is TransactionStatus.PROCESSING:
            if current is TransactionStatus.PROCESSING:
                await repository.update(model, gateway_response=_dump(status.payload))
            return "in_progress"
        if status.status is current:
            logger.info("Duplicate %s callback for %s, already %s", status.gateway, model.id, current.value)
            return "duplicate"
        if current is not TransactionStatus.PROCESSING:
            if current is TransactionStatus.FAILED and status.status is TransactionStatus.COMPLETED:
                logger.error(
                    "Provider reports success for %s which was already failed and refunded; manual review needed",
                    model.id,
                )
            raise ConsistencyError(f"Transaction {model.id} is {current.value}, ignoring {status.status.value}")

        if status.status is TransactionStatus.COMPLETED:
            await self._complete_locked(
                session, repository, model, status.payload, f"{status.gateway} confirmed payout"
            )
            return "completed"
        await self._fail_locked(session, repository, model, f"{status.gateway} reported payout failure", status.payload)
        return "failed"

    # -- reconciliation sweep -----------------------------------------------

    async def replay_callbacks(self) -> int:
        """Re-run recorded callbacks whose processing was deferred by an error."""
        async with self._session_factory() as session:
            pending = await SqlCallbackRepository(session).list_unprocessed(self._replay_batch_size)
            statuses = [
                (
                    row.id,
                    CallbackStatus(
                        gateway=row.gateway,
                        order_reference=row.order_reference,
                        status=TransactionStatus(row.status),
                        amount=_money(row.amount) if row.amount is not None else None,
                        provider_reference=None,
                        payload=json.loads(row.payload),
                    ),
                )
                for row in pending
            ]
        replayed = 0
        for callback_id, status in statuses:
            if await self._process_callback(callback_id, status) is not None:
                replayed += 1
        if statuses:
            logger.info("Replayed %s of %s deferred callbacks", replayed, len(statuses))
        return replayed

    async def expire_stale(
        self, now: Optional[datetime] = None, older_than: Optional[timedelta] = None
    ) -> SweepReport:
        """Fail payouts stuck in ``processing`` that no provider ever accepted."""
        cutoff = (now or _now()) - (older_than or self._processing_timeout)
        async with self._session_factory() as session:
            stale = await SqlTransactionRepository(session).list_stale_processing(cutoff, self._replay_batch_size)
            candidates = [(row.id, row.gateway_response is None) for row in stale]

        expired: list[str] = []
        awaiting: list[str] = []
        for transaction_id, never_accepted in candidates:
            if not never_accepted:
                logger.warning("Transaction %s accepted by provider but still unconfirmed", transaction_id)
                awaiting.append(transaction_id)
                continue
            try:
                await self.fail_payout(transaction_id, "Payout not confirmed before timeout, refunded")
            except ConsistencyError as exc:
                logger.info("Skipping stale transaction %s: %s", transaction_id, exc)
                continue
            expired.append(transaction_id)

        replayed = await self.replay_callbacks()
        return SweepReport(expired=expired, awaiting_callback=awaiting, replayed=replayed)

    # -- helpers ------------------------------------------------------------

    @staticmethod
    def _filters(type: Optional[str], status: Optional[str]) -> dict[str, Optional[str]]:
        status_value = None
        if status:
            try:
                status_value = TransactionStatus(status.strip().lower()).value
            except ValueError as exc:
                raise ValidationError(f"Unsupported transaction status: {status!r}") from exc
        return {
            "type": TransactionType.parse(type).value if type else None,
            "status": status_value,
        }

    @staticmethod
    async def _lock(repository: TransactionRepository, transaction_id: str) -> TransactionModel:
        model = await repository.get(transaction_id, for_update=True)
        if model is None:
            raise TransactionNotFoundError(transaction_id)
        return model

    @staticmethod
    def _payee(model: TransactionModel) -> PayeeDetails:
        return PayeeDetails(
            account_name=model.account_name,
            account_number=model.account_number,
            ifsc_code=model.ifsc_code,
            bank_code=model.bank_code,
            upi_id=model.upi_id,
        )

    @classmethod
    def _to_domain(cls, model: TransactionModel) -> Transaction:
        return Transaction(
            id=model.id,
            reference=model.reference,
            user_id=model.user_id,
            type=TransactionType(model.type),
            amount=_money(model.amount),
            payment_method=model.payment_method,
            status=TransactionStatus(model.status),
            gateway=model.gateway,
            gateway_reference=model.gateway_reference,
            gateway_response=model.gateway_response,
            remarks=model.remarks,
            payee=cls._payee(model),
            processing_started_at=model.processing_started_at,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )
