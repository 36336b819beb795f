"""
Deposit workflow: fiat deposits through the payment processor.

A deposit is credited from two independent entry points, the client's
confirm call and the processor's webhook. Both go through `_complete`,
which moves the deposit out of an open status with a conditional UPDATE
and credits the ledger in the same database transaction. Whichever caller
wins the transition credits; the other sees zero affected rows.
"""

import math
from decimal import Decimal
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.exceptions.base import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    PaymentNotCompletedError,
    UnexpectedError,
)
from src.core.exceptions.handler import ServiceError, ServiceErrorCode
from src.core.logger.logger import get_logger
from src.core.service.ledger.balance_ledger import BalanceLedger, LedgerEntry, to_money
from src.core.service.payments.events import (
    PaymentFailedEvent,
    PaymentSucceededEvent,
    WebhookEvent,
)
from src.core.service.payments.models import DepositConfirmed, DepositCreated, DepositPage, DepositView
from src.core.service.payments.stripe_client import PaymentProcessor
from src.infra.models import DepositStatus, OPEN_DEPOSIT_STATUSES
from src.infra.repository.deposit_repository import DepositRepository
from src.infra.repository.user_repository import UserRepository

logger = get_logger(__name__)

PENDING_INTENT_STATUSES = ("processing", "requires_action")


class DepositService:

    def __init__(self, session: AsyncSession, payment_processor: PaymentProcessor):
        self.session = session
        self.payment_processor = payment_processor
        self.users = UserRepository(session)
        self.deposits = DepositRepository(session)

    async def create_deposit(
        self,
        wallet_address: str,
        amount: Decimal,
        currency: str = "usd",
        description: Optional[str] = None
    ) -> DepositCreated:
        """Create a payment intent and a PENDING deposit for it"""
        try:
            user = await self.users.get_or_create(wallet_address)
            value = to_money(amount)

            intent = await self.payment_processor.create_intent(
                value,
                currency,
                {"user_wallet": user.wallet_address, "description": description}
            )

            try:
                deposit = await self.deposits.create(
                    user_id=user.id,
                    payment_intent_id=intent.id,
                    amount=value,
                    currency=currency,
                    client_secret=intent.client_secret,
                    metadata={"description": description} if description else None
                )
            except IntegrityError:
                await self.session.rollback()
                logger.warning(
                    "Payment intent already has a deposit",
                    extra={"wallet_address": wallet_address, "payment_intent_id": intent.id}
                )
                raise ConflictError("Deposit already exists for this payment intent")

            logger.info(
                "Deposit created",
                extra={
                    "wallet_address": user.wallet_address,
                    "deposit_id": deposit.id,
                    "payment_intent_id": intent.id,
                    "amount": str(value)
                }
            )

            return DepositCreated(
                deposit_id=deposit.id,
                payment_intent_id=intent.id,
                client_secret=intent.client_secret,
                amount=value,
                currency=currency,
                status=deposit.status
            )

        except ServiceError:
            raise
        except Exception as e:
            await self.session.rollback()
            logger.exception(
                f"Unexpected error creating deposit: {e}",
                extra={"wallet_address": wallet_address}
            )
            raise UnexpectedError()

    async def confirm_deposit(
        self,
        wallet_address: str,
        payment_intent_id: str,
        payment_method_id: str
    ) -> DepositConfirmed:
        """
        Confirm the payment with the processor and credit the deposit

        Raises:
            NotFoundError: unknown payment intent
            ForbiddenError: deposit belongs to another wallet
            ConflictError: deposit already completed or no longer open
            PaymentNotCompletedError: processor did not report success
        """
        try:
            deposit = await self.deposits.get_by_intent_id(payment_intent_id)
            if deposit is None:
                raise NotFoundError("Deposit not found")

            if deposit.user.wallet_address != self.users.normalize(wallet_address):
                logger.warning(
                    "Deposit confirmation by non-owner",
                    extra={"wallet_address": wallet_address, "deposit_id": deposit.id}
                )
                raise ForbiddenError("Deposit does not belong to this wallet")

            if deposit.status == DepositStatus.COMPLETED:
                raise ConflictError("Deposit already processed", code=ServiceErrorCode.ALREADY_PROCESSED)

            if deposit.status not in OPEN_DEPOSIT_STATUSES:
                raise ConflictError(f"Deposit is {deposit.status.value.lower()}")

            deposit_id = deposit.id
            intent = await self.payment_processor.confirm_intent(payment_intent_id, payment_method_id)

            if intent.status == "succeeded":
                entry = await self._complete(
                    deposit_id=deposit_id,
                    user_id=deposit.user_id,
                    amount=deposit.amount,
                    payment_intent_id=payment_intent_id,
                    description=f"Deposit via Stripe - {payment_intent_id}"
                )
                if entry is None:
                    raise ConflictError("Deposit already processed", code=ServiceErrorCode.ALREADY_PROCESSED)

                return DepositConfirmed(
                    deposit_id=deposit_id,
                    new_balance=entry.balance,
                    transaction_id=entry.transaction_id
                )

            if intent.status in PENDING_INTENT_STATUSES:
                await self.deposits.transition_status(
                    deposit_id, DepositStatus.PROCESSING, (DepositStatus.PENDING,)
                )
                await self.session.commit()

            logger.warning(
                "Payment not completed",
                extra={
                    "deposit_id": deposit_id,
                    "payment_intent_id": payment_intent_id,
                    "intent_status": intent.status
                }
            )
            raise PaymentNotCompletedError(details={"payment_status": intent.status})

        except ServiceError:
            raise
        except Exception as e:
            await self.session.rollback()
            logger.exception(
                f"Unexpected error confirming deposit: {e}",
                extra={"wallet_address": wallet_address, "payment_intent_id": payment_intent_id}
            )
            raise UnexpectedError()

    async def handle_webhook_event(self, event: WebhookEvent) -> None:
        """Apply a verified webhook event; replays and unknown intents are no-ops"""
        if isinstance(event, PaymentSucceededEvent):
            await self._on_payment_succeeded(event)
        elif isinstance(event, PaymentFailedEvent):
            await self._on_payment_failed(event)
        else:
            logger.info(
                "Ignoring unhandled webhook event",
                extra={"event_id": event.event_id, "event_type": event.event_type}
            )

    async def _on_payment_succeeded(self, event: PaymentSucceededEvent) -> None:
        deposit = await self.deposits.get_by_intent_id(event.payment_intent_id)
        if deposit is None:
            logger.warning(
                "Webhook for unknown payment intent",
                extra={"event_id": event.event_id, "payment_intent_id": event.payment_intent_id}
            )
            return

        if deposit.status == DepositStatus.COMPLETED:
            logger.info(
                "Deposit already completed, skipping webhook",
                extra={"event_id": event.event_id, "deposit_id": deposit.id}
            )
            return

        entry = await self._complete(
            deposit_id=deposit.id,
            user_id=deposit.user_id,
            amount=deposit.amount,
            payment_intent_id=event.payment_intent_id,
            description=f"Deposit via Stripe Webhook - {event.payment_intent_id}"
        )
        if entry is None:
            logger.info(
                "Deposit completed concurrently, skipping webhook",
                extra={"event_id": event.event_id, "payment_intent_id": event.payment_intent_id}
            )

    async def _on_payment_failed(self, event: PaymentFailedEvent) -> None:
        deposit = await self.deposits.get_by_intent_id(event.payment_intent_id)
        if deposit is None:
            logger.warning(
                "Webhook for unknown payment intent",
                extra={"event_id": event.event_id, "payment_intent_id": event.payment_intent_id}
            )
            return

        deposit_id = deposit.id
        try:
            moved = await self.deposits.transition_status(deposit_id, DepositStatus.FAILED, OPEN_DEPOSIT_STATUSES)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        logger.info(
            "Deposit marked failed" if moved else "Deposit already closed, ignoring failure",
            extra={
                "event_id": event.event_id,
                "deposit_id": deposit_id,
                "failure_message": event.failure_message
            }
        )

    async def _complete(
        self,
        deposit_id: int,
        user_id: int,
        amount: Decimal,
        payment_intent_id: str,
        description: str
    ) -> Optional[LedgerEntry]:
        """
        Move the deposit to COMPLETED and credit its amount, atomically.

        Returns None if the deposit had already left the open statuses.
        """
        try:
            moved = await self.deposits.transition_status(
                deposit_id, DepositStatus.COMPLETED, OPEN_DEPOSIT_STATUSES
            )
            if not moved:
                await self.session.rollback()
                return None

            entry = await BalanceLedger(self.session).credit(
                user_id,
                amount,
                description=description,
                reference_id=payment_intent_id,
                metadata={"deposit_id": deposit_id}
            )
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        logger.info(
            "Deposit completed",
            extra={
                "deposit_id": deposit_id,
                "payment_intent_id": payment_intent_id,
                "transaction_id": entry.transaction_id,
                "new_balance": str(entry.balance)
            }
        )
        return entry

    async def get_deposit(self, wallet_address: str, deposit_id: int) -> DepositView:
        user = await self.users.get_by_wallet(wallet_address)
        deposit = await self.deposits.get_for_user(deposit_id, user.id) if user else None
        if deposit is None:
            raise NotFoundError("Deposit not found")
        return DepositView.model_validate(deposit)

    async def list_deposits(self, wallet_address: str, page: int = 1, limit: int = 10) -> DepositPage:
        user = await self.users.get_by_wallet(wallet_address)
        if user is None:
            return DepositPage(deposits=[], total=0, page=page, total_pages=0)

        deposits, total = await self.deposits.list_for_user(user.id, page=page, limit=limit)
        return DepositPage(
            deposits=[DepositView.model_validate(d) for d in deposits],
            total=total,
            page=page,
            total_pages=math.ceil(total / limit) if limit else 0
        )
