import asyncio
from decimal import Decimal

import pytest
from sqlalchemy import select

from src.core.exceptions.base import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    PaymentNotCompletedError,
)
from src.core.exceptions.handler import ServiceErrorCode
from src.core.service.payments.deposit_service import DepositService
from src.core.service.payments.events import PaymentFailedEvent, PaymentSucceededEvent, UnhandledEvent
from src.infra.models import DepositModel, DepositStatus, TransactionModel, TransactionType, UserModel

WALLET = "0x742d35Cc6634C0532925a3b844Bc454e4438f44e"
OTHER_WALLET = "0x8ba1f109551bD432803012645Ac136ddd64DBA72"


@pytest.fixture
def deposit_service(session, payment_processor):
    return DepositService(session, payment_processor)


async def load_state(session_factory, payment_intent_id):
    async with session_factory() as s:
        deposit = (await s.execute(
            select(DepositModel).where(DepositModel.stripe_payment_intent_id == payment_intent_id)
        )).scalar_one()
        user = await s.get(UserModel, deposit.user_id)
        credits = (await s.execute(
            select(TransactionModel).where(
                TransactionModel.user_id == deposit.user_id,
                TransactionModel.type == TransactionType.DEPOSIT
            )
        )).scalars().all()
        return deposit, user, list(credits)


@pytest.mark.asyncio
async def test_create_deposit(deposit_service, payment_processor, session_factory):
    created = await deposit_service.create_deposit(WALLET, Decimal("100"), description="Top up")

    assert created.payment_intent_id == "pi_test_1"
    assert created.client_secret == "pi_test_1_secret_abc"
    assert created.amount == Decimal("100.00")
    assert created.currency == "usd"
    assert created.status == DepositStatus.PENDING

    assert payment_processor.created[0]["metadata"] == {"user_wallet": WALLET.lower(), "description": "Top up"}

    deposit, user, credits = await load_state(session_factory, "pi_test_1")
    assert deposit.id == created.deposit_id
    assert deposit.status == DepositStatus.PENDING
    assert user.wallet_address == WALLET.lower()
    assert user.balance == Decimal("0")
    assert credits == []


@pytest.mark.asyncio
async def test_create_deposit_for_reused_intent_is_conflict(deposit_service, payment_processor, session_factory):
    await deposit_service.create_deposit(WALLET, Decimal("100"))
    # Processor hands out the same intent id again
    payment_processor.created.clear()

    with pytest.raises(ConflictError) as exc_info:
        await deposit_service.create_deposit(WALLET, Decimal("20"))

    assert exc_info.value.status_code == 409
    assert exc_info.value.code == ServiceErrorCode.CONFLICT
    async with session_factory() as s:
        deposits = (await s.execute(
            select(DepositModel).where(DepositModel.stripe_payment_intent_id == "pi_test_1")
        )).scalars().all()
    assert len(deposits) == 1
    assert deposits[0].amount == Decimal("100.00")

    # The session is usable again after the rollback
    created = await deposit_service.create_deposit(WALLET, Decimal("5"))
    assert created.payment_intent_id == "pi_test_2"


@pytest.mark.asyncio
async def test_confirm_deposit_credits_balance(deposit_service, payment_processor, session_factory):
    created = await deposit_service.create_deposit(WALLET, Decimal("100"))

    confirmed = await deposit_service.confirm_deposit(WALLET, created.payment_intent_id, "pm_card_visa")

    assert confirmed.success is True
    assert confirmed.deposit_id == created.deposit_id
    assert confirmed.new_balance == Decimal("100.00")
    assert payment_processor.confirmed == [created.payment_intent_id]

    deposit, user, credits = await load_state(session_factory, created.payment_intent_id)
    assert deposit.status == DepositStatus.COMPLETED
    assert user.balance == Decimal("100.00")
    assert len(credits) == 1
    assert credits[0].id == confirmed.transaction_id
    assert credits[0].reference_id == created.payment_intent_id
    assert credits[0].description == f"Deposit via Stripe - {created.payment_intent_id}"
    assert credits[0].metadata_ == {"deposit_id": created.deposit_id}


@pytest.mark.asyncio
async def test_confirm_twice_conflicts(deposit_service, session_factory):
    created = await deposit_service.create_deposit(WALLET, Decimal("25"))
    await deposit_service.confirm_deposit(WALLET, created.payment_intent_id, "pm_card_visa")

    with pytest.raises(ConflictError) as exc_info:
        await deposit_service.confirm_deposit(WALLET, created.payment_intent_id, "pm_card_visa")

    assert exc_info.value.code == ServiceErrorCode.ALREADY_PROCESSED
    assert exc_info.value.status_code == 409
    _, user, credits = await load_state(session_factory, created.payment_intent_id)
    assert user.balance == Decimal("25.00")
    assert len(credits) == 1


@pytest.mark.asyncio
async def test_confirm_unknown_intent(deposit_service):
    with pytest.raises(NotFoundError):
        await deposit_service.confirm_deposit(WALLET, "pi_missing", "pm_card_visa")


@pytest.mark.asyncio
async def test_confirm_by_other_wallet_forbidden(deposit_service, payment_processor):
    created = await deposit_service.create_deposit(WALLET, Decimal("25"))

    with pytest.raises(ForbiddenError):
        await deposit_service.confirm_deposit(OTHER_WALLET, created.payment_intent_id, "pm_card_visa")
    assert payment_processor.confirmed == []


@pytest.mark.asyncio
async def test_confirm_failed_deposit_conflicts(deposit_service, payment_processor):
    created = await deposit_service.create_deposit(WALLET, Decimal("25"))
    await deposit_service.handle_webhook_event(
        PaymentFailedEvent(event_id="evt_1", payment_intent_id=created.payment_intent_id)
    )

    with pytest.raises(ConflictError) as exc_info:
        await deposit_service.confirm_deposit(WALLET, created.payment_intent_id, "pm_card_visa")
    assert exc_info.value.message == "Deposit is failed"
    assert payment_processor.confirmed == []


@pytest.mark.asyncio
async def test_confirm_processing_payment(deposit_service, payment_processor, session_factory):
    created = await deposit_service.create_deposit(WALLET, Decimal("25"))
    payment_processor.confirm_status = "processing"

    with pytest.raises(PaymentNotCompletedError) as exc_info:
        await deposit_service.confirm_deposit(WALLET, created.payment_intent_id, "pm_card_visa")

    assert exc_info.value.details == {"payment_status": "processing"}
    deposit, user, credits = await load_state(session_factory, created.payment_intent_id)
    assert deposit.status == DepositStatus.PROCESSING
    assert user.balance == Decimal("0")
    assert credits == []

    # The webhook later completes it
    await deposit_service.handle_webhook_event(
        PaymentSucceededEvent(event_id="evt_2", payment_intent_id=created.payment_intent_id)
    )
    deposit, user, _ = await load_state(session_factory, created.payment_intent_id)
    assert deposit.status == DepositStatus.COMPLETED
    assert user.balance == Decimal("25.00")


@pytest.mark.asyncio
async def test_confirm_declined_payment_keeps_pending(deposit_service, payment_processor, session_factory):
    created = await deposit_service.create_deposit(WALLET, Decimal("25"))
    payment_processor.confirm_status = "requires_payment_method"

    with pytest.raises(PaymentNotCompletedError):
        await deposit_service.confirm_deposit(WALLET, created.payment_intent_id, "pm_card_declined")

    deposit, _, _ = await load_state(session_factory, created.payment_intent_id)
    assert deposit.status == DepositStatus.PENDING


@pytest.mark.asyncio
async def test_webhook_success_credits_once(deposit_service, session_factory):
    created = await deposit_service.create_deposit(WALLET, Decimal("40"))
    event = PaymentSucceededEvent(event_id="evt_1", payment_intent_id=created.payment_intent_id)

    await deposit_service.handle_webhook_event(event)
    await deposit_service.handle_webhook_event(event)

    deposit, user, credits = await load_state(session_factory, created.payment_intent_id)
    assert deposit.status == DepositStatus.COMPLETED
    assert user.balance == Decimal("40.00")
    assert len(credits) == 1
    assert credits[0].description == f"Deposit via Stripe Webhook - {created.payment_intent_id}"


@pytest.mark.asyncio
async def test_webhook_after_confirm_is_noop(deposit_service, session_factory):
    created = await deposit_service.create_deposit(WALLET, Decimal("40"))
    await deposit_service.confirm_deposit(WALLET, created.payment_intent_id, "pm_card_visa")

    await deposit_service.handle_webhook_event(
        PaymentSucceededEvent(event_id="evt_1", payment_intent_id=created.payment_intent_id)
    )

    _, user, credits = await load_state(session_factory, created.payment_intent_id)
    assert user.balance == Decimal("40.00")
    assert len(credits) == 1


@pytest.mark.asyncio
async def test_webhook_for_unknown_intent_is_ignored(deposit_service):
    await deposit_service.handle_webhook_event(
        PaymentSucceededEvent(event_id="evt_1", payment_intent_id="pi_unknown")
    )
    await deposit_service.handle_webhook_event(
        PaymentFailedEvent(event_id="evt_2", payment_intent_id="pi_unknown")
    )


@pytest.mark.asyncio
async def test_webhook_failure_marks_failed(deposit_service, session_factory):
    created = await deposit_service.create_deposit(WALLET, Decimal("40"))

    await deposit_service.handle_webhook_event(
        PaymentFailedEvent(
            event_id="evt_1",
            payment_intent_id=created.payment_intent_id,
            failure_message="Your card was declined."
        )
    )

    deposit, user, _ = await load_state(session_factory, created.payment_intent_id)
    assert deposit.status == DepositStatus.FAILED
    assert user.balance == Decimal("0")

    # A late success does not resurrect a failed deposit
    await deposit_service.handle_webhook_event(
        PaymentSucceededEvent(event_id="evt_2", payment_intent_id=created.payment_intent_id)
    )
    deposit, user, credits = await load_state(session_factory, created.payment_intent_id)
    assert deposit.status == DepositStatus.FAILED
    assert credits == []


@pytest.mark.asyncio
async def test_webhook_failure_after_completion_is_ignored(deposit_service, session_factory):
    created = await deposit_service.create_deposit(WALLET, Decimal("40"))
    await deposit_service.confirm_deposit(WALLET, created.payment_intent_id, "pm_card_visa")

    await deposit_service.handle_webhook_event(
        PaymentFailedEvent(event_id="evt_1", payment_intent_id=created.payment_intent_id)
    )

    deposit, user, _ = await load_state(session_factory, created.payment_intent_id)
    assert deposit.status == DepositStatus.COMPLETED
    assert user.balance == Decimal("40.00")


@pytest.mark.asyncio
async def test_unhandled_event_is_ignored(deposit_service):
    await deposit_service.handle_webhook_event(UnhandledEvent(event_id="evt_1", event_type="charge.refunded"))


@pytest.mark.asyncio
async def test_confirm_and_webhook_race_credits_once(session_factory, payment_processor):
    async with session_factory() as s:
        created = await DepositService(s, payment_processor).create_deposit(WALLET, Decimal("75"))

    async def confirm():
        async with session_factory() as s:
            return await DepositService(s, payment_processor).confirm_deposit(
                WALLET, created.payment_intent_id, "pm_card_visa"
            )

    async def webhook():
        async with session_factory() as s:
            await DepositService(s, payment_processor).handle_webhook_event(
                PaymentSucceededEvent(event_id="evt_1", payment_intent_id=created.payment_intent_id)
            )

    results = await asyncio.gather(confirm(), webhook(), return_exceptions=True)

    confirm_result = results[0]
    if isinstance(confirm_result, Exception):
        assert isinstance(confirm_result, ConflictError)
    assert not isinstance(results[1], Exception)

    deposit, user, credits = await load_state(session_factory, created.payment_intent_id)
    assert deposit.status == DepositStatus.COMPLETED
    assert user.balance == Decimal("75.00")
    assert len(credits) == 1


@pytest.mark.asyncio
async def test_get_deposit(deposit_service):
    created = await deposit_service.create_deposit(WALLET, Decimal("10"))

    view = await deposit_service.get_deposit(WALLET, created.deposit_id)

    assert view.id == created.deposit_id
    assert view.payment_intent_id == created.payment_intent_id
    assert view.amount == Decimal("10.00")
    assert view.status == DepositStatus.PENDING


@pytest.mark.asyncio
async def test_get_deposit_of_other_wallet_not_found(deposit_service, make_user):
    created = await deposit_service.create_deposit(WALLET, Decimal("10"))
    await make_user(OTHER_WALLET)

    with pytest.raises(NotFoundError):
        await deposit_service.get_deposit(OTHER_WALLET, created.deposit_id)


@pytest.mark.asyncio
async def test_list_deposits_paginates_newest_first(deposit_service):
    for amount in ("10", "20", "30"):
        await deposit_service.create_deposit(WALLET, Decimal(amount))

    first = await deposit_service.list_deposits(WALLET, page=1, limit=2)
    second = await deposit_service.list_deposits(WALLET, page=2, limit=2)

    assert first.total == 3
    assert first.total_pages == 2
    assert [d.amount for d in first.deposits] == [Decimal("30.00"), Decimal("20.00")]
    assert [d.amount for d in second.deposits] == [Decimal("10.00")]


@pytest.mark.asyncio
async def test_list_deposits_for_unknown_wallet(deposit_service):
    page = await deposit_service.list_deposits(OTHER_WALLET)

    assert page.deposits == []
    assert page.total == 0
    assert page.total_pages == 0
