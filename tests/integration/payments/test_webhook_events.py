import pytest

from src.core.service.payments.events import (
    PaymentFailedEvent,
    PaymentSucceededEvent,
    UnhandledEvent,
    parse_event,
)


def test_parse_succeeded():
    event = parse_event({
        "id": "evt_1",
        "type": "payment_intent.succeeded",
        "data": {"object": {"id": "pi_1", "status": "succeeded"}},
    })

    assert event == PaymentSucceededEvent(event_id="evt_1", payment_intent_id="pi_1")


def test_parse_failed_with_message():
    event = parse_event({
        "id": "evt_2",
        "type": "payment_intent.payment_failed",
        "data": {"object": {"id": "pi_2", "last_payment_error": {"message": "Your card was declined."}}},
    })

    assert isinstance(event, PaymentFailedEvent)
    assert event.payment_intent_id == "pi_2"
    assert event.failure_message == "Your card was declined."


def test_parse_failed_without_error_details():
    event = parse_event({
        "id": "evt_3",
        "type": "payment_intent.payment_failed",
        "data": {"object": {"id": "pi_3", "last_payment_error": None}},
    })

    assert isinstance(event, PaymentFailedEvent)
    assert event.failure_message is None


def test_parse_other_type_is_unhandled():
    event = parse_event({"id": "evt_4", "type": "charge.refunded", "data": {"object": {"id": "ch_1"}}})

    assert event == UnhandledEvent(event_id="evt_4", event_type="charge.refunded")


@pytest.mark.parametrize("data", [
    None,
    "not-an-object",
    {},
    {"object": None},
    {"object": {"status": "succeeded"}},
    {"object": {"id": ""}},
    {"object": {"id": 42}},
])
def test_handled_type_without_intent_id_is_unhandled(data):
    event = parse_event({"id": "evt_5", "type": "payment_intent.succeeded", "data": data})

    assert isinstance(event, UnhandledEvent)
    assert event.event_type == "payment_intent.succeeded"


def test_parse_empty_payload():
    event = parse_event({})

    assert event == UnhandledEvent(event_id="", event_type="")
