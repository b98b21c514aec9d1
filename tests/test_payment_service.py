"""
PaymentService tests with the Stripe SDK calls patched out.
"""

import asyncio
import json

import pytest
import stripe

from services.exceptions import (
    ConfigurationError,
    StripeAPIError,
    ValidationError,
    WebhookSignatureError,
)
from services.payments import PaymentService


@pytest.fixture
def service():
    return PaymentService("sk_test_123", "whsec_test", "https://appraiser.example.com/")


@pytest.fixture
def created(monkeypatch):
    calls = []

    def fake_create(**kwargs):
        calls.append(kwargs)
        return {"id": "cs_test_1", "url": "https://checkout.stripe.com/c/pay/cs_test_1"}

    monkeypatch.setattr(stripe.checkout.Session, "create", fake_create)
    return calls


def test_token_checkout(service, created):
    session = asyncio.run(service.create_token_checkout("user-1", 10))

    assert session["id"] == "cs_test_1"
    kwargs = created[0]
    assert kwargs["api_key"] == "sk_test_123"
    assert kwargs["mode"] == "payment"
    assert kwargs["line_items"][0]["price_data"]["unit_amount"] == 900
    assert kwargs["metadata"] == {"userId": "user-1", "tokenAmount": "10", "purchaseType": "tokens"}
    assert kwargs["success_url"] == "https://appraiser.example.com/token-success?session_id={CHECKOUT_SESSION_ID}"


def test_token_checkout_rejects_other_amounts(service, created):
    with pytest.raises(ValidationError) as exc:
        asyncio.run(service.create_token_checkout("user-1", 7))

    assert exc.value.message == "Invalid token amount. Choose either 5 or 10 tokens."
    assert created == []


def test_detailed_checkout_metadata(service, created):
    asyncio.run(service.create_detailed_checkout("user-1", "val123", "Tiffany lamp", 3))

    kwargs = created[0]
    metadata = kwargs["metadata"]
    assert kwargs["line_items"][0]["price_data"]["unit_amount"] == 300
    assert metadata["purchaseType"] == "detailed"
    assert metadata["valuationType"] == "detailed"
    assert metadata["valuationId"] == "val123"
    assert json.loads(metadata["data"])["images"] == 3
    assert "/valuation-success?session_id=" in kwargs["success_url"]


def test_unconfigured_service():
    service = PaymentService(None, None, "http://localhost:8000")

    assert service.configured is False
    with pytest.raises(ConfigurationError):
        asyncio.run(service.create_token_checkout("user-1", 5))


def test_stripe_errors_are_mapped(service, monkeypatch):
    def failing_retrieve(**kwargs):
        raise stripe.StripeError("No such checkout.session: cs_missing")

    monkeypatch.setattr(stripe.checkout.Session, "retrieve", failing_retrieve)

    with pytest.raises(StripeAPIError) as exc:
        asyncio.run(service.retrieve_session("cs_missing"))

    assert exc.value.status_code == 502
    assert "No such checkout.session" in exc.value.message


def test_construct_event_bad_signature(service, monkeypatch):
    def reject(payload, signature, secret):
        raise stripe.SignatureVerificationError("No signatures found", signature)

    monkeypatch.setattr(stripe.Webhook, "construct_event", reject)

    with pytest.raises(WebhookSignatureError):
        service.construct_event(b"{}", "t=1,v1=bad")


def test_construct_event_returns_dict(service, monkeypatch):
    seen = {}

    def accept(payload, signature, secret):
        seen["secret"] = secret
        return {"type": "checkout.session.completed", "data": {"object": {"id": "cs_1"}}}

    monkeypatch.setattr(stripe.Webhook, "construct_event", accept)

    event = service.construct_event(b"{}", "t=1,v1=good")

    assert event["type"] == "checkout.session.completed"
    assert seen["secret"] == "whsec_test"
