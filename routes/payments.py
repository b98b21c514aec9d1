"""
Payment Routes - token purchases and Stripe settlement

This module contains:
- /api/buy-tokens: Stripe checkout for a token package
- /api/verify-payment: confirm a checkout after the success redirect
- /api/webhook/stripe: Stripe webhook (signature-verified)
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request

from services.app_state import get_app_state_from_request
from services.auth import AuthUser, require_user
from services.exceptions import ConfigurationError, ForbiddenError, ValidationError
from services.request_parser import read_json_body

logger = logging.getLogger(__name__)

router = APIRouter(tags=["payments"])

# Events that mean a checkout session has been paid
SETTLEMENT_EVENTS = ("checkout.session.completed", "checkout.session.async_payment_succeeded")


def _payments(request: Request):
    state = get_app_state_from_request(request)
    if state.payments is None:
        raise ConfigurationError("Payment service is not configured", config_key="STRIPE_SECRET_KEY")
    return state


@router.post("/api/buy-tokens")
async def buy_tokens(request: Request, user: AuthUser = Depends(require_user)):
    """Start a checkout for 5 tokens ($5) or 10 tokens ($9)."""
    data = await read_json_body(request)
    amount = data.get("amount")
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise ValidationError("Invalid token amount. Choose either 5 or 10 tokens.", field="amount")

    state = _payments(request)
    session = await state.payments.create_token_checkout(user.id, amount)
    state.increment_stat("payments_started")

    return {
        "status": "success",
        "sessionId": session.get("id"),
        "url": session.get("url"),
    }


@router.get("/api/verify-payment")
async def verify_payment(
    request: Request,
    session_id: Optional[str] = None,
    user: AuthUser = Depends(require_user),
):
    """
    Confirm a paid checkout for the signed-in user.

    Credits the purchase if the webhook has not done so yet; crediting is
    idempotent, so calling this after the webhook changes nothing.
    Usage: /api/verify-payment?session_id=cs_test_...
    """
    state = _payments(request)
    if not state.payments.configured:
        raise ConfigurationError("Payment service is not configured", config_key="STRIPE_SECRET_KEY")
    if not session_id:
        raise ValidationError("Session ID is required", field="session_id")

    session = await state.payments.retrieve_session(session_id)

    if session.get("payment_status") != "paid":
        raise ValidationError("Payment not completed")

    metadata = session.get("metadata") or {}
    if metadata.get("userId") != user.id:
        logger.warning(f"[PAYMENTS] Session {session_id} belongs to another user (caller {user.id})")
        raise ForbiddenError("User ID mismatch")

    purchase_type = metadata.get("purchaseType")

    if purchase_type == "tokens" and metadata.get("tokenAmount"):
        result = await state.ledger.apply_checkout(session, verified=True)
        if result["applied"]:
            state.increment_stat("tokens_credited", result["tokenAmount"])
        tokens = result["tokenAmount"]
        return {
            "success": True,
            "purchaseType": "tokens",
            "tokenAmount": tokens,
            "message": f"Successfully added {tokens} tokens to your account",
        }

    if purchase_type == "detailed" and metadata.get("valuationId"):
        result = await state.ledger.apply_checkout(session, verified=True)
        return {
            "success": True,
            "purchaseType": "detailed",
            "valuationId": result["valuationId"],
            "message": "Detailed valuation payment processed",
        }

    return {"success": True, "message": "Payment verified"}


@router.post("/api/webhook/stripe")
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None, alias="stripe-signature"),
):
    """Stripe webhook. Always answers {"received": true} once the event is handled."""
    payload = await request.body()
    if not stripe_signature:
        raise ValidationError("Missing stripe-signature header")

    state = _payments(request)
    event = state.payments.construct_event(payload, stripe_signature)
    event_type = event.get("type")

    if event_type in SETTLEMENT_EVENTS:
        session = (event.get("data") or {}).get("object") or {}

        if session.get("payment_status") != "paid":
            logger.info(f"[WEBHOOK] Payment not completed for session {session.get('id')}")
            return {"received": True}

        result = await state.ledger.apply_checkout(session)
        if result["purchaseType"] == "tokens" and result["applied"]:
            state.increment_stat("tokens_credited", result["tokenAmount"])
        logger.info(f"[WEBHOOK] Session {session.get('id')} processed: {result}")
    else:
        logger.info(f"[WEBHOOK] Unhandled event type: {event_type}")

    return {"received": True}
