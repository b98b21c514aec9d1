"""
Stripe checkout and webhook verification.

The Stripe SDK is blocking, so every call runs in the default executor.
Sessions and events are returned as plain dicts.
"""

import asyncio
import json
import logging
from datetime import datetime, timezone
from functools import partial
from typing import Any, Dict, Optional

import stripe

from config import PricingConfig, PRICING
from services.exceptions import (
    ConfigurationError,
    StripeAPIError,
    ValidationError,
    WebhookSignatureError,
)

logger = logging.getLogger(__name__)

CHECKOUT_PLACEHOLDER = "{CHECKOUT_SESSION_ID}"


def as_dict(obj: Any) -> Dict[str, Any]:
    """Stripe objects to plain dicts (recursively)."""
    if obj is None:
        return {}
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    return dict(obj)


class PaymentService:
    """Creates checkout sessions and verifies webhook payloads."""

    def __init__(
        self,
        secret_key: Optional[str],
        webhook_secret: Optional[str],
        app_url: str,
        pricing: PricingConfig = PRICING,
    ):
        self.secret_key = secret_key
        self.webhook_secret = webhook_secret
        self.app_url = app_url.rstrip("/")
        self.pricing = pricing

    @property
    def configured(self) -> bool:
        return bool(self.secret_key)

    def _require_configured(self) -> None:
        if not self.configured:
            logger.error("[STRIPE] Stripe is not initialized. Missing API key.")
            raise ConfigurationError("Payment service is not configured", config_key="STRIPE_SECRET_KEY")

    async def _call(self, fn, **kwargs) -> Dict[str, Any]:
        loop = asyncio.get_running_loop()
        try:
            result = await loop.run_in_executor(None, partial(fn, api_key=self.secret_key, **kwargs))
        except stripe.StripeError as e:
            logger.error(f"[STRIPE] {fn.__qualname__} failed: {e}")
            raise StripeAPIError(f"Payment service error: {e.user_message or e}", cause=e)
        return as_dict(result)

    async def _create_checkout(self, name: str, unit_amount: int, success_path: str,
                               metadata: Dict[str, str], description: Optional[str] = None) -> Dict[str, Any]:
        self._require_configured()
        product_data = {"name": name}
        if description:
            product_data["description"] = description

        return await self._call(
            stripe.checkout.Session.create,
            payment_method_types=["card"],
            line_items=[{
                "price_data": {
                    "currency": self.pricing.currency,
                    "product_data": product_data,
                    "unit_amount": unit_amount,
                },
                "quantity": 1,
            }],
            mode="payment",
            success_url=f"{self.app_url}{success_path}?session_id={CHECKOUT_PLACEHOLDER}",
            cancel_url=f"{self.app_url}/",
            metadata=metadata,
        )

    # ============================================================
    # CHECKOUT SESSIONS
    # ============================================================

    async def create_token_checkout(self, user_id: str, amount: int) -> Dict[str, Any]:
        """Checkout for a 5 or 10 token package."""
        if amount not in self.pricing.token_packages:
            choices = " or ".join(str(a) for a in sorted(self.pricing.token_packages))
            raise ValidationError(f"Invalid token amount. Choose either {choices} tokens.", field="amount")

        session = await self._create_checkout(
            name=f"{amount} Antique Valuation Tokens",
            description=f"Purchase {amount} tokens for antique valuations on our platform.",
            unit_amount=self.pricing.token_packages[amount],
            success_path="/token-success",
            metadata={
                "userId": user_id,
                "tokenAmount": str(amount),
                "purchaseType": "tokens",
            },
        )
        logger.info(f"[STRIPE] Token checkout {session.get('id')} for {user_id} ({amount} tokens)")
        return session

    async def create_detailed_checkout(self, user_id: str, valuation_id: str,
                                       title: str, image_count: int) -> Dict[str, Any]:
        """$3 checkout for a detailed valuation already stored as pending."""
        session = await self._create_checkout(
            name="Detailed Antique Valuation",
            unit_amount=self.pricing.detailed_valuation_cents,
            success_path="/valuation-success",
            metadata={
                "userId": user_id,
                "purchaseType": "detailed",
                "valuationType": "detailed",
                "valuationId": valuation_id,
                # Stripe caps metadata values at 500 characters
                "data": json.dumps({
                    "title": title[:200],
                    "images": image_count,
                    "timestamp": datetime.now(timezone.utc).isoformat(),
                }),
            },
        )
        logger.info(f"[STRIPE] Detailed checkout {session.get('id')} for valuation {valuation_id}")
        return session

    async def retrieve_session(self, session_id: str) -> Dict[str, Any]:
        self._require_configured()
        return await self._call(stripe.checkout.Session.retrieve, id=session_id)

    # ============================================================
    # WEBHOOKS
    # ============================================================

    def construct_event(self, payload: bytes, signature: str) -> Dict[str, Any]:
        """Verify a webhook payload and return the event as a dict."""
        try:
            event = stripe.Webhook.construct_event(payload, signature, self.webhook_secret or "")
        except (ValueError, stripe.SignatureVerificationError) as e:
            logger.error(f"[STRIPE] Webhook signature verification failed: {e}")
            raise WebhookSignatureError(cause=e)
        return as_dict(event)
