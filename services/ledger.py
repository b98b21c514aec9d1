"""
Valuation Ledger - free/token/paid gating and token accounting.

Every user gets a number of free valuations per rolling window (one per
24 hours by default). Past that, a standard valuation costs one token.
Detailed valuations always go through a Stripe checkout and are stored as
pending until the payment settles.

Checkout completion arrives either through the Stripe webhook or through
the verify-payment redirect. Both call apply_checkout, which credits each
Stripe session at most once.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from functools import partial
from typing import Any, Callable, Dict, List, Optional

from config import QuotaConfig, QUOTA
from database import new_valuation_id
from services.exceptions import ConfigurationError, DatabaseError, ValidationError

logger = logging.getLogger(__name__)

FREE_MESSAGE = "Valuation created using your free daily valuation"
TOKEN_MESSAGE = "Valuation created using 1 token"
TOKENS_REQUIRED_MESSAGE = (
    "You have used your free daily valuation and have no tokens. "
    "Please purchase tokens to continue."
)


@dataclass
class ValuationRequest:
    """Body of a create-valuation call."""
    title: str = ""
    full_description: str = ""
    images: List[str] = field(default_factory=list)
    summary: Optional[str] = None
    user_comment: Optional[str] = None
    assistant_response: Optional[str] = None
    assistant_follow_up: Optional[str] = None
    is_detailed: bool = False

    def validate(self) -> None:
        if not self.title or not self.full_description or not self.images:
            raise ValidationError("Missing required fields")

    def to_record(self, user_id: str) -> Dict[str, Any]:
        return {
            "user_id": user_id,
            "title": self.title,
            "full_description": self.full_description,
            "summary": self.summary,
            "user_comment": self.user_comment,
            "images": list(self.images),
            "assistant_response": self.assistant_response,
            "assistant_follow_up": self.assistant_follow_up,
            "is_detailed": self.is_detailed,
        }


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _parse_ts(value: str) -> datetime:
    ts = datetime.fromisoformat(value.replace("Z", "+00:00"))
    return ts if ts.tzinfo else ts.replace(tzinfo=timezone.utc)


class ValuationLedger:
    """
    Decides how a valuation is paid for and keeps the token balance.

    The store is any object with the database.Database interface. Store
    calls are blocking and run in the default executor.
    """

    def __init__(self, db, payments=None, quota: QuotaConfig = QUOTA,
                 clock: Callable[[], datetime] = _utc_now):
        self.db = db
        self.payments = payments
        self.quota = quota
        self.clock = clock

    async def _run(self, fn, *args):
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, partial(fn, *args))
        except DatabaseError:
            raise
        except Exception as e:
            logger.error(f"[LEDGER] {fn.__name__} failed: {e}")
            raise DatabaseError(f"Storage operation failed: {fn.__name__}", operation=fn.__name__, cause=e)

    @property
    def window(self) -> timedelta:
        return timedelta(hours=self.quota.free_window_hours)

    def _now_iso(self) -> str:
        return self.clock().isoformat(timespec="microseconds")

    async def recent_valuations(self, user_id: str) -> List[Dict[str, Any]]:
        since = (self.clock() - self.window).isoformat(timespec="microseconds")
        return await self._run(self.db.get_recent_valuations, user_id, since)

    # ============================================================
    # CREATE VALUATION
    # ============================================================

    async def create_valuation(self, user_id: str, request: ValuationRequest) -> Dict[str, Any]:
        request.validate()

        # Detailed valuations are paid even when a free one is available
        if request.is_detailed:
            return await self._start_detailed_valuation(user_id, request)

        since = (self.clock() - self.window).isoformat(timespec="microseconds")
        record = request.to_record(user_id)
        record.update({
            "id": new_valuation_id(),
            "payment_method": "free",
            "payment_status": "complete",
            "created_at": self._now_iso(),
        })

        # Count and insert happen together in the store
        valuation = None
        if self.quota.free_valuations_per_day > 0:
            valuation = await self._run(
                self.db.insert_free_valuation, record, since, self.quota.free_valuations_per_day
            )

        payment_method = "free"
        if valuation is None:
            valuation = await self._create_token_valuation(user_id, record)
            if valuation is None:
                logger.info(f"[LEDGER] {user_id} has no free valuation and no tokens")
                return {"status": "tokens_required", "message": TOKENS_REQUIRED_MESSAGE}
            payment_method = "token"

        logger.info(f"[LEDGER] Valuation {valuation['id']} created for {user_id} ({payment_method})")
        return {
            "status": "success",
            "message": FREE_MESSAGE if payment_method == "free" else TOKEN_MESSAGE,
            "valuation": valuation,
            "paymentMethod": payment_method,
        }

    async def _create_token_valuation(self, user_id: str, record: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Spend a token and store the valuation. None when the balance is empty."""
        valuation_id = record["id"]
        if not await self._run(self.db.spend_token, user_id, valuation_id):
            return None

        record["payment_method"] = "token"
        try:
            return await self._run(self.db.insert_valuation, record)
        except DatabaseError as e:
            logger.warning(f"[LEDGER] Refunding token for failed valuation {valuation_id}")
            try:
                await self._run(self.db.refund_token, user_id, valuation_id)
            except DatabaseError as refund_error:
                logger.error(f"[LEDGER] refund failed for {user_id} (valuation {valuation_id}): {refund_error.message}")
            raise DatabaseError("Failed to create valuation", operation="insert_valuation", cause=e.cause or e)

    async def _start_detailed_valuation(self, user_id: str, request: ValuationRequest) -> Dict[str, Any]:
        if self.payments is None or not self.payments.configured:
            logger.error("[LEDGER] Detailed valuation requested but Stripe is not configured")
            raise ConfigurationError("Payment service is not configured", config_key="STRIPE_SECRET_KEY")

        valuation_id = new_valuation_id()
        record = request.to_record(user_id)
        record.update({
            "id": valuation_id,
            "is_detailed": True,
            "payment_method": "stripe",
            "payment_status": "pending",
            "created_at": self._now_iso(),
        })
        await self._run(self.db.insert_valuation, record)

        try:
            session = await self.payments.create_detailed_checkout(
                user_id, valuation_id, request.title, len(request.images)
            )
        except Exception:
            logger.warning(f"[LEDGER] Checkout failed, discarding pending valuation {valuation_id}")
            await self._run(self.db.discard_pending_valuation, valuation_id)
            raise
        return {
            "status": "payment_required",
            "sessionId": session.get("id"),
            "url": session.get("url"),
            "valuationId": valuation_id,
        }

    # ============================================================
    # USER STATUS
    # ============================================================

    async def user_status(self, user_id: str) -> Dict[str, Any]:
        recent = await self.recent_valuations(user_id)
        tokens = await self._run(self.db.get_user_tokens, user_id)

        limit = self.quota.free_valuations_per_day
        free_left = max(0, limit - len(recent))

        next_free = None
        if free_left == 0 and limit > 0 and recent:
            # Newest first: the entry at index limit-1 is the last one that
            # must leave the window before a free slot opens
            blocking = recent[limit - 1]
            expires = _parse_ts(blocking["created_at"]) + self.window
            next_free = int(expires.timestamp() * 1000)

        return {
            "freeValuationsLeft": free_left,
            "tokenBalance": (tokens or {}).get("token_count") or 0,
            "recentValuationCount": len(recent),
            "nextFreeValuation": next_free,
        }

    # ============================================================
    # CHECKOUT SETTLEMENT
    # ============================================================

    async def apply_checkout(self, session: Dict[str, Any], verified: bool = False) -> Dict[str, Any]:
        """
        Apply a paid checkout session to the ledger.

        Returns a summary dict with `purchaseType` and `applied` (False when
        the session had already been applied).
        """
        metadata = session.get("metadata") or {}
        user_id = metadata.get("userId")
        purchase_type = metadata.get("purchaseType")
        session_id = session.get("id")

        if not user_id:
            raise ValidationError("Missing userId in metadata")

        if purchase_type == "tokens":
            try:
                amount = int(metadata.get("tokenAmount") or "0")
            except ValueError:
                amount = 0
            if amount <= 0:
                logger.error(f"[LEDGER] Invalid token amount in session {session_id}: {metadata.get('tokenAmount')}")
                raise ValidationError("Invalid token amount")

            amount_total = session.get("amount_total")
            transaction = {
                "date": self._now_iso(),
                "amount": amount,
                "cost": amount_total / 100 if amount_total else None,
                "type": "purchase",
                "payment_id": session_id,
            }
            if verified:
                transaction["verified"] = True

            applied = await self._run(self.db.credit_tokens, user_id, amount, transaction)
            if applied:
                logger.info(f"[LEDGER] Added {amount} tokens for user {user_id}")
            return {"purchaseType": "tokens", "tokenAmount": amount, "applied": applied, "userId": user_id}

        if purchase_type == "detailed":
            valuation_id = metadata.get("valuationId")
            if not valuation_id:
                logger.error(f"[LEDGER] Missing valuation id in session {session_id}")
                raise ValidationError("Missing valuation data")
            applied = await self._run(self.db.mark_valuation_paid, valuation_id, session_id)
            if applied:
                logger.info(f"[LEDGER] Detailed valuation {valuation_id} paid by {user_id}")
            return {"purchaseType": "detailed", "valuationId": valuation_id, "applied": applied, "userId": user_id}

        logger.warning(f"[LEDGER] Unknown purchase type: {purchase_type}")
        return {"purchaseType": purchase_type, "applied": False, "userId": user_id}

    # ============================================================
    # SIGNUP BONUS
    # ============================================================

    async def grant_signup_tokens(self, user_id: str) -> Dict[str, Any]:
        existing = await self._run(self.db.get_user_tokens, user_id)
        if existing:
            return {"message": "User already has tokens", "tokenCount": existing.get("token_count") or 0}

        count = self.quota.signup_bonus_tokens
        granted = await self._run(self.db.grant_initial_tokens, user_id, count)
        if not granted:
            existing = await self._run(self.db.get_user_tokens, user_id)
            return {"message": "User already has tokens", "tokenCount": (existing or {}).get("token_count") or 0}

        logger.info(f"[LEDGER] Granted {count} signup tokens to {user_id}")
        return {"message": f"Successfully granted {count} tokens to new user", "tokenCount": count}
