"""
Supabase-backed valuation store.

Same interface as database.Database, for deployments that keep valuations
and the token ledger in the hosted Postgres project that also handles auth.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from database import LIST_COLUMNS, new_valuation_id, utc_now_iso
from services.exceptions import DatabaseError

logger = logging.getLogger(__name__)

# Compare-and-set attempts before giving up on a contended ledger row
LEDGER_RETRIES = 3


class SupabaseDatabase:
    """Valuation store over the Supabase PostgREST client."""

    def __init__(self, client):
        self.client = client
        logger.info("[SUPABASE] Valuation store ready")

    def _execute(self, operation: str, query):
        try:
            return query.execute()
        except Exception as e:
            logger.error(f"[SUPABASE] {operation} failed: {e}")
            raise DatabaseError(f"Failed to {operation}", operation=operation, cause=e)

    # ============================================================
    # VALUATIONS
    # ============================================================

    @staticmethod
    def _valuation_row(record: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "id": record.get("id") or new_valuation_id(),
            "user_id": record["user_id"],
            "title": record["title"],
            "full_description": record["full_description"],
            "summary": record.get("summary"),
            "user_comment": record.get("user_comment"),
            "images": list(record.get("images") or []),
            "assistant_response": record.get("assistant_response"),
            "assistant_follow_up": record.get("assistant_follow_up"),
            "is_detailed": bool(record.get("is_detailed")),
            "payment_method": record.get("payment_method", "free"),
            "payment_status": record.get("payment_status", "complete"),
            "stripe_session_id": record.get("stripe_session_id"),
            "created_at": record.get("created_at") or utc_now_iso(),
        }

    def insert_valuation(self, record: Dict[str, Any]) -> Dict[str, Any]:
        row = self._valuation_row(record)
        result = self._execute("create valuation", self.client.table("valuations").insert(row))
        return result.data[0] if result.data else row

    def insert_free_valuation(self, record: Dict[str, Any], since: str, limit: int) -> Optional[Dict[str, Any]]:
        """
        Insert, then recount the window. The first `limit` rows in
        (created_at, id) order keep their free slot; a row ranked after them
        lost a race and is removed again.
        """
        if limit <= 0 or len(self.get_recent_valuations(record["user_id"], since)) >= limit:
            return None

        stored = self.insert_valuation(record)
        result = self._execute(
            "recount recent valuations",
            self.client.table("valuations")
            .select("id, created_at")
            .eq("user_id", stored["user_id"])
            .eq("payment_status", "complete")
            .gte("created_at", since)
            .order("created_at")
            .order("id"),
        )
        winners = [r["id"] for r in (result.data or [])[:limit]]
        if stored["id"] in winners:
            return stored

        logger.info(f"[SUPABASE] Free slot already taken for {stored['user_id']}, removing {stored['id']}")
        self._execute(
            "remove valuation",
            self.client.table("valuations").delete().eq("id", stored["id"]),
        )
        return None

    def get_valuation(self, valuation_id: str, user_id: str) -> Optional[Dict[str, Any]]:
        result = self._execute(
            "fetch valuation",
            self.client.table("valuations").select("*").eq("id", valuation_id).eq("user_id", user_id)
            .is_("deleted_at", "null").limit(1),
        )
        return result.data[0] if result.data else None

    def get_recent_valuations(self, user_id: str, since: str) -> List[Dict[str, Any]]:
        """Deleted valuations still count against the window"""
        result = self._execute(
            "check recent valuations",
            self.client.table("valuations")
            .select("id, created_at")
            .eq("user_id", user_id)
            .eq("payment_status", "complete")
            .gte("created_at", since)
            .order("created_at", desc=True),
        )
        return result.data or []

    def list_valuations(self, user_id: str, offset: int, limit: int) -> Tuple[List[Dict[str, Any]], int]:
        result = self._execute(
            "fetch valuations",
            self.client.table("valuations")
            .select(LIST_COLUMNS, count="exact")
            .eq("user_id", user_id)
            .is_("deleted_at", "null")
            .order("created_at", desc=True)
            .range(offset, offset + limit - 1),
        )
        return result.data or [], result.count or 0

    def delete_valuation(self, valuation_id: str, user_id: str) -> bool:
        result = self._execute(
            "delete valuation",
            self.client.table("valuations")
            .update({"deleted_at": utc_now_iso()})
            .eq("id", valuation_id)
            .eq("user_id", user_id)
            .is_("deleted_at", "null"),
        )
        return bool(result.data)

    def discard_pending_valuation(self, valuation_id: str) -> bool:
        result = self._execute(
            "discard pending valuation",
            self.client.table("valuations").delete().eq("id", valuation_id).eq("payment_status", "pending"),
        )
        return bool(result.data)

    def mark_valuation_paid(self, valuation_id: str, session_id: str) -> bool:
        result = self._execute(
            "settle valuation",
            self.client.table("valuations")
            .update({"payment_status": "complete", "stripe_session_id": session_id})
            .eq("id", valuation_id)
            .eq("payment_status", "pending"),
        )
        return bool(result.data)

    # ============================================================
    # TOKEN LEDGER
    # ============================================================

    def get_user_tokens(self, user_id: str) -> Optional[Dict[str, Any]]:
        result = self._execute(
            "fetch token balance",
            self.client.table("user_tokens").select("*").eq("user_id", user_id).limit(1),
        )
        if not result.data:
            return None
        record = dict(result.data[0])
        record["transaction_history"] = record.get("transaction_history") or []
        return record

    def _swap_balance(self, user_id: str, expected: int, new_count: int, history: list) -> bool:
        """Update the row only if token_count still equals `expected`"""
        result = self._execute(
            "update token balance",
            self.client.table("user_tokens")
            .update({
                "token_count": new_count,
                "transaction_history": history,
                "updated_at": utc_now_iso(),
            })
            .eq("user_id", user_id)
            .eq("token_count", expected),
        )
        return bool(result.data)

    def credit_tokens(self, user_id: str, amount: int, transaction: Dict[str, Any]) -> bool:
        payment_id = transaction.get("payment_id")

        for _ in range(LEDGER_RETRIES):
            existing = self.get_user_tokens(user_id)
            if existing is None:
                self._execute(
                    "create token record",
                    self.client.table("user_tokens").insert({
                        "user_id": user_id,
                        "token_count": amount,
                        "transaction_history": [transaction],
                        "updated_at": utc_now_iso(),
                    }),
                )
                return True

            history = existing["transaction_history"]
            if payment_id and any(t.get("payment_id") == payment_id for t in history):
                logger.info(f"[SUPABASE] Payment {payment_id} already credited for {user_id}")
                return False

            count = existing.get("token_count") or 0
            if self._swap_balance(user_id, count, count + amount, history + [transaction]):
                return True

        raise DatabaseError("Failed to update token record", operation="credit tokens")

    def spend_token(self, user_id: str, valuation_id: str) -> bool:
        for _ in range(LEDGER_RETRIES):
            existing = self.get_user_tokens(user_id)
            count = (existing or {}).get("token_count") or 0
            if count < 1:
                return False

            spend = {"date": utc_now_iso(), "amount": -1, "type": "valuation", "valuation_id": valuation_id}
            if self._swap_balance(user_id, count, count - 1, existing["transaction_history"] + [spend]):
                return True

        raise DatabaseError("Failed to process token payment", operation="spend token")

    def refund_token(self, user_id: str, valuation_id: str) -> None:
        for _ in range(LEDGER_RETRIES):
            existing = self.get_user_tokens(user_id)
            if existing is None:
                return
            count = existing.get("token_count") or 0
            refund = {"date": utc_now_iso(), "amount": 1, "type": "refund", "valuation_id": valuation_id}
            if self._swap_balance(user_id, count, count + 1, existing["transaction_history"] + [refund]):
                return
        logger.error(f"[SUPABASE] Could not refund token for {user_id} (valuation {valuation_id})")

    def grant_initial_tokens(self, user_id: str, token_count: int) -> bool:
        if self.get_user_tokens(user_id) is not None:
            return False
        self._execute(
            "grant initial tokens",
            self.client.rpc("grant_initial_tokens", {
                "user_id": user_id,
                "token_count": token_count,
                "transaction_type": "signup_bonus",
            }),
        )
        return True
