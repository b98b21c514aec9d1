"""
Database module for the Antique Appraiser
Handles SQLite storage for valuations and the per-user token ledger
"""
import sqlite3
import json
import logging
import threading
import uuid
from datetime import datetime, timezone
from typing import Dict, List, Any, Optional, Tuple

from config import DB_PATH

logger = logging.getLogger(__name__)


def utc_now_iso() -> str:
    """Fixed-width ISO timestamp so string comparison matches time order"""
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


def new_valuation_id() -> str:
    return uuid.uuid4().hex


# Columns returned by list endpoints
LIST_COLUMNS = "id, title, summary, created_at, is_detailed, payment_status"


# ============================================================
# DATABASE CONNECTION
# ============================================================
class Database:
    """
    SQLite-backed valuation store.

    A single connection is shared between executor threads; every statement
    runs under `_lock`, and the ledger updates run inside one transaction.
    """

    def __init__(self, path: str = None):
        self.path = str(path or DB_PATH)
        self.conn = None
        self._lock = threading.Lock()
        self._init_db()
        logger.info(f"[DB] Database initialized at: {self.path}")

    def _init_db(self):
        """Initialize database with required tables"""
        self.conn = sqlite3.connect(self.path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row

        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS valuations (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                title TEXT NOT NULL,
                full_description TEXT NOT NULL,
                summary TEXT,
                user_comment TEXT,
                images TEXT NOT NULL DEFAULT '[]',
                assistant_response TEXT,
                assistant_follow_up TEXT,
                is_detailed INTEGER NOT NULL DEFAULT 0,
                payment_method TEXT NOT NULL DEFAULT 'free',
                payment_status TEXT NOT NULL DEFAULT 'complete',
                stripe_session_id TEXT,
                created_at TEXT NOT NULL,
                deleted_at TEXT
            )
        """)

        # Databases created before soft delete
        columns = [r["name"] for r in self.conn.execute("PRAGMA table_info(valuations)")]
        if "deleted_at" not in columns:
            self.conn.execute("ALTER TABLE valuations ADD COLUMN deleted_at TEXT")
            logger.info("[DB] Added deleted_at column to valuations")

        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS user_tokens (
                user_id TEXT PRIMARY KEY,
                token_count INTEGER NOT NULL DEFAULT 0 CHECK (token_count >= 0),
                transaction_history TEXT NOT NULL DEFAULT '[]',
                updated_at TEXT
            )
        """)

        self.conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_valuations_user_created ON valuations(user_id, created_at)"
        )
        self.conn.commit()

    def close(self):
        if self.conn:
            self.conn.close()
            self.conn = None

    # ============================================================
    # VALUATIONS
    # ============================================================

    @staticmethod
    def _valuation_from_row(row: sqlite3.Row) -> Dict[str, Any]:
        record = dict(row)
        if "images" in record:
            record["images"] = json.loads(record["images"] or "[]")
        if "is_detailed" in record:
            record["is_detailed"] = bool(record["is_detailed"])
        return record

    @staticmethod
    def _valuation_row(record: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "id": record.get("id") or new_valuation_id(),
            "user_id": record["user_id"],
            "title": record["title"],
            "full_description": record["full_description"],
            "summary": record.get("summary"),
            "user_comment": record.get("user_comment"),
            "images": json.dumps(list(record.get("images") or [])),
            "assistant_response": record.get("assistant_response"),
            "assistant_follow_up": record.get("assistant_follow_up"),
            "is_detailed": 1 if record.get("is_detailed") else 0,
            "payment_method": record.get("payment_method", "free"),
            "payment_status": record.get("payment_status", "complete"),
            "stripe_session_id": record.get("stripe_session_id"),
            "created_at": record.get("created_at") or utc_now_iso(),
        }

    def _insert_row(self, row: Dict[str, Any]) -> None:
        """Caller must hold the lock inside an open transaction"""
        columns = ", ".join(row.keys())
        placeholders = ", ".join("?" for _ in row)
        self.conn.execute(
            f"INSERT INTO valuations ({columns}) VALUES ({placeholders})",
            tuple(row.values()),
        )

    def _count_recent(self, user_id: str, since: str) -> int:
        """Caller must hold the lock. Deleted valuations still count."""
        return self.conn.execute(
            """
            SELECT COUNT(*) FROM valuations
            WHERE user_id = ? AND payment_status = 'complete' AND created_at >= ?
            """,
            (user_id, since),
        ).fetchone()[0]

    def insert_valuation(self, record: Dict[str, Any]) -> Dict[str, Any]:
        """Insert a valuation and return the stored row"""
        row = self._valuation_row(record)
        with self._lock, self.conn:
            self._insert_row(row)
        logger.debug(f"[DB] Stored valuation {row['id']} for {row['user_id']}")
        return self.get_valuation(row["id"], row["user_id"])

    def insert_free_valuation(self, record: Dict[str, Any], since: str, limit: int) -> Optional[Dict[str, Any]]:
        """
        Insert a valuation only while the user has fewer than `limit`
        completed valuations since `since`.

        The count and the insert run in one locked transaction. Returns the
        stored row, or None when the free allowance is used up.
        """
        row = self._valuation_row(record)
        with self._lock, self.conn:
            if self._count_recent(row["user_id"], since) >= limit:
                return None
            self._insert_row(row)
        logger.debug(f"[DB] Stored free valuation {row['id']} for {row['user_id']}")
        return self.get_valuation(row["id"], row["user_id"])

    def get_valuation(self, valuation_id: str, user_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            row = self.conn.execute(
                "SELECT * FROM valuations WHERE id = ? AND user_id = ? AND deleted_at IS NULL",
                (valuation_id, user_id),
            ).fetchone()
        return self._valuation_from_row(row) if row else None

    def get_recent_valuations(self, user_id: str, since: str) -> List[Dict[str, Any]]:
        """Completed valuations created at or after `since`, newest first, deleted ones included"""
        with self._lock:
            rows = self.conn.execute(
                """
                SELECT id, created_at FROM valuations
                WHERE user_id = ? AND payment_status = 'complete' AND created_at >= ?
                ORDER BY created_at DESC
                """,
                (user_id, since),
            ).fetchall()
        return [dict(r) for r in rows]

    def list_valuations(self, user_id: str, offset: int, limit: int) -> Tuple[List[Dict[str, Any]], int]:
        with self._lock:
            total = self.conn.execute(
                "SELECT COUNT(*) FROM valuations WHERE user_id = ? AND deleted_at IS NULL", (user_id,)
            ).fetchone()[0]
            rows = self.conn.execute(
                f"""
                SELECT {LIST_COLUMNS} FROM valuations
                WHERE user_id = ? AND deleted_at IS NULL
                ORDER BY created_at DESC
                LIMIT ? OFFSET ?
                """,
                (user_id, limit, offset),
            ).fetchall()
        return [self._valuation_from_row(r) for r in rows], total

    def delete_valuation(self, valuation_id: str, user_id: str) -> bool:
        """Hide a valuation from its owner. The row stays for the free-window count."""
        with self._lock, self.conn:
            cursor = self.conn.execute(
                "UPDATE valuations SET deleted_at = ? WHERE id = ? AND user_id = ? AND deleted_at IS NULL",
                (utc_now_iso(), valuation_id, user_id),
            )
        return cursor.rowcount > 0

    def discard_pending_valuation(self, valuation_id: str) -> bool:
        """Remove a detailed valuation whose checkout never started"""
        with self._lock, self.conn:
            cursor = self.conn.execute(
                "DELETE FROM valuations WHERE id = ? AND payment_status = 'pending'",
                (valuation_id,),
            )
        return cursor.rowcount > 0

    def mark_valuation_paid(self, valuation_id: str, session_id: str) -> bool:
        """Settle a pending detailed valuation. False if nothing was pending."""
        with self._lock, self.conn:
            cursor = self.conn.execute(
                """
                UPDATE valuations
                SET payment_status = 'complete', stripe_session_id = ?
                WHERE id = ? AND payment_status = 'pending'
                """,
                (session_id, valuation_id),
            )
        return cursor.rowcount > 0

    # ============================================================
    # TOKEN LEDGER
    # ============================================================

    def get_user_tokens(self, user_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            row = self.conn.execute(
                "SELECT * FROM user_tokens WHERE user_id = ?", (user_id,)
            ).fetchone()
        if not row:
            return None
        record = dict(row)
        record["transaction_history"] = json.loads(record["transaction_history"] or "[]")
        return record

    def _append_transaction(self, user_id: str, transaction: Dict[str, Any]) -> None:
        """Caller must hold the lock inside an open transaction"""
        row = self.conn.execute(
            "SELECT transaction_history FROM user_tokens WHERE user_id = ?", (user_id,)
        ).fetchone()
        history = json.loads(row["transaction_history"] or "[]") if row else []
        history.append(transaction)
        self.conn.execute(
            "UPDATE user_tokens SET transaction_history = ? WHERE user_id = ?",
            (json.dumps(history), user_id),
        )

    def credit_tokens(self, user_id: str, amount: int, transaction: Dict[str, Any]) -> bool:
        """
        Add tokens and record the transaction.

        Returns False without changing anything when a transaction with the
        same payment_id is already in the history.
        """
        payment_id = transaction.get("payment_id")
        now = utc_now_iso()

        with self._lock, self.conn:
            row = self.conn.execute(
                "SELECT token_count, transaction_history FROM user_tokens WHERE user_id = ?",
                (user_id,),
            ).fetchone()

            if row is None:
                self.conn.execute(
                    "INSERT INTO user_tokens (user_id, token_count, transaction_history, updated_at) VALUES (?, ?, ?, ?)",
                    (user_id, amount, json.dumps([transaction]), now),
                )
                return True

            history = json.loads(row["transaction_history"] or "[]")
            if payment_id and any(t.get("payment_id") == payment_id for t in history):
                logger.info(f"[DB] Payment {payment_id} already credited for {user_id}")
                return False

            history.append(transaction)
            self.conn.execute(
                "UPDATE user_tokens SET token_count = token_count + ?, transaction_history = ?, updated_at = ? WHERE user_id = ?",
                (amount, json.dumps(history), now, user_id),
            )
        return True

    def spend_token(self, user_id: str, valuation_id: str) -> bool:
        """Atomically take one token. False when the balance is empty."""
        now = utc_now_iso()
        with self._lock, self.conn:
            cursor = self.conn.execute(
                "UPDATE user_tokens SET token_count = token_count - 1, updated_at = ? WHERE user_id = ? AND token_count >= 1",
                (now, user_id),
            )
            if cursor.rowcount == 0:
                return False
            self._append_transaction(user_id, {
                "date": now,
                "amount": -1,
                "type": "valuation",
                "valuation_id": valuation_id,
            })
        return True

    def refund_token(self, user_id: str, valuation_id: str) -> None:
        now = utc_now_iso()
        with self._lock, self.conn:
            self.conn.execute(
                "UPDATE user_tokens SET token_count = token_count + 1, updated_at = ? WHERE user_id = ?",
                (now, user_id),
            )
            self._append_transaction(user_id, {
                "date": now,
                "amount": 1,
                "type": "refund",
                "valuation_id": valuation_id,
            })

    def grant_initial_tokens(self, user_id: str, token_count: int) -> bool:
        """Create the ledger row with a signup bonus. False if one exists."""
        now = utc_now_iso()
        transaction = {"date": now, "amount": token_count, "cost": None, "type": "signup_bonus"}
        with self._lock, self.conn:
            cursor = self.conn.execute(
                "INSERT OR IGNORE INTO user_tokens (user_id, token_count, transaction_history, updated_at) VALUES (?, ?, ?, ?)",
                (user_id, token_count, json.dumps([transaction]), now),
            )
        return cursor.rowcount > 0
