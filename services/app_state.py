"""
Application State Management for the Antique Appraiser

This module provides centralized state management: the injected service
collaborators plus session statistics, in a dataclass that routes reach
through the request.
"""

from dataclasses import dataclass, field
from typing import Dict, Any, Optional
from datetime import datetime
import logging

logger = logging.getLogger(__name__)


def _fresh_stats() -> Dict[str, Any]:
    return {
        "total_requests": 0,
        "ai_calls": 0,
        "valuations_created": 0,
        "free_valuations": 0,
        "token_valuations": 0,
        "payments_started": 0,
        "tokens_credited": 0,
        "session_start": datetime.now().isoformat(),
    }


@dataclass
class AppState:
    """
    Centralized application state.

    Collaborators are created by main.py from settings; tests build an
    AppState with fakes instead.
    """

    # Feature flags
    debug_mode: bool = False

    # Collaborators
    db: Any = None              # database.Database or services.supabase_store.SupabaseDatabase
    auth: Any = None            # services.auth.SupabaseAuth
    assistant: Any = None       # services.assistant.AppraisalAssistant
    payments: Any = None        # services.payments.PaymentService
    uploader: Any = None        # services.uploads.ImageUploader
    ledger: Any = None          # services.ledger.ValuationLedger

    # Session statistics
    stats: Dict[str, Any] = field(default_factory=_fresh_stats)

    def increment_stat(self, key: str, amount: int = 1) -> None:
        """Safely increment a statistics counter."""
        if key in self.stats:
            self.stats[key] += amount

    def record_valuation(self, payment_method: str) -> None:
        """Record a created valuation in stats."""
        self.stats["valuations_created"] += 1
        if payment_method == "free":
            self.stats["free_valuations"] += 1
        elif payment_method == "token":
            self.stats["token_valuations"] += 1

    def get_session_duration(self) -> float:
        """Get session duration in seconds."""
        start = datetime.fromisoformat(self.stats["session_start"])
        return (datetime.now() - start).total_seconds()

    def reset_stats(self) -> None:
        """Reset session statistics."""
        self.stats = _fresh_stats()

    def service_status(self) -> Dict[str, bool]:
        """Which collaborators are configured, for the health check."""
        return {
            "database": self.db is not None,
            "auth": self.auth is not None,
            "assistant": self.assistant is not None,
            "payments": bool(self.payments is not None and self.payments.configured),
            "uploads": self.uploader is not None,
        }


# ============================================================
# FastAPI Dependency Injection Helpers
# ============================================================

def get_app_state_from_request(request) -> "AppState":
    """
    Get AppState from a request.

    Usage in routes:
        from services.app_state import get_app_state_from_request

        @router.get("/endpoint")
        async def endpoint(request: Request):
            app_state = get_app_state_from_request(request)
            app_state.increment_stat("total_requests")
    """
    return request.app.state.app_state


def get_app_state_dependency():
    """
    FastAPI Depends() compatible dependency.

    Usage:
        from fastapi import Depends
        from services.app_state import get_app_state_dependency, AppState

        @router.get("/endpoint")
        async def endpoint(app_state: AppState = Depends(get_app_state_dependency())):
            app_state.increment_stat("total_requests")
    """
    from fastapi import Request

    async def _get_state(request: Request) -> AppState:
        return request.app.state.app_state

    return _get_state
