"""
Valuation Routes - creating, listing and gating valuations

This module contains:
- /api/create-valuation: free / token / paid gating, then store
- /api/save-to-supabase: legacy save path with front-end defaults
- /api/user-status: free valuations left and token balance
- /api/my-valuations/*: the user's stored valuations
- /api/auth/signup-tokens: one-time signup token grant
"""

import asyncio
import logging
import math
from datetime import datetime
from functools import partial

from fastapi import APIRouter, Depends, Query, Request

from config import MAX_PAGE_SIZE
from services.app_state import AppState, get_app_state_dependency, get_app_state_from_request
from services.auth import AuthUser, require_user
from services.exceptions import ForbiddenError, NotFoundError
from services.request_parser import parse_valuation_request, read_json_body

logger = logging.getLogger(__name__)

router = APIRouter(tags=["valuations"])


async def _db_call(fn, *args):
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, partial(fn, *args))


async def _create(request: Request, user: AuthUser, data: dict) -> dict:
    state = get_app_state_from_request(request)
    valuation_request = parse_valuation_request(data)

    result = await state.ledger.create_valuation(user.id, valuation_request)

    if result["status"] == "success":
        state.record_valuation(result.pop("paymentMethod", None))
    elif result["status"] == "payment_required":
        state.increment_stat("payments_started")
    return result


@router.post("/api/create-valuation")
async def create_valuation(request: Request, user: AuthUser = Depends(require_user)):
    """
    Store a valuation, charging it to the free daily allowance or a token.

    Returns status success, tokens_required, or payment_required (with a
    Stripe checkout URL) for detailed valuations.
    """
    logger.info(f"[VALUATIONS] create-valuation for user {user.id}")
    data = await read_json_body(request)
    return await _create(request, user, data)


@router.post("/api/save-to-supabase")
async def save_valuation(request: Request, user: AuthUser = Depends(require_user)):
    """Older clients post here; same rules as create-valuation."""
    data = await read_json_body(request)
    normalized = {
        "title": data.get("title") or f"Antique Valuation {datetime.now().strftime('%m/%d/%Y')}",
        "fullDescription": data.get("fullDescription") or "",
        "summary": data.get("summary") or "",
        "userComment": data.get("userComment") or "",
        "images": data.get("images") or [],
        "assistantResponse": data.get("assistantResponse") or "",
        "assistantFollowUp": data.get("assistantFollowUp") or "",
        "isDetailed": data.get("isDetailed") or False,
    }
    return await _create(request, user, normalized)


@router.get("/api/user-status")
async def user_status(
    user: AuthUser = Depends(require_user),
    state: AppState = Depends(get_app_state_dependency()),
):
    return await state.ledger.user_status(user.id)


@router.get("/api/my-valuations")
async def my_valuations(
    request: Request,
    page: int = Query(1),
    page_size: int = Query(10, alias="pageSize"),
    user: AuthUser = Depends(require_user),
):
    """
    Paginated list of the user's valuations, newest first.
    Usage: /api/my-valuations?page=2&pageSize=20
    """
    page = max(1, page)
    page_size = min(max(1, page_size), MAX_PAGE_SIZE)
    offset = (page - 1) * page_size

    state = get_app_state_from_request(request)
    valuations, total = await _db_call(state.db.list_valuations, user.id, offset, page_size)

    return {
        "valuations": valuations,
        "pagination": {
            "total": total,
            "page": page,
            "pageSize": page_size,
            "totalPages": math.ceil(total / page_size) if total else 0,
        },
    }


@router.get("/api/my-valuations/{valuation_id}")
async def get_valuation(valuation_id: str, request: Request, user: AuthUser = Depends(require_user)):
    state = get_app_state_from_request(request)
    valuation = await _db_call(state.db.get_valuation, valuation_id, user.id)
    if valuation is None:
        raise NotFoundError("Valuation", valuation_id)
    return {"valuation": valuation}


@router.delete("/api/my-valuations/{valuation_id}")
async def delete_valuation(valuation_id: str, request: Request, user: AuthUser = Depends(require_user)):
    state = get_app_state_from_request(request)
    deleted = await _db_call(state.db.delete_valuation, valuation_id, user.id)
    if not deleted:
        raise NotFoundError("Valuation", valuation_id)
    logger.info(f"[VALUATIONS] Deleted valuation {valuation_id} for {user.id}")
    return {"message": f"Deleted item {valuation_id}"}


@router.post("/api/auth/signup-tokens")
async def signup_tokens(request: Request, user: AuthUser = Depends(require_user)):
    """Grant the signup bonus once. A userId in the body must be the caller."""
    body = await request.body()
    data = await read_json_body(request) if body.strip() else {}

    requested = data.get("userId")
    if requested and requested != user.id:
        raise ForbiddenError("User ID mismatch")

    state = get_app_state_from_request(request)
    return await state.ledger.grant_signup_tokens(user.id)
