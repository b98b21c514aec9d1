"""
Page Routes - server-rendered HTML pages

This module contains:
- Auth pages: /login (GET form, POST sign-in), /logout
- App pages: /, /buy-tokens, /my-valuations, /my-valuations/{id}
- Checkout return pages: /token-success, /valuation-success

The auth middleware redirects signed-out visitors to /login before any of
these handlers run, so request.state.user is set here (except on /login).
"""

import asyncio
import logging
import math
from functools import partial
from typing import Optional

from fastapi import APIRouter, Form, Query, Request
from fastapi.responses import HTMLResponse, RedirectResponse

from config import PRICING
from services.app_state import get_app_state_from_request
from services.auth import ACCESS_TOKEN_COOKIE
from templates.pages import (
    render_buy_tokens_page,
    render_home_page,
    render_login_page,
    render_payment_success_page,
    render_valuation_detail_page,
    render_valuations_page,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["pages"], include_in_schema=False)

PAGE_SIZE = 20


@router.get("/login", response_class=HTMLResponse)
async def login_page():
    return render_login_page()


@router.post("/login")
async def login(request: Request, email: str = Form(...), password: str = Form(...)):
    state = get_app_state_from_request(request)
    if state.auth is None:
        return HTMLResponse(render_login_page("Sign-in is not configured"), status_code=503)

    token = await state.auth.sign_in(email, password)
    if not token:
        return HTMLResponse(render_login_page("Invalid email or password"), status_code=401)

    logger.info(f"[AUTH] {email} signed in")
    response = RedirectResponse(url="/", status_code=303)
    response.set_cookie(ACCESS_TOKEN_COOKIE, token, httponly=True, samesite="lax")
    return response


@router.get("/logout")
async def logout():
    response = RedirectResponse(url="/login", status_code=303)
    response.delete_cookie(ACCESS_TOKEN_COOKIE)
    return response


@router.get("/", response_class=HTMLResponse)
async def home():
    return render_home_page()


@router.get("/buy-tokens", response_class=HTMLResponse)
async def buy_tokens_page():
    return render_buy_tokens_page(PRICING.token_packages)


@router.get("/token-success", response_class=HTMLResponse)
async def token_success(session_id: Optional[str] = None):
    return render_payment_success_page("Tokens Purchased", session_id)


@router.get("/valuation-success", response_class=HTMLResponse)
async def valuation_success(session_id: Optional[str] = None):
    return render_payment_success_page("Detailed Valuation Paid", session_id)


@router.get("/my-valuations", response_class=HTMLResponse)
async def valuations_page(request: Request, page: int = Query(1)):
    state = get_app_state_from_request(request)
    user = request.state.user
    page = max(1, page)

    loop = asyncio.get_running_loop()
    rows, total = await loop.run_in_executor(
        None, partial(state.db.list_valuations, user.id, (page - 1) * PAGE_SIZE, PAGE_SIZE)
    )
    return render_valuations_page(rows, page, math.ceil(total / PAGE_SIZE))


@router.get("/my-valuations/{valuation_id}", response_class=HTMLResponse)
async def valuation_detail_page(valuation_id: str, request: Request):
    state = get_app_state_from_request(request)
    user = request.state.user

    loop = asyncio.get_running_loop()
    valuation = await loop.run_in_executor(None, partial(state.db.get_valuation, valuation_id, user.id))
    if valuation is None:
        return RedirectResponse(url="/my-valuations", status_code=303)
    return render_valuation_detail_page(valuation)
