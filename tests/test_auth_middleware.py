"""
Login redirect guard, HTML pages and app-level endpoints.
"""

import asyncio
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from fastapi import Request

from conftest import AUTH, USER_ID
from services.auth import AuthUser, SupabaseAuth, extract_access_token
from services.auth_middleware import is_guarded


@pytest.mark.parametrize("path,guarded", [
    ("/", True),
    ("/my-valuations", True),
    ("/login", True),
    ("/api/user-status", False),
    ("/api/webhook/stripe", False),
    ("/health", False),
    ("/docs", False),
    ("/openapi.json", False),
    ("/favicon.ico", False),
    ("/static/app.js", False),
    ("/images/logo.PNG", False),
])
def test_is_guarded(path, guarded):
    assert is_guarded(path) is guarded


def test_signed_out_page_redirects_to_login(client):
    response = client.get("/my-valuations", follow_redirects=False)

    assert response.status_code == 307
    assert response.headers["location"] == "/login"


def test_signed_in_login_redirects_home(client):
    response = client.get("/login", headers=AUTH, follow_redirects=False)

    assert response.status_code == 307
    assert response.headers["location"] == "/"


def test_login_page_renders(client):
    response = client.get("/login")

    assert response.status_code == 200
    assert "Sign In" in response.text


def test_login_sets_session_cookie(client):
    response = client.post(
        "/login",
        data={"email": "collector@example.com", "password": "correct-horse"},
        follow_redirects=False,
    )

    assert response.status_code == 303
    assert response.headers["location"] == "/"
    assert "sb-access-token=valid-token" in response.headers["set-cookie"]


def test_login_with_wrong_password(client):
    response = client.post("/login", data={"email": "collector@example.com", "password": "nope"})

    assert response.status_code == 401
    assert "Invalid email or password" in response.text


def test_logout_clears_cookie(client):
    response = client.get("/logout", headers=AUTH, follow_redirects=False)

    assert response.status_code == 303
    assert response.headers["location"] == "/login"
    assert "sb-access-token=" in response.headers["set-cookie"]


def test_api_routes_answer_401_not_redirect(client):
    response = client.get("/api/my-valuations", follow_redirects=False)

    assert response.status_code == 401


def test_home_and_buy_tokens_pages(client):
    home = client.get("/", headers=AUTH)
    buy = client.get("/buy-tokens", headers=AUTH)

    assert home.status_code == 200
    assert "Appraise an Antique" in home.text
    assert "5 tokens - $5.00" in buy.text
    assert "10 tokens - $9.00" in buy.text


def test_token_success_page_escapes_session_id(client):
    response = client.get("/token-success", params={"session_id": "cs_<script>"}, headers=AUTH)

    assert response.status_code == 200
    assert "cs_<script>" not in response.text
    assert "/api/verify-payment" in response.text


def test_valuation_pages(client, db):
    stored = db.insert_valuation({
        "user_id": USER_ID,
        "title": "Art <Deco> lamp",
        "full_description": "Bronze lamp with frosted shade.",
        "images": ["https://example.com/lamp.jpg"],
    })

    listing = client.get("/my-valuations", headers=AUTH)
    detail = client.get(f"/my-valuations/{stored['id']}", headers=AUTH)
    missing = client.get("/my-valuations/unknown", headers=AUTH, follow_redirects=False)

    assert "Art &lt;Deco&gt; lamp" in listing.text
    assert "Bronze lamp with frosted shade." in detail.text
    assert "https://example.com/lamp.jpg" in detail.text
    assert missing.status_code == 303


def test_health_is_public(client, state):
    response = client.get("/health")

    body = response.json()
    assert response.status_code == 200
    assert body["status"] == "healthy"
    assert body["services"] == {
        "database": True,
        "auth": True,
        "assistant": True,
        "payments": True,
        "uploads": True,
    }
    assert body["total_requests"] == state.stats["total_requests"] == 1


def test_favicon_is_empty(client):
    assert client.get("/favicon.ico").status_code == 204


def test_reset_stats(client, state):
    client.get("/health")
    state.reset_stats()

    assert state.stats["total_requests"] == 0
    assert state.get_session_duration() >= 0


# ============================================================
# SUPABASE AUTH
# ============================================================

def test_supabase_auth_resolves_user():
    client = MagicMock()
    client.auth.get_user.return_value = SimpleNamespace(user=SimpleNamespace(id="uuid-1", email="a@example.com"))

    user = asyncio.run(SupabaseAuth(client).get_user("jwt"))

    assert user == AuthUser(id="uuid-1", email="a@example.com")
    client.auth.get_user.assert_called_once_with("jwt")


def test_supabase_auth_rejects_bad_token():
    client = MagicMock()
    client.auth.get_user.side_effect = RuntimeError("invalid JWT")

    assert asyncio.run(SupabaseAuth(client).get_user("expired")) is None


def test_supabase_sign_in_returns_access_token():
    client = MagicMock()
    client.auth.sign_in_with_password.return_value = SimpleNamespace(session=SimpleNamespace(access_token="jwt-1"))

    token = asyncio.run(SupabaseAuth(client).sign_in("a@example.com", "pw"))

    assert token == "jwt-1"
    client.auth.sign_in_with_password.assert_called_once_with({"email": "a@example.com", "password": "pw"})


def test_bearer_header_wins_over_cookie():
    scope = {
        "type": "http",
        "headers": [
            (b"authorization", b"Bearer header-token"),
            (b"cookie", b"sb-access-token=cookie-token"),
        ],
    }
    assert extract_access_token(Request(scope)) == "header-token"

    scope["headers"] = [(b"cookie", b"sb-access-token=cookie-token")]
    assert extract_access_token(Request(scope)) == "cookie-token"

    scope["headers"] = []
    assert extract_access_token(Request(scope)) is None
