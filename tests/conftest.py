import json
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from database import Database
from services.app_factory import create_app
from services.app_state import AppState
from services.auth import AuthUser
from services.exceptions import StripeAPIError, WebhookSignatureError
from services.ledger import ValuationLedger

VALID_TOKEN = "valid-token"
OTHER_TOKEN = "other-token"
USER_ID = "user-1"
OTHER_USER_ID = "user-2"
GOOD_SIGNATURE = "t=1,v1=good"

AUTH = {"Authorization": f"Bearer {VALID_TOKEN}"}
OTHER_AUTH = {"Authorization": f"Bearer {OTHER_TOKEN}"}


class FakeClock:
    """Settable clock for the free-valuation window."""

    def __init__(self, now=None):
        self.now = now or datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class FakeAuth:
    """Maps bearer tokens to users without calling Supabase."""

    def __init__(self):
        self.users = {
            VALID_TOKEN: AuthUser(id=USER_ID, email="collector@example.com"),
            OTHER_TOKEN: AuthUser(id=OTHER_USER_ID, email="dealer@example.com"),
        }

    async def get_user(self, access_token):
        return self.users.get(access_token)

    async def sign_in(self, email, password):
        return VALID_TOKEN if password == "correct-horse" else None


class FakePayments:
    """Stripe stand-in: canned checkout sessions, JSON events, one good signature."""

    configured = True

    def __init__(self):
        self.sessions = {}
        self.create_token_checkout = AsyncMock(
            return_value={"id": "cs_test_tokens", "url": "https://checkout.stripe.com/c/pay/cs_test_tokens"}
        )
        self.create_detailed_checkout = AsyncMock(
            return_value={"id": "cs_test_detailed", "url": "https://checkout.stripe.com/c/pay/cs_test_detailed"}
        )

    async def retrieve_session(self, session_id):
        if session_id not in self.sessions:
            raise StripeAPIError("Payment service error: No such checkout.session")
        return self.sessions[session_id]

    def construct_event(self, payload, signature):
        if signature != GOOD_SIGNATURE:
            raise WebhookSignatureError()
        return json.loads(payload)


def token_session(session_id="cs_test_tokens", user_id=USER_ID, amount="5", paid=True):
    return {
        "id": session_id,
        "payment_status": "paid" if paid else "unpaid",
        "amount_total": 500,
        "metadata": {"userId": user_id, "tokenAmount": amount, "purchaseType": "tokens"},
    }


def valuation_body(**overrides):
    body = {
        "title": "Victorian walnut side chair",
        "fullDescription": "Carved walnut side chair, circa 1870, original upholstery.",
        "images": ["https://res.cloudinary.com/demo/image/upload/chair.jpg"],
        "summary": "Victorian side chair",
    }
    body.update(overrides)
    return body


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def db(tmp_path):
    database = Database(tmp_path / "appraisals.db")
    yield database
    database.close()


@pytest.fixture
def payments():
    return FakePayments()


@pytest.fixture
def ledger(db, payments, clock):
    return ValuationLedger(db, payments, clock=clock)


@pytest.fixture
def assistant():
    mock = MagicMock()
    mock.analyze_images = AsyncMock(return_value={"description": "A chair.", "remarks": "Nice patina."})
    mock.start_thread = AsyncMock(return_value="thread_abc")
    mock.summarize = AsyncMock(return_value=("A Victorian chair in good condition.", False))
    mock.synthesize_speech = AsyncMock(return_value=b"ID3-mp3-bytes")
    mock.transcribe = AsyncMock(return_value="Is this chair original?")
    return mock


@pytest.fixture
def uploader():
    mock = MagicMock()
    mock.upload = AsyncMock(return_value="https://res.cloudinary.com/demo/raw/upload/file.pdf")
    mock.upload_many = AsyncMock(return_value=["https://res.cloudinary.com/demo/image/upload/chair.jpg"])
    return mock


@pytest.fixture
def state(db, payments, ledger, assistant, uploader):
    return AppState(
        db=db,
        auth=FakeAuth(),
        assistant=assistant,
        payments=payments,
        uploader=uploader,
        ledger=ledger,
    )


@pytest.fixture
def app(state):
    return create_app(state)


@pytest.fixture
def client(app):
    """A test client for the app (lifespan not started)."""
    return TestClient(app)
