"""
Antique Appraiser - FastAPI server entry point

Wires the configured vendor clients into AppState and builds the app.
Run: python main.py  (or: uvicorn main:app)
"""

import logging

import uvicorn

from config import (
    HOST, PORT, DEBUG, APP_URL, DB_PATH, DATABASE_BACKEND,
    OPENAI_API_KEY, OPENAI_ASSISTANT_ID,
    STRIPE_SECRET_KEY, STRIPE_WEBHOOK_SECRET,
    SUPABASE_URL, SUPABASE_KEY,
    CLOUDINARY_CLOUD_NAME, CLOUDINARY_API_KEY, CLOUDINARY_API_SECRET,
    AI,
)
from database import Database
from services.app_factory import create_app
from services.app_state import AppState
from services.assistant import AppraisalAssistant
from services.auth import SupabaseAuth
from services.clients import (
    configure_cloudinary,
    configure_stripe,
    create_openai_client,
    create_supabase_client,
)
from services.ledger import ValuationLedger
from services.payments import PaymentService
from services.supabase_store import SupabaseDatabase
from services.uploads import ImageUploader

# ============================================================
# LOGGING SETUP
# ============================================================
logging.basicConfig(
    level=logging.DEBUG if DEBUG else logging.INFO,
    format='%(asctime)s [%(levelname)s] %(message)s',
    datefmt='%H:%M:%S'
)
logger = logging.getLogger(__name__)


def build_state() -> AppState:
    """Create every service from the environment configuration."""
    supabase = create_supabase_client(SUPABASE_URL, SUPABASE_KEY)

    if DATABASE_BACKEND == "supabase" and supabase is not None:
        db = SupabaseDatabase(supabase)
        logger.info("[STARTUP] Storage: Supabase")
    else:
        db = Database(DB_PATH)
        logger.info(f"[STARTUP] Storage: SQLite ({DB_PATH})")

    openai_client = create_openai_client(OPENAI_API_KEY, AI.request_timeout)
    assistant = AppraisalAssistant(openai_client, OPENAI_ASSISTANT_ID) if openai_client else None

    payments = None
    if configure_stripe(STRIPE_SECRET_KEY):
        payments = PaymentService(STRIPE_SECRET_KEY, STRIPE_WEBHOOK_SECRET, APP_URL)

    uploader = None
    if configure_cloudinary(CLOUDINARY_CLOUD_NAME, CLOUDINARY_API_KEY, CLOUDINARY_API_SECRET):
        uploader = ImageUploader()

    return AppState(
        debug_mode=DEBUG,
        db=db,
        auth=SupabaseAuth(supabase) if supabase is not None else None,
        assistant=assistant,
        payments=payments,
        uploader=uploader,
        ledger=ValuationLedger(db, payments),
    )


app = create_app(build_state())


# ============================================================
# RUN SERVER
# ============================================================
if __name__ == "__main__":
    print("\n" + "=" * 60)
    print("Antique Appraiser")
    print("=" * 60)
    print(f"App: http://{HOST}:{PORT}")
    print(f"Storage: {DATABASE_BACKEND}")
    print("=" * 60 + "\n")

    uvicorn.run(app, host=HOST, port=PORT)
