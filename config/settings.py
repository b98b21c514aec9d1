"""
Centralized Configuration Settings for the Antique Appraiser

All configuration values are consolidated here for easy management.
Values come from the environment (optionally a .env file at the project root).
"""

import os
from pathlib import Path
from dataclasses import dataclass, field
from typing import Dict, Optional

from dotenv import load_dotenv

# ============================================================
# ENVIRONMENT LOADING
# ============================================================
env_path = Path(__file__).parent.parent / ".env"
if env_path.exists():
    load_dotenv(env_path)
    print(f"[CONFIG] Loaded .env from {env_path}")
else:
    print(f"[CONFIG] No .env file found at {env_path}")

# ============================================================
# PATHS
# ============================================================
BASE_DIR = Path(__file__).parent.parent
DB_PATH = Path(os.getenv("DB_PATH", str(BASE_DIR / "appraisals.db")))

# ============================================================
# SERVER SETTINGS
# ============================================================
HOST = os.getenv("HOST", "127.0.0.1")
PORT = int(os.getenv("PORT", "8000"))
DEBUG = os.getenv("DEBUG", "false").lower() == "true"

# Public base URL used for checkout redirects
APP_URL = os.getenv("APP_URL", f"http://{HOST}:{PORT}").rstrip("/")


def _secret(name: str) -> Optional[str]:
    """Read a credential, treating template placeholders as unset."""
    value = os.getenv(name)
    if not value or value.startswith("YOUR_"):
        return None
    return value


# ============================================================
# API KEYS & CREDENTIALS
# ============================================================
OPENAI_API_KEY = _secret("OPENAI_API_KEY")
OPENAI_ASSISTANT_ID = _secret("OPENAI_ASSISTANT_ID")

if OPENAI_API_KEY:
    print(f"[CONFIG] OpenAI key loaded ({OPENAI_API_KEY[:8]}...)")
else:
    print("[CONFIG] WARNING: OPENAI_API_KEY not set! Appraisal endpoints will fail.")

if not OPENAI_ASSISTANT_ID:
    print("[CONFIG] WARNING: OPENAI_ASSISTANT_ID not set - streaming appraisal disabled")

STRIPE_SECRET_KEY = _secret("STRIPE_SECRET_KEY")
STRIPE_WEBHOOK_SECRET = _secret("STRIPE_WEBHOOK_SECRET")

if STRIPE_SECRET_KEY:
    print("[CONFIG] Stripe configured")
    if not STRIPE_WEBHOOK_SECRET:
        print("[CONFIG] WARNING: STRIPE_WEBHOOK_SECRET not set - webhook will reject every event")
else:
    print("[CONFIG] WARNING: STRIPE_SECRET_KEY not set - payments disabled")

SUPABASE_URL = _secret("SUPABASE_URL")
SUPABASE_KEY = _secret("SUPABASE_KEY")

if SUPABASE_URL and SUPABASE_KEY:
    print(f"[CONFIG] Supabase project: {SUPABASE_URL}")
else:
    print("[CONFIG] WARNING: SUPABASE_URL/SUPABASE_KEY not set - authentication disabled")

CLOUDINARY_CLOUD_NAME = _secret("CLOUDINARY_CLOUD_NAME")
CLOUDINARY_API_KEY = _secret("CLOUDINARY_API_KEY")
CLOUDINARY_API_SECRET = _secret("CLOUDINARY_API_SECRET")

if not (CLOUDINARY_CLOUD_NAME and CLOUDINARY_API_KEY and CLOUDINARY_API_SECRET):
    print("[CONFIG] WARNING: Cloudinary credentials incomplete - image uploads will fail")

# ============================================================
# STORAGE BACKEND
# ============================================================
DATABASE_BACKEND = os.getenv("DATABASE_BACKEND", "sqlite").lower()
if DATABASE_BACKEND not in ("sqlite", "supabase"):
    print(f"[CONFIG] WARNING: Unknown DATABASE_BACKEND '{DATABASE_BACKEND}', using sqlite")
    DATABASE_BACKEND = "sqlite"

# ============================================================
# LANGUAGES
# ============================================================
SUPPORTED_LANGUAGES = ("en", "de", "es", "fr")
DEFAULT_LANGUAGE = "en"


def normalize_language(language: Optional[str]) -> str:
    """Map a client-supplied language to a supported code."""
    lang = (language or DEFAULT_LANGUAGE).strip().lower()
    return lang if lang in SUPPORTED_LANGUAGES else DEFAULT_LANGUAGE


# ============================================================
# PRICING
# ============================================================
@dataclass
class PricingConfig:
    """Checkout prices in cents"""
    token_packages: Dict[int, int] = field(default_factory=lambda: {
        5: 500,   # 5 tokens for $5
        10: 900,  # 10 tokens for $9
    })
    detailed_valuation_cents: int = 300
    currency: str = "usd"

PRICING = PricingConfig()

# ============================================================
# FREE / TOKEN QUOTAS
# ============================================================
@dataclass
class QuotaConfig:
    free_valuations_per_day: int = 1
    free_window_hours: int = 24
    signup_bonus_tokens: int = 5

QUOTA = QuotaConfig()

# ============================================================
# AI MODEL SETTINGS
# ============================================================
@dataclass
class AIConfig:
    """Models, timeouts and size limits for the OpenAI calls"""
    vision_model: str = "gpt-4o-mini"
    assistant_model: str = "gpt-4o"
    summary_model: str = "gpt-4o-mini"
    tts_model: str = "tts-1"
    tts_voice: str = "alloy"
    tts_stream_voice: str = "ash"
    tts_stream_speed: float = 1.2
    transcription_model: str = "whisper-1"

    vision_max_tokens: int = 1500
    summary_max_tokens: int = 300
    summary_temperature: float = 0.7

    request_timeout: float = 120.0     # vision + assistant runs
    summary_timeout: float = 20.0
    tts_chunk_timeout: float = 9.0

    summary_max_chars: int = 10000
    tts_chunk_chars: int = 500

AI = AIConfig()

# ============================================================
# UPLOAD SETTINGS
# ============================================================
UPLOAD_TIMEOUT = 60          # seconds per Cloudinary upload
MAX_PAGE_SIZE = 100          # my-valuations pagination cap
