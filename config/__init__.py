"""
Configuration package.

For new code, import directly from config.settings or from this package.
"""

from .settings import (
    # Paths
    BASE_DIR,
    DB_PATH,

    # Server
    HOST,
    PORT,
    DEBUG,
    APP_URL,

    # API keys
    OPENAI_API_KEY,
    OPENAI_ASSISTANT_ID,
    STRIPE_SECRET_KEY,
    STRIPE_WEBHOOK_SECRET,
    SUPABASE_URL,
    SUPABASE_KEY,
    CLOUDINARY_CLOUD_NAME,
    CLOUDINARY_API_KEY,
    CLOUDINARY_API_SECRET,

    # Storage
    DATABASE_BACKEND,

    # Languages
    SUPPORTED_LANGUAGES,
    DEFAULT_LANGUAGE,
    normalize_language,

    # Dataclass configs
    PricingConfig,
    PRICING,
    QuotaConfig,
    QUOTA,
    AIConfig,
    AI,

    # Uploads / pagination
    UPLOAD_TIMEOUT,
    MAX_PAGE_SIZE,
)
