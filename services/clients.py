"""
API client initialization for vendor services.

Creates and configures the OpenAI, Stripe, Cloudinary and Supabase clients.
Each factory returns None (or False) when its credentials are missing so the
app can still start and report the service as unconfigured.
"""

import logging
from typing import Optional, Any

import httpx
from openai import AsyncOpenAI
import cloudinary
import stripe
from supabase import create_client

logger = logging.getLogger(__name__)


def create_openai_client(api_key: Optional[str], timeout: float = 120.0) -> Optional[AsyncOpenAI]:
    """Create an async OpenAI client for vision, assistant and audio calls."""
    if not api_key:
        logger.warning("[CLIENTS] No OpenAI API key provided")
        return None

    client = AsyncOpenAI(api_key=api_key, timeout=httpx.Timeout(timeout, connect=10.0))
    logger.info(f"[CLIENTS] OpenAI client initialized (timeout={timeout}s)")
    return client


def configure_stripe(secret_key: Optional[str]) -> bool:
    """Set the module-level Stripe key. Returns False when payments are off."""
    if not secret_key:
        logger.warning("[CLIENTS] No Stripe secret key provided - payments disabled")
        return False

    stripe.api_key = secret_key
    logger.info("[CLIENTS] Stripe configured")
    return True


def configure_cloudinary(cloud_name: Optional[str], api_key: Optional[str], api_secret: Optional[str]) -> bool:
    if not (cloud_name and api_key and api_secret):
        logger.warning("[CLIENTS] Cloudinary credentials incomplete - uploads disabled")
        return False

    cloudinary.config(
        cloud_name=cloud_name,
        api_key=api_key,
        api_secret=api_secret,
        secure=True,
    )
    logger.info(f"[CLIENTS] Cloudinary configured (cloud={cloud_name})")
    return True


def create_supabase_client(url: Optional[str], key: Optional[str]) -> Optional[Any]:
    """Create the Supabase client used for auth and, optionally, storage."""
    if not (url and key):
        logger.warning("[CLIENTS] No Supabase credentials provided")
        return None

    client = create_client(url, key)
    logger.info("[CLIENTS] Supabase client initialized")
    return client
