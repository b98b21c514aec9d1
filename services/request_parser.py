"""
Request parsing for the API routes.

Extracts and normalizes JSON bodies, multipart uploads and the
create-valuation payload (camelCase keys from the front end).
"""

import json
import logging
from typing import Any, Dict, List, Optional, Tuple

from fastapi import Request, UploadFile

from services.exceptions import ValidationError
from services.ledger import ValuationRequest

logger = logging.getLogger(__name__)


async def read_json_body(request: Request) -> Dict[str, Any]:
    """
    Parse the request body as a JSON object.

    Raises ValidationError for an empty body, invalid JSON or a non-object.
    """
    body = await request.body()
    if not body.strip():
        raise ValidationError("Empty request body")

    try:
        data = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        logger.warning(f"[REQUEST] Failed to parse request body: {e}")
        raise ValidationError("Invalid JSON in request body")

    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON in request body")
    return data


async def collect_uploads(files: Optional[List[UploadFile]], file: Optional[UploadFile]) -> List[Tuple[str, bytes]]:
    """
    Read multipart uploads into (filename, bytes) pairs.

    Clients send either several `files` parts or a single `file` part.
    """
    uploads = [f for f in (files or []) if f is not None and f.filename]
    if not uploads and file is not None and file.filename:
        uploads = [file]

    result = []
    for upload in uploads:
        result.append((upload.filename, await upload.read()))

    logger.info(f"[REQUEST] {len(result)} file(s) received")
    return result


def _text(data: Dict[str, Any], key: str) -> Optional[str]:
    value = data.get(key)
    if value is None:
        return None
    return value if isinstance(value, str) else str(value)


def parse_valuation_request(data: Dict[str, Any]) -> ValuationRequest:
    """Map the front end's camelCase body onto a ValuationRequest."""
    images = data.get("images") or []
    if isinstance(images, str):
        images = [images]
    if not isinstance(images, list):
        raise ValidationError("images must be a list of URLs", field="images")

    return ValuationRequest(
        title=_text(data, "title") or "",
        full_description=_text(data, "fullDescription") or "",
        images=[str(url) for url in images if url],
        summary=_text(data, "summary"),
        user_comment=_text(data, "userComment"),
        assistant_response=_text(data, "assistantResponse"),
        assistant_follow_up=_text(data, "assistantFollowUp"),
        is_detailed=bool(data.get("isDetailed", False)),
    )
