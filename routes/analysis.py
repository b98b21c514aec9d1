"""
Analysis Routes - image upload and AI appraisal endpoints

This module contains:
- /api/upload-image: upload images, one-shot appraisal
- /api/upload-image-stream: upload images, streamed assistant appraisal (NDJSON)
- /api/send-message: follow-up question on an assistant thread
- /api/upload-file: host a single file and return its URL
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile
from fastapi.responses import StreamingResponse

from config import DEFAULT_LANGUAGE, normalize_language
from services.app_state import get_app_state_from_request
from services.auth import AuthUser, require_user
from services.exceptions import ConfigurationError, ValidationError
from services.request_parser import collect_uploads, read_json_body

logger = logging.getLogger(__name__)

router = APIRouter(tags=["analysis"])


def _services(request: Request):
    state = get_app_state_from_request(request)
    if state.assistant is None:
        raise ConfigurationError("AI service is not configured", config_key="OPENAI_API_KEY")
    if state.uploader is None:
        raise ConfigurationError("Image hosting is not configured", config_key="CLOUDINARY_CLOUD_NAME")
    return state


@router.post("/api/upload-image")
async def upload_image(
    request: Request,
    files: Optional[List[UploadFile]] = File(None),
    file: Optional[UploadFile] = File(None),
    language: str = Form(DEFAULT_LANGUAGE),
    user: AuthUser = Depends(require_user),
):
    """Upload item photos and return {description, remarks}."""
    uploads = await collect_uploads(files, file)
    if not uploads:
        raise ValidationError("No files uploaded")

    state = _services(request)
    image_urls = await state.uploader.upload_many(uploads)

    state.increment_stat("ai_calls")
    return await state.assistant.analyze_images(image_urls, normalize_language(language))


@router.post("/api/upload-image-stream")
async def upload_image_stream(
    request: Request,
    files: Optional[List[UploadFile]] = File(None),
    file: Optional[UploadFile] = File(None),
    language: str = Form(DEFAULT_LANGUAGE),
    user: AuthUser = Depends(require_user),
):
    """
    Upload item photos and stream the assistant's appraisal.

    Each line of the body is a JSON event; the thread id comes back in the
    x-thread-id header for follow-up messages.
    """
    logger.info(f"[ANALYSIS] upload-image-stream called by {user.id}")
    uploads = await collect_uploads(files, file)
    if not uploads:
        raise ValidationError("No files uploaded")

    state = _services(request)
    image_urls = await state.uploader.upload_many(uploads)
    thread_id = await state.assistant.start_thread(image_urls, normalize_language(language))

    state.increment_stat("ai_calls")
    return StreamingResponse(
        state.assistant.stream_thread_analysis(thread_id),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "x-thread-id": thread_id,
        },
    )


@router.post("/api/send-message")
async def send_message(request: Request, user: AuthUser = Depends(require_user)):
    """Continue an assistant thread; streams the updated report as plain text."""
    data = await read_json_body(request)
    thread_id = data.get("threadId")
    message = data.get("message")
    language = normalize_language(data.get("language"))

    if not thread_id:
        raise ValidationError("Thread ID is required", field="threadId")
    if not isinstance(message, str) or not message.strip():
        raise ValidationError("Valid message content is required", field="message")

    state = get_app_state_from_request(request)
    if state.assistant is None:
        raise ConfigurationError("AI service is not configured", config_key="OPENAI_API_KEY")

    chunks = await state.assistant.stream_follow_up(thread_id, message, language)
    state.increment_stat("ai_calls")
    return StreamingResponse(
        chunks,
        media_type="text/plain; charset=utf-8",
        headers={"x-thread-id": thread_id},
    )


@router.post("/api/upload-file")
async def upload_file(
    request: Request,
    file: Optional[UploadFile] = File(None),
    user: AuthUser = Depends(require_user),
):
    uploads = await collect_uploads(None, file)
    if not uploads:
        raise ValidationError("No file uploaded", field="file")

    state = get_app_state_from_request(request)
    if state.uploader is None:
        raise ConfigurationError("Image hosting is not configured", config_key="CLOUDINARY_CLOUD_NAME")

    filename, data = uploads[0]
    url = await state.uploader.upload(data, filename)
    return {"url": url, "message": "File uploaded successfully"}
