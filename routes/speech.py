"""
Speech Routes - audio notes, summaries and read-aloud

This module contains:
- /api/transcribe: speech to text for recorded comments
- /api/summarize: short audio-friendly summary of an appraisal
- /api/text-to-speech: one MP3 for the whole text
- /api/text-to-speech/stream: chunked MP3 stream for long texts
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Request, UploadFile
from fastapi.responses import Response, StreamingResponse

from config import normalize_language
from services.app_state import get_app_state_from_request
from services.auth import AuthUser, require_user
from services.exceptions import ConfigurationError, ValidationError
from services.request_parser import read_json_body

logger = logging.getLogger(__name__)

router = APIRouter(tags=["speech"])


def _assistant(request: Request):
    state = get_app_state_from_request(request)
    if state.assistant is None:
        raise ConfigurationError("AI service is not configured", config_key="OPENAI_API_KEY")
    state.increment_stat("ai_calls")
    return state.assistant


async def _required_text(request: Request, message: str) -> dict:
    data = await read_json_body(request)
    text = data.get("text")
    if not isinstance(text, str) or not text.strip():
        raise ValidationError(message, field="text")
    return data


@router.post("/api/transcribe")
async def transcribe(
    request: Request,
    audio: Optional[UploadFile] = File(None),
    user: AuthUser = Depends(require_user),
):
    if audio is None:
        raise ValidationError("No audio file provided", field="audio")

    data = await audio.read()
    if not data:
        raise ValidationError("No audio file provided", field="audio")

    text = await _assistant(request).transcribe(data, "audio.webm")
    return {"text": text}


@router.post("/api/summarize")
async def summarize(request: Request, user: AuthUser = Depends(require_user)):
    """
    Summarize an appraisal for audio playback.

    A failing summary model still answers 200 with a sentence-based fallback
    and an `error` note.
    """
    data = await _required_text(request, "Text is required")
    language = normalize_language(data.get("language"))

    summary, degraded = await _assistant(request).summarize(data["text"], language)
    if degraded:
        return {"summary": summary, "error": "Failed to generate summary, using fallback"}
    return {"summary": summary}


@router.post("/api/text-to-speech")
async def text_to_speech(request: Request, user: AuthUser = Depends(require_user)):
    data = await _required_text(request, "No text provided")

    audio = await _assistant(request).synthesize_speech(data["text"])
    return Response(content=audio, media_type="audio/mpeg")


@router.post("/api/text-to-speech/stream")
async def text_to_speech_stream(request: Request, user: AuthUser = Depends(require_user)):
    data = await _required_text(request, "No text provided")

    return StreamingResponse(
        _assistant(request).stream_speech(data["text"]),
        media_type="audio/mpeg",
        headers={"Cache-Control": "no-cache"},
    )
