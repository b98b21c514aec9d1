"""
Analysis and speech route tests. The assistant and uploader are mocks.
"""

import json
from unittest.mock import AsyncMock

from conftest import AUTH
from services.exceptions import UploadError

CHAIR = ("chair.jpg", b"\xff\xd8\xff-jpeg", "image/jpeg")


async def _lines(*items):
    for item in items:
        yield item


# ============================================================
# UPLOADS + ANALYSIS
# ============================================================

def test_upload_image_analyzes_uploaded_urls(client, assistant, uploader, state):
    response = client.post(
        "/api/upload-image",
        files=[("files", CHAIR), ("files", ("back.jpg", b"jpeg-2", "image/jpeg"))],
        data={"language": "DE"},
        headers=AUTH,
    )

    assert response.status_code == 200
    assert response.json() == {"description": "A chair.", "remarks": "Nice patina."}
    uploader.upload_many.assert_awaited_once_with([("chair.jpg", CHAIR[1]), ("back.jpg", b"jpeg-2")])
    assistant.analyze_images.assert_awaited_once_with(
        ["https://res.cloudinary.com/demo/image/upload/chair.jpg"], "de"
    )
    assert state.stats["ai_calls"] == 1


def test_upload_image_accepts_single_file_field(client, uploader):
    response = client.post("/api/upload-image", files={"file": CHAIR}, headers=AUTH)

    assert response.status_code == 200
    uploader.upload_many.assert_awaited_once_with([("chair.jpg", CHAIR[1])])


def test_upload_image_without_files(client, assistant):
    response = client.post("/api/upload-image", data={"language": "en"}, headers=AUTH)

    assert response.status_code == 400
    assert response.json()["error"] == "No files uploaded"
    assistant.analyze_images.assert_not_awaited()


def test_upload_image_reports_upload_failure(client, uploader):
    uploader.upload_many = AsyncMock(side_effect=UploadError("Failed to upload image 1: timed out"))

    response = client.post("/api/upload-image", files={"file": CHAIR}, headers=AUTH)

    assert response.status_code == 502
    assert response.json()["error"] == "Failed to upload image 1: timed out"


def test_upload_image_without_ai_configured(client, state):
    state.assistant = None

    response = client.post("/api/upload-image", files={"file": CHAIR}, headers=AUTH)

    assert response.status_code == 500
    assert response.json()["code"] == "CONFIGURATION_ERROR"


def test_upload_image_stream_returns_ndjson(client, assistant):
    assistant.stream_thread_analysis = lambda thread_id: _lines(
        json.dumps({"type": "status", "content": "Starting image processing..."}) + "\n",
        json.dumps({"type": "complete", "content": {"description": "A chair.", "remarks": "Old."}}) + "\n",
    )

    response = client.post("/api/upload-image-stream", files={"file": CHAIR}, headers=AUTH)

    assert response.status_code == 200
    assert response.headers["x-thread-id"] == "thread_abc"
    assert response.headers["content-type"].startswith("text/event-stream")
    events = [json.loads(line) for line in response.text.splitlines()]
    assert [e["type"] for e in events] == ["status", "complete"]
    assistant.start_thread.assert_awaited_once()


def test_upload_file_returns_url(client, uploader):
    response = client.post("/api/upload-file", files={"file": ("notes.pdf", b"%PDF", "application/pdf")}, headers=AUTH)

    assert response.json() == {
        "url": "https://res.cloudinary.com/demo/raw/upload/file.pdf",
        "message": "File uploaded successfully",
    }
    uploader.upload.assert_awaited_once_with(b"%PDF", "notes.pdf")


def test_upload_file_missing(client):
    response = client.post("/api/upload-file", data={"x": "1"}, headers=AUTH)

    assert response.status_code == 400
    assert response.json()["error"] == "No file uploaded"


# ============================================================
# FOLLOW-UP MESSAGES
# ============================================================

def test_send_message_streams_text(client, assistant):
    assistant.stream_follow_up = AsyncMock(return_value=_lines(b"Updated ", b"report."))

    response = client.post(
        "/api/send-message",
        json={"threadId": "thread_abc", "message": "It is signed.", "language": "es"},
        headers=AUTH,
    )

    assert response.status_code == 200
    assert response.text == "Updated report."
    assistant.stream_follow_up.assert_awaited_once_with("thread_abc", "It is signed.", "es")


def test_send_message_requires_thread(client):
    response = client.post("/api/send-message", json={"message": "Hello"}, headers=AUTH)

    assert response.status_code == 400
    assert response.json()["error"] == "Thread ID is required"


def test_send_message_requires_content(client):
    response = client.post("/api/send-message", json={"threadId": "thread_abc", "message": "   "}, headers=AUTH)

    assert response.status_code == 400
    assert response.json()["error"] == "Valid message content is required"


# ============================================================
# SPEECH
# ============================================================

def test_transcribe_audio(client, assistant):
    response = client.post(
        "/api/transcribe",
        files={"audio": ("note.webm", b"webm-bytes", "audio/webm")},
        headers=AUTH,
    )

    assert response.json() == {"text": "Is this chair original?"}
    assistant.transcribe.assert_awaited_once_with(b"webm-bytes", "audio.webm")


def test_transcribe_without_audio(client):
    response = client.post("/api/transcribe", data={"language": "en"}, headers=AUTH)

    assert response.status_code == 400
    assert response.json()["error"] == "No audio file provided"


def test_summarize(client, assistant):
    response = client.post("/api/summarize", json={"text": "Long appraisal", "language": "fr"}, headers=AUTH)

    assert response.json() == {"summary": "A Victorian chair in good condition."}
    assistant.summarize.assert_awaited_once_with("Long appraisal", "fr")


def test_summarize_fallback_note(client, assistant):
    assistant.summarize = AsyncMock(return_value=("First sentence...", True))

    response = client.post("/api/summarize", json={"text": "First sentence. Second."}, headers=AUTH)

    assert response.status_code == 200
    assert response.json() == {
        "summary": "First sentence...",
        "error": "Failed to generate summary, using fallback",
    }


def test_summarize_body_errors(client):
    json_headers = {**AUTH, "Content-Type": "application/json"}

    empty = client.post("/api/summarize", content=b"", headers=json_headers)
    broken = client.post("/api/summarize", content=b"{\"text\":", headers=json_headers)
    blank = client.post("/api/summarize", json={"text": "  "}, headers=AUTH)

    assert empty.json()["error"] == "Empty request body"
    assert broken.json()["error"] == "Invalid JSON in request body"
    assert blank.json()["error"] == "Text is required"
    assert {r.status_code for r in (empty, broken, blank)} == {400}


def test_text_to_speech_returns_mp3(client):
    response = client.post("/api/text-to-speech", json={"text": "Hello"}, headers=AUTH)

    assert response.status_code == 200
    assert response.headers["content-type"] == "audio/mpeg"
    assert response.content == b"ID3-mp3-bytes"


def test_text_to_speech_requires_text(client):
    response = client.post("/api/text-to-speech", json={"language": "en"}, headers=AUTH)

    assert response.status_code == 400
    assert response.json()["error"] == "No text provided"


def test_text_to_speech_stream(client, assistant):
    assistant.stream_speech = lambda text: _lines(b"chunk-1", b"", b"chunk-3")

    response = client.post("/api/text-to-speech/stream", json={"text": "Long text"}, headers=AUTH)

    assert response.status_code == 200
    assert response.content == b"chunk-1chunk-3"
