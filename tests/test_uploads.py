"""
ImageUploader and request parsing tests.
"""

import asyncio
from unittest.mock import patch

import pytest

from services.exceptions import UploadError, ValidationError
from services.request_parser import parse_valuation_request
from services.uploads import ImageUploader


def test_upload_many_keeps_order():
    uploader = ImageUploader(timeout=5)
    results = iter([
        {"secure_url": "https://res.cloudinary.com/demo/1.jpg"},
        {"secure_url": "https://res.cloudinary.com/demo/2.jpg"},
    ])

    with patch("cloudinary.uploader.upload", side_effect=lambda *a, **kw: next(results)) as upload:
        urls = asyncio.run(uploader.upload_many([("a.jpg", b"1"), ("b.jpg", b"2")]))

    assert urls == ["https://res.cloudinary.com/demo/1.jpg", "https://res.cloudinary.com/demo/2.jpg"]
    assert upload.call_args.kwargs == {"resource_type": "auto", "timeout": 5}


def test_upload_failure_names_the_image():
    uploader = ImageUploader()
    responses = iter([{"secure_url": "https://res.cloudinary.com/demo/1.jpg"}, {}])

    with patch("cloudinary.uploader.upload", side_effect=lambda *a, **kw: next(responses)):
        with pytest.raises(UploadError) as exc:
            asyncio.run(uploader.upload_many([("a.jpg", b"1"), ("b.jpg", b"2")]))

    assert exc.value.message == "Failed to upload image 2: No result from Cloudinary upload"
    assert exc.value.status_code == 502


def test_parse_valuation_request_maps_camel_case():
    request = parse_valuation_request({
        "title": "Samovar",
        "fullDescription": "Russian brass samovar",
        "images": "https://example.com/samovar.jpg",
        "userComment": "Inherited",
        "assistantFollowUp": "Updated report",
        "isDetailed": True,
    })

    assert request.full_description == "Russian brass samovar"
    assert request.images == ["https://example.com/samovar.jpg"]
    assert request.user_comment == "Inherited"
    assert request.assistant_follow_up == "Updated report"
    assert request.is_detailed is True


def test_parse_valuation_request_rejects_bad_images():
    with pytest.raises(ValidationError):
        parse_valuation_request({"title": "x", "fullDescription": "y", "images": {"url": "z"}})
