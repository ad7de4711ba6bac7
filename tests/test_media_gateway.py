import asyncio
import io
import os
import time

import boto3
import pytest
from botocore.stub import Stubber
from fastapi import HTTPException, UploadFile
from PIL import Image
from starlette.datastructures import Headers

from conftest import make_image_bytes

from app.services.image_processing import InvalidImageError, compress_image, fill_image, fit_image
from app.services.media_gateway import StagedFile
from app.services.media_storage import MediaStorage, MediaUploadError


def _upload(name, data, content_type):
    return UploadFile(file=io.BytesIO(data), filename=name, headers=Headers({"content-type": content_type}))


def _stage(gateway, name, data, content_type, kind="image"):
    return asyncio.run(gateway.stage_upload(_upload(name, data, content_type), kind))


# ============================================================================
# Image processing
# ============================================================================


def test_fit_image_keeps_aspect_ratio_and_never_upscales():
    result = fit_image(make_image_bytes((3000, 1500)), (1920, 1080))
    assert (result.width, result.height) == (1920, 960)
    assert result.content_type == "image/webp"

    small = fit_image(make_image_bytes((100, 50)), (1920, 1080))
    assert (small.width, small.height) == (100, 50)


def test_fill_image_crops_to_exact_size():
    result = fill_image(make_image_bytes((800, 300)), (400, 400))
    assert (result.width, result.height) == (400, 400)


def test_compress_image_only_above_threshold():
    data = make_image_bytes((3000, 3000))
    assert compress_image(data, threshold=len(data) + 1) == data

    compressed = compress_image(data, threshold=10)
    img = Image.open(io.BytesIO(compressed))
    assert img.format == "JPEG"
    assert max(img.size) <= 2400


def test_invalid_image():
    with pytest.raises(InvalidImageError):
        fit_image(b"not an image", (10, 10))


# ============================================================================
# Staging
# ============================================================================


def test_stage_rejects_wrong_type(gateway):
    with pytest.raises(HTTPException) as exc:
        _stage(gateway, "doc.pdf", b"%PDF", "application/pdf", kind="image")
    assert exc.value.status_code == 400


def test_stage_rejects_empty_file(gateway):
    with pytest.raises(HTTPException) as exc:
        _stage(gateway, "empty.png", b"", "image/png")
    assert exc.value.status_code == 400


def test_stage_enforces_size_limit(gateway, monkeypatch):
    from app.services import media_gateway

    monkeypatch.setitem(
        media_gateway.MEDIA_KINDS, "image", media_gateway.MediaKind("image", 10, content_type_prefixes=("image/",))
    )
    with pytest.raises(HTTPException) as exc:
        _stage(gateway, "big.png", make_image_bytes(), "image/png")
    assert exc.value.status_code == 413
    assert list(gateway.temp_dir.iterdir()) == []


def test_stage_sanitizes_name_and_discard_removes_file(gateway):
    staged = _stage(gateway, "../../etc/passwd.png", make_image_bytes(), "image/png")
    assert "/" not in staged.original_name
    assert staged.path.exists()
    gateway.discard(staged)
    assert not staged.path.exists()


def test_cleanup_temp_files_removes_only_old_files(gateway):
    old = _stage(gateway, "old.png", make_image_bytes(), "image/png")
    fresh = _stage(gateway, "fresh.png", make_image_bytes(), "image/png")
    past = time.time() - 7200
    os.utime(old.path, (past, past))

    assert gateway.cleanup_temp_files(max_age=3600) == 1
    assert not old.path.exists()
    assert fresh.path.exists()


# ============================================================================
# Presets
# ============================================================================


def test_logo_upload_creates_main_and_thumbnail(gateway, storage):
    staged = _stage(gateway, "logo.png", make_image_bytes((2400, 1200)), "image/png")
    media = gateway.upload_logo("biz-1", staged)

    assert media.key.startswith("beauty-control/businesses/biz-1/logos/main/")
    assert media.key.endswith(".webp")
    assert media.thumbnail_key.startswith("beauty-control/businesses/biz-1/logos/thumbs/")
    assert (media.width, media.height) == (1920, 960)
    assert set(storage.objects) == {media.key, media.thumbnail_key}
    assert media.to_dict()["url"] == f"https://media.test/{media.key}"


def test_avatar_is_square_without_thumbnail(gateway):
    staged = _stage(gateway, "me.jpg", make_image_bytes((900, 600), fmt="JPEG"), "image/jpeg")
    media = gateway.upload_avatar("user-1", staged)
    assert (media.width, media.height) == (400, 400)
    assert media.thumbnail_key is None


def test_evidence_batch_reports_failures_per_file(gateway, storage):
    photo = _stage(gateway, "antes.png", make_image_bytes(), "image/png", kind="multi")
    video = _stage(gateway, "clip.mp4", b"\x00\x00\x00\x18ftypmp42", "video/mp4", kind="multi")
    document = _stage(gateway, "form.pdf", b"%PDF-1.4", "application/pdf", kind="multi")

    result = gateway.upload_multiple_evidence("appt-1", [photo, video, document], "after")

    assert result["total"] == 3
    assert len(result["uploaded"]) == 2
    assert result["failed"] == [{"file": "form.pdf", "error": "Unsupported evidence file type: .pdf"}]
    video_item = next(item for item in result["uploaded"] if item["resource_type"] == "video")
    assert video_item["key"].startswith("beauty-control/appointments/appt-1/evidence/after/videos/")
    assert video_item["content_type"] == "video/mp4"


def test_evidence_rejects_unknown_phase(gateway):
    staged = _stage(gateway, "antes.png", make_image_bytes(), "image/png")
    with pytest.raises(HTTPException):
        gateway.upload_evidence("appt-1", staged, "later")


def test_consent_document_key(gateway, storage):
    media = gateway.upload_consent_document("biz-1", "sig-1", b"%PDF-1.4")
    assert media.key == "beauty-control/businesses/biz-1/consents/sig-1.pdf"
    assert storage.objects[media.key][1] == "application/pdf"


def test_delete_image_also_removes_thumbnail(gateway, storage):
    staged = _stage(gateway, "svc.png", make_image_bytes(), "image/png")
    media = gateway.upload_service_image("biz-1", "svc-1", staged)
    assert gateway.delete(media.key, "image") is True
    assert storage.objects == {}


# ============================================================================
# R2 storage
# ============================================================================


@pytest.fixture
def s3_client():
    return boto3.client(
        "s3",
        region_name="auto",
        endpoint_url="https://account.r2.cloudflarestorage.com",
        aws_access_key_id="key",
        aws_secret_access_key="secret",
    )


def test_storage_put_returns_public_url(s3_client):
    storage = MediaStorage(s3_client, "bucket", public_base_url="https://cdn.example.com/")
    with Stubber(s3_client) as stub:
        stub.add_response(
            "put_object",
            {},
            {"Bucket": "bucket", "Key": "a/b.webp", "Body": b"data", "ContentType": "image/webp"},
        )
        assert storage.put("a/b.webp", b"data", "image/webp") == "https://cdn.example.com/a/b.webp"


def test_storage_put_failure_raises_media_upload_error(s3_client):
    storage = MediaStorage(s3_client, "bucket")
    with Stubber(s3_client) as stub:
        stub.add_client_error("put_object", service_error_code="AccessDenied", http_status_code=403)
        with pytest.raises(MediaUploadError):
            storage.put("a/b.webp", b"data", "image/webp")


def test_storage_delete_failure_returns_false(s3_client):
    storage = MediaStorage(s3_client, "bucket")
    with Stubber(s3_client) as stub:
        stub.add_client_error("delete_object", service_error_code="NoSuchKey", http_status_code=404)
        assert storage.delete("a/b.webp") is False


def test_storage_without_public_url_signs_urls(s3_client):
    storage = MediaStorage(s3_client, "bucket")
    url = storage.url_for("docs/consent.pdf")
    assert "X-Amz-Signature" in url or "Signature" in url
    assert "response-content-disposition=inline" in url
