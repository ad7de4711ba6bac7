from conftest import make_image_bytes


def _image(name="foto.png", size=(800, 600)):
    return (name, make_image_bytes(size), "image/png")


def test_logo_upload_replaces_previous_logo(api, admin, business, storage, db):
    client = api(admin)

    r = client.post(f"/upload/logo/{business.id}", files={"file": _image()})
    assert r.status_code == 200
    first = r.json()
    assert first["key"].startswith(f"beauty-control/businesses/{business.id}/logos/main/")
    db.refresh(business)
    assert business.logo_key == first["key"]
    assert business.logo_url == first["url"]

    r = client.post(f"/upload/logo/{business.id}", files={"file": _image("nuevo.png")})
    second = r.json()
    assert first["key"] not in storage.objects
    assert first["thumbnail_key"] not in storage.objects
    assert second["key"] in storage.objects


def test_logo_requires_admin(api, specialist, business):
    r = api(specialist).post(f"/upload/logo/{business.id}", files={"file": _image()})
    assert r.status_code == 403


def test_logo_rejects_non_images(api, admin, business, gateway):
    r = api(admin).post(
        f"/upload/logo/{business.id}", files={"file": ("doc.pdf", b"%PDF-1.4", "application/pdf")}
    )
    assert r.status_code == 400
    assert not gateway.temp_dir.exists() or list(gateway.temp_dir.iterdir()) == []


def test_avatar_upload_updates_current_user(api, specialist, db):
    r = api(specialist).post("/upload/avatar", files={"file": _image(size=(1000, 700))})
    assert r.status_code == 200
    body = r.json()
    assert (body["width"], body["height"]) == (400, 400)
    db.refresh(specialist)
    assert specialist.avatar_key == body["key"]
    assert body["key"].startswith(f"beauty-control/users/{specialist.id}/avatars/")


def test_evidence_upload(api, specialist, appointment, gateway):
    files = [
        ("files", _image("antes.png")),
        ("files", ("clip.mp4", b"\x00\x00\x00\x18ftypmp42", "video/mp4")),
    ]
    r = api(specialist).post(f"/upload/evidence/{appointment.id}", params={"phase": "before"}, files=files)
    assert r.status_code == 200
    body = r.json()
    assert body["total"] == 2
    assert body["failed"] == []
    assert list(gateway.temp_dir.iterdir()) == []


def test_evidence_validation(api, specialist, admin, appointment, other_business, db):
    client = api(specialist)
    url = f"/upload/evidence/{appointment.id}"
    assert client.post(url, params={"phase": "someday"}, files=[("files", _image())]).status_code == 400

    too_many = [("files", _image(f"f{i}.png", (10, 10))) for i in range(11)]
    assert client.post(url, files=too_many).status_code == 400

    assert client.post("/upload/evidence/missing", files=[("files", _image())]).status_code == 404

    from app.models import User, UserRole

    outsider = User(business_id=other_business.id, email="x@other.co", role=UserRole.BUSINESS)
    db.add(outsider)
    db.commit()
    assert api(outsider).post(url, files=[("files", _image())]).status_code == 403


def test_service_image_upload(api, admin, business, service, db):
    r = api(admin).post(f"/upload/service-image/{business.id}/{service.id}", files={"file": _image()})
    assert r.status_code == 200
    db.refresh(service)
    assert service.image_key == r.json()["key"]
    assert f"/services/{service.id}/main/" in service.image_key

    r = api(admin).post(f"/upload/service-image/{business.id}/missing", files={"file": _image()})
    assert r.status_code == 404


def test_product_image_upload(api, admin, business):
    r = api(admin).post(f"/upload/product-image/{business.id}/prod-1", files={"file": _image()})
    assert r.status_code == 200
    assert f"/businesses/{business.id}/products/prod-1/main/" in r.json()["key"]


def test_delete_media_checks_ownership(api, admin, business, other_business, storage):
    own_key = f"beauty-control/businesses/{business.id}/logos/main/a.webp"
    other_key = f"beauty-control/businesses/{other_business.id}/logos/main/b.webp"
    storage.objects[own_key] = (b"x", "image/webp")
    storage.objects[other_key] = (b"y", "image/webp")
    client = api(admin)

    r = client.delete("/upload/media", params={"key": own_key})
    assert r.json() == {"deleted": True, "key": own_key}

    assert client.delete("/upload/media", params={"key": other_key}).status_code == 403
    assert client.delete("/upload/media", params={"key": "elsewhere/a.webp"}).status_code == 400
    assert (
        client.delete("/upload/media", params={"key": f"beauty-control/businesses/{business.id}/../x"}).status_code
        == 400
    )
    assert client.delete("/upload/media", params={"key": own_key, "resourceType": "audio"}).status_code == 400


def test_delete_missing_object_reports_bad_gateway(api, admin, business):
    key = f"beauty-control/businesses/{business.id}/logos/main/gone.webp"
    assert api(admin).delete("/upload/media", params={"key": key}).status_code == 502


def test_appointment_keys_follow_appointment_business(api, specialist, appointment, storage):
    key = f"beauty-control/appointments/{appointment.id}/evidence/before/videos/clip.mp4"
    storage.objects[key] = (b"x", "video/mp4")
    r = api(specialist).delete("/upload/media", params={"key": key, "resourceType": "video"})
    assert r.status_code == 200


def test_owner_can_presign_any_key(api, owner, other_business):
    key = f"beauty-control/businesses/{other_business.id}/consents/sig.pdf"
    r = api(owner).get("/upload/presigned", params={"key": key})
    assert r.json() == {"url": f"https://media.test/{key}?signed=1&expires=3600", "expiresIn": 3600}


def test_media_unavailable_without_storage(db, admin, business):
    from fastapi.testclient import TestClient

    from app.auth import get_current_user
    from app.database import get_db
    from app.main import app

    def _get_db():
        yield db

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_current_user] = lambda: admin
    try:
        r = TestClient(app).post(f"/upload/logo/{business.id}", files={"file": _image()})
        assert r.status_code == 503
    finally:
        app.dependency_overrides.clear()
