"""Tests for uploads and content retrieval."""
import re

import pytest

import config
from drop.services import short_id

VALID_FILE = ("photo.jpg", b"fake-image-data", "image/jpeg")


async def _upload(client, headers, file=VALID_FILE, **fields):
    return await client.post("/api/upload", files={"file": file}, data=fields, headers=headers)


@pytest.mark.asyncio
async def test_upload_requires_auth(client):
    r = await _upload(client, {}, expiry="1")
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_guest_cannot_upload(client, guest_headers):
    r = await _upload(client, guest_headers, expiry="1")
    assert r.status_code == 403
    assert "insufficient permissions" in r.json()["detail"]


@pytest.mark.asyncio
async def test_uploader_can_upload(client, uploader_headers):
    r = await _upload(client, uploader_headers, expiry="24")
    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    content = body["content"]
    assert re.fullmatch(r"[a-z0-9]{6}", content["id"])
    assert content["url"] == f"http://test/c/{content['id']}"
    assert content["filename"] == "photo.jpg"
    assert content["mime_type"] == "image/jpeg"
    assert content["expires_at"] is not None
    assert "storage_path" not in content


@pytest.mark.asyncio
async def test_admin_can_upload(client, auth_headers):
    r = await _upload(client, auth_headers, expiry="off")
    assert r.status_code == 200
    assert r.json()["content"]["expires_at"] is None


@pytest.mark.asyncio
async def test_missing_file(client, uploader_headers):
    r = await client.post("/api/upload", data={"expiry": "1"}, headers=uploader_headers)
    assert r.status_code == 400
    assert r.json()["detail"] == "No file provided"


@pytest.mark.asyncio
async def test_blocked_and_unknown_extensions(client, uploader_headers):
    r = await _upload(client, uploader_headers, file=("script.js", b"alert(1)", "text/javascript"), expiry="1")
    assert r.status_code == 400
    assert "blocked" in r.json()["detail"]
    r = await _upload(client, uploader_headers, file=("data.xyz", b"data", "application/octet-stream"), expiry="1")
    assert r.status_code == 400
    assert "not allowed" in r.json()["detail"]


@pytest.mark.asyncio
async def test_empty_file_rejected(client, uploader_headers):
    r = await _upload(client, uploader_headers, file=("empty.txt", b"", "text/plain"), expiry="1")
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_uploader_expiry_rules(client, uploader_headers):
    r = await _upload(client, uploader_headers, expiry="off")
    assert r.status_code == 400
    assert "Only admins" in r.json()["detail"]
    r = await _upload(client, uploader_headers, expiry="200")
    assert r.status_code == 400
    assert "7 days" in r.json()["detail"]


@pytest.mark.asyncio
async def test_default_expiry_is_one_hour(client, uploader_headers):
    r = await _upload(client, uploader_headers)
    assert r.status_code == 200
    assert r.json()["content"]["expires_at"] is not None


@pytest.mark.asyncio
async def test_storage_limit(client, uploader_headers, monkeypatch):
    monkeypatch.setattr(config, "USER_STORAGE_LIMIT_BYTES", 20)
    r = await _upload(client, uploader_headers, file=("a.txt", b"x" * 15, "text/plain"), expiry="1")
    assert r.status_code == 200
    r = await _upload(client, uploader_headers, file=("b.txt", b"x" * 10, "text/plain"), expiry="1")
    assert r.status_code == 400
    assert "Storage limit exceeded" in r.json()["detail"]


@pytest.mark.asyncio
async def test_id_allocation_failure_aborts_upload(client, uploader_headers, monkeypatch):
    monkeypatch.setattr(short_id, "random_short_id", lambda length=6: "aaaaaa")
    r = await _upload(client, uploader_headers, expiry="1")
    assert r.status_code == 200
    r = await _upload(client, uploader_headers, expiry="1")
    assert r.status_code == 500
    assert "identifier" in r.json()["detail"]


@pytest.mark.asyncio
async def test_raw_and_download(client, uploader_headers):
    r = await _upload(client, uploader_headers, file=("notes.txt", b"hello world", "text/plain"), expiry="1")
    cid = r.json()["content"]["id"]

    r = await client.get(f"/r/{cid}")
    assert r.status_code == 200
    assert r.content == b"hello world"
    assert r.headers["content-disposition"].startswith("inline")
    assert r.headers["x-content-type-options"] == "nosniff"

    r = await client.get(f"/api/content/{cid}")
    assert r.status_code == 200
    assert r.headers["content-disposition"].startswith("attachment")
    assert "notes.txt" in r.headers["content-disposition"]


@pytest.mark.asyncio
async def test_view_requires_login(client, uploader_headers):
    r = await _upload(client, uploader_headers, expiry="1")
    cid = r.json()["content"]["id"]
    r = await client.get(f"/api/c/{cid}")
    assert r.status_code == 401
    r = await client.get(f"/api/c/{cid}", headers=uploader_headers)
    assert r.status_code == 200
    assert r.json()["uploaded_by"]["username"] == "uploader1"


@pytest.mark.asyncio
async def test_unknown_content(client, uploader_headers):
    assert (await client.get("/r/zzzzzz")).status_code == 404
    assert (await client.get("/api/c/zzzzzz", headers=uploader_headers)).status_code == 404
    assert (await client.get("/api/s/no-such-slug", headers=uploader_headers)).status_code == 404


@pytest.mark.asyncio
async def test_expired_content_is_gone(client, auth_headers):
    r = await _upload(client, auth_headers, expiry="1")
    cid = r.json()["content"]["id"]
    r = await client.put(
        f"/api/admin/content/{cid}", json={"expires_at": "2000-01-01T00:00:00"}, headers=auth_headers
    )
    assert r.status_code == 200
    assert (await client.get(f"/r/{cid}")).status_code == 410
    assert (await client.get(f"/api/content/{cid}")).status_code == 410


@pytest.mark.asyncio
async def test_admin_upload_with_slug_and_directory(client, auth_headers):
    r = await client.post("/api/directories", json={"name": "Images", "path": "images"}, headers=auth_headers)
    assert r.status_code == 201
    r = await client.post(
        "/api/admin/upload",
        files={"file": VALID_FILE},
        data={"expiry": "off", "short_slug": "Team-Logo", "directory": "images"},
        headers=auth_headers,
    )
    assert r.status_code == 200
    content = r.json()["content"]
    assert content["short_slugs"] == ["team-logo"]
    assert content["directory"] == "images"

    r = await client.get("/api/s/team-logo", headers=auth_headers)
    assert r.status_code == 200
    assert r.json()["id"] == content["id"]
    assert (await client.get(f"/r/{content['id']}")).status_code == 200


@pytest.mark.asyncio
async def test_admin_upload_rejects_bad_slug_and_directory(client, auth_headers):
    r = await client.post(
        "/api/admin/upload", files={"file": VALID_FILE}, data={"short_slug": "bad slug"}, headers=auth_headers
    )
    assert r.status_code == 400
    r = await client.post(
        "/api/admin/upload", files={"file": VALID_FILE}, data={"directory": "nowhere"}, headers=auth_headers
    )
    assert r.status_code == 400
    assert r.json()["detail"] == "Invalid directory"


@pytest.mark.asyncio
async def test_admin_upload_duplicate_slug(client, auth_headers):
    data = {"short_slug": "logo"}
    r = await client.post("/api/admin/upload", files={"file": VALID_FILE}, data=data, headers=auth_headers)
    assert r.status_code == 200
    r = await client.post("/api/admin/upload", files={"file": VALID_FILE}, data=data, headers=auth_headers)
    assert r.status_code == 409


@pytest.mark.asyncio
async def test_uploader_cannot_use_admin_upload(client, uploader_headers):
    r = await client.post("/api/admin/upload", files={"file": VALID_FILE}, headers=uploader_headers)
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_oversize_upload_rejected(client, uploader_headers, monkeypatch):
    monkeypatch.setattr(config, "MAX_FILE_SIZE_BYTES", 10)
    r = await _upload(client, uploader_headers, file=("big.txt", b"x" * 20, "text/plain"), expiry="1")
    assert r.status_code == 400
    assert "exceeds" in r.json()["detail"]
    r = await _upload(client, uploader_headers, file=("fits.txt", b"x" * 10, "text/plain"), expiry="1")
    assert r.status_code == 200


@pytest.mark.asyncio
async def test_timestamps_carry_utc_offset(client, uploader_headers):
    r = await _upload(client, uploader_headers, expiry="1")
    content = r.json()["content"]
    assert content["expires_at"].endswith("+00:00")
    assert content["created_at"].endswith("+00:00")
