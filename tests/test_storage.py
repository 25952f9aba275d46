import io

import pytest
from fastapi import HTTPException, UploadFile
from starlette.datastructures import Headers

from conftest import TEST_ENV, act_as, run
from learnhub.config import Config
from learnhub.storage.client import ObjectStorage
from learnhub.storage.router import save_upload
from learnhub.storage.validation import (
    MAX_FILE_SIZES,
    MB,
    VIDEOS,
    build_key,
    sanitize_filename,
    validate_content_type,
    validate_file_size,
    video_key_from_url,
)


# ==================== VALIDATION ====================

def test_content_type_per_folder():
    assert validate_content_type("videos", "video/mp4") is None
    assert validate_content_type("images", "image/png") is None
    assert validate_content_type("resources", "application/pdf") is None
    assert "Invalid video type" in validate_content_type("videos", "image/png")
    assert validate_content_type("avatars", None) is not None


def test_size_limits():
    assert validate_file_size("avatars", 5 * MB) is None
    assert "5.00 MB" in validate_file_size("avatars", 5 * MB + 1)
    assert validate_file_size("images", 5 * MB + 1) is None
    assert validate_file_size("videos", 500 * MB + 1) is not None


def test_sanitize_filename():
    assert sanitize_filename("../../secret notes (v2).pdf") == "secret_notes_v2_.pdf"
    assert sanitize_filename("C:\\Users\\me\\clip.mp4") == "clip.mp4"
    assert sanitize_filename("???") == "file"


def test_build_key_layout():
    key = build_key("images", "My Photo.png")
    folder, name = key.split("/", 1)
    assert folder == "images"
    assert name.endswith("-My_Photo.png")


def test_video_key_from_url():
    assert video_key_from_url("intro.mp4") == "videos/intro.mp4"
    assert video_key_from_url("videos/intro.mp4") == "videos/intro.mp4"
    assert video_key_from_url("https://cdn.example.com/bucket/videos/a/b.mp4?x=1") == "videos/a/b.mp4"


def test_object_storage_presigns_locally():
    storage = ObjectStorage(Config(env=TEST_ENV))
    url = storage.signed_download_url("images/cover.png")
    assert "images/cover.png" in url
    assert "X-Amz-Signature=" in url
    assert "X-Amz-Expires=3600" in url

    upload_url = storage.signed_upload_url("videos/lecture.mp4", "video/mp4", expires_in=600)
    assert "videos/lecture.mp4" in upload_url
    assert "X-Amz-Expires=600" in upload_url


# ==================== API ====================

def test_upload_video(client, make_user, storage):
    act_as(client, make_user("instructor"))
    response = client.post("/upload/video", files={"file": ("lecture 1.mp4", b"\x00\x01video", "video/mp4")})
    assert response.status_code == 200
    body = response.json()
    assert body["key"].startswith("videos/")
    assert body["key"].endswith("lecture_1.mp4")
    assert storage.objects[body["key"]] == (b"\x00\x01video", "video/mp4")


def test_upload_rejects_wrong_type(client, make_user, storage):
    act_as(client, make_user("instructor"))
    response = client.post("/upload/video", files={"file": ("notes.pdf", b"%PDF", "application/pdf")})
    assert response.status_code == 400
    assert storage.objects == {}


def test_upload_requires_instructor(client, make_user):
    act_as(client, make_user("student"))
    response = client.post("/upload/image", files={"file": ("a.png", b"png", "image/png")})
    assert response.status_code == 403


def test_upload_thumbnail_returns_file_url(client, make_user):
    act_as(client, make_user("instructor"))
    response = client.post(
        "/upload/image",
        files={"file": ("cover.png", b"png", "image/png")},
        data={"folder": "thumbnails"},
    )
    body = response.json()
    assert body["key"].startswith("thumbnails/")
    assert body["url"] == f"http://localhost:3000/files/{body['key']}"


def test_avatar_size_limit(client, make_user, storage):
    act_as(client, make_user("student"))
    oversized = b"0" * (5 * MB + 1)
    response = client.post("/user/avatar", files={"file": ("me.png", oversized, "image/png")})
    assert response.status_code == 400
    assert "exceeds maximum" in response.json()["detail"]
    assert storage.objects == {}


def test_avatar_upload_updates_profile(client, make_user):
    user = make_user("student")
    act_as(client, user)
    response = client.post("/user/avatar", files={"file": ("me.png", b"png", "image/png")})
    assert response.status_code == 200
    avatar_url = response.json()["avatarUrl"]
    assert avatar_url.startswith(f"http://localhost:3000/files/avatars/{user['user_id']}-")

    assert client.get("/user/profile").json()["user"]["avatar"] == avatar_url


def test_signed_upload_url(client, make_user):
    act_as(client, make_user("instructor"))
    response = client.post("/upload/signed-url", json={
        "folder": "videos", "fileName": "big lecture.mp4", "contentType": "video/mp4",
    })
    assert response.status_code == 200
    body = response.json()
    assert body["key"].startswith("videos/")
    assert body["uploadUrl"] == f"https://storage.test/{body['key']}?signature=put"
    assert body["expiresIn"] == 3600

    response = client.post("/upload/signed-url", json={
        "folder": "avatars", "fileName": "me.png", "contentType": "image/png",
    })
    assert response.status_code == 400


def test_file_redirect_and_video_guard(client, make_user):
    act_as(client, None)
    response = client.get("/files/images/cover.png", follow_redirects=False)
    assert response.status_code == 307
    assert response.headers["location"] == "https://storage.test/images/cover.png?signature=get"

    assert client.get("/files/videos/lecture.mp4", follow_redirects=False).status_code == 403


def test_delete_upload(client, make_user, storage):
    storage.objects["images/old.png"] = (b"png", "image/png")
    act_as(client, make_user("instructor"))
    assert client.delete("/upload/images/old.png").status_code == 200
    assert "images/old.png" not in storage.objects


class UnreadableUpload(UploadFile):
    async def read(self, size=-1):
        raise AssertionError("body read before size check")


def test_oversized_upload_rejected_before_reading(storage):
    upload = UnreadableUpload(
        file=io.BytesIO(b""),
        size=MAX_FILE_SIZES[VIDEOS] + MB,
        filename="big.mp4",
        headers=Headers({"content-type": "video/mp4"}),
    )

    with pytest.raises(HTTPException) as exc:
        run(save_upload(storage, VIDEOS, upload))

    assert exc.value.status_code == 400
    assert "exceeds maximum" in exc.value.detail
    assert storage.objects == {}
