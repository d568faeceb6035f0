import os

import pytest

from repositories.users_repo import UsersRepository
from services.avatar_service import MAX_AVATAR_BYTES, AvatarService
from utils.errors import BadRequestError
from helpers import make_user


@pytest.mark.integration
def test_save_avatar_stores_file_and_updates_profile(database, tmp_path):
    user = make_user()
    service = AvatarService(str(tmp_path / "media"), "http://api.local/", UsersRepository())

    url = service.save_avatar(user["id"], "image/png", b"\x89PNG fake")

    assert url.startswith(f"http://api.local/media/avatars/{user['id']}-")
    assert url.endswith(".png")
    file_name = url.rsplit("/", 1)[1]
    with open(os.path.join(tmp_path, "media", "avatars", file_name), "rb") as f:
        assert f.read() == b"\x89PNG fake"
    assert UsersRepository().get_profile(user["id"])["profile_picture_url"] == url


@pytest.mark.integration
def test_save_avatar_validation(database, tmp_path):
    user = make_user()
    service = AvatarService(str(tmp_path), "http://api.local", UsersRepository())

    with pytest.raises(BadRequestError, match="No file uploaded"):
        service.save_avatar(user["id"], "image/png", None)
    with pytest.raises(BadRequestError, match="Only image files are allowed"):
        service.save_avatar(user["id"], "application/pdf", b"%PDF")
    with pytest.raises(BadRequestError, match="File too large"):
        service.save_avatar(user["id"], "image/jpeg", b"x" * (MAX_AVATAR_BYTES + 1))
    assert os.listdir(os.path.join(tmp_path, "avatars")) == []



@pytest.mark.integration
@pytest.mark.parametrize("content_type", ["image/svg+xml", "image/x-icon", "text/html"])
def test_only_raster_images_are_stored(database, tmp_path, content_type):
    user = make_user()
    service = AvatarService(str(tmp_path), "http://api.local", UsersRepository())

    with pytest.raises(BadRequestError, match="Only image files are allowed"):
        service.save_avatar(user["id"], content_type, b"<svg onload='alert(1)'/>")
    assert os.listdir(os.path.join(tmp_path, "avatars")) == []
    assert UsersRepository().get_profile(user["id"])["profile_picture_url"] is None


@pytest.mark.integration
def test_jpeg_with_parameters_is_stored_with_jpg_extension(database, tmp_path):
    user = make_user()
    service = AvatarService(str(tmp_path), "http://api.local", UsersRepository())

    url = service.save_avatar(user["id"], "Image/JPEG; charset=binary", b"\xff\xd8\xff")
    assert url.endswith(".jpg")
