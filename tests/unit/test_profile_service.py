"""Unit tests for profile_service module."""

import pytest
from pydantic import ValidationError

from src.core.errors import PersistenceError, ValidationFailedError
from src.domain.update_models import ProfileUpdate
from src.domain.user import Profile
from src.services import profile_service


USER = "user-1"
PNG = b"\x89PNG\r\n\x1a\nfake"


@pytest.mark.unit
class TestProfileFields:
    """Tests for get_profile / update_profile."""

    async def test_missing_profile_has_defaults(self, patched_db):
        profile = await profile_service.get_profile(user_id=USER)

        assert profile == Profile(user_id=USER, display_name=None, avatar_url=None, dark_mode=False)
        assert patched_db.records("profiles") == []

    async def test_first_update_creates_profile(self, patched_db):
        profile = await profile_service.update_profile(
            user_id=USER, update=ProfileUpdate(display_name="  Ada  ")
        )

        assert profile.display_name == "Ada"
        assert profile.dark_mode is False
        assert len(patched_db.records("profiles")) == 1

    async def test_partial_update_keeps_other_fields(self, patched_db):
        await profile_service.update_profile(user_id=USER, update=ProfileUpdate(display_name="Ada"))

        profile = await profile_service.update_dark_mode(user_id=USER, dark_mode=True)

        assert profile.display_name == "Ada"
        assert profile.dark_mode is True
        assert len(patched_db.records("profiles")) == 1

    async def test_explicit_null_clears_display_name(self, patched_db):
        await profile_service.update_profile(user_id=USER, update=ProfileUpdate(display_name="Ada"))

        profile = await profile_service.update_profile(user_id=USER, update=ProfileUpdate(display_name=None))

        assert profile.display_name is None

    async def test_empty_update_is_a_read(self, patched_db):
        profile = await profile_service.update_profile(user_id=USER, update=ProfileUpdate())

        assert profile == Profile(user_id=USER)
        assert patched_db.records("profiles") == []

    @pytest.mark.parametrize("name", ["   ", "x" * 51])
    def test_invalid_display_name(self, name):
        with pytest.raises(ValidationError):
            ProfileUpdate(display_name=name)

    async def test_write_failure_keeps_previous_profile(self, patched_db):
        await profile_service.update_profile(user_id=USER, update=ProfileUpdate(display_name="Ada"))
        patched_db.fail_on("upsert", "profiles")

        with pytest.raises(PersistenceError):
            await profile_service.update_profile(user_id=USER, update=ProfileUpdate(display_name="Grace"))

        assert (await profile_service.get_profile(user_id=USER)).display_name == "Ada"


@pytest.mark.unit
class TestAvatar:
    """Tests for upload_avatar / remove_avatar."""

    async def test_upload_stores_object_and_sets_url(self, patched_db, avatar_dir):
        profile = await profile_service.upload_avatar(user_id=USER, data=PNG, filename="me.PNG")

        assert profile.avatar_url == f"http://testserver/avatars/{USER}/avatar.png"
        assert (avatar_dir / USER / "avatar.png").read_bytes() == PNG

    async def test_replacing_avatar_removes_old_object(self, patched_db, avatar_dir):
        await profile_service.upload_avatar(user_id=USER, data=PNG, filename="me.png")

        profile = await profile_service.upload_avatar(user_id=USER, data=b"GIF89a", filename="me.gif")

        assert profile.avatar_url.endswith("/avatar.gif")
        assert not (avatar_dir / USER / "avatar.png").exists()
        assert (avatar_dir / USER / "avatar.gif").read_bytes() == b"GIF89a"

    @pytest.mark.parametrize(
        ("data", "filename", "message"),
        [
            (PNG, "notes.txt", "Unsupported avatar type"),
            (PNG, "no_extension", "Unsupported avatar type"),
            (b"", "me.png", "empty"),
        ],
    )
    async def test_invalid_upload(self, patched_db, avatar_dir, data, filename, message):
        with pytest.raises(ValidationFailedError, match=message):
            await profile_service.upload_avatar(user_id=USER, data=data, filename=filename)

        assert (await profile_service.get_profile(user_id=USER)).avatar_url is None

    async def test_oversized_upload(self, patched_db, avatar_dir, monkeypatch):
        monkeypatch.setattr(profile_service.settings, "max_avatar_bytes", 4)

        with pytest.raises(ValidationFailedError, match="exceeds"):
            await profile_service.upload_avatar(user_id=USER, data=PNG, filename="me.png")

    async def test_remove_avatar(self, patched_db, avatar_dir):
        await profile_service.upload_avatar(user_id=USER, data=PNG, filename="me.png")

        profile = await profile_service.remove_avatar(user_id=USER)

        assert profile.avatar_url is None
        assert not (avatar_dir / USER / "avatar.png").exists()

    async def test_remove_without_avatar_is_noop(self, patched_db, avatar_dir):
        profile = await profile_service.remove_avatar(user_id=USER)

        assert profile.avatar_url is None
        assert patched_db.records("profiles") == []
