"""Profile service: display name, theme preference and avatar."""

import logging

from src.core import blob_store, db_client
from src.core.config import constants, settings
from src.core.errors import PersistenceError, ValidationFailedError
from src.core.logging import span
from src.domain.update_models import ProfileUpdate
from src.domain.user import Profile


logger = logging.getLogger(__name__)

COLLECTION = "profiles"


def _to_profile(record: dict) -> Profile:
    return Profile.model_validate(record)


async def get_profile(*, user_id: str) -> Profile:
    """Get a user's profile, falling back to the documented defaults when none is stored.

    Raises:
        PersistenceError: If the store cannot be read
    """
    with span("profile_service.get_profile"):
        try:
            record = await db_client.get_first_record(
                collection=COLLECTION,
                filter_query=f'user_id = "{db_client.sanitize_param(user_id)}"',
            )
        except db_client.DatabaseError as e:
            raise PersistenceError(f"Could not load profile for user {user_id}") from e

        if record is None:
            return Profile(user_id=user_id)
        return _to_profile(record)


async def update_profile(*, user_id: str, update: ProfileUpdate) -> Profile:
    """Write the supplied profile fields, creating the profile on first write.

    Fields not present in `update` keep their stored values. The write is a
    single upsert, so a failure leaves the previous record intact.

    Raises:
        PersistenceError: If the store rejects the write
    """
    with span("profile_service.update_profile"):
        changes = update.changes()
        if not changes:
            return await get_profile(user_id=user_id)

        try:
            record = await db_client.upsert_record(
                collection=COLLECTION,
                conflict_field="user_id",
                data={"user_id": user_id, **changes},
            )
        except db_client.DatabaseError as e:
            logger.warning("Profile update failed for %s: %s", user_id, e)
            raise PersistenceError(f"Could not save profile for user {user_id}") from e

        logger.info("Updated profile fields %s for %s", sorted(changes), user_id)
        return _to_profile(record)


async def update_dark_mode(*, user_id: str, dark_mode: bool) -> Profile:
    """Set the theme preference only."""
    return await update_profile(user_id=user_id, update=ProfileUpdate(dark_mode=dark_mode))


def _avatar_extension(filename: str) -> str:
    extension = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
    if extension not in constants.AVATAR_EXTENSIONS:
        allowed = ", ".join(sorted(constants.AVATAR_EXTENSIONS))
        raise ValidationFailedError(f"Unsupported avatar type '{extension}' (allowed: {allowed})")
    return extension


async def upload_avatar(*, user_id: str, data: bytes, filename: str) -> Profile:
    """Replace a user's avatar and point the profile at the new object.

    The previous object is removed before the new one is written.

    Raises:
        ValidationFailedError: If the file is empty, too large, or of an unsupported type
        PersistenceError: If storage or the profile write fails
    """
    with span("profile_service.upload_avatar"):
        extension = _avatar_extension(filename)
        if not data:
            raise ValidationFailedError("Avatar file is empty")
        if len(data) > settings.max_avatar_bytes:
            raise ValidationFailedError(f"Avatar exceeds {settings.max_avatar_bytes} bytes")

        profile = await get_profile(user_id=user_id)
        try:
            if profile.avatar_url:
                old_key = blob_store.key_from_url(profile.avatar_url, user_id)
                if old_key:
                    await blob_store.remove(key=old_key)
            url = await blob_store.put(key=blob_store.object_key(user_id, extension), data=data)
        except blob_store.BlobStoreError as e:
            raise PersistenceError("Could not store avatar") from e

        return await update_profile(user_id=user_id, update=ProfileUpdate(avatar_url=url))


async def remove_avatar(*, user_id: str) -> Profile:
    """Delete the stored avatar object and clear the profile's avatar address."""
    with span("profile_service.remove_avatar"):
        profile = await get_profile(user_id=user_id)
        if not profile.avatar_url:
            return profile

        old_key = blob_store.key_from_url(profile.avatar_url, user_id)
        try:
            if old_key:
                await blob_store.remove(key=old_key)
        except blob_store.BlobStoreError as e:
            raise PersistenceError("Could not remove avatar") from e

        return await update_profile(user_id=user_id, update=ProfileUpdate(avatar_url=None))
