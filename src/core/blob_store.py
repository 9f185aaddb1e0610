"""Filesystem-backed object storage for user avatars."""

import asyncio
import logging
from pathlib import Path

from src.core.config import constants, settings


logger = logging.getLogger(__name__)


class BlobStoreError(RuntimeError):
    """Raised when an object cannot be written or removed."""


def _storage_root() -> Path:
    return Path(settings.avatar_storage_dir).resolve()


def object_key(user_id: str, extension: str) -> str:
    """Return the storage key of a user's avatar (`<user_id>/avatar.<ext>`)."""
    return f"{user_id}/avatar.{extension.lower()}"


def public_url(key: str) -> str:
    """Return the publicly dereferenceable address of a stored object."""
    return f"{settings.public_base_url.rstrip('/')}{constants.AVATAR_URL_PREFIX}/{key}"


def key_from_url(url: str, user_id: str) -> str | None:
    """Recover the storage key of one of `user_id`'s objects from its public URL."""
    file_name = url.rstrip("/").rsplit("/", 1)[-1]
    if not file_name or file_name in {".", ".."}:
        return None
    return f"{user_id}/{file_name}"


def _resolve(key: str) -> Path:
    root = _storage_root()
    path = (root / key).resolve()
    if not path.is_relative_to(root):
        msg = f"Object key escapes storage root: {key}"
        raise BlobStoreError(msg)
    return path


def _write(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)


async def put(*, key: str, data: bytes) -> str:
    """Store (or overwrite) an object and return its public URL."""
    path = _resolve(key)
    try:
        await asyncio.to_thread(_write, path, data)
    except OSError as e:
        logger.error("blob_put_failed", extra={"key": key, "error": str(e)})
        msg = f"Failed to store object {key}: {e}"
        raise BlobStoreError(msg) from e

    logger.info("Stored object", extra={"key": key, "size": len(data)})
    return public_url(key)


async def remove(*, key: str) -> bool:
    """Remove an object; returns False if it did not exist."""
    path = _resolve(key)
    try:
        existed = await asyncio.to_thread(path.exists)
        if existed:
            await asyncio.to_thread(path.unlink)
    except OSError as e:
        logger.error("blob_remove_failed", extra={"key": key, "error": str(e)})
        msg = f"Failed to remove object {key}: {e}"
        raise BlobStoreError(msg) from e

    if existed:
        logger.info("Removed object", extra={"key": key})
    return existed
