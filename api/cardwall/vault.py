"""Vault storage for uploaded images.

Every image the platform keeps (post backgrounds, profile and cover pictures,
category and tag art) goes through an ImageStore. The rest of the code only
sees the URL handle it returns and gives that handle back to ``release``.

LocalVault stores files on disk with a hash-based folder structure derived
from the scope and key so that no single folder has too many files.

Example:
    store(content, "post", "42") with a PNG and a hash starting "a1b2c3..."
    is written to VAULT_LOCATION/post/a1/b2/c3/42-<random>.png
    and served as /vault/post/a1/b2/c3/42-<random>.png
"""

from __future__ import annotations

import hashlib
import io
import logging
import os
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from PIL import Image, UnidentifiedImageError

from .settings import CARDWALL_IMAGE_SIZE_LIMIT_BYTES, VAULT_PUBLIC_PREFIX

logger = logging.getLogger(__name__)

SCOPES = ("profile", "cover", "post", "tag", "category")

# Pillow format name -> file extension
ALLOWED_FORMATS = {
    "PNG": ".png",
    "JPEG": ".jpg",
    "GIF": ".gif",
    "WEBP": ".webp",
}


@dataclass(frozen=True)
class StoredImage:
    url: str
    width: int
    height: int


class ImageStore(Protocol):
    def store(self, content: bytes, scope: str, key: str) -> StoredImage:
        """Persist an image and return its handle. Raises ValueError for unusable content."""
        ...

    def release(self, url: str | None) -> None:
        """Drop an image. Missing handles are logged and ignored."""
        ...


def get_vault_location() -> Path:
    """Get the vault location from environment variable."""
    vault_path = os.environ.get("VAULT_LOCATION")
    if not vault_path:
        raise ValueError("VAULT_LOCATION environment variable is not set")
    return Path(vault_path)


def inspect_image(content: bytes) -> tuple[str, int, int]:
    """
    Validate raw image bytes.

    Returns:
        Tuple of (extension, width, height)

    Raises:
        ValueError: If the content is empty, too large, or not a supported image
    """
    if not content:
        raise ValueError("Image is required")

    if len(content) > CARDWALL_IMAGE_SIZE_LIMIT_BYTES:
        max_mb = CARDWALL_IMAGE_SIZE_LIMIT_BYTES / (1024 * 1024)
        actual_mb = len(content) / (1024 * 1024)
        raise ValueError(f"Image size ({actual_mb:.2f} MB) exceeds maximum of {max_mb} MB")

    try:
        with Image.open(io.BytesIO(content)) as img:
            image_format = img.format
            width, height = img.size
    except (UnidentifiedImageError, OSError) as e:
        raise ValueError("Could not read image file. Please ensure it's a valid image.") from e

    if image_format not in ALLOWED_FORMATS:
        raise ValueError(
            f"Image format '{image_format}' is not allowed. Allowed formats: PNG, JPEG, GIF, WebP"
        )

    return ALLOWED_FORMATS[image_format], width, height


class LocalVault:
    """ImageStore backed by a directory, served as static files by the API."""

    def __init__(self, root: Path, public_prefix: str = VAULT_PUBLIC_PREFIX) -> None:
        self.root = root
        self.public_prefix = public_prefix.rstrip("/")

    def _folder(self, scope: str, key: str) -> Path:
        hash_value = hashlib.sha256(f"{scope}:{key}".encode()).hexdigest()
        return Path(scope) / hash_value[0:2] / hash_value[2:4] / hash_value[4:6]

    def store(self, content: bytes, scope: str, key: str) -> StoredImage:
        if scope not in SCOPES:
            raise ValueError(f"Unknown image scope '{scope}'")

        extension, width, height = inspect_image(content)

        # Unique file per upload so replacing an image never clobbers the old handle
        relative = self._folder(scope, key) / f"{key}-{uuid.uuid4().hex[:12]}{extension}"
        file_path = self.root / relative
        file_path.parent.mkdir(parents=True, exist_ok=True)

        try:
            with open(file_path, "wb") as f:
                f.write(content)
        except OSError as e:
            logger.error(f"Failed to save {scope} image {key}: {e}")
            raise

        logger.info(f"Saved {scope} image {key} to {file_path}")
        return StoredImage(
            url=f"{self.public_prefix}/{relative.as_posix()}",
            width=width,
            height=height,
        )

    def _path_for(self, url: str) -> Path | None:
        prefix = f"{self.public_prefix}/"
        if not url.startswith(prefix):
            return None
        relative = Path(url[len(prefix):])
        if ".." in relative.parts:
            return None
        return self.root / relative

    def release(self, url: str | None) -> None:
        if not url:
            return

        file_path = self._path_for(url)
        if file_path is None:
            logger.warning(f"Image handle {url} is not managed by this vault; nothing to release")
            return

        try:
            file_path.unlink()
            logger.info(f"Released image {url}")
        except FileNotFoundError:
            logger.warning(f"Image {url} was already gone at {file_path}")
        except OSError as e:
            logger.error(f"Failed to release image {url}: {e}")


def get_image_store() -> ImageStore:
    return LocalVault(get_vault_location())
