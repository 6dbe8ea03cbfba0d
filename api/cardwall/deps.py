from __future__ import annotations

from typing import Generator

from sqlalchemy.orm import Session

from .db import get_session
from .vault import ImageStore, get_image_store


def get_db() -> Generator[Session, None, None]:
    yield from get_session()


def get_images() -> ImageStore:
    """Image store used by routes that upload or release images."""
    return get_image_store()
