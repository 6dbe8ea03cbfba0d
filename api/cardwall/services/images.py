"""
Helpers tying image-store calls to the database transaction around them.

An image stored for a row that never gets committed is released again, and
the old image of a replaced handle is only released once the new handle is
committed.
"""

from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..errors import Unavailable, ValidationError
from ..vault import ImageStore, StoredImage

logger = logging.getLogger(__name__)


def store_image(
    db: Session, images: ImageStore, content: bytes, scope: str, key: str
) -> StoredImage:
    """
    Store an image for a row staged in ``db``.

    On failure the transaction is rolled back, so the row and every other
    staged change (counter deltas included) are discarded.

    Raises:
        ValidationError: If the content is not a usable image
        Unavailable: If the image store cannot write it
    """
    try:
        return images.store(content, scope, key)
    except ValueError as e:
        db.rollback()
        raise ValidationError(str(e)) from e
    except OSError as e:
        db.rollback()
        logger.error(f"Image store failed for {scope} {key}: {e}", exc_info=True)
        raise Unavailable("Failed to store image. Please try again.") from e


def commit_with_image(
    db: Session,
    images: ImageStore,
    new_url: str | None,
    *,
    old_url: str | None = None,
    label: str,
) -> None:
    """
    Commit a change that references ``new_url``.

    The old handle is released after a successful commit. If the commit
    fails, the new handle is released instead and the error is re-raised
    (IntegrityError) or surfaced as Unavailable.
    """
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        images.release(new_url)
        raise
    except SQLAlchemyError as e:
        db.rollback()
        images.release(new_url)
        logger.error(f"Failed to commit {label}: {e}", exc_info=True)
        raise Unavailable(f"Failed to save {label}. Please try again.") from e

    if old_url and old_url != new_url:
        images.release(old_url)
