"""
Saved posts.

Repeated saves and unsaves are reported back to the caller instead of
failing. Post ids are not checked against the posts table; deleting a post
removes it from every saved list.
"""

from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from .. import models, schemas
from ..store import delete_where, insert_if_absent

logger = logging.getLogger(__name__)


def save(db: Session, user: models.User, post_id: int) -> schemas.SaveResult:
    inserted = insert_if_absent(db, models.SavedPost, user_id=user.id, post_id=post_id)
    db.commit()

    if not inserted:
        return schemas.SaveResult(saved=True, changed=False, message="Post already saved")

    logger.info(f"User {user.id} saved post {post_id}")
    return schemas.SaveResult(saved=True, changed=True, message="Post saved")


def unsave(db: Session, user: models.User, post_id: int) -> schemas.SaveResult:
    removed = delete_where(
        db,
        models.SavedPost,
        models.SavedPost.user_id == user.id,
        models.SavedPost.post_id == post_id,
    )
    db.commit()

    if not removed:
        return schemas.SaveResult(saved=False, changed=False, message="Post not found in saved list")

    logger.info(f"User {user.id} unsaved post {post_id}")
    return schemas.SaveResult(saved=False, changed=True, message="Post removed from saved list")


def list_saved(db: Session, user: models.User) -> list[int]:
    """Saved post ids, most recently saved first."""
    rows = (
        db.query(models.SavedPost.post_id)
        .filter(models.SavedPost.user_id == user.id)
        .order_by(models.SavedPost.id.desc())
        .all()
    )
    return [row.post_id for row in rows]
