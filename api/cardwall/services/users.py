"""User profiles, profile images, badges and account deletion."""

from __future__ import annotations

import logging

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import is_admin
from ..errors import Forbidden, NotFound, ValidationError
from ..settings import CARDWALL_CASCADE_ATTEMPTS
from ..store import delete_where, run_with_retry
from ..vault import ImageStore
from .comments import purge_comment, purge_reply
from .images import commit_with_image, store_image
from .notifications import NotificationService
from .posts import purge_post

logger = logging.getLogger(__name__)

IMAGE_FIELDS = {
    "profile": "profile_image_url",
    "cover": "cover_image_url",
}


def _get_user(db: Session, user_id: int) -> models.User:
    user = db.get(models.User, user_id)
    if not user:
        raise NotFound("User not found")
    return user


def get_profile(db: Session, user_id: int) -> schemas.UserProfile:
    user = _get_user(db, user_id)

    follower_count = (
        db.query(func.count(models.Follow.id))
        .filter(models.Follow.following_id == user.id)
        .scalar()
    )
    following_count = (
        db.query(func.count(models.Follow.id))
        .filter(models.Follow.follower_id == user.id)
        .scalar()
    )
    post_ids = [
        row.id
        for row in db.query(models.Post.id)
        .filter(models.Post.owner_id == user.id)
        .order_by(models.Post.id)
    ]

    return schemas.UserProfile(
        id=user.id,
        handle=user.handle,
        name=user.name,
        profile_image_url=user.profile_image_url,
        badge=user.badge,
        bio=user.bio,
        cover_image_url=user.cover_image_url,
        role=user.role,
        follower_count=follower_count or 0,
        following_count=following_count or 0,
        post_ids=post_ids,
        created_at=user.created_at,
    )


def update_profile(
    db: Session, user: models.User, *, name: str | None = None, bio: str | None = None
) -> models.User:
    """
    Update display name and/or bio. Fields left as None are unchanged.

    An empty bio clears it; the name cannot be blanked.
    """
    if name is not None:
        if not name.strip():
            raise ValidationError("Name cannot be empty")
        user.name = name.strip()

    if bio is not None:
        user.bio = bio.strip() or None

    db.commit()
    db.refresh(user)

    logger.info(f"User {user.id} updated profile")
    return user


def update_profile_image(
    db: Session, user: models.User, scope: str, image: bytes | None, images: ImageStore
) -> models.User:
    """
    Replace the user's profile or cover image.

    The previous image is released after the new handle is committed.
    """
    field = IMAGE_FIELDS.get(scope)
    if field is None:
        raise ValidationError(f"Unknown image kind '{scope}'")
    if not image:
        raise ValidationError("Image is required")

    stored = store_image(db, images, image, scope, str(user.id))
    old_url = getattr(user, field)
    setattr(user, field, stored.url)

    commit_with_image(db, images, stored.url, old_url=old_url, label=f"{scope} image")
    db.refresh(user)

    logger.info(f"User {user.id} updated {scope} image")
    return user


def remove_profile_image(
    db: Session, user: models.User, scope: str, images: ImageStore
) -> models.User:
    """Clear the user's profile or cover image, releasing it once the change is committed."""
    field = IMAGE_FIELDS.get(scope)
    if field is None:
        raise ValidationError(f"Unknown image kind '{scope}'")

    old_url = getattr(user, field)
    if not old_url:
        return user

    setattr(user, field, None)
    commit_with_image(db, images, None, old_url=old_url, label=f"{scope} image")
    db.refresh(user)

    logger.info(f"User {user.id} removed {scope} image")
    return user


def assign_badge(db: Session, admin: models.User, user_id: int, badge: str) -> models.User:
    """Set a user's badge and record who assigned it."""
    if badge not in models.BADGES:
        raise ValidationError(f"Invalid badge '{badge}'. Allowed: {', '.join(models.BADGES)}")

    user = _get_user(db, user_id)
    user.badge = badge
    db.add(models.BadgeAssignment(user_id=user.id, badge=badge, assigned_by=admin.id))
    db.commit()
    db.refresh(user)

    logger.info(f"Admin {admin.id} assigned badge '{badge}' to user {user.id}")
    return user


def _purge_user(db: Session, user_id: int) -> bool:
    """Remove a user and everything they own or authored, without committing."""
    owned = (
        db.query(models.Post.id, models.Post.category)
        .filter(models.Post.owner_id == user_id)
        .all()
    )
    for post_id, category in owned:
        tags = [
            row.tag
            for row in db.query(models.PostTag.tag)
            .filter(models.PostTag.post_id == post_id)
            .order_by(models.PostTag.position)
        ]
        purge_post(db, post_id, category, tags)

    for row in db.query(models.Comment.id).filter(models.Comment.author_id == user_id).all():
        purge_comment(db, row.id)
    for row in db.query(models.Reply.id).filter(models.Reply.author_id == user_id).all():
        purge_reply(db, row.id)

    NotificationService.retract_for_user(db, user_id)
    delete_where(db, models.Like, models.Like.user_id == user_id)
    delete_where(
        db,
        models.Follow,
        or_(models.Follow.follower_id == user_id, models.Follow.following_id == user_id),
    )
    delete_where(db, models.SavedPost, models.SavedPost.user_id == user_id)
    delete_where(db, models.BadgeAssignment, models.BadgeAssignment.user_id == user_id)

    return bool(delete_where(db, models.User, models.User.id == user_id))


def delete_user(db: Session, admin: models.User, user_id: int, images: ImageStore) -> None:
    """
    Delete a user account (admin only).

    Releases the user's profile, cover and post images, then removes their
    posts (with full post cascade), comments and replies, likes, follow edges
    in both directions, saved posts and notifications sent or received.
    Report reasons the user filed are kept.

    Raises:
        Forbidden: If the actor is not an admin or targets their own account
        NotFound: If the user does not exist
        Unavailable: If the store keeps failing after the retry
    """
    if not is_admin(admin):
        raise Forbidden("Admin role required")
    if admin.id == user_id:
        raise Forbidden("You cannot delete your own account")

    user = _get_user(db, user_id)

    handles = [user.profile_image_url, user.cover_image_url] + [
        row.background_image
        for row in db.query(models.Post.background_image).filter(models.Post.owner_id == user.id)
    ]
    for url in handles:
        images.release(url)

    run_with_retry(
        db,
        lambda: _purge_user(db, user_id),
        attempts=CARDWALL_CASCADE_ATTEMPTS,
        label=f"delete user {user_id}",
    )

    logger.info(f"Admin {admin.id} deleted user {user_id}")
