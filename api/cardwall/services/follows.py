"""Follow graph engine."""

from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from .. import models, schemas
from ..errors import AlreadyFollowing, NotFollowing, NotFound, SelfFollow
from ..store import delete_where, insert_if_absent
from .notifications import NotificationService

logger = logging.getLogger(__name__)


def follower_ids(db: Session, user_id: int) -> list[int]:
    rows = (
        db.query(models.Follow.follower_id)
        .filter(models.Follow.following_id == user_id)
        .order_by(models.Follow.id.desc())
        .all()
    )
    return [row.follower_id for row in rows]


def following_ids(db: Session, user_id: int) -> list[int]:
    rows = (
        db.query(models.Follow.following_id)
        .filter(models.Follow.follower_id == user_id)
        .order_by(models.Follow.id.desc())
        .all()
    )
    return [row.following_id for row in rows]


def follow(db: Session, actor: models.User, target_id: int) -> schemas.FollowState:
    """
    Create the follow edge actor -> target and notify the target.

    Raises:
        SelfFollow: If the actor targets themselves
        NotFound: If the target user does not exist
        AlreadyFollowing: If the edge already exists
    """
    if actor.id == target_id:
        raise SelfFollow()

    target = db.get(models.User, target_id)
    if not target:
        raise NotFound("User not found")

    inserted = insert_if_absent(
        db, models.Follow, follower_id=actor.id, following_id=target.id
    )
    if not inserted:
        db.rollback()
        raise AlreadyFollowing()

    NotificationService.notify(db, target.id, actor.id, "follow")
    db.commit()

    logger.info(f"User {actor.id} followed user {target.id}")
    return schemas.FollowState(following=True, followers=follower_ids(db, target.id))


def unfollow(db: Session, actor: models.User, target_id: int) -> schemas.FollowState:
    """
    Remove the follow edge actor -> target and the follow notification it produced.

    Raises:
        NotFollowing: If the edge does not exist
    """
    removed = delete_where(
        db,
        models.Follow,
        models.Follow.follower_id == actor.id,
        models.Follow.following_id == target_id,
    )
    if not removed:
        db.rollback()
        raise NotFollowing()

    NotificationService.retract_follow(db, target_id, actor.id)
    db.commit()

    logger.info(f"User {actor.id} unfollowed user {target_id}")
    return schemas.FollowState(following=False, followers=follower_ids(db, target_id))


def _users_by_ids(db: Session, user_ids: list[int]) -> list[schemas.UserSummary]:
    if not user_ids:
        return []
    users = {u.id: u for u in db.query(models.User).filter(models.User.id.in_(user_ids)).all()}
    return [schemas.UserSummary.model_validate(users[uid]) for uid in user_ids if uid in users]


def list_followers(db: Session, user_id: int) -> list[schemas.UserSummary]:
    """Users following ``user_id``, newest edge first."""
    if not db.get(models.User, user_id):
        raise NotFound("User not found")
    return _users_by_ids(db, follower_ids(db, user_id))


def list_following(db: Session, user_id: int) -> list[schemas.UserSummary]:
    """Users ``user_id`` follows, newest edge first."""
    if not db.get(models.User, user_id):
        raise NotFound("User not found")
    return _users_by_ids(db, following_ids(db, user_id))
