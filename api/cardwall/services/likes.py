"""
Like/unlike engine for posts, comments and replies.

A like set is the set of user ids over the ``likes`` rows of one target.
Membership changes are single conditional statements, so two concurrent
likes from different users never lose each other's update.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.orm import Session

from .. import models, schemas
from ..errors import AlreadyLiked, NotFound, NotLiked, ValidationError
from ..store import delete_where, insert_if_absent
from .notifications import NotificationService, make_snippet

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LikeTarget:
    """Address of a likeable item: a post, a comment on it, or a reply to that comment."""

    post_id: int
    comment_id: int | None = None
    reply_id: int | None = None

    @property
    def context(self) -> str:
        if self.reply_id is not None:
            return "reply"
        if self.comment_id is not None:
            return "comment"
        return "post"

    @property
    def item_id(self) -> int | None:
        """Id carried in like notifications; None for post likes."""
        if self.reply_id is not None:
            return self.reply_id
        return self.comment_id

    @property
    def target_id(self) -> int:
        return self.item_id if self.item_id is not None else self.post_id


@dataclass(frozen=True)
class ResolvedTarget:
    target: LikeTarget
    author_id: int
    snippet: str | None


def resolve_target(db: Session, target: LikeTarget) -> ResolvedTarget:
    """
    Check that the addressed item exists and belongs to its parents.

    Raises:
        NotFound: If the post, comment or reply is missing or mismatched
    """
    if target.reply_id is not None and target.comment_id is None:
        raise ValidationError("A reply must be addressed through its comment")

    post = db.get(models.Post, target.post_id)
    if not post:
        raise NotFound("Post not found")

    if target.comment_id is None:
        return ResolvedTarget(target=target, author_id=post.owner_id, snippet=None)

    comment = db.get(models.Comment, target.comment_id)
    if not comment or comment.post_id != post.id:
        raise NotFound("Comment not found")

    if target.reply_id is None:
        return ResolvedTarget(
            target=target, author_id=comment.author_id, snippet=make_snippet(comment.body)
        )

    reply = db.get(models.Reply, target.reply_id)
    if not reply or reply.comment_id != comment.id:
        raise NotFound("Reply not found")

    return ResolvedTarget(target=target, author_id=reply.author_id, snippet=make_snippet(reply.body))


def like_set(db: Session, target_type: str, target_id: int) -> list[int]:
    """User ids that liked the item, in the order the likes were given."""
    rows = (
        db.query(models.Like.user_id)
        .filter(models.Like.target_type == target_type, models.Like.target_id == target_id)
        .order_by(models.Like.id)
        .all()
    )
    return [row.user_id for row in rows]


def like_sets(db: Session, target_type: str, target_ids: list[int]) -> dict[int, list[int]]:
    """Batch version of like_set keyed by target id."""
    result: dict[int, list[int]] = {target_id: [] for target_id in target_ids}
    if not target_ids:
        return result

    rows = (
        db.query(models.Like.target_id, models.Like.user_id)
        .filter(models.Like.target_type == target_type, models.Like.target_id.in_(target_ids))
        .order_by(models.Like.id)
        .all()
    )
    for row in rows:
        result[row.target_id].append(row.user_id)
    return result


def toggle_like(
    db: Session, target: LikeTarget, actor: models.User, want_liked: bool
) -> schemas.LikeState:
    """
    Add or remove the actor's like on a post, comment or reply.

    Liking notifies the item's author unless the actor is the author;
    unliking removes exactly that notification.

    Raises:
        NotFound: If the target does not exist
        AlreadyLiked: If liking an item the actor already likes
        NotLiked: If unliking an item the actor does not like
    """
    resolved = resolve_target(db, target)
    context = target.context

    if want_liked:
        inserted = insert_if_absent(
            db,
            models.Like,
            target_type=context,
            target_id=target.target_id,
            post_id=target.post_id,
            user_id=actor.id,
        )
        if not inserted:
            db.rollback()
            raise AlreadyLiked()

        NotificationService.notify(
            db,
            resolved.author_id,
            actor.id,
            "like",
            post_id=target.post_id,
            context=context,
            item_id=target.item_id,
            snippet=resolved.snippet,
        )
    else:
        removed = delete_where(
            db,
            models.Like,
            models.Like.target_type == context,
            models.Like.target_id == target.target_id,
            models.Like.user_id == actor.id,
        )
        if not removed:
            db.rollback()
            raise NotLiked()

        NotificationService.retract_like(
            db, resolved.author_id, actor.id, target.post_id, context, target.item_id
        )

    db.commit()
    logger.info(
        f"User {actor.id} {'liked' if want_liked else 'unliked'} {context} {target.target_id}"
    )

    likes = like_set(db, context, target.target_id)
    return schemas.LikeState(likes=likes, count=len(likes))
