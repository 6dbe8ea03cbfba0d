"""
Comment and reply engine.

Replies hang off top-level comments and do not nest further. Deleting a
comment removes its reply subtree, every like inside it and every
notification the subtree generated; counters are never touched.
"""

from __future__ import annotations

import logging

from sqlalchemy.orm import Session, joinedload, selectinload

from .. import models, schemas
from ..errors import Forbidden, NotFound, ValidationError
from ..store import delete_where
from .likes import like_sets
from .notifications import NotificationService, make_snippet

logger = logging.getLogger(__name__)


def _clean_text(text: str | None) -> str:
    if text is None or not text.strip():
        raise ValidationError("Comment text is required")
    return text.strip()


def _get_post(db: Session, post_id: int) -> models.Post:
    post = db.get(models.Post, post_id)
    if not post:
        raise NotFound("Post not found")
    return post


def _get_comment(db: Session, post: models.Post, comment_id: int) -> models.Comment:
    comment = db.get(models.Comment, comment_id)
    if not comment or comment.post_id != post.id:
        raise NotFound("Comment not found")
    return comment


def _reply_schema(reply: models.Reply, likes: list[int]) -> schemas.Reply:
    return schemas.Reply(
        id=reply.id,
        comment_id=reply.comment_id,
        author=schemas.UserSummary.model_validate(reply.author),
        body=reply.body,
        likes=likes,
        created_at=reply.created_at,
    )


def _comment_schema(
    comment: models.Comment,
    likes: list[int],
    replies: list[schemas.Reply],
) -> schemas.Comment:
    return schemas.Comment(
        id=comment.id,
        post_id=comment.post_id,
        author=schemas.UserSummary.model_validate(comment.author),
        body=comment.body,
        likes=likes,
        replies=replies,
        created_at=comment.created_at,
    )


def add_comment(db: Session, post_id: int, author: models.User, text: str | None) -> schemas.Comment:
    """
    Append a comment to a post and notify the post owner.

    Raises:
        ValidationError: If the text is blank
        NotFound: If the post does not exist
    """
    body = _clean_text(text)
    post = _get_post(db, post_id)

    comment = models.Comment(post_id=post.id, author_id=author.id, body=body)
    db.add(comment)
    db.flush()

    NotificationService.notify(
        db,
        post.owner_id,
        author.id,
        "comment",
        post_id=post.id,
        item_id=comment.id,
        snippet=make_snippet(body),
    )

    db.commit()
    db.refresh(comment)
    logger.info(f"User {author.id} commented {comment.id} on post {post.id}")

    return _comment_schema(comment, likes=[], replies=[])


def add_reply(
    db: Session, post_id: int, comment_id: int, author: models.User, text: str | None
) -> schemas.Reply:
    """
    Append a reply to a comment and notify the comment's author.

    Raises:
        ValidationError: If the text is blank
        NotFound: If the post or comment does not exist
    """
    body = _clean_text(text)
    post = _get_post(db, post_id)
    comment = _get_comment(db, post, comment_id)

    reply = models.Reply(comment_id=comment.id, post_id=post.id, author_id=author.id, body=body)
    db.add(reply)
    db.flush()

    NotificationService.notify(
        db,
        comment.author_id,
        author.id,
        "reply",
        post_id=post.id,
        item_id=reply.id,
        snippet=make_snippet(body),
    )

    db.commit()
    db.refresh(reply)
    logger.info(f"User {author.id} replied {reply.id} to comment {comment.id}")

    return _reply_schema(reply, likes=[])


def delete_comment(db: Session, post_id: int, comment_id: int, actor: models.User) -> None:
    """
    Delete a comment with its replies, likes and notifications.

    Allowed for the comment author and the post owner.
    """
    post = _get_post(db, post_id)
    comment = _get_comment(db, post, comment_id)

    if actor.id not in (comment.author_id, post.owner_id):
        raise Forbidden("Only the comment author or the post owner can delete this comment")

    removed_replies = purge_comment(db, comment.id)

    db.commit()
    logger.info(
        f"User {actor.id} deleted comment {comment_id} ({removed_replies} replies) on post {post_id}"
    )


def purge_comment(db: Session, comment_id: int) -> int:
    """
    Delete a comment subtree and its notifications, without committing.

    Returns:
        Number of replies removed with the comment
    """
    reply_ids = [
        row.id for row in db.query(models.Reply.id).filter(models.Reply.comment_id == comment_id)
    ]

    NotificationService.retract_for_comment(db, comment_id, reply_ids)

    delete_where(
        db,
        models.Like,
        models.Like.target_type == "comment",
        models.Like.target_id == comment_id,
    )
    if reply_ids:
        delete_where(
            db,
            models.Like,
            models.Like.target_type == "reply",
            models.Like.target_id.in_(reply_ids),
        )
    delete_where(db, models.Reply, models.Reply.comment_id == comment_id)
    delete_where(db, models.Comment, models.Comment.id == comment_id)
    return len(reply_ids)


def purge_reply(db: Session, reply_id: int) -> None:
    """Delete a reply with its likes and notifications, without committing."""
    NotificationService.retract_for_reply(db, reply_id)
    delete_where(
        db,
        models.Like,
        models.Like.target_type == "reply",
        models.Like.target_id == reply_id,
    )
    delete_where(db, models.Reply, models.Reply.id == reply_id)


def delete_reply(
    db: Session, post_id: int, comment_id: int, reply_id: int, actor: models.User
) -> None:
    """
    Delete a reply with its likes and notifications.

    Allowed for the reply author, the comment author and the post owner.
    """
    post = _get_post(db, post_id)
    comment = _get_comment(db, post, comment_id)

    reply = db.get(models.Reply, reply_id)
    if not reply or reply.comment_id != comment.id:
        raise NotFound("Reply not found")

    if actor.id not in (reply.author_id, comment.author_id, post.owner_id):
        raise Forbidden("You are not allowed to delete this reply")

    purge_reply(db, reply.id)

    db.commit()
    logger.info(f"User {actor.id} deleted reply {reply_id} on comment {comment_id}")


def list_comments(db: Session, post_id: int) -> list[schemas.Comment]:
    """Comment tree of a post, oldest first, with like sets and author display fields."""
    _get_post(db, post_id)

    comments = (
        db.query(models.Comment)
        .options(
            joinedload(models.Comment.author),
            selectinload(models.Comment.replies).joinedload(models.Reply.author),
        )
        .filter(models.Comment.post_id == post_id)
        .order_by(models.Comment.created_at, models.Comment.id)
        .all()
    )

    comment_likes = like_sets(db, "comment", [c.id for c in comments])
    reply_likes = like_sets(db, "reply", [r.id for c in comments for r in c.replies])

    return [
        _comment_schema(
            comment,
            likes=comment_likes[comment.id],
            replies=[_reply_schema(r, reply_likes[r.id]) for r in comment.replies],
        )
        for comment in comments
    ]
