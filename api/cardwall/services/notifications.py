"""
Notification fan-out and inbox management.

Fan-out helpers add or retract inbox entries as part of the caller's
transaction and never commit; the like, comment, reply and follow services
commit once the whole logical change is staged. Inbox reads and read-marking
are standalone operations and commit themselves.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import event, func, or_, and_
from sqlalchemy.orm import Session, joinedload

from .. import models, schemas
from ..cache import cache_bump, cache_delete, cache_get_int, cache_set_int_if_unchanged
from ..errors import NotFound
from ..settings import CARDWALL_SNIPPET_LENGTH
from ..store import delete_where

logger = logging.getLogger(__name__)

# Cache key patterns
UNREAD_COUNT_KEY = "notif:unread:{user_id}"
UNREAD_GENERATION_KEY = "notif:unread-gen:{user_id}"

# Session.info key collecting recipients whose inbox changed in the open transaction
_TOUCHED_INBOXES = "cardwall.touched_inboxes"


def make_snippet(text: str | None) -> str | None:
    """Shorten comment/reply text for display in an inbox entry."""
    if not text:
        return None
    # The result, suffix included, must fit the snippet column
    length = min(CARDWALL_SNIPPET_LENGTH, models.SNIPPET_MAX_LENGTH - 3)
    if len(text) <= length:
        return text
    return text[:length] + "..."


def _touch(db: Session, *user_ids: int) -> None:
    db.info.setdefault(_TOUCHED_INBOXES, set()).update(user_ids)


@event.listens_for(Session, "after_commit")
def _invalidate_unread_counts(session: Session) -> None:
    touched = session.info.pop(_TOUCHED_INBOXES, None)
    if touched:
        # Bump before delete so a count read earlier can no longer be stored
        cache_bump(*(UNREAD_GENERATION_KEY.format(user_id=user_id) for user_id in touched))
        cache_delete(*(UNREAD_COUNT_KEY.format(user_id=user_id) for user_id in touched))


class NotificationService:
    """Service for fan-out and inbox operations."""

    # =========================================================================
    # Fan-out
    # =========================================================================

    @staticmethod
    def notify(
        db: Session,
        recipient_id: int,
        sender_id: int,
        notification_type: str,
        *,
        post_id: int | None = None,
        context: str | None = None,
        item_id: int | None = None,
        snippet: str | None = None,
    ) -> models.Notification | None:
        """
        Stage an inbox entry for the recipient.

        Returns:
            Created notification, or None for a self-action
        """
        if notification_type not in models.NOTIFICATION_TYPES:
            raise ValueError(f"Unknown notification type '{notification_type}'")

        # Don't notify users about their own actions
        if recipient_id == sender_id:
            logger.debug(f"Skipping self-notification ({notification_type}) for user {recipient_id}")
            return None

        notification = models.Notification(
            user_id=recipient_id,
            notification_type=notification_type,
            post_id=post_id,
            sender_id=sender_id,
            context=context,
            item_id=item_id,
            snippet=snippet,
            is_read=False,
        )
        db.add(notification)
        db.flush()
        _touch(db, recipient_id)

        logger.debug(
            f"Staged {notification_type} notification {notification.id} "
            f"from user {sender_id} to user {recipient_id}"
        )
        return notification

    @staticmethod
    def retract_like(
        db: Session,
        recipient_id: int,
        sender_id: int,
        post_id: int,
        context: str,
        item_id: int | None,
    ) -> int:
        """Remove the like notification matching the exact (sender, post, context, item) tuple."""
        if recipient_id == sender_id:
            return 0

        item_filter = (
            models.Notification.item_id.is_(None)
            if item_id is None
            else models.Notification.item_id == item_id
        )
        removed = delete_where(
            db,
            models.Notification,
            models.Notification.user_id == recipient_id,
            models.Notification.notification_type == "like",
            models.Notification.sender_id == sender_id,
            models.Notification.post_id == post_id,
            models.Notification.context == context,
            item_filter,
        )
        if removed:
            _touch(db, recipient_id)
        return removed

    @staticmethod
    def retract_follow(db: Session, recipient_id: int, sender_id: int) -> int:
        """Remove every follow notification from sender in the recipient's inbox."""
        removed = delete_where(
            db,
            models.Notification,
            models.Notification.user_id == recipient_id,
            models.Notification.notification_type == "follow",
            models.Notification.sender_id == sender_id,
        )
        if removed:
            _touch(db, recipient_id)
        return removed

    @staticmethod
    def retract_for_post(db: Session, post_id: int) -> int:
        """Remove every notification, in any inbox, that references the post."""
        return NotificationService._retract_where(db, models.Notification.post_id == post_id)

    @staticmethod
    def retract_for_comment(db: Session, comment_id: int, reply_ids: list[int]) -> int:
        """
        Remove notifications generated by a comment and the replies under it:
        the comment/reply notifications themselves and the likes on them.
        """
        N = models.Notification
        clauses = [
            and_(N.notification_type == "comment", N.item_id == comment_id),
            and_(N.notification_type == "like", N.context == "comment", N.item_id == comment_id),
        ]
        if reply_ids:
            clauses.append(and_(N.notification_type == "reply", N.item_id.in_(reply_ids)))
            clauses.append(
                and_(N.notification_type == "like", N.context == "reply", N.item_id.in_(reply_ids))
            )
        return NotificationService._retract_where(db, or_(*clauses))

    @staticmethod
    def retract_for_reply(db: Session, reply_id: int) -> int:
        """Remove the reply notification and likes on the reply."""
        N = models.Notification
        return NotificationService._retract_where(
            db,
            or_(
                and_(N.notification_type == "reply", N.item_id == reply_id),
                and_(N.notification_type == "like", N.context == "reply", N.item_id == reply_id),
            ),
        )

    @staticmethod
    def retract_for_user(db: Session, user_id: int) -> int:
        """Remove notifications the user received or sent."""
        return NotificationService._retract_where(
            db,
            or_(models.Notification.user_id == user_id, models.Notification.sender_id == user_id),
        )

    @staticmethod
    def _retract_where(db: Session, criterion: Any) -> int:
        recipients = [
            row[0]
            for row in db.query(models.Notification.user_id).filter(criterion).distinct().all()
        ]
        if not recipients:
            return 0
        removed = delete_where(db, models.Notification, criterion)
        _touch(db, *recipients)
        return removed

    # =========================================================================
    # Inbox
    # =========================================================================

    @staticmethod
    def list_notifications(
        db: Session,
        user_id: int,
        limit: int = 50,
        before_id: int | None = None,
        unread_only: bool = False,
    ) -> tuple[list[models.Notification], int | None]:
        """
        List a user's notifications newest-first.

        Args:
            db: Database session
            user_id: Recipient
            limit: Maximum number of notifications to return
            before_id: Cursor; only entries older than this id are returned
            unread_only: If True, only return unread notifications

        Returns:
            Tuple of (notifications, next_cursor)
        """
        query = (
            db.query(models.Notification)
            .options(joinedload(models.Notification.sender))
            .filter(models.Notification.user_id == user_id)
        )

        if unread_only:
            query = query.filter(models.Notification.is_read == False)

        if before_id is not None:
            query = query.filter(models.Notification.id < before_id)

        # Fetch limit + 1 to determine if there are more results
        notifications = query.order_by(models.Notification.id.desc()).limit(limit + 1).all()

        has_more = len(notifications) > limit
        items = notifications[:limit]
        next_cursor = items[-1].id if has_more and items else None

        return items, next_cursor

    @staticmethod
    def get_unread_count(db: Session, user_id: int) -> int:
        """
        Get unread notification count for a user.

        Uses Redis cache with database fallback. The database count is
        written back only if no commit touched the inbox since the read began.
        """
        cache_key = UNREAD_COUNT_KEY.format(user_id=user_id)
        cached = cache_get_int(cache_key)
        if cached is not None:
            return cached

        generation_key = UNREAD_GENERATION_KEY.format(user_id=user_id)
        generation = cache_get_int(generation_key)

        count = (
            db.query(func.count(models.Notification.id))
            .filter(
                models.Notification.user_id == user_id,
                models.Notification.is_read == False,
            )
            .scalar()
            or 0
        )

        cache_set_int_if_unchanged(cache_key, count, guard=generation_key, seen=generation)
        return count

    @staticmethod
    def mark_as_read(db: Session, notification_ids: list[int], user_id: int) -> int:
        """
        Mark specific notifications as read.

        Only notifications owned by ``user_id`` are touched.

        Returns:
            Number of notifications updated
        """
        if not notification_ids:
            return 0

        count = (
            db.query(models.Notification)
            .filter(
                models.Notification.id.in_(notification_ids),
                models.Notification.user_id == user_id,
                models.Notification.is_read == False,
            )
            .update(
                {"is_read": True, "read_at": datetime.now(timezone.utc)},
                synchronize_session=False,
            )
        )
        if count:
            _touch(db, user_id)
        db.commit()
        return count

    @staticmethod
    def mark_one_as_read(db: Session, notification_id: int, user_id: int) -> models.Notification:
        notification = (
            db.query(models.Notification)
            .filter(
                models.Notification.id == notification_id,
                models.Notification.user_id == user_id,
            )
            .first()
        )
        if not notification:
            raise NotFound("Notification not found")

        if not notification.is_read:
            notification.is_read = True
            notification.read_at = datetime.now(timezone.utc)
            _touch(db, user_id)
            db.commit()
            db.refresh(notification)
        return notification

    @staticmethod
    def mark_all_as_read(db: Session, user_id: int) -> int:
        count = (
            db.query(models.Notification)
            .filter(
                models.Notification.user_id == user_id,
                models.Notification.is_read == False,
            )
            .update(
                {"is_read": True, "read_at": datetime.now(timezone.utc)},
                synchronize_session=False,
            )
        )
        if count:
            _touch(db, user_id)
        db.commit()
        return count

    @staticmethod
    def delete_notification(db: Session, notification_id: int, user_id: int) -> bool:
        """
        Delete a specific notification.

        Returns:
            True if deleted, False if not found
        """
        removed = delete_where(
            db,
            models.Notification,
            models.Notification.id == notification_id,
            models.Notification.user_id == user_id,
        )
        if removed:
            _touch(db, user_id)
        db.commit()
        return bool(removed)

    # =========================================================================
    # Presentation
    # =========================================================================

    @staticmethod
    def payload(notification: models.Notification) -> schemas.NotificationData:
        """Build the type-specific payload. Every notification type must be handled here."""
        kind = notification.notification_type
        if kind == "like":
            return schemas.LikeData(
                context=notification.context,
                item_id=notification.item_id,
                snippet=notification.snippet,
            )
        if kind == "comment":
            return schemas.CommentData(item_id=notification.item_id, snippet=notification.snippet)
        if kind == "reply":
            return schemas.ReplyData(item_id=notification.item_id, snippet=notification.snippet)
        if kind == "mention":
            return schemas.MentionData(snippet=notification.snippet)
        if kind == "follow":
            return schemas.FollowData()
        raise ValueError(f"Unhandled notification type '{kind}'")

    @staticmethod
    def to_schema(notification: models.Notification) -> schemas.Notification:
        return schemas.Notification(
            id=notification.id,
            notification_type=notification.notification_type,
            post_id=notification.post_id,
            sender=(
                schemas.UserSummary.model_validate(notification.sender)
                if notification.sender
                else None
            ),
            data=NotificationService.payload(notification),
            is_read=notification.is_read,
            created_at=notification.created_at,
        )
