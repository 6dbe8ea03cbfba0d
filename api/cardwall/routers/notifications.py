"""Notification inbox endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import get_current_user
from ..deps import get_db
from ..services.notifications import NotificationService

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("/", response_model=schemas.Page[schemas.Notification])
def list_notifications(
    limit: int = Query(50, ge=1, le=200),
    cursor: str | None = Query(None, description="Notification id cursor for pagination"),
    unread_only: bool = Query(False, description="Only return unread notifications"),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.Page[schemas.Notification]:
    """
    List notifications for the current user.

    Returns notifications newest first with cursor-based pagination.
    """
    before_id = None
    if cursor:
        try:
            before_id = int(cursor)
        except ValueError:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Invalid cursor format. Expected a notification id.",
            )

    notifications, next_cursor = NotificationService.list_notifications(
        db=db,
        user_id=current_user.id,
        limit=limit,
        before_id=before_id,
        unread_only=unread_only,
    )

    return schemas.Page(
        items=[NotificationService.to_schema(n) for n in notifications],
        next_cursor=str(next_cursor) if next_cursor else None,
    )


@router.get("/unread-count", response_model=schemas.NotificationUnreadCount)
def get_unread_count(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.NotificationUnreadCount:
    """Get unread notification count for the current user."""
    count = NotificationService.get_unread_count(db, current_user.id)
    return schemas.NotificationUnreadCount(unread_count=count)


@router.post("/mark-read", response_model=schemas.MarkReadResponse)
def mark_notifications_read(
    payload: schemas.MarkReadRequest,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.MarkReadResponse:
    """
    Mark specific notifications as read.

    Only notifications belonging to the current user will be updated.
    """
    updated = NotificationService.mark_as_read(db, payload.notification_ids, current_user.id)
    return schemas.MarkReadResponse(updated=updated)


@router.post("/mark-all-read", response_model=schemas.MarkReadResponse)
def mark_all_notifications_read(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.MarkReadResponse:
    updated = NotificationService.mark_all_as_read(db, current_user.id)
    return schemas.MarkReadResponse(updated=updated)


@router.post("/{id}/read", response_model=schemas.Notification)
def mark_notification_read(
    id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.Notification:
    notification = NotificationService.mark_one_as_read(db, id, current_user.id)
    return NotificationService.to_schema(notification)


@router.delete("/{id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_notification(
    id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> None:
    """Delete a notification from the current user's inbox."""
    if not NotificationService.delete_notification(db, id, current_user.id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Notification not found",
        )
