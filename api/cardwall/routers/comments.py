"""Comment and reply endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import get_current_user
from ..deps import get_db
from ..services import comments as comment_service

router = APIRouter(prefix="/post", tags=["Comments"])


@router.get("/{id}/comments", response_model=list[schemas.Comment])
def list_comments(id: int, db: Session = Depends(get_db)) -> list[schemas.Comment]:
    """List a post's comments, oldest first, with replies and likes."""
    return comment_service.list_comments(db, id)


@router.post(
    "/{id}/comments",
    response_model=schemas.Comment,
    status_code=status.HTTP_201_CREATED,
)
def create_comment(
    id: int,
    payload: schemas.CommentCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.Comment:
    return comment_service.add_comment(db, id, current_user, payload.body)


@router.delete("/{id}/comments/{comment_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_comment(
    id: int,
    comment_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> None:
    """
    Delete a comment (comment author or post owner).

    Its replies, likes and notifications go with it.
    """
    comment_service.delete_comment(db, id, comment_id, current_user)


@router.post(
    "/{id}/comments/{comment_id}/replies",
    response_model=schemas.Reply,
    status_code=status.HTTP_201_CREATED,
)
def create_reply(
    id: int,
    comment_id: int,
    payload: schemas.CommentCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.Reply:
    return comment_service.add_reply(db, id, comment_id, current_user, payload.body)


@router.delete(
    "/{id}/comments/{comment_id}/replies/{reply_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
def delete_reply(
    id: int,
    comment_id: int,
    reply_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> None:
    """Delete a reply (reply author, comment author or post owner)."""
    comment_service.delete_reply(db, id, comment_id, reply_id, current_user)
