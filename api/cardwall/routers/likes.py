"""Like endpoints for posts, comments and replies."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import get_current_user
from ..deps import get_db
from ..services.likes import LikeTarget, like_set, resolve_target, toggle_like

router = APIRouter(prefix="/post", tags=["Likes"])


def _state(db: Session, target: LikeTarget) -> schemas.LikeState:
    resolve_target(db, target)
    likes = like_set(db, target.context, target.target_id)
    return schemas.LikeState(likes=likes, count=len(likes))


@router.get("/{id}/like", response_model=schemas.LikeState)
def get_post_likes(id: int, db: Session = Depends(get_db)) -> schemas.LikeState:
    return _state(db, LikeTarget(post_id=id))


@router.put("/{id}/like", response_model=schemas.LikeState)
def like_post(
    id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.LikeState:
    """Like a post. Liking twice is a conflict."""
    return toggle_like(db, LikeTarget(post_id=id), current_user, want_liked=True)


@router.delete("/{id}/like", response_model=schemas.LikeState)
def unlike_post(
    id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.LikeState:
    return toggle_like(db, LikeTarget(post_id=id), current_user, want_liked=False)


@router.put("/{id}/comments/{comment_id}/like", response_model=schemas.LikeState)
def like_comment(
    id: int,
    comment_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.LikeState:
    return toggle_like(
        db, LikeTarget(post_id=id, comment_id=comment_id), current_user, want_liked=True
    )


@router.delete("/{id}/comments/{comment_id}/like", response_model=schemas.LikeState)
def unlike_comment(
    id: int,
    comment_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.LikeState:
    return toggle_like(
        db, LikeTarget(post_id=id, comment_id=comment_id), current_user, want_liked=False
    )


@router.put(
    "/{id}/comments/{comment_id}/replies/{reply_id}/like",
    response_model=schemas.LikeState,
)
def like_reply(
    id: int,
    comment_id: int,
    reply_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.LikeState:
    target = LikeTarget(post_id=id, comment_id=comment_id, reply_id=reply_id)
    return toggle_like(db, target, current_user, want_liked=True)


@router.delete(
    "/{id}/comments/{comment_id}/replies/{reply_id}/like",
    response_model=schemas.LikeState,
)
def unlike_reply(
    id: int,
    comment_id: int,
    reply_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.LikeState:
    target = LikeTarget(post_id=id, comment_id=comment_id, reply_id=reply_id)
    return toggle_like(db, target, current_user, want_liked=False)
