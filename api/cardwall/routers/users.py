"""User profile, follow graph and saved post endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, File, UploadFile
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import get_current_user
from ..deps import get_db, get_images
from ..services import follows as follow_service
from ..services import saved as saved_service
from ..services import users as user_service
from ..vault import ImageStore

router = APIRouter(prefix="/user", tags=["Users"])


# ============================================================================
# CURRENT USER
# Declared before /{id} routes so "me" is not parsed as an id
# ============================================================================


@router.get("/me", response_model=schemas.UserProfile)
def get_me(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.UserProfile:
    return user_service.get_profile(db, current_user.id)


@router.patch("/me", response_model=schemas.UserProfile)
def update_me(
    payload: schemas.ProfileUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.UserProfile:
    """Update the current user's name and/or bio."""
    user_service.update_profile(db, current_user, name=payload.name, bio=payload.bio)
    return user_service.get_profile(db, current_user.id)


@router.put("/me/profile-image", response_model=schemas.UserProfile)
async def upload_profile_image(
    image: UploadFile = File(...),
    db: Session = Depends(get_db),
    images: ImageStore = Depends(get_images),
    current_user: models.User = Depends(get_current_user),
) -> schemas.UserProfile:
    """Replace the current user's profile image."""
    content = await image.read()
    user_service.update_profile_image(db, current_user, "profile", content, images)
    return user_service.get_profile(db, current_user.id)


@router.put("/me/cover-image", response_model=schemas.UserProfile)
async def upload_cover_image(
    image: UploadFile = File(...),
    db: Session = Depends(get_db),
    images: ImageStore = Depends(get_images),
    current_user: models.User = Depends(get_current_user),
) -> schemas.UserProfile:
    """Replace the current user's cover image."""
    content = await image.read()
    user_service.update_profile_image(db, current_user, "cover", content, images)
    return user_service.get_profile(db, current_user.id)


@router.delete("/me/profile-image", response_model=schemas.UserProfile)
def remove_profile_image(
    db: Session = Depends(get_db),
    images: ImageStore = Depends(get_images),
    current_user: models.User = Depends(get_current_user),
) -> schemas.UserProfile:
    user_service.remove_profile_image(db, current_user, "profile", images)
    return user_service.get_profile(db, current_user.id)


@router.delete("/me/cover-image", response_model=schemas.UserProfile)
def remove_cover_image(
    db: Session = Depends(get_db),
    images: ImageStore = Depends(get_images),
    current_user: models.User = Depends(get_current_user),
) -> schemas.UserProfile:
    user_service.remove_profile_image(db, current_user, "cover", images)
    return user_service.get_profile(db, current_user.id)


@router.get("/me/saved", response_model=schemas.SavedList)
def list_saved(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.SavedList:
    """Saved post ids, most recently saved first."""
    return schemas.SavedList(post_ids=saved_service.list_saved(db, current_user))


@router.put("/me/saved/{post_id}", response_model=schemas.SaveResult)
def save_post(
    post_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.SaveResult:
    """
    Save a post.

    Saving an already saved post succeeds with changed=false.
    """
    return saved_service.save(db, current_user, post_id)


@router.delete("/me/saved/{post_id}", response_model=schemas.SaveResult)
def unsave_post(
    post_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.SaveResult:
    return saved_service.unsave(db, current_user, post_id)


# ============================================================================
# ANY USER
# ============================================================================


@router.get("/{id}", response_model=schemas.UserProfile)
def get_user(id: int, db: Session = Depends(get_db)) -> schemas.UserProfile:
    return user_service.get_profile(db, id)


@router.get("/{id}/followers", response_model=list[schemas.UserSummary])
def list_followers(id: int, db: Session = Depends(get_db)) -> list[schemas.UserSummary]:
    return follow_service.list_followers(db, id)


@router.get("/{id}/following", response_model=list[schemas.UserSummary])
def list_following(id: int, db: Session = Depends(get_db)) -> list[schemas.UserSummary]:
    return follow_service.list_following(db, id)


@router.put("/{id}/follow", response_model=schemas.FollowState)
def follow_user(
    id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.FollowState:
    """Follow a user. The target receives a follow notification."""
    return follow_service.follow(db, current_user, id)


@router.delete("/{id}/follow", response_model=schemas.FollowState)
def unfollow_user(
    id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.FollowState:
    return follow_service.unfollow(db, current_user, id)
