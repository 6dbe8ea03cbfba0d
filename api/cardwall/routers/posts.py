"""Post endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import get_current_user
from ..deps import get_db, get_images
from ..services import posts as post_service
from ..vault import ImageStore

router = APIRouter(prefix="/post", tags=["Posts"])


async def _read_upload(upload: UploadFile | None) -> bytes | None:
    if upload is None:
        return None
    return await upload.read()


@router.post("", response_model=schemas.Post, status_code=status.HTTP_201_CREATED)
async def create_post(
    content: str = Form(..., max_length=5000),
    author: str = Form(..., max_length=100),
    category: str = Form(..., max_length=100),
    tags: str = Form(...),  # Comma-separated tags
    content_color: str = Form(..., max_length=20),
    author_color: str = Form(..., max_length=20),
    tint_color: str = Form(..., max_length=20),
    title: str | None = Form(None, max_length=200),
    image: UploadFile | None = File(None),
    db: Session = Depends(get_db),
    images: ImageStore = Depends(get_images),
    current_user: models.User = Depends(get_current_user),
) -> schemas.Post:
    """
    Create a post with its background image.

    The post counts toward its category and each of its tags.
    """
    post = post_service.create_post(
        db,
        current_user,
        title=title,
        content=content,
        author=author,
        category=category,
        tags=tags,
        content_color=content_color,
        author_color=author_color,
        tint_color=tint_color,
        image=await _read_upload(image),
        images=images,
    )
    return schemas.Post.model_validate(post)


@router.get("/{id}", response_model=schemas.PostDetail)
def get_post(id: int, db: Session = Depends(get_db)) -> schemas.PostDetail:
    """Get a post with its likes and comment tree."""
    return post_service.get_post(db, id)


@router.patch("/{id}", response_model=schemas.Post)
async def update_post(
    id: int,
    title: str | None = Form(None, max_length=200),
    content: str | None = Form(None, max_length=5000),
    author: str | None = Form(None, max_length=100),
    category: str | None = Form(None, max_length=100),
    tags: str | None = Form(None),
    content_color: str | None = Form(None, max_length=20),
    author_color: str | None = Form(None, max_length=20),
    tint_color: str | None = Form(None, max_length=20),
    image: UploadFile | None = File(None),
    db: Session = Depends(get_db),
    images: ImageStore = Depends(get_images),
    current_user: models.User = Depends(get_current_user),
) -> schemas.Post:
    """Update a post (owner only). Omitted fields keep their value."""
    post = post_service.update_post(
        db,
        id,
        current_user,
        images=images,
        title=title,
        content=content,
        author=author,
        category=category,
        tags=tags,
        content_color=content_color,
        author_color=author_color,
        tint_color=tint_color,
        image=await _read_upload(image),
    )
    return schemas.Post.model_validate(post)


@router.delete("/{id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_post(
    id: int,
    db: Session = Depends(get_db),
    images: ImageStore = Depends(get_images),
    current_user: models.User = Depends(get_current_user),
) -> None:
    """
    Delete a post (owner or admin).

    Removes its image, comments, likes, saves and notifications, and
    decrements its category and tag counters.
    """
    post_service.delete_post(db, id, current_user, images)
