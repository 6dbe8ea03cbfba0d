"""
Post lifecycle: create, update, read and the delete cascade.

Creating, updating and deleting a post move the category/tag counters in
the same transaction as the post row. Deletion also clears every row that
references the post (saves, likes, comments, replies, notifications) so that
nothing dangles once it returns.
"""

from __future__ import annotations

import logging
from typing import Iterable

from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import is_admin
from ..errors import Forbidden, NotFound, ValidationError
from ..settings import CARDWALL_CASCADE_ATTEMPTS, CARDWALL_MAX_TAGS_PER_POST
from ..store import delete_where, run_with_retry
from ..vault import ImageStore
from . import taxonomy
from .comments import list_comments
from .images import commit_with_image, store_image
from .likes import like_set
from .notifications import NotificationService

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("content", "author", "category", "content_color", "author_color", "tint_color")


def parse_tags(tags: str | Iterable[str] | None) -> list[str]:
    """
    Normalize tags given as a comma-separated string or a list.

    Blank entries are dropped, duplicates collapse to their first position.
    """
    if tags is None:
        return []
    raw = tags.split(",") if isinstance(tags, str) else list(tags)

    parsed: list[str] = []
    for tag in raw:
        name = tag.strip()
        if name and name not in parsed:
            parsed.append(name)
    return parsed


def _set_tags(post: models.Post, tags: list[str]) -> None:
    # Reuse rows for kept tags so the (post_id, tag) key is never inserted twice
    existing = {row.tag: row for row in post.tag_rows}
    rows = []
    for position, name in enumerate(tags):
        row = existing.pop(name, None) or models.PostTag(tag=name)
        row.position = position
        rows.append(row)
    post.tag_rows = rows


def _get_post(db: Session, post_id: int) -> models.Post:
    post = db.get(models.Post, post_id)
    if not post:
        raise NotFound("Post not found")
    return post


def create_post(
    db: Session,
    owner: models.User,
    *,
    content: str | None,
    author: str | None,
    category: str | None,
    tags: str | Iterable[str] | None,
    content_color: str | None,
    author_color: str | None,
    tint_color: str | None,
    image: bytes | None,
    images: ImageStore,
    title: str | None = None,
) -> models.Post:
    """
    Create a post, count it under its category and tags, and store its background image.

    If the image cannot be stored, nothing is persisted: the post row and the
    counter deltas are rolled back together.

    Raises:
        ValidationError: If a required field is missing or the image is unusable
        Unavailable: If the image store or database fails
    """
    values = {
        "content": content,
        "author": author,
        "category": category,
        "content_color": content_color,
        "author_color": author_color,
        "tint_color": tint_color,
    }
    missing = [field for field in REQUIRED_FIELDS if not (values[field] or "").strip()]
    if missing:
        raise ValidationError(f"Missing required field(s): {', '.join(missing)}")

    tag_names = parse_tags(tags)
    if not tag_names:
        raise ValidationError("At least one tag is required")
    if len(tag_names) > CARDWALL_MAX_TAGS_PER_POST:
        raise ValidationError(f"A post can have at most {CARDWALL_MAX_TAGS_PER_POST} tags")

    if not image:
        raise ValidationError("Background image is required")

    post = models.Post(
        owner_id=owner.id,
        title=title,
        **{field: value.strip() for field, value in values.items()},
    )
    _set_tags(post, tag_names)
    db.add(post)
    db.flush()  # Get the post ID without committing

    taxonomy.apply_post_created(db, post.category, tag_names)

    stored = store_image(db, images, image, "post", str(post.id))
    post.background_image = stored.url
    post.width = stored.width
    post.height = stored.height

    commit_with_image(db, images, stored.url, label="post")
    db.refresh(post)

    logger.info(f"User {owner.id} created post {post.id} in '{post.category}' with tags {tag_names}")
    return post


def update_post(
    db: Session,
    post_id: int,
    actor: models.User,
    *,
    images: ImageStore,
    title: str | None = None,
    content: str | None = None,
    author: str | None = None,
    category: str | None = None,
    tags: str | Iterable[str] | None = None,
    content_color: str | None = None,
    author_color: str | None = None,
    tint_color: str | None = None,
    image: bytes | None = None,
) -> models.Post:
    """
    Update a post (owner only). Fields left as None are unchanged.

    Category and tag changes move the counters; a new image replaces the old
    one, which is released only after the update is committed.
    """
    post = _get_post(db, post_id)
    if post.owner_id != actor.id:
        raise Forbidden("Only the owner can edit this post")

    old_category = post.category
    old_tags = post.tags

    for field, value in (
        ("content", content),
        ("author", author),
        ("category", category),
        ("content_color", content_color),
        ("author_color", author_color),
        ("tint_color", tint_color),
    ):
        if value is None:
            continue
        if not value.strip():
            raise ValidationError(f"{field} cannot be empty")
        setattr(post, field, value.strip())

    if title is not None:
        post.title = title

    new_tags = old_tags
    if tags is not None:
        new_tags = parse_tags(tags)
        if not new_tags:
            raise ValidationError("At least one tag is required")
        if len(new_tags) > CARDWALL_MAX_TAGS_PER_POST:
            raise ValidationError(f"A post can have at most {CARDWALL_MAX_TAGS_PER_POST} tags")
        _set_tags(post, new_tags)

    db.flush()
    taxonomy.apply_post_updated(db, old_category, post.category, old_tags, new_tags)

    old_url = None
    new_url = None
    if image:
        stored = store_image(db, images, image, "post", str(post.id))
        old_url = post.background_image
        new_url = stored.url
        post.background_image = stored.url
        post.width = stored.width
        post.height = stored.height

    commit_with_image(db, images, new_url, old_url=old_url, label="post")
    db.refresh(post)

    logger.info(f"User {actor.id} updated post {post.id}")
    return post


def get_post(db: Session, post_id: int) -> schemas.PostDetail:
    """Post with its owner, like set and comment tree."""
    post = _get_post(db, post_id)
    return schemas.PostDetail(
        **schemas.Post.model_validate(post).model_dump(),
        owner=schemas.UserSummary.model_validate(post.owner),
        likes=like_set(db, "post", post.id),
        comments=list_comments(db, post.id),
    )


def purge_post(db: Session, post_id: int, category: str | None, tags: list[str]) -> bool:
    """
    Delete a post row and everything referencing it, without committing.

    Each step is a conditional delete, so re-running against a partly
    cleaned post succeeds. Counters are decremented only by the run that
    actually removed the post row.

    Returns:
        True if this call removed the post row
    """
    delete_where(db, models.SavedPost, models.SavedPost.post_id == post_id)
    NotificationService.retract_for_post(db, post_id)
    delete_where(db, models.Like, models.Like.post_id == post_id)
    delete_where(db, models.Reply, models.Reply.post_id == post_id)
    delete_where(db, models.Comment, models.Comment.post_id == post_id)
    delete_where(db, models.PostTag, models.PostTag.post_id == post_id)
    removed = delete_where(db, models.Post, models.Post.id == post_id)

    if removed:
        taxonomy.apply_post_deleted(db, category, tags)
    return bool(removed)


def delete_post(db: Session, post_id: int, actor: models.User, images: ImageStore) -> None:
    """
    Delete a post (owner or admin) and cascade to everything that references it.

    Raises:
        NotFound: If the post does not exist
        Forbidden: If the actor is neither the owner nor an admin
        Unavailable: If the store keeps failing after the retry
    """
    post = _get_post(db, post_id)
    if post.owner_id != actor.id and not is_admin(actor):
        raise Forbidden("Only the owner or an admin can delete this post")

    category = post.category
    tags = post.tags
    image_url = post.background_image

    images.release(image_url)

    run_with_retry(
        db,
        lambda: purge_post(db, post_id, category, tags),
        attempts=CARDWALL_CASCADE_ATTEMPTS,
        label=f"delete post {post_id}",
    )

    logger.info(f"User {actor.id} deleted post {post_id}")
