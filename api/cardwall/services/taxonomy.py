"""
Taxonomy counters and category/tag management.

``post_count`` on a category or tag is a cached aggregate of the live posts
filed under it. It moves by +/-1 deltas issued by the post lifecycle, as
single ``UPDATE`` statements that never go below zero. Names that have no
category or tag row are ignored. ``reconcile_counts`` recomputes every
counter from the posts themselves.
"""

from __future__ import annotations

import logging
from typing import Iterable

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import models, schemas
from ..errors import DuplicateEntity, NotFound, ValidationError
from ..store import bump_counter, delete_where
from ..vault import ImageStore
from .images import commit_with_image, store_image

logger = logging.getLogger(__name__)

TAXONOMY_MODELS = {
    "category": models.Category,
    "tag": models.Tag,
}


def _model_for(kind: str):
    try:
        return TAXONOMY_MODELS[kind]
    except KeyError:
        raise ValueError(f"Unknown taxonomy kind '{kind}'") from None


def _unique(names: Iterable[str | None]) -> list[str]:
    seen: list[str] = []
    for name in names:
        if name and name not in seen:
            seen.append(name)
    return seen


def _bump_names(db: Session, model, names: Iterable[str | None], delta: int) -> int:
    names = _unique(names)
    if not names:
        return 0
    return bump_counter(db, model, model.post_count, [model.name.in_(names)], delta)


# =============================================================================
# Counter deltas
# =============================================================================


def apply_post_created(db: Session, category: str | None, tags: Iterable[str]) -> None:
    """+1 on the post's category and on each of its tags."""
    _bump_names(db, models.Category, [category], 1)
    _bump_names(db, models.Tag, tags, 1)


def apply_post_updated(
    db: Session,
    old_category: str | None,
    new_category: str | None,
    old_tags: Iterable[str],
    new_tags: Iterable[str],
) -> None:
    """Move counters for a category change and for tags removed or added."""
    if old_category != new_category:
        _bump_names(db, models.Category, [old_category], -1)
        _bump_names(db, models.Category, [new_category], 1)

    old_set = _unique(old_tags)
    new_set = _unique(new_tags)
    _bump_names(db, models.Tag, [t for t in old_set if t not in new_set], -1)
    _bump_names(db, models.Tag, [t for t in new_set if t not in old_set], 1)


def apply_post_deleted(db: Session, category: str | None, tags: Iterable[str]) -> None:
    """-1 on the post's category and on each of its tags."""
    _bump_names(db, models.Category, [category], -1)
    _bump_names(db, models.Tag, tags, -1)


def _live_count_query(kind: str, name_column):
    if kind == "category":
        return select(func.count(models.Post.id)).where(models.Post.category == name_column)
    return select(func.count(models.PostTag.id)).where(models.PostTag.tag == name_column)


def reconcile_counts(db: Session) -> list[schemas.CounterDrift]:
    """
    Recompute every category and tag counter from a live count over posts.

    Returns:
        The entities whose stored counter differed from the live count
    """
    drift: list[schemas.CounterDrift] = []

    category_actual = dict(
        db.query(models.Post.category, func.count(models.Post.id))
        .group_by(models.Post.category)
        .all()
    )
    tag_actual = dict(
        db.query(models.PostTag.tag, func.count(models.PostTag.id))
        .group_by(models.PostTag.tag)
        .all()
    )

    for kind, actual in (("category", category_actual), ("tag", tag_actual)):
        model = _model_for(kind)
        for name, stored in db.query(model.name, model.post_count).order_by(model.name).all():
            live = actual.get(name, 0)
            if stored != live:
                drift.append(schemas.CounterDrift(kind=kind, name=name, stored=stored, actual=live))

        # Correlated update so posts created meanwhile are still counted
        db.execute(
            update(model)
            .values(post_count=_live_count_query(kind, model.name).scalar_subquery())
            .execution_options(synchronize_session=False)
        )

    db.commit()

    for item in drift:
        logger.warning(
            f"Counter drift on {item.kind} '{item.name}': stored {item.stored}, actual {item.actual}"
        )
    logger.info(f"Counter reconciliation finished, {len(drift)} counter(s) corrected")
    return drift


# =============================================================================
# Category / tag management
# =============================================================================


def _clean_name(name: str | None) -> str:
    if name is None or not name.strip():
        raise ValidationError("Name is required")
    return name.strip()


def get_entity(db: Session, kind: str, entity_id: int):
    model = _model_for(kind)
    entity = db.get(model, entity_id)
    if not entity:
        raise NotFound(f"{kind.capitalize()} not found")
    return entity


def list_entities(db: Session, kind: str) -> list:
    model = _model_for(kind)
    return db.query(model).order_by(model.name).all()


def create_entity(
    db: Session,
    kind: str,
    name: str | None,
    description: str | None,
    image: bytes | None,
    images: ImageStore,
):
    """
    Create a category or tag with its background image.

    The counter starts at the number of live posts already using the name.

    Raises:
        ValidationError: If the name or image is missing, or the image is unusable
        DuplicateEntity: If the name is taken
    """
    model = _model_for(kind)
    name = _clean_name(name)

    if db.query(model.id).filter(model.name == name).first():
        raise DuplicateEntity(f"{kind.capitalize()} '{name}' already exists")

    if not image:
        raise ValidationError("Background image is required")

    live = db.execute(_live_count_query(kind, name)).scalar() or 0
    entity = model(name=name, description=description, post_count=live)
    db.add(entity)
    db.flush()

    stored = store_image(db, images, image, kind, str(entity.id))
    entity.background_image = stored.url

    try:
        commit_with_image(db, images, stored.url, label=kind)
    except IntegrityError as e:
        raise DuplicateEntity(f"{kind.capitalize()} '{name}' already exists") from e

    db.refresh(entity)
    logger.info(f"Created {kind} '{name}' ({entity.id}) with post_count {live}")
    return entity


def _rename_references(db: Session, kind: str, old_name: str, new_name: str) -> None:
    if kind == "category":
        db.execute(
            update(models.Post)
            .where(models.Post.category == old_name)
            .values(category=new_name)
            .execution_options(synchronize_session=False)
        )
        return

    # Posts already carrying the new name keep a single membership
    already_tagged = select(models.PostTag.post_id).where(models.PostTag.tag == new_name)
    delete_where(
        db,
        models.PostTag,
        models.PostTag.tag == old_name,
        models.PostTag.post_id.in_(already_tagged),
    )
    db.execute(
        update(models.PostTag)
        .where(models.PostTag.tag == old_name)
        .values(tag=new_name)
        .execution_options(synchronize_session=False)
    )


def update_entity(
    db: Session,
    kind: str,
    entity_id: int,
    *,
    name: str | None = None,
    description: str | None = None,
    image: bytes | None = None,
    images: ImageStore,
):
    """
    Update name, description and/or background image of a category or tag.

    Renaming rewrites the posts filed under the old name so the counter
    keeps matching them.
    """
    model = _model_for(kind)
    entity = get_entity(db, kind, entity_id)

    if name is not None:
        new_name = _clean_name(name)
        if new_name != entity.name:
            if db.query(model.id).filter(model.name == new_name).first():
                raise DuplicateEntity(f"{kind.capitalize()} '{new_name}' already exists")
            _rename_references(db, kind, entity.name, new_name)
            logger.info(f"Renaming {kind} '{entity.name}' to '{new_name}'")
            entity.name = new_name
            db.flush()
            entity.post_count = db.execute(_live_count_query(kind, new_name)).scalar() or 0

    if description is not None:
        entity.description = description

    old_url = None
    new_url = None
    if image:
        stored = store_image(db, images, image, kind, str(entity.id))
        old_url = entity.background_image
        new_url = stored.url
        entity.background_image = new_url

    try:
        commit_with_image(db, images, new_url, old_url=old_url, label=kind)
    except IntegrityError as e:
        raise DuplicateEntity(f"{kind.capitalize()} name already exists") from e

    db.refresh(entity)
    return entity


def delete_entity(db: Session, kind: str, entity_id: int, images: ImageStore) -> None:
    """Delete a category or tag. Posts keep the name; it simply stops being counted."""
    model = _model_for(kind)
    entity = get_entity(db, kind, entity_id)
    name = entity.name
    image_url = entity.background_image

    delete_where(db, model, model.id == entity.id)
    db.commit()

    images.release(image_url)
    logger.info(f"Deleted {kind} '{name}' ({entity_id})")


def list_entity_posts(
    db: Session,
    kind: str,
    entity_id: int,
    limit: int = 50,
    before_id: int | None = None,
) -> tuple[list[models.Post], int | None]:
    """Posts filed under a category or tag, newest first."""
    entity = get_entity(db, kind, entity_id)

    query = db.query(models.Post)
    if kind == "category":
        query = query.filter(models.Post.category == entity.name)
    else:
        query = query.filter(
            models.Post.id.in_(select(models.PostTag.post_id).where(models.PostTag.tag == entity.name))
        )

    if before_id is not None:
        query = query.filter(models.Post.id < before_id)

    posts = query.order_by(models.Post.id.desc()).limit(limit + 1).all()
    has_more = len(posts) > limit
    items = posts[:limit]
    next_cursor = items[-1].id if has_more and items else None
    return items, next_cursor
