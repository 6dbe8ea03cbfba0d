"""Category and tag endpoints.

Both resources share the same shape, so their routers are built by one factory.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import require_admin
from ..deps import get_db, get_images
from ..services import taxonomy as taxonomy_service
from ..vault import ImageStore


def build_router(kind: str) -> APIRouter:
    label = kind.capitalize()
    router = APIRouter(prefix=f"/{kind}", tags=[f"{label} Management"])

    @router.get("", response_model=list[schemas.TaxonomyEntity])
    def list_entities(db: Session = Depends(get_db)) -> list[schemas.TaxonomyEntity]:
        return [
            schemas.TaxonomyEntity.model_validate(e)
            for e in taxonomy_service.list_entities(db, kind)
        ]

    @router.get("/{id}", response_model=schemas.TaxonomyEntity)
    def get_entity(id: int, db: Session = Depends(get_db)) -> schemas.TaxonomyEntity:
        return schemas.TaxonomyEntity.model_validate(taxonomy_service.get_entity(db, kind, id))

    @router.get("/{id}/posts", response_model=schemas.Page[schemas.Post])
    def list_entity_posts(
        id: int,
        limit: int = Query(50, ge=1, le=200),
        cursor: str | None = Query(None, description="Post id cursor for pagination"),
        db: Session = Depends(get_db),
    ) -> schemas.Page[schemas.Post]:
        """List posts filed under this entry, newest first."""
        before_id = None
        if cursor:
            try:
                before_id = int(cursor)
            except ValueError:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Invalid cursor format. Expected a post id.",
                )

        posts, next_cursor = taxonomy_service.list_entity_posts(
            db, kind, id, limit=limit, before_id=before_id
        )
        return schemas.Page(
            items=[schemas.Post.model_validate(p) for p in posts],
            next_cursor=str(next_cursor) if next_cursor else None,
        )

    @router.post(
        "",
        response_model=schemas.TaxonomyEntity,
        status_code=status.HTTP_201_CREATED,
        tags=[f"{label} Management", "Admin"],
    )
    async def create_entity(
        name: str = Form(..., max_length=100),
        description: str | None = Form(None, max_length=2000),
        image: UploadFile | None = File(None),
        db: Session = Depends(get_db),
        images: ImageStore = Depends(get_images),
        _admin: models.User = Depends(require_admin),
    ) -> schemas.TaxonomyEntity:
        """Create an entry (admin only). A background image is required."""
        content = await image.read() if image is not None else None
        entity = taxonomy_service.create_entity(db, kind, name, description, content, images)
        return schemas.TaxonomyEntity.model_validate(entity)

    @router.patch(
        "/{id}",
        response_model=schemas.TaxonomyEntity,
        tags=[f"{label} Management", "Admin"],
    )
    async def update_entity(
        id: int,
        name: str | None = Form(None, max_length=100),
        description: str | None = Form(None, max_length=2000),
        image: UploadFile | None = File(None),
        db: Session = Depends(get_db),
        images: ImageStore = Depends(get_images),
        _admin: models.User = Depends(require_admin),
    ) -> schemas.TaxonomyEntity:
        content = await image.read() if image is not None else None
        entity = taxonomy_service.update_entity(
            db, kind, id, name=name, description=description, image=content, images=images
        )
        return schemas.TaxonomyEntity.model_validate(entity)

    @router.delete(
        "/{id}",
        status_code=status.HTTP_204_NO_CONTENT,
        tags=[f"{label} Management", "Admin"],
    )
    def delete_entity(
        id: int,
        db: Session = Depends(get_db),
        images: ImageStore = Depends(get_images),
        _admin: models.User = Depends(require_admin),
    ) -> None:
        taxonomy_service.delete_entity(db, kind, id, images)

    return router


category_router = build_router("category")
tag_router = build_router("tag")
