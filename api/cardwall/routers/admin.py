"""Admin endpoints: account removal, badges and counter repair."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import require_admin
from ..deps import get_db, get_images
from ..services import taxonomy as taxonomy_service
from ..services import users as user_service
from ..vault import ImageStore

router = APIRouter(prefix="/admin", tags=["Admin"])


@router.delete("/user/{id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_user(
    id: int,
    db: Session = Depends(get_db),
    images: ImageStore = Depends(get_images),
    admin: models.User = Depends(require_admin),
) -> None:
    """
    Delete a user account and everything it owns.

    Admins cannot delete their own account.
    """
    user_service.delete_user(db, admin, id, images)


@router.put("/user/{id}/badge", response_model=schemas.UserSummary)
def assign_badge(
    id: int,
    payload: schemas.BadgeAssignRequest,
    db: Session = Depends(get_db),
    admin: models.User = Depends(require_admin),
) -> schemas.UserSummary:
    user = user_service.assign_badge(db, admin, id, payload.badge)
    return schemas.UserSummary.model_validate(user)


@router.post("/reconcile-counts", response_model=schemas.ReconcileResult)
def reconcile_counts(
    db: Session = Depends(get_db),
    _admin: models.User = Depends(require_admin),
) -> schemas.ReconcileResult:
    """Recompute category and tag post counts from the posts themselves."""
    return schemas.ReconcileResult(corrected=taxonomy_service.reconcile_counts(db))
