"""Report endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import get_current_user, require_admin
from ..deps import get_db
from ..services import reports as report_service

router = APIRouter(prefix="/reports", tags=["Reports"])


@router.post(
    "",
    response_model=schemas.Report,
    status_code=status.HTTP_201_CREATED,
)
def create_report(
    payload: schemas.ReportCreate,
    response: Response,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
) -> schemas.Report:
    """
    Report a user, post, comment or reply.

    The first report on an item creates it (201); later reporters are
    appended to the same report (200). Reporting the same item twice is a conflict.
    """
    report, created = report_service.report(
        db,
        payload.target_type,
        payload.target_id,
        current_user,
        payload.reason,
        payload.extra_info,
    )
    if not created:
        response.status_code = status.HTTP_200_OK

    return schemas.Report.model_validate(report)


@router.get("", response_model=schemas.Page[schemas.Report], tags=["Reports", "Admin"])
def list_reports(
    status_filter: str | None = Query(None, alias="status"),
    target_type: str | None = None,
    cursor: str | None = None,
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    _admin: models.User = Depends(require_admin),
) -> schemas.Page[schemas.Report]:
    """List reports (admin only), newest first."""
    before_id = None
    if cursor:
        try:
            before_id = int(cursor)
        except ValueError:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Invalid cursor format. Expected a report id.",
            )

    reports, next_cursor = report_service.list_reports(
        db,
        status=status_filter,
        target_type=target_type,
        limit=limit,
        before_id=before_id,
    )

    return schemas.Page(
        items=[schemas.Report.model_validate(r) for r in reports],
        next_cursor=str(next_cursor) if next_cursor else None,
    )


@router.patch("/{id}", response_model=schemas.Report, tags=["Reports", "Admin"])
def update_report(
    id: int,
    payload: schemas.ReportUpdate,
    db: Session = Depends(get_db),
    admin: models.User = Depends(require_admin),
) -> schemas.Report:
    """Mark a pending report as reviewed or dismissed (admin only)."""
    report = report_service.update_report_status(db, id, payload.status, admin)
    return schemas.Report.model_validate(report)
