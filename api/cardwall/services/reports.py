"""
Report aggregator.

Each reported item has a single report row keyed by (target_type, target_id)
holding one reason per reporter. ``count`` always equals the number of
reasons. Concurrent first reports on the same item meet at the unique key:
both end up appending to the same row.
"""

from __future__ import annotations

import logging

from sqlalchemy.orm import Session, selectinload

from .. import models
from ..errors import DuplicateReport, NotFound, StateError, ValidationError
from ..store import bump_counter, insert_if_absent

logger = logging.getLogger(__name__)

TARGET_MODELS = {
    "user": models.User,
    "post": models.Post,
    "comment": models.Comment,
    "reply": models.Reply,
}


def report(
    db: Session,
    target_type: str,
    target_id: int,
    reporter: models.User,
    reason: str | None,
    extra_info: str | None = None,
) -> tuple[models.Report, bool]:
    """
    Record a reporter's reason against an item.

    Returns:
        Tuple of (report, created) where created is True for the first report on the item

    Raises:
        ValidationError: If the reason is blank or the target type unknown
        NotFound: If the reported item does not exist
        DuplicateReport: If this reporter already reported the item
    """
    if reason is None or not reason.strip():
        raise ValidationError("A reason is required")

    target_model = TARGET_MODELS.get(target_type)
    if target_model is None:
        raise ValidationError(f"Cannot report a '{target_type}'")
    if not db.get(target_model, target_id):
        raise NotFound(f"Reported {target_type} not found")

    created = insert_if_absent(
        db, models.Report, target_type=target_type, target_id=target_id, count=0, status="pending"
    )
    entry = (
        db.query(models.Report)
        .filter(models.Report.target_type == target_type, models.Report.target_id == target_id)
        .one()
    )

    appended = insert_if_absent(
        db,
        models.ReportReason,
        report_id=entry.id,
        reporter_id=reporter.id,
        reason=reason.strip(),
        extra_info=extra_info,
    )
    if not appended:
        db.rollback()
        raise DuplicateReport()

    bump_counter(db, models.Report, models.Report.count, [models.Report.id == entry.id], 1)
    db.commit()
    db.refresh(entry)

    logger.info(
        f"User {reporter.id} reported {target_type} {target_id} (report {entry.id}, count {entry.count})"
    )
    return entry, created


def list_reports(
    db: Session,
    status: str | None = None,
    target_type: str | None = None,
    limit: int = 50,
    before_id: int | None = None,
) -> tuple[list[models.Report], int | None]:
    """List reports newest first, optionally filtered by status and target type."""
    query = db.query(models.Report).options(selectinload(models.Report.reasons))

    if status:
        query = query.filter(models.Report.status == status)
    if target_type:
        query = query.filter(models.Report.target_type == target_type)
    if before_id is not None:
        query = query.filter(models.Report.id < before_id)

    reports = query.order_by(models.Report.id.desc()).limit(limit + 1).all()
    has_more = len(reports) > limit
    items = reports[:limit]
    next_cursor = items[-1].id if has_more and items else None
    return items, next_cursor


def update_report_status(
    db: Session, report_id: int, status: str, moderator: models.User
) -> models.Report:
    """
    Resolve a pending report as reviewed or dismissed.

    Raises:
        NotFound: If the report does not exist
        StateError: If the report was already resolved differently
    """
    entry = db.get(models.Report, report_id)
    if not entry:
        raise NotFound("Report not found")

    if entry.status == status:
        return entry

    if entry.status != "pending" or status == "pending":
        raise StateError(f"Report is {entry.status} and cannot become {status}")

    entry.status = status
    db.commit()
    db.refresh(entry)

    logger.info(f"Admin {moderator.id} marked report {entry.id} as {status}")
    return entry
