"""
Points API routes - the batch points ledger.

Provides endpoints for:
- Recording point changes (one entry or several at once)
- Ranked leaderboard with earned / lost / net and cache drift
- A student's point log
- Resetting every balance, and restoring balances from history
"""

from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from batchdesk.database import get_db
from batchdesk.services import ledger
from batchdesk.services.points import (
    get_batch, batch_events, record_point_changes, reset_points_only,
    restore_points_from_history,
    LedgerValidationError, LedgerStoreError, NotFoundError
)
from batchdesk.logging_config import get_logger, log_with_context

router = APIRouter()
logger = get_logger("http")


# ── Pydantic schemas ─────────────────────────────────────────

class PointEntry(BaseModel):
    points_change: int = Field(..., description="Signed, non-zero change")
    reason: str = Field(..., description="Why the points were added or removed")


class PointChangeRequest(BaseModel):
    """Either a single points_change/reason pair or a list of entries."""
    student_id: str
    updated_by: str
    points_change: Optional[int] = None
    reason: Optional[str] = None
    entries: List[PointEntry] = Field(default_factory=list)
    date_iso: Optional[str] = Field(None, description="YYYY-MM-DD; today when omitted")


def raise_for_ledger_error(e: Exception):
    """Translate a service exception into the matching HTTP error."""
    if isinstance(e, NotFoundError):
        raise HTTPException(status_code=404, detail=str(e))
    if isinstance(e, LedgerValidationError):
        raise HTTPException(status_code=400, detail=str(e))
    if isinstance(e, LedgerStoreError):
        raise HTTPException(status_code=500, detail=str(e))
    raise e


def serialize_event(event) -> dict:
    return {
        "id": str(event.id),
        "student_id": event.student_id,
        "student_name": event.student_name,
        "batch_id": event.batch_id,
        "batch_code": event.batch_code,
        "points_change": event.points_change,
        "reason": event.reason,
        "updated_by": event.updated_by,
        "date_iso": event.date_iso,
        "created_at": event.created_at.isoformat() if event.created_at else None
    }


@router.post("/api/batches/{batch_id}/points")
def add_points(batch_id: str, request: PointChangeRequest, db: Session = Depends(get_db)):
    """
    Record point changes for one student.

    A 200 response with status "partial" means the events were saved but
    the student's balance was not; restore from history to repair it.
    """
    entries = [(e.points_change, e.reason) for e in request.entries]
    if request.points_change is not None or request.reason is not None:
        entries.insert(0, (request.points_change or 0, request.reason or ""))

    try:
        batch = get_batch(db, batch_id)
        result = record_point_changes(db, batch, request.student_id, entries,
                                      request.updated_by, request.date_iso)
    except (NotFoundError, LedgerValidationError, LedgerStoreError) as e:
        raise_for_ledger_error(e)

    return {
        "status": result.status,
        "student_id": result.student_id,
        "event_ids": result.event_ids,
        "total_change": result.total_change,
        "new_points": result.new_points,
        "reconciliation_required": result.reconciliation_required
    }


@router.get("/api/batches/{batch_id}/points/leaderboard")
def points_leaderboard(batch_id: str, db: Session = Depends(get_db)):
    """
    Rank a batch's students by current points.

    Ties keep roster order. `drift` is non-zero when the cached balance
    differs from baseline + net of the log (expected after a weekly
    reset, otherwise a sign that a restore is needed).
    """
    try:
        batch = get_batch(db, batch_id)
    except NotFoundError as e:
        raise_for_ledger_error(e)

    events = batch_events(db, batch_id)
    leaderboard = []
    for entry in ledger.rank_students(batch.students):
        totals = ledger.derive_aggregates(events, entry.student.id)
        leaderboard.append({
            "rank": entry.rank,
            "is_top_3": entry.rank <= 3,
            "student_id": entry.student.id,
            "student_name": entry.student.name,
            "points": entry.points,
            "earned": totals.earned,
            "lost": totals.lost,
            "net": totals.net,
            "drift": ledger.cache_drift(entry.student, events)
        })

    log_with_context(logger, "INFO",
        "Points leaderboard generated: {} students".format(len(leaderboard)),
        extra_data={"batch_id": batch_id, "events": len(events)})

    return {
        "batch_id": batch.id,
        "batch_code": batch.code,
        "average_points": ledger.average_points(batch.students),
        "leaderboard": leaderboard
    }


@router.get("/api/batches/{batch_id}/students/{student_id}/point-log")
def student_point_log(batch_id: str, student_id: str, db: Session = Depends(get_db)):
    """A student's ledger events, newest first, with totals."""
    try:
        batch = get_batch(db, batch_id)
    except NotFoundError as e:
        raise_for_ledger_error(e)
    student = batch.find_student(student_id)
    if student is None:
        raise HTTPException(status_code=404, detail="Student not found")

    events = [e for e in batch_events(db, batch_id, newest_first=True) if e.student_id == student_id]
    totals = ledger.derive_aggregates(events)
    return {
        "student_id": student.id,
        "student_name": student.name,
        "current_points": ledger.effective_points(student),
        "earned": totals.earned,
        "lost": totals.lost,
        "net": totals.net,
        "events": [serialize_event(e) for e in events]
    }


@router.post("/api/batches/{batch_id}/points/reset")
def reset_points(batch_id: str, db: Session = Depends(get_db)):
    """Set every student's points back to the baseline. The log is kept."""
    try:
        batch = get_batch(db, batch_id)
        count = reset_points_only(db, batch)
    except (NotFoundError, LedgerStoreError) as e:
        raise_for_ledger_error(e)
    return {"message": "Points reset", "students_reset": count}


@router.post("/api/batches/{batch_id}/points/restore")
def restore_points(batch_id: str, db: Session = Depends(get_db)):
    """Rebuild every balance from the full event log."""
    try:
        batch = get_batch(db, batch_id)
        restored = restore_points_from_history(db, batch)
    except (NotFoundError, LedgerStoreError) as e:
        raise_for_ledger_error(e)
    return {"message": "Points restored from history", "points": restored}
