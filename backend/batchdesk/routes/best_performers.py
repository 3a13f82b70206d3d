"""
Best performer API routes - weekly winner snapshots.
"""

from datetime import date
from typing import Optional
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from batchdesk.database import get_db
from batchdesk.models.weekly_best_performer import WeeklyBestPerformer
from batchdesk.routes.points import raise_for_ledger_error
from batchdesk.services.points import (
    get_batch, save_weekly_best_performer_and_reset, save_manual_weekly_best_performer,
    delete_weekly_best_performer,
    LedgerValidationError, LedgerStoreError, NotFoundError
)

router = APIRouter()


class SaveAndResetRequest(BaseModel):
    created_by: Optional[str] = None


class ManualBestPerformerRequest(BaseModel):
    student_id: str
    week_number: int = Field(..., ge=1)
    week_start_date: Optional[date] = Field(None, description="Any day of the week; current week when omitted")
    created_by: Optional[str] = None


def serialize_snapshot(snapshot: WeeklyBestPerformer) -> dict:
    return {
        "id": snapshot.id,
        "batch_id": snapshot.batch_id,
        "batch_code": snapshot.batch_code,
        "week_number": snapshot.week_number,
        "week_start_date": snapshot.week_start_date,
        "week_end_date": snapshot.week_end_date,
        "student_id": snapshot.student_id,
        "student_name": snapshot.student_name,
        "final_points": snapshot.final_points,
        "points_earned": snapshot.points_earned,
        "points_lost": snapshot.points_lost,
        "total_students": snapshot.total_students,
        "average_points": snapshot.average_points,
        "is_manual": snapshot.is_manual,
        "created_by": snapshot.created_by,
        "created_at": snapshot.created_at.isoformat() if snapshot.created_at else None
    }


@router.post("/api/batches/{batch_id}/best-performers/save-and-reset", status_code=201)
def save_and_reset(batch_id: str, request: SaveAndResetRequest = None, db: Session = Depends(get_db)):
    """Save this week's top scorer, then reset every balance to the baseline."""
    created_by = request.created_by if request else None
    try:
        batch = get_batch(db, batch_id)
        snapshot = save_weekly_best_performer_and_reset(db, batch, created_by)
    except (NotFoundError, LedgerValidationError, LedgerStoreError) as e:
        raise_for_ledger_error(e)
    return serialize_snapshot(snapshot)


@router.post("/api/batches/{batch_id}/best-performers/manual", status_code=201)
def save_manual(batch_id: str, request: ManualBestPerformerRequest, db: Session = Depends(get_db)):
    """Record an operator-chosen winner; balances are not changed."""
    try:
        batch = get_batch(db, batch_id)
        snapshot = save_manual_weekly_best_performer(
            db, batch, request.student_id, request.week_number,
            created_by=request.created_by, week_start=request.week_start_date)
    except (NotFoundError, LedgerValidationError, LedgerStoreError) as e:
        raise_for_ledger_error(e)
    return serialize_snapshot(snapshot)


@router.get("/api/best-performers")
def list_best_performers(
    batch_id: Optional[str] = Query(None, description="Filter by batch"),
    db: Session = Depends(get_db)
):
    query = db.query(WeeklyBestPerformer)
    if batch_id:
        query = query.filter(WeeklyBestPerformer.batch_id == batch_id)
    snapshots = query.order_by(WeeklyBestPerformer.created_at.desc()).all()
    return {"data": [serialize_snapshot(s) for s in snapshots]}


@router.delete("/api/best-performers/{snapshot_id}")
def delete_best_performer(snapshot_id: str, db: Session = Depends(get_db)):
    try:
        delete_weekly_best_performer(db, snapshot_id)
    except (NotFoundError, LedgerStoreError) as e:
        raise_for_ledger_error(e)
    return {"message": "Best performer record deleted", "id": snapshot_id}
