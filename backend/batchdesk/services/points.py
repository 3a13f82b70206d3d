"""
Points Service - ledger operations that read and write the database.

Operations:
1. record_point_change(s): append events, then update the cached balance
2. reset_points_only: every balance back to the baseline
3. restore_points_from_history: rebuild balances from the event log
4. save_weekly_best_performer_and_reset: snapshot the week's winner, then reset
5. save_manual_weekly_best_performer: operator-picked winner, no reset
6. delete_weekly_best_performer

Applying a point change takes two commits: the events first, then the
student's cached balance. If the second commit fails the events are kept
and the result says reconciliation is required; restore_points_from_history
is the repair path. The same holds between the snapshot and the reset of
save-and-reset: reset is idempotent and can simply be retried.
"""

import time
from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from batchdesk.config import BASELINE_POINTS
from batchdesk.models.batch import Batch
from batchdesk.models.point_update import PointUpdate
from batchdesk.models.weekly_best_performer import WeeklyBestPerformer
from batchdesk.services import ledger
from batchdesk.logging_config import get_logger, log_with_context

logger = get_logger("ledger")
db_logger = get_logger("db")

STATUS_APPLIED = "applied"
STATUS_PARTIAL = "partial"


class LedgerValidationError(ValueError):
    """A precondition failed; nothing was written."""


class LedgerStoreError(RuntimeError):
    """A commit failed and was rolled back."""


class NotFoundError(LookupError):
    """A batch, student or snapshot does not exist."""


@dataclass
class ApplyResult:
    status: str
    student_id: str
    event_ids: List[str] = field(default_factory=list)
    total_change: int = 0
    new_points: Optional[int] = None

    @property
    def reconciliation_required(self) -> bool:
        return self.status == STATUS_PARTIAL


def _commit(db: Session, action: str, context: dict = None):
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        log_with_context(db_logger, "ERROR", "Commit failed during {}: {}".format(action, e),
                         context=context)
        raise LedgerStoreError("Failed to {}. Please try again.".format(action)) from e


def _validate_date(date_iso: str) -> str:
    try:
        return date.fromisoformat(date_iso).isoformat()
    except (TypeError, ValueError):
        raise LedgerValidationError("date_iso must be a YYYY-MM-DD date, got {!r}".format(date_iso))


def _validate_entries(entries: List[Tuple[int, str]]) -> List[Tuple[int, str]]:
    if not entries:
        raise LedgerValidationError("Add at least one point entry with a reason")
    cleaned = []
    for points_change, reason in entries:
        if isinstance(points_change, bool) or not isinstance(points_change, int) or points_change == 0:
            raise LedgerValidationError("Points change must be a non-zero number")
        if not reason or not reason.strip():
            raise LedgerValidationError("Every point change needs a reason")
        cleaned.append((points_change, reason.strip()))
    return cleaned


def get_batch(db: Session, batch_id: str) -> Batch:
    batch = db.query(Batch).filter(Batch.id == batch_id).first()
    if not batch:
        raise NotFoundError("Batch not found")
    return batch


def batch_events(db: Session, batch_id: str, newest_first: bool = False) -> List[PointUpdate]:
    """All ledger events of a batch, ordered by creation time."""
    order = PointUpdate.created_at.desc() if newest_first else PointUpdate.created_at.asc()
    return db.query(PointUpdate).filter(PointUpdate.batch_id == batch_id).order_by(order).all()


def record_point_changes(db: Session, batch: Batch, student_id: str,
                         entries: List[Tuple[int, str]], updated_by: str,
                         date_iso: Optional[str] = None) -> ApplyResult:
    """
    Append one event per entry, then move the student's balance by the total.

    Args:
        db: Database session
        batch: Batch holding the student
        student_id: Roster id of the student
        entries: (points_change, reason) pairs; changes non-zero, reasons non-empty
        updated_by: Author recorded on every event
        date_iso: Date the changes apply to; today when omitted

    Returns:
        ApplyResult with status "applied", or "partial" when the events
        were saved but the balance update failed

    Raises:
        NotFoundError: Unknown student
        LedgerValidationError: Bad entry, author or date (nothing written)
        LedgerStoreError: The events could not be saved (nothing written)
    """
    start_time = time.time()

    student = batch.find_student(student_id)
    if student is None:
        raise NotFoundError("Student not found")
    cleaned = _validate_entries(entries)
    if not updated_by or not updated_by.strip():
        raise LedgerValidationError("updated_by is required")
    date_iso = _validate_date(date_iso) if date_iso else date.today().isoformat()

    context = {"batch_id": batch.id, "student_id": student.id}

    # Phase 1: append the events
    events = [
        PointUpdate(
            student_id=student.id,
            student_name=student.name,
            batch_id=batch.id,
            batch_code=batch.code,
            points_change=points_change,
            reason=reason,
            updated_by=updated_by.strip(),
            date_iso=date_iso
        )
        for points_change, reason in cleaned
    ]
    db.add_all(events)
    _commit(db, "save point updates", context)
    event_ids = [str(e.id) for e in events]
    total_change = sum(change for change, _ in cleaned)

    # Phase 2: update the cached balance
    new_points = ledger.effective_points(student) + total_change
    student.points = new_points
    try:
        _commit(db, "update student points", context)
    except LedgerStoreError:
        log_with_context(logger, "WARNING",
            "Point updates saved but balance not updated; restore from history required",
            context=context,
            extra_data={"event_ids": event_ids, "total_change": total_change})
        return ApplyResult(status=STATUS_PARTIAL, student_id=student_id,
                           event_ids=event_ids, total_change=total_change)

    duration_ms = (time.time() - start_time) * 1000
    log_with_context(logger, "INFO",
        "Points {} for {}: {:+d} → {}".format(
            "added" if total_change >= 0 else "removed", student.name, total_change, new_points),
        context=context,
        extra_data={"entries": len(events), "duration_ms": round(duration_ms, 2)})

    return ApplyResult(status=STATUS_APPLIED, student_id=student_id, event_ids=event_ids,
                       total_change=total_change, new_points=new_points)


def record_point_change(db: Session, batch: Batch, student_id: str, points_change: int,
                        reason: str, updated_by: str,
                        date_iso: Optional[str] = None) -> ApplyResult:
    """Single-entry form of record_point_changes."""
    return record_point_changes(db, batch, student_id, [(points_change, reason)],
                                updated_by, date_iso)


def reset_points_only(db: Session, batch: Batch) -> int:
    """
    Set every student of the batch back to the baseline.

    The event log is left untouched. Returns the number of students reset.
    """
    for student in batch.students:
        student.points = BASELINE_POINTS
    _commit(db, "reset points", {"batch_id": batch.id})

    log_with_context(logger, "INFO",
        "Points reset to {} for {} students".format(BASELINE_POINTS, len(batch.students)),
        context={"batch_id": batch.id})
    return len(batch.students)


def restore_points_from_history(db: Session, batch: Batch) -> dict:
    """
    Rebuild every balance of the batch from its full event log.

    Returns:
        {student_id: restored points}
    """
    start_time = time.time()
    events = batch_events(db, batch.id)
    restored = ledger.restored_points(batch.students, events)

    changed = 0
    for student in batch.students:
        if student.points != restored[student.id]:
            changed += 1
        student.points = restored[student.id]
    _commit(db, "restore points from history", {"batch_id": batch.id})

    duration_ms = (time.time() - start_time) * 1000
    log_with_context(logger, "INFO",
        "Points restored from {} events; {} balances changed".format(len(events), changed),
        context={"batch_id": batch.id},
        extra_data={"duration_ms": round(duration_ms, 2)})
    return restored


def _week_aggregates(db: Session, batch: Batch, student_id: str,
                     week_start: date, week_end: date) -> ledger.Aggregates:
    events = ledger.events_in_window(batch_events(db, batch.id), week_start, week_end)
    return ledger.derive_aggregates(events, student_id)


def save_weekly_best_performer_and_reset(db: Session, batch: Batch, created_by: str = None,
                                         today: Optional[date] = None) -> WeeklyBestPerformer:
    """
    Save the current top scorer as this week's best performer, then reset.

    The snapshot and the reset are committed separately. If the reset
    fails the snapshot stays saved and LedgerStoreError is raised;
    running reset_points_only again finishes the job.
    """
    if not batch.students:
        raise LedgerValidationError("Batch has no students")

    week_start, week_end = ledger.week_window(today or date.today())
    winner = ledger.pick_best_performer(batch.students)
    totals = _week_aggregates(db, batch, winner.id, week_start, week_end)
    saved_weeks = db.query(WeeklyBestPerformer).filter(WeeklyBestPerformer.batch_id == batch.id).count()

    snapshot = WeeklyBestPerformer(
        batch_id=batch.id,
        batch_code=batch.code,
        week_number=saved_weeks + 1,
        week_start_date=week_start.isoformat(),
        week_end_date=week_end.isoformat(),
        student_id=winner.id,
        student_name=winner.name,
        final_points=ledger.effective_points(winner),
        points_earned=totals.earned,
        points_lost=totals.lost,
        total_students=len(batch.students),
        average_points=ledger.average_points(batch.students),
        is_manual=False,
        created_by=created_by
    )
    db.add(snapshot)
    _commit(db, "save weekly best performer", {"batch_id": batch.id})

    log_with_context(logger, "INFO",
        "Week {} best performer saved: {} ({} pts)".format(
            snapshot.week_number, winner.name, snapshot.final_points),
        context={"batch_id": batch.id, "student_id": winner.id, "snapshot_id": snapshot.id},
        extra_data={"week_start": snapshot.week_start_date, "week_end": snapshot.week_end_date})

    reset_points_only(db, batch)
    return snapshot


def save_manual_weekly_best_performer(db: Session, batch: Batch, student_id: str,
                                      week_number: int, created_by: str = None,
                                      week_start: Optional[date] = None,
                                      today: Optional[date] = None) -> WeeklyBestPerformer:
    """
    Record an operator-chosen best performer for any week.

    The student need not hold the top balance. Week aggregates are stored
    for reference only and no balance is changed. Without `week_start`
    the current week is used; the window always spans Monday to Saturday
    of the week containing the given start date.
    """
    student = batch.find_student(student_id)
    if student is None:
        raise NotFoundError("Student not found")
    if isinstance(week_number, bool) or not isinstance(week_number, int) or week_number < 1:
        raise LedgerValidationError("week_number must be a positive integer")

    week_start, week_end = ledger.week_window(week_start or today or date.today())
    totals = _week_aggregates(db, batch, student.id, week_start, week_end)

    snapshot = WeeklyBestPerformer(
        batch_id=batch.id,
        batch_code=batch.code,
        week_number=week_number,
        week_start_date=week_start.isoformat(),
        week_end_date=week_end.isoformat(),
        student_id=student.id,
        student_name=student.name,
        final_points=ledger.effective_points(student),
        points_earned=totals.earned,
        points_lost=totals.lost,
        total_students=len(batch.students),
        average_points=ledger.average_points(batch.students),
        is_manual=True,
        created_by=created_by
    )
    db.add(snapshot)
    _commit(db, "save manual best performer", {"batch_id": batch.id})

    log_with_context(logger, "INFO",
        "Manual best performer saved for week {}: {}".format(week_number, student.name),
        context={"batch_id": batch.id, "student_id": student.id, "snapshot_id": snapshot.id})
    return snapshot


def delete_weekly_best_performer(db: Session, snapshot_id: str) -> None:
    snapshot = db.query(WeeklyBestPerformer).filter(WeeklyBestPerformer.id == snapshot_id).first()
    if not snapshot:
        raise NotFoundError("Best performer record not found")
    context = {"snapshot_id": snapshot_id, "batch_id": snapshot.batch_id}
    db.delete(snapshot)
    _commit(db, "delete best performer", context)
    log_with_context(logger, "INFO", "Best performer record deleted", context=context)
