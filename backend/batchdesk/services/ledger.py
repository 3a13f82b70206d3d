"""
Points Ledger - pure reconciliation logic over in-memory rows.

The point_updates log is the source of truth. Each student's `points`
column is a cache of `baseline + sum(changes since the last reset)`:
- it may drift from the log when a two-phase apply half-fails;
- restored_points() recomputes it from the full log and is the repair
  path for any suspected drift.

Nothing in this module touches the database; see services.points for
the operations that read and write rows.
"""

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional, Tuple

from batchdesk.config import BASELINE_POINTS


@dataclass
class Aggregates:
    earned: int = 0
    lost: int = 0

    @property
    def net(self) -> int:
        return self.earned - self.lost


@dataclass
class RankedStudent:
    rank: int
    student: object
    points: int


def effective_points(student) -> int:
    """Cached balance, or the baseline when the student was never scored."""
    return BASELINE_POINTS if student.points is None else student.points


def derive_aggregates(events: Iterable, student_id: Optional[str] = None) -> Aggregates:
    """
    Sum earned and lost points.

    Args:
        events: PointUpdate-like rows (`student_id`, `points_change`)
        student_id: Only count this student's events; all when None

    Returns:
        Aggregates where net == earned - lost
    """
    totals = Aggregates()
    for event in events:
        if student_id is not None and event.student_id != student_id:
            continue
        if event.points_change > 0:
            totals.earned += event.points_change
        elif event.points_change < 0:
            totals.lost += abs(event.points_change)
    return totals


def rank_students(students: list) -> List[RankedStudent]:
    """
    Rank students by current points, highest first.

    The sort is stable: students with equal points keep their roster
    order and get consecutive ranks (no shared ranks).
    """
    ordered = sorted(students, key=effective_points, reverse=True)
    return [RankedStudent(rank=i, student=s, points=effective_points(s))
            for i, s in enumerate(ordered, 1)]


def pick_best_performer(students: list):
    """First student holding the highest balance, or None for an empty roster."""
    best = None
    for student in students:
        if best is None or effective_points(student) > effective_points(best):
            best = student
    return best


def restored_points(students: list, events: Iterable) -> Dict[str, int]:
    """
    Recompute every student's balance from the event log alone.

    points = max(0, baseline + sum of all the student's changes).
    The cached value is ignored, so the result is the same however many
    times it is applied.
    """
    totals = {s.id: 0 for s in students}
    for event in events:
        if event.student_id in totals:
            totals[event.student_id] += event.points_change
    return {sid: max(0, BASELINE_POINTS + total) for sid, total in totals.items()}


def cache_drift(student, events: Iterable) -> int:
    """
    Difference between the cached balance and baseline + net of the log.

    Zero when no out-of-band change happened since the last reset.
    Non-zero after a reset (the log keeps older events) or a partial
    write.
    """
    return effective_points(student) - (BASELINE_POINTS + derive_aggregates(events, student.id).net)


def week_window(today: date) -> Tuple[date, date]:
    """
    Monday-to-Saturday window containing `today`.

    Sunday closes the previous week: it maps back to the Monday six days
    earlier and so lies one day past that window's Saturday.
    """
    monday = today - timedelta(days=today.weekday())
    return monday, monday + timedelta(days=5)


def events_in_window(events: Iterable, start: date, end: date) -> list:
    """Events whose date_iso lies in [start, end], both inclusive."""
    lo, hi = start.isoformat(), end.isoformat()
    return [e for e in events if lo <= e.date_iso <= hi]


def average_points(students: list) -> float:
    if not students:
        return 0.0
    return round(sum(effective_points(s) for s in students) / len(students), 2)
