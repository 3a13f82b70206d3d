"""
Attendance Service - turns name matches into present / late / absent.

A matched participant who joined inside the on-time window is present;
one who joined outside it is counted as late (attending another
session). Students nobody matched are absent by elimination. When a join
time cannot be read the student gets the benefit of the doubt and is
counted present.
"""

import re
from dataclasses import dataclass, field
from datetime import time
from typing import List, Optional

import pandas as pd

from batchdesk.config import (
    ATTENDANCE_WINDOW_START, ATTENDANCE_WINDOW_END, AUTO_CONFIRM_CONFIDENCE
)
from batchdesk.services.name_matching import MatchingResult, MatchedPair
from batchdesk.logging_config import get_logger, log_with_context

logger = get_logger("matching")

_TWELVE_HOUR = re.compile(r"(\d{1,2}):(\d{2})(?::(\d{2}))?\s*(AM|PM)", re.IGNORECASE)
_CLOCK = re.compile(r"^\s*(\d{1,2}):(\d{2})\s*$")


def parse_clock(value: str) -> time:
    """Parse an "HH:MM" window bound. Raises ValueError when malformed."""
    m = _CLOCK.match(value or "")
    if not m:
        raise ValueError("Expected HH:MM, got {!r}".format(value))
    hours, minutes = int(m.group(1)), int(m.group(2))
    if hours > 23 or minutes > 59:
        raise ValueError("Expected HH:MM, got {!r}".format(value))
    return time(hours, minutes)


@dataclass
class AttendanceWindow:
    """Half-open on-time window [start, end) in local clock time."""
    start: time
    end: time

    @classmethod
    def from_strings(cls, start: Optional[str] = None, end: Optional[str] = None):
        return cls(parse_clock(start or ATTENDANCE_WINDOW_START),
                   parse_clock(end or ATTENDANCE_WINDOW_END))

    def contains(self, moment: time) -> bool:
        return self.start <= moment < self.end


@dataclass
class AttendanceSummary:
    present_ids: List[str] = field(default_factory=list)
    late_ids: List[str] = field(default_factory=list)
    absent_ids: List[str] = field(default_factory=list)
    needs_review: List[MatchedPair] = field(default_factory=list)


def parse_join_time(value: str) -> Optional[time]:
    """
    Read the time-of-day from a "First Seen" / "Join Time" cell.

    Accepts "10:03 AM", "10:03:12 pm" and, as a fallback, anything
    pandas can parse as a datetime ("2024-05-06 10:03:12", "14:05").

    Returns:
        datetime.time, or None when the value cannot be read
    """
    if not value or not value.strip():
        return None

    m = _TWELVE_HOUR.search(value)
    if m:
        hours, minutes = int(m.group(1)), int(m.group(2))
        seconds = int(m.group(3) or 0)
        period = m.group(4).upper()
        if hours > 12 or minutes > 59 or seconds > 59:
            return None
        if period == "PM" and hours != 12:
            hours += 12
        elif period == "AM" and hours == 12:
            hours = 0
        return time(hours, minutes, seconds)

    try:
        parsed = pd.to_datetime(value.strip())
    except (ValueError, TypeError, OverflowError):
        return None
    if pd.isna(parsed):
        return None
    return parsed.time()


def classify_attendance(result: MatchingResult, students: list,
                        window: Optional[AttendanceWindow] = None) -> AttendanceSummary:
    """
    Classify every roster student as present, late or absent.

    Args:
        result: Output of match_participants
        students: The full roster, in roster order
        window: On-time window; defaults to the configured one

    Returns:
        AttendanceSummary with id lists in roster order and the matches
        whose confidence is below the auto-confirm level
    """
    window = window or AttendanceWindow.from_strings()
    status_by_id = {}
    summary = AttendanceSummary()

    for pair in result.matched:
        joined = parse_join_time(pair.participant.first_seen)
        if joined is None or window.contains(joined):
            status_by_id[pair.student.id] = "present"
        else:
            status_by_id[pair.student.id] = "late"
        if pair.confidence < AUTO_CONFIRM_CONFIDENCE:
            summary.needs_review.append(pair)

    for student in students:
        status = status_by_id.get(student.id, "absent")
        if status == "present":
            summary.present_ids.append(student.id)
        elif status == "late":
            summary.late_ids.append(student.id)
        else:
            summary.absent_ids.append(student.id)

    log_with_context(logger, "INFO",
        "Attendance classified: {} present, {} late, {} absent".format(
            len(summary.present_ids), len(summary.late_ids), len(summary.absent_ids)),
        extra_data={
            "window_start": window.start.strftime("%H:%M"),
            "window_end": window.end.strftime("%H:%M"),
            "needs_review": len(summary.needs_review)
        })
    return summary
