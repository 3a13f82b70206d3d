from datetime import time

import pytest

from batchdesk.models import Student
from batchdesk.services.attendance import (
    AttendanceWindow, parse_clock, parse_join_time, classify_attendance
)
from batchdesk.services.name_matching import Participant, match_participants

WINDOW = AttendanceWindow(time(10, 0), time(10, 10))


@pytest.mark.parametrize("raw,expected", [
    ("10:03:12 AM", time(10, 3, 12)),
    ("10:05 am", time(10, 5)),
    ("12:05 AM", time(0, 5)),
    ("12:30 PM", time(12, 30)),
    ("1:15:09 pm", time(13, 15, 9)),
    ("2024-05-06T10:04:00", time(10, 4)),
    ("2024-05-06 14:05:30", time(14, 5, 30)),
])
def test_parse_join_time(raw, expected):
    assert parse_join_time(raw) == expected


@pytest.mark.parametrize("raw", ["", "   ", "not a time", "13:99 PM"])
def test_unreadable_join_time(raw):
    assert parse_join_time(raw) is None


def test_window_is_half_open():
    assert WINDOW.contains(time(10, 0))
    assert WINDOW.contains(time(10, 9, 59))
    assert not WINDOW.contains(time(10, 10))
    assert not WINDOW.contains(time(9, 59, 59))


def test_window_bounds_must_be_clock_times():
    assert parse_clock("9:30") == time(9, 30)
    with pytest.raises(ValueError):
        AttendanceWindow.from_strings("25:00", "10:10")
    with pytest.raises(ValueError):
        AttendanceWindow.from_strings("ten", None)


def test_default_window_is_ten_to_ten_past():
    window = AttendanceWindow.from_strings()
    assert (window.start, window.end) == (time(10, 0), time(10, 10))


def test_classification_present_late_absent():
    students = [
        Student(id="s1", name="Jane Doe", position=0),
        Student(id="s2", name="John Smith", position=1),
        Student(id="s3", name="Carlos Mendes", position=2),
        Student(id="s4", name="Lena Ortiz", position=3),
    ]
    participants = [
        Participant("Jane Doe", "10:05:00 AM"),
        Participant("John Smith", "10:15:00 AM"),
        Participant("Lena Ortiz", "sometime"),
    ]
    result = match_participants(participants, students)
    summary = classify_attendance(result, students, WINDOW)

    assert summary.present_ids == ["s1", "s4"]
    assert summary.late_ids == ["s2"]
    assert summary.absent_ids == ["s3"]


def test_low_confidence_matches_need_review():
    students = [Student(id="s1", name="Jane Doe", position=0)]
    result = match_participants([Participant("Jon Doe", "10:01 AM")], students)
    summary = classify_attendance(result, students, WINDOW)
    assert summary.present_ids == ["s1"]
    assert [pair.student.id for pair in summary.needs_review] == ["s1"]
