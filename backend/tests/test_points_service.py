from datetime import date

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from batchdesk.models import PointUpdate, WeeklyBestPerformer
from batchdesk.services import points
from batchdesk.services.points import (
    record_point_change, record_point_changes, reset_points_only,
    restore_points_from_history, save_weekly_best_performer_and_reset,
    save_manual_weekly_best_performer, delete_weekly_best_performer,
    LedgerValidationError, LedgerStoreError, NotFoundError
)

AUTHOR = "coach@example.com"


def balances(batch):
    return {s.id: s.points for s in batch.students}


def event_count(db):
    return db.query(PointUpdate).count()


def test_record_point_change_appends_event_and_updates_cache(db, make_batch):
    batch = make_batch([("a", "Jane Doe", None)])

    first = record_point_change(db, batch, "a", 10, "quiz", AUTHOR, "2024-05-06")
    second = record_point_change(db, batch, "a", -5, "  late  ", AUTHOR, "2024-05-06")

    assert first.status == "applied" and not first.reconciliation_required
    assert (first.new_points, second.new_points) == (110, 105)
    events = db.query(PointUpdate).order_by(PointUpdate.created_at).all()
    assert [(e.points_change, e.reason, e.student_name, e.batch_code) for e in events] == [
        (10, "quiz", "Jane Doe", "BCR69"), (-5, "late", "Jane Doe", "BCR69")
    ]
    assert balances(batch) == {"a": 105}


def test_multiple_entries_move_the_cache_once(db, make_batch):
    batch = make_batch([("a", "Jane Doe", 100)])
    result = record_point_changes(db, batch, "a", [(10, "participation"), (-20, "absent")], AUTHOR)
    assert len(result.event_ids) == 2
    assert result.total_change == -10
    assert balances(batch) == {"a": 90}
    assert db.query(PointUpdate).first().date_iso == date.today().isoformat()


@pytest.mark.parametrize("change,reason", [(0, "quiz"), (5, ""), (5, "   "), (True, "quiz"), ("5", "quiz")])
def test_invalid_changes_are_rejected_before_writing(db, make_batch, change, reason):
    batch = make_batch([("a", "Jane Doe", None)])
    with pytest.raises(LedgerValidationError):
        record_point_change(db, batch, "a", change, reason, AUTHOR)
    assert event_count(db) == 0
    assert balances(batch) == {"a": None}


def test_bad_date_and_unknown_student(db, make_batch):
    batch = make_batch([("a", "Jane Doe", None)])
    with pytest.raises(LedgerValidationError):
        record_point_change(db, batch, "a", 5, "quiz", AUTHOR, "06/05/2024")
    with pytest.raises(NotFoundError):
        record_point_change(db, batch, "zz", 5, "quiz", AUTHOR)
    with pytest.raises(LedgerValidationError):
        record_point_changes(db, batch, "a", [], AUTHOR)
    assert event_count(db) == 0


def test_failed_cache_update_is_reported_as_partial(db, make_batch, monkeypatch):
    batch = make_batch([("a", "Jane Doe", None)])
    real_commit = db.commit
    calls = {"n": 0}

    def flaky_commit():
        calls["n"] += 1
        if calls["n"] == 2:
            raise OperationalError("UPDATE students", {}, Exception("database is locked"))
        real_commit()

    monkeypatch.setattr(db, "commit", flaky_commit)
    result = record_point_change(db, batch, "a", 25, "project", AUTHOR)

    assert result.status == "partial"
    assert result.reconciliation_required
    assert result.new_points is None
    assert event_count(db) == 1
    assert balances(batch) == {"a": None}

    monkeypatch.setattr(db, "commit", real_commit)
    assert restore_points_from_history(db, batch) == {"a": 125}
    assert balances(batch) == {"a": 125}


def test_failed_event_write_raises_store_error(db, make_batch, monkeypatch):
    batch = make_batch([("a", "Jane Doe", None)])

    def broken_commit():
        raise OperationalError("INSERT INTO point_updates", {}, Exception("disk I/O error"))

    monkeypatch.setattr(db, "commit", broken_commit)
    with pytest.raises(LedgerStoreError):
        record_point_change(db, batch, "a", 5, "quiz", AUTHOR)


def test_reset_sets_everyone_to_baseline_and_keeps_log(db, make_batch):
    batch = make_batch([("a", "A", 130), ("b", "B", 70)])
    record_point_change(db, batch, "a", 5, "quiz", AUTHOR)

    assert reset_points_only(db, batch) == 2
    assert balances(batch) == {"a": 100, "b": 100}
    reset_points_only(db, batch)
    assert balances(batch) == {"a": 100, "b": 100}
    assert event_count(db) == 1


def test_restore_is_idempotent_and_floors_at_zero(db, make_batch):
    batch = make_batch([("a", "A", None), ("b", "B", None)])
    record_point_change(db, batch, "a", -100, "absent all week", AUTHOR)
    record_point_change(db, batch, "a", -50, "missing assignments", AUTHOR)
    record_point_change(db, batch, "b", 20, "leadership", AUTHOR)
    assert balances(batch) == {"a": -50, "b": 120}

    first = restore_points_from_history(db, batch)
    second = restore_points_from_history(db, batch)
    assert first == second == {"a": 0, "b": 120}
    assert balances(batch) == {"a": 0, "b": 120}


def test_restore_after_applies_matches_direct_application(db, make_batch):
    batch = make_batch([("a", "A", None), ("b", "B", None)])
    for sid, change in [("a", 10), ("b", -5), ("a", -3), ("b", 12)]:
        record_point_change(db, batch, sid, change, "activity", AUTHOR)
    applied = balances(batch)
    assert restore_points_from_history(db, batch) == applied == {"a": 107, "b": 107}


def test_save_weekly_best_performer_and_reset(db, make_batch):
    batch = make_batch([("a", "Jane Doe", None), ("b", "John Smith", None), ("c", "Lena Ortiz", None)])
    record_point_change(db, batch, "a", 15, "excellent answer", AUTHOR, "2024-05-07")
    record_point_change(db, batch, "b", 30, "outstanding", AUTHOR, "2024-05-08")
    record_point_change(db, batch, "b", -5, "late", AUTHOR, "2024-05-11")
    record_point_change(db, batch, "b", 40, "last week", AUTHOR, "2024-05-05")
    record_point_change(db, batch, "b", -40, "next week", AUTHOR, "2024-05-13")

    snapshot = save_weekly_best_performer_and_reset(db, batch, AUTHOR, today=date(2024, 5, 12))

    assert (snapshot.week_start_date, snapshot.week_end_date) == ("2024-05-06", "2024-05-11")
    assert (snapshot.student_id, snapshot.student_name) == ("b", "John Smith")
    assert snapshot.final_points == 125
    assert (snapshot.points_earned, snapshot.points_lost) == (30, 5)
    assert snapshot.total_students == 3
    assert snapshot.average_points == pytest.approx(113.33)
    assert snapshot.week_number == 1
    assert snapshot.is_manual is False
    assert balances(batch) == {"a": 100, "b": 100, "c": 100}
    assert event_count(db) == 5

    again = save_weekly_best_performer_and_reset(db, batch, AUTHOR, today=date(2024, 5, 14))
    assert again.week_number == 2
    assert again.student_id == "a"


def test_snapshot_survives_a_failed_reset(db, make_batch, monkeypatch):
    batch = make_batch([("a", "A", 140), ("b", "B", 90)])

    def failing_reset(db_, batch_):
        raise LedgerStoreError("Failed to reset points. Please try again.")

    monkeypatch.setattr(points, "reset_points_only", failing_reset)
    with pytest.raises(LedgerStoreError):
        save_weekly_best_performer_and_reset(db, batch, AUTHOR, today=date(2024, 5, 8))

    assert db.query(WeeklyBestPerformer).count() == 1
    assert balances(batch) == {"a": 140, "b": 90}
    monkeypatch.undo()
    reset_points_only(db, batch)
    assert balances(batch) == {"a": 100, "b": 100}


def test_save_and_reset_needs_students(db, make_batch):
    batch = make_batch([])
    with pytest.raises(LedgerValidationError):
        save_weekly_best_performer_and_reset(db, batch)


def test_manual_best_performer_leaves_points_alone(db, make_batch):
    batch = make_batch([("a", "Jane Doe", 150), ("b", "John Smith", None)])
    record_point_change(db, batch, "b", 8, "helping others", AUTHOR, "2024-04-16")
    record_point_change(db, batch, "b", -2, "late", AUTHOR, "2024-04-20")

    snapshot = save_manual_weekly_best_performer(
        db, batch, "b", 3, created_by=AUTHOR, week_start=date(2024, 4, 17))

    assert snapshot.is_manual is True
    assert snapshot.week_number == 3
    assert (snapshot.week_start_date, snapshot.week_end_date) == ("2024-04-15", "2024-04-20")
    assert (snapshot.points_earned, snapshot.points_lost) == (8, 2)
    assert snapshot.final_points == 106
    assert balances(batch) == {"a": 150, "b": 106}


def test_manual_best_performer_validation(db, make_batch):
    batch = make_batch([("a", "Jane Doe", None)])
    with pytest.raises(NotFoundError):
        save_manual_weekly_best_performer(db, batch, "zz", 1)
    with pytest.raises(LedgerValidationError):
        save_manual_weekly_best_performer(db, batch, "a", 0)


def test_delete_best_performer(db, make_batch):
    batch = make_batch([("a", "Jane Doe", None)])
    snapshot = save_manual_weekly_best_performer(db, batch, "a", 1, today=date(2024, 5, 8))
    snapshot_id = snapshot.id
    delete_weekly_best_performer(db, snapshot_id)
    assert db.query(WeeklyBestPerformer).count() == 0
    with pytest.raises(NotFoundError):
        delete_weekly_best_performer(db, snapshot_id)


def test_store_rejects_zero_change_rows(db, make_batch):
    batch = make_batch([("a", "Jane Doe", None)])
    db.add(PointUpdate(student_id="a", student_name="Jane Doe", batch_id=batch.id,
                       batch_code=batch.code, points_change=0, reason="noop",
                       updated_by=AUTHOR, date_iso="2024-05-06"))
    with pytest.raises(IntegrityError):
        db.commit()
    db.rollback()
    assert event_count(db) == 0


def test_timestamps_are_timezone_aware_columns():
    for model in (PointUpdate, WeeklyBestPerformer):
        assert model.__table__.c.created_at.type.timezone is True
