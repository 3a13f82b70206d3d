"""
Attendance API routes - meeting export import and session reports.

This module implements:
1. POST /api/batches/{id}/attendance/import: match an uploaded meeting
   export against the roster and classify present / late / absent.
   Nothing is persisted; coordinators review the result first.
2. Session reports: save the reviewed attendance and render the
   plain-text report.
"""

import json
import time
from datetime import date
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, File, Form, Query, UploadFile
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from batchdesk.database import get_db
from batchdesk.models.batch import Batch
from batchdesk.models.session_report import SessionReport
from batchdesk.services.meeting_export import (
    decode_upload, parse_meeting_export, read_export_metadata, MeetingExportError
)
from batchdesk.services.name_matching import match_participants
from batchdesk.services.attendance import AttendanceWindow, classify_attendance
from batchdesk.services.reporting import split_attendance, build_report_text
from batchdesk.logging_config import get_logger, log_with_context

router = APIRouter()
logger = get_logger("http")
db_logger = get_logger("db")


# ── Pydantic schemas ─────────────────────────────────────────

class SessionReportCreate(BaseModel):
    batch_id: str
    date_iso: date
    activity_title: str = Field(..., min_length=1)
    activity_description: Optional[str] = None
    present_student_ids: List[str] = Field(default_factory=list)
    another_session_student_ids: List[str] = Field(default_factory=list)
    tldv_url: Optional[str] = None
    meet_url: Optional[str] = None
    reported_by: Optional[str] = None


def _get_batch_or_404(db: Session, batch_id: str) -> Batch:
    batch = db.query(Batch).filter(Batch.id == batch_id).first()
    if not batch:
        raise HTTPException(status_code=404, detail="Batch not found")
    return batch


def serialize_participant(participant) -> dict:
    return {
        "full_name": participant.full_name,
        "first_seen": participant.first_seen,
        "time_in_call": participant.time_in_call
    }


def serialize_report(report: SessionReport) -> dict:
    return {
        "id": report.id,
        "batch_id": report.batch_id,
        "batch_code": report.batch_code,
        "date_iso": report.date_iso,
        "activity_title": report.activity_title,
        "activity_description": report.activity_description,
        "present_student_ids": report.present_ids,
        "another_session_student_ids": report.another_session_ids,
        "absentee_student_ids": report.absentee_ids,
        "tldv_url": report.tldv_url,
        "meet_url": report.meet_url,
        "reported_by": report.reported_by,
        "created_at": report.created_at.isoformat() if report.created_at else None
    }


@router.post("/api/batches/{batch_id}/attendance/import")
def import_attendance(
    batch_id: str,
    file: UploadFile = File(..., description="Meeting attendance export (CSV)"),
    window_start: Optional[str] = Form(None, description="On-time window start, HH:MM"),
    window_end: Optional[str] = Form(None, description="On-time window end, HH:MM"),
    db: Session = Depends(get_db)
):
    """
    Match a meeting export against the batch roster.

    Any file-level problem aborts the whole import with a single 400.
    """
    start_time = time.time()
    batch = _get_batch_or_404(db, batch_id)

    try:
        window = AttendanceWindow.from_strings(window_start, window_end)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    raw = file.file.read()
    try:
        text = decode_upload(raw)
        participants = parse_meeting_export(text)
    except MeetingExportError as e:
        log_with_context(logger, "WARNING", "Attendance import rejected: {}".format(e),
                         context={"batch_id": batch_id},
                         extra_data={"file_name": file.filename, "file_size": len(raw)})
        raise HTTPException(status_code=400, detail=str(e))

    metadata = read_export_metadata(text)
    result = match_participants(participants, batch.students, batch_code=batch.code)
    summary = classify_attendance(result, batch.students, window)

    duration_ms = (time.time() - start_time) * 1000
    log_with_context(logger, "INFO",
        "Attendance import for {}: {} matched, {} unmatched".format(
            batch.label, len(result.matched), len(result.unmatched)),
        context={"batch_id": batch_id},
        extra_data={"duration_ms": round(duration_ms, 2), "file_name": file.filename})

    return {
        "batch_id": batch.id,
        "meeting_code": metadata.get("meet"),
        "metadata": metadata,
        "window": {"start": window.start.strftime("%H:%M"), "end": window.end.strftime("%H:%M")},
        "matched": [
            {
                "participant": serialize_participant(pair.participant),
                "student_id": pair.student.id,
                "student_name": pair.student.name,
                "confidence": round(pair.confidence, 4),
                "match_type": pair.match_type
            }
            for pair in result.matched
        ],
        "unmatched": [serialize_participant(p) for p in result.unmatched],
        "unmatched_students": [{"id": s.id, "name": s.name} for s in result.unmatched_students],
        "present_student_ids": summary.present_ids,
        "late_student_ids": summary.late_ids,
        "absent_student_ids": summary.absent_ids,
        "needs_review": [pair.student.id for pair in summary.needs_review]
    }


@router.post("/api/session-reports", status_code=201)
def create_session_report(request: SessionReportCreate, db: Session = Depends(get_db)):
    """Save a session report; absentees are everyone not otherwise marked."""
    batch = _get_batch_or_404(db, request.batch_id)
    present, another, absent = split_attendance(
        batch, request.present_student_ids, request.another_session_student_ids)

    reported_by = (request.reported_by or "").strip()
    if not reported_by and batch.coordinators:
        reported_by = batch.coordinators[0].name

    report = SessionReport(
        batch_id=batch.id,
        batch_code=batch.code,
        date_iso=request.date_iso.isoformat(),
        activity_title=request.activity_title.strip(),
        activity_description=(request.activity_description or "").strip() or None,
        present_student_ids=json.dumps(present),
        another_session_student_ids=json.dumps(another),
        absentee_student_ids=json.dumps(absent),
        tldv_url=(request.tldv_url or "").strip() or None,
        meet_url=(request.meet_url or "").strip() or None,
        reported_by=reported_by
    )
    db.add(report)
    db.commit()
    db.refresh(report)

    log_with_context(db_logger, "INFO", "Session report saved for {}".format(batch.label),
                     context={"batch_id": batch.id, "report_id": report.id},
                     extra_data={"present": len(present), "another_session": len(another),
                                 "absent": len(absent)})

    body = serialize_report(report)
    body["text"] = build_report_text(batch, report)
    return body


@router.get("/api/session-reports")
def list_session_reports(
    batch_id: Optional[str] = Query(None, description="Filter by batch"),
    db: Session = Depends(get_db)
):
    query = db.query(SessionReport)
    if batch_id:
        query = query.filter(SessionReport.batch_id == batch_id)
    reports = query.order_by(SessionReport.date_iso.desc(), SessionReport.created_at.desc()).all()
    return {"data": [serialize_report(r) for r in reports]}


@router.get("/api/session-reports/{report_id}/text")
def session_report_text(report_id: str, db: Session = Depends(get_db)):
    report = db.query(SessionReport).filter(SessionReport.id == report_id).first()
    if not report:
        raise HTTPException(status_code=404, detail="Session report not found")
    batch = _get_batch_or_404(db, report.batch_id)
    return {"id": report.id, "text": build_report_text(batch, report)}
