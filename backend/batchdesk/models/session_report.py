"""
SessionReport model - attendance record of one batch session.

Id lists are stored as JSON strings, matching the portable column types
used across the schema.
"""

import uuid
import json
from datetime import datetime, timezone
from sqlalchemy import Column, Text, DateTime, Index, String
from batchdesk.database import Base


def _parse_id_list(value):
    if isinstance(value, list):
        return value
    try:
        return json.loads(value) if value else []
    except (json.JSONDecodeError, TypeError):
        return []


class SessionReport(Base):
    """SQLAlchemy model for the session_reports table."""
    __tablename__ = "session_reports"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    batch_id = Column(String(36), nullable=False)
    batch_code = Column(Text, nullable=False)
    date_iso = Column(String(10), nullable=False)
    activity_title = Column(Text, nullable=False)
    activity_description = Column(Text, nullable=True)
    present_student_ids = Column(Text, nullable=False, default="[]")
    another_session_student_ids = Column(Text, nullable=False, default="[]")
    absentee_student_ids = Column(Text, nullable=False, default="[]")
    tldv_url = Column(Text, nullable=True)
    meet_url = Column(Text, nullable=True)
    reported_by = Column(Text, nullable=False, default="")
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        Index("ix_session_reports_batch_id", "batch_id"),
    )

    @property
    def present_ids(self):
        return _parse_id_list(self.present_student_ids)

    @property
    def another_session_ids(self):
        return _parse_id_list(self.another_session_student_ids)

    @property
    def absentee_ids(self):
        return _parse_id_list(self.absentee_student_ids)

    def __repr__(self):
        return f"<SessionReport(batch={self.batch_code}, date={self.date_iso})>"
