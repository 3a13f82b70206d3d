"""
PointUpdate model - one immutable entry of the points ledger.

The ledger is append-only and is the source of truth for every
student's balance. Student name and batch code are denormalized at write
time so the log stays readable after roster edits.
"""

import uuid
from datetime import datetime, timezone
from sqlalchemy import Column, Text, Integer, DateTime, Index, String, CheckConstraint
from batchdesk.database import Base


class PointUpdate(Base):
    """
    SQLAlchemy model for the point_updates table.

    No foreign key to students: events outlive
    roster edits.
    """
    __tablename__ = "point_updates"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()),
                doc="Unique event identifier")
    student_id = Column(String(64), nullable=False,
                        doc="Roster id of the student the change applies to")
    student_name = Column(Text, nullable=False,
                          doc="Student name at the time of the change")
    batch_id = Column(String(36), nullable=False)
    batch_code = Column(Text, nullable=False)
    points_change = Column(Integer, nullable=False,
                           doc="Signed, non-zero change")
    reason = Column(Text, nullable=False)
    updated_by = Column(Text, nullable=False,
                        doc="Who recorded the change")
    date_iso = Column(String(10), nullable=False,
                      doc="Calendar date (YYYY-MM-DD) the change applies to")
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
                        doc="When the event was written")

    __table_args__ = (
        Index("ix_point_updates_batch_id", "batch_id"),
        Index("ix_point_updates_student_id", "student_id"),
        Index("ix_point_updates_created_at", "created_at"),
        CheckConstraint("points_change <> 0", name="ck_point_updates_nonzero"),
    )

    def __repr__(self):
        return f"<PointUpdate(student={self.student_id}, change={self.points_change:+d}, date={self.date_iso})>"
