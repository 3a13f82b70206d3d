"""
WeeklyBestPerformer model - saved winner of one points week.

Snapshots are written either by the save-and-reset action (automatic
pick of the top balance) or by the manual override, and are never
edited afterwards. An admin may delete one.
"""

import uuid
from datetime import datetime, timezone
from sqlalchemy import Column, Text, Integer, Float, Boolean, DateTime, Index, String
from batchdesk.database import Base


class WeeklyBestPerformer(Base):
    """SQLAlchemy model for the weekly_best_performers table."""
    __tablename__ = "weekly_best_performers"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    batch_id = Column(String(36), nullable=False)
    batch_code = Column(Text, nullable=False)
    week_number = Column(Integer, nullable=False)
    week_start_date = Column(String(10), nullable=False,
                             doc="Monday of the week (YYYY-MM-DD)")
    week_end_date = Column(String(10), nullable=False,
                           doc="Saturday of the week (YYYY-MM-DD)")
    student_id = Column(String(64), nullable=False)
    student_name = Column(Text, nullable=False)
    final_points = Column(Integer, nullable=False,
                          doc="Winner's balance when the snapshot was taken")
    points_earned = Column(Integer, nullable=False, default=0,
                           doc="Positive changes dated inside the week")
    points_lost = Column(Integer, nullable=False, default=0,
                         doc="Absolute negative changes dated inside the week")
    total_students = Column(Integer, nullable=False, default=0)
    average_points = Column(Float, nullable=False, default=0)
    is_manual = Column(Boolean, nullable=False, default=False,
                       doc="True when an operator picked the winner")
    created_by = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        Index("ix_weekly_best_performers_batch_id", "batch_id"),
    )

    def __repr__(self):
        return f"<WeeklyBestPerformer(batch={self.batch_code}, week={self.week_number}, student='{self.student_name}')>"
