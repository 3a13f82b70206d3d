"""
Student model - one roster entry of a batch.

The `points` column is a read cache of the point ledger: it is derivable
from the batch's PointUpdate rows, may drift from them after a partial
write, and is repaired by restoring points from history. NULL means the
student has never been scored and holds the baseline.
"""

from sqlalchemy import Column, Text, Integer, ForeignKey, String
from sqlalchemy.orm import relationship
from batchdesk.database import Base


class Student(Base):
    """
    SQLAlchemy model for the students table.

    Student ids are only unique within their batch, so the primary key
    is (batch_id, id).
    """
    __tablename__ = "students"

    batch_id = Column(String(36), ForeignKey("batches.id", ondelete="CASCADE"), primary_key=True,
                      doc="Batch this roster entry belongs to")
    id = Column(String(64), primary_key=True,
                doc="Stable student identifier, unique within the batch")
    name = Column(Text, nullable=False,
                  doc="Display name as entered by the coordinator")
    email = Column(Text, nullable=True)
    phone = Column(Text, nullable=True)
    points = Column(Integer, nullable=True,
                    doc="Cached current balance; NULL means the baseline")
    position = Column(Integer, nullable=False, default=0,
                      doc="Roster order within the batch")

    batch = relationship("Batch", back_populates="students")

    def __repr__(self):
        return f"<Student(id={self.id}, name='{self.name}', points={self.points})>"
