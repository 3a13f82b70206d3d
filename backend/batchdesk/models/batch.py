"""
Batch model - a training batch with its roster and staff.

A batch owns an ordered list of students plus the trainers and
coordinators who run its sessions. Roster order matters: it breaks
every points tie in the ledger.
"""

import uuid
from datetime import datetime, timezone
from sqlalchemy import Column, Text, DateTime, String
from sqlalchemy.orm import relationship
from batchdesk.database import Base


class Batch(Base):
    """SQLAlchemy model for the batches table."""
    __tablename__ = "batches"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()),
                doc="Unique batch identifier")
    code = Column(Text, nullable=False,
                  doc="Human label, e.g. BCR69")
    group_name = Column(Text, nullable=True,
                        doc="Optional group label within the batch code")
    default_meet_url = Column(Text, nullable=True,
                              doc="Meeting link used when a report does not give one")
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
                        onupdate=lambda: datetime.now(timezone.utc))

    students = relationship("Student", back_populates="batch", order_by="Student.position",
                            cascade="all, delete-orphan")
    people = relationship("Person", back_populates="batch", order_by="Person.position",
                          cascade="all, delete-orphan")

    @property
    def trainers(self):
        return [p for p in self.people if p.role == "trainer"]

    @property
    def coordinators(self):
        return [p for p in self.people if p.role == "coordinator"]

    @property
    def label(self):
        """Batch code with the group name appended when there is one."""
        if self.group_name:
            return f"{self.code} - {self.group_name}"
        return self.code

    def find_student(self, student_id: str):
        for student in self.students:
            if student.id == student_id:
                return student
        return None

    def __repr__(self):
        return f"<Batch(id={self.id}, code='{self.code}', students={len(self.students)})>"
