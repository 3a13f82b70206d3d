"""
Person model - trainers and coordinators attached to a batch.
"""

import uuid
from sqlalchemy import Column, Text, Integer, ForeignKey, String
from sqlalchemy.orm import relationship
from batchdesk.database import Base

PERSON_ROLES = ("trainer", "coordinator")


class Person(Base):
    """SQLAlchemy model for the batch_people table."""
    __tablename__ = "batch_people"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    batch_id = Column(String(36), ForeignKey("batches.id", ondelete="CASCADE"), nullable=False)
    role = Column(String(16), nullable=False,
                  doc="trainer | coordinator")
    name = Column(Text, nullable=False)
    email = Column(Text, nullable=True)
    phone = Column(Text, nullable=True)
    position = Column(Integer, nullable=False, default=0)

    batch = relationship("Batch", back_populates="people")

    def __repr__(self):
        return f"<Person(role='{self.role}', name='{self.name}')>"
