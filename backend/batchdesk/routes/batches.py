"""
Batch API routes - roster management.

Provides endpoints for:
- Creating a batch with its students, trainers and coordinators
- Listing batches (sorted by code) and viewing one
- Replacing a batch roster while keeping surviving students' points
"""

import uuid
from datetime import datetime, timezone
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from batchdesk.database import get_db
from batchdesk.models.batch import Batch
from batchdesk.models.student import Student
from batchdesk.models.person import Person
from batchdesk.services import ledger
from batchdesk.logging_config import get_logger, log_with_context

router = APIRouter()
logger = get_logger("http")
db_logger = get_logger("db")


# ── Pydantic schemas ─────────────────────────────────────────

class StudentIn(BaseModel):
    id: Optional[str] = Field(None, description="Roster id; generated when omitted")
    name: str = Field(..., min_length=1)
    email: Optional[str] = None
    phone: Optional[str] = None
    points: Optional[int] = Field(None, description="Current balance; baseline when omitted")


class PersonIn(BaseModel):
    name: str = Field(..., min_length=1)
    email: Optional[str] = None
    phone: Optional[str] = None


class BatchCreate(BaseModel):
    code: str = Field(..., min_length=1, description="Batch label, e.g. BCR69")
    group_name: Optional[str] = None
    default_meet_url: Optional[str] = None
    students: List[StudentIn] = Field(default_factory=list)
    trainers: List[PersonIn] = Field(default_factory=list)
    coordinators: List[PersonIn] = Field(default_factory=list)


class RosterUpdate(BaseModel):
    students: List[StudentIn]


def serialize_student(student: Student) -> dict:
    return {
        "id": student.id,
        "name": student.name,
        "email": student.email,
        "phone": student.phone,
        "points": ledger.effective_points(student)
    }


def serialize_person(person: Person) -> dict:
    return {"name": person.name, "email": person.email, "phone": person.phone}


def serialize_batch(batch: Batch) -> dict:
    return {
        "id": batch.id,
        "code": batch.code,
        "group_name": batch.group_name,
        "default_meet_url": batch.default_meet_url,
        "students": [serialize_student(s) for s in batch.students],
        "trainers": [serialize_person(p) for p in batch.trainers],
        "coordinators": [serialize_person(p) for p in batch.coordinators],
        "created_at": batch.created_at.isoformat() if batch.created_at else None,
        "updated_at": batch.updated_at.isoformat() if batch.updated_at else None
    }


def _build_students(entries: List[StudentIn], existing: dict = None) -> List[Student]:
    """Build roster rows in input order; duplicate ids are rejected."""
    existing = existing or {}
    seen = set()
    students = []
    for position, entry in enumerate(entries):
        student_id = (entry.id or "").strip() or str(uuid.uuid4())
        if student_id in seen:
            raise HTTPException(status_code=400,
                                detail="Duplicate student id in roster: {}".format(student_id))
        seen.add(student_id)
        points = entry.points
        if points is None and student_id in existing:
            points = existing[student_id].points
        students.append(Student(
            id=student_id,
            name=entry.name.strip(),
            email=entry.email,
            phone=entry.phone,
            points=points,
            position=position
        ))
    return students


def _get_batch_or_404(db: Session, batch_id: str) -> Batch:
    batch = db.query(Batch).filter(Batch.id == batch_id).first()
    if not batch:
        raise HTTPException(status_code=404, detail="Batch not found")
    return batch


@router.post("/api/batches", status_code=201)
def create_batch(request: BatchCreate, db: Session = Depends(get_db)):
    """Create a batch with its roster and staff."""
    batch = Batch(
        id=str(uuid.uuid4()),
        code=request.code.strip(),
        group_name=request.group_name,
        default_meet_url=request.default_meet_url
    )
    batch.students = _build_students(request.students)
    people = [("trainer", p) for p in request.trainers] + [("coordinator", p) for p in request.coordinators]
    batch.people = [
        Person(role=role, name=p.name.strip(), email=p.email, phone=p.phone, position=i)
        for i, (role, p) in enumerate(people)
    ]
    db.add(batch)
    db.commit()
    db.refresh(batch)

    log_with_context(db_logger, "INFO", "Created batch {}".format(batch.label),
                     context={"batch_id": batch.id},
                     extra_data={"students": len(batch.students), "staff": len(batch.people)})
    return serialize_batch(batch)


@router.get("/api/batches")
def list_batches(db: Session = Depends(get_db)):
    batches = db.query(Batch).order_by(Batch.code.asc()).all()
    return {"data": [serialize_batch(b) for b in batches]}


@router.get("/api/batches/{batch_id}")
def get_batch(batch_id: str, db: Session = Depends(get_db)):
    return serialize_batch(_get_batch_or_404(db, batch_id))


@router.put("/api/batches/{batch_id}/students")
def replace_roster(batch_id: str, request: RosterUpdate, db: Session = Depends(get_db)):
    """
    Replace the roster of a batch.

    Students whose id survives keep their cached points unless the
    request sets new ones. The point ledger is not touched.
    """
    batch = _get_batch_or_404(db, batch_id)
    existing = {s.id: s for s in batch.students}
    new_students = _build_students(request.students, existing)

    # Flush the removal first so surviving ids can be re-inserted
    batch.students = []
    db.flush()
    batch.students = new_students
    batch.updated_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(batch)

    log_with_context(db_logger, "INFO", "Roster replaced for {}".format(batch.label),
                     context={"batch_id": batch.id},
                     extra_data={"before": len(existing), "after": len(batch.students)})
    return serialize_batch(batch)
