import os
import tempfile

# Point the app at a throwaway SQLite file before anything imports it
_DB_DIR = tempfile.mkdtemp(prefix="batchdesk-tests-")
os.environ["DATABASE_URL"] = "sqlite:///" + os.path.join(_DB_DIR, "test.db")

import pytest
from fastapi.testclient import TestClient

from batchdesk.main import app
from batchdesk.database import SessionLocal, create_tables, drop_tables
from batchdesk.models import Batch, Student, Person


@pytest.fixture(autouse=True)
def fresh_tables():
    drop_tables()
    create_tables()
    yield


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_batch(db):
    """Create a batch from (id, name, points) tuples and return it."""
    def _make(students, code="BCR69", group_name=None, trainers=(), coordinators=()):
        batch = Batch(code=code, group_name=group_name)
        batch.students = [
            Student(id=sid, name=name, points=points, position=i)
            for i, (sid, name, points) in enumerate(students)
        ]
        people = [("trainer", n) for n in trainers] + [("coordinator", n) for n in coordinators]
        batch.people = [Person(role=role, name=name, position=i) for i, (role, name) in enumerate(people)]
        db.add(batch)
        db.commit()
        db.refresh(batch)
        return batch
    return _make
