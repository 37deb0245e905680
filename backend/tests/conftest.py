from __future__ import annotations

import datetime as dt
import os
import tempfile
from pathlib import Path
from typing import Callable, Generator

_RUNTIME_DIR = tempfile.mkdtemp(prefix="rapportini-tests-")
os.environ.setdefault("RP_SQLITE_PATH", str(Path(_RUNTIME_DIR) / "runtime.db"))
os.environ.setdefault("RP_EXPORT_DIR", str(Path(_RUNTIME_DIR) / "exports"))

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from rapportini import models
from rapportini.database import get_db
from rapportini.domain import InterventionRecord, Photo
from rapportini.main import app
from rapportini.state import DayLifecycleState


@pytest.fixture(scope="session")
def temp_db_path() -> Generator[Path, None, None]:
    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "test.db"
        yield path


@pytest.fixture(scope="session")
def engine(temp_db_path: Path):
    url = f"sqlite:///{temp_db_path}"
    engine = create_engine(url, connect_args={"check_same_thread": False}, future=True)
    models.Base.metadata.create_all(bind=engine)
    return engine


@pytest.fixture(scope="function")
def session(engine) -> Generator[Session, None, None]:
    connection = engine.connect()
    transaction = connection.begin()
    SessionTesting = sessionmaker(bind=connection, autoflush=False, autocommit=False, future=True)
    session = SessionTesting()
    try:
        yield session
    finally:
        session.close()
        transaction.rollback()
        connection.close()


@pytest.fixture(scope="function")
def client(session: Session) -> Generator[TestClient, None, None]:
    def override_get_db():
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.state.day_state = DayLifecycleState()
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture()
def sample_day() -> dt.date:
    return dt.date(2024, 1, 1)


@pytest.fixture()
def make_record(sample_day: dt.date) -> Callable[..., InterventionRecord]:
    counter = {"value": 0}

    def factory(**overrides) -> InterventionRecord:
        counter["value"] += 1
        values = {
            "id": f"rec-{counter['value']}",
            "technician_name": "Mario Rossi",
            "location": "Cantiere Nord",
            "description": "Sostituzione valvola",
            "day": sample_day,
            "work_type": "ordinary",
            "intervention_hours": 1.0,
            "travel_hours": 0.0,
            "photos": (),
            "created_at": dt.datetime(2024, 1, 1, 8, 0) + dt.timedelta(minutes=counter["value"]),
        }
        values.update(overrides)
        return InterventionRecord(**values)

    return factory


@pytest.fixture()
def jpeg_photo() -> Photo:
    return Photo(content=b"\xff\xd8\xff\xe0fake-jpeg", media_type="image/jpeg")
