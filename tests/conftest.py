"""Pytest fixtures and configuration for labelflow tests."""

import pytest
from datetime import datetime, timedelta
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient

from labelflow.database.database import Base
from labelflow.database import models  # noqa: F401
from labelflow.models.case import CaseStatus, CaseType
from labelflow.models.case_factory import create_case_base, create_entity_base
from labelflow.services.workflow import build_workflow


# Use in-memory SQLite database for tests
TEST_DATABASE_URL = "sqlite:///:memory:"

EVALUATOR_ID = "eval-org-1"


class FixedClock:
    """Controllable time source shared by every workflow service in a test."""

    def __init__(self, now: datetime):
        self.current = now

    def __call__(self) -> datetime:
        return self.current

    def advance(self, days: int = 0, **kwargs) -> datetime:
        self.current = self.current + timedelta(days=days, **kwargs)
        return self.current


class RecordingNotifier:
    """Notification dispatcher that keeps what it was asked to send."""

    def __init__(self):
        self.sent = []

    def notify_task_created(self, task, recipients):
        self.sent.append((task, recipients))


class FailingNotifier:
    def notify_task_created(self, task, recipients):
        raise ConnectionError("notification backend unavailable")


@pytest.fixture(scope="function")
def db_session():
    """Create a database session for testing.

    Uses an in-memory SQLite database that is created fresh for each test.
    """
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False
    )
    Base.metadata.create_all(bind=engine)

    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def clock():
    """Monday 2 March 2026, 09:00 UTC."""
    return FixedClock(datetime(2026, 3, 2, 9, 0, 0))


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def failing_notifier():
    return FailingNotifier()


@pytest.fixture
def workflow(db_session: Session, notifier, clock):
    """Workflow services bound to the test session, fixed clock and recording notifier."""
    return build_workflow(db_session, notifier=notifier, clock=clock)


@pytest.fixture
def entity(workflow):
    """Entity that already chose its evaluation organization."""
    return workflow.ctx.entities.create(create_entity_base("Acme Hospital", evaluator_id=EVALUATOR_ID))


@pytest.fixture
def entity_without_evaluator(workflow):
    return workflow.ctx.entities.create(create_entity_base("Bare Clinic"))


@pytest.fixture
def make_case(workflow, entity):
    """Factory placing a case directly in a given status (no workflow side effects).

    Extra keyword arguments are written with `update_fields`.
    """
    def _make(status=CaseStatus.PLANNING, case_type=CaseType.INITIAL, entity_id=None, **fields):
        case = workflow.ctx.cases.create(create_case_base(
            entity_id=entity_id or entity.id,
            case_type=case_type,
            status=status,
            evaluator_id=EVALUATOR_ID,
        ))
        if fields:
            case = workflow.ctx.cases.update_fields(case.id, "test-setup", **fields)
        return case
    return _make


@pytest.fixture
def sample_audit_dates_base(clock):
    """Audit a month ahead of the fixed clock, as request payload values."""
    today = clock().date()
    return {
        "start_date": (today + timedelta(days=30)).isoformat(),
        "end_date": (today + timedelta(days=32)).isoformat(),
    }


@pytest.fixture
def test_client(db_session: Session, notifier, clock):
    """Create a FastAPI test client bound to the test session and clock."""
    from labelflow.api.app import app, get_workflow

    def override_get_workflow():
        return build_workflow(db_session, notifier=notifier, clock=clock)

    app.dependency_overrides[get_workflow] = override_get_workflow

    with TestClient(app) as client:
        yield client

    # Clean up dependency overrides
    app.dependency_overrides.clear()
