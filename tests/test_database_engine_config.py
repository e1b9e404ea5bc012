import pytest
from sqlalchemy import create_engine, text


def test_get_engine_kwargs_sqlite_has_check_same_thread():
    from labelflow.database import database as db

    kwargs = db.get_engine_kwargs("sqlite:///./labelflow.db")
    assert kwargs["connect_args"]["check_same_thread"] is False
    # SQLite should not require pool sizing knobs.
    assert "pool_size" not in kwargs
    assert "max_overflow" not in kwargs
    assert kwargs["pool_pre_ping"] is True


def test_get_engine_kwargs_postgres_has_conservative_pooling(monkeypatch):
    from labelflow.database import database as db

    monkeypatch.setenv("DB_POOL_SIZE", "8")
    monkeypatch.setenv("DB_MAX_OVERFLOW", "2")
    monkeypatch.setenv("DB_POOL_TIMEOUT_SEC", "15")

    kwargs = db.get_engine_kwargs("postgresql+psycopg://u:p@localhost:5432/db")
    assert "connect_args" not in kwargs
    assert kwargs["pool_pre_ping"] is True
    assert kwargs["pool_size"] == 8
    assert kwargs["max_overflow"] == 2
    assert kwargs["pool_timeout"] == 15


def test_sqlite_url_detection():
    from labelflow.database import database as db

    assert db._is_sqlite_url("sqlite:///./labelflow.db") is True
    assert db._is_sqlite_url("postgresql+psycopg://u:p@localhost/db") is False


def test_missing_requirements_reports_absent_tables_and_columns(tmp_path):
    from labelflow.database.migrate_runner import missing_requirements

    engine = create_engine(f"sqlite:///{tmp_path / 'partial.db'}")
    with engine.begin() as conn:
        conn.execute(text("CREATE TABLE entities (id VARCHAR PRIMARY KEY)"))
        conn.execute(text("CREATE TABLE cases (id VARCHAR PRIMARY KEY, previous_case_id VARCHAR)"))

    missing = missing_requirements(engine)

    assert "missing table: tasks" in missing
    assert "missing column: cases.label_expiration_date" in missing
    assert "missing column: cases.audit_round" in missing
    assert "missing column: cases.previous_case_id" not in missing
    # Columns of absent tables are covered by the table entry.
    assert "missing column: tasks.metadata" not in missing


def test_full_schema_meets_requirements(tmp_path):
    from labelflow.database.database import Base
    from labelflow.database import models  # noqa: F401
    from labelflow.database.migrate_runner import missing_requirements

    engine = create_engine(f"sqlite:///{tmp_path / 'full.db'}")
    Base.metadata.create_all(bind=engine)

    assert missing_requirements(engine) == []


def test_sqlite_engine_enforces_foreign_keys(tmp_path):
    from labelflow.database import database as db

    engine = db.build_engine(f"sqlite:///{tmp_path / 'fk.db'}")
    with engine.connect() as conn:
        assert conn.execute(text("PRAGMA foreign_keys")).scalar() == 1
        assert conn.execute(text("PRAGMA journal_mode")).scalar() == "wal"


def test_in_memory_sqlite_skips_wal():
    from labelflow.database import database as db

    engine = db.build_engine("sqlite:///:memory:")
    with engine.connect() as conn:
        assert conn.execute(text("PRAGMA foreign_keys")).scalar() == 1
        assert conn.execute(text("PRAGMA journal_mode")).scalar() == "memory"


def test_session_scope_rolls_back_on_error(monkeypatch):
    from labelflow.database import database as db

    class FakeSession:
        def __init__(self):
            self.rolled_back = False
            self.closed = False

        def rollback(self):
            self.rolled_back = True

        def close(self):
            self.closed = True

    session = FakeSession()
    monkeypatch.setattr(db, "SessionLocal", lambda: session)

    with pytest.raises(RuntimeError):
        with db.session_scope():
            raise RuntimeError("job failed")

    assert session.rolled_back is True
    assert session.closed is True
