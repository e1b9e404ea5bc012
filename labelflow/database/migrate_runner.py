"""Database migration runner for deployments.

Runs `alembic upgrade head`. When the tables already exist but Alembic has no
history (schema created by `create_all`), the runner verifies the schema and
stamps head instead of failing.

Run with `python -m labelflow.database.migrate_runner`.
"""

import logging
import os
import sys
from typing import List, Tuple

from alembic import command
from alembic.config import Config
from sqlalchemy import inspect

from labelflow.database.database import DATABASE_URL, _is_sqlite_url, build_engine

logger = logging.getLogger(__name__)


def _alembic_cfg() -> Config:
    cfg = Config(os.getenv("ALEMBIC_INI", "alembic.ini"))
    cfg.set_main_option("sqlalchemy.url", DATABASE_URL)
    return cfg


def required_schema() -> List[Tuple[str, str]]:
    """(table, column) pairs the runtime reads; column "" checks the table only."""
    return [
        ("entities", ""),
        ("cases", ""),
        ("tasks", ""),
        ("events", ""),
        ("documents", ""),
        ("cases", "previous_case_id"),
        ("cases", "corrective_plan_requirement"),
        ("cases", "label_expiration_date"),
        ("cases", "audit_round"),
        ("tasks", "metadata"),
        ("events", "metadata"),
        ("events", "audit_round"),
        ("documents", "storage_key"),
        ("documents", "audit_round"),
    ]


def missing_requirements(engine) -> List[str]:
    inspector = inspect(engine)
    tables = set(inspector.get_table_names())
    missing: List[str] = []
    for table, column in required_schema():
        if table not in tables:
            if not column:
                missing.append(f"missing table: {table}")
            continue
        if column and column not in {c["name"] for c in inspector.get_columns(table)}:
            missing.append(f"missing column: {table}.{column}")
    return missing


def main() -> int:
    cfg = _alembic_cfg()
    if _is_sqlite_url(DATABASE_URL):
        command.upgrade(cfg, "head")
        return 0

    try:
        command.upgrade(cfg, "head")
        return 0
    except Exception as e:
        msg = str(e).lower()
        if "already exists" not in msg and "duplicate" not in msg:
            raise

        missing = missing_requirements(build_engine(DATABASE_URL))
        if missing:
            raise RuntimeError(
                "Alembic upgrade failed and schema is not at expected baseline; refusing to stamp head. "
                + "; ".join(missing)
            ) from e

        logger.warning("Schema already present without Alembic history; stamping head")
        command.stamp(cfg, "head")
        return 0


if __name__ == "__main__":
    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper())
    sys.exit(main())
