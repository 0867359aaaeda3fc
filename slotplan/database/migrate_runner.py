"""Database migration runner for deploys.

Runs `alembic upgrade head`. When the upgrade fails because the tables already
exist (schema created outside Alembic), the expected schema is verified and
the database is stamped at head instead.
"""

from __future__ import annotations

import os
import sys
from typing import List, Tuple

from alembic import command
from alembic.config import Config
from sqlalchemy import inspect

from slotplan.database.database import DATABASE_URL, _is_sqlite_url, build_engine


def _alembic_cfg() -> Config:
    cfg = Config(os.getenv("ALEMBIC_INI", "alembic.ini"))
    cfg.set_main_option("sqlalchemy.url", DATABASE_URL)
    return cfg


def required_schema_checks() -> List[Tuple[str, str]]:
    """(table, column) pairs the scheduler reads at runtime; column None means table only."""
    return [
        ("users", "timezone"),
        ("users", "first_day_of_week"),
        ("areas", None),
        ("projects", "area_id"),
        ("tasks", "due_time_minutes"),
        ("tasks", "estimated_duration_minutes"),
        ("tasks", "defer_until"),
        ("timetable_slots", "area_id"),
        ("timetable_slot_projects", None),
        ("schedule_days", "dirty"),
        ("schedule_days", "cutoff_minute"),
        ("schedule_entries", "pinned"),
        ("schedule_entries", "locked"),
    ]


def missing_requirements(inspector) -> List[str]:
    missing: List[str] = []
    tables = set(inspector.get_table_names())
    for table, column in required_schema_checks():
        if table not in tables:
            if f"missing table: {table}" not in missing:
                missing.append(f"missing table: {table}")
            continue
        if column is None:
            continue
        columns = {info["name"] for info in inspector.get_columns(table)}
        if column not in columns:
            missing.append(f"missing column: {table}.{column}")
    return missing


def main() -> int:
    if _is_sqlite_url(DATABASE_URL):
        command.upgrade(_alembic_cfg(), "head")
        return 0

    try:
        command.upgrade(_alembic_cfg(), "head")
        return 0
    except Exception as e:
        msg = str(e).lower()
        if "already exists" not in msg and "duplicate" not in msg:
            raise

        engine = build_engine(DATABASE_URL)
        missing = missing_requirements(inspect(engine))
        if missing:
            raise RuntimeError(
                "Alembic upgrade failed and schema is not at expected baseline; refusing to stamp head. "
                + "; ".join(missing)
            ) from e

        command.stamp(_alembic_cfg(), "head")
        return 0


if __name__ == "__main__":
    sys.exit(main())
