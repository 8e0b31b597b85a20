from __future__ import annotations

import logging

from sqlalchemy import inspect

import app.models  # noqa: F401  registers every table on Base.metadata
from app.core.config import get_settings
from app.db.base import Base
from app.db.session import engine

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS: dict[str, set[str]] = {
    "teachers": {"id", "email", "role", "subject", "available", "status", "attendance_percentage", "leave_balances"},
    "timetable_periods": {"id", "teacher_id", "day", "period_number", "subject", "class_name"},
    "attendance_records": {"id", "teacher_id", "attendance_date", "status", "leave_request_id"},
    "leave_requests": {"id", "teacher_id", "leave_date", "end_date", "status", "final_substitute_id"},
    "substitution_vacancies": {"id", "leave_request_id", "vacancy_date", "period_number", "winner_offer_id"},
    "substitution_offers": {"id", "vacancy_id", "substitute_teacher_id", "status", "expires_at", "rejection_reason"},
    "notifications": {"id", "teacher_id", "event_type", "payload", "is_read"},
    "activity_logs": {"id", "actor_id", "action"},
}


def schema_gaps(connection) -> tuple[list[str], dict[str, list[str]]]:
    """Return the required tables and columns that the connected database lacks."""
    inspector = inspect(connection)
    table_names = set(inspector.get_table_names())
    missing_tables = sorted(name for name in REQUIRED_COLUMNS if name not in table_names)
    missing_columns: dict[str, list[str]] = {}
    for table_name, required in REQUIRED_COLUMNS.items():
        if table_name in missing_tables:
            continue
        existing = {item["name"] for item in inspector.get_columns(table_name)}
        missing = sorted(required - existing)
        if missing:
            missing_columns[table_name] = missing
    return missing_tables, missing_columns


def _assert_required_columns() -> None:
    with engine.begin() as connection:
        missing_tables, missing_columns = schema_gaps(connection)
    if missing_tables:
        raise RuntimeError(f"Missing required tables: {', '.join(missing_tables)}")
    if missing_columns:
        flattened = [f"{table}.{column}" for table, columns in missing_columns.items() for column in columns]
        raise RuntimeError(f"Missing required columns: {', '.join(flattened)}")


def ensure_runtime_schema_compatibility() -> None:
    try:
        if get_settings().auto_create_schema:
            Base.metadata.create_all(bind=engine)
        _assert_required_columns()
    except Exception as exc:  # pragma: no cover - runtime environment dependent
        logger.exception("Runtime schema compatibility bootstrap failed")
        raise RuntimeError("Runtime schema compatibility bootstrap failed") from exc
