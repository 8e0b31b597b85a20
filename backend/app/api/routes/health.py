from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import func, select, text

from app.core.config import get_settings
from app.db.bootstrap import schema_gaps
from app.db.session import engine
from app.models.substitution_offer import SubstitutionOffer, SubstitutionOfferStatus

router = APIRouter()


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _offer_backlog(connection) -> dict[str, int]:
    open_offers = select(func.count()).select_from(SubstitutionOffer).where(
        SubstitutionOffer.status == SubstitutionOfferStatus.requested
    )
    overdue = open_offers.where(
        SubstitutionOffer.expires_at.is_not(None),
        SubstitutionOffer.expires_at <= datetime.now(timezone.utc),
    )
    return {
        "open_offers": connection.execute(open_offers).scalar_one(),
        "overdue_offers": connection.execute(overdue).scalar_one(),
    }


@router.get("/health")
def health() -> dict:
    return {"status": "ok"}


@router.get("/health/live")
def health_live() -> dict:
    return {"status": "ok", "timestamp": _now_iso()}


@router.get("/health/ready")
def health_ready() -> JSONResponse:
    """Readiness: database reachable, schema complete, offer backlog readable."""
    settings = get_settings()
    database: dict = {"ok": True, "schema_ok": False, "missing_tables": [], "missing_columns": {}, "error": None}
    backlog: dict[str, int] = {}

    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
            missing_tables, missing_columns = schema_gaps(connection)
            database.update(
                schema_ok=not missing_tables and not missing_columns,
                missing_tables=missing_tables,
                missing_columns=missing_columns,
            )
            if database["schema_ok"]:
                backlog = _offer_backlog(connection)
    except Exception as exc:  # pragma: no cover - environment dependent
        database.update(ok=False, error=str(exc))

    ready = database["ok"] and database["schema_ok"]
    payload = {
        "status": "ok" if ready else "degraded",
        "timestamp": _now_iso(),
        "database": database,
        "substitutions": {
            "auto_dispatch_on_approval": settings.auto_dispatch_offers_on_approval,
            "offer_expiry_minutes": settings.offer_expiry_minutes,
            **backlog,
        },
    }
    return JSONResponse(status_code=200 if ready else 503, content=payload)
