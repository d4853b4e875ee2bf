"""
Health check blueprint.

Endpoints:
    GET /api/v1/health/ready  — process is up
    GET /api/v1/health/live   — database round-trip + holiday table coverage
"""

import logging
import time

from flask import Blueprint, jsonify

from tracker.models import db
from tracker.services import sprint_calendar

logger = logging.getLogger(__name__)

health_bp = Blueprint("health_bp", __name__, url_prefix="/api/v1/health")


@health_bp.route("/ready", methods=["GET"])
def ready():
    return jsonify({"status": "ok"}), 200


@health_bp.route("/live", methods=["GET"])
def live():
    """503 when the database is unreachable.

    A holiday table that does not cover the current year is reported as a
    warning only: business-day math still runs, it just treats every
    weekday as a working day.
    """
    checks = {}

    try:
        t0 = time.perf_counter()
        db.session.execute(db.text("SELECT 1"))
        checks["database"] = {
            "status": "ok",
            "latency_ms": round((time.perf_counter() - t0) * 1000, 1),
        }
    except Exception as exc:
        logger.error("Health check: database unreachable: %s", exc)
        checks["database"] = {"status": "error", "detail": str(exc)}

    year = sprint_calendar.utc_today().year
    holidays = sprint_calendar.holidays_for_year(year)
    checks["calendar"] = {
        "status": "ok" if holidays else "warning",
        "year": year,
        "holidays": len(holidays),
    }
    if not holidays:
        logger.warning("No holiday table for %s; weekdays all count as business days", year)

    healthy = checks["database"]["status"] == "ok"
    return jsonify({
        "status": "healthy" if healthy else "degraded",
        "checks": checks,
    }), 200 if healthy else 503
