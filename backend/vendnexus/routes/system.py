# backend/vendnexus/routes/system.py
"""
System health endpoint.

The database check covers the catalog and ledger tables. The oracle check
only reports whether an API key is present; it never calls out.
"""

import os
import time

from flask import Blueprint, current_app

from ..extensions import db
from ..models import Machine, Product, SaleRecord

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    start_time = time.time()
    try:
        details = {
            "machines": db.session.query(Machine).count(),
            "products": db.session.query(Product).count(),
            "sales": db.session.query(SaleRecord).count(),
        }
        elapsed_ms = (time.time() - start_time) * 1000
        return {"status": "healthy", "latency_ms": round(elapsed_ms, 2), "details": details}
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {"status": "unhealthy", "latency_ms": round(elapsed_ms, 2), "error": "Database error"}


def check_oracle_health() -> dict:
    key_env = current_app.config["ORACLE_API_KEY_ENV"]
    if os.environ.get(key_env, "").strip():
        return {"status": "healthy", "details": {"api_key_env": key_env}}
    return {"status": "degraded", "warning": f"{key_env} is not set; AI features are disabled"}


@system_bp.get("/health")
def health():
    checks = {
        "database": check_database_health(),
        "oracle": check_oracle_health(),
    }
    status = "healthy"
    if checks["database"]["status"] != "healthy":
        status = "unhealthy"
    elif checks["oracle"]["status"] != "healthy":
        status = "degraded"

    return {"status": status, "checks": checks}, 200 if status != "unhealthy" else 503
