import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path

from fastapi import APIRouter, Response
from sqlalchemy import text

from erp_files.core.config import get_settings
from erp_files.db.session import engine

router = APIRouter(tags=["health"])

SERVICE = "erp-files-backend"


def _release() -> str | None:
    return os.getenv("GIT_SHA") or None


def _status() -> dict:
    settings = get_settings()
    return {
        "status": "ok",
        "service": SERVICE,
        "environment": settings.environment,
        "release": _release(),
        "time": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/")
def root() -> dict:
    # Load balancers may probe "/"; keep it cheap and 200.
    return _status()


@router.get("/health")
@router.get("/healthz")
def health() -> dict:
    return _status()


@router.get("/readyz")
def readyz(response: Response) -> dict:
    """
    Readiness check: database reachable and upload directory writable.
    Returns 503 when not ready.
    """
    settings = get_settings()
    checks: dict[str, object] = {}
    ok = True

    try:
        with engine.connect() as conn:
            conn.execute(text("select 1"))
        checks["db"] = "ok"
    except Exception as e:
        ok = False
        checks["db"] = "error"
        checks["db_error"] = type(e).__name__

    try:
        upload_dir = Path(settings.upload_dir)
        upload_dir.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(dir=upload_dir, prefix=".readyz-"):
            pass
        checks["upload_dir"] = "ok"
    except OSError as e:
        ok = False
        checks["upload_dir"] = "error"
        checks["upload_dir_error"] = type(e).__name__

    if not ok:
        response.status_code = 503
    body = _status()
    body["status"] = "ok" if ok else "not_ready"
    body["checks"] = checks
    return body
