from fastapi import APIRouter, Request, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from erp_files.core.config import get_settings
from erp_files.core.errors import Forbidden, NotFound


router = APIRouter(tags=["metrics"])


@router.get("/metrics")
def metrics(request: Request) -> Response:
    """
    Prometheus metrics endpoint.

    In production it is hidden unless METRICS_TOKEN is set, and then requires
    `Authorization: Bearer <token>`.
    """
    settings = get_settings()
    token = settings.metrics_token

    if settings.environment == "production":
        if not token:
            raise NotFound("Not found")
        auth = request.headers.get("authorization") or ""
        if auth != f"Bearer {token}":
            raise Forbidden("Forbidden")

    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
