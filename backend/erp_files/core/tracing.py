import json
import logging
import os
import time
import uuid
from typing import Optional

from fastapi import FastAPI, Request
from prometheus_client import Counter, Histogram
from starlette.middleware.base import BaseHTTPMiddleware

from erp_files.core.config import get_settings


_REQ_COUNT = Counter(
    "erp_http_requests_total",
    "Total HTTP requests",
    ["method", "route", "status"],
)
_REQ_LATENCY = Histogram(
    "erp_http_request_duration_seconds",
    "HTTP request duration (seconds)",
    ["method", "route"],
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10),
)

_UNTRACKED_ROUTES = ("/metrics", "/health", "/healthz", "/readyz")


def _release() -> Optional[str]:
    return os.getenv("GIT_SHA") or None


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Adds a request ID and logs one JSON line per request, at a level chosen
    by the status family (5xx error, 4xx warning, otherwise info).
    """

    async def dispatch(self, request: Request, call_next):
        # Propagate a request id if provided by upstream (proxy / frontend), else generate.
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        start = time.time()
        logger = logging.getLogger("erp.http")

        def _payload(event: str, status_code: int) -> dict:
            route_obj = request.scope.get("route")
            return {
                "event": event,
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "route": getattr(route_obj, "path", None) or request.url.path,
                "status_code": status_code,
                "duration_ms": int((time.time() - start) * 1000),
                "client_ip": request.client.host if request.client else None,
                "release": _release(),
            }

        try:
            response = await call_next(request)
        except Exception:
            logger.exception(json.dumps(_payload("http_exception", 500), ensure_ascii=False))
            raise

        payload = _payload("http_request", response.status_code)
        if response.status_code >= 500:
            logger.error(json.dumps(payload, ensure_ascii=False))
        elif response.status_code >= 400:
            logger.warning(json.dumps(payload, ensure_ascii=False))
        else:
            logger.info(json.dumps(payload, ensure_ascii=False))

        route = payload["route"]
        if route not in _UNTRACKED_ROUTES:
            _REQ_COUNT.labels(request.method, route, str(response.status_code)).inc()
            _REQ_LATENCY.labels(request.method, route).observe(time.time() - start)

        response.headers["X-Request-ID"] = request_id
        return response


def configure_logging() -> None:
    """Configure a sane default logging setup for the backend."""
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s [%(name)s] %(message)s")
    # Ensure our loggers are visible even if uvicorn already configured logging
    for name in (
        "erp.http",
        "erp.tracing",
        "erp.clients",
        "erp.files",
        "erp.storage",
        "erp.migrations",
        "erp.ui",
    ):
        logging.getLogger(name).setLevel(logging.INFO)


def init_tracing(app: FastAPI) -> None:
    """
    Attach request logging and, if configured, error tracing (Sentry).
    """
    settings = get_settings()
    configure_logging()

    app.add_middleware(RequestLoggingMiddleware)

    dsn: Optional[str] = settings.sentry_dsn
    if not dsn:
        return

    try:
        import sentry_sdk  # type: ignore[import-not-found]
        from sentry_sdk.integrations.fastapi import FastApiIntegration  # type: ignore[import-not-found]
    except ImportError:
        logging.getLogger("erp.tracing").warning(
            "sentry-sdk not installed; skipping Sentry tracing setup"
        )
        return

    sentry_sdk.init(
        dsn=dsn,
        environment=settings.sentry_env or settings.environment,
        release=_release(),
        integrations=[FastApiIntegration()],
        # Can be overridden in env; keep low by default
        traces_sample_rate=float(os.getenv("SENTRY_TRACES_SAMPLE_RATE", "0.05")),
    )
    logging.getLogger("erp.tracing").info("Sentry tracing initialized")
