import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from erp_files.core.config import get_settings
from erp_files.core.errors import install_exception_handlers
from erp_files.core.tracing import init_tracing
from erp_files.api.routes import clients as clients_routes
from erp_files.api.routes import files as files_routes
from erp_files.api.routes import health as health_routes
from erp_files.api.routes import metrics as metrics_routes
from erp_files.db.base import Base
from erp_files.db.session import engine
from erp_files.db.migrations import run_migrations_on_startup
import erp_files.models  # noqa: F401  (registers tables on Base.metadata)


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title=settings.app_name)

    @app.on_event("startup")
    def _startup_migrations() -> None:
        run_migrations_on_startup()

    # Observability: configure logging + optional error tracing
    init_tracing(app)

    # CORS (the client edit view calls the API from the browser)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Every error leaves as {success: false, message}
    install_exception_handlers(app)

    # Routers
    app.include_router(health_routes.router)
    app.include_router(metrics_routes.router)
    app.include_router(clients_routes.router, prefix=settings.api_prefix)
    app.include_router(files_routes.router, prefix=settings.api_prefix)

    # Auto-create tables only in non-production for local/dev convenience.
    # In production all schema changes must go through Alembic migrations.
    if settings.environment != "production":
        try:
            Base.metadata.create_all(bind=engine)
        except Exception:
            logging.getLogger("erp.migrations").exception("Could not create tables")

    return app


app = create_app()
