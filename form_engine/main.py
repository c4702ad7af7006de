from __future__ import annotations

import logging
from typing import Callable

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from sqlalchemy import text as sql_text
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from form_engine.config import AppConfig, load_config
from form_engine.db.base import get_engine
from form_engine.db.migrations_runner import apply_migrations
from form_engine.http.problem import (
    handle_form_engine_error,
    handle_http_exception,
    handle_request_validation_error,
    handle_unexpected_error,
)
from form_engine.logging_setup import configure_logging
from form_engine.logic.errors import FormEngineError
from form_engine.routes import api_router

logger = logging.getLogger(__name__)


def _health_check() -> Callable[[], dict]:
    def check() -> dict:
        try:
            with get_engine().connect() as conn:
                conn.execute(sql_text("SELECT 1")).fetchone()
            return {"status": "ok", "db": True}
        except SQLAlchemyError as e:
            logger.error("Health DB check failed", exc_info=True)
            return {"status": "degraded", "db": False, "reason": str(e)}

    return check


def create_app(config: AppConfig | None = None) -> FastAPI:
    """Build the FastAPI application.

    Migrations run at startup only when `database.auto_apply_migrations` is
    enabled; tests and deployments usually apply them explicitly.
    """
    configure_logging()
    cfg = config or load_config()

    app = FastAPI(title="Form Engine")
    app.state.config = cfg

    app.add_exception_handler(FormEngineError, handle_form_engine_error)
    app.add_exception_handler(StarletteHTTPException, handle_http_exception)
    app.add_exception_handler(RequestValidationError, handle_request_validation_error)
    app.add_exception_handler(Exception, handle_unexpected_error)

    @app.on_event("startup")
    def _apply_migrations() -> None:  # pragma: no cover - exercised via deployment
        if not cfg.database.auto_apply_migrations:
            logger.info("AUTO_APPLY_MIGRATIONS disabled; skipping migrations at startup")
            return
        try:
            apply_migrations(get_engine(cfg.database.dsn), migrations_dir=cfg.database.migrations_dir)
        except SQLAlchemyError:
            logger.error("Failed to apply migrations at startup", exc_info=True)
            raise

    app.include_router(api_router, prefix="/api/v1")

    health_check = _health_check()

    @app.get("/health")
    def health():  # pragma: no cover - trivial
        return health_check()

    return app


# Intentionally do not instantiate the app at import time to prevent side effects.
