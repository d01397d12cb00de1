from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import db, recurrence
from .auth import build_public_route_matchers, public
from .core import config
from .services.auth_middleware import AuthMiddleware
from .services.cron_service import CronService
from .services.logging_service import configure_logging

from .api.auth import router as auth_api
from .api.transactions import router as transactions_api
from .api.recurring import router as recurring_api, system_router as system_api
from .api.budgets import router as budgets_api
from .api.goals import router as goals_api
from .api.analytics import router as analytics_api
from .api.ai import router as ai_api

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    configure_logging(config.LOG_DIR, production=config.IS_PRODUCTION)

    app = FastAPI(title="Finance Tracker API", version="0.1.0")

    @app.get("/health")
    @public
    async def health():
        return {"status": "ok"}

    @app.get("/")
    @public
    async def root():
        return {"message": "Finance Tracker API"}

    routers = [
        auth_api,
        transactions_api,
        recurring_api,
        system_api,
        budgets_api,
        goals_api,
        analytics_api,
        ai_api,
    ]
    for router in routers:
        app.include_router(router)

    # Build public route matchers from routes decorated with @public
    app.add_middleware(AuthMiddleware, public_route_matchers=build_public_route_matchers(app, *routers))
    # Added last so it wraps auth and 401 responses still carry CORS headers
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})

    # --- lifecycle: init DB and start/stop the recurring job ---
    @app.on_event("startup")
    async def _on_startup() -> None:
        db.initialise_database()
        if not config.SCHEDULER_ENABLED:
            logger.info("Recurring scheduler disabled (RECURRING_SCHEDULER_ENABLED)")
            return
        try:
            cron = CronService(
                recurrence.process_all,
                hour=config.RECURRING_CRON_HOUR,
                minute=config.RECURRING_CRON_MINUTE,
            )
            cron.start()
            app.state.cron = cron
        except Exception:
            logger.exception("CronService failed to start")

    @app.on_event("shutdown")
    async def _on_shutdown() -> None:
        cron = getattr(app.state, "cron", None)
        if cron is not None:
            cron.stop()

    return app


app = create_app()
