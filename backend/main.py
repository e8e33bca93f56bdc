import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

import structlog
import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from core.config import Settings, settings as default_settings
from core.exceptions import StockServiceError
from core.logging import configure_logging
from db.database import Database
from routers.reports import router as reports_router
from routers.stock import router as stock_router

logger = structlog.get_logger(__name__)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": message})


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or default_settings
    configure_logging(settings.log_level, settings.log_json)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        database = Database(
            settings.database_url,
            echo=settings.database_echo,
            max_retries=settings.db_connect_max_retries,
            backoff_max=settings.db_connect_backoff_max,
        )
        logger.info("server_starting", environment=settings.app_env)
        await database.connect()
        app.state.database = database
        try:
            yield
        finally:
            logger.info("server_stopping")
            await database.dispose()

    app = FastAPI(
        title="Decore Stock API",
        description="Device stock, movements and daily shift reports",
        version=settings.version,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.settings = settings

    origins = settings.allowed_origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        # browsers reject credentials with a wildcard origin
        allow_credentials=origins != ["*"],
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        logger.info(
            "request",
            method=request.method,
            path=request.url.path,
            origin=request.headers.get("origin"),
            status=response.status_code,
            duration_ms=round((time.perf_counter() - started) * 1000, 1),
        )
        return response

    @app.exception_handler(StockServiceError)
    async def handle_service_error(request: Request, exc: StockServiceError):
        if exc.status_code >= 500:
            logger.error("service_error", path=request.url.path, error=exc.message)
        return _error(exc.status_code, exc.message)

    @app.exception_handler(SQLAlchemyError)
    async def handle_store_error(request: Request, exc: SQLAlchemyError):
        logger.exception("store_error", path=request.url.path)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Database operation failed")

    @app.exception_handler(RequestValidationError)
    async def handle_invalid_body(request: Request, exc: RequestValidationError):
        errors = [
            f"{'.'.join(str(p) for p in e.get('loc', ()))}: {e.get('msg')}"
            for e in exc.errors()
        ]
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"detail": "Invalid request data", "errors": errors},
        )

    @app.get("/")
    async def healthcheck():
        return {
            "status": "ok",
            "environment": settings.app_env,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "version": settings.version,
        }

    @app.get("/api/test-connection")
    async def test_connection(request: Request):
        now = datetime.now(timezone.utc).isoformat()
        if not await request.app.state.database.is_alive():
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={"detail": "Database connection failed", "timestamp": now},
            )
        return {"status": "connected", "timestamp": now}

    app.include_router(stock_router, prefix="/api/stock", tags=["stock"])
    app.include_router(reports_router, prefix="/api/reports", tags=["reports"])

    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=default_settings.port, reload=not default_settings.is_production)
