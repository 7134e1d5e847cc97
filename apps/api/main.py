"""
Running club API.

    uvicorn main:app --host 0.0.0.0 --port 8000

`create_app` builds the application from a Settings object; the module-level
`app` uses the process settings.
"""
import logging
import time

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from core.config import Settings, settings
from core.database import check_db_connection
from core.exceptions import APIException
from core.logging import setup_logging
from routers import activities, challenges, competitions, strava, users

setup_logging()
logger = logging.getLogger(__name__)


def create_app(app_settings: Settings = settings) -> FastAPI:
    app = FastAPI(
        title="Running Club API",
        description="Strava-backed club leaderboards, competition results and distance challenges",
        version="1.0.0",
        docs_url="/docs" if app_settings.DEBUG else None,
        redoc_url="/redoc" if app_settings.DEBUG else None,
    )

    # core.auth reads this per request.
    app.state.admin_password = app_settings.ADMIN_PASSWORD

    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.cors_origin_list,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        started = time.perf_counter()
        fields = {"method": request.method, "path": request.url.path}
        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "%s %s failed", request.method, request.url.path,
                exc_info=True,
                extra={"extra_fields": {**fields, "error": str(e)}},
            )
            raise

        elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
        logger.info(
            "%s %s -> %s", request.method, request.url.path, response.status_code,
            extra={"extra_fields": {**fields, "status_code": response.status_code, "duration_ms": elapsed_ms}},
        )
        response.headers["X-Process-Time-Ms"] = str(elapsed_ms)
        return response

    @app.exception_handler(APIException)
    async def api_exception_handler(request: Request, exc: APIException):
        if exc.status_code >= 500:
            logger.warning("%s on %s %s: %s", exc.error_code, request.method, request.url.path, exc.detail)
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail, "error_code": exc.error_code},
            headers=exc.headers,
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.error(
            "Unhandled error on %s %s: %s", request.method, request.url.path, exc,
            exc_info=True,
            extra={"extra_fields": {"method": request.method, "path": request.url.path}},
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal server error"},
        )

    @app.get("/health")
    async def health():
        """200 while the database answers, 503 otherwise."""
        if not check_db_connection():
            return JSONResponse(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                content={"status": "unhealthy", "database": "unavailable"},
            )
        return {"status": "healthy", "timestamp": time.time()}

    for module in (users, activities, strava, competitions, challenges):
        app.include_router(module.router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host=settings.API_HOST, port=settings.API_PORT, reload=settings.API_RELOAD)
