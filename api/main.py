import logging
import time
import uuid
from collections.abc import Awaitable, Callable
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from core import config, datastore, logging_config
from core.errors import InvalidModelError, ServiceError
from models import repository as models_repository
from models import router as models_router
from models import schemas
from models.service import ModelService

logger = logging.getLogger(__name__)

# Baseline browser hardening headers, set on every response.
SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "Referrer-Policy": "no-referrer",
    "X-DNS-Prefetch-Control": "off",
    "Cross-Origin-Opener-Policy": "same-origin",
    "Strict-Transport-Security": "max-age=15552000; includeSubDomains",
}

DatastoreFactory = Callable[[config.Settings], Awaitable[datastore.Repository]]


async def connect_mongo(settings: config.Settings) -> datastore.Repository:
    return await datastore.connect(settings, document_type=schemas.Model)


def create_app(
    settings: config.Settings | None = None,
    *,
    connect_datastore: DatastoreFactory = connect_mongo,
) -> FastAPI:
    settings = settings or config.load_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logging_config.setup_logging(settings.log_level)
        # One client (and pool) per process.
        repository = await connect_datastore(settings)
        try:
            await models_repository.ensure_indexes(repository)
            app.state.model_service = ModelService(repository, default_limit=settings.default_page_limit)
            logger.info("service_started name=%s env=%s", settings.service_name, settings.service_env)
            yield
        finally:
            logger.info("service_stopping name=%s", settings.service_name)
            await repository.close()

    app = FastAPI(title=settings.service_name, version="1.0.0", lifespan=lifespan)
    app.state.settings = settings

    app.add_middleware(GZipMiddleware, minimum_size=1000)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials="*" not in settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def request_context(request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        started = time.perf_counter()
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)

        if (
            settings.cache
            and request.method == "GET"
            and response.status_code == 200
            and request.query_params.get("refresh") != "true"
        ):
            response.headers["Cache-Control"] = "public, max-age=60"

        if settings.logging:
            latency_ms = (time.perf_counter() - started) * 1000
            logger.info(
                "%s - %.1fms %s %s",
                response.status_code,
                latency_ms,
                request.method,
                request.url.path,
            )
        return response

    @app.exception_handler(InvalidModelError)
    async def invalid_model_handler(_: Request, exc: InvalidModelError) -> JSONResponse:
        content = [error.model_dump(by_alias=True) for error in exc.errors]
        return JSONResponse(status_code=exc.status_code, content=content)

    @app.exception_handler(ServiceError)
    async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("request_failed path=%s status=%s message=%s", request.url.path, exc.status_code, exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("request_crashed path=%s", request.url.path)
        return JSONResponse(status_code=500, content={"code": 500, "message": "Internal Server Error"})

    app.include_router(models_router.router, prefix="/api/v1", tags=["models"])

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok"}

    return app


app = create_app()


def run() -> None:
    uvicorn.run(app, host=app.state.settings.service_host, port=app.state.settings.service_port)


if __name__ == "__main__":
    run()
