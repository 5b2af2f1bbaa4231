from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import make_asgi_app

from cmaas_console.api.v1.router import api_router
from cmaas_console.config import APP_VERSION, settings
from cmaas_console.core.logging_config import configure_logging
from cmaas_console.core.metrics import app_info
from cmaas_console.core.optimistic import SettleGuard
from cmaas_console.middleware.prometheus import PrometheusMiddleware
from cmaas_console.services.cms_client import CmsError
from cmaas_console.services.entry_form import UnknownFieldError
from cmaas_console.services.image_upload import ImageUploadError
from cmaas_console.services.schema_authoring import SchemaValidationError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings.ENVIRONMENT, settings.LOG_LEVEL)
    app_info.info({"version": APP_VERSION, "environment": settings.ENVIRONMENT})
    logger.info("CMaaS console %s talking to %s", APP_VERSION, settings.cms_api_url)
    if not settings.uploads_configured:
        logger.warning("Cloudinary is not configured; image uploads are disabled")
    yield


# ── Error mapping ──


async def _cms_error_handler(request: Request, exc: CmsError) -> JSONResponse:
    # 404/401/503 keep their status; any other backend failure is a bad gateway
    status = exc.status_code if exc.status_code in (401, 404, 503) else 502
    if status >= 500:
        logger.warning("CMS error on %s %s: %s", request.method, request.url.path, exc.detail)
    return JSONResponse(status_code=status, content={"detail": exc.detail})


async def _schema_error_handler(request: Request, exc: SchemaValidationError) -> JSONResponse:
    content = {"detail": exc.message, "rule": exc.rule.value}
    if exc.field_name:
        content["field"] = exc.field_name
    return JSONResponse(status_code=422, content=content)


async def _unknown_field_handler(request: Request, exc: UnknownFieldError) -> JSONResponse:
    return JSONResponse(status_code=422, content={"detail": str(exc), "field": exc.field_name})


async def _upload_error_handler(request: Request, exc: ImageUploadError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": str(exc)})


def create_app() -> FastAPI:
    docs = settings.DOCS_ENABLED and settings.ENVIRONMENT == "development"
    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=APP_VERSION,
        lifespan=lifespan,
        docs_url="/api/docs" if docs else None,
        redoc_url=None,
        openapi_url="/api/openapi.json" if docs else None,
    )

    app.add_exception_handler(CmsError, _cms_error_handler)
    app.add_exception_handler(SchemaValidationError, _schema_error_handler)
    app.add_exception_handler(UnknownFieldError, _unknown_field_handler)
    app.add_exception_handler(ImageUploadError, _upload_error_handler)

    app.add_middleware(PrometheusMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type"],
    )

    app.state.toggle_guard = SettleGuard(settings.TOGGLE_SETTLE_SECONDS)

    app.include_router(api_router, prefix=settings.API_V1_PREFIX)
    app.mount("/metrics", make_asgi_app())

    @app.get("/api/health")
    async def health():
        return {"status": "ok", "version": APP_VERSION}

    return app


app = create_app()
