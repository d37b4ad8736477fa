import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from meme_engine.api import delivery, jobs
from meme_engine.config import Settings, ensure_directories, get_settings
from meme_engine.exceptions import MemeEngineError, RangeNotSatisfiableError
from meme_engine.middleware.body_limit import BodySizeLimitMiddleware
from meme_engine.services.job_orchestrator import JobOrchestrator

logger = logging.getLogger(__name__)


def _validation_message(errors: list) -> str:
    if not errors:
        return "Request validation failed"
    first_error = errors[0]
    loc = " -> ".join(str(x) for x in first_error.get("loc", []) if x != "body")
    msg = first_error.get("msg", "Validation error")
    return f"{loc}: {msg}" if loc else msg


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed or incomplete request bodies are a 400, not FastAPI's 422."""
    errors = exc.errors()
    return JSONResponse(
        status_code=400,
        content={
            "success": False,
            "error": _validation_message(errors),
            "details": jsonable_encoder(errors),
        },
    )


async def meme_engine_exception_handler(request: Request, exc: MemeEngineError) -> JSONResponse:
    info = exc.to_error_info()
    headers = None
    if isinstance(exc, RangeNotSatisfiableError):
        headers = {"Content-Range": f"bytes */{exc.file_size}"}

    if exc.status_code == 404:
        content = {"error": info.message, "details": info.details}
    else:
        content = {
            "success": False,
            "error": info.message,
            "code": info.code,
            "retryable": info.retryable,
            "details": jsonable_encoder(info.details),
        }
        if info.suggested_fix:
            content["suggestedFix"] = info.suggested_fix
    return JSONResponse(status_code=exc.status_code, content=content, headers=headers)


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": str(exc.detail)},
    )


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled exception: {exc}")
    return JSONResponse(status_code=500, content={"success": False, "error": "Internal server error"})


def create_app(settings: Settings | None = None, orchestrator: JobOrchestrator | None = None) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        # Startup
        ensure_directories(settings)
        logger.info("Output root %s, working root %s", settings.output_root, settings.temp_root)
        yield

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        lifespan=lifespan,
    )
    app.state.orchestrator = orchestrator or JobOrchestrator(settings)

    app.add_middleware(BodySizeLimitMiddleware, max_bytes=settings.max_request_body_bytes)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(MemeEngineError, meme_engine_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, global_exception_handler)

    # Routers
    app.include_router(jobs.router, prefix="/api", tags=["jobs"])
    app.include_router(delivery.router, tags=["delivery"])

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        return {"status": "OK", "service": settings.app_name, "version": settings.app_version}

    @app.get("/")
    async def index() -> dict:
        return {
            "service": settings.app_name,
            "endpoints": {
                "addOverlay": "POST /api/add-overlay",
                "addAudio": "POST /api/add-audio",
                "addImageOverlay": "POST /api/add-image-overlay",
                "stitchVideos": "POST /api/stitch-videos",
                "download": "GET /download/:jobId",
                "downloadImage": "GET /download-image/:jobId",
                "serveImage": "GET /serve-image/:jobId",
                "stream": "GET /stream/:jobId",
                "status": "GET /api/status/:jobId",
                "health": "GET /health",
            },
        }

    return app


app = create_app()
