import logging
from typing import Awaitable, Callable

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from slidecast.api import render
from slidecast.config import get_settings
from slidecast.constants.error_codes import get_error_spec, is_retryable
from slidecast.exceptions import SlidecastError
from slidecast.middleware.request_context import build_meta, create_request_context
from slidecast.schemas.envelope import ErrorEnvelope, ErrorInfo

settings = get_settings()
logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_context_middleware(
    request: Request, call_next: Callable[[Request], Awaitable[Response]]
) -> Response:
    request.state.context = create_request_context()
    return await call_next(request)


def _envelope(request: Request, status_code: int, error: ErrorInfo) -> JSONResponse:
    # Errors raised outside the middleware still get an envelope
    context = getattr(request.state, "context", None) or create_request_context()
    envelope = ErrorEnvelope(
        request_id=context.request_id,
        error=error,
        meta=build_meta(context),
    )
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(envelope.model_dump(exclude_none=True)),
    )


@app.exception_handler(SlidecastError)
async def slidecast_exception_handler(request: Request, exc: SlidecastError) -> JSONResponse:
    """Render compositor failures as error envelopes."""
    if exc.status_code >= 500:
        logger.error(f"[API] {exc.code}: {exc.message}")
    else:
        logger.info(f"[API] {exc.code}: {exc.message}")
    return _envelope(request, exc.status_code, exc.to_error_info())


# Global exception handler to ensure errors return proper JSON
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled exception: {exc}")
    spec = get_error_spec("INTERNAL_ERROR")
    error = ErrorInfo(
        code="INTERNAL_ERROR",
        message="Internal server error",
        retryable=is_retryable("INTERNAL_ERROR"),
        suggested_fix=spec.get("suggested_fix"),
    )
    return _envelope(request, 500, error)


# Routers
app.include_router(render.router, prefix="/api", tags=["render"])


@app.get("/health")
async def health_check() -> dict[str, str]:
    return {"status": "healthy", "version": settings.app_version, "git_hash": settings.git_hash}
